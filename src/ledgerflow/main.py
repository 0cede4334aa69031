"""Command line entry point."""
import argparse
import json
import sys
from pathlib import Path

from ledgerflow.config.settings import AppSettings, get_settings
from ledgerflow.orchestrator.processor import DocumentProcessor, ProcessingResult
from ledgerflow.parsing.statement import StatementFile, parse_bank_statement
from ledgerflow.storage.blob import LocalBlobStorage
from ledgerflow.storage.summary_store import SummaryStore
from ledgerflow.utils.exceptions import LedgerFlowError
from ledgerflow.utils.logger import configure_logging, get_logger

logger = get_logger()


def parse_command(path: str) -> None:
    """Parse a statement and print its transactions without storing anything."""
    result = parse_bank_statement(StatementFile.from_path(Path(path)))

    print(f"\n{len(result.transactions)} transactions "
          f"({result.date_range.start} to {result.date_range.end})")
    print(f"{'Date':<12} {'Amount':>12}  {'Category':<18} Description")
    print("-" * 90)
    for tx in result.transactions:
        print(f"{tx.date:<12} {tx.amount:>12}  {tx.category:<18} {tx.description[:45]}")
    print(f"\nIncome: {result.total_income}  Expenses: {result.total_expenses}")


def ingest_command(settings: AppSettings, args) -> int:
    processor = _build_processor(settings, use_llm=not args.no_llm)
    path = Path(args.file)
    result = processor.ingest(
        path.read_bytes(),
        path.name,
        args.user,
        document_id=args.document_id,
        force=args.force,
        advise=args.advise,
    )
    _print_result(result)
    return 0 if result.succeeded else 1


def reprocess_command(settings: AppSettings, args) -> int:
    processor = _build_processor(settings, use_llm=not args.no_llm)
    result = processor.process(args.document_id, force=True, advise=args.advise)
    _print_result(result)
    return 0 if result.succeeded else 1


def list_months_command(settings: AppSettings, user_id: str, limit: int) -> None:
    store = SummaryStore(settings.database_file)
    summaries = store.list_summaries(user_id, limit=limit)
    if not summaries:
        print(f"No monthly summaries found for user: {user_id}")
        return

    print(f"\nMonthly summaries for user: {user_id}")
    print(f"{'Month':<12} {'Income':>14} {'Expenses':>14} {'Txns':>6}  Top merchant")
    print("-" * 80)
    for summary in summaries:
        top = summary.top_merchants[0].name if summary.top_merchants else ""
        count = summary.income_count + summary.expense_count
        print(f"{summary.month:<12} {summary.total_income:>14} {summary.total_expenses:>14} "
              f"{count:>6}  {top[:30]}")


def clear_command(settings: AppSettings, user_id: str) -> None:
    removed, deleted = _build_processor(settings, use_llm=False).clear_user(user_id)
    print(f"✓ Cleared {removed} stored rows and {deleted} statement files for user: {user_id}")


def _build_processor(settings: AppSettings, use_llm: bool) -> DocumentProcessor:
    return DocumentProcessor(
        settings,
        SummaryStore(settings.database_file),
        LocalBlobStorage(settings.blobs_dir),
        use_llm=use_llm,
    )


def _print_result(result: ProcessingResult) -> None:
    if result.already_processed:
        print(f"Document {result.document_id[:12]} already processed "
              f"({result.transaction_count} transactions), use --force to reprocess")
        return

    if not result.succeeded:
        print(f"✗ Document {result.document_id[:12]} failed: {result.error}")
        return

    print(f"✓ Document {result.document_id[:12]}: {result.transaction_count} transactions "
          f"via {result.source.value}")
    print(f"  Period:   {result.date_range_start} to {result.date_range_end}")
    print(f"  Months:   {', '.join(result.months)}")
    print(f"  Income:   {result.total_income}")
    print(f"  Expenses: {result.total_expenses}")

    if result.analysis is not None:
        print("\nAnalysis:")
        print(json.dumps(result.analysis.analysis.model_dump(by_alias=True), indent=2))
    if result.insights is not None:
        print(f"\nInsights ({result.insights.source.value}):")
        for insight in result.insights.insights:
            print(f"  - {insight.title}")
    if result.goals is not None:
        print(f"\nGoals ({result.goals.source.value}):")
        for goal in result.goals.goals:
            print(f"  {goal.priority}. {goal.name} (target {goal.target_amount})")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="LedgerFlow statement ingestion")
    commands = parser.add_subparsers(dest="command", required=True)

    parse = commands.add_parser("parse", help="Parse a statement and print its transactions")
    parse.add_argument("file", help="CSV, XLS, XLSX or PDF statement")

    ingest = commands.add_parser("ingest", help="Store, parse and merge a statement for a user")
    ingest.add_argument("file", help="CSV, XLS, XLSX or PDF statement")
    ingest.add_argument("--user", required=True, help="User ID")
    ingest.add_argument("--document-id", help="Document ID (default: content hash)")
    ingest.add_argument("--force", action="store_true", help="Reprocess even if already completed")
    ingest.add_argument("--no-llm", action="store_true", help="Use deterministic parsing only")
    ingest.add_argument("--advise", action="store_true", help="Generate analysis, insights and goals")

    reprocess = commands.add_parser("reprocess", help="Reprocess a registered document")
    reprocess.add_argument("document_id", help="Document ID")
    reprocess.add_argument("--no-llm", action="store_true", help="Use deterministic parsing only")
    reprocess.add_argument("--advise", action="store_true", help="Generate analysis, insights and goals")

    months = commands.add_parser("list-months", help="List stored monthly summaries")
    months.add_argument("--user", required=True, help="User ID")
    months.add_argument("--limit", type=int, default=12, help="Number of months (default: 12)")

    clear = commands.add_parser("clear", help="Delete all stored data of a user")
    clear.add_argument("--user", required=True, help="User ID")

    return parser


def main(argv=None):
    """Main entry point for the LedgerFlow CLI."""
    args = build_parser().parse_args(argv)

    try:
        if args.command == "parse":
            parse_command(args.file)
            return

        settings = get_settings()
        is_valid, message = settings.validate()
        if not is_valid:
            logger.critical(f"Invalid configuration: {message}")
            sys.exit(1)
        configure_logging(settings)

        if args.command == "ingest":
            sys.exit(ingest_command(settings, args))
        if args.command == "reprocess":
            sys.exit(reprocess_command(settings, args))
        if args.command == "list-months":
            list_months_command(settings, args.user, args.limit)
        elif args.command == "clear":
            clear_command(settings, args.user)
    except LedgerFlowError as e:
        logger.error(f"{args.command} failed: {e}")
        sys.exit(1)
    except OSError as e:
        logger.error(f"Cannot read input: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
