"""Document processing: download, parse, sanitize, merge, advise."""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Tuple

from ledgerflow.config.settings import AppSettings
from ledgerflow.ledger.aggregator import Aggregator
from ledgerflow.ledger.merge import transactions_by_month
from ledgerflow.ledger.sanitizer import build_parse_result, clamp_numeric
from ledgerflow.llm.advisor import AnalysisResult, FinancialAdvisor, GoalsResult, InsightsResult
from ledgerflow.llm.client import CompletionClient, GeminiCompletionClient
from ledgerflow.llm.extractor import LLMTransactionExtractor
from ledgerflow.models import MonthlySummary, ParseResult, Source, Transaction
from ledgerflow.parsing.statement import StatementFile, is_pdf, parse_bank_statement
from ledgerflow.pdf import heuristics
from ledgerflow.pdf.processor import PDFProcessor, chunk_text
from ledgerflow.storage.blob import BlobStorage
from ledgerflow.storage.summary_store import DocumentRecord, SummaryStore
from ledgerflow.utils.exceptions import (
    LLMError,
    NoReadableTextError,
    NoValidTransactionsError,
    StorageError,
)
from ledgerflow.utils.logger import get_logger, set_document_context

logger = get_logger()


@dataclass
class ProcessingResult:
    document_id: str
    status: str
    already_processed: bool = False
    transaction_count: int = 0
    months: List[str] = field(default_factory=list)
    source: Optional[Source] = None
    date_range_start: Optional[str] = None
    date_range_end: Optional[str] = None
    total_income: Decimal = Decimal("0.00")
    total_expenses: Decimal = Decimal("0.00")
    error: Optional[str] = None
    analysis: Optional[AnalysisResult] = None
    insights: Optional[InsightsResult] = None
    goals: Optional[GoalsResult] = None

    @property
    def succeeded(self) -> bool:
        return self.status == "completed"


class DocumentProcessor:
    """Runs one uploaded statement through the ingestion pipeline."""

    def __init__(self, settings: AppSettings, store: SummaryStore, blobs: BlobStorage,
                 client: Optional[CompletionClient] = None, use_llm: bool = True,
                 pdf_processor: Optional[PDFProcessor] = None):
        self.settings = settings
        self.store = store
        self.blobs = blobs
        self.pdf_processor = pdf_processor or PDFProcessor()
        self.aggregator = Aggregator()

        if client is None and use_llm and settings.llm_available:
            try:
                client = GeminiCompletionClient.from_settings(settings)
            except LLMError as e:
                logger.warning(f"Completion service disabled: {e}")
                client = None

        self.client = client if use_llm else None
        self.extractor = (
            LLMTransactionExtractor(
                self.client,
                chunk_concurrency=settings.llm_chunk_concurrency,
                name_clean_concurrency=settings.llm_name_clean_concurrency,
                name_clean_batch_size=settings.llm_name_clean_batch_size,
                min_confidence=settings.llm_min_confidence,
            )
            if self.client is not None
            else None
        )

    def ingest(self, content: bytes, file_name: str, user_id: str, document_id: Optional[str] = None,
               mime_type: str = "", force: bool = False, advise: bool = False) -> ProcessingResult:
        """Store the bytes, register the document and process it."""
        reference = self.blobs.upload(content, file_name)
        document_id = document_id or reference.document_id

        existing = self.store.get_document(document_id)
        if existing is None:
            self.store.register_document(DocumentRecord(
                document_id=document_id,
                user_id=user_id,
                file_name=file_name,
                blob_id=reference.document_id,
                mime_type=mime_type,
                encryption_key_id=reference.encryption_key_id,
            ))
        elif existing.user_id != user_id:
            raise StorageError(f"Document {document_id} belongs to another user")
        elif existing.blob_id != reference.document_id:
            self.store.update_document(
                document_id,
                file_name=file_name,
                blob_id=reference.document_id,
                mime_type=mime_type,
                encryption_key_id=reference.encryption_key_id,
            )
            force = True

        return self.process(document_id, force=force, advise=advise)

    def process(self, document_id: str, force: bool = False, advise: bool = False) -> ProcessingResult:
        """
        Process a registered document.

        Already-completed documents are skipped unless force is set.
        Failures are recorded on the document and returned, not raised;
        persisted summaries are left untouched on failure.

        Raises:
            StorageError: If the document is not registered
        """
        record = self.store.get_document(document_id)
        if record is None:
            raise StorageError(f"Document not found: {document_id}")

        if (
            not force
            and record.status == "completed"
            and record.processed_at is not None
            and record.transaction_count > 0
        ):
            logger.info(f"Document {document_id} already processed, skipping")
            return ProcessingResult(
                document_id=document_id,
                status=record.status,
                already_processed=True,
                transaction_count=record.transaction_count,
                date_range_start=record.date_range_start,
                date_range_end=record.date_range_end,
                total_income=record.total_income or Decimal("0.00"),
                total_expenses=record.total_expenses or Decimal("0.00"),
            )

        set_document_context(document_id)
        try:
            self.store.update_document(document_id, status="processing", error=None)
            return self._run(record, advise)
        except Exception as e:
            logger.error(f"Processing failed for {record.file_name}: {e}")
            message = str(e) or "Processing failed"
            self.store.update_document(document_id, status="failed", error=message)
            return ProcessingResult(document_id=document_id, status="failed", error=message)
        finally:
            set_document_context(None)

    def _run(self, record: DocumentRecord, advise: bool) -> ProcessingResult:
        content = self.blobs.download(record.blob_id, record.encryption_key_id)
        file = StatementFile(name=record.file_name, content=content, mime_type=record.mime_type or "")

        parsed = self._parse(file)
        by_month = transactions_by_month(parsed.transactions)
        preview = self.aggregator.group_by_month(parsed.transactions, self.settings.summary_top_merchants)

        self.store.update_document(
            record.document_id,
            date_range_start=parsed.date_range.start,
            date_range_end=parsed.date_range.end,
        )

        stored = self.store.merge_document_months(
            record.user_id,
            record.document_id,
            by_month,
            max_abs=self.settings.max_transaction_abs,
            top_n=self.settings.merge_top_merchants,
        )

        result = ProcessingResult(
            document_id=record.document_id,
            status="completed",
            transaction_count=len(parsed.transactions),
            months=sorted(stored),
            source=parsed.source,
            date_range_start=parsed.date_range.start,
            date_range_end=parsed.date_range.end,
            total_income=clamp_numeric(parsed.total_income),
            total_expenses=clamp_numeric(parsed.total_expenses),
        )

        if advise:
            self._advise(record.user_id, list(preview.values()), parsed.source_chunks, result)

        self.store.update_document(
            record.document_id,
            status="completed",
            processed_at=datetime.now(),
            transaction_count=result.transaction_count,
            date_range_start=result.date_range_start,
            date_range_end=result.date_range_end,
            total_income=result.total_income,
            total_expenses=result.total_expenses,
            error=None,
        )

        logger.info(
            f"Processed {record.file_name}: {result.transaction_count} transactions "
            f"across {len(result.months)} months ({parsed.source.value})"
        )
        return result

    def _parse(self, file: StatementFile) -> ParseResult:
        max_abs = self.settings.max_transaction_abs

        if not is_pdf(file):
            parsed = parse_bank_statement(file, self.pdf_processor, self.settings.pdf_chunk_chars)
            return build_parse_result(parsed.transactions, parsed.source_chunks, Source.FALLBACK, max_abs)

        text = self.pdf_processor.extract_text(file.content, file.name)
        chunks = chunk_text(text, self.settings.pdf_chunk_chars)
        if not chunks:
            raise NoReadableTextError(
                "No readable text extracted from PDF. Upload a searchable PDF or export CSV/XLSX for best results."
            )

        model_transactions = self._extract_with_model(file, chunks)
        if model_transactions:
            try:
                return build_parse_result(model_transactions, chunks, Source.MODEL, max_abs)
            except NoValidTransactionsError:
                logger.warning(
                    f"None of {len(model_transactions)} model rows survived sanitization, "
                    "falling back to deterministic parser"
                )

        try:
            return build_parse_result(heuristics.parse_pdf_text(text), chunks, Source.FALLBACK, max_abs)
        except NoValidTransactionsError as e:
            raise NoValidTransactionsError(
                f"No valid transaction rows were found in PDF after LLM extraction and fallback parsing. {e}"
            )

    def _extract_with_model(self, file: StatementFile, chunks: List[str]) -> List[Transaction]:
        if self.extractor is None:
            return []
        try:
            extraction = self.extractor.extract_from_chunks(
                chunks,
                currency=self.settings.llm_currency,
                metadata={"file_name": file.name},
            )
        except Exception as e:
            logger.error(f"Model PDF extraction failed, falling back to deterministic parser: {e}")
            return []
        return extraction.transactions

    def _advise(self, user_id: str, current: List[MonthlySummary], chunks: List[str],
                result: ProcessingResult) -> None:
        summaries = self.store.list_summaries(user_id, limit=12) or current
        advisor = FinancialAdvisor(self.client, currency=self.settings.llm_currency)

        result.analysis = advisor.analyze(summaries, chunks)
        result.insights = advisor.generate_insights(result.analysis.analysis, summaries)
        result.goals = advisor.generate_goals(
            result.analysis.analysis,
            result.insights.insights,
            summaries=summaries,
        )
        logger.info(
            f"Advice generated: analysis={result.analysis.source.value} "
            f"insights={len(result.insights.insights)} goals={len(result.goals.goals)}"
        )

    def clear_user(self, user_id: str) -> Tuple[int, int]:
        """
        Delete a user's months, document records and stored statements.

        Statements shared with another user's document are kept.

        Returns:
            (database rows removed, statement blobs deleted)
        """
        documents = self.store.get_user_documents(user_id)
        removed = self.store.clear_user(user_id)

        deleted = 0
        for blob_id, key_id in sorted({(d.blob_id, d.encryption_key_id) for d in documents}, key=str):
            if not blob_id or self.store.blob_in_use(blob_id):
                continue
            if self.blobs.delete(blob_id, key_id).deleted_at_source:
                deleted += 1

        logger.info(f"Cleared user {user_id}: {removed} rows, {deleted} statement files")
        return removed, deleted
