"""Storage-bound validation and clamping of transactions."""
import re
from datetime import date as calendar_date
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, List, Optional, Sequence

from ledgerflow.config.settings import STORAGE_MAX_ABS
from ledgerflow.models import CATEGORIES, CENT, ParseResult, Source, Transaction, money
from ledgerflow.parsing.statement import finalize
from ledgerflow.utils.exceptions import NoValidTransactionsError
from ledgerflow.utils.logger import get_logger

logger = get_logger()

DEFAULT_MAX_TRANSACTION_ABS = Decimal("5000000")

ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def round_money(value: Any) -> Decimal:
    return money(value)


def to_decimal(value: Any) -> Optional[Decimal]:
    """Finite Decimal from a number or numeric string, else None."""
    if value is None or isinstance(value, bool) or value == "":
        return None
    try:
        numeric = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    return numeric if numeric.is_finite() else None


def clamp_numeric(value: Any) -> Decimal:
    """Bound to the storage column range and round; non-numeric becomes 0."""
    numeric = to_decimal(value)
    if numeric is None:
        return Decimal("0.00")
    bounded = min(max(numeric, -STORAGE_MAX_ABS), STORAGE_MAX_ABS)
    return money(bounded)


def to_nullable_numeric(value: Any) -> Optional[Decimal]:
    numeric = to_decimal(value)
    return None if numeric is None else clamp_numeric(numeric)


def is_iso_date(value: str) -> bool:
    """YYYY-MM-DD naming a real calendar day."""
    if not ISO_DATE.match(value):
        return False
    try:
        calendar_date.fromisoformat(value)
    except ValueError:
        return False
    return True


def coerce_category(category: str, amount: Decimal) -> str:
    """Keep known categories; map anything else by sign."""
    normalized = (category or "").strip().lower()
    if normalized in CATEGORIES:
        return normalized
    return "income_other" if amount > 0 else "other"


def _keep(date: str, description: str, amount: Optional[Decimal], max_abs: Decimal) -> bool:
    if not is_iso_date(date) or not description or amount is None:
        return False
    return CENT <= abs(amount) <= max_abs


def sanitize_transactions(transactions: Iterable[Transaction],
                          max_abs: Decimal = DEFAULT_MAX_TRANSACTION_ABS) -> List[Transaction]:
    """
    Drop transactions that cannot be stored and round the rest.

    Kept rows have an ISO date, a non-empty description, a category from
    the closed set and 0.01 <= |amount| <= max_abs.
    """
    sanitized = []
    dropped = 0

    for txn in transactions:
        date = str(txn.date or "").strip()
        description = str(txn.description or "").strip()
        amount = to_decimal(txn.amount)

        if not _keep(date, description, amount, max_abs):
            dropped += 1
            continue

        sanitized.append(Transaction(
            date=date,
            description=description,
            amount=round_money(amount),
            category=coerce_category(txn.category, amount),
            source_document_id=txn.source_document_id,
        ))

    if dropped:
        logger.info(f"Sanitizer dropped {dropped} transactions")
    return sanitized


def normalize_stored_transactions(rows: Any,
                                  max_abs: Decimal = DEFAULT_MAX_TRANSACTION_ABS) -> List[Transaction]:
    """Rebuild transactions from persisted JSON rows, discarding invalid ones."""
    if not isinstance(rows, list):
        return []

    result = []
    for item in rows:
        if not isinstance(item, dict):
            continue

        date = str(item.get("date") or "").strip()
        description = str(item.get("description") or "").strip()
        amount = to_decimal(item.get("amount") or 0)
        if not _keep(date, description, amount, max_abs):
            continue

        source_id = item.get("source_document_id")
        source_id = str(source_id).strip() or None if source_id is not None else None

        result.append(Transaction(
            date=date,
            description=description,
            amount=round_money(amount),
            category=str(item.get("category") or "other").strip() or "other",
            source_document_id=source_id,
        ))
    return result


def build_parse_result(transactions: Sequence[Transaction], source_chunks: Sequence[str] = (),
                       source: Source = Source.FALLBACK,
                       max_abs: Decimal = DEFAULT_MAX_TRANSACTION_ABS) -> ParseResult:
    """
    Sanitize candidates and finalize them into a ParseResult with clamped totals.

    Raises:
        NoValidTransactionsError: If nothing survives sanitization
    """
    sanitized = sanitize_transactions(transactions, max_abs)
    if not sanitized:
        raise NoValidTransactionsError(
            "No valid transaction rows were found after parsing and sanitization"
        )

    result = finalize(sanitized, list(source_chunks), source)
    result.total_income = clamp_numeric(result.total_income)
    result.total_expenses = clamp_numeric(result.total_expenses)
    return result
