"""Row-level extraction for spreadsheet-like input (CSV, Excel, PDF tables)."""
import re
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

from ledgerflow.models import Transaction
from ledgerflow.utils.exceptions import InvalidAmountError, InvalidDateError
from ledgerflow.utils.logger import get_logger
from .classifier import classify, looks_like_positive_description
from .normalizer import (
    as_clean_string,
    has_amount_sign,
    looks_like_amount_token,
    normalize_date,
    parse_amount,
    safe_parse_amount,
)

logger = get_logger()

DATE_FIELD_KEYS = ("date", "transaction_date", "posted_date", "post_date", "value_date")
DESCRIPTION_FIELD_KEYS = ("description", "memo", "payee", "merchant", "narration", "details", "transaction")
AMOUNT_FIELD_KEYS = ("amount", "transaction_amount", "value", "transaction_value", "amt")
DEBIT_FIELD_KEYS = ("debit", "withdrawal", "withdrawals", "payment", "outflow", "debits")
CREDIT_FIELD_KEYS = ("credit", "deposit", "deposits", "inflow", "credits")

HEADER_SCAN_ROWS = 25
MIN_HEADER_SCORE = 2


def slugify_header(value: Any) -> str:
    """Lowercase a header cell and collapse non-alphanumerics into '_'."""
    return re.sub(r"[^a-z0-9]+", "_", as_clean_string(value).lower())


def score_header_row(cells: Sequence[Any]) -> int:
    """Count how many of date/description/money columns a row names."""
    headers = {slugify_header(cell) for cell in cells}
    money_keys = AMOUNT_FIELD_KEYS + DEBIT_FIELD_KEYS + CREDIT_FIELD_KEYS

    score = 0
    if headers.intersection(DATE_FIELD_KEYS):
        score += 1
    if headers.intersection(DESCRIPTION_FIELD_KEYS):
        score += 1
    if headers.intersection(money_keys):
        score += 1
    return score


def find_header_row(rows: Sequence[Sequence[Any]]) -> int:
    """Index of the first header-looking row among the leading rows, or -1."""
    for index, row in enumerate(rows[:HEADER_SCAN_ROWS]):
        if score_header_row(row or []) >= MIN_HEADER_SCORE:
            return index
    return -1


def pick_field(mapped: Dict[str, Any], keys: Sequence[str]) -> Optional[Any]:
    for key in keys:
        value = mapped.get(key)
        if value is not None and as_clean_string(value) != "":
            return value
    return None


def extract_amount(mapped: Dict[str, Any]) -> Optional[Decimal]:
    """
    Resolve a signed amount from a header-mapped row.

    A single amount column wins. Otherwise separate debit and credit
    columns are combined (credit minus debit when both are set).

    Raises:
        InvalidAmountError: If a populated money cell cannot be parsed
    """
    amount_raw = pick_field(mapped, AMOUNT_FIELD_KEYS)
    if amount_raw is not None:
        return parse_amount(amount_raw)

    debit_raw = pick_field(mapped, DEBIT_FIELD_KEYS)
    credit_raw = pick_field(mapped, CREDIT_FIELD_KEYS)
    if debit_raw is None and credit_raw is None:
        return None

    debit = abs(parse_amount(debit_raw)) if debit_raw is not None else Decimal("0")
    credit = abs(parse_amount(credit_raw)) if credit_raw is not None else Decimal("0")

    if credit > 0 and debit > 0:
        return credit - debit
    if credit > 0:
        return credit
    if debit > 0:
        return -debit
    return None


def row_to_transaction(mapped: Dict[str, Any]) -> Optional[Transaction]:
    """Build a transaction from a header-mapped row, or None if it is unusable."""
    date_raw = pick_field(mapped, DATE_FIELD_KEYS)
    description_raw = pick_field(mapped, DESCRIPTION_FIELD_KEYS)
    if date_raw is None or description_raw is None:
        return None

    try:
        amount = extract_amount(mapped)
        if amount is None or amount == 0:
            return None
        date = normalize_date(date_raw)
    except (InvalidAmountError, InvalidDateError) as e:
        logger.debug(f"Skipping row: {e}")
        return None

    description = as_clean_string(description_raw)
    if not description:
        return None

    return Transaction(
        date=date,
        description=description,
        amount=amount,
        category=classify(description, amount),
    )


def parse_simple_row(row: Sequence[Any]) -> Optional[Transaction]:
    """
    Parse a header-less row: date first, amount the rightmost money-looking
    cell, description everything in between.
    """
    cells = [c for c in (as_clean_string(cell) for cell in row) if c]
    if len(cells) < 3:
        return None

    try:
        date = normalize_date(cells[0])
    except InvalidDateError:
        return None

    amount_index = -1
    for index in range(len(cells) - 1, 0, -1):
        if looks_like_amount_token(cells[index]):
            amount_index = index
            break
    if amount_index == -1:
        return None

    amount_token = cells[amount_index]
    parsed = safe_parse_amount(amount_token)
    if parsed is None or parsed == 0:
        return None

    description = " ".join(cells[1:amount_index]).strip()
    if not description:
        return None

    if has_amount_sign(amount_token) or looks_like_positive_description(description):
        amount = parsed
    else:
        amount = -abs(parsed)

    return Transaction(
        date=date,
        description=description,
        amount=amount,
        category=classify(description, amount),
    )


def parse_rows_to_transactions(rows: Sequence[Sequence[Any]]) -> List[Transaction]:
    """
    Extract transactions from a grid of cells.

    Uses the detected header row when there is one; if that produces
    nothing, every row is tried as a header-less row.
    """
    transactions: List[Transaction] = []
    header_index = find_header_row(rows)

    if header_index >= 0:
        headers = [slugify_header(cell) for cell in rows[header_index]]
        for row in rows[header_index + 1:]:
            row = row or []
            mapped: Dict[str, Any] = {}
            for position, header in enumerate(headers):
                if header and position < len(row) and header not in mapped:
                    mapped[header] = row[position]
            tx = row_to_transaction(mapped)
            if tx:
                transactions.append(tx)

    if transactions:
        return transactions

    logger.debug(f"Header strategy found nothing (header row {header_index}), trying simple rows")
    return [tx for tx in (parse_simple_row(row or []) for row in rows) if tx]
