"""Amount and date normalization for heterogeneous statement cells."""
import math
import re
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from ledgerflow.utils.exceptions import InvalidAmountError, InvalidDateError

EXCEL_EPOCH = date(1899, 12, 30)
EXCEL_SERIAL_MIN = 20000
EXCEL_SERIAL_MAX = 80000

CURRENCY_SYMBOLS = "$€£¥₹₩₪₽₺₫฿"

_CR_TOKEN = re.compile(r"(?<![a-z])cr(?![a-z])", re.IGNORECASE)
_DR_TOKEN = re.compile(r"(?<![a-z])dr(?![a-z])", re.IGNORECASE)
_CRDR_TOKEN = re.compile(r"(?<![a-z])(?:cr|dr)(?![a-z])", re.IGNORECASE)
_STRIP_CHARS = re.compile(r"[\s,()" + re.escape(CURRENCY_SYMBOLS) + r"]")

_AMOUNT_TOKEN = re.compile(
    r"^-?\$?\(?((\d{1,3}(,\d{3})+)|\d+)(\.\d{2})?\)?-?(\s?(CR|DR))?$",
    re.IGNORECASE,
)

# Formats tried after ISO parsing and before the ambiguous triple logic
_WRITTEN_DATE_FORMATS = (
    "%Y/%m/%d",
    "%Y.%m.%d",
    "%b %d, %Y",
    "%B %d, %Y",
    "%b %d %Y",
    "%B %d %Y",
    "%d %b %Y",
    "%d %B %Y",
    "%d-%b-%Y",
    "%d-%b-%y",
    "%d %b %y",
)


def as_clean_string(value: Any) -> str:
    """Render a cell value as trimmed text; None and NaN become ''."""
    if value is None:
        return ""
    if isinstance(value, float) and math.isnan(value):
        return ""
    return str(value).strip()


def has_amount_sign(raw: str) -> bool:
    """Whether an amount token carries an explicit sign marker."""
    text = raw.strip()
    return (
        "(" in text
        or ")" in text
        or text.startswith("-")
        or text.endswith("-")
        or bool(_CRDR_TOKEN.search(text))
    )


def looks_like_amount_token(value: str) -> bool:
    """Strict shape check used when scanning header-less rows."""
    return bool(_AMOUNT_TOKEN.match(value.strip()))


def parse_amount(value: Any) -> Decimal:
    """
    Parse an amount cell into a signed Decimal.

    Negative when the text starts or ends with '-', is parenthesized or
    carries a DR token. A CR token forces the value positive and takes
    precedence over parentheses.

    Raises:
        InvalidAmountError: If no finite number remains after cleaning
    """
    if isinstance(value, bool):
        raise InvalidAmountError(f"Invalid amount: {value}")

    if isinstance(value, (int, float, Decimal)):
        try:
            numeric = Decimal(str(value))
        except InvalidOperation:
            raise InvalidAmountError(f"Invalid amount: {value}")
        if not numeric.is_finite():
            raise InvalidAmountError(f"Invalid amount: {value}")
        return numeric

    raw = as_clean_string(value)
    if not raw:
        raise InvalidAmountError("Invalid amount: empty")

    is_credit = bool(_CR_TOKEN.search(raw))
    is_debit = bool(_DR_TOKEN.search(raw))
    is_negative = "(" in raw or raw.startswith("-") or raw.endswith("-") or is_debit

    cleaned = _CRDR_TOKEN.sub("", raw)
    cleaned = _STRIP_CHARS.sub("", cleaned).strip("-+")
    if not cleaned:
        raise InvalidAmountError(f"Invalid amount: {raw}")

    try:
        numeric = Decimal(cleaned)
    except InvalidOperation:
        raise InvalidAmountError(f"Invalid amount: {raw}")

    if not numeric.is_finite():
        raise InvalidAmountError(f"Invalid amount: {raw}")

    if is_credit:
        return abs(numeric)
    if is_negative:
        return -abs(numeric)
    return numeric


def safe_parse_amount(value: Any) -> Optional[Decimal]:
    """parse_amount that returns None instead of raising."""
    try:
        return parse_amount(value)
    except InvalidAmountError:
        return None


def normalize_date(value: Any) -> str:
    """
    Normalize a date cell into an ISO YYYY-MM-DD string.

    Ambiguous a/b/c triples are read month-first, then day-first.

    Raises:
        InvalidDateError: If the value cannot be read as a calendar date
    """
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if math.isfinite(value) and EXCEL_SERIAL_MIN < value < EXCEL_SERIAL_MAX:
            return (EXCEL_EPOCH + timedelta(days=math.floor(value))).isoformat()
        raise InvalidDateError(f"Invalid date format: {value}")

    raw = as_clean_string(value)
    if not raw:
        raise InvalidDateError("Invalid date format: empty")

    parsed = _parse_iso(raw) or _parse_written(raw) or _parse_triple(raw)
    if parsed is None:
        raise InvalidDateError(f"Invalid date format: {raw}")
    return parsed.isoformat()


def _parse_iso(raw: str) -> Optional[date]:
    # fromisoformat on older interpreters rejects a trailing Z
    candidate = raw[:-1] if raw.endswith("Z") else raw
    try:
        return datetime.fromisoformat(candidate).date()
    except ValueError:
        pass
    try:
        return date.fromisoformat(candidate[:10]) if re.match(r"^\d{4}-\d{2}-\d{2}", candidate) else None
    except ValueError:
        return None


def _parse_written(raw: str) -> Optional[date]:
    text = re.sub(r"\s+", " ", raw)
    for fmt in _WRITTEN_DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def _parse_triple(raw: str) -> Optional[date]:
    parts = [p.strip() for p in re.split(r"[/.-]", raw)]
    if len(parts) != 3 or not all(p.isdigit() for p in parts):
        return None

    first, second, third = parts
    year = _expand_year(third)

    for month, day in ((first, second), (second, first)):
        try:
            return date(year, int(month), int(day))
        except ValueError:
            continue
    return None


def _expand_year(token: str) -> int:
    year = int(token)
    if len(token) <= 2:
        return 2000 + year if year < 50 else 1900 + year
    return year
