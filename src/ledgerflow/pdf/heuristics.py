"""
Heuristic transaction extraction from free-form statement text.

Three independent strategies read the same text (table cells, line
lookahead, date-delimited blocks) and their candidates are reconciled by
keeping, for every distinct transaction, the highest count any single
strategy produced.
"""
import re
from collections import Counter
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ledgerflow.models import Transaction, money_str
from ledgerflow.parsing.classifier import classify, looks_like_positive_description
from ledgerflow.parsing.normalizer import has_amount_sign, normalize_date, safe_parse_amount
from ledgerflow.parsing.tabular import parse_rows_to_transactions
from ledgerflow.utils.exceptions import InvalidDateError
from ledgerflow.utils.logger import get_logger
from .text_normalizer import StatementTextNormalizer

logger = get_logger()

DATE_TOKEN = re.compile(r"\b\d{1,2}[/-]\d{1,2}[/-]\d{2,4}\b")
AMOUNT_TOKEN = re.compile(
    r"-?\$?\(?\d[\d,]*(?:\.\d{2})?\)?-?(?:\s?(?:CR|DR)(?![a-z]))?",
    re.IGNORECASE,
)

NON_TRANSACTION_PATTERNS = (
    re.compile(r"beginning balance", re.I),
    re.compile(r"ending balance", re.I),
    re.compile(r"available balance", re.I),
    re.compile(r"daily balance", re.I),
    re.compile(r"statement period", re.I),
    re.compile(r"total (deposits|credits|withdrawals|debits|fees|interest)", re.I),
    re.compile(r"account (number|summary)", re.I),
    re.compile(r"page \d+ of \d+", re.I),
    re.compile(r"^date\s+description", re.I),
    re.compile(r"^description\s+amount", re.I),
    re.compile(r"transactions? total", re.I),
)

MAX_BLOCK_LOOKAHEAD = 4

_normalizer = StatementTextNormalizer()


def first_date_token(text: str) -> Optional[str]:
    match = DATE_TOKEN.search(text)
    return match.group(0) if match else None


def has_date_token(text: str) -> bool:
    return DATE_TOKEN.search(text) is not None


def is_likely_amount_token(value: str) -> bool:
    """
    Filter raw regex hits down to plausible money amounts.

    Bare day/month and year fragments are rejected, as are date-shaped
    tokens. Integers need at least three digits unless decorated.
    """
    token = value.strip()
    if not token:
        return False

    core = token.strip("-")
    if re.fullmatch(r"\d{1,2}", core) or re.fullmatch(r"\d{4}", core):
        return False
    if "/" in token or re.search(r"\d-\d", token):
        return False

    strongly_amount_like = (
        re.search(r"[.$,()\-]", token) is not None
        or re.search(r"(?<![a-z])(cr|dr)(?![a-z])", token, re.I) is not None
        or re.search(r"\d+\.\d{2}\b", token) is not None
    )
    plain_integer = re.fullmatch(r"\d{3,}", token) is not None
    if not strongly_amount_like and not plain_integer:
        return False

    return safe_parse_amount(token) is not None


def extract_amount_tokens(text: str) -> List[str]:
    """Amount-looking tokens in reading order, date tokens excluded."""
    without_dates = DATE_TOKEN.sub(" ", text)
    tokens = (match.group(0).strip() for match in AMOUNT_TOKEN.finditer(without_dates))
    return [token for token in tokens if is_likely_amount_token(token)]


def sanitize_description(text: str, amount_tokens: Sequence[str]) -> str:
    cleaned = DATE_TOKEN.sub(" ", text)
    for token in sorted(set(amount_tokens), key=len, reverse=True):
        cleaned = cleaned.replace(token, " ")
    return re.sub(r"\s+", " ", cleaned).strip()


def is_non_transaction_description(description: str) -> bool:
    """Too short, no letters, or statement boilerplate."""
    normalized = description.strip()
    if len(normalized) < 3:
        return True
    if not re.search(r"[a-z]", normalized, re.I):
        return True
    return any(pattern.search(normalized) for pattern in NON_TRANSACTION_PATTERNS)


def build_pdf_transaction_from_text(text: str,
                                    fallback_date_token: Optional[str] = None) -> Optional[Transaction]:
    """
    Build one transaction from a line or block of statement text.

    Args:
        text: Candidate text, one or more joined lines
        fallback_date_token: Date token to use instead of searching the text

    Returns:
        Transaction, or None when the text does not read as a transaction
    """
    date_token = fallback_date_token or first_date_token(text)
    if not date_token:
        return None

    try:
        date = normalize_date(date_token)
    except InvalidDateError:
        return None

    amount_tokens = extract_amount_tokens(text)
    if not amount_tokens:
        return None

    # "... amount balance" layouts: the running balance is the last token
    selected = amount_tokens[-1]
    if re.search(r"balance", text, re.I) and len(amount_tokens) > 1:
        selected = amount_tokens[-2]

    parsed = safe_parse_amount(selected)
    if parsed is None or parsed == 0:
        return None

    description = sanitize_description(text, amount_tokens)
    if is_non_transaction_description(description):
        return None

    if (
        has_amount_sign(selected)
        or looks_like_positive_description(description)
        or looks_like_positive_description(text)
    ):
        amount = parsed
    else:
        amount = -abs(parsed)

    return Transaction(
        date=date,
        description=description,
        amount=amount,
        category=classify(description, amount),
    )


def parse_table_strategy(text: str) -> List[Transaction]:
    """Treat wide-gap separated cells as spreadsheet rows."""
    return parse_rows_to_transactions(_normalizer.table_rows(text))


def parse_line_strategy(lines: Sequence[str]) -> List[Transaction]:
    """Try each dated line alone, then joined with one or two undated followers."""
    transactions: List[Transaction] = []

    for index, line in enumerate(lines):
        date_token = first_date_token(line)
        if not date_token:
            continue

        tx = build_pdf_transaction_from_text(line, date_token)
        if tx:
            transactions.append(tx)
            continue

        next_line = lines[index + 1] if index + 1 < len(lines) else None
        if next_line and not has_date_token(next_line):
            tx = build_pdf_transaction_from_text(f"{line} {next_line}", date_token)
            if tx:
                transactions.append(tx)
                continue

        third_line = lines[index + 2] if index + 2 < len(lines) else None
        if next_line and third_line and not has_date_token(next_line) and not has_date_token(third_line):
            tx = build_pdf_transaction_from_text(f"{line} {next_line} {third_line}", date_token)
            if tx:
                transactions.append(tx)

    return transactions


def parse_block_strategy(lines: Sequence[str]) -> List[Transaction]:
    """Join each dated line with the undated lines that follow it."""
    transactions: List[Transaction] = []

    for index, line in enumerate(lines):
        date_token = first_date_token(line)
        if not date_token:
            continue

        block = [line]
        for candidate in lines[index + 1:index + 1 + MAX_BLOCK_LOOKAHEAD]:
            if has_date_token(candidate):
                break
            block.append(candidate)

        tx = build_pdf_transaction_from_text(" ".join(block), date_token)
        if tx:
            transactions.append(tx)

    return transactions


def transaction_key(tx: Transaction) -> str:
    return f"{tx.date}|{tx.description.lower()}|{money_str(tx.amount)}|{tx.category.lower()}"


def merge_pdf_strategies(strategies: Iterable[Sequence[Transaction]]) -> List[Transaction]:
    """
    Reconcile candidate lists from several strategies.

    Each distinct key appears as many times as the single strategy that
    produced it most often; counts are never summed across strategies.
    """
    merged: Dict[str, Tuple[Transaction, int]] = {}

    for candidates in strategies:
        counts = Counter()
        first_seen: Dict[str, Transaction] = {}
        for tx in candidates:
            key = transaction_key(tx)
            counts[key] += 1
            first_seen.setdefault(key, tx)

        for key, count in counts.items():
            existing = merged.get(key)
            if existing is None or count > existing[1]:
                merged[key] = (first_seen[key], count)

    result: List[Transaction] = []
    for tx, count in merged.values():
        for _ in range(count):
            result.append(Transaction(
                date=tx.date,
                description=tx.description,
                amount=Decimal(tx.amount),
                category=tx.category,
            ))
    return result


def parse_pdf_text(text: str) -> List[Transaction]:
    """Run every strategy over the text and merge their candidates."""
    lines = _normalizer.normalized_lines(text)

    table = parse_table_strategy(text)
    by_line = parse_line_strategy(lines)
    by_block = parse_block_strategy(lines)

    logger.info(
        f"PDF strategies found table={len(table)} line={len(by_line)} block={len(by_block)} candidates"
    )
    return merge_pdf_strategies([table, by_line, by_block])
