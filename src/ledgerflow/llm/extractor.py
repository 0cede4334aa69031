"""Model-driven transaction extraction from PDF text chunks."""
import concurrent.futures
import json
import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from ledgerflow.models import CATEGORIES, Source, Transaction
from ledgerflow.parsing.normalizer import normalize_date, safe_parse_amount
from ledgerflow.utils.exceptions import InvalidDateError
from ledgerflow.utils.logger import get_logger
from .client import CompletionClient
from .json_utils import parse_json

logger = get_logger()

T = TypeVar("T")
R = TypeVar("R")

MIN_CONFIDENCE = 0.35
MIN_ABS_AMOUNT = Decimal("0.00001")
NAME_CLEAN_BATCH_SIZE = 80


def clean_text(value: Any) -> str:
    if value is None:
        return ""
    return re.sub(r"\s+", " ", str(value)).strip()


class ExtractedRow(BaseModel):
    """One transaction row as returned by the model, before normalization."""
    model_config = ConfigDict(extra="ignore")

    date: str = Field(default="", validation_alias=AliasChoices("date", "transactionDate", "postedDate"))
    original_description: str = Field(
        default="",
        validation_alias=AliasChoices("originalDescription", "description", "merchant", "name"),
    )
    cleaned_description: str = Field(
        default="",
        validation_alias=AliasChoices("cleanedDescription", "normalizedDescription", "cleaned_name"),
    )
    amount: Optional[Any] = None
    category: str = ""
    confidence: Optional[float] = None

    @field_validator("date", "original_description", "cleaned_description", "category", mode="before")
    @classmethod
    def _as_text(cls, value: Any) -> str:
        return clean_text(value)

    @field_validator("confidence", mode="before")
    @classmethod
    def _as_confidence(cls, value: Any) -> Optional[float]:
        try:
            return float(value)
        except (TypeError, ValueError):
            return None

    def to_transaction(self, min_confidence: float = MIN_CONFIDENCE) -> Optional[Transaction]:
        """Validate and coerce into a Transaction; None if the row is unusable."""
        if not self.date:
            return None
        try:
            date = normalize_date(self.date)
        except InvalidDateError:
            return None

        amount = safe_parse_amount(self.amount) if self.amount is not None else None
        if amount is None or abs(amount) < MIN_ABS_AMOUNT:
            return None

        if self.confidence is not None and self.confidence < min_confidence:
            return None

        description = self.cleaned_description or self.original_description
        if not description:
            return None

        return Transaction(
            date=date,
            description=description,
            amount=amount,
            category=normalize_category(self.category, amount),
        )


class NameMapping(BaseModel):
    model_config = ConfigDict(extra="ignore")

    input: str = ""
    cleaned: str = ""

    @field_validator("input", "cleaned", mode="before")
    @classmethod
    def _as_text(cls, value: Any) -> str:
        return clean_text(value)


@dataclass
class ExtractionResult:
    transactions: List[Transaction]
    source: Source = Source.MODEL
    failed_chunks: int = 0
    failed_name_batches: int = 0


def normalize_category(value: Any, amount: Decimal) -> str:
    normalized = re.sub(r"\s+", "_", clean_text(value).lower())
    if normalized in CATEGORIES:
        return normalized
    return "income_other" if amount > 0 else "other"


def normalize_extracted_rows(payload: Any, min_confidence: float = MIN_CONFIDENCE) -> List[Transaction]:
    """Turn a parsed chunk response ({"transactions": [...]} or a bare list) into transactions."""
    if isinstance(payload, list):
        raw_rows = payload
    elif isinstance(payload, dict) and isinstance(payload.get("transactions"), list):
        raw_rows = payload["transactions"]
    else:
        raw_rows = []

    transactions = []
    for raw in raw_rows:
        if not isinstance(raw, dict):
            continue
        try:
            row = ExtractedRow.model_validate(raw)
        except ValidationError as e:
            logger.debug(f"Skipping malformed model row: {e}")
            continue
        tx = row.to_transaction(min_confidence)
        if tx:
            transactions.append(tx)
    return transactions


def run_in_batches(items: Sequence[T], concurrency: int,
                   runner: Callable[[T, int], R]) -> Tuple[List[R], List[Tuple[int, Exception]]]:
    """
    Run runner over items, at most `concurrency` at a time.

    Every item's outcome is captured on its own; a failure never stops the
    remaining items.

    Returns:
        (outputs in item order, [(index, exception)] for failed items)
    """
    size = max(1, int(concurrency))
    outputs: List[R] = []
    failures: List[Tuple[int, Exception]] = []

    with concurrent.futures.ThreadPoolExecutor(max_workers=size) as executor:
        for start in range(0, len(items), size):
            batch = items[start:start + size]
            future_to_index = {
                executor.submit(runner, item, start + offset): start + offset
                for offset, item in enumerate(batch)
            }

            results: Dict[int, R] = {}
            for future in concurrent.futures.as_completed(future_to_index):
                index = future_to_index[future]
                try:
                    results[index] = future.result()
                except Exception as e:
                    failures.append((index, e))

            outputs.extend(results[index] for index in sorted(results))

    failures.sort(key=lambda item: item[0])
    return outputs, failures


EXTRACTION_SYSTEM_PROMPT = f"""You are a strict financial statement extraction engine.

Extract transactions ONLY from the given PDF text chunk.
Do not infer, hallucinate, or summarize.
If a row is uncertain, skip it.

Rules:
- Keep credits/inflows positive, debits/outflows negative.
- Return merchant/transaction name cleaned and normalized.
- Keep dates in YYYY-MM-DD format.
- Categorize each row into one of:
  {", ".join(CATEGORIES)}
- Do not include balances, totals, headers, page numbers, or account metadata.

Respond ONLY with valid JSON in this structure:
{{
  "transactions": [
    {{
      "date": "YYYY-MM-DD",
      "originalDescription": "string",
      "cleanedDescription": "string",
      "amount": number,
      "category": "string",
      "confidence": number
    }}
  ]
}}"""

NAME_CLEANING_SYSTEM_PROMPT = """You normalize transaction names.

Rules:
- Clean noisy card/payment strings to concise canonical names.
- Remove IDs, reference numbers, timestamps, location suffixes, and card tails.
- Keep meaningful merchant/provider words.
- Preserve meaning; do not invent details.

Respond ONLY with valid JSON:
{
  "mappings": [
    { "input": "string", "cleaned": "string" }
  ]
}"""


class LLMTransactionExtractor:
    """Extracts and name-cleans transactions from statement text via a completion client."""

    def __init__(self, client: CompletionClient, chunk_concurrency: int = 6,
                 name_clean_concurrency: int = 4, name_clean_batch_size: int = NAME_CLEAN_BATCH_SIZE,
                 min_confidence: float = MIN_CONFIDENCE):
        self.client = client
        self.chunk_concurrency = chunk_concurrency
        self.name_clean_concurrency = name_clean_concurrency
        self.name_clean_batch_size = max(1, name_clean_batch_size)
        self.min_confidence = min_confidence

    def extract_from_chunks(self, chunks: Sequence[str], currency: str = "USD",
                            metadata: Optional[Dict[str, Any]] = None) -> ExtractionResult:
        """
        Extract transactions from every non-empty chunk, then clean names.

        Args:
            chunks: Statement text chunks
            currency: Preferred currency code passed to the model
            metadata: Optional document hints (file_name, account_name, ...)

        Returns:
            ExtractionResult; transactions may be empty
        """
        currency = (currency or "USD").upper()
        items = [(index, chunk.strip()) for index, chunk in enumerate(chunks) if chunk and chunk.strip()]
        if not items:
            return ExtractionResult(transactions=[])

        def run_chunk(item: Tuple[int, str], _: int) -> List[Transaction]:
            chunk_index, chunk = item
            text = self.client.complete(
                EXTRACTION_SYSTEM_PROMPT,
                self._extraction_user_prompt(chunk, chunk_index, len(chunks), currency, metadata or {}),
                temperature=0,
                max_tokens=3200,
            )
            return normalize_extracted_rows(parse_json(text, "object"), self.min_confidence)

        results, failures = run_in_batches(items, self.chunk_concurrency, run_chunk)
        if failures:
            logger.error(f"Chunk extraction failed for {len(failures)} of {len(items)} chunks")

        extracted = [tx for rows in results for tx in rows]
        logger.info(f"Model extracted {len(extracted)} transactions from {len(items)} chunks")

        cleaned, failed_batches = self.clean_names(extracted, currency)
        return ExtractionResult(
            transactions=cleaned,
            source=Source.MODEL,
            failed_chunks=len(failures),
            failed_name_batches=failed_batches,
        )

    def clean_names(self, transactions: List[Transaction], currency: str) -> Tuple[List[Transaction], int]:
        """Replace descriptions with model-normalized merchant names where available."""
        if not transactions:
            return [], 0

        unique = list(dict.fromkeys(clean_text(tx.description) for tx in transactions))
        batches = [
            unique[i:i + self.name_clean_batch_size]
            for i in range(0, len(unique), self.name_clean_batch_size)
        ]

        def run_batch(batch: List[str], _: int) -> List[NameMapping]:
            text = self.client.complete(
                NAME_CLEANING_SYSTEM_PROMPT,
                self._name_cleaning_user_prompt(batch, currency),
                temperature=0,
                max_tokens=2800,
            )
            parsed = parse_json(text, "object")
            raw = parsed.get("mappings") if isinstance(parsed, dict) else None
            if not isinstance(raw, list):
                return []
            return [NameMapping.model_validate(item) for item in raw if isinstance(item, dict)]

        groups, failures = run_in_batches(batches, self.name_clean_concurrency, run_batch)
        if failures:
            logger.error(f"Name cleaning failed for {len(failures)} of {len(batches)} batches")

        names = {m.input: m.cleaned for group in groups for m in group if m.input and m.cleaned}

        result = []
        for tx in transactions:
            cleaned = names.get(clean_text(tx.description))
            if cleaned:
                tx = Transaction(date=tx.date, description=cleaned, amount=tx.amount, category=tx.category)
            result.append(tx)
        return result, len(failures)

    @staticmethod
    def _extraction_user_prompt(chunk: str, chunk_index: int, chunk_count: int,
                                currency: str, metadata: Dict[str, Any]) -> str:
        return f"""Extract transactions from this statement chunk.

CHUNK INDEX: {chunk_index + 1} of {chunk_count}
PREFERRED CURRENCY: {currency}
FILE NAME: {metadata.get("file_name") or ""}
ACCOUNT NAME: {metadata.get("account_name") or ""}
DOCUMENT TYPE: {metadata.get("document_type") or ""}
STATEMENT PERIOD START: {metadata.get("statement_period_start") or ""}
STATEMENT PERIOD END: {metadata.get("statement_period_end") or ""}

CHUNK TEXT:
{chunk}"""

    @staticmethod
    def _name_cleaning_user_prompt(descriptions: List[str], currency: str) -> str:
        return f"""Normalize these transaction names.

PREFERRED CURRENCY: {currency}

INPUT:
{json.dumps(descriptions, ensure_ascii=False, indent=2)}
"""
