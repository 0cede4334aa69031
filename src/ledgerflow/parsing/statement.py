"""Format dispatch for uploaded bank statements."""
import csv
import io
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Any, List, Optional

import pandas as pd

from ledgerflow.models import DateRange, ParseResult, Source, Transaction
from ledgerflow.pdf import heuristics
from ledgerflow.pdf.processor import DEFAULT_CHUNK_CHARS, PDFProcessor, chunk_text
from ledgerflow.utils.exceptions import (
    CsvParseError,
    NoValidTransactionsError,
    UnsupportedFormatError,
)
from ledgerflow.utils.logger import get_logger
from .tabular import parse_rows_to_transactions

logger = get_logger()

CSV_ENCODINGS = ("utf-8-sig", "cp1252", "latin-1")

EXCEL_MIME_MARKERS = ("spreadsheetml", "ms-excel")


@dataclass
class StatementFile:
    """An uploaded statement: name, raw bytes and optional MIME type."""
    name: str
    content: bytes
    mime_type: str = ""

    @classmethod
    def from_path(cls, path: Path, mime_type: str = "") -> "StatementFile":
        path = Path(path)
        return cls(name=path.name, content=path.read_bytes(), mime_type=mime_type)

    @property
    def lower_name(self) -> str:
        return self.name.lower()


def is_csv(file: StatementFile) -> bool:
    return file.lower_name.endswith(".csv") or "csv" in file.mime_type


def is_excel(file: StatementFile) -> bool:
    return (
        file.lower_name.endswith((".xlsx", ".xls"))
        or any(marker in file.mime_type for marker in EXCEL_MIME_MARKERS)
    )


def is_pdf(file: StatementFile) -> bool:
    return file.lower_name.endswith(".pdf") or "pdf" in file.mime_type


def decode_text(content: bytes) -> str:
    """Decode CSV bytes, trying UTF-8 (with BOM) before legacy encodings."""
    for encoding in CSV_ENCODINGS:
        try:
            return content.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise CsvParseError("CSV parse error: unable to decode file")


def read_csv_rows(content: bytes) -> List[List[str]]:
    """
    Read CSV bytes into rows of cells, skipping blank lines.

    Raises:
        CsvParseError: On malformed quoting or undecodable input
    """
    text = decode_text(content)
    try:
        reader = csv.reader(io.StringIO(text, newline=""), strict=True)
        return [row for row in reader if any(cell.strip() for cell in row)]
    except csv.Error as e:
        raise CsvParseError(f"CSV parse error: {e}")


def read_excel_sheets(content: bytes) -> List[List[List[Any]]]:
    """Every worksheet as a grid of raw cell values."""
    try:
        sheets = pd.read_excel(io.BytesIO(content), sheet_name=None, header=None, dtype=object)
    except Exception as e:
        raise UnsupportedFormatError(f"Unable to read Excel workbook: {e}")

    grids = []
    for sheet_name, frame in sheets.items():
        frame = frame.dropna(how="all").fillna("")
        logger.debug(f"Excel sheet '{sheet_name}': {len(frame)} rows")
        grids.append(frame.values.tolist())
    return grids


def parse_csv_transactions(file: StatementFile) -> List[Transaction]:
    return parse_rows_to_transactions(read_csv_rows(file.content))


def parse_excel_transactions(file: StatementFile) -> List[Transaction]:
    transactions: List[Transaction] = []
    for grid in read_excel_sheets(file.content):
        transactions.extend(parse_rows_to_transactions(grid))
    return transactions


def extract_pdf_text_chunks(file: StatementFile, max_chars: int = DEFAULT_CHUNK_CHARS,
                            processor: Optional[PDFProcessor] = None) -> List[str]:
    """
    Extract a PDF statement's text split into chunks.

    Raises:
        UnsupportedFormatError: If the file is not a PDF
        NoReadableTextError: If the PDF carries no extractable text
    """
    if not is_pdf(file):
        raise UnsupportedFormatError("File is not a PDF statement")
    processor = processor or PDFProcessor()
    return processor.extract_chunks(file.content, file.name, max_chars)


def finalize(transactions: List[Transaction], source_chunks: Optional[List[str]] = None,
             source: Source = Source.FALLBACK,
             empty_message: str = "No valid transaction rows were found") -> ParseResult:
    """
    Sort by date and compute totals and the covered date range.

    Raises:
        NoValidTransactionsError: If there are no transactions
    """
    if not transactions:
        raise NoValidTransactionsError(empty_message)

    ordered = sorted(transactions, key=lambda tx: tx.date)

    total_income = sum((tx.amount for tx in ordered if tx.amount > 0), Decimal("0"))
    total_expenses = sum((abs(tx.amount) for tx in ordered if tx.amount <= 0), Decimal("0"))

    return ParseResult(
        transactions=ordered,
        total_income=total_income,
        total_expenses=total_expenses,
        date_range=DateRange(start=ordered[0].date, end=ordered[-1].date),
        source_chunks=list(source_chunks or []),
        source=source,
    )


def parse_csv(file: StatementFile) -> ParseResult:
    """Parse a file that must be CSV."""
    if not is_csv(file):
        raise UnsupportedFormatError("File is not a CSV statement")
    return finalize(parse_csv_transactions(file))


def parse_bank_statement(file: StatementFile, pdf_processor: Optional[PDFProcessor] = None,
                         max_chunk_chars: int = DEFAULT_CHUNK_CHARS) -> ParseResult:
    """
    Parse a CSV, Excel or PDF statement into a ParseResult.

    Args:
        file: Uploaded statement
        pdf_processor: Text extractor for PDFs
        max_chunk_chars: Chunk size for PDF source chunks

    Raises:
        UnsupportedFormatError: Unknown format
        CsvParseError: Malformed CSV
        NoReadableTextError: PDF without a text layer
        NoValidTransactionsError: Nothing usable in the file
    """
    logger.info(f"Parsing statement {file.name} ({len(file.content)} bytes)")

    if is_csv(file):
        return finalize(parse_csv_transactions(file))

    if is_excel(file):
        return finalize(
            parse_excel_transactions(file),
            empty_message="No valid transaction rows were found in Excel file",
        )

    if is_pdf(file):
        processor = pdf_processor or PDFProcessor()
        text = processor.extract_text(file.content, file.name)
        transactions = heuristics.parse_pdf_text(text)
        return finalize(
            transactions,
            source_chunks=chunk_text(text, max_chunk_chars),
            empty_message=(
                "No valid transaction rows were found in PDF. "
                "Try exporting a CSV/XLSX statement from your bank for best results."
            ),
        )

    raise UnsupportedFormatError("Unsupported statement format. Please upload CSV, XLS, XLSX, or PDF.")
