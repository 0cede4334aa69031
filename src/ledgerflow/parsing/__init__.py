"""Statement parsing: normalization, classification, tabular rows, format dispatch."""
from .classifier import classify, looks_like_positive_description
from .normalizer import normalize_date, parse_amount, safe_parse_amount
from .statement import (
    StatementFile,
    extract_pdf_text_chunks,
    finalize,
    is_csv,
    is_excel,
    is_pdf,
    parse_bank_statement,
    parse_csv,
)
from .tabular import parse_rows_to_transactions

__all__ = [
    "classify",
    "looks_like_positive_description",
    "normalize_date",
    "parse_amount",
    "safe_parse_amount",
    "StatementFile",
    "extract_pdf_text_chunks",
    "finalize",
    "is_csv",
    "is_excel",
    "is_pdf",
    "parse_bank_statement",
    "parse_csv",
    "parse_rows_to_transactions",
]
