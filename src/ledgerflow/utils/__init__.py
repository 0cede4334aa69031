"""Utility modules."""
from .logger import configure_logging, get_logger, set_document_context
from .exceptions import (
    LedgerFlowError,
    ConfigError,
    ValidationError,
    InvalidAmountError,
    InvalidDateError,
    NoValidTransactionsError,
    UnsupportedFormatError,
    CsvParseError,
    PDFError,
    NoReadableTextError,
    StorageError,
    LLMError,
    RetryableError,
    RetryableLLMError
)
from .retry import retry_with_backoff

__all__ = [
    "configure_logging",
    "get_logger",
    "set_document_context",
    "LedgerFlowError",
    "ConfigError",
    "ValidationError",
    "InvalidAmountError",
    "InvalidDateError",
    "NoValidTransactionsError",
    "UnsupportedFormatError",
    "CsvParseError",
    "PDFError",
    "NoReadableTextError",
    "StorageError",
    "LLMError",
    "RetryableError",
    "RetryableLLMError",
    "retry_with_backoff"
]
