"""Custom exception classes for LedgerFlow."""


class LedgerFlowError(Exception):
    """Base exception for LedgerFlow."""
    pass


class ConfigError(LedgerFlowError):
    """Configuration-related errors."""
    pass


class ValidationError(LedgerFlowError):
    """Data validation errors."""
    pass


class InvalidAmountError(ValidationError, ValueError):
    """A single amount cell could not be parsed."""
    pass


class InvalidDateError(ValidationError, ValueError):
    """A single date cell could not be parsed."""
    pass


class NoValidTransactionsError(ValidationError):
    """A whole file yielded zero usable transaction rows."""
    pass


class UnsupportedFormatError(LedgerFlowError):
    """File extension or MIME type is not a supported statement format."""
    pass


class CsvParseError(LedgerFlowError):
    """Structural CSV failure (unterminated quote, bad delimiter, ...)."""
    pass


class PDFError(LedgerFlowError):
    """PDF extraction errors."""
    pass


class NoReadableTextError(PDFError):
    """PDF contains no extractable text (scanned or image-only)."""
    pass


class StorageError(LedgerFlowError):
    """Blob storage or persistence read/write failure."""
    pass


class LLMError(LedgerFlowError):
    """LLM processing errors."""
    pass


# Retryable errors
class RetryableError(LedgerFlowError):
    """Base class for errors that should trigger retry."""
    pass


class RetryableLLMError(RetryableError, LLMError):
    """LLM errors that can be retried."""
    pass
