"""Document processing orchestration."""
from .processor import DocumentProcessor, ProcessingResult

__all__ = ["DocumentProcessor", "ProcessingResult"]
