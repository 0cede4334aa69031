"""PDF processing module."""
from .processor import PDFProcessor, chunk_text
from .text_normalizer import StatementTextNormalizer

__all__ = ["PDFProcessor", "chunk_text", "StatementTextNormalizer"]
