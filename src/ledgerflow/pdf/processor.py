"""PDF text extraction and chunking."""
import io
from typing import List, Optional

import pdfplumber
import pypdf

from ledgerflow.utils.logger import get_logger
from ledgerflow.utils.exceptions import NoReadableTextError

logger = get_logger()

DEFAULT_CHUNK_CHARS = 2000


class PDFProcessor:
    """Extracts text from PDF bytes."""

    def extract_text(self, content: bytes, name: str = "document.pdf") -> str:
        """
        Extract text from a PDF document.

        Args:
            content: Raw PDF bytes
            name: File name, used for logging only

        Returns:
            Extracted text, pages joined by newlines

        Raises:
            NoReadableTextError: If neither extractor yields any text
        """
        text = self._extract_with_pdfplumber(content, name)

        if not text or not text.strip():
            logger.info(f"pdfplumber extracted no text, trying pypdf for {name}")
            text = self._extract_with_pypdf(content, name)

        if not text or not text.strip():
            raise NoReadableTextError(
                f"No readable text found in {name}. Scanned or image-only PDFs are not supported."
            )

        logger.info(f"Successfully extracted {len(text)} characters from {name}")
        return text

    def extract_chunks(self, content: bytes, name: str = "document.pdf",
                       max_chars: int = DEFAULT_CHUNK_CHARS) -> List[str]:
        """Extract text and split it into chunks of at most max_chars."""
        return chunk_text(self.extract_text(content, name), max_chars)

    def _extract_with_pdfplumber(self, content: bytes, name: str) -> Optional[str]:
        try:
            with pdfplumber.open(io.BytesIO(content)) as pdf:
                text_parts = []
                logger.debug(f"pdfplumber: Processing {len(pdf.pages)} pages from {name}")
                for i, page in enumerate(pdf.pages, 1):
                    page_text = page.extract_text()
                    if page_text:
                        text_parts.append(page_text)
                    else:
                        logger.debug(f"pdfplumber: Page {i} extracted no text")

                text = "\n".join(text_parts)
                logger.info(f"pdfplumber extracted {len(text)} chars from {len(pdf.pages)} pages in {name}")
                return text if text else None

        except Exception as e:
            logger.warning(f"pdfplumber extraction failed for {name}: {e}")
            return None

    def _extract_with_pypdf(self, content: bytes, name: str) -> Optional[str]:
        try:
            reader = pypdf.PdfReader(io.BytesIO(content))
            text_parts = []
            for i, page in enumerate(reader.pages, 1):
                page_text = page.extract_text()
                if page_text:
                    text_parts.append(page_text)
                else:
                    logger.debug(f"pypdf: Page {i} extracted no text")

            text = "\n".join(text_parts)
            logger.info(f"pypdf extracted {len(text)} chars from {len(reader.pages)} pages in {name}")
            return text if text else None

        except Exception as e:
            logger.error(f"pypdf extraction failed for {name}: {e}")
            return None


def chunk_text(text: str, max_chars: int = DEFAULT_CHUNK_CHARS) -> List[str]:
    """
    Split text on line boundaries into chunks no longer than max_chars.

    Lines longer than max_chars are sliced into fixed-size pieces.
    Blank lines are dropped.
    """
    if not text or not text.strip():
        return []

    lines = [line.strip() for line in text.splitlines()]
    chunks: List[str] = []
    current = ""

    for line in lines:
        if not line:
            continue

        if len(line) > max_chars:
            if current:
                chunks.append(current)
                current = ""
            chunks.extend(line[i:i + max_chars] for i in range(0, len(line), max_chars))
            continue

        candidate = f"{current}\n{line}" if current else line
        if len(candidate) > max_chars:
            chunks.append(current)
            current = line
        else:
            current = candidate

    if current:
        chunks.append(current)
    return chunks
