"""Line preparation for statement text extracted from PDFs."""
import re
import unicodedata
from typing import List

from ledgerflow.utils.logger import get_logger

logger = get_logger()


class StatementTextNormalizer:
    """Turns raw PDF text into the line views the heuristic strategies consume."""

    # Table cells in extracted text are separated by wide gaps or tabs
    CELL_SEPARATOR = re.compile(r"\s{2,}|\t+")

    def raw_lines(self, text: str) -> List[str]:
        """
        Split text into trimmed, non-blank lines.

        Args:
            text: Extracted PDF text

        Returns:
            Lines with non-breaking spaces replaced; inner spacing kept
        """
        if not text:
            return []

        text = unicodedata.normalize("NFC", text)
        lines = [line.replace("\u00a0", " ").strip() for line in text.splitlines()]
        lines = [line for line in lines if line]
        logger.debug(f"Prepared {len(lines)} raw lines")
        return lines

    def normalized_lines(self, text: str) -> List[str]:
        """Raw lines with runs of whitespace collapsed to one space."""
        return [
            collapsed
            for collapsed in (re.sub(r"\s+", " ", line).strip() for line in self.raw_lines(text))
            if collapsed
        ]

    def table_rows(self, text: str) -> List[List[str]]:
        """Raw lines split into cells on 2+ spaces or tabs."""
        rows = []
        for line in self.raw_lines(text):
            cells = [cell.strip() for cell in self.CELL_SEPARATOR.split(line)]
            rows.append([cell for cell in cells if cell])
        return rows
