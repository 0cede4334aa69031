"""Package logger tagged with the document currently being processed."""
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOGGER_NAME = "ledgerflow"
LOG_FORMAT = "%(asctime)s [%(levelname)s] [document:%(document_id)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class DocumentContextFilter(logging.Filter):
    """Stamp records with the active document id."""

    def __init__(self):
        super().__init__()
        self.document_id: Optional[str] = None

    def filter(self, record):
        record.document_id = self.document_id or "system"
        return True


class LedgerFlowLogger:
    """Owns the "ledgerflow" logger: stdout always, a rotating file when writable."""

    def __init__(self, log_level: str = "INFO"):
        self.document_filter = DocumentContextFilter()
        self.formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
        self.file_handler: Optional[RotatingFileHandler] = None

        self.logger = logging.getLogger(LOGGER_NAME)
        self.logger.propagate = False
        self.logger.handlers.clear()
        self.set_level(log_level)

        console = logging.StreamHandler(sys.stdout)
        console.setLevel(logging.INFO)
        self._add_handler(console)

        home = Path(os.getenv("LEDGERFLOW_HOME") or Path.home() / ".ledgerflow").expanduser()
        self.use_log_file(home / "logs" / "service.log")

    def _add_handler(self, handler: logging.Handler):
        handler.setFormatter(self.formatter)
        handler.addFilter(self.document_filter)
        self.logger.addHandler(handler)

    def set_level(self, log_level: str):
        level = logging.getLevelName(str(log_level).upper())
        self.logger.setLevel(level if isinstance(level, int) else logging.INFO)

    def use_log_file(self, log_file: Path, max_bytes: int = 10 * 1024 * 1024,
                     backup_count: int = 30):
        """Swap the file handler for one writing to log_file."""
        if self.file_handler is not None:
            self.logger.removeHandler(self.file_handler)
            self.file_handler.close()
            self.file_handler = None

        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            handler = RotatingFileHandler(
                log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
            )
        except OSError as e:
            self.logger.warning(f"File logging disabled, cannot write to {log_file}: {e}")
            return

        handler.setLevel(logging.DEBUG)
        self._add_handler(handler)
        self.file_handler = handler


_instance: Optional[LedgerFlowLogger] = None


def _manager() -> LedgerFlowLogger:
    global _instance
    if _instance is None:
        _instance = LedgerFlowLogger()
    return _instance


def get_logger() -> logging.Logger:
    """Return the shared package logger, creating it on first use."""
    return _manager().logger


def configure_logging(settings) -> logging.Logger:
    """Apply level, log file and rotation limits from loaded settings."""
    manager = _manager()
    manager.set_level(settings.log_level)
    manager.use_log_file(
        Path(settings.log_file),
        max_bytes=int(settings.log_max_file_size_mb) * 1024 * 1024,
        backup_count=int(settings.log_backup_count),
    )
    return manager.logger


def set_document_context(document_id: Optional[str]):
    """Tag subsequent records with document_id (None resets to "system")."""
    _manager().document_filter.document_id = document_id
