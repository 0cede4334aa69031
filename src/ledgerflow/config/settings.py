"""Application settings loader from YAML configuration."""
import os
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Optional

import yaml

from ledgerflow.utils.exceptions import ConfigError

# Largest magnitude a NUMERIC(12, 2) column can hold
STORAGE_MAX_ABS = Decimal("9999999999.99")

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "resources" / "config.yaml"


@dataclass
class AppSettings:
    """Application-wide settings loaded from config.yaml."""

    # App info
    app_name: str
    app_version: str

    # Logging
    log_level: str
    log_max_file_size_mb: int
    log_backup_count: int

    # Processing
    max_transaction_abs: Decimal
    pdf_chunk_chars: int
    summary_top_merchants: int
    merge_top_merchants: int

    # LLM
    llm_enabled: bool
    llm_model_name: str
    llm_chunk_concurrency: int
    llm_name_clean_concurrency: int
    llm_name_clean_batch_size: int
    llm_min_confidence: float
    llm_max_retries: int
    llm_initial_delay_seconds: float
    llm_backoff_factor: float
    llm_currency: str

    # Paths
    home_dir: Path
    logs_dir: Path
    log_file: Path
    database_file: Path
    blobs_dir: Path

    gemini_api_key: Optional[str] = None

    @classmethod
    def load(cls, config_path: Path = None) -> "AppSettings":
        """Read the YAML config (LEDGERFLOW_CONFIG or the bundled copy), then env overrides."""
        if config_path is None:
            env_path = os.getenv("LEDGERFLOW_CONFIG")
            config_path = Path(env_path) if env_path else DEFAULT_CONFIG_PATH

        if not config_path.exists():
            raise ConfigError(f"Configuration file not found: {config_path}")

        config = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}

        try:
            app, logging_cfg, processing, llm, paths = (
                config[section] for section in ("app", "logging", "processing", "llm", "paths")
            )
            home_dir = Path(os.getenv("LEDGERFLOW_HOME") or paths["home_dir"]).expanduser()
            logs_dir = home_dir / paths["logs_dir"]

            return cls(
                app_name=app["name"],
                app_version=str(app["version"]),
                log_level=logging_cfg["level"],
                log_max_file_size_mb=logging_cfg["max_file_size_mb"],
                log_backup_count=logging_cfg["backup_count"],
                max_transaction_abs=_max_transaction_abs(processing["max_transaction_abs"]),
                pdf_chunk_chars=processing["pdf_chunk_chars"],
                summary_top_merchants=processing["summary_top_merchants"],
                merge_top_merchants=processing["merge_top_merchants"],
                llm_enabled=bool(llm["enabled"]),
                llm_model_name=llm["model_name"],
                llm_chunk_concurrency=_parallelism(
                    "LEDGERFLOW_PDF_CHUNK_CONCURRENCY", llm["chunk_concurrency"], 20
                ),
                llm_name_clean_concurrency=_parallelism(
                    "LEDGERFLOW_NAME_CLEAN_CONCURRENCY", llm["name_clean_concurrency"], 12
                ),
                llm_name_clean_batch_size=llm["name_clean_batch_size"],
                llm_min_confidence=float(llm["min_confidence"]),
                llm_max_retries=llm["max_retries"],
                llm_initial_delay_seconds=llm["initial_delay_seconds"],
                llm_backoff_factor=llm["backoff_factor"],
                llm_currency=str(llm["currency"]).upper(),
                home_dir=home_dir,
                logs_dir=logs_dir,
                log_file=logs_dir / paths["log_file"],
                database_file=home_dir / paths["database_file"],
                blobs_dir=home_dir / paths["blobs_dir"],
                gemini_api_key=os.getenv("GEMINI_API_KEY") or None,
            )
        except (KeyError, TypeError) as e:
            raise ConfigError(f"Invalid configuration in {config_path}: missing {e}")

    def validate(self) -> tuple[bool, str]:
        """Validate configuration values."""
        if self.log_max_file_size_mb < 1 or self.log_backup_count < 0:
            return False, "Log rotation needs max_file_size_mb >= 1 and backup_count >= 0"

        if self.max_transaction_abs <= 0:
            return False, "max_transaction_abs must be positive"

        if self.pdf_chunk_chars < 100:
            return False, "pdf_chunk_chars must be at least 100"

        if self.summary_top_merchants < 1 or self.merge_top_merchants < 1:
            return False, "Top merchant limits must be at least 1"

        if self.llm_name_clean_batch_size < 1:
            return False, "name_clean_batch_size must be at least 1"

        if not 0 <= self.llm_min_confidence <= 1:
            return False, "min_confidence must be between 0 and 1"

        return True, "Configuration is valid"

    @property
    def llm_available(self) -> bool:
        """Whether the completion service can be used at all."""
        return self.llm_enabled and bool(self.gemini_api_key)


def _max_transaction_abs(configured) -> Decimal:
    """Resolve the per-transaction ceiling, capped at the storage bound."""
    raw = os.getenv("PROCESSING_MAX_TRANSACTION_ABS", configured)
    try:
        value = Decimal(str(raw))
    except ArithmeticError:
        raise ConfigError(f"Invalid max transaction amount: {raw}")

    if not value.is_finite() or value <= 0:
        raise ConfigError(f"Invalid max transaction amount: {raw}")
    return min(value, STORAGE_MAX_ABS)


def _parallelism(env_var: str, fallback: int, maximum: int) -> int:
    """Read a worker count from the environment, clamped to [1, maximum]."""
    raw = os.getenv(env_var)
    try:
        parsed = int(float(raw)) if raw else 0
    except ValueError:
        parsed = 0

    if parsed <= 0:
        parsed = int(fallback)
    return min(max(parsed, 1), maximum)


# Global settings instance
_settings: Optional[AppSettings] = None


def get_settings() -> AppSettings:
    """Get or create global settings instance."""
    global _settings
    if _settings is None:
        _settings = AppSettings.load()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next call reloads them."""
    global _settings
    _settings = None
