"""Tests for settings loading."""
import os
import shutil
import tempfile
import unittest
from decimal import Decimal
from pathlib import Path
from unittest import mock

import yaml

from ledgerflow.config.settings import STORAGE_MAX_ABS, AppSettings, get_settings, reset_settings
from ledgerflow.utils.exceptions import ConfigError

BASE_CONFIG = {
    "app": {"name": "LedgerFlow", "version": "0.1.0"},
    "logging": {"level": "INFO", "max_file_size_mb": 10, "backup_count": 30},
    "processing": {
        "max_transaction_abs": 5000000,
        "pdf_chunk_chars": 2000,
        "summary_top_merchants": 5,
        "merge_top_merchants": 10,
    },
    "llm": {
        "enabled": True,
        "model_name": "gemini-2.5-flash-lite",
        "chunk_concurrency": 6,
        "name_clean_concurrency": 4,
        "name_clean_batch_size": 80,
        "min_confidence": 0.35,
        "max_retries": 3,
        "initial_delay_seconds": 2,
        "backoff_factor": 2,
        "currency": "usd",
    },
    "paths": {
        "home_dir": "~/.ledgerflow",
        "logs_dir": "logs",
        "log_file": "service.log",
        "database_file": "ledgerflow.db",
        "blobs_dir": "blobs",
    },
}

OVERRIDDEN_VARS = (
    "LEDGERFLOW_CONFIG",
    "GEMINI_API_KEY",
    "PROCESSING_MAX_TRANSACTION_ABS",
    "LEDGERFLOW_PDF_CHUNK_CONCURRENCY",
    "LEDGERFLOW_NAME_CLEAN_CONCURRENCY",
)


class TestAppSettings(unittest.TestCase):
    """Test AppSettings functionality."""

    def setUp(self):
        """Set up test fixtures."""
        self.test_dir = Path(tempfile.mkdtemp())
        self.env = mock.patch.dict(os.environ, {"LEDGERFLOW_HOME": str(self.test_dir / "home")})
        self.env.start()
        for name in OVERRIDDEN_VARS:
            os.environ.pop(name, None)

    def tearDown(self):
        """Clean up test fixtures."""
        self.env.stop()
        reset_settings()
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def _write(self, config) -> Path:
        path = self.test_dir / "config.yaml"
        path.write_text(yaml.safe_dump(config), encoding="utf-8")
        return path

    def test_load(self):
        settings = AppSettings.load(self._write(BASE_CONFIG))

        self.assertEqual(settings.max_transaction_abs, Decimal("5000000"))
        self.assertEqual(settings.llm_currency, "USD")
        self.assertEqual(settings.home_dir, self.test_dir / "home")
        self.assertEqual(settings.database_file, self.test_dir / "home" / "ledgerflow.db")
        self.assertIsNone(settings.gemini_api_key)
        self.assertFalse(settings.llm_available)
        self.assertEqual(settings.validate(), (True, "Configuration is valid"))

    def test_bundled_config_loads(self):
        settings = AppSettings.load()
        self.assertEqual(settings.app_name, "LedgerFlow")

    def test_get_settings_cached(self):
        self.assertIs(get_settings(), get_settings())

    def test_api_key_enables_llm(self):
        os.environ["GEMINI_API_KEY"] = "test-key"
        settings = AppSettings.load(self._write(BASE_CONFIG))
        self.assertTrue(settings.llm_available)

    def test_max_abs_override_capped(self):
        os.environ["PROCESSING_MAX_TRANSACTION_ABS"] = "1e15"
        settings = AppSettings.load(self._write(BASE_CONFIG))
        self.assertEqual(settings.max_transaction_abs, STORAGE_MAX_ABS)

    def test_invalid_max_abs(self):
        for raw in ("abc", "-5", "0"):
            with self.subTest(raw=raw):
                os.environ["PROCESSING_MAX_TRANSACTION_ABS"] = raw
                with self.assertRaises(ConfigError):
                    AppSettings.load(self._write(BASE_CONFIG))

    def test_concurrency_clamped(self):
        os.environ["LEDGERFLOW_PDF_CHUNK_CONCURRENCY"] = "500"
        os.environ["LEDGERFLOW_NAME_CLEAN_CONCURRENCY"] = "not a number"

        settings = AppSettings.load(self._write(BASE_CONFIG))

        self.assertEqual(settings.llm_chunk_concurrency, 20)
        self.assertEqual(settings.llm_name_clean_concurrency, 4)

    def test_missing_file(self):
        with self.assertRaises(ConfigError):
            AppSettings.load(self.test_dir / "missing.yaml")

    def test_missing_section(self):
        config = dict(BASE_CONFIG)
        del config["llm"]
        with self.assertRaises(ConfigError):
            AppSettings.load(self._write(config))

    def test_validate_rejects_bad_values(self):
        settings = AppSettings.load(self._write(BASE_CONFIG))
        settings.llm_min_confidence = 1.5

        is_valid, message = settings.validate()

        self.assertFalse(is_valid)
        self.assertIn("min_confidence", message)


if __name__ == "__main__":
    unittest.main()
