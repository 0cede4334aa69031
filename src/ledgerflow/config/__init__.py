"""Configuration module."""
from .settings import AppSettings, get_settings, reset_settings, STORAGE_MAX_ABS

__all__ = ["AppSettings", "get_settings", "reset_settings", "STORAGE_MAX_ABS"]
