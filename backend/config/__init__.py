"""PulseDeck - Configuration Module.

This module provides YAML-backed configuration loaded into pydantic models.
"""

from .config_manager import (
    AppConfig,
    ConfigError,
    ConfigManager,
    DatabaseConfig,
    IngestionConfig,
    MissingNumericPolicy,
    UploadConfig,
)

__all__ = [
    "AppConfig",
    "ConfigError",
    "ConfigManager",
    "DatabaseConfig",
    "IngestionConfig",
    "MissingNumericPolicy",
    "UploadConfig",
]
