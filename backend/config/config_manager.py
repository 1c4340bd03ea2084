"""Configuration management for PulseDeck.

Configuration is read from a YAML file in ~/.pulsedeck/ (or the path named by
the PULSEDECK_CONFIG environment variable). Every key is optional; a missing
file yields the defaults below.
"""

import logging
import os
from enum import Enum
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "PULSEDECK_CONFIG"


class ConfigError(Exception):
    """Raised when configuration operations fail."""

    pass


class MissingNumericPolicy(str, Enum):
    """How the row validator treats numeric fields with no value.

    Applies both to numeric fields the mapping does not cover and to blank
    cells in mapped numeric columns.
    """

    ZERO = "zero"
    ERROR = "error"


class DatabaseConfig(BaseModel):
    """Database configuration."""

    path: str = Field(default="~/.pulsedeck/pulsedeck.db")
    busy_timeout_seconds: float = 30.0


class UploadConfig(BaseModel):
    """Where uploaded export files are kept and how large they may be."""

    storage_dir: str = Field(default="~/.pulsedeck/uploads")
    max_file_size_mb: int = 50


class IngestionConfig(BaseModel):
    """Ingestion pass tuning."""

    batch_size: int = Field(default=500, ge=1)
    missing_numeric_policy: MissingNumericPolicy = MissingNumericPolicy.ZERO
    max_row_errors_stored: int = Field(default=1000, ge=0)


class AppConfig(BaseModel):
    """Application configuration."""

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    uploads: UploadConfig = Field(default_factory=UploadConfig)
    ingestion: IngestionConfig = Field(default_factory=IngestionConfig)
    default_user_id: str = "system"
    log_level: str = "INFO"

    @property
    def database_path(self) -> Path:
        return Path(self.database.path).expanduser()

    @property
    def upload_dir(self) -> Path:
        return Path(self.uploads.storage_dir).expanduser()


class ConfigManager:
    """Loads the YAML configuration file.

    Attributes:
        config_dir: Directory holding config.yaml when no explicit path is given.
    """

    DEFAULT_CONFIG_DIR = Path.home() / ".pulsedeck"
    CONFIG_FILE = "config.yaml"

    def __init__(
        self,
        config_dir: Optional[Path] = None,
        config_path: Optional[Path] = None,
    ) -> None:
        """Initialize the configuration manager.

        Args:
            config_dir: Custom configuration directory path.
            config_path: Explicit config file; overrides config_dir and the
                PULSEDECK_CONFIG environment variable.
        """
        self.config_dir = config_dir or self.DEFAULT_CONFIG_DIR
        self._explicit_path = config_path

    @property
    def config_path(self) -> Path:
        """Path to the YAML configuration file."""
        if self._explicit_path is not None:
            return Path(self._explicit_path).expanduser()
        env_path = os.environ.get(CONFIG_ENV_VAR)
        if env_path:
            return Path(env_path).expanduser()
        return self.config_dir / self.CONFIG_FILE

    def load(self) -> AppConfig:
        """Load configuration from disk, falling back to defaults.

        Returns:
            The loaded AppConfig.

        Raises:
            ConfigError: If the file exists but cannot be parsed or validated.
        """
        path = self.config_path
        if not path.exists():
            logger.info(f"No configuration at {path}, using defaults")
            return AppConfig()

        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid configuration format in {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Configuration in {path} must be a mapping")

        try:
            config = AppConfig(**data)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration values in {path}: {e}") from e

        logger.info(f"Configuration loaded from {path}")
        return config
