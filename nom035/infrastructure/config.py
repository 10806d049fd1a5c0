"""
Centralized configuration management for the NOM-035 questionnaire engine.

Provides environment-specific configuration with validation, type safety,
and settings management using Pydantic.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings

from .exceptions import ConfigurationError


class StorageConfig(BaseSettings):
    """
    Draft/history storage settings.

    The key-value store behind assessment sessions can live in memory (tests,
    throwaway sessions), in a SQLite file, or in MySQL.

    Example:
        >>> cfg = StorageConfig(backend="sqlite", sqlite_path="./nom035.db")
        >>> print(cfg.get_connection_url())
        >>> # sqlite:///./nom035.db
    """

    backend: Literal["memory", "sqlite", "mysql"] = Field(
        "sqlite", description="Storage backend type"
    )

    # SQLite settings
    sqlite_path: str | None = Field("./nom035.db", description="SQLite database file path")

    # MySQL settings
    mysql_host: str | None = Field("localhost", description="MySQL host")
    mysql_port: int | None = Field(3306, ge=1, le=65535, description="MySQL port")
    mysql_user: str | None = Field("root", description="MySQL username")
    mysql_password: str | None = Field("", description="MySQL password")
    mysql_database: str | None = Field("nom035", description="MySQL database name")
    mysql_charset: str = Field("utf8mb4", description="MySQL character set")

    # Connection settings
    pool_pre_ping: bool = Field(True, description="Enable connection pool pre-ping")
    pool_recycle: int = Field(3600, ge=60, description="Connection pool recycle time (seconds)")
    echo: bool = Field(False, description="Enable SQL query logging")

    # Key names used inside the store
    draft_key: str = Field("nom035.assessment.draft", description="Key of the in-progress draft")
    history_key: str = Field("nom035.assessment.history", description="Key of completed history")

    model_config = {"env_prefix": "STORAGE_", "case_sensitive": False}

    @field_validator("sqlite_path")
    def validate_sqlite_path(cls, v):
        """Ensure the SQLite directory exists and the file has an extension."""
        if v and v != ":memory:":
            path = Path(v)
            path.parent.mkdir(parents=True, exist_ok=True)
            if not path.suffix:
                v = str(path.with_suffix(".db"))
        return v

    @model_validator(mode="after")
    def validate_mysql_config(self):
        """Validate MySQL configuration completeness."""
        if self.backend == "mysql":
            missing = []
            if not self.mysql_host:
                missing.append("mysql_host")
            if not self.mysql_user:
                missing.append("mysql_user")
            if not self.mysql_database:
                missing.append("mysql_database")
            if missing:
                raise ValueError(f"MySQL backend requires: {', '.join(missing)}")
        return self

    def get_connection_url(self) -> str:
        """
        Generate the SQLAlchemy connection URL.

        Returns:
            Database connection URL string

        Raises:
            ValueError: If the backend has no SQL connection (memory)
        """
        if self.backend == "sqlite":
            return f"sqlite:///{self.sqlite_path}"
        elif self.backend == "mysql":
            password_part = f":{self.mysql_password}" if self.mysql_password else ""
            return (
                f"mysql+pymysql://{self.mysql_user}{password_part}@{self.mysql_host}:"
                f"{self.mysql_port}/{self.mysql_database}?charset={self.mysql_charset}"
            )
        else:
            raise ValueError(f"Storage backend '{self.backend}' has no connection URL")

    def get_engine_options(self) -> dict[str, Any]:
        """SQLAlchemy engine options."""
        return {
            "echo": self.echo,
            "future": True,
            "pool_pre_ping": self.pool_pre_ping,
            "pool_recycle": self.pool_recycle,
        }


class LoggingConfig(BaseSettings):
    """
    Logging configuration settings.

    Example:
        >>> log_config = LoggingConfig(level="DEBUG", file_path="./logs/nom035.log")
        >>> print(log_config.get_file_handler_config())
    """

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        "INFO", description="Minimum logging level"
    )
    file_path: str | None = Field("./logs/nom035.log", description="Log file path")
    max_bytes: int = Field(10 * 1024 * 1024, ge=1024, description="Max log file size in bytes")
    backup_count: int = Field(5, ge=1, description="Number of backup log files")
    structured: bool = Field(True, description="Use structured JSON logging")
    console_enabled: bool = Field(True, description="Enable console output")

    model_config = {"env_prefix": "LOG_", "case_sensitive": False}

    @field_validator("file_path")
    def validate_log_path(cls, v):
        """Ensure log directory exists."""
        if v:
            Path(v).parent.mkdir(parents=True, exist_ok=True)
        return v

    def get_file_handler_config(self) -> dict[str, Any] | None:
        """Get file handler configuration if file logging is enabled."""
        if not self.file_path:
            return None

        return {
            "class": "logging.handlers.RotatingFileHandler",
            "filename": self.file_path,
            "maxBytes": self.max_bytes,
            "backupCount": self.backup_count,
            "encoding": "utf-8",
        }


class ImportConfig(BaseSettings):
    """
    Spreadsheet import settings.

    Example:
        >>> cfg = ImportConfig()
        >>> cfg.max_file_size_bytes
        10485760
    """

    max_file_size_mb: int = Field(10, ge=1, le=100, description="Maximum upload file size (MB)")
    allowed_extensions: list[str] = Field(
        [".xlsx", ".xls"], description="Accepted spreadsheet extensions"
    )
    header_rows: int = Field(1, ge=0, le=10, description="Rows skipped before the first answer")
    suggestion_max_distance: int = Field(
        3, ge=0, le=10, description="Largest edit distance offered as a suggestion"
    )

    model_config = {"env_prefix": "IMPORT_", "case_sensitive": False}

    @field_validator("allowed_extensions")
    def normalise_extensions(cls, v):
        """Lower-case extensions and make sure they start with a dot."""
        cleaned = []
        for ext in v:
            ext = ext.strip().lower()
            if not ext:
                continue
            cleaned.append(ext if ext.startswith(".") else f".{ext}")
        if not cleaned:
            raise ValueError("At least one spreadsheet extension must be allowed")
        return cleaned

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024


class WebConfig(BaseSettings):
    """
    HTTP surface settings.

    Example:
        >>> web = WebConfig(port=8080)
        >>> web.port
        8080
    """

    host: str = Field("0.0.0.0", description="Bind address")
    port: int = Field(8000, ge=1, le=65535, description="Bind port")
    reload: bool = Field(False, description="Enable auto-reload")
    cors_origins: list[str] = Field(["*"], description="Allowed CORS origins")
    cors_methods: list[str] = Field(
        ["GET", "POST", "PUT", "DELETE"], description="Allowed CORS methods"
    )

    model_config = {"env_prefix": "WEB_", "case_sensitive": False}


class ApplicationConfig(BaseSettings):
    """
    Main application configuration.

    Example:
        >>> config = get_settings()
        >>> print(config.app.environment)
    """

    environment: Literal["development", "testing", "production"] = Field(
        "development", description="Application environment"
    )
    debug: bool = Field(False, description="Enable debug mode")
    version: str = Field("0.1.0", description="Application version")
    title: str = Field("NOM-035 Psychosocial Risk Assessment", description="Application title")
    default_language: Literal["es", "en"] = Field("es", description="Default report language")

    # Feature flags
    enable_autosave: bool = Field(True, description="Persist the draft on every change")
    enable_data_export: bool = Field(True, description="Enable report export functionality")

    model_config = {"env_prefix": "APP_", "case_sensitive": False}

    @model_validator(mode="after")
    def debug_implies_development(self):
        """Ensure debug mode is only enabled outside production."""
        if self.debug and self.environment == "production":
            raise ValueError("Debug mode cannot be enabled in production")
        return self


class Settings:
    """
    Complete application settings container.

    Provides structured access to all configuration sections
    with lazy loading and caching.

    Example:
        >>> settings = get_settings()
        >>> print(settings.storage.backend)
        >>> print(settings.imports.max_file_size_mb)
    """

    def __init__(self):
        self._app: ApplicationConfig | None = None
        self._storage: StorageConfig | None = None
        self._logging: LoggingConfig | None = None
        self._imports: ImportConfig | None = None
        self._web: WebConfig | None = None

    @property
    def app(self) -> ApplicationConfig:
        if self._app is None:
            self._app = ApplicationConfig()
        return self._app

    @property
    def storage(self) -> StorageConfig:
        if self._storage is None:
            self._storage = StorageConfig()
        return self._storage

    @property
    def logging(self) -> LoggingConfig:
        if self._logging is None:
            # Set logging level based on environment
            level = "DEBUG" if self.app.debug else "INFO"
            if self.app.environment == "production":
                level = "WARNING"
            self._logging = LoggingConfig(level=level)
        return self._logging

    @property
    def imports(self) -> ImportConfig:
        if self._imports is None:
            self._imports = ImportConfig()
        return self._imports

    @property
    def web(self) -> WebConfig:
        if self._web is None:
            self._web = WebConfig()
        return self._web

    def is_development(self) -> bool:
        return self.app.environment == "development"

    def is_production(self) -> bool:
        return self.app.environment == "production"

    def is_testing(self) -> bool:
        return self.app.environment == "testing"

    def get_environment_info(self) -> dict[str, Any]:
        """Get summary of current environment configuration."""
        return {
            "environment": self.app.environment,
            "version": self.app.version,
            "debug": self.app.debug,
            "storage_backend": self.storage.backend,
            "logging_level": self.logging.level,
            "features": {
                "autosave": self.app.enable_autosave,
                "data_export": self.app.enable_data_export,
            },
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get application settings instance (cached).

    Returns:
        Settings instance with all configuration loaded
    """
    return Settings()


def load_settings_from_file(file_path: str) -> Settings:
    """
    Load settings from a JSON configuration file.

    Each top-level section maps onto an environment prefix, so
    ``{"storage": {"backend": "memory"}}`` becomes ``STORAGE_BACKEND=memory``.

    Raises:
        ConfigurationError: the file is missing, is not JSON, or is not a
            mapping of sections
    """
    import json

    config_path = Path(file_path)
    if not config_path.exists():
        raise ConfigurationError(f"Configuration file not found: {file_path}", file_path)
    if config_path.suffix.lower() != ".json":
        raise ConfigurationError(
            f"Unsupported configuration file format: {config_path.suffix}", file_path
        )

    try:
        with open(config_path, encoding="utf-8") as f:
            config_data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Configuration file is not valid JSON: {e}", file_path) from e
    if not isinstance(config_data, dict):
        raise ConfigurationError("Configuration file must hold an object of sections", file_path)

    for section, values in config_data.items():
        if isinstance(values, dict):
            for key, value in values.items():
                env_key = f"{section.upper()}_{key.upper()}"
                os.environ[env_key] = str(value)

    get_settings.cache_clear()
    return get_settings()


def override_settings(**kwargs) -> Settings:
    """
    Override specific settings for testing or development.

    Example:
        >>> settings = override_settings(app_environment="testing", storage_backend="memory")
    """
    for key, value in kwargs.items():
        os.environ[key.upper()] = str(value)

    get_settings.cache_clear()
    return get_settings()


def reset_settings() -> None:
    """Reset settings cache to reload from environment."""
    get_settings.cache_clear()
