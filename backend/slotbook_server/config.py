"""
Configuration management for the Slotbook server.

All configuration is done via environment variables prefixed with
``SLOTBOOK_``; pydantic-settings handles loading and type coercion.

Invariants:
    - All settings have sensible defaults for local development
    - Production deployments MUST set an explicit JWT secret
    - Secrets are never logged or exposed in error messages

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Extend validate_settings() for any cross-field constraint
"""

from __future__ import annotations

import logging
from enum import Enum

from pydantic import Field
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

DEV_JWT_SECRET = "slotbook-dev-secret"


class StoreBackend(str, Enum):
    """Supported document store backends."""

    MEMORY = "memory"
    SQLITE = "sqlite"


class WriteMode(str, Enum):
    """Concurrency control for index-addressed availability writes.

    LAST_WRITER_WINS: unprotected read-modify-write (a concurrent update
        can be silently overwritten)
    OPTIMISTIC: version-checked write, retried on conflict
    SERIALIZED: per-(user, date) lock around the read-modify-write
    """

    LAST_WRITER_WINS = "last_writer_wins"
    OPTIMISTIC = "optimistic"
    SERIALIZED = "serialized"


class Settings(BaseSettings):
    """Server configuration loaded from environment."""

    # HTTP server
    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=3000, description="Bind port")
    api_prefix: str = Field(default="/api", description="Prefix for all API routes")
    cors_origins: list[str] = Field(default=["*"], description="Allowed CORS origins")

    # Document store
    store_backend: StoreBackend = Field(default=StoreBackend.SQLITE, description="Store backend")
    data_dir: str = Field(default="/var/lib/slotbook", description="SQLite data directory")
    sqlite_wal_mode: bool = Field(default=True, description="Enable SQLite WAL mode")
    sqlite_busy_timeout_ms: int = Field(default=5000, description="SQLite busy timeout")

    # Identity
    jwt_secret: str = Field(default=DEV_JWT_SECRET, description="HMAC secret for access tokens")
    jwt_algorithm: str = Field(default="HS256", description="Access token signing algorithm")

    # Availability writes
    write_mode: WriteMode = Field(
        default=WriteMode.LAST_WRITER_WINS,
        description="Concurrency control for index-addressed writes",
    )
    max_write_retries: int = Field(default=3, description="Attempts for optimistic writes")

    # Observability
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="Log format (json, text)")

    model_config = {"env_prefix": "SLOTBOOK_"}

    def validate_settings(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if self.store_backend == StoreBackend.SQLITE and not self.data_dir:
            raise ValueError("SLOTBOOK_DATA_DIR is required when SLOTBOOK_STORE_BACKEND=sqlite")
        if not self.jwt_secret:
            raise ValueError("SLOTBOOK_JWT_SECRET must not be empty")
        if self.max_write_retries < 1:
            raise ValueError("SLOTBOOK_MAX_WRITE_RETRIES must be at least 1")
        if self.log_format not in ("json", "text"):
            raise ValueError(f"Invalid SLOTBOOK_LOG_FORMAT '{self.log_format}'. Must be json or text")

        if self.jwt_secret == DEV_JWT_SECRET:
            logger.warning("Using the development JWT secret. Set SLOTBOOK_JWT_SECRET in production.")

    @classmethod
    def load(cls) -> Settings:
        """Load and validate settings from the environment."""
        settings = cls()
        settings.validate_settings()
        return settings

    def log_config(self) -> None:
        """Log configuration (redacting secrets)."""
        logger.info(
            "Server configuration loaded",
            extra={
                "bind": f"{self.host}:{self.port}",
                "store_backend": self.store_backend.value,
                "data_dir": self.data_dir if self.store_backend == StoreBackend.SQLITE else None,
                "write_mode": self.write_mode.value,
                "max_write_retries": self.max_write_retries,
                "jwt_algorithm": self.jwt_algorithm,
                "log_level": self.log_level,
            },
        )
