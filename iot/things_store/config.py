"""
Configuration for the Things store.

Uses pydantic-settings for environment variable loading. Every setting is
read from a THINGS_ prefixed variable, e.g. THINGS_DB_PATH.

Invariants:
    - All settings have sensible defaults for local development
    - query_timeout_ms = 0 disables the per-operation deadline
"""

from __future__ import annotations

import logging

from pydantic import Field
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Store configuration loaded from environment."""

    # SQLite storage
    db_path: str = Field(default="/var/lib/things/things.db", description="SQLite database file")
    wal_mode: bool = Field(default=True, description="Enable SQLite WAL journal mode")
    busy_timeout_ms: int = Field(default=5000, ge=0, description="SQLite busy timeout")
    cache_size_pages: int = Field(default=-64000, description="SQLite cache size (negative = KB)")

    # Upper bound for a single operation, 0 = unbounded
    query_timeout_ms: int = Field(default=0, ge=0, description="Per-operation deadline")

    # Logging
    log_level: str = Field(default="INFO", description="DEBUG, INFO, WARNING or ERROR")
    log_format: str = Field(default="json", pattern="^(json|text)$", description="json or text")

    model_config = {"env_prefix": "THINGS_"}

    def log_config(self) -> None:
        """Log configuration."""
        logger.info(
            "Store configuration loaded",
            extra={
                "db_path": self.db_path,
                "wal_mode": self.wal_mode,
                "busy_timeout_ms": self.busy_timeout_ms,
                "query_timeout_ms": self.query_timeout_ms,
                "log_level": self.log_level,
            },
        )
