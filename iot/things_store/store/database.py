"""
SQLite storage engine adapter for the Things store.

This module owns everything that touches the storage engine directly:
- Connection setup (pragmas, busy timeout, foreign keys)
- Schema creation
- Transactional scopes with guaranteed commit or rollback
- Deadline enforcement for running statements
- Classification of sqlite3 errors into the store error taxonomy

Invariants:
    - One connection per operation, closed on every exit path
    - foreign_keys pragma is always on, connections cascade with entities
    - No sqlite3.Error escapes a connection scope unclassified
    - A deadline that fires mid-transaction leaves no partial commit

How to change safely:
    - Schema changes must be additive (CREATE ... IF NOT EXISTS)
    - Bump SCHEMA_VERSION when adding tables or indexes
    - Keep error classification in sync with the constraints in the schema

Table schema:
    things:
        - id TEXT PRIMARY KEY (UUID)
        - owner TEXT
        - key TEXT UNIQUE (NULL when unset)
        - name TEXT
        - metadata_json TEXT
        - created_at INTEGER (Unix ms)
        - updated_at INTEGER (Unix ms)
        - UNIQUE (id, owner)

    channels:
        - same as things without key

    connections:
        - channel_id, channel_owner -> channels (id, owner) ON DELETE CASCADE
        - thing_id, thing_owner -> things (id, owner) ON DELETE CASCADE
        - created_at INTEGER
        - PRIMARY KEY (channel_id, thing_id)
"""

from __future__ import annotations

import logging
import sqlite3
import time
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path

from ..config import Settings
from ..errors import (
    ConflictError,
    DeadlineExceededError,
    MalformedEntityError,
    NotFoundError,
    StoreError,
    ThingsError,
)

logger = logging.getLogger(__name__)

# Absolute monotonic deadline for the current call, set by Database.deadline()
_call_deadline: ContextVar[float | None] = ContextVar("things_store_deadline", default=None)

# Progress handler granularity in SQLite VM instructions
_PROGRESS_STEPS = 1000


def translate_error(error: sqlite3.Error) -> ThingsError:
    """Classify a storage engine error.

    Args:
        error: Error raised by sqlite3

    Returns:
        The store error that should be raised in its place
    """
    message = str(error)

    if isinstance(error, sqlite3.IntegrityError):
        if "FOREIGN KEY" in message:
            return NotFoundError("Referenced entity not found")
        if "UNIQUE" in message or "PRIMARY KEY" in message:
            return ConflictError("Entity already exists")
        return MalformedEntityError("Entity violates a storage constraint", [message])

    if isinstance(error, sqlite3.OperationalError) and "interrupted" in message:
        return DeadlineExceededError()

    return StoreError(f"Storage failure: {message}")


class Database:
    """SQLite database holding things, channels and their connections.

    Thread safety:
        Each operation opens its own connection.
        SQLite handles concurrent access via WAL mode and BEGIN IMMEDIATE.

    Example:
        >>> db = Database("/var/lib/things/things.db")
        >>> await db.initialize()
        >>> with db.transaction() as conn:
        ...     conn.execute("DELETE FROM connections WHERE thing_id = ?", (thing_id,))
    """

    SCHEMA_VERSION = 1

    def __init__(
        self,
        db_path: str,
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
        cache_size_pages: int = -64000,
        query_timeout_ms: int = 0,
    ) -> None:
        """Initialize the database adapter.

        Args:
            db_path: SQLite database file
            wal_mode: Enable SQLite WAL mode
            busy_timeout_ms: SQLite busy timeout
            cache_size_pages: SQLite cache size (negative = KB)
            query_timeout_ms: Deadline applied to every operation (0 = none)
        """
        self.db_path = Path(db_path)
        self.wal_mode = wal_mode
        self.busy_timeout_ms = busy_timeout_ms
        self.cache_size_pages = cache_size_pages
        self.query_timeout_ms = query_timeout_ms

    @classmethod
    def from_settings(cls, settings: Settings) -> Database:
        """Create a database adapter from settings."""
        return cls(
            db_path=settings.db_path,
            wal_mode=settings.wal_mode,
            busy_timeout_ms=settings.busy_timeout_ms,
            cache_size_pages=settings.cache_size_pages,
            query_timeout_ms=settings.query_timeout_ms,
        )

    @contextmanager
    def deadline(self, seconds: float) -> Iterator[None]:
        """Bound every operation started inside the block.

        The deadline is context-local, so concurrent asyncio tasks do not
        share it. Nested deadlines keep the earliest one.

        Args:
            seconds: Time budget from now
        """
        expires_at = time.monotonic() + seconds
        current = _call_deadline.get()
        if current is not None:
            expires_at = min(expires_at, current)

        token = _call_deadline.set(expires_at)
        try:
            yield
        finally:
            _call_deadline.reset(token)

    def _effective_deadline(self) -> float | None:
        deadline = _call_deadline.get()
        if self.query_timeout_ms > 0:
            configured = time.monotonic() + self.query_timeout_ms / 1000.0
            deadline = configured if deadline is None else min(deadline, configured)
        return deadline

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        """Open a configured connection for one operation.

        Yields:
            SQLite connection in autocommit mode

        Raises:
            DeadlineExceededError: If the deadline passed before or during the operation
            ThingsError: Classified form of any sqlite3 error
        """
        deadline = self._effective_deadline()
        if deadline is not None and time.monotonic() >= deadline:
            raise DeadlineExceededError()

        try:
            conn = sqlite3.connect(
                str(self.db_path),
                timeout=self.busy_timeout_ms / 1000.0,
                isolation_level=None,  # Autocommit by default, explicit transactions
            )
        except sqlite3.Error as e:
            raise translate_error(e) from e

        conn.row_factory = sqlite3.Row

        try:
            conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
            conn.execute(f"PRAGMA cache_size = {self.cache_size_pages}")
            if self.wal_mode:
                conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")
            conn.execute("PRAGMA foreign_keys = ON")

            if deadline is not None:
                conn.set_progress_handler(
                    lambda: int(time.monotonic() >= deadline), _PROGRESS_STEPS
                )

            yield conn
        except sqlite3.Error as e:
            raise translate_error(e) from e
        finally:
            conn.close()

    @contextmanager
    def transaction(self, immediate: bool = True) -> Iterator[sqlite3.Connection]:
        """Run a block inside one transaction.

        Commits when the block completes and rolls back on every other exit
        path, including validation errors raised by the caller.

        Args:
            immediate: Take the write lock up front (BEGIN IMMEDIATE).
                Read-only scopes pass False for a deferred snapshot.

        Yields:
            SQLite connection with an open transaction
        """
        with self.connection() as conn:
            conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
            try:
                yield conn
            except BaseException:
                # An interrupted statement may already have ended the transaction
                if conn.in_transaction:
                    conn.set_progress_handler(None, 0)
                    conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        """Create database schema."""
        conn.executescript("""
            -- Schema version tracking
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at INTEGER NOT NULL
            );

            CREATE TABLE IF NOT EXISTS things (
                id TEXT PRIMARY KEY,
                owner TEXT NOT NULL,
                key TEXT UNIQUE,
                name TEXT NOT NULL DEFAULT '',
                metadata_json TEXT NOT NULL DEFAULT '{}',
                created_at INTEGER NOT NULL,
                updated_at INTEGER NOT NULL,
                UNIQUE (id, owner)
            );

            CREATE INDEX IF NOT EXISTS idx_things_owner ON things(owner, id);

            CREATE TABLE IF NOT EXISTS channels (
                id TEXT PRIMARY KEY,
                owner TEXT NOT NULL,
                name TEXT NOT NULL DEFAULT '',
                metadata_json TEXT NOT NULL DEFAULT '{}',
                created_at INTEGER NOT NULL,
                updated_at INTEGER NOT NULL,
                UNIQUE (id, owner)
            );

            CREATE INDEX IF NOT EXISTS idx_channels_owner ON channels(owner, id);

            CREATE TABLE IF NOT EXISTS connections (
                channel_id TEXT NOT NULL,
                channel_owner TEXT NOT NULL,
                thing_id TEXT NOT NULL,
                thing_owner TEXT NOT NULL,
                created_at INTEGER NOT NULL,
                PRIMARY KEY (channel_id, thing_id),
                FOREIGN KEY (channel_id, channel_owner)
                    REFERENCES channels (id, owner) ON DELETE CASCADE,
                FOREIGN KEY (thing_id, thing_owner)
                    REFERENCES things (id, owner) ON DELETE CASCADE
            );

            CREATE INDEX IF NOT EXISTS idx_connections_thing ON connections(thing_id);
            CREATE INDEX IF NOT EXISTS idx_connections_channel_owner
                ON connections(channel_id, channel_owner);
            CREATE INDEX IF NOT EXISTS idx_connections_thing_owner
                ON connections(thing_id, thing_owner);

            -- Record schema version
            INSERT OR IGNORE INTO schema_version (version, applied_at)
            VALUES (1, strftime('%s', 'now') * 1000);
        """)

    async def initialize(self) -> None:
        """Create the database file and schema if they don't exist."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self.connection() as conn:
            self._create_schema(conn)
        logger.info(f"Initialized things database: {self.db_path}")

    async def get_stats(self) -> dict[str, int]:
        """Get row counts.

        Returns:
            Dictionary with counts per table
        """
        with self.transaction(immediate=False) as conn:
            stats = {}
            for table in ("things", "channels", "connections"):
                cursor = conn.execute(f"SELECT COUNT(*) FROM {table}")
                stats[table] = cursor.fetchone()[0]
            return stats
