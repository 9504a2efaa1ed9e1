"""
Unit tests for the SQLite engine adapter.

Tests cover:
- Error classification
- Transaction rollback on failure
- Deadline enforcement
- Schema initialization and stats
"""

import os
import sqlite3

import pytest

from iot.things_store.config import Settings
from iot.things_store.errors import (
    ConflictError,
    DeadlineExceededError,
    MalformedEntityError,
    NotFoundError,
    StoreError,
)
from iot.things_store.store.database import Database, translate_error
from tests.helpers import OWNER, new_id

LONG_QUERY = """
    WITH RECURSIVE counter(x) AS (
        SELECT 1 UNION ALL SELECT x + 1 FROM counter LIMIT 1000000000
    )
    SELECT COUNT(*) FROM counter
"""

INSERT_CHANNEL = """
    INSERT INTO channels (id, owner, created_at, updated_at) VALUES (?, ?, 0, 0)
"""


class TestTranslateError:
    """Tests for sqlite3 error classification."""

    def test_foreign_key_is_not_found(self):
        error = translate_error(sqlite3.IntegrityError("FOREIGN KEY constraint failed"))
        assert isinstance(error, NotFoundError)

    def test_unique_is_conflict(self):
        error = translate_error(sqlite3.IntegrityError("UNIQUE constraint failed: things.key"))
        assert isinstance(error, ConflictError)

    def test_other_integrity_is_malformed(self):
        error = translate_error(sqlite3.IntegrityError("NOT NULL constraint failed: things.owner"))
        assert isinstance(error, MalformedEntityError)

    def test_interrupted_is_deadline(self):
        error = translate_error(sqlite3.OperationalError("interrupted"))
        assert isinstance(error, DeadlineExceededError)

    def test_anything_else_is_store_error(self):
        error = translate_error(sqlite3.OperationalError("no such table: things"))
        assert isinstance(error, StoreError)
        assert error.code == "STORE_ERROR"


class TestDatabase:
    """Tests for Database scopes."""

    @pytest.mark.asyncio
    async def test_initialize_is_idempotent(self, database):
        """Schema creation can run repeatedly."""
        await database.initialize()
        stats = await database.get_stats()
        assert stats == {"things": 0, "channels": 0, "connections": 0}

    @pytest.mark.asyncio
    async def test_transaction_commits(self, database):
        """Completed block is committed."""
        with database.transaction() as conn:
            conn.execute(INSERT_CHANNEL, (new_id(), OWNER))

        stats = await database.get_stats()
        assert stats["channels"] == 1

    @pytest.mark.asyncio
    async def test_transaction_rolls_back_on_error(self, database):
        """Exception inside the block discards every write."""
        channel_id = new_id()
        with pytest.raises(ConflictError):
            with database.transaction() as conn:
                conn.execute(INSERT_CHANNEL, (new_id(), OWNER))
                conn.execute(INSERT_CHANNEL, (channel_id, OWNER))
                conn.execute(INSERT_CHANNEL, (channel_id, OWNER))

        stats = await database.get_stats()
        assert stats["channels"] == 0

    @pytest.mark.asyncio
    async def test_transaction_rolls_back_on_caller_error(self, database):
        """Non-storage exceptions also roll back."""
        with pytest.raises(RuntimeError):
            with database.transaction() as conn:
                conn.execute(INSERT_CHANNEL, (new_id(), OWNER))
                raise RuntimeError("validation failed")

        stats = await database.get_stats()
        assert stats["channels"] == 0

    @pytest.mark.asyncio
    async def test_expired_deadline_fails_before_work(self, database):
        """Operation started after its deadline never runs."""
        with database.deadline(0):
            with pytest.raises(DeadlineExceededError):
                await database.get_stats()

        # Deadline is scoped to the block
        assert (await database.get_stats())["things"] == 0

    @pytest.mark.asyncio
    async def test_deadline_interrupts_transaction(self, database):
        """Deadline firing mid-transaction leaves no partial commit."""
        with pytest.raises(DeadlineExceededError):
            with database.deadline(0.05):
                with database.transaction() as conn:
                    conn.execute(INSERT_CHANNEL, (new_id(), OWNER))
                    conn.execute(LONG_QUERY).fetchone()

        stats = await database.get_stats()
        assert stats["channels"] == 0

    @pytest.mark.asyncio
    async def test_configured_timeout(self, data_dir):
        """query_timeout_ms bounds every operation."""
        db = Database(f"{data_dir}/timeout.db", wal_mode=False, query_timeout_ms=50)
        await db.initialize()

        with pytest.raises(DeadlineExceededError):
            with db.connection() as conn:
                conn.execute(LONG_QUERY).fetchone()

    @pytest.mark.asyncio
    async def test_uninitialized_database(self, data_dir):
        """Missing schema surfaces as StoreError, not sqlite3.Error."""
        db = Database(f"{data_dir}/empty.db", wal_mode=False)
        with pytest.raises(StoreError):
            await db.get_stats()

    @pytest.mark.asyncio
    async def test_only_initialize_creates_directory(self, data_dir):
        """Operations do not create the data directory, initialize does."""
        directory = os.path.join(data_dir, "nested", "dir")
        db = Database(os.path.join(directory, "things.db"), wal_mode=False)

        with pytest.raises(StoreError):
            await db.get_stats()
        assert not os.path.exists(directory)

        await db.initialize()
        assert (await db.get_stats())["things"] == 0

    def test_from_settings(self, data_dir):
        """Adapter picks up storage settings."""
        settings = Settings(db_path=f"{data_dir}/s.db", wal_mode=False, query_timeout_ms=250)
        db = Database.from_settings(settings)
        assert str(db.db_path) == f"{data_dir}/s.db"
        assert db.wal_mode is False
        assert db.query_timeout_ms == 250
