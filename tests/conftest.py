"""
Shared fixtures for the Things store tests.

Every test gets its own SQLite file in a temporary directory.
"""

import os
import tempfile

import pytest
import pytest_asyncio

from iot.things_store.store import (
    AccessVerifier,
    ChannelRepository,
    ConnectionManager,
    Database,
    ThingRepository,
)


@pytest.fixture
def data_dir():
    """Create temporary data directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest_asyncio.fixture
async def database(data_dir):
    """Create an initialized database."""
    db = Database(os.path.join(data_dir, "things.db"), wal_mode=False)
    await db.initialize()
    return db


@pytest.fixture
def things(database):
    return ThingRepository(database)


@pytest.fixture
def channels(database):
    return ChannelRepository(database)


@pytest.fixture
def connections(database):
    return ConnectionManager(database)


@pytest.fixture
def verifier(database):
    return AccessVerifier(database)
