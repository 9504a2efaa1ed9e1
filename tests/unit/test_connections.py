"""
Unit tests for the connection manager.

Tests cover:
- Connect with ownership checks and conflicts
- Batch atomicity
- Disconnect
- Cascade on entity removal
"""

import pytest
import pytest_asyncio

from iot.things_store.errors import ConflictError, NotFoundError
from iot.things_store.store import Channel, Thing
from tests.helpers import OWNER, WRONG_OWNER, new_id


@pytest_asyncio.fixture
async def pair(things, channels):
    """One owned thing and one owned channel."""
    [thing] = await things.save(OWNER, Thing(id=new_id(), key=new_id()))
    [channel] = await channels.save(OWNER, Channel(id=new_id()))
    return channel.id, thing.id


class TestConnect:
    """Tests for ConnectionManager.connect."""

    @pytest.mark.asyncio
    async def test_connect(self, connections, verifier, pair):
        """Connected pair passes the access check."""
        channel_id, thing_id = pair

        await connections.connect(OWNER, [channel_id], [thing_id])

        await verifier.has_thing_by_id(channel_id, thing_id)

    @pytest.mark.asyncio
    async def test_connect_twice_conflicts(self, connections, pair):
        """Connecting an existing pair is a conflict."""
        channel_id, thing_id = pair
        await connections.connect(OWNER, [channel_id], [thing_id])

        with pytest.raises(ConflictError):
            await connections.connect(OWNER, [channel_id], [thing_id])

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "owner,channel,thing",
        [
            (WRONG_OWNER, "existing", "existing"),
            (OWNER, "missing", "existing"),
            (OWNER, "existing", "missing"),
            (OWNER, "invalid", "existing"),
        ],
    )
    async def test_connect_not_found(self, connections, verifier, pair, owner, channel, thing):
        """Foreign, missing and malformed endpoints are not found."""
        channel_id, thing_id = pair
        ids = {"existing": None, "missing": new_id(), "invalid": "invalid"}
        target_channel = ids[channel] or channel_id
        target_thing = ids[thing] or thing_id

        with pytest.raises(NotFoundError):
            await connections.connect(owner, [target_channel], [target_thing])

        with pytest.raises(NotFoundError):
            await verifier.has_thing_by_id(channel_id, thing_id)

    @pytest.mark.asyncio
    async def test_connect_cross_product(self, things, channels, connections, verifier):
        """Every channel is connected to every thing."""
        saved_things = await things.save(OWNER, Thing(id=new_id()), Thing(id=new_id()))
        saved_channels = await channels.save(OWNER, Channel(id=new_id()), Channel(id=new_id()))

        await connections.connect(
            OWNER, [c.id for c in saved_channels], [t.id for t in saved_things]
        )

        for channel in saved_channels:
            for thing in saved_things:
                await verifier.has_thing_by_id(channel.id, thing.id)

    @pytest.mark.asyncio
    async def test_batch_is_atomic(self, things, channels, connections, verifier, database):
        """A failing pair rolls back every other pair of the call."""
        [thing] = await things.save(OWNER, Thing(id=new_id()))
        [first, second] = await channels.save(OWNER, Channel(id=new_id()), Channel(id=new_id()))
        await connections.connect(OWNER, [second.id], [thing.id])

        with pytest.raises(ConflictError):
            await connections.connect(OWNER, [first.id, second.id], [thing.id])

        with pytest.raises(NotFoundError):
            await verifier.has_thing_by_id(first.id, thing.id)
        assert (await database.get_stats())["connections"] == 1

    @pytest.mark.asyncio
    async def test_foreign_item_aborts_batch(self, things, channels, connections, database):
        """One foreign channel in the batch prevents every connection."""
        [thing] = await things.save(OWNER, Thing(id=new_id()))
        [mine] = await channels.save(OWNER, Channel(id=new_id()))
        [theirs] = await channels.save(WRONG_OWNER, Channel(id=new_id()))

        with pytest.raises(NotFoundError):
            await connections.connect(OWNER, [mine.id, theirs.id], [thing.id])

        assert (await database.get_stats())["connections"] == 0

    @pytest.mark.asyncio
    async def test_connect_empty(self, connections):
        """Empty id lists are a no-op."""
        await connections.connect(OWNER, [], [new_id()])
        await connections.connect(OWNER, [new_id()], [])


class TestDisconnect:
    """Tests for ConnectionManager.disconnect."""

    @pytest_asyncio.fixture
    async def connected(self, connections, pair):
        await connections.connect(OWNER, [pair[0]], [pair[1]])
        return pair

    @pytest.mark.asyncio
    async def test_disconnect(self, connections, verifier, connected):
        """Disconnected pair fails the access check; second disconnect is not found."""
        channel_id, thing_id = connected

        await connections.disconnect(OWNER, channel_id, thing_id)

        with pytest.raises(NotFoundError):
            await verifier.has_thing_by_id(channel_id, thing_id)
        with pytest.raises(NotFoundError):
            await connections.disconnect(OWNER, channel_id, thing_id)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "owner,channel,thing",
        [
            (WRONG_OWNER, "existing", "existing"),
            (OWNER, "missing", "existing"),
            (OWNER, "existing", "missing"),
        ],
    )
    async def test_disconnect_not_found(self, connections, verifier, connected, owner, channel, thing):
        """Foreign or missing endpoints are not found and the connection survives."""
        channel_id, thing_id = connected
        target_channel = channel_id if channel == "existing" else new_id()
        target_thing = thing_id if thing == "existing" else new_id()

        with pytest.raises(NotFoundError):
            await connections.disconnect(owner, target_channel, target_thing)

        await verifier.has_thing_by_id(channel_id, thing_id)


class TestCascade:
    """Tests for connection cleanup on entity removal."""

    @pytest.mark.asyncio
    async def test_remove_thing(self, things, connections, verifier, database, pair):
        """Removing a thing drops its connections."""
        channel_id, thing_id = pair
        await connections.connect(OWNER, [channel_id], [thing_id])

        await things.remove(OWNER, thing_id)

        with pytest.raises(NotFoundError):
            await verifier.has_thing_by_id(channel_id, thing_id)
        assert (await database.get_stats())["connections"] == 0

    @pytest.mark.asyncio
    async def test_remove_channel(self, channels, things, connections, database, pair):
        """Removing a channel drops its connections and keeps the thing."""
        channel_id, thing_id = pair
        await connections.connect(OWNER, [channel_id], [thing_id])

        await channels.remove(OWNER, channel_id)

        assert (await database.get_stats())["connections"] == 0
        assert (await things.retrieve_by_id(OWNER, thing_id)).id == thing_id
