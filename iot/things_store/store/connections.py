"""
Connection manager for the thing/channel relation.

Invariants:
    - Both endpoints of a connection belong to the requesting owner
    - At most one connection per (channel, thing) pair
    - A connect call is all-or-nothing
    - Connections disappear with either endpoint (ON DELETE CASCADE)
"""

from __future__ import annotations

import logging
import sqlite3
import time

from ..errors import ConflictError, NotFoundError
from .database import Database
from .ownership import require_owned

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Creates and removes connections between channels and things.

    Example:
        >>> manager = ConnectionManager(database)
        >>> await manager.connect("user@example.com", [channel.id], [thing.id])
        >>> await manager.disconnect("user@example.com", channel.id, thing.id)
    """

    def __init__(self, database: Database) -> None:
        self.database = database

    async def connect(self, owner: str, channel_ids: list[str], thing_ids: list[str]) -> None:
        """Connect every channel to every thing.

        Args:
            owner: Owner of all referenced channels and things
            channel_ids: Channels to connect
            thing_ids: Things to connect

        Raises:
            NotFoundError: If a channel or thing is missing or not owned
            ConflictError: If a pair is already connected
        """
        if not channel_ids or not thing_ids:
            return

        now = int(time.time() * 1000)

        with self.database.transaction() as conn:
            channels = [require_owned(conn, "channel", owner, cid) for cid in channel_ids]
            things = [require_owned(conn, "thing", owner, tid) for tid in thing_ids]

            for channel_id in channels:
                for thing_id in things:
                    try:
                        conn.execute(
                            """
                            INSERT INTO connections
                            (channel_id, channel_owner, thing_id, thing_owner, created_at)
                            VALUES (?, ?, ?, ?, ?)
                            """,
                            (channel_id, owner, thing_id, owner, now),
                        )
                    except sqlite3.IntegrityError as e:
                        # Endpoints are verified above, only the pair key can collide
                        raise ConflictError(
                            f"Channel {channel_id} is already connected to thing {thing_id}"
                        ) from e

        logger.debug(
            "Connected things to channels",
            extra={"owner": owner, "channels": len(channels), "things": len(things)},
        )

    async def disconnect(self, owner: str, channel_id: str, thing_id: str) -> None:
        """Remove the connection between a channel and a thing.

        Raises:
            NotFoundError: If either endpoint is missing or not owned, or
                they are not connected
        """
        with self.database.transaction() as conn:
            channel = require_owned(conn, "channel", owner, channel_id)
            thing = require_owned(conn, "thing", owner, thing_id)

            cursor = conn.execute(
                """
                DELETE FROM connections
                WHERE channel_id = ? AND channel_owner = ? AND thing_id = ? AND thing_owner = ?
                """,
                (channel, owner, thing, owner),
            )
            if cursor.rowcount == 0:
                raise NotFoundError("connection not found", "connection")

        logger.debug(
            "Disconnected thing from channel",
            extra={"owner": owner, "channel_id": channel, "thing_id": thing},
        )
