"""
Access verification for message traffic.

Answers "may this thing use this channel?" from the connection table.
Called once per message on the data path, so every check is a single
indexed read and nothing is cached.

Invariants:
    - Unknown key, unknown thing, unknown channel and missing connection
      all raise the same NotFoundError
    - Keys are never logged
"""

from __future__ import annotations

import logging

from ..errors import NotFoundError
from .database import Database
from .validation import normalize_id

logger = logging.getLogger(__name__)


class AccessVerifier:
    """Read-only connection checks keyed by thing key or thing ID.

    Example:
        >>> verifier = AccessVerifier(database)
        >>> thing_id = await verifier.has_thing(channel_id, "device-secret")
    """

    def __init__(self, database: Database) -> None:
        self.database = database

    async def has_thing(self, channel_id: str, thing_key: str) -> str:
        """Check that the thing holding a key is connected to a channel.

        Args:
            channel_id: Channel the thing wants to use
            thing_key: Secret key presented by the thing

        Returns:
            ID of the connected thing

        Raises:
            NotFoundError: If access is denied
        """
        channel = normalize_id(channel_id)
        row = None
        if channel is not None and thing_key:
            with self.database.connection() as conn:
                row = conn.execute(
                    """
                    SELECT t.id FROM things t
                    JOIN connections c ON c.thing_id = t.id
                    WHERE t.key = ? AND c.channel_id = ?
                    """,
                    (thing_key, channel),
                ).fetchone()

        if row is None:
            logger.debug("Access denied", extra={"channel_id": channel_id})
            raise NotFoundError("access denied", "connection")
        return row["id"]

    async def has_thing_by_id(self, channel_id: str, thing_id: str) -> None:
        """Check that a thing is connected to a channel.

        Raises:
            NotFoundError: If access is denied
        """
        channel = normalize_id(channel_id)
        thing = normalize_id(thing_id)
        row = None
        if channel is not None and thing is not None:
            with self.database.connection() as conn:
                row = conn.execute(
                    "SELECT 1 FROM connections WHERE channel_id = ? AND thing_id = ?",
                    (channel, thing),
                ).fetchone()

        if row is None:
            logger.debug(
                "Access denied",
                extra={"channel_id": channel_id, "thing_id": thing_id},
            )
            raise NotFoundError("access denied", "connection")
