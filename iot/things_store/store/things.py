"""
Thing repository.

Things carry a secret key on top of the shared entity fields. The key is
unique among things and is what devices present for access checks.

Invariants:
    - An empty key is stored as NULL and never resolves to a thing
    - Key lookups go through the unique index on things.key
"""

from __future__ import annotations

import json
import logging
import sqlite3
import time
from typing import Any

from ..errors import MalformedEntityError, NotFoundError
from .entities import EntityRepository
from .models import Thing
from .ownership import require_owned
from .query import DEFAULT_LIMIT, Page
from .validation import validate_key

logger = logging.getLogger(__name__)


class ThingRepository(EntityRepository):
    """Owner-scoped storage for things.

    Example:
        >>> things = ThingRepository(database)
        >>> [thing] = await things.save("user@example.com", Thing(key="secret"))
        >>> await things.retrieve_by_key("secret") == thing.id
        True
    """

    resource_type = "thing"
    table = "things"
    columns = ("id", "owner", "key", "name", "metadata_json", "created_at", "updated_at")

    def _to_values(self, entity: Thing, now: int) -> tuple[Any, ...]:
        return (
            entity.id,
            entity.owner,
            entity.key or None,
            entity.name,
            json.dumps(entity.metadata),
            now,
            now,
        )

    def _from_row(self, row: sqlite3.Row) -> Thing:
        return Thing(
            id=row["id"],
            owner=row["owner"],
            key=row["key"] or "",
            name=row["name"],
            metadata=json.loads(row["metadata_json"]),
        )

    async def update_key(self, owner: str, thing_id: str, key: str) -> None:
        """Replace the secret key of an owned thing.

        Args:
            owner: Owner claim
            thing_id: Thing identifier
            key: New secret key

        Raises:
            MalformedEntityError: If the key is empty or too long
            NotFoundError: If the thing is missing or not owned
            ConflictError: If another thing already uses the key
        """
        error = validate_key(key, required=True)
        if error:
            raise MalformedEntityError("Malformed thing key", [error])

        with self.database.transaction() as conn:
            canonical = require_owned(conn, self.resource_type, owner, thing_id)
            conn.execute(
                "UPDATE things SET key = ?, updated_at = ? WHERE id = ?",
                (key, int(time.time() * 1000), canonical),
            )

        logger.debug("Updated thing key", extra={"owner": owner, "id": canonical})

    async def retrieve_by_key(self, key: str) -> str:
        """Resolve a secret key to a thing ID.

        Raises:
            NotFoundError: If no thing uses the key
        """
        row = None
        if key:
            with self.database.connection() as conn:
                row = conn.execute("SELECT id FROM things WHERE key = ?", (key,)).fetchone()

        if row is None:
            raise NotFoundError("thing not found", self.resource_type)
        return row["id"]

    async def retrieve_by_channel(
        self,
        owner: str,
        channel_id: str,
        offset: int = 0,
        limit: int = DEFAULT_LIMIT,
        connected: bool = True,
    ) -> Page:
        """List an owner's things connected (or not) to a channel.

        Raises:
            NotFoundError: If channel_id is not a well-formed identifier
        """
        return await self._retrieve_by_connection(
            owner, "channel", channel_id, offset, limit, connected
        )
