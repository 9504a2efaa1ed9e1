"""Channel repository."""

from __future__ import annotations

import json
import sqlite3
from typing import Any

from .entities import EntityRepository
from .models import Channel
from .query import DEFAULT_LIMIT, Page


class ChannelRepository(EntityRepository):
    """Owner-scoped storage for channels."""

    resource_type = "channel"
    table = "channels"
    columns = ("id", "owner", "name", "metadata_json", "created_at", "updated_at")

    def _to_values(self, entity: Channel, now: int) -> tuple[Any, ...]:
        return (
            entity.id,
            entity.owner,
            entity.name,
            json.dumps(entity.metadata),
            now,
            now,
        )

    def _from_row(self, row: sqlite3.Row) -> Channel:
        return Channel(
            id=row["id"],
            owner=row["owner"],
            name=row["name"],
            metadata=json.loads(row["metadata_json"]),
        )

    async def retrieve_by_thing(
        self,
        owner: str,
        thing_id: str,
        offset: int = 0,
        limit: int = DEFAULT_LIMIT,
        connected: bool = True,
    ) -> Page:
        """List an owner's channels connected (or not) to a thing.

        Args:
            owner: Owner whose channels are listed
            thing_id: Thing identifier
            offset: Index of the first channel to return
            limit: Maximum channels to return
            connected: Connected channels if True, all others if False

        Returns:
            Page ordered by channel id

        Raises:
            NotFoundError: If thing_id is not a well-formed identifier
        """
        return await self._retrieve_by_connection(
            owner, "thing", thing_id, offset, limit, connected
        )
