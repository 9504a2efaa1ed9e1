"""
Owner-scoped entity repository shared by things and channels.

This module implements the lifecycle operations common to both entity kinds:
- Batch save with all-or-nothing semantics
- Owner-checked update
- Owner-checked retrieval by identifier
- Idempotent removal (connections cascade)
- Filtered, paginated listings

Invariants:
    - Every entity in a batch is validated before the store is touched
    - A batch is written in one transaction
    - Wrong owner and missing entity are reported identically
    - Listings only ever return the requesting owner's entities

How to change safely:
    - Subclasses only describe columns and row mapping
    - Keep SQL parameterized; table and column names come from class attributes
"""

from __future__ import annotations

import dataclasses
import json
import logging
import sqlite3
import time
import uuid
from typing import Any

from ..errors import MalformedEntityError, NotFoundError
from .database import Database
from .ownership import check_owner_or_raise, owns, require_owned
from .query import DEFAULT_LIMIT, Page, metadata_contains, paginate, validate_window
from .validation import normalize_id, validate_entity, validate_metadata

logger = logging.getLogger(__name__)

MAX_SQL_INT = 2**63 - 1


class EntityRepository:
    """Base repository for owner-scoped entities.

    Subclasses set resource_type, table and columns, and implement
    row conversion in both directions.

    Attributes:
        database: Storage engine adapter
    """

    resource_type = ""
    table = ""
    columns: tuple[str, ...] = ()

    def __init__(self, database: Database) -> None:
        self.database = database

    def _to_values(self, entity: Any, now: int) -> tuple[Any, ...]:
        """Convert an entity into insert values ordered like columns."""
        raise NotImplementedError

    def _from_row(self, row: sqlite3.Row) -> Any:
        """Convert a stored row into an entity."""
        raise NotImplementedError

    def _prepare(self, owner: str, entity: Any) -> Any:
        """Validate an entity and stamp it with its confirmed id and owner."""
        _, errors = validate_entity(entity)
        if entity.owner and entity.owner != owner:
            errors.append(f"Owner '{entity.owner}' does not match '{owner}'")
        if errors:
            raise MalformedEntityError(f"Malformed {self.resource_type}", errors)

        return dataclasses.replace(
            entity,
            id=normalize_id(entity.id) or str(uuid.uuid4()),
            owner=owner,
            # Returned copy matches what retrieval decodes
            metadata=json.loads(json.dumps(entity.metadata or {})),
        )

    async def save(self, owner: str, *entities: Any) -> list[Any]:
        """Save a batch of entities for an owner.

        Args:
            owner: Owner of every entity in the batch
            *entities: Entities to create; empty ids are generated

        Returns:
            Saved entities with confirmed ids

        Raises:
            MalformedEntityError: If any entity fails validation
            ConflictError: If an id (or thing key) is already taken
        """
        if not owner:
            raise MalformedEntityError("Owner is required", ["owner is empty"])

        prepared = [self._prepare(owner, entity) for entity in entities]
        if not prepared:
            return []

        now = int(time.time() * 1000)
        placeholders = ", ".join("?" for _ in self.columns)
        query = f"INSERT INTO {self.table} ({', '.join(self.columns)}) VALUES ({placeholders})"

        with self.database.transaction() as conn:
            for entity in prepared:
                conn.execute(query, self._to_values(entity, now))

        logger.debug(
            f"Saved {self.table}",
            extra={"owner": owner, "count": len(prepared)},
        )
        return prepared

    async def update(self, entity: Any) -> None:
        """Update name and metadata of an owned entity.

        Args:
            entity: Entity carrying id, owner and the new values

        Raises:
            MalformedEntityError: If the new name or metadata is invalid
            NotFoundError: If no entity with this id is owned by entity.owner
        """
        _, errors = validate_entity(entity, check_id=False)
        if errors:
            raise MalformedEntityError(f"Malformed {self.resource_type}", errors)

        with self.database.transaction() as conn:
            entity_id = require_owned(conn, self.resource_type, entity.owner, entity.id)
            conn.execute(
                f"UPDATE {self.table} SET name = ?, metadata_json = ?, updated_at = ? WHERE id = ?",
                (
                    entity.name,
                    json.dumps(entity.metadata or {}),
                    int(time.time() * 1000),
                    entity_id,
                ),
            )

        logger.debug(
            f"Updated {self.resource_type}",
            extra={"owner": entity.owner, "id": entity_id},
        )

    async def retrieve_by_id(self, owner: str, entity_id: str) -> Any:
        """Get an owned entity by ID.

        Raises:
            NotFoundError: If the id is malformed, missing or not owned
        """
        canonical = normalize_id(entity_id)
        row = None
        if canonical is not None:
            with self.database.connection() as conn:
                row = conn.execute(
                    f"SELECT * FROM {self.table} WHERE id = ?",
                    (canonical,),
                ).fetchone()

        check_owner_or_raise(owner, row["owner"] if row else None, self.resource_type, entity_id)
        return self._from_row(row)

    async def remove(self, owner: str, entity_id: str) -> None:
        """Remove an owned entity and its connections.

        Removing a missing or foreign entity is a no-op.
        """
        canonical = normalize_id(entity_id)
        if canonical is None:
            return

        with self.database.transaction() as conn:
            row = conn.execute(
                f"SELECT owner FROM {self.table} WHERE id = ?",
                (canonical,),
            ).fetchone()
            if row is None or not owns(owner, row["owner"]):
                return
            conn.execute(f"DELETE FROM {self.table} WHERE id = ?", (canonical,))

        logger.debug(
            f"Removed {self.resource_type}",
            extra={"owner": owner, "id": canonical},
        )

    async def retrieve_all(
        self,
        owner: str,
        offset: int = 0,
        limit: int = DEFAULT_LIMIT,
        name: str = "",
        metadata: dict[str, Any] | None = None,
    ) -> Page:
        """List an owner's entities.

        Args:
            owner: Owner whose entities are listed
            offset: Index of the first entity to return
            limit: Maximum entities to return
            name: Exact name to match (ignored when empty)
            metadata: Filter the metadata must contain (ignored when empty)

        Returns:
            Page ordered by id

        Raises:
            MalformedEntityError: If paging arguments or the metadata filter are invalid
        """
        validate_window(offset, limit)
        error = validate_metadata(metadata)
        if error:
            raise MalformedEntityError("Malformed metadata filter", [error])

        query = f"SELECT * FROM {self.table} WHERE owner = ?"
        params: list[Any] = [owner]
        if name:
            query += " AND name = ?"
            params.append(name)

        return self._select_page(query, params, offset, limit, metadata)

    async def _retrieve_by_connection(
        self,
        owner: str,
        peer_type: str,
        peer_id: str,
        offset: int,
        limit: int,
        connected: bool,
    ) -> Page:
        """List an owner's entities by connection to a peer entity.

        Args:
            owner: Owner whose entities are listed
            peer_type: "thing" or "channel", the other side of the relation
            peer_id: Identifier of the peer
            offset: Index of the first entity to return
            limit: Maximum entities to return
            connected: List connected entities if True, unconnected otherwise

        Raises:
            NotFoundError: If peer_id is not a well-formed identifier
        """
        validate_window(offset, limit)
        canonical = normalize_id(peer_id)
        if canonical is None:
            raise NotFoundError(f"{peer_type} not found", peer_type, peer_id)

        own_column = f"{self.resource_type}_id"
        peer_column = f"{peer_type}_id"

        if connected:
            query = f"""
                SELECT e.* FROM {self.table} e
                JOIN connections c ON c.{own_column} = e.id
                WHERE e.owner = ? AND c.{peer_column} = ?
            """
        else:
            query = f"""
                SELECT e.* FROM {self.table} e
                WHERE e.owner = ? AND e.id NOT IN (
                    SELECT {own_column} FROM connections WHERE {peer_column} = ?
                )
            """

        return self._select_page(query, [owner, canonical], offset, limit)

    def _select_page(
        self,
        query: str,
        params: list[Any],
        offset: int,
        limit: int,
        metadata: dict[str, Any] | None = None,
    ) -> Page:
        """Run a listing query and cut one window out of it.

        Count and window are read from the same snapshot. With a metadata
        filter the owner's rows are filtered in process before windowing.
        """
        with self.database.transaction(immediate=False) as conn:
            if metadata:
                rows = conn.execute(f"{query} ORDER BY id", params).fetchall()
                matched = [
                    entity
                    for entity in map(self._from_row, rows)
                    if metadata_contains(entity.metadata, metadata)
                ]
                return paginate(matched, offset, limit)

            total = conn.execute(f"SELECT COUNT(*) FROM ({query})", params).fetchone()[0]
            # SQLite integers are signed 64-bit
            rows = conn.execute(
                f"{query} ORDER BY id LIMIT ? OFFSET ?",
                [*params, min(limit, MAX_SQL_INT), min(offset, MAX_SQL_INT)],
            ).fetchall()

        return Page(
            total=total,
            offset=offset,
            limit=limit,
            items=[self._from_row(row) for row in rows],
        )
