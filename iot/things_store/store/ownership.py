"""
Ownership guard for the Things store.

Every read or mutation of a single entity goes through the guard:
the record is fetched by identifier and then checked against the
owner claim presented by the caller.

Invariants:
    - An empty owner claim never owns anything
    - Wrong owner, missing record and malformed identifier all raise the
      same NotFoundError with the same message
"""

from __future__ import annotations

import logging
import sqlite3

from ..errors import NotFoundError
from .validation import normalize_id

logger = logging.getLogger(__name__)

# Tables the guard may look up, keyed by resource type
_TABLES = {"thing": "things", "channel": "channels"}


def owns(owner_claim: str, record_owner: str) -> bool:
    """Check if the owner claim grants rights over a record.

    Args:
        owner_claim: Authenticated owner presented by the caller
        record_owner: Owner stored on the record

    Returns:
        True if access is granted
    """
    return bool(owner_claim) and owner_claim == record_owner


def check_owner_or_raise(
    owner_claim: str,
    record_owner: str | None,
    resource_type: str,
    resource_id: str,
) -> None:
    """Check ownership and raise if denied.

    A missing record (record_owner is None) fails the same way as a
    record owned by someone else.

    Raises:
        NotFoundError: If the claim does not own the record
    """
    if record_owner is None or not owns(owner_claim, record_owner):
        logger.debug(
            "Ownership check failed",
            extra={"resource_type": resource_type, "resource_id": resource_id},
        )
        raise NotFoundError(f"{resource_type} not found", resource_type, resource_id)


def require_owned(
    conn: sqlite3.Connection,
    resource_type: str,
    owner: str,
    entity_id: str,
) -> str:
    """Resolve an identifier to an entity the owner holds.

    Args:
        conn: Open database connection
        resource_type: "thing" or "channel"
        owner: Owner claim
        entity_id: Identifier supplied by the caller

    Returns:
        Canonical identifier

    Raises:
        NotFoundError: If the identifier is malformed, missing or not owned
    """
    canonical = normalize_id(entity_id)
    record_owner = None
    if canonical is not None:
        row = conn.execute(
            f"SELECT owner FROM {_TABLES[resource_type]} WHERE id = ?",
            (canonical,),
        ).fetchone()
        record_owner = row["owner"] if row else None

    check_owner_or_raise(owner, record_owner, resource_type, entity_id)
    return canonical
