"""
Error types for the Things store.

This module defines every exception that crosses the store boundary:
- ThingsError: Base exception
- MalformedEntityError: Identifier, name, key or metadata failed validation
- ConflictError: A uniqueness constraint would be violated
- NotFoundError: Entity, ownership pairing or connection does not exist
- DeadlineExceededError: Operation interrupted by its deadline
- StoreError: Any other storage engine failure

Invariants:
    - All errors inherit from ThingsError
    - Raw sqlite3 errors never escape; they are chained as __cause__
    - NotFoundError messages never reveal whether a record exists under
      another owner
"""

from __future__ import annotations

from typing import Any


class ThingsError(Exception):
    """Base exception for all Things store errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "THINGS_ERROR"
        self.details = details or {}


class MalformedEntityError(ThingsError):
    """Entity failed syntactic validation.

    Raised when:
    - Identifier is not a UUID
    - Owner is empty or does not match the requesting owner
    - Name, key or metadata is invalid
    - Paging arguments are negative
    """

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        super().__init__(
            message,
            code="MALFORMED_ENTITY",
            details={"errors": errors or []},
        )
        self.errors = errors or []


class ConflictError(ThingsError):
    """A uniqueness constraint would be violated.

    Raised when:
    - An entity identifier is already taken
    - A thing key is already taken
    - A channel and thing are already connected
    """

    def __init__(self, message: str) -> None:
        super().__init__(message, code="CONFLICT")


class NotFoundError(ThingsError):
    """Resource not found.

    Also raised when the resource exists but belongs to another owner, and
    when an access check fails.
    """

    def __init__(
        self,
        message: str,
        resource_type: str | None = None,
        resource_id: str | None = None,
    ) -> None:
        super().__init__(
            message,
            code="NOT_FOUND",
            details={
                "resource_type": resource_type,
                "resource_id": resource_id,
            },
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class DeadlineExceededError(ThingsError):
    """Operation was interrupted because its deadline passed.

    The enclosing transaction is always rolled back.
    """

    def __init__(self, message: str = "Operation deadline exceeded") -> None:
        super().__init__(message, code="DEADLINE_EXCEEDED")


class StoreError(ThingsError):
    """Unclassified storage engine failure."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="STORE_ERROR")
