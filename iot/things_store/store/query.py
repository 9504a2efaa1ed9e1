"""
Query helpers for paginated, filtered listings.

Invariants:
    - Listings are ordered by identifier so windows are deterministic
    - Page.total counts matches before offset/limit are applied
    - Metadata filtering is structural, independent of serialization
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from ..errors import MalformedEntityError

DEFAULT_LIMIT = 100


@dataclass
class Page:
    """One window of a filtered listing.

    Attributes:
        total: Number of entities matching the filters
        offset: Index of the first returned entity
        limit: Maximum number of entities requested
        items: Things or Channels in this window
    """

    total: int
    offset: int
    limit: int
    items: list[Any] = field(default_factory=list)


def _same_value(actual: Any, expected: Any) -> bool:
    """Compare two JSON values, keeping true and false apart from 1 and 0 at any depth."""
    if isinstance(actual, bool) or isinstance(expected, bool):
        return isinstance(actual, bool) and isinstance(expected, bool) and actual == expected
    if isinstance(actual, Mapping) and isinstance(expected, Mapping):
        return actual.keys() == expected.keys() and all(
            _same_value(actual[key], value) for key, value in expected.items()
        )
    if isinstance(actual, (list, tuple)) and isinstance(expected, (list, tuple)):
        return len(actual) == len(expected) and all(map(_same_value, actual, expected))
    return actual == expected


def metadata_contains(metadata: Mapping[str, Any], expected: Mapping[str, Any]) -> bool:
    """Check if a metadata document is a structural superset of a filter.

    Every key of the filter must be present with an equal value. Nested
    mappings are compared with the same rule, so extra keys at any level
    are ignored. Lists must match element by element, and elements are
    compared exactly.

    Example:
        >>> metadata_contains({"a": 1, "b": {"c": 2, "d": 3}}, {"b": {"c": 2}})
        True
        >>> metadata_contains({"a": 1}, {"a": "1"})
        False
        >>> metadata_contains({"a": [1]}, {"a": [True]})
        False
    """
    for key, value in expected.items():
        if key not in metadata:
            return False
        actual = metadata[key]
        if isinstance(value, Mapping) and isinstance(actual, Mapping):
            if not metadata_contains(actual, value):
                return False
        elif not _same_value(actual, value):
            return False
    return True


def validate_window(offset: int, limit: int) -> None:
    """Reject negative paging arguments.

    Raises:
        MalformedEntityError: If offset or limit is negative
    """
    if offset < 0 or limit < 0:
        raise MalformedEntityError(
            "Offset and limit must be non-negative",
            [f"offset={offset}", f"limit={limit}"],
        )


def paginate(items: Sequence[Any], offset: int, limit: int) -> Page:
    """Cut one window out of an already filtered, ordered sequence."""
    return Page(
        total=len(items),
        offset=offset,
        limit=limit,
        items=list(items[offset : offset + limit]),
    )
