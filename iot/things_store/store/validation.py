"""
Entity validation for the Things store.

This module provides validation utilities:
- Identifier normalization (UUID)
- Name, key and metadata checks
- Whole-entity validation with collected error messages

Invariants:
    - Validation runs before any store interaction
    - Validation errors are deterministic
    - Identifiers are stored in canonical lowercase hyphenated form
"""

from __future__ import annotations

import json
import uuid
from typing import Any

from .models import Channel, Thing

MAX_NAME_SIZE = 1024
MAX_KEY_SIZE = 4096


def normalize_id(value: Any) -> str | None:
    """Return the canonical form of a UUID string.

    Args:
        value: Candidate identifier

    Returns:
        Canonical UUID string, or None if value is not a well-formed UUID
    """
    if not isinstance(value, str) or not value:
        return None
    try:
        return str(uuid.UUID(value))
    except ValueError:
        return None


def validate_name(name: Any) -> str | None:
    """Validate a display name.

    Returns error message if invalid, None if valid.
    """
    if not isinstance(name, str):
        return f"Name must be a string, got {type(name).__name__}"
    if len(name) > MAX_NAME_SIZE:
        return f"Name exceeds {MAX_NAME_SIZE} characters"
    return None


def validate_key(key: Any, required: bool = False) -> str | None:
    """Validate a thing key.

    Returns error message if invalid, None if valid.
    """
    if not isinstance(key, str):
        return f"Key must be a string, got {type(key).__name__}"
    if required and not key:
        return "Key is required"
    if len(key) > MAX_KEY_SIZE:
        return f"Key exceeds {MAX_KEY_SIZE} characters"
    return None


def _string_keys(value: Any) -> bool:
    """Check that every mapping in a document, at any depth, has string keys."""
    if isinstance(value, dict):
        return all(isinstance(k, str) and _string_keys(v) for k, v in value.items())
    if isinstance(value, (list, tuple)):
        return all(_string_keys(item) for item in value)
    return True


def validate_metadata(metadata: Any) -> str | None:
    """Validate a metadata document.

    Returns error message if invalid, None if valid.
    """
    if metadata is None:
        return None
    if not isinstance(metadata, dict):
        return f"Metadata must be a mapping, got {type(metadata).__name__}"
    if not _string_keys(metadata):
        return "Metadata keys must be strings"
    try:
        json.dumps(metadata)
    except (TypeError, ValueError) as e:
        return f"Metadata is not JSON serializable: {e}"
    return None


def validate_entity(entity: Thing | Channel, check_id: bool = True) -> tuple[bool, list[str]]:
    """Validate an entity before it is written.

    An empty identifier is accepted since one is generated on save.

    Args:
        entity: Thing or Channel to validate
        check_id: Whether to check the identifier format

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    errors: list[str] = []

    if check_id and entity.id and normalize_id(entity.id) is None:
        errors.append(f"Invalid identifier '{entity.id}'")

    for error in (validate_name(entity.name), validate_metadata(entity.metadata)):
        if error:
            errors.append(error)

    if isinstance(entity, Thing):
        error = validate_key(entity.key)
        if error:
            errors.append(error)

    return len(errors) == 0, errors
