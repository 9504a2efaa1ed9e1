"""Constants and helpers shared by the test modules."""

import uuid

OWNER = "owner@example.com"
WRONG_OWNER = "wrong@example.com"
INVALID_NAME = "m" * 1025


def new_id() -> str:
    """Generate a fresh identifier."""
    return str(uuid.uuid4())
