"""
Store module for the Things registry - persistence, relations and access checks.

This module handles:
- SQLite engine adapter with transactional scopes
- Owner-scoped thing and channel repositories
- Thing/channel connections
- Access verification for message traffic

Invariants:
    - Ownership failures surface as NotFoundError
    - All operations within a batch are atomic
    - Connections cascade with their endpoints

How to change safely:
    - Use Database.transaction() for all multi-statement operations
    - Verify atomicity with failure injection in the middle of a batch
"""

from .access import AccessVerifier
from .channels import ChannelRepository
from .connections import ConnectionManager
from .database import Database
from .models import Channel, Metadata, Thing
from .query import Page, metadata_contains
from .things import ThingRepository

__all__ = [
    "AccessVerifier",
    "Channel",
    "ChannelRepository",
    "ConnectionManager",
    "Database",
    "Metadata",
    "Page",
    "Thing",
    "ThingRepository",
    "metadata_contains",
]
