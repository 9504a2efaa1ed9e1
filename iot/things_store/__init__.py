"""
Things Store - ownership-scoped registry of things, channels and their connections.

This package implements the storage core behind an IoT messaging platform:
- Things: endpoints identified by a secret key
- Channels: topics that things publish and subscribe on
- Connections: the many-to-many relation authorizing a thing on a channel

Architecture:
    ┌─────────────┐     ┌──────────────────┐     ┌──────────────────┐
    │  API layer  │────▶│ Thing / Channel  │────▶│                  │
    │ (external)  │     │  repositories    │     │                  │
    └──────┬──────┘     └──────────────────┘     │                  │
           │            ┌──────────────────┐     │     SQLite       │
           ├───────────▶│ConnectionManager │────▶│ things, channels │
           │            └──────────────────┘     │   connections    │
    ┌──────┴──────┐     ┌──────────────────┐     │                  │
    │ message bus │────▶│  AccessVerifier  │────▶│                  │
    └─────────────┘     └──────────────────┘     └──────────────────┘

Invariants:
    - Every operation is scoped to an already-authenticated owner
    - Wrong owner is indistinguishable from a missing entity
    - Batch writes are all-or-nothing
    - Access checks always read the connection table, no caching

How to change safely:
    - Add new columns with defaults, never repurpose existing ones
    - Keep error classification in store/database.py in sync with constraints
"""

from ._version import __version__

__all__ = ["__version__"]
