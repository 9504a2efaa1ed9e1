"""
Things Store Test Suite.

This package contains:
- unit/: Unit tests (validation, query helpers, single repositories on SQLite)
- integration/: Cross-component scenarios and the admin CLI
"""
