"""
Profile SDK Test Suite.

This package contains:
- unit/: Unit tests (no network, in-memory or temporary SQLite stores)
- integration/: ProfileClient wired end to end against test transports
"""
