"""
Slotbook Test Suite.

This package contains:
- unit/: Unit tests (stores, ledgers, configuration, tokens)
- integration/: Integration tests (HTTP API, concurrent writes)
"""
