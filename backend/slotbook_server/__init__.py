"""
Slotbook Server - availability scheduling backend with change notifications.

Authenticated users (vendors or consumers) keep a per-date list of
availability entries and receive an append-only notification feed whenever
their schedule changes.

Architecture:
    ┌─────────────┐     ┌─────────────┐     ┌──────────────────────┐
    │   Client    │────▶│   FastAPI   │────▶│ MutationCoordinator  │
    │ (bearer JWT)│     │   routes    │     └──────┬────────┬──────┘
    └─────────────┘     └──────┬──────┘            │        │
                               │ reads             ▼        ▼
                               │          ┌────────────┐ ┌──────────────┐
                               └─────────▶│Availability│ │ Notification │
                                          │  Ledger    │ │   Ledger     │
                                          └─────┬──────┘ └──────┬───────┘
                                                ▼               ▼
                                   ┌─────────────────────────────────────┐
                                   │ DocumentStore (SQLite / in-memory)  │
                                   │ tenant -> collection -> document    │
                                   └─────────────────────────────────────┘

Invariants:
    - Every core operation takes an explicit, already verified user id
    - Availability writes are the source of truth; notifications are best-effort
    - Each user's data lives in its own tenant of the document store

How to change safely:
    - Keep HTTP paths and message texts stable
    - Run the concurrency tests under every write mode after ledger changes

Version: see _version.py.
"""

from ._version import __version__

__all__ = ["__version__"]
