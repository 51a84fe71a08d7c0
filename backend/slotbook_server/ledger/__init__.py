"""
Ledger module for Slotbook - availability lists and notification logs.

This module handles:
- Per-user, per-date availability lists with index-addressed mutation
- Per-user append-only notification logs
- Coordination of each availability mutation with its notification

Invariants:
    - Availability writes are the source of truth
    - Notifications are best-effort and never fail a mutation
    - Out-of-range rules for entry indices live in policies.py

How to change safely:
    - Test lost-update behaviour under every WriteMode
    - Keep notification messages stable; clients display them verbatim
"""

from .availability import AvailabilityLedger
from .coordinator import MutationCoordinator, MutationResult
from .notifications import NotificationKind, NotificationLedger, NotificationRecord

__all__ = [
    "AvailabilityLedger",
    "NotificationLedger",
    "NotificationKind",
    "NotificationRecord",
    "MutationCoordinator",
    "MutationResult",
]
