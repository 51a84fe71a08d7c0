"""
Notification ledger for Slotbook.

An append-only log of schedule change events per user, stored in the
user's ``notifications`` collection:

    notifications/{generated id} -> {"type": ..., "message": ..., "time": ...}

Invariants:
    - Records are never modified or deleted once appended
    - For one user, each appended record's time is >= every earlier one
    - list() returns records by time, most recent first

How to change safely:
    - list() scans the whole log; add pagination before logs grow large
    - The per-user time cache is an LRU; evicting a user costs one store
      read on their next append, never a time that goes backwards
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..store.base import Document, DocumentStore, now_ms

logger = logging.getLogger(__name__)

NOTIFICATIONS_COLLECTION = "notifications"


class NotificationKind(str, Enum):
    """Kind of schedule change a notification describes."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class NotificationRecord:
    """A single entry in a user's notification log.

    Attributes:
        id: Store-generated record identifier
        kind: Kind of change
        message: Human readable description
        time: Time of append (Unix ms)
    """

    id: str
    kind: NotificationKind
    message: str
    time: int

    def to_dict(self) -> dict[str, Any]:
        """Wire representation."""
        return {
            "id": self.id,
            "type": self.kind.value,
            "message": self.message,
            "time": self.time,
        }

    @classmethod
    def from_document(cls, doc: Document) -> NotificationRecord:
        return cls(
            id=doc.doc_id,
            kind=NotificationKind(doc.data["type"]),
            message=doc.data["message"],
            time=doc.data["time"],
        )


class NotificationLedger:
    """Per-user append-only notification log.

    Times are taken from the wall clock but never go backwards for a user:
    a new record is stamped at least 1 ms after the latest time this ledger
    has seen for that user, so records keep a strict order even when the
    clock stalls or steps back.

    The latest time is cached for the ``max_tracked_users`` most recently
    active users. An evicted user's latest time is reloaded from the store
    on their next append.
    """

    def __init__(self, store: DocumentStore, max_tracked_users: int = 10_000) -> None:
        self.store = store
        self.max_tracked_users = max_tracked_users
        self._last_time: OrderedDict[str, int] = OrderedDict()

    async def append(
        self,
        user_id: str,
        kind: NotificationKind,
        message: str,
    ) -> NotificationRecord:
        """Append a record stamped with the current time.

        Raises:
            StoreUnavailableError: If the store cannot persist the record
        """
        last = self._last_time.get(user_id)
        if last is None:
            last = await self._latest_time(user_id)
            # A concurrent append may have cached a later time meanwhile
            last = max(last, self._last_time.get(user_id, 0))

        time_ms = max(now_ms(), last + 1)
        self._remember(user_id, time_ms)

        doc = await self.store.add(
            user_id,
            NOTIFICATIONS_COLLECTION,
            {"type": kind.value, "message": message, "time": time_ms},
        )

        logger.debug(
            "Appended notification",
            extra={"user_id": user_id, "notification_id": doc.doc_id, "type": kind.value},
        )
        return NotificationRecord.from_document(doc)

    async def list(self, user_id: str) -> list[NotificationRecord]:
        """All records for a user, most recent first."""
        docs = await self.store.list_documents(
            user_id, NOTIFICATIONS_COLLECTION, order_by="time", descending=True
        )
        return [NotificationRecord.from_document(doc) for doc in docs]

    def _remember(self, user_id: str, time_ms: int) -> None:
        self._last_time[user_id] = time_ms
        self._last_time.move_to_end(user_id)
        while len(self._last_time) > self.max_tracked_users:
            self._last_time.popitem(last=False)

    async def _latest_time(self, user_id: str) -> int:
        docs = await self.store.list_documents(
            user_id, NOTIFICATIONS_COLLECTION, order_by="time", descending=True
        )
        return docs[0].data["time"] if docs else 0
