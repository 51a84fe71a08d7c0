"""
Availability ledger for Slotbook.

Owns the per-user, per-date list of availability entries. Each
(user_id, date) pair maps to one document in the user's ``availability``
collection:

    availability/{date} -> {"availability": [entry, entry, ...]}

Entries are opaque JSON values, addressed by their 0-based position in the
list. Positions are recomputed on every read; nothing stores an index.

Invariants:
    - append() never reorders or deduplicates existing entries
    - A failed update_at() or delete_at() leaves storage untouched
    - An empty list is equivalent to a missing document for listing

Concurrency:
    update_at() and delete_at() read the whole list, change it and write it
    back. With WriteMode.LAST_WRITER_WINS two concurrent writers on the same
    date race and the later write silently replaces the earlier one.
    WriteMode.OPTIMISTIC makes the write conditional on the version read and
    retries on conflict; WriteMode.SERIALIZED holds a per-(user, date) lock
    for the duration of the read-modify-write.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from collections.abc import Callable
from typing import Any

from ..config import WriteMode
from ..errors import (
    ConcurrentModificationError,
    InvalidIndexError,
    NotFoundError,
    VersionConflictError,
)
from ..store.base import DocumentStore
from .policies import is_valid_index, remove_entry_lenient, replace_entry

logger = logging.getLogger(__name__)

AVAILABILITY_COLLECTION = "availability"
ENTRIES_FIELD = "availability"

# Placeholder returned per date by list_dates_with_availability()
DATE_MARKER: list[dict[str, Any]] = [{}]

AvailabilityEntry = Any


class AvailabilityLedger:
    """Per-user, per-date availability lists.

    Example:
        >>> ledger = AvailabilityLedger(store)
        >>> await ledger.append("u1", "2024-01-01", {"start": 9, "end": 10})
        >>> await ledger.get("u1", "2024-01-01")
        [{'start': 9, 'end': 10}]
    """

    def __init__(
        self,
        store: DocumentStore,
        write_mode: WriteMode = WriteMode.LAST_WRITER_WINS,
        max_write_retries: int = 3,
    ) -> None:
        """Initialize the ledger.

        Args:
            store: Document store holding the availability collections
            write_mode: Concurrency control for update_at/delete_at
            max_write_retries: Attempts before giving up in OPTIMISTIC mode
        """
        self.store = store
        self.write_mode = write_mode
        self.max_write_retries = max_write_retries
        self._locks: weakref.WeakValueDictionary[tuple[str, str], asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    async def append(self, user_id: str, date: str, entry: AvailabilityEntry) -> None:
        """Add an entry to the end of the date's list, creating the list if needed."""
        doc = await self.store.append_to_array(
            user_id, AVAILABILITY_COLLECTION, date, ENTRIES_FIELD, entry
        )
        logger.debug(
            "Appended availability",
            extra={"user_id": user_id, "date": date, "count": len(doc.data[ENTRIES_FIELD])},
        )

    async def get(self, user_id: str, date: str) -> list[AvailabilityEntry]:
        """Entries for a date in insertion order, or [] if there is no document."""
        doc = await self.store.get(user_id, AVAILABILITY_COLLECTION, date)
        if doc is None:
            return []
        return list(doc.data.get(ENTRIES_FIELD) or [])

    async def update_at(
        self,
        user_id: str,
        date: str,
        index: int,
        entry: AvailabilityEntry,
    ) -> None:
        """Replace the entry at ``index``.

        Raises:
            NotFoundError: No document exists for the date
            InvalidIndexError: ``index`` is outside the current list
        """

        def mutate(entries: list[AvailabilityEntry]) -> list[AvailabilityEntry]:
            if not is_valid_index(entries, index):
                raise InvalidIndexError(index, len(entries))
            return replace_entry(entries, index, entry)

        await self._read_modify_write(user_id, date, mutate)

    async def delete_at(self, user_id: str, date: str, index: int | None) -> bool:
        """Remove the entry at ``index``, shifting later entries down.

        An out-of-range or missing (None) index removes nothing and still
        succeeds.

        Returns:
            True if an entry was removed

        Raises:
            NotFoundError: No document exists for the date
        """
        before, after = await self._read_modify_write(
            user_id, date, lambda entries: remove_entry_lenient(entries, index)
        )
        removed = len(after) < len(before)
        if not removed:
            logger.info(
                "Entry index out of range or missing, nothing removed",
                extra={"user_id": user_id, "date": date, "index": index, "length": len(before)},
            )
        return removed

    async def delete_date(self, user_id: str, date: str) -> None:
        """Delete the whole document for a date. Succeeds if it did not exist."""
        await self.store.delete(user_id, AVAILABILITY_COLLECTION, date)

    async def list_dates_with_availability(self, user_id: str) -> dict[str, list[dict[str, Any]]]:
        """Map every date with a non-empty list to a placeholder marker.

        Callers fetch the entries of a date separately with get().
        """
        docs = await self.store.list_documents(user_id, AVAILABILITY_COLLECTION)
        return {
            doc.doc_id: [dict(marker) for marker in DATE_MARKER]
            for doc in docs
            if doc.data.get(ENTRIES_FIELD)
        }

    async def _read_modify_write(
        self,
        user_id: str,
        date: str,
        mutate: Callable[[list[AvailabilityEntry]], list[AvailabilityEntry]],
    ) -> tuple[list[AvailabilityEntry], list[AvailabilityEntry]]:
        """Apply ``mutate`` to the stored list under the configured write mode.

        Returns:
            The list as read and the list as written
        """
        if self.write_mode == WriteMode.SERIALIZED:
            lock = self._lock_for(user_id, date)
            async with lock:
                return await self._apply_once(user_id, date, mutate, conditional=False)

        if self.write_mode == WriteMode.OPTIMISTIC:
            for attempt in range(1, self.max_write_retries + 1):
                try:
                    return await self._apply_once(user_id, date, mutate, conditional=True)
                except VersionConflictError as e:
                    logger.info(
                        "Availability write conflict, retrying",
                        extra={
                            "user_id": user_id,
                            "date": date,
                            "attempt": attempt,
                            "expected_version": e.expected_version,
                            "actual_version": e.actual_version,
                        },
                    )
            raise ConcurrentModificationError(user_id, date, self.max_write_retries)

        return await self._apply_once(user_id, date, mutate, conditional=False)

    async def _apply_once(
        self,
        user_id: str,
        date: str,
        mutate: Callable[[list[AvailabilityEntry]], list[AvailabilityEntry]],
        conditional: bool,
    ) -> tuple[list[AvailabilityEntry], list[AvailabilityEntry]]:
        doc = await self.store.get(user_id, AVAILABILITY_COLLECTION, date)
        if doc is None:
            raise NotFoundError(user_id, date)

        entries = list(doc.data.get(ENTRIES_FIELD) or [])
        updated = mutate(entries)

        data = dict(doc.data)
        data[ENTRIES_FIELD] = updated
        await self.store.set(
            user_id,
            AVAILABILITY_COLLECTION,
            date,
            data,
            expected_version=doc.version if conditional else None,
        )
        return entries, updated

    def _lock_for(self, user_id: str, date: str) -> asyncio.Lock:
        key = (user_id, date)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock
