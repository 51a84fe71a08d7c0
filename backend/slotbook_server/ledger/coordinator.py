"""
Mutation coordinator for Slotbook.

Every availability mutation is followed by a notification append:

    1. Run the availability ledger operation. If it fails, nothing else
       happens and the error propagates unchanged.
    2. Append a notification describing the change.
    3. If the append fails, the mutation still succeeds. The failure is
       logged and reported on the returned MutationResult.

The availability write is the durable source of truth; the notification is
a best-effort side channel. There is no rollback and no retry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from .availability import AvailabilityEntry, AvailabilityLedger
from .notifications import NotificationKind, NotificationLedger, NotificationRecord

logger = logging.getLogger(__name__)


@dataclass
class MutationResult:
    """Outcome of a coordinated mutation.

    Attributes:
        operation: Name of the availability operation
        user_id: Owning user
        date: Date the mutation touched
        notification: The appended record, if the append succeeded
        notification_error: Why the append failed, if it did
        changed: False when the mutation left the stored list as it was
            (a delete whose index addressed no entry)
    """

    operation: str
    user_id: str
    date: str
    notification: NotificationRecord | None = None
    notification_error: str | None = None
    changed: bool = True

    @property
    def notified(self) -> bool:
        return self.notification is not None


class MutationCoordinator:
    """Sequences availability mutations with their notifications.

    Example:
        >>> coordinator = MutationCoordinator(availability, notifications)
        >>> result = await coordinator.append("u1", "2024-01-01", {"start": 9})
        >>> result.notified
        True
    """

    def __init__(
        self,
        availability: AvailabilityLedger,
        notifications: NotificationLedger,
    ) -> None:
        self.availability = availability
        self.notifications = notifications
        self._notified_count = 0
        self._dropped_count = 0

    async def append(self, user_id: str, date: str, entry: AvailabilityEntry) -> MutationResult:
        await self.availability.append(user_id, date, entry)
        return await self._notify(
            "append", user_id, date, NotificationKind.CREATE, f"New availability created for {date}"
        )

    async def update_at(
        self,
        user_id: str,
        date: str,
        index: int,
        entry: AvailabilityEntry,
    ) -> MutationResult:
        await self.availability.update_at(user_id, date, index, entry)
        return await self._notify(
            "update_at", user_id, date, NotificationKind.UPDATE, f"Availability updated for {date}"
        )

    async def delete_at(self, user_id: str, date: str, index: int | None) -> MutationResult:
        removed = await self.availability.delete_at(user_id, date, index)
        result = await self._notify(
            "delete_at", user_id, date, NotificationKind.DELETE, f"Availability deleted for {date}"
        )
        result.changed = removed
        return result

    async def delete_date(self, user_id: str, date: str) -> MutationResult:
        await self.availability.delete_date(user_id, date)
        return await self._notify(
            "delete_date",
            user_id,
            date,
            NotificationKind.DELETE,
            f"All availability deleted for {date}",
        )

    async def _notify(
        self,
        operation: str,
        user_id: str,
        date: str,
        kind: NotificationKind,
        message: str,
    ) -> MutationResult:
        result = MutationResult(operation=operation, user_id=user_id, date=date)
        try:
            result.notification = await self.notifications.append(user_id, kind, message)
            self._notified_count += 1
        except Exception as e:
            self._dropped_count += 1
            result.notification_error = str(e)
            logger.warning(
                f"Failed to append notification: {e}",
                extra={"user_id": user_id, "date": date, "operation": operation},
            )
        return result

    @property
    def stats(self) -> dict[str, Any]:
        """Notification delivery statistics."""
        return {
            "notified_count": self._notified_count,
            "dropped_count": self._dropped_count,
        }
