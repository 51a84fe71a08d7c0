"""
Unit tests for the mutation coordinator.

Tests cover:
- One notification per successful mutation
- No notification when the mutation fails
- Mutations that succeed even though the notification could not be stored
"""

from unittest.mock import AsyncMock

import pytest

from backend.slotbook_server.errors import (
    InvalidIndexError,
    NotFoundError,
    StoreUnavailableError,
)
from backend.slotbook_server.ledger import (
    AvailabilityLedger,
    MutationCoordinator,
    NotificationKind,
    NotificationLedger,
)
from backend.slotbook_server.store import InMemoryDocumentStore

DATE = "2024-01-01"


class TestMutationCoordinator:
    """Tests for MutationCoordinator."""

    @pytest.fixture
    def store(self):
        return InMemoryDocumentStore()

    @pytest.fixture
    def availability(self, store):
        return AvailabilityLedger(store)

    @pytest.fixture
    def notifications(self, store):
        return NotificationLedger(store)

    @pytest.fixture
    def coordinator(self, availability, notifications):
        return MutationCoordinator(availability, notifications)

    @pytest.mark.asyncio
    async def test_append_notifies_create(self, store, coordinator, notifications):
        await store.connect()

        result = await coordinator.append("user_1", DATE, {"start": 9})

        assert result.notified
        assert result.operation == "append"
        assert result.notification.kind == NotificationKind.CREATE
        assert result.notification.message == f"New availability created for {DATE}"
        assert len(await notifications.list("user_1")) == 1

    @pytest.mark.asyncio
    async def test_update_notifies_update(self, store, coordinator, availability):
        await store.connect()
        await availability.append("user_1", DATE, "A")

        result = await coordinator.update_at("user_1", DATE, 0, "B")

        assert result.notification.kind == NotificationKind.UPDATE
        assert result.notification.message == f"Availability updated for {DATE}"
        assert await availability.get("user_1", DATE) == ["B"]

    @pytest.mark.asyncio
    async def test_delete_at_notifies_delete(self, store, coordinator, availability):
        await store.connect()
        await availability.append("user_1", DATE, "A")

        result = await coordinator.delete_at("user_1", DATE, 0)

        assert result.changed is True
        assert result.notification.kind == NotificationKind.DELETE
        assert result.notification.message == f"Availability deleted for {DATE}"

    @pytest.mark.asyncio
    async def test_delete_at_out_of_range_still_notifies(self, store, coordinator, notifications):
        """A delete that removed nothing is still a successful mutation."""
        await store.connect()
        await coordinator.append("user_1", DATE, "A")

        result = await coordinator.delete_at("user_1", DATE, 5)

        assert result.notified
        assert result.changed is False
        records = await notifications.list("user_1")
        assert [r.kind for r in records] == [NotificationKind.DELETE, NotificationKind.CREATE]

    @pytest.mark.asyncio
    async def test_delete_date_notifies_delete(self, store, coordinator):
        await store.connect()
        await coordinator.append("user_1", DATE, "A")

        result = await coordinator.delete_date("user_1", DATE)

        assert result.notification.kind == NotificationKind.DELETE
        assert result.notification.message == f"All availability deleted for {DATE}"

    @pytest.mark.asyncio
    async def test_failed_update_appends_no_notification(self, store, coordinator, notifications):
        """Errors from the availability ledger propagate and no notification is appended."""
        await store.connect()

        with pytest.raises(NotFoundError):
            await coordinator.update_at("user_1", DATE, 0, "X")

        await coordinator.append("user_1", DATE, "A")
        with pytest.raises(InvalidIndexError):
            await coordinator.update_at("user_1", DATE, 3, "X")

        records = await notifications.list("user_1")
        assert [r.kind for r in records] == [NotificationKind.CREATE]

    @pytest.mark.asyncio
    async def test_failed_delete_at_appends_no_notification(self, store, coordinator, notifications):
        await store.connect()

        with pytest.raises(NotFoundError):
            await coordinator.delete_at("user_1", DATE, 0)

        assert await notifications.list("user_1") == []

    @pytest.mark.asyncio
    async def test_notification_failure_does_not_fail_mutation(
        self, store, coordinator, availability, notifications
    ):
        """The availability write stands when the notification append fails."""
        await store.connect()
        notifications.append = AsyncMock(
            side_effect=StoreUnavailableError("notifications offline", backend="memory")
        )

        result = await coordinator.append("user_1", DATE, "A")

        assert not result.notified
        assert result.notification is None
        assert result.notification_error == "notifications offline"
        assert await availability.get("user_1", DATE) == ["A"]
        assert coordinator.stats == {"notified_count": 0, "dropped_count": 1}

    @pytest.mark.asyncio
    async def test_stats(self, store, coordinator):
        await store.connect()

        await coordinator.append("user_1", DATE, "A")
        await coordinator.update_at("user_1", DATE, 0, "B")

        assert coordinator.stats == {"notified_count": 2, "dropped_count": 0}

    @pytest.mark.asyncio
    async def test_one_notification_per_mutation(self, store, coordinator, notifications):
        """Every successful mutation appends exactly one record, newest first."""
        await store.connect()

        await coordinator.append("u1", DATE, "A")
        await coordinator.append("u1", DATE, "B")
        await coordinator.update_at("u1", DATE, 1, "C")
        await coordinator.delete_at("u1", DATE, 0)
        await coordinator.delete_date("u1", DATE)

        records = await notifications.list("u1")
        assert [r.to_dict()["type"] for r in records] == [
            "delete",
            "delete",
            "update",
            "create",
            "create",
        ]
        times = [r.time for r in records]
        assert times == sorted(times, reverse=True)
        assert len(set(times)) == len(times)

    @pytest.mark.asyncio
    async def test_two_slot_day(self, store, coordinator, availability, notifications):
        """Two slots added, the second moved, the first dropped."""
        await store.connect()

        await coordinator.append("u1", DATE, {"start": 9, "end": 10})
        assert await availability.get("u1", DATE) == [{"start": 9, "end": 10}]

        await coordinator.append("u1", DATE, {"start": 11, "end": 12})
        assert await availability.get("u1", DATE) == [
            {"start": 9, "end": 10},
            {"start": 11, "end": 12},
        ]

        await coordinator.update_at("u1", DATE, 1, {"start": 14, "end": 15})
        assert await availability.get("u1", DATE) == [
            {"start": 9, "end": 10},
            {"start": 14, "end": 15},
        ]

        await coordinator.delete_at("u1", DATE, 0)
        assert await availability.get("u1", DATE) == [{"start": 14, "end": 15}]
        assert DATE in await availability.list_dates_with_availability("u1")

        records = await notifications.list("u1")
        assert len(records) == 4
        assert records[0].kind == NotificationKind.DELETE
