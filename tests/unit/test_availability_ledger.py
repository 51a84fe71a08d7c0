"""
Unit tests for the availability ledger.

Tests cover:
- Append ordering and duplicates
- Index-addressed update and delete
- Date deletion and listing
- Write modes on a single writer
"""

import pytest

from backend.slotbook_server.config import WriteMode
from backend.slotbook_server.errors import InvalidIndexError, NotFoundError
from backend.slotbook_server.ledger import AvailabilityLedger
from backend.slotbook_server.ledger.availability import AVAILABILITY_COLLECTION
from backend.slotbook_server.store import InMemoryDocumentStore

DATE = "2024-01-01"


class TestAvailabilityLedger:
    """Tests for AvailabilityLedger."""

    @pytest.fixture
    def store(self):
        """Create an unconnected in-memory store."""
        return InMemoryDocumentStore()

    @pytest.fixture(params=list(WriteMode))
    def ledger(self, request, store):
        """Create a ledger for each write mode."""
        return AvailabilityLedger(store, write_mode=request.param)

    @pytest.mark.asyncio
    async def test_get_missing_date(self, store, ledger):
        """A date with no document has no entries."""
        await store.connect()

        assert await ledger.get("user_1", DATE) == []

    @pytest.mark.asyncio
    async def test_append_creates_list(self, store, ledger):
        await store.connect()

        await ledger.append("user_1", DATE, {"start": 9, "end": 10})

        assert await ledger.get("user_1", DATE) == [{"start": 9, "end": 10}]

    @pytest.mark.asyncio
    async def test_append_preserves_order_and_duplicates(self, store, ledger):
        """Identical entries appended twice are both kept."""
        await store.connect()

        await ledger.append("user_1", DATE, "A")
        await ledger.append("user_1", DATE, "B")
        await ledger.append("user_1", DATE, "A")

        assert await ledger.get("user_1", DATE) == ["A", "B", "A"]

    @pytest.mark.asyncio
    async def test_append_accepts_any_json_value(self, store, ledger):
        """Entries are opaque values."""
        await store.connect()

        for entry in [1, "text", None, [1, 2], {"nested": {"ok": True}}]:
            await ledger.append("user_1", DATE, entry)

        assert await ledger.get("user_1", DATE) == [
            1,
            "text",
            None,
            [1, 2],
            {"nested": {"ok": True}},
        ]

    @pytest.mark.asyncio
    async def test_update_at_replaces_entry(self, store, ledger):
        await store.connect()
        await ledger.append("user_1", DATE, "A")
        await ledger.append("user_1", DATE, "B")

        await ledger.update_at("user_1", DATE, 1, "C")

        assert await ledger.get("user_1", DATE) == ["A", "C"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("index", [2, 5, -1])
    async def test_update_at_invalid_index(self, store, ledger, index):
        """Out-of-range updates fail and change nothing."""
        await store.connect()
        await ledger.append("user_1", DATE, "A")
        await ledger.append("user_1", DATE, "B")
        version_before = (await store.get("user_1", AVAILABILITY_COLLECTION, DATE)).version

        with pytest.raises(InvalidIndexError) as exc_info:
            await ledger.update_at("user_1", DATE, index, "X")

        assert exc_info.value.message == "Invalid index provided"
        assert exc_info.value.length == 2
        assert await ledger.get("user_1", DATE) == ["A", "B"]
        doc = await store.get("user_1", AVAILABILITY_COLLECTION, DATE)
        assert doc.version == version_before

    @pytest.mark.asyncio
    async def test_update_at_missing_date(self, store, ledger):
        await store.connect()

        with pytest.raises(NotFoundError) as exc_info:
            await ledger.update_at("user_1", DATE, 0, "X")

        assert exc_info.value.message == "Availability for the specified date not found"
        assert await store.get("user_1", AVAILABILITY_COLLECTION, DATE) is None

    @pytest.mark.asyncio
    async def test_delete_at_shifts_entries(self, store, ledger):
        await store.connect()
        for entry in ["A", "B", "C"]:
            await ledger.append("user_1", DATE, entry)

        removed = await ledger.delete_at("user_1", DATE, 0)

        assert removed is True
        assert await ledger.get("user_1", DATE) == ["B", "C"]

    @pytest.mark.asyncio
    async def test_delete_at_out_of_range_removes_nothing(self, store, ledger):
        """An out-of-range delete succeeds without removing anything."""
        await store.connect()
        await ledger.append("user_1", DATE, "A")
        await ledger.append("user_1", DATE, "B")

        removed = await ledger.delete_at("user_1", DATE, 7)

        assert removed is False
        assert await ledger.get("user_1", DATE) == ["A", "B"]

    @pytest.mark.asyncio
    async def test_delete_at_missing_date(self, store, ledger):
        await store.connect()

        with pytest.raises(NotFoundError):
            await ledger.delete_at("user_1", DATE, 0)

    @pytest.mark.asyncio
    async def test_delete_last_entry_keeps_empty_document(self, store, ledger):
        """Removing the last entry leaves an empty list, which is not listed."""
        await store.connect()
        await ledger.append("user_1", DATE, "A")

        await ledger.delete_at("user_1", DATE, 0)

        assert await ledger.get("user_1", DATE) == []
        assert await store.get("user_1", AVAILABILITY_COLLECTION, DATE) is not None
        assert await ledger.list_dates_with_availability("user_1") == {}

    @pytest.mark.asyncio
    async def test_update_after_emptying_is_invalid_index(self, store, ledger):
        """An empty but existing list rejects updates with InvalidIndexError."""
        await store.connect()
        await ledger.append("user_1", DATE, "A")
        await ledger.delete_at("user_1", DATE, 0)

        with pytest.raises(InvalidIndexError):
            await ledger.update_at("user_1", DATE, 0, "B")

    @pytest.mark.asyncio
    async def test_delete_date(self, store, ledger):
        await store.connect()
        await ledger.append("user_1", DATE, "A")

        await ledger.delete_date("user_1", DATE)

        assert await ledger.get("user_1", DATE) == []
        assert await ledger.list_dates_with_availability("user_1") == {}

    @pytest.mark.asyncio
    async def test_delete_date_missing_is_noop(self, store, ledger):
        """Deleting a date that never existed succeeds."""
        await store.connect()

        await ledger.delete_date("user_1", DATE)

    @pytest.mark.asyncio
    async def test_list_dates_with_availability(self, store, ledger):
        """Only dates with entries are listed, each mapped to the marker."""
        await store.connect()
        await ledger.append("user_1", "2024-01-02", "A")
        await ledger.append("user_1", "2024-01-01", "B")
        await ledger.append("user_1", "2024-01-01", "C")

        dates = await ledger.list_dates_with_availability("user_1")

        assert dates == {"2024-01-01": [{}], "2024-01-02": [{}]}

    @pytest.mark.asyncio
    async def test_list_dates_markers_are_independent(self, store, ledger):
        """Markers are fresh objects per date."""
        await store.connect()
        await ledger.append("user_1", "2024-01-01", "A")
        await ledger.append("user_1", "2024-01-02", "B")

        dates = await ledger.list_dates_with_availability("user_1")
        dates["2024-01-01"][0]["changed"] = True

        assert dates["2024-01-02"] == [{}]
        assert await ledger.list_dates_with_availability("user_1") == {
            "2024-01-01": [{}],
            "2024-01-02": [{}],
        }

    @pytest.mark.asyncio
    async def test_users_are_isolated(self, store, ledger):
        """One user's writes are invisible to another."""
        await store.connect()
        await ledger.append("user_1", DATE, "A")

        assert await ledger.get("user_2", DATE) == []
        assert await ledger.list_dates_with_availability("user_2") == {}
        with pytest.raises(NotFoundError):
            await ledger.update_at("user_2", DATE, 0, "X")

    @pytest.mark.asyncio
    async def test_schedule_walkthrough(self, store, ledger):
        """Append, update, delete and list a date end to end."""
        await store.connect()

        await ledger.append("u1", DATE, "A")
        await ledger.append("u1", DATE, "B")
        assert await ledger.get("u1", DATE) == ["A", "B"]

        await ledger.update_at("u1", DATE, 1, "C")
        assert await ledger.get("u1", DATE) == ["A", "C"]

        await ledger.delete_at("u1", DATE, 0)
        assert await ledger.get("u1", DATE) == ["C"]
        assert await ledger.list_dates_with_availability("u1") == {DATE: [{}]}

        await ledger.delete_date("u1", DATE)
        assert await ledger.list_dates_with_availability("u1") == {}
