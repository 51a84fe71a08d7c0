"""
Unit tests for availability index policies.
"""

from backend.slotbook_server.ledger.policies import (
    is_valid_index,
    parse_index_lenient,
    remove_entry_lenient,
    replace_entry,
)


class TestIndexPolicies:
    """Tests for index validation and list edits."""

    def test_is_valid_index(self):
        entries = ["a", "b", "c"]

        assert is_valid_index(entries, 0)
        assert is_valid_index(entries, 2)
        assert not is_valid_index(entries, 3)
        assert not is_valid_index(entries, -1)
        assert not is_valid_index([], 0)

    def test_replace_entry_returns_copy(self):
        """replace_entry leaves the input list alone."""
        entries = ["a", "b", "c"]

        updated = replace_entry(entries, 1, "x")

        assert updated == ["a", "x", "c"]
        assert entries == ["a", "b", "c"]

    def test_remove_entry_shifts_later_entries(self):
        entries = ["a", "b", "c"]

        assert remove_entry_lenient(entries, 0) == ["b", "c"]
        assert remove_entry_lenient(entries, 2) == ["a", "b"]
        assert entries == ["a", "b", "c"]

    def test_remove_entry_out_of_range_is_noop(self):
        """Out-of-range positions remove nothing."""
        entries = ["a", "b"]

        assert remove_entry_lenient(entries, 2) == ["a", "b"]
        assert remove_entry_lenient(entries, 99) == ["a", "b"]
        assert remove_entry_lenient(entries, -1) == ["a", "b"]

    def test_remove_entry_removes_only_one_duplicate(self):
        """Only the addressed position is removed, even if equal values exist."""
        assert remove_entry_lenient(["a", "a", "a"], 1) == ["a", "a"]

    def test_remove_entry_missing_index_is_noop(self):
        assert remove_entry_lenient(["a", "b"], None) == ["a", "b"]

    def test_parse_index_lenient(self):
        """Only the leading integer is read."""
        assert parse_index_lenient("1") == 1
        assert parse_index_lenient("  2") == 2
        assert parse_index_lenient("1.7") == 1
        assert parse_index_lenient("3abc") == 3
        assert parse_index_lenient("-1") == -1
        assert parse_index_lenient("+4") == 4
        assert parse_index_lenient("0x10") == 16

    def test_parse_index_lenient_unparseable(self):
        """Text without a leading integer addresses no entry."""
        assert parse_index_lenient(None) is None
        assert parse_index_lenient("") is None
        assert parse_index_lenient("abc") is None
        assert parse_index_lenient(".5") is None
        assert parse_index_lenient("٣") is None
