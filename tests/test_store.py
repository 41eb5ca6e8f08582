"""Tests for the in-memory roster store."""

import copy

import pytest

from conftest import person, snapshot
from rollcall.store import RosterStore, ToggleResult


@pytest.fixture
def store():
    s = RosterStore()
    s.replace(
        snapshot(
            100,
            participants=[person("Alice"), person("Bob", checked_in=True)],
            staff=[
                person("Dana", **{"Shirt Needed": "Yes"}),
                person("Evan", checked_in=True, shirt=True, **{"Shirt Needed": "No"}),
            ],
        )
    )
    return s


class TestSnapshots:

    def test_new_store_is_empty_and_unsynced(self):
        s = RosterStore()
        assert s.participants == [] and s.staff == []
        assert s.last_sync is None
        assert s.is_loaded is False
        assert s.synced_snapshot() is None

    def test_replace_sets_last_sync(self, store):
        assert store.last_sync == 100
        assert [p["Name"] for p in store.participants] == ["Alice", "Bob"]

    def test_get_snapshot_is_a_copy_with_fresh_timestamp(self, store):
        snap = store.get_snapshot()
        assert snap.timestamp > 100
        snap.participants[0]["checkedIn"] = True
        assert store.participants[0]["checkedIn"] is False
        # no side effects on sync state
        assert store.last_sync == 100

    def test_replace_does_not_alias_snapshot(self, store):
        incoming = snapshot(200, participants=[person("Zed")])
        store.replace(incoming)
        incoming.participants[0]["checkedIn"] = True
        assert store.participants[0]["checkedIn"] is False

    def test_synced_snapshot_carries_last_sync(self, store):
        assert store.synced_snapshot().timestamp == 100

    def test_clear_keeps_loaded_flag(self, store):
        store.mark_loaded()
        store.clear()
        assert store.participants == [] and store.staff == []
        assert store.last_sync is None
        assert store.is_loaded is True


class TestToggleField:

    def test_toggle_check_in(self, store):
        assert store.toggle_field("participants", "Alice", "checkedIn") is ToggleResult.TOGGLED
        assert store.find("participants", "Alice")["checkedIn"] is True

        assert store.toggle_field("participants", "Alice", "checkedIn") is ToggleResult.TOGGLED
        assert store.find("participants", "Alice")["checkedIn"] is False

    def test_toggle_is_keyed_by_name_not_position(self, store):
        store.participants.reverse()
        store.toggle_field("participants", "Alice", "checkedIn")
        assert store.find("participants", "Alice")["checkedIn"] is True
        assert store.find("participants", "Bob")["checkedIn"] is True

    def test_toggle_miss_is_silent(self, store):
        before = copy.deepcopy((store.participants, store.staff))
        result = store.toggle_field("participants", "Zzz-nonexistent", "checkedIn")
        assert result is ToggleResult.NOT_FOUND
        assert (store.participants, store.staff) == before

    def test_unknown_collection_raises(self, store):
        with pytest.raises(ValueError):
            store.toggle_field("volunteers", "Alice", "checkedIn")

    @pytest.mark.parametrize("field", ["Name", "Age", "Shirt Needed"])
    def test_only_status_flags_can_be_toggled(self, store, field):
        before = copy.deepcopy((store.participants, store.staff))
        with pytest.raises(ValueError):
            store.toggle_field("participants", "Alice", field)
        assert (store.participants, store.staff) == before
        assert store.find("participants", "Alice")["Name"] == "Alice"

    def test_shirt_rejected_until_checked_in(self, store):
        result = store.toggle_field("participants", "Alice", "shirtProvided")
        assert result is ToggleResult.REJECTED
        assert store.find("participants", "Alice")["shirtProvided"] is False

        store.toggle_field("participants", "Alice", "checkedIn")
        result = store.toggle_field("participants", "Alice", "shirtProvided")
        assert result is ToggleResult.TOGGLED
        assert store.find("participants", "Alice")["shirtProvided"] is True

    def test_shirt_rejected_for_staff_who_need_none(self, store):
        result = store.toggle_field("staff", "Evan", "shirtProvided")
        assert result is ToggleResult.REJECTED
        assert store.find("staff", "Evan")["shirtProvided"] is True

    def test_staff_shirt_toggle(self, store):
        store.toggle_field("staff", "Dana", "checkedIn")
        assert store.toggle_field("staff", "Dana", "shirtProvided") is ToggleResult.TOGGLED
        assert store.find("staff", "Dana")["shirtProvided"] is True
