from __future__ import annotations

import pytest

from picschedule.event_models import ExtractedEvent
from picschedule.event_store import InMemoryEventStore, to_store_records

EVENTS = [
    ExtractedEvent(title="Team Sync", date="2025-06-09", is_valid_date=True, start_time="14:00", end_time="15:00",
                   description="Weekly", location="Room 4"),
    ExtractedEvent(title="Someday", date="TBD", is_valid_date=False),
    ExtractedEvent(title="Breakfast", date="2025-06-09", is_valid_date=True, start_time="08:00", end_time="09:00"),
]


def test_records_skip_invalid_dates_by_default():
    records = to_store_records(EVENTS, owner_id="user-1")

    assert [r["title"] for r in records] == ["Team Sync", "Breakfast"]
    first = records[0]
    assert first["user_id"] == "user-1"
    assert first["start_time"] == "14:00"
    assert first["end_time"] == "15:00"
    assert first["notes"] == "Weekly\n\nLocation: Room 4"
    assert first["group_id"] == "1"
    assert records[1]["notes"] is None


def test_records_can_keep_invalid_dates():
    records = to_store_records(EVENTS, owner_id="user-1", group_id="work", color="#FF0000", include_invalid_dates=True)

    assert len(records) == 3
    assert {r["group_id"] for r in records} == {"work"}
    assert {r["color"] for r in records} == {"#FF0000"}


def test_in_memory_store_is_keyed_by_owner():
    store = InMemoryEventStore()
    created = store.create("user-1", to_store_records(EVENTS, owner_id="user-1"))
    store.create("user-2", to_store_records(EVENTS[:1], owner_id="user-2"))

    assert all("id" in row for row in created)
    # Sorted by date then start time
    assert [r["title"] for r in store.list("user-1")] == ["Breakfast", "Team Sync"]
    assert [r["title"] for r in store.list("user-2")] == ["Team Sync"]
    assert store.list("nobody") == []


def test_update_and_delete():
    store = InMemoryEventStore()
    row = store.create("user-1", to_store_records(EVENTS[:1], owner_id="user-1"))[0]

    updated = store.update("user-1", row["id"], {"title": "Team Sync (moved)", "start_time": "16:00"})
    assert updated["title"] == "Team Sync (moved)"
    assert store.update("user-2", row["id"], {"title": "hijack"}) is None

    with pytest.raises(ValueError):
        store.update("user-1", row["id"], {"user_id": "user-2"})

    assert store.delete("user-2", row["id"]) is False
    assert store.delete("user-1", row["id"]) is True
    assert store.list("user-1") == []
