"""
Hand-off to the persistence collaborator.

The pipeline never writes events itself. Callers map its output to store
rows with to_store_records() and push them through an EventStore, whose
operations are all keyed by the owner's identity.
"""

import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from picschedule.event_models import ExtractedEvent
from picschedule.logging_helper import Log

DEFAULT_GROUP_ID = "1"
DEFAULT_COLOR = "#AEC6CF"

# Columns the store accepts on update
UPDATABLE_FIELDS = ("title", "date", "start_time", "end_time", "notes", "color", "group_id", "image_url")


class EventStore(ABC):
    """Abstract event store; a managed database sits behind real implementations."""

    @abstractmethod
    def create(self, owner_id: str, records: List[dict]) -> List[dict]:
        """Insert records for owner_id and return them with ids assigned."""

    @abstractmethod
    def update(self, owner_id: str, event_id: str, changes: dict) -> Optional[dict]:
        """Apply changes to one of owner_id's events; None if it does not exist."""

    @abstractmethod
    def delete(self, owner_id: str, event_id: str) -> bool:
        """Delete one of owner_id's events; False if it does not exist."""

    @abstractmethod
    def list(self, owner_id: str) -> List[dict]:
        """All of owner_id's events, ordered by date and start time."""


def to_store_records(
    events: Iterable[ExtractedEvent],
    owner_id: str,
    group_id: str = DEFAULT_GROUP_ID,
    color: str = DEFAULT_COLOR,
    include_invalid_dates: bool = False,
) -> List[dict]:
    """
    Map extracted events to event-store rows.

    Args:
        events: Pipeline output
        owner_id: Identity of the user the events belong to
        group_id: Calendar group to file the events under
        color: Display color for the events
        include_invalid_dates: Keep events whose date did not parse

    Returns:
        List of row dicts (user_id, title, date, start_time, end_time, notes, group_id, color)
    """
    records = []
    skipped = 0
    for event in events:
        if not event.is_valid_date and not include_invalid_dates:
            skipped += 1
            continue
        records.append({
            "user_id": owner_id,
            "title": event.title,
            "date": event.date,
            "start_time": event.start_time,
            "end_time": event.end_time,
            "notes": _notes(event),
            "group_id": group_id,
            "color": color,
        })

    if skipped:
        Log.info(f"Skipped {skipped} event(s) with invalid dates")
    Log.kv({"stage": "store", "action": "map_records", "records": len(records), "skipped": skipped})
    return records


def _notes(event: ExtractedEvent) -> Optional[str]:
    parts = [part for part in (event.description, f"Location: {event.location}" if event.location else None) if part]
    return "\n\n".join(parts) or None


class InMemoryEventStore(EventStore):
    """Process-local EventStore, for tests and the command line."""

    def __init__(self):
        self._events: Dict[str, Dict[str, dict]] = {}

    def create(self, owner_id: str, records: List[dict]) -> List[dict]:
        owned = self._events.setdefault(owner_id, {})
        created = []
        for record in records:
            row = dict(record)
            row["id"] = str(uuid.uuid4())
            row["user_id"] = owner_id
            row["created_at"] = datetime.now(timezone.utc).isoformat()
            owned[row["id"]] = row
            created.append(dict(row))
        Log.kv({"stage": "store", "action": "create", "records": len(created)})
        return created

    def update(self, owner_id: str, event_id: str, changes: dict) -> Optional[dict]:
        row = self._events.get(owner_id, {}).get(event_id)
        if row is None:
            Log.warn(f"Update of unknown event {event_id}")
            return None
        unknown = set(changes) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")
        row.update(changes)
        return dict(row)

    def delete(self, owner_id: str, event_id: str) -> bool:
        return self._events.get(owner_id, {}).pop(event_id, None) is not None

    def list(self, owner_id: str) -> List[dict]:
        rows = self._events.get(owner_id, {}).values()
        return [dict(row) for row in sorted(rows, key=lambda r: (r["date"], r.get("start_time") or ""))]
