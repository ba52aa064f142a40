from __future__ import annotations

import pytest

from picschedule.event_models import ExtractedEvent
from picschedule.time_normalizer import add_minutes, canonical_time, normalize


def _event(start=None, end=None) -> ExtractedEvent:
    return ExtractedEvent(title="Team Sync", date="2025-06-09", is_valid_date=True, start_time=start, end_time=end)


@pytest.mark.parametrize("raw, expected", [
    ("2:00 PM", "14:00"),
    ("2:00 pm", "14:00"),
    ("2pm", "14:00"),
    ("2 p.m.", "14:00"),
    ("12:00 PM", "12:00"),
    ("12:15 AM", "00:15"),
    ("11:59 PM", "23:59"),
    ("14:00", "14:00"),
    ("9:05", "09:05"),
    ("09:05:30", "09:05"),
    ("  7:45 AM ", "07:45"),
])
def test_canonical_time(raw, expected):
    assert canonical_time(raw) == expected


@pytest.mark.parametrize("raw", [None, "", "noon-ish", "25:00", "13:00 PM", "10:75", "0 AM", 1400])
def test_canonical_time_rejects(raw):
    assert canonical_time(raw) is None


def test_missing_end_is_start_plus_one_hour():
    result = normalize(_event(start="2:00 PM"))
    assert result.start_time == "14:00"
    assert result.end_time == "15:00"


def test_end_wraps_past_midnight():
    result = normalize(_event(start="23:30"))
    assert result.end_time == "00:30"


@pytest.mark.parametrize("start", ["00:00", "07:15", "12:00", "22:59", "23:00", "23:59"])
def test_inferred_end_is_exactly_sixty_minutes_later(start):
    result = normalize(_event(start=start))
    start_minutes = int(start[:2]) * 60 + int(start[3:])
    end_minutes = int(result.end_time[:2]) * 60 + int(result.end_time[3:])
    assert (end_minutes - start_minutes) % (24 * 60) == 60


def test_explicit_end_is_kept():
    result = normalize(_event(start="9:00 AM", end="9:30 AM"))
    assert (result.start_time, result.end_time) == ("09:00", "09:30")


def test_canonical_event_is_unchanged():
    event = _event(start="14:00", end="15:00")
    assert normalize(event) == event
    assert normalize(normalize(event)) == normalize(event)


def test_unparseable_start_is_left_unset():
    result = normalize(_event(start="after lunch"))
    assert result.start_time is None
    assert result.end_time is None


def test_no_times_is_all_day():
    event = _event()
    assert normalize(event) == event


def test_input_event_is_not_modified():
    event = _event(start="2:00 PM")
    normalize(event)
    assert event.start_time == "2:00 PM"
    assert event.end_time is None


def test_add_minutes():
    assert add_minutes("10:30", 45) == "11:15"
    assert add_minutes("23:45", 30) == "00:15"
