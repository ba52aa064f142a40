from __future__ import annotations

import json
from datetime import date

import pytest

from picschedule.errors import EmptyResponseError
from picschedule.response_parser import UNPARSED_TITLE, parse, parse_date, truncate_text

TODAY = date(2025, 6, 1)

EVENTS = [
    {"title": "Team Sync", "date": "2025-06-09", "start_time": "2:00 PM", "description": "Weekly"},
    {"title": "Dentist", "date": "06/12/2025", "time": "9:30 AM", "location": "Main St"},
    {"title": "Concert", "date": "07-04-2025"},
]


def test_well_formed_array_yields_one_event_per_element():
    events = parse(json.dumps(EVENTS), today=TODAY)

    assert len(events) == 3
    assert [e.title for e in events] == ["Team Sync", "Dentist", "Concert"]
    assert [e.date for e in events] == ["2025-06-09", "2025-06-12", "2025-07-04"]
    assert all(e.is_valid_date for e in events)
    assert events[0].start_time == "2:00 PM"
    assert events[1].start_time == "9:30 AM"
    assert events[1].location == "Main St"


@pytest.mark.parametrize("wrap", [
    "```json\n{}\n```",
    "```\n{}\n```",
    "Here are the events I found:\n{}\nLet me know if you need anything else.",
    "Sure! ```json\n{}\n``` Those are all the [relevant] events.",
    "[Note] The image is a flyer.\n{}",
    "I found [1] event:\n```json\n{}\n```",
    "Events [2 of 3 legible]: {} (see [1, 2])",
])
def test_wrapped_array_parses_like_bare_array(wrap):
    bare = json.dumps(EVENTS)
    assert parse(wrap.format(bare), today=TODAY) == parse(bare, today=TODAY)


def test_unparseable_text_becomes_single_review_event():
    raw = "I could not find a structured schedule, but the poster mentions a bake sale next Friday."

    events = parse(raw, today=TODAY)

    assert len(events) == 1
    assert events[0].title == UNPARSED_TITLE
    assert events[0].date == "2025-06-01"
    assert events[0].is_valid_date is True
    assert events[0].description == raw


def test_fallback_description_is_truncated():
    raw = "no json here " * 100

    events = parse(raw, truncate_at=50, today=TODAY)

    assert events[0].description.endswith("...")
    assert len(events[0].description) <= 53


def test_non_array_json_falls_back():
    events = parse('"just a string"', today=TODAY)
    assert events[0].title == UNPARSED_TITLE


def test_single_object_and_events_wrapper_are_accepted():
    single = parse(json.dumps(EVENTS[0]), today=TODAY)
    wrapped = parse(json.dumps({"events": EVENTS}), today=TODAY)

    assert [e.title for e in single] == ["Team Sync"]
    assert len(wrapped) == 3


def test_empty_array_means_no_events():
    assert parse("[]", today=TODAY) == []


@pytest.mark.parametrize("raw", ["", "   \n  "])
def test_empty_response_raises(raw):
    with pytest.raises(EmptyResponseError):
        parse(raw)


def test_invalid_date_is_kept_and_flagged():
    events = parse(json.dumps([{"title": "Soon", "date": "TBD"}]), today=TODAY)

    assert len(events) == 1
    assert events[0].is_valid_date is False
    assert events[0].date == "TBD"


def test_blank_title_gets_placeholder():
    events = parse(json.dumps([{"title": "", "date": "2025-06-09"}, {"date": None}]), today=TODAY)

    assert events[0].title == "Event on 2025-06-09"
    assert events[1].title == "Untitled Event"
    assert events[1].is_valid_date is False


def test_every_array_element_becomes_an_event():
    events = parse(json.dumps([{"title": "A", "date": "2025-06-09"}, "Choir practice 6/10", None]), today=TODAY)

    assert len(events) == 3
    assert events[0].title == "A"
    assert events[1].title == "Untitled Event"
    assert events[1].description == "Choir practice 6/10"
    assert events[1].is_valid_date is False
    assert events[2].title == "Untitled Event"
    assert events[2].description is None


def test_time_range_is_split():
    events = parse(json.dumps([{"title": "Workshop", "date": "2025-06-09", "time": "2:00 PM - 4:30 PM"}]))

    assert events[0].start_time == "2:00 PM"
    assert events[0].end_time == "4:30 PM"


def test_camel_case_keys_and_notes():
    events = parse(json.dumps([{
        "title": "Standup", "date": "2025-06-09", "startTime": "09:00", "endTime": "09:15", "notes": "Room 4",
    }]))

    assert events[0].start_time == "09:00"
    assert events[0].end_time == "09:15"
    assert events[0].description == "Room 4"


@pytest.mark.parametrize("value, expected", [
    ("2025-06-09", date(2025, 6, 9)),
    ("2025-6-9", date(2025, 6, 9)),
    ("06/09/2025", date(2025, 6, 9)),
    ("06-09-2025", date(2025, 6, 9)),
    ("June 9, 2025", date(2025, 6, 9)),
    ("2025-06-09T14:00:00Z", date(2025, 6, 9)),
])
def test_parse_date_formats(value, expected):
    assert parse_date(value) == expected


@pytest.mark.parametrize("value", [None, "", "TBD", "sometime soon", "10", "Friday", "June 2025"])
def test_parse_date_rejects(value):
    assert parse_date(value) is None


def test_truncate_text():
    assert truncate_text("short", 10) == "short"
    assert truncate_text("abcdefghij klm", 10) == "abcdefghij..."
