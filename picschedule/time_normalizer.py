"""
Time normalizer for ExtractedEvent start/end times.
Canonicalizes 12-hour and 24-hour times to HH:MM and fills in a missing
end time. Never raises: unparseable times are dropped.
"""

import re
from dataclasses import replace
from datetime import date, datetime, time, timedelta
from typing import Optional

from picschedule.event_models import ExtractedEvent
from picschedule.logging_helper import Log

DEFAULT_DURATION_MINUTES = 60

# Fixed anchor so time arithmetic never depends on the event's calendar date
_ANCHOR_DATE = date(2000, 1, 1)

_TWELVE_HOUR = re.compile(
    r"^(?P<hour>\d{1,2})(?::(?P<minute>\d{2}))?(?::\d{2})?\s*(?P<meridiem>[ap])\.?\s*m?\.?$",
    re.IGNORECASE,
)
_TWENTY_FOUR_HOUR = re.compile(r"^(?P<hour>\d{1,2})[:.h](?P<minute>\d{2})(?::\d{2})?$", re.IGNORECASE)


def canonical_time(value) -> Optional[str]:
    """
    Convert a time string to canonical 24-hour HH:MM.

    Args:
        value: e.g. "2:00 PM", "2pm", "14:00", "14:00:00"

    Returns:
        "HH:MM", or None if the value is not a recognizable time
    """
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None

    match = _TWELVE_HOUR.match(text)
    if match:
        hour = int(match.group("hour"))
        minute = int(match.group("minute") or 0)
        if not 1 <= hour <= 12 or minute > 59:
            return None
        hour = hour % 12
        if match.group("meridiem").lower() == "p":
            hour += 12
        return f"{hour:02d}:{minute:02d}"

    match = _TWENTY_FOUR_HOUR.match(text)
    if match:
        hour = int(match.group("hour"))
        minute = int(match.group("minute"))
        if hour > 23 or minute > 59:
            return None
        return f"{hour:02d}:{minute:02d}"

    return None


def add_minutes(hhmm: str, minutes: int) -> str:
    """Add minutes to a canonical HH:MM time, wrapping past midnight."""
    start = datetime.combine(_ANCHOR_DATE, time.fromisoformat(hhmm))
    return (start + timedelta(minutes=minutes)).strftime("%H:%M")


def normalize(event: ExtractedEvent) -> ExtractedEvent:
    """
    Canonicalize the event's times and infer a missing end time.

    Args:
        event: ExtractedEvent from the response parser

    Returns:
        A new ExtractedEvent; the input is not modified
    """
    start = canonical_time(event.start_time)
    end = canonical_time(event.end_time)

    if event.start_time and start is None:
        Log.warn(f"Unparseable start time '{event.start_time}' for '{event.title}' - leaving unset")
    if event.end_time and end is None:
        Log.warn(f"Unparseable end time '{event.end_time}' for '{event.title}' - leaving unset")

    inferred = False
    if start is not None and end is None:
        end = add_minutes(start, DEFAULT_DURATION_MINUTES)
        inferred = True

    Log.kv({
        "stage": "normalize",
        "title": event.title,
        "start": start,
        "end": end,
        "end_inferred": inferred,
    })
    return replace(event, start_time=start, end_time=end)
