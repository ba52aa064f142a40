"""
Response parser for model output.
Turns noisy free-text model output into ExtractedEvents, repairing the
common failure modes (markdown fences, commentary around the JSON) and
keeping the raw text for manual review when nothing can be recovered.
"""

import json
import re
from datetime import date, datetime
from typing import List, Optional, Tuple

from dateutil import parser as dateutil_parser

from picschedule.errors import EmptyResponseError
from picschedule.event_models import ExtractedEvent
from picschedule.logging_helper import Log

DEFAULT_TRUNCATE_AT = 300
UNPARSED_TITLE = "Extracted Information"
UNTITLED = "Untitled Event"

_FENCE = re.compile(r"```[a-zA-Z]*")
_TIME_RANGE = re.compile(r"^(?P<start>.+?)\s*(?:-|–|—|\bto\b|\buntil\b)\s*(?P<end>.+)$", re.IGNORECASE)

# (pattern, strptime format) pairs tried before the permissive parser
_DATE_FORMATS = (
    (re.compile(r"\d{4}-\d{1,2}-\d{1,2}"), "%Y-%m-%d"),
    (re.compile(r"\d{1,2}/\d{1,2}/\d{4}"), "%m/%d/%Y"),
    (re.compile(r"\d{1,2}-\d{1,2}-\d{4}"), "%m-%d-%Y"),
)
_PARTIAL_DATE_DEFAULTS = (datetime(1, 1, 1), datetime(4, 2, 2))


def truncate_text(text: str, max_length: int = DEFAULT_TRUNCATE_AT) -> str:
    if len(text) <= max_length:
        return text
    return text[:max_length].strip() + "..."


def parse_date(value) -> Optional[date]:
    """
    Permissive multi-format date parser.

    Tries ISO YYYY-MM-DD, MM/DD/YYYY and MM-DD-YYYY first, then falls back
    to dateutil for anything else that names a full date ("June 9, 2025").
    Partial dates such as "Friday" or "the 10th" are rejected rather than
    completed from today.

    Returns:
        date, or None if nothing matched
    """
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()

    for pattern, fmt in _DATE_FORMATS:
        match = pattern.search(text)
        if match:
            try:
                return datetime.strptime(match.group(), fmt).date()
            except ValueError:
                continue

    # A field dateutil had to fill in differs between the two defaults
    try:
        first, second = (dateutil_parser.parse(text, default=d).date() for d in _PARTIAL_DATE_DEFAULTS)
    except (ValueError, OverflowError):
        return None
    if first != second:
        return None
    return first


def _strip_fences(text: str) -> str:
    return _FENCE.sub("", text).strip()


def _find_embedded_array(text: str):
    """
    Decode the event array embedded in text.

    Every "[" that starts a complete JSON array is a candidate. The first
    non-empty array of objects wins; otherwise the longest array does, so a
    bracketed aside like "[1]" in the commentary never shadows the events.
    """
    decoder = json.JSONDecoder()
    best = None
    for match in re.finditer(r"\[", text):
        try:
            value, _ = decoder.raw_decode(text, match.start())
        except ValueError:
            continue
        if not isinstance(value, list):
            continue
        if value and all(isinstance(item, dict) for item in value):
            return value
        if best is None or len(value) > len(best):
            best = value
    if best is None:
        raise ValueError("No JSON array found in response")
    return best


def _load_events_json(text: str):
    try:
        return json.loads(text)
    except ValueError:
        Log.info("Direct JSON parse failed - searching for embedded array")
    return _find_embedded_array(text)


def _as_text(value) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _split_time_range(value: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """'2:00 PM - 3:00 PM' -> ('2:00 PM', '3:00 PM'); anything else -> (value, None)."""
    if not value:
        return value, None
    match = _TIME_RANGE.match(value)
    if not match:
        return value, None
    return match.group("start"), match.group("end")


def event_from_dict(item: dict) -> ExtractedEvent:
    """
    Build an ExtractedEvent from one element of the model's array.
    Times are passed through as-is; the time normalizer canonicalizes them.
    """
    raw_date = _as_text(item.get("date"))
    parsed = parse_date(raw_date)
    date_text = parsed.isoformat() if parsed else (raw_date or "")

    title = _as_text(item.get("title"))
    if not title:
        title = f"Event on {date_text}" if date_text else UNTITLED

    start = _as_text(item.get("start_time") or item.get("startTime"))
    end = _as_text(item.get("end_time") or item.get("endTime"))
    if start is None:
        start, range_end = _split_time_range(_as_text(item.get("time")))
        end = end or range_end

    return ExtractedEvent(
        title=title,
        date=date_text,
        is_valid_date=parsed is not None,
        start_time=start,
        end_time=end,
        description=_as_text(item.get("description") or item.get("notes")),
        location=_as_text(item.get("location")),
    )


def event_from_value(item) -> ExtractedEvent:
    """An array element that is not an object still becomes an event, kept for review."""
    return ExtractedEvent(title=UNTITLED, date="", is_valid_date=False, description=_as_text(item))


def _unparsed_event(raw_text: str, truncate_at: int, today: date) -> ExtractedEvent:
    return ExtractedEvent(
        title=UNPARSED_TITLE,
        date=today.isoformat(),
        is_valid_date=True,
        description=truncate_text(raw_text.strip(), truncate_at),
    )


def parse(raw_text: str, truncate_at: int = DEFAULT_TRUNCATE_AT, today: Optional[date] = None) -> List[ExtractedEvent]:
    """
    Parse model output into ExtractedEvents.

    Args:
        raw_text: Model message content
        truncate_at: Character cap for the raw-text fallback event
        today: Date for the raw-text fallback event (defaults to today)

    Returns:
        One event per element of the model's array, or a single
        "Extracted Information" event carrying the truncated raw text if no
        array could be recovered

    Raises:
        EmptyResponseError: raw_text is empty
    """
    Log.section("Response Parser")
    if raw_text is None or not raw_text.strip():
        Log.warn("Empty response from model")
        raise EmptyResponseError()

    today = today or date.today()
    cleaned = _strip_fences(raw_text)

    try:
        data = _load_events_json(cleaned)
    except ValueError as e:
        Log.warn(f"Could not parse JSON from response: {e}")
        Log.kv({"stage": "parse", "result": "fallback", "reason": "json_parse_error", "raw_chars": len(raw_text)})
        return [_unparsed_event(raw_text, truncate_at, today)]

    if isinstance(data, dict):
        # A bare object, or an {"events": [...]} wrapper
        data = data["events"] if isinstance(data.get("events"), list) else [data]

    if not isinstance(data, list):
        Log.warn(f"Model response is not an array ({type(data).__name__})")
        Log.kv({"stage": "parse", "result": "fallback", "reason": "not_an_array"})
        return [_unparsed_event(raw_text, truncate_at, today)]

    events = []
    for index, item in enumerate(data):
        if isinstance(item, dict):
            events.append(event_from_dict(item))
        else:
            Log.warn(f"Element {index} is not an object: {str(item)[:80]}")
            events.append(event_from_value(item))

    Log.info(f"Extracted {len(events)} event(s) from model response")
    Log.kv({
        "stage": "parse",
        "result": "success",
        "events": len(events),
        "invalid_dates": sum(1 for e in events if not e.is_valid_date),
    })
    return events
