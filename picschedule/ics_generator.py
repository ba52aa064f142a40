"""
ICS Generator for exporting extracted events as iCalendar (.ics) files.
Generates RFC5545-compliant calendars the user can import into any calendar app.
"""

import hashlib
import re
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Iterable, Optional, Union

from dateutil import tz as dateutil_tz

from picschedule.event_models import ExtractedEvent
from picschedule.logging_helper import Log
from picschedule.time_normalizer import DEFAULT_DURATION_MINUTES


def _escape_ical_text(text: Optional[str]) -> str:
    """
    Escape text for iCalendar format (RFC5545).
    Escapes commas, semicolons, backslashes, and newlines.

    Args:
        text: Text to escape

    Returns:
        Escaped text safe for iCalendar
    """
    if text is None:
        return ""

    # Replace backslashes first (before other replacements)
    text = text.replace('\\', '\\\\')
    text = text.replace(';', '\\;')
    text = text.replace(',', '\\,')
    text = text.replace('\r', '')
    text = text.replace('\n', '\\n')
    return text


def _fold_line(line: str) -> str:
    """
    Fold a content line to 75 octets (RFC5545 3.1).
    Continuation lines start with a single space.
    """
    lines = []
    current_line = ""

    for char in line:
        test_line = current_line + char
        if len(test_line.encode('utf-8')) <= 75:
            current_line = test_line
        else:
            lines.append(current_line)
            current_line = " " + char

    lines.append(current_line)
    return '\r\n'.join(lines)


def _format_ical_datetime(dt: datetime) -> str:
    """
    Format datetime to iCalendar format (UTC).

    Args:
        dt: UTC datetime object

    Returns:
        Formatted datetime string (YYYYMMDDTHHMMSSZ)
    """
    return dt.strftime('%Y%m%dT%H%M%SZ')


def _event_lines(event: ExtractedEvent, stamp: str) -> list:
    day = date.fromisoformat(event.date)
    uid_string = f"{event.date}_{event.start_time}_{event.title}"
    uid = hashlib.md5(uid_string.encode()).hexdigest() + "@picschedule.local"

    lines = ["BEGIN:VEVENT", f"UID:{uid}", f"DTSTAMP:{stamp}"]

    if event.has_time():
        start = datetime.combine(day, datetime.strptime(event.start_time, "%H:%M").time())
        end = start + timedelta(minutes=DEFAULT_DURATION_MINUTES)
        if event.end_time:
            explicit_end = datetime.combine(day, datetime.strptime(event.end_time, "%H:%M").time())
            if explicit_end > start:
                end = explicit_end
            elif explicit_end < start:
                # Either an overnight event or a reversed range from the model
                Log.warn(f"'{event.title}' ends ({event.end_time}) before it starts ({event.start_time}); "
                         "placing the end on the next day")
                end = explicit_end + timedelta(days=1)
        # Floating local time: the calendar app places it in the user's zone
        lines.append(f"DTSTART:{start.strftime('%Y%m%dT%H%M%S')}")
        lines.append(f"DTEND:{end.strftime('%Y%m%dT%H%M%S')}")
    else:
        lines.append(f"DTSTART;VALUE=DATE:{day.strftime('%Y%m%d')}")
        lines.append(f"DTEND;VALUE=DATE:{(day + timedelta(days=1)).strftime('%Y%m%d')}")

    lines.append(f"SUMMARY:{_escape_ical_text(event.title)}")
    if event.description:
        lines.append(f"DESCRIPTION:{_escape_ical_text(event.description)}")
    if event.location:
        lines.append(f"LOCATION:{_escape_ical_text(event.location)}")
    lines.append("END:VEVENT")
    return lines


def generate_ics(events: Iterable[ExtractedEvent], calendar_name: str = "PicSchedule") -> str:
    """
    Render extracted events as an iCalendar document.

    Events without a start time become all-day events. Events whose date
    did not parse are skipped since they cannot be placed on a calendar.

    Args:
        events: Normalized ExtractedEvents
        calendar_name: X-WR-CALNAME shown by calendar apps

    Returns:
        ICS text with CRLF line endings
    """
    Log.section("ICS Generator")

    stamp = _format_ical_datetime(datetime.now(dateutil_tz.tzutc()))
    ics_lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "PRODID:-//PicSchedule//PicSchedule//EN",
        "CALSCALE:GREGORIAN",
        "METHOD:PUBLISH",
        f"X-WR-CALNAME:{_escape_ical_text(calendar_name)}",
    ]

    exported = 0
    skipped = 0
    for event in events:
        if not event.is_valid_date:
            Log.warn(f"Skipping '{event.title}' - date '{event.date}' is not valid")
            skipped += 1
            continue
        ics_lines.extend(_event_lines(event, stamp))
        exported += 1

    ics_lines.append("END:VCALENDAR")

    Log.kv({"stage": "ics", "result": "success", "events": exported, "skipped": skipped})
    return '\r\n'.join(_fold_line(line) for line in ics_lines) + '\r\n'


def write_ics(events: Iterable[ExtractedEvent], path: Union[str, Path], calendar_name: str = "PicSchedule") -> Path:
    """Write generate_ics() output to path and return it."""
    ics_path = Path(path)
    ics_path.parent.mkdir(parents=True, exist_ok=True)
    # newline='' keeps the CRLF endings RFC5545 requires
    with open(ics_path, 'w', encoding='utf-8', newline='') as ics_file:
        ics_file.write(generate_ics(events, calendar_name))
    Log.info(f"ICS file generated: {ics_path}")
    return ics_path


_SAFE_NAME = re.compile(r'[^\w\s-]')


def default_ics_filename(title: str) -> str:
    """Filename of the form PicSchedule_<title>_<timestamp>.ics"""
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    safe_title = _SAFE_NAME.sub('', title)[:50]
    safe_title = re.sub(r'[-\s]+', '_', safe_title)
    return f"PicSchedule_{safe_title}_{timestamp}.ics"
