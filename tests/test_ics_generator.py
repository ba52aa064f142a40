from __future__ import annotations

from picschedule.event_models import ExtractedEvent
from picschedule.ics_generator import default_ics_filename, generate_ics, write_ics


def _unfold(ics: str) -> str:
    return ics.replace("\r\n ", "")


def test_timed_event():
    ics = generate_ics([ExtractedEvent(
        title="Team Sync", date="2025-06-09", is_valid_date=True,
        start_time="14:00", end_time="15:00", description="Weekly, with notes; bring laptop",
        location="Room 4",
    )])

    assert ics.startswith("BEGIN:VCALENDAR\r\n")
    assert ics.endswith("END:VCALENDAR\r\n")
    assert "DTSTART:20250609T140000\r\n" in ics
    assert "DTEND:20250609T150000\r\n" in ics
    assert "SUMMARY:Team Sync\r\n" in ics
    assert "DESCRIPTION:Weekly\\, with notes\\; bring laptop\r\n" in ics
    assert "LOCATION:Room 4\r\n" in ics
    assert ics.count("BEGIN:VEVENT") == 1


def test_event_without_time_is_all_day():
    ics = generate_ics([ExtractedEvent(title="Fair", date="2025-06-30", is_valid_date=True)])

    assert "DTSTART;VALUE=DATE:20250630\r\n" in ics
    assert "DTEND;VALUE=DATE:20250701\r\n" in ics


def test_end_past_midnight_lands_on_next_day():
    ics = generate_ics([ExtractedEvent(
        title="Late show", date="2025-06-09", is_valid_date=True, start_time="23:30", end_time="00:30",
    )])

    assert "DTEND:20250610T003000\r\n" in ics


def test_end_equal_to_start_gets_default_duration():
    ics = generate_ics([ExtractedEvent(
        title="Drop-in", date="2025-06-09", is_valid_date=True, start_time="14:00", end_time="14:00",
    )])

    assert "DTEND:20250609T150000\r\n" in ics


def test_reversed_range_is_logged(capsys):
    ics = generate_ics([ExtractedEvent(
        title="Matinee", date="2025-06-09", is_valid_date=True, start_time="15:00", end_time="14:00",
    )])

    assert "DTEND:20250610T140000\r\n" in ics
    assert "[WARN] 'Matinee' ends (14:00) before it starts (15:00)" in capsys.readouterr().out


def test_invalid_dates_are_skipped():
    ics = generate_ics([
        ExtractedEvent(title="Someday", date="TBD", is_valid_date=False),
        ExtractedEvent(title="Real", date="2025-06-09", is_valid_date=True),
    ])

    assert ics.count("BEGIN:VEVENT") == 1
    assert "Someday" not in ics


def test_long_lines_are_folded():
    description = "x" * 300
    ics = generate_ics([ExtractedEvent(title="Long", date="2025-06-09", is_valid_date=True, description=description)])

    for line in ics.split("\r\n"):
        assert len(line.encode("utf-8")) <= 75
    assert f"DESCRIPTION:{description}" in _unfold(ics)


def test_write_ics_keeps_crlf(tmp_path):
    path = write_ics([ExtractedEvent(title="Fair", date="2025-06-30", is_valid_date=True)], tmp_path / "out" / "fair.ics")

    assert path.exists()
    assert b"\r\nEND:VCALENDAR\r\n" in path.read_bytes()


def test_default_filename():
    name = default_ics_filename("Team Sync: Q3/Planning!")
    assert name.startswith("PicSchedule_Team_Sync_Q3Planning_")
    assert name.endswith(".ics")
