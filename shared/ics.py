from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional, Union

from shared.models import Submission
from shared.timeutil import parse_datetime

DateLike = Union[str, datetime]


def _ics_stamp(value: DateLike) -> str:
    """-> 20251004T235900Z (UTC, no separators, no fraction)."""
    dt = parse_datetime(value) if isinstance(value, str) else value
    if dt is None:
        raise ValueError(f"Invalid calendar date {value!r}")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def generate_ics(title: str, description: str, start: DateLike, end: DateLike) -> str:
    """Single-event VCALENDAR document."""
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "BEGIN:VEVENT",
        f"SUMMARY:{title}",
        f"DESCRIPTION:{description}",
        f"DTSTART:{_ics_stamp(start)}",
        f"DTEND:{_ics_stamp(end)}",
        "END:VEVENT",
        "END:VCALENDAR",
    ]
    return "\n".join(lines)


def deadline_calendar(record: Submission) -> Optional[tuple[str, str]]:
    """(title, ics text) for a record's deadline, or None when it has none."""
    if not record.deadline:
        return None
    title = f"Review Deadline: {record.filename or record.owner or 'Document'}"
    description = f"Deadline for document: {record.filename or ''}"
    return title, generate_ics(title, description, record.deadline, record.deadline)
