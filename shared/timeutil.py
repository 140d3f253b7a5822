from __future__ import annotations

import time
from datetime import date, datetime, timedelta, timezone
from typing import Optional


def now_ms() -> int:
    return int(time.time() * 1000)


def parse_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Accept 'YYYY-MM-DD', ISO-8601 with 'Z' or an offset, or naive ISO.
    Naive values are taken as UTC. Returns None when unparseable.
    """
    if not value:
        return None
    s = value.strip()
    try:
        if len(s) == 10:
            d = date.fromisoformat(s)
            return datetime(d.year, d.month, d.day, tzinfo=timezone.utc)
        dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def date_bound_ms(value: Optional[str], *, end_of_day: bool = False) -> Optional[int]:
    """
    Filter bound in epoch ms. A bare date used as an upper bound covers
    the whole day (23:59:59.999).
    """
    dt = parse_datetime(value)
    if dt is None:
        return None
    if end_of_day and len(value.strip()) == 10:
        dt = dt + timedelta(days=1) - timedelta(milliseconds=1)
    return int(dt.timestamp() * 1000)


def iso_to_local_str(ts: Optional[str], fmt: str = "%Y-%m-%d %H:%M") -> str:
    """
    Convert ISO-8601 UTC ('...Z' or '+00:00') to local time string.
    Returns '—' if ts is falsy or invalid.
    """
    dt = parse_datetime(ts)
    if dt is None:
        return "—"
    return dt.astimezone().strftime(fmt)
