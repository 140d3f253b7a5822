# shared/due.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from shared.timeutil import iso_to_local_str, parse_datetime

# A submission's `deadline` is either a bare date ("2025-10-04") or a full
# ISO-8601 timestamp ("2025-10-04T23:59:00Z"). It is set independently of
# the stage and never creates a new version.


def normalise_deadline(value: Optional[str]) -> Optional[str]:
    """Empty -> None (clear). Anything unparseable raises ValueError."""
    if value is None or not value.strip():
        return None
    if parse_datetime(value) is None:
        raise ValueError(f"Invalid deadline {value!r}; expected YYYY-MM-DD")
    return value.strip()


def is_overdue(deadline: Optional[str], now: Optional[datetime] = None) -> bool:
    dt = parse_datetime(deadline)
    if dt is None:
        return False
    # a bare date is due at the end of that day
    if len((deadline or "").strip()) == 10:
        dt = dt.replace(hour=23, minute=59, second=59)
    now = now or datetime.now(timezone.utc)
    return now > dt


def deadline_label(deadline: Optional[str]) -> str:
    if not deadline:
        return ""
    if len(deadline.strip()) == 10:
        return deadline.strip()
    label = iso_to_local_str(deadline)
    return label if label != "—" else deadline
