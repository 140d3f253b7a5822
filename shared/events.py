from __future__ import annotations

import json
import logging
import uuid
from collections import Counter
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

from shared.models import NotificationEvent, new_notification_id
from shared.paths import atomic_write, slugify
from shared.timeutil import now_ms

logger = logging.getLogger(__name__)

CountsCallback = Callable[[Dict[str, int]], None]


# ─────────────────────────────────────────────────────────────────────────────
# Activity log schema
# ─────────────────────────────────────────────────────────────────────────────
@dataclass
class ActivityEntry:
    time: int
    user: str                          # acting librarian / reviewer
    stage: str                         # 'SENT_BACK' | 'SENT' | ...
    filename: str
    notes: str
    action: str                        # 'sent_back' | 'sent' | ...

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ─────────────────────────────────────────────────────────────────────────────
# IO helpers
# ─────────────────────────────────────────────────────────────────────────────
def write_event(events_dir: Path, event: Dict[str, Any], kind: str) -> Path:
    """
    Persist one event as its own JSON file; never rewrites an existing one.
    File names sort by time and carry a random tail, so writers in other
    processes cannot pick the same name:
      notifications/evt_1727445801000_notification_<id>_<hex>.json
    """
    events_dir.mkdir(parents=True, exist_ok=True)
    ms = int(event.get("time") or now_ms())
    ident = slugify(str(event.get("id") or event.get("filename") or "event"))
    path = events_dir / f"evt_{ms:013d}_{kind}_{ident}_{uuid.uuid4().hex[:8]}.json"
    atomic_write(path, json.dumps(event, ensure_ascii=False, indent=2).encode("utf-8"))
    return path


def _iter_event_files(events_dir: Path) -> Iterable[Path]:
    if not events_dir.exists():
        return []
    return sorted(events_dir.glob("evt_*.json"))


def read_events(events_dir: Path) -> List[Dict[str, Any]]:
    """All events, oldest first; unreadable files are skipped."""
    out: List[Dict[str, Any]] = []
    for fp in _iter_event_files(events_dir):
        try:
            obj = json.loads(fp.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Skipping unreadable event %s: %s", fp.name, e)
            continue
        if isinstance(obj, dict):
            out.append(obj)
    return sorted(out, key=lambda e: int(e.get("time") or 0))


# ─────────────────────────────────────────────────────────────────────────────
# Notifications
# ─────────────────────────────────────────────────────────────────────────────
class NotificationEmitter:
    """Append-only notification log inside the shared store folder."""

    def __init__(self, notifications_dir: Path, activity_dir: Optional[Path] = None) -> None:
        self.notifications_dir = notifications_dir
        self.activity_dir = activity_dir

    def emit(self, target_user: str, filename: str, target_stage: str, message: str) -> Optional[NotificationEvent]:
        """
        Record a notification for `target_user`. Write failures are logged and
        reported as None; they never reach the caller's transition.
        """
        event = NotificationEvent(
            id=new_notification_id(),
            filename=filename,
            target_user=target_user,
            target_stage=target_stage,
            time=now_ms(),
            message=message,
        )
        try:
            write_event(self.notifications_dir, event.to_dict(), "notification")
        except OSError as e:
            logger.error("Could not write notification for %s (%s): %s", target_user, filename, e)
            return None
        logger.info("Notified %s about %s (%s)", target_user, filename, target_stage)
        return event

    def log_activity(self, entry: ActivityEntry) -> None:
        if self.activity_dir is None:
            return
        try:
            write_event(self.activity_dir, entry.to_dict(), entry.action)
        except OSError as e:
            logger.error("Could not write activity entry for %s: %s", entry.filename, e)

    def read_notifications(self, target_user: Optional[str] = None, *, since: int = 0) -> List[NotificationEvent]:
        out: List[NotificationEvent] = []
        for obj in read_events(self.notifications_dir):
            ev = NotificationEvent.from_dict(obj)
            if target_user is not None and ev.target_user != target_user:
                continue
            if ev.time < since:
                continue
            out.append(ev)
        return out

    def notification_counts(self, target_user: str, *, since: int = 0,
                            callback: Optional[CountsCallback] = None) -> Dict[str, int]:
        """Pending notifications per target stage; optionally pushed to `callback`."""
        counts = dict(Counter(ev.target_stage for ev in self.read_notifications(target_user, since=since)))
        if callback is not None:
            callback(counts)
        return counts

    def read_activity(self) -> List[ActivityEntry]:
        if self.activity_dir is None:
            return []
        out: List[ActivityEntry] = []
        for obj in read_events(self.activity_dir):
            try:
                out.append(ActivityEntry(**obj))
            except TypeError:
                logger.warning("Skipping malformed activity entry: %r", obj)
        return out
