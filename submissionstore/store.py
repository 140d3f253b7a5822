from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

from shared.identity import base_identity
from shared.models import Submission
from shared.paths import atomic_write, store_paths
from shared.timeutil import now_ms

from .legacy import decode_legacy_content, normalise_record
from .storage.cas import get_bytes, put_bytes, remove_unreferenced

logger = logging.getLogger(__name__)

RecordPredicate = Callable[[Submission], bool]
ActorPredicate = Callable[[str], RecordPredicate]


class StoreError(Exception):
    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class StoreCorrupted(StoreError):
    """submissions.json exists but is not a JSON list of records."""


class StaleSubmission(StoreError):
    """Raised by strict upserts when another actor wrote a newer version first."""


def dedupe_current(records: Iterable[Submission]) -> List[Submission]:
    """
    Keep only the newest version (max `time`) of every base identity.
    Each identity keeps the position where it was first seen.
    """
    current: Dict[str, Submission] = {}
    for r in records:
        key = base_identity(r.filename)
        if key not in current or r.time > current[key].time:
            current[key] = r
    return list(current.values())


def _same_version(a: Submission, b: Optional[Submission]) -> bool:
    return b is not None and a.filename == b.filename and a.time == b.time


class SubmissionStore:
    """
    The shared record set. Every mutation rewrites submissions.json in full
    (temp file + atomic rename) before returning; other sessions see the
    change on their next read.
    """

    def __init__(self, store_root: Path) -> None:
        self.paths = store_paths(store_root)
        self._lock = threading.RLock()

    @property
    def root(self) -> Path:
        return self.paths["root"]

    # ── read
    def _read_raw(self) -> List[dict]:
        fp = self.paths["submissions"]
        if not fp.exists():
            return []
        try:
            data = json.loads(fp.read_text(encoding="utf-8") or "[]")
        except ValueError as e:
            raise StoreCorrupted(f"{fp} is not valid JSON: {e}") from e
        if not isinstance(data, list):
            raise StoreCorrupted(f"{fp} does not hold a list of submissions")
        return [d for d in data if isinstance(d, dict)]

    def load(self) -> List[Submission]:
        """
        All stored versions, normalised (legacy payloads materialised,
        filenames repaired). The first load that changes anything writes the
        normalised set back, so each legacy payload is decoded once.
        """
        with self._lock:
            parsed = [Submission.from_dict(d) for d in self._read_raw()]
            records = [normalise_record(r, self.paths["objects"]) for r in parsed]
            migrated = sum(1 for new, old in zip(records, parsed) if new is not old)
            if migrated:
                self._write(records)
                logger.info("Normalised %d stored record(s) in %s", migrated, self.paths["submissions"])
        return records

    def current_view(self, records: Optional[List[Submission]] = None) -> List[Submission]:
        return dedupe_current(self.load() if records is None else records)

    def find(self, filename: str) -> Optional[Submission]:
        matches = [r for r in self.load() if r.filename == filename]
        return max(matches, key=lambda r: r.time) if matches else None

    def current_for(self, identity: str, records: Optional[List[Submission]] = None) -> Optional[Submission]:
        versions = self.versions(identity, records)
        return versions[-1] if versions else None

    def versions(self, identity: str, records: Optional[List[Submission]] = None) -> List[Submission]:
        """History of one logical document, oldest first."""
        pool = self.load() if records is None else records
        return sorted((r for r in pool if base_identity(r.filename) == identity), key=lambda r: r.time)

    def next_time(self, identity: str, records: Optional[List[Submission]] = None) -> int:
        """Version clock: wall time in ms, but always past every stored version of `identity`."""
        latest = self.current_for(identity, records)
        floor = latest.time + 1 if latest else 0
        return max(now_ms(), floor)

    # ── write
    def _write(self, records: List[Submission]) -> None:
        fp = self.paths["submissions"]
        payload = json.dumps([r.to_dict() for r in records], ensure_ascii=False, indent=2)
        atomic_write(fp, payload.encode("utf-8"))
        logger.debug("Persisted %d submission record(s) to %s", len(records), fp)

    def replace(self, records: List[Submission]) -> None:
        with self._lock:
            self._write(list(records))

    def upsert(self, new_version: Submission, previous: Optional[Submission] = None,
               *, strict: bool = False) -> Submission:
        """
        Insert `new_version` and drop what it supersedes in the same write:
        `previous` itself plus every record of the same identity in the stage
        being left or the stage being entered.
        """
        identity = base_identity(new_version.filename)
        with self._lock:
            records = self.load()
            current = self.current_for(identity, records)
            if strict and previous is not None and current is not None and current.time > previous.time:
                raise StaleSubmission(
                    f"{current.filename} was changed by someone else; reload before retrying."
                )
            stages = {new_version.stage}
            if previous is not None:
                stages.add(previous.stage)
            kept = [
                r for r in records
                if not _same_version(r, previous)
                and not (base_identity(r.filename) == identity and r.stage in stages)
            ]
            floor = current.time + 1 if current else 0
            if new_version.time < floor:
                new_version = new_version.evolve(time=floor)
            kept.append(new_version)
            self._write(kept)
        logger.info("Stored %s (%s, t=%d)", new_version.filename, new_version.state.value, new_version.time)
        return new_version

    def update_record(self, record: Submission, **changes) -> Submission:
        """In-place edit of stage-independent fields (deadline, notes); no new version."""
        with self._lock:
            records = self.load()
            updated = record.evolve(**changes)
            found = False
            for i, r in enumerate(records):
                if _same_version(r, record):
                    records[i] = updated
                    found = True
            if not found:
                raise StoreError(f"{record.filename} is no longer in the store")
            self._write(records)
        return updated

    def clear_history(self, actor: str, predicate: ActorPredicate) -> int:
        """Remove the records `predicate(actor)` selects; everything else is kept."""
        matches = predicate(actor)
        with self._lock:
            records = self.load()
            kept = [r for r in records if not matches(r)]
            removed = len(records) - len(kept)
            if removed:
                self._write(kept)
        logger.info("Cleared %d history record(s) for %s", removed, actor)
        return removed

    # ── payloads
    def put_payload(self, data: bytes) -> str:
        return put_bytes(self.paths["objects"], data)

    def read_payload(self, record: Submission) -> bytes:
        if record.file:
            return get_bytes(self.paths["objects"], record.file)
        if record.content:
            return decode_legacy_content(record.content)
        raise FileNotFoundError(f"{record.filename} has no payload")

    def export_pdf(self, record: Submission, dest_dir: Path) -> Path:
        dest_dir.mkdir(parents=True, exist_ok=True)
        dst = dest_dir / record.filename
        dst.write_bytes(self.read_payload(record))
        return dst

    def prune_payloads(self) -> int:
        with self._lock:
            referenced = {r.file for r in self.load() if r.file}
            return remove_unreferenced(self.paths["objects"], referenced)
