from __future__ import annotations

import logging
from concurrent.futures import Future
from typing import List, Optional

from PySide6.QtCore import QObject, QTimer, Signal, Slot

from shared.config import poll_interval_ms
from shared.models import Submission
from submissionstore.convert import ContentConverter
from submissionstore.store import StoreError, SubmissionStore

logger = logging.getLogger(__name__)


class SyncPoller(QObject):
    """
    Re-reads the shared store on a timer and swaps in the new snapshot.
    Other actors' transitions only become visible this way, so every
    session runs one; call stop() on logout or window close.

    With a `converter`, timer ticks reload on its worker thread and the
    snapshot is swapped back on this object's thread.
    """

    snapshot_changed = Signal(object)
    load_failed = Signal(str)
    # (records or None, error message) from the converter's worker
    _loaded = Signal(object, str)

    def __init__(self, store: SubmissionStore, interval_ms: Optional[int] = None,
                 parent: Optional[QObject] = None, converter: Optional[ContentConverter] = None) -> None:
        super().__init__(parent)
        self.store = store
        self.converter = converter
        self._snapshot: List[Submission] = []
        self._pending: Optional[Future] = None
        self._loaded.connect(self._on_loaded)
        self._timer = QTimer(self)
        self._timer.setInterval(interval_ms if interval_ms is not None else poll_interval_ms())
        self._timer.timeout.connect(self._tick)

    @property
    def snapshot(self) -> List[Submission]:
        return list(self._snapshot)

    @property
    def interval_ms(self) -> int:
        return self._timer.interval()

    def is_running(self) -> bool:
        return self._timer.isActive()

    def poll_once(self) -> bool:
        """Reload and replace the snapshot on the calling thread. Returns True when it changed."""
        try:
            records = self.store.load()
        except (StoreError, OSError) as e:
            self._report_failure(getattr(e, "message", str(e)))
            return False
        return self._apply(records)

    def poll_async(self) -> Future:
        """
        Reload on the converter's worker. At most one reload is in flight;
        asking again while it runs returns the same future.
        """
        if self.converter is None:
            raise RuntimeError("SyncPoller was created without a converter")
        if self._pending is not None and not self._pending.done():
            return self._pending
        self._pending = self.converter.load_records(self.store)
        self._pending.add_done_callback(self._deliver)
        return self._pending

    def _deliver(self, fut: Future) -> None:
        # runs on the worker thread; the queued signal hops back to ours
        if fut.cancelled():
            return
        exc = fut.exception()
        if exc is None:
            self._loaded.emit(fut.result(), "")
        elif isinstance(exc, (StoreError, OSError)):
            self._loaded.emit(None, getattr(exc, "message", str(exc)))
        else:
            logger.error("Background store reload failed", exc_info=exc)

    @Slot(object, str)
    def _on_loaded(self, records: Optional[List[Submission]], error: str) -> None:
        if records is None:
            self._report_failure(error)
        else:
            self._apply(records)

    def _apply(self, records: List[Submission]) -> bool:
        changed = records != self._snapshot
        self._snapshot = records
        if changed:
            logger.debug("Snapshot changed (%d records)", len(records))
            self.snapshot_changed.emit(self.snapshot)
        return changed

    def _report_failure(self, message: str) -> None:
        logger.warning("Store reload failed: %s", message)
        self.load_failed.emit(message)

    def _tick(self) -> None:
        if self.converter is None:
            self.poll_once()
        else:
            self.poll_async()

    def start(self) -> None:
        self.poll_once()
        self._timer.start()

    def stop(self) -> None:
        self._timer.stop()
