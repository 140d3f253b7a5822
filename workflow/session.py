from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional

from shared import config
from shared.events import CountsCallback
from shared.ics import deadline_calendar
from shared.identity import base_identity, display_filename
from shared.models import Role, Submission, Tab
from shared.osutil import preview_bytes
from shared.paths import export_name
from shared.text import sanitize_input
from submissionstore.store import dedupe_current

from .engine import WorkflowEngine
from .errors import ReadOnlyView, SelectionRequired
from .projector import ViewFilter, project, tab_counts
from .sync import SyncPoller
from .transitions import Action, allowed_actions

logger = logging.getLogger(__name__)

ConfirmFn = Callable[[str], bool]

SEND_BACK_WARNING = (
    "⚠️ CAUTION: This will send the submission back to the student.\n\n"
    "This action cannot be undone. Are you sure you want to continue?"
)
CLEAR_HISTORY_WARNING = (
    "Are you sure you want to clear your submission history? This action cannot be undone."
)


class Outcome(str, Enum):
    DONE = "done"
    DECLINED = "declined"


@dataclass
class ActionResult:
    outcome: Outcome
    record: Optional[Submission] = None
    message: str = ""

    @property
    def done(self) -> bool:
        return self.outcome == Outcome.DONE


_DECLINED = ActionResult(Outcome.DECLINED)


class ActorSession:
    """
    One signed-in librarian, reviewer or student: what they have selected,
    which tab they look at, their filters, and the actions they may take.
    The UI supplies `confirm` (a yes/no dialog) and shows WorkflowError
    messages; this class never talks to widgets.
    """

    def __init__(self, engine: WorkflowEngine, actor: str, role: Role, *, confirm: ConfirmFn,
                 poller: Optional[SyncPoller] = None, confirm_on: Optional[bool] = None,
                 max_bytes: Optional[int] = None) -> None:
        self.engine = engine
        self.actor = actor
        self.role = role
        self.confirm = confirm
        self.poller = poller
        self.confirm_on = bool(config.get_setting("confirm_on")) if confirm_on is None else confirm_on
        self.max_bytes = max_bytes if max_bytes is not None else config.max_upload_bytes()
        self.active_tab = Tab.TO_REVIEW
        self.selected: Optional[Submission] = None
        self.filters = ViewFilter.from_prefs(config.get_filter_prefs(actor))
        saved = config.get_session_state(actor)
        self.notes = saved.get("notes") or ""
        if poller is not None:
            poller.snapshot_changed.connect(self._on_snapshot)

    # ── views
    def records(self) -> List[Submission]:
        if self.poller is not None:
            return self.poller.snapshot
        return self.engine.store.load()

    def visible(self) -> List[Submission]:
        return project(self.records(), self.actor, self.active_tab, self.filters, self.role)

    def counts(self) -> Dict[Tab, int]:
        return tab_counts(self.records(), self.actor, self.role)

    def set_tab(self, tab: Tab) -> None:
        self.active_tab = tab
        self.selected = None

    def set_filter(self, **changes: str) -> ViewFilter:
        self.filters = replace(self.filters, **changes)
        config.save_filter_prefs(self.actor, self.filters.to_prefs())
        return self.filters

    def clear_filters(self) -> None:
        self.filters = ViewFilter()
        config.save_filter_prefs(self.actor, {})

    @property
    def read_only(self) -> bool:
        return self.active_tab == Tab.HISTORY

    def available_actions(self) -> List[Action]:
        """Which action buttons to enable for the current selection."""
        if self.read_only:
            return []
        return allowed_actions(self.selected, self.role)

    # ── selection
    def select(self, record: Submission) -> ActionResult:
        if self.confirm_on and not self.confirm("Select submission?"):
            return _DECLINED
        config.mark_receipt(self.actor, record.filename)
        self.selected = record
        self._save_state()
        return ActionResult(Outcome.DONE, record)

    def select_by_filename(self, filename: str) -> Optional[Submission]:
        """Used when a notification is opened: pick whichever version is current now."""
        current = {base_identity(r.filename): r for r in dedupe_current(self.records())}
        record = current.get(base_identity(filename))
        if record is not None:
            self.selected = record
            self._save_state()
        return record

    def _on_snapshot(self, records: List[Submission]) -> None:
        if self.selected is None:
            return
        current = {base_identity(r.filename): r for r in dedupe_current(records)}
        self.selected = current.get(base_identity(self.selected.filename))

    def _save_state(self) -> None:
        config.save_session_state(self.actor, display_filename(self.selected) or None, self.notes)

    def set_notes(self, notes: str) -> None:
        self.notes = sanitize_input(notes)
        self._save_state()

    # ── gating
    def _require_selection(self, message: str = "Select one") -> Submission:
        if self.selected is None:
            raise SelectionRequired(message)
        if self.read_only:
            raise ReadOnlyView()
        return self.selected

    def _ask(self, prompt: str, *, always: bool = False) -> bool:
        if always or self.confirm_on:
            return bool(self.confirm(prompt))
        return True

    def _finish(self, record: Submission, message: str, *, keep_selection: bool = False) -> ActionResult:
        self.selected = record if keep_selection else None
        if not keep_selection:
            self.notes = ""
        self._save_state()
        if self.poller is not None:
            self.poller.poll_once()
        logger.info("%s (%s): %s %s", self.actor, self.role.value, message, record.filename)
        return ActionResult(Outcome.DONE, record, message)

    # ── actions
    def approve(self) -> ActionResult:
        sel = self._require_selection()
        if not self._ask("Send to reviewer?"):
            return _DECLINED
        return self._finish(self.engine.approve(sel, self.actor, self.role), "Sent to Reviewer!")

    def return_to_final_review(self) -> ActionResult:
        sel = self._require_selection()
        if not self._ask("Send returned document back to final review?"):
            return _DECLINED
        return self._finish(self.engine.return_to_final_review(sel, self.actor, self.role), "Sent to Final Review!")

    def send_back_to_student(self) -> ActionResult:
        sel = self._require_selection()
        if not self._ask(SEND_BACK_WARNING, always=True):
            return _DECLINED
        return self._finish(self.engine.send_back_to_student(sel, self.actor, self.role), "Sent back to Student!")

    def return_to_librarian(self) -> ActionResult:
        sel = self._require_selection()
        if not self._ask("Return to librarian?"):
            return _DECLINED
        return self._finish(self.engine.return_to_librarian(sel, self.actor, self.role), "Returned to Librarian!")

    def final_approve(self) -> ActionResult:
        sel = self._require_selection()
        if not self._ask("Approve this document?"):
            return _DECLINED
        return self._finish(self.engine.final_approve(sel, self.actor, self.role), "Document approved!")

    def replace_file(self, upload_name: str, data: bytes, content_type: Optional[str] = None) -> ActionResult:
        sel = self._require_selection("Please select a submission first")
        record = self.engine.replace_file(
            sel, self.actor, self.role,
            upload_name=upload_name, data=data, max_bytes=self.max_bytes, content_type=content_type,
        )
        return self._finish(record, "PDF updated successfully!", keep_selection=True)

    def set_deadline(self, deadline: Optional[str]) -> ActionResult:
        sel = self._require_selection()
        record = self.engine.set_deadline(sel, deadline)
        return self._finish(record, "Deadline updated", keep_selection=True)

    def clear_history(self) -> ActionResult:
        if not self._ask(CLEAR_HISTORY_WARNING, always=True):
            return _DECLINED
        removed = self.engine.clear_history(self.actor)
        self.selected = None
        self.notes = ""
        self._save_state()
        if self.poller is not None:
            self.poller.poll_once()
        return ActionResult(Outcome.DONE, None, f"Submission history cleared! ({removed} removed)")

    # ── read-only helpers
    def download(self, dest_dir: Path) -> Path:
        if self.selected is None:
            raise SelectionRequired("Select a submission first")
        return self.engine.store.export_pdf(self.selected, dest_dir)

    def preview(self) -> Path:
        if self.selected is None:
            raise SelectionRequired("Select a submission first")
        return preview_bytes(self.engine.store.read_payload(self.selected), self.selected.filename)

    def export_calendar(self, record: Submission, dest_dir: Path) -> Optional[Path]:
        cal = deadline_calendar(record)
        if cal is None:
            return None
        title, ics = cal
        dest_dir.mkdir(parents=True, exist_ok=True)
        dst = dest_dir / export_name(title, ".ics")
        dst.write_text(ics, encoding="utf-8")
        return dst

    def notification_counts(self, callback: Optional[CountsCallback] = None) -> Dict[str, int]:
        return self.engine.notifier.notification_counts(self.actor, callback=callback)

    def logout(self) -> None:
        if self.poller is not None:
            self.poller.stop()
            try:
                self.poller.snapshot_changed.disconnect(self._on_snapshot)
            except (RuntimeError, TypeError):
                pass
        self.selected = None
        self._save_state()
