from __future__ import annotations

import logging
from typing import Callable, Optional

from shared.due import normalise_deadline
from shared.events import ActivityEntry, NotificationEmitter
from shared.identity import base_identity
from shared.models import Role, Stage, Submission, WorkflowState
from shared.text import sanitize_input
from submissionstore.store import ActorPredicate, StaleSubmission, SubmissionStore

from . import transitions as t
from .errors import InvalidTransition, SelectionRequired

logger = logging.getLogger(__name__)


def sent_history(actor: str) -> Callable[[Submission], bool]:
    """Stage2 records this actor sent to the reviewer: what 'clear history' removes."""
    def _match(r: Submission) -> bool:
        return r.stage == Stage.STAGE2 and r.sent_to_reviewer and r.sent_by == actor
    return _match


class WorkflowEngine:
    """
    Applies transitions to the shared store: read the current version,
    compute the next one, persist the whole record set, then notify.
    """

    def __init__(self, store: SubmissionStore, notifier: Optional[NotificationEmitter] = None,
                 *, strict: bool = False) -> None:
        self.store = store
        self.notifier = notifier or NotificationEmitter(
            store.paths["notifications"], store.paths["activity"]
        )
        self.strict = strict

    # ── helpers
    def _resolve(self, selected: Optional[Submission]) -> Submission:
        """The store's current version of the selected document."""
        if selected is None:
            raise SelectionRequired()
        records = self.store.load()
        current = self.store.current_for(base_identity(selected.filename), records)
        if current is None:
            raise SelectionRequired(f"{selected.filename} is no longer available")
        if self.strict and current.time > selected.time:
            raise StaleSubmission(f"{current.filename} was changed by someone else; reload before retrying.")
        return current

    def _time_for(self, record: Submission) -> int:
        return self.store.next_time(base_identity(record.filename))

    def _notify(self, target_user: Optional[str], record: Submission, message: str) -> None:
        if not target_user:
            return
        try:
            self.notifier.emit(target_user, record.filename, record.stage.value, message)
        except Exception:
            # delivery problems never undo a stored transition
            logger.exception("Notification for %s failed", record.filename)

    def _log(self, actor: str, record: Submission, stage: str, action: str, notes: str) -> None:
        try:
            self.notifier.log_activity(ActivityEntry(
                time=record.time, user=actor, stage=stage,
                filename=record.filename, notes=notes, action=action,
            ))
        except Exception:
            logger.exception("Activity log for %s failed", record.filename)

    # ── librarian
    def approve(self, selected: Optional[Submission], actor: str, role: Role = Role.LIBRARIAN) -> Submission:
        current = self._resolve(selected)
        new = t.approve(current, actor, time=self._time_for(current), role=role)
        new = self.store.upsert(new, current, strict=self.strict)
        self._log(actor, new, "SENT", "sent", f"Sent to reviewer: {new.owner}")
        return new

    def return_to_final_review(self, selected: Optional[Submission], actor: str,
                               role: Role = Role.LIBRARIAN) -> Submission:
        current = self._resolve(selected)
        new = t.return_to_final_review(current, actor, time=self._time_for(current), role=role)
        new = self.store.upsert(new, current, strict=self.strict)
        self._log(actor, new, "SENT", "resent", f"Sent back to final review: {new.owner}")
        return new

    # ── librarian or reviewer
    def send_back_to_student(self, selected: Optional[Submission], actor: str, role: Role) -> Submission:
        current = self._resolve(selected)
        new = t.send_back_to_student(current, actor, time=self._time_for(current), role=role)
        new = self.store.upsert(new, current, strict=self.strict)
        self._log(actor, current, "SENT_BACK", "sent_back", f"Sent back to student: {current.owner}")
        self._notify(new.owner, new, f"{current.filename} has been sent back to you for review.")
        return new

    def replace_file(self, selected: Optional[Submission], actor: str, role: Role, *,
                     upload_name: str, data: bytes, max_bytes: int,
                     content_type: Optional[str] = None) -> Submission:
        if selected is None:
            raise SelectionRequired("Please select a submission first")
        t.validate_upload(upload_name, len(data), max_bytes, content_type)
        current = self._resolve(selected)
        t.check(t.Action.REPLACE_FILE, current, role)
        digest = self.store.put_payload(data)
        new = t.replace_file(current, actor, digest, time=self._time_for(current), role=role)
        return self.store.upsert(new, current, strict=self.strict)

    # ── reviewer
    def return_to_librarian(self, selected: Optional[Submission], actor: str,
                            role: Role = Role.REVIEWER) -> Submission:
        current = self._resolve(selected)
        new = t.return_to_librarian(current, actor, time=self._time_for(current), role=role)
        new = self.store.upsert(new, current, strict=self.strict)
        self._notify(current.sent_by, new, f"{new.filename} has been returned from final review.")
        return new

    def final_approve(self, selected: Optional[Submission], actor: str, role: Role = Role.REVIEWER) -> Submission:
        current = self._resolve(selected)
        new = t.final_approve(current, actor, time=self._time_for(current), role=role)
        new = self.store.upsert(new, current, strict=self.strict)
        self._notify(new.owner, new, f"{new.filename} has been approved.")
        return new

    # ── student
    def submit(self, first: str, last: str, data: bytes, *, max_bytes: int,
               upload_name: str = "upload.pdf", content_type: Optional[str] = None) -> Submission:
        t.validate_upload(upload_name, len(data), max_bytes, content_type)
        digest = self.store.put_payload(data)
        draft = t.new_submission(first, last, digest, time=0)
        previous = self.store.current_for(base_identity(draft.filename))
        if previous is not None and previous.state not in (WorkflowState.SUBMITTED, WorkflowState.RETURNED_TO_STUDENT):
            raise InvalidTransition(f"{previous.filename} is already under review")
        draft = draft.evolve(time=self._time_for(draft))
        return self.store.upsert(draft, previous)

    def resubmit(self, selected: Optional[Submission], actor: str, data: bytes, *, max_bytes: int,
                 upload_name: str = "upload.pdf", content_type: Optional[str] = None) -> Submission:
        if selected is None:
            raise SelectionRequired()
        t.validate_upload(upload_name, len(data), max_bytes, content_type)
        current = self._resolve(selected)
        t.check(t.Action.SUBMIT, current, Role.STUDENT)
        digest = self.store.put_payload(data)
        new = t.resubmit(current, actor, digest, time=self._time_for(current))
        return self.store.upsert(new, current, strict=self.strict)

    # ── stage-independent edits
    def set_deadline(self, selected: Optional[Submission], deadline: Optional[str]) -> Submission:
        current = self._resolve(selected)
        return self.store.update_record(current, deadline=normalise_deadline(deadline))

    def set_notes(self, selected: Optional[Submission], notes: str) -> Submission:
        current = self._resolve(selected)
        return self.store.update_record(current, notes=sanitize_input(notes) or None)

    def clear_history(self, actor: str, predicate: ActorPredicate = sent_history) -> int:
        return self.store.clear_history(actor, predicate)
