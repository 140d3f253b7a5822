"""
Stage transitions as pure functions: (current record, actor) -> new version.

Nothing here touches the store. A rejected transition raises a
WorkflowError; an accepted one returns a new Submission whose filename,
stage and state already agree.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional

from shared.identity import rename_for_stage, student_filename
from shared.models import STAGE_OF, Role, Submission, WorkflowState

from .errors import FileTooLarge, InvalidFileType, InvalidTransition, RoleNotPermitted, SelectionRequired

PDF_MIME = "application/pdf"


class Action(str, Enum):
    APPROVE = "approve"
    RETURN_TO_FINAL_REVIEW = "return_to_final_review"
    SEND_BACK_TO_STUDENT = "send_back_to_student"
    REPLACE_FILE = "replace_file"
    RETURN_TO_LIBRARIAN = "return_to_librarian"
    FINAL_APPROVE = "final_approve"
    SUBMIT = "submit"


@dataclass(frozen=True)
class Rule:
    roles: FrozenSet[Role]
    sources: FrozenSet[WorkflowState]
    target: Optional[WorkflowState]    # None: the state is kept
    destructive: bool = False          # always confirmed, whatever the settings


_ALL = frozenset(WorkflowState)
_STAFF = frozenset({Role.LIBRARIAN, Role.REVIEWER})

RULES: Dict[Action, Rule] = {
    Action.APPROVE: Rule(
        roles=frozenset({Role.LIBRARIAN}),
        sources=frozenset({WorkflowState.SUBMITTED, WorkflowState.AWAITING_DISPATCH}),
        target=WorkflowState.WITH_REVIEWER,
    ),
    Action.RETURN_TO_FINAL_REVIEW: Rule(
        roles=frozenset({Role.LIBRARIAN}),
        sources=frozenset({WorkflowState.RETURNED_FROM_REVIEW}),
        target=WorkflowState.WITH_REVIEWER,
    ),
    Action.SEND_BACK_TO_STUDENT: Rule(
        roles=_STAFF,
        sources=_ALL - {WorkflowState.RETURNED_TO_STUDENT},
        target=WorkflowState.RETURNED_TO_STUDENT,
        destructive=True,
    ),
    Action.REPLACE_FILE: Rule(roles=_STAFF, sources=_ALL, target=None),
    Action.RETURN_TO_LIBRARIAN: Rule(
        roles=frozenset({Role.REVIEWER}),
        sources=frozenset({WorkflowState.WITH_REVIEWER}),
        target=WorkflowState.RETURNED_FROM_REVIEW,
    ),
    Action.FINAL_APPROVE: Rule(
        roles=frozenset({Role.REVIEWER}),
        sources=frozenset({WorkflowState.WITH_REVIEWER}),
        target=WorkflowState.FINAL_APPROVED,
    ),
    Action.SUBMIT: Rule(
        roles=frozenset({Role.STUDENT}),
        sources=frozenset({WorkflowState.RETURNED_TO_STUDENT}),
        target=WorkflowState.SUBMITTED,
    ),
}


def check(action: Action, record: Optional[Submission], role: Role) -> Submission:
    """Raise unless `role` may apply `action` to `record` in its current state."""
    if record is None:
        raise SelectionRequired()
    rule = RULES[action]
    if role not in rule.roles:
        raise RoleNotPermitted(f"A {role.value} cannot {action.value.replace('_', ' ')}")
    if record.state not in rule.sources:
        raise InvalidTransition(
            f"Cannot {action.value.replace('_', ' ')} {record.filename}: it is {record.status_label.lower()}"
        )
    return record


def allowed_actions(record: Optional[Submission], role: Role) -> list[Action]:
    if record is None:
        return []
    return [a for a, rule in RULES.items() if role in rule.roles and record.state in rule.sources]


def _move(record: Submission, state: WorkflowState, time: int, **meta) -> Submission:
    """New version in `state`; filename and stage change together."""
    return record.evolve(
        state=state,
        filename=rename_for_stage(record.filename, STAGE_OF[state]),
        time=time,
        **meta,
    )


# ─────────────────────────────────────────────────────────────────────────────
# Librarian
# ─────────────────────────────────────────────────────────────────────────────
def approve(record: Optional[Submission], actor: str, *, time: int, role: Role = Role.LIBRARIAN) -> Submission:
    rec = check(Action.APPROVE, record, role)
    return _move(rec, WorkflowState.WITH_REVIEWER, time,
                 sent_to_reviewer=True, sent_by=actor, returned_from_review=False)


def return_to_final_review(record: Optional[Submission], actor: str, *, time: int,
                           role: Role = Role.LIBRARIAN) -> Submission:
    rec = check(Action.RETURN_TO_FINAL_REVIEW, record, role)
    return _move(rec, WorkflowState.WITH_REVIEWER, time,
                 sent_to_reviewer=True, sent_by=actor, returned_from_review=False)


# ─────────────────────────────────────────────────────────────────────────────
# Librarian or reviewer
# ─────────────────────────────────────────────────────────────────────────────
def send_back_to_student(record: Optional[Submission], actor: str, *, time: int, role: Role) -> Submission:
    rec = check(Action.SEND_BACK_TO_STUDENT, record, role)
    return _move(rec, WorkflowState.RETURNED_TO_STUDENT, time,
                 sent_back_to_student=True, sent_back_by=actor,
                 returned_from_review=False)


def validate_upload(filename: str, size_bytes: int, max_bytes: int, content_type: Optional[str] = None) -> None:
    if content_type is not None:
        is_pdf = content_type == PDF_MIME
    else:
        is_pdf = filename.lower().endswith(".pdf")
    if not is_pdf:
        raise InvalidFileType()
    if size_bytes > max_bytes:
        raise FileTooLarge(size_bytes, max_bytes)


def replace_file(record: Optional[Submission], actor: str, digest: str, *, time: int, role: Role) -> Submission:
    """New payload, same stage. The filename is re-derived for the current stage."""
    rec = check(Action.REPLACE_FILE, record, role)
    return _move(rec, rec.state, time, file=digest, content=None)


# ─────────────────────────────────────────────────────────────────────────────
# Reviewer
# ─────────────────────────────────────────────────────────────────────────────
def return_to_librarian(record: Optional[Submission], actor: str, *, time: int,
                        role: Role = Role.REVIEWER) -> Submission:
    rec = check(Action.RETURN_TO_LIBRARIAN, record, role)
    return _move(rec, WorkflowState.RETURNED_FROM_REVIEW, time,
                 returned_from_review=True, sent_to_reviewer=False, reviewed_by=actor)


def final_approve(record: Optional[Submission], actor: str, *, time: int,
                  role: Role = Role.REVIEWER) -> Submission:
    rec = check(Action.FINAL_APPROVE, record, role)
    return _move(rec, WorkflowState.FINAL_APPROVED, time, reviewed_by=actor)


# ─────────────────────────────────────────────────────────────────────────────
# Student (resubmission contract)
# ─────────────────────────────────────────────────────────────────────────────
def new_submission(first: str, last: str, digest: str, *, time: int) -> Submission:
    filename = student_filename(first, last)
    return Submission(
        filename=filename,
        owner=filename.rsplit("_", 1)[0],
        state=WorkflowState.SUBMITTED,
        time=time,
        file=digest,
    )


def resubmit(record: Optional[Submission], actor: str, digest: str, *, time: int,
             role: Role = Role.STUDENT) -> Submission:
    rec = check(Action.SUBMIT, record, role)
    if rec.owner != actor:
        raise RoleNotPermitted("Only the owner can resubmit this document")
    return _move(rec, WorkflowState.SUBMITTED, time, file=digest, content=None,
                 sent_to_reviewer=False, sent_by=None, returned_from_review=False,
                 sent_back_to_student=False, sent_back_by=None, reviewed_by=None)
