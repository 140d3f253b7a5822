from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Optional


class Stage(str, Enum):
    STAGE0 = "Stage0"  # returned / draft
    STAGE1 = "Stage1"  # submitted, awaiting librarian
    STAGE2 = "Stage2"  # with / back from final reviewer


class WorkflowState(str, Enum):
    """Single tagged state of a submission; the stage follows from it."""

    RETURNED_TO_STUDENT = "returned_to_student"
    SUBMITTED = "submitted"
    AWAITING_DISPATCH = "awaiting_dispatch"
    WITH_REVIEWER = "with_reviewer"
    RETURNED_FROM_REVIEW = "returned_from_review"
    FINAL_APPROVED = "final_approved"


STAGE_OF: Dict[WorkflowState, Stage] = {
    WorkflowState.RETURNED_TO_STUDENT: Stage.STAGE0,
    WorkflowState.SUBMITTED: Stage.STAGE1,
    WorkflowState.AWAITING_DISPATCH: Stage.STAGE2,
    WorkflowState.WITH_REVIEWER: Stage.STAGE2,
    WorkflowState.RETURNED_FROM_REVIEW: Stage.STAGE2,
    WorkflowState.FINAL_APPROVED: Stage.STAGE2,
}

STATE_LABELS: Dict[WorkflowState, str] = {
    WorkflowState.RETURNED_TO_STUDENT: "Returned to student",
    WorkflowState.SUBMITTED: "Submitted",
    WorkflowState.AWAITING_DISPATCH: "Awaiting dispatch",
    WorkflowState.WITH_REVIEWER: "With reviewer",
    WorkflowState.RETURNED_FROM_REVIEW: "Returned from review",
    WorkflowState.FINAL_APPROVED: "Final approved",
}


class Role(str, Enum):
    STUDENT = "student"
    LIBRARIAN = "librarian"
    REVIEWER = "reviewer"


class Tab(str, Enum):
    TO_REVIEW = "to-review"
    RETURNED = "returned"
    HISTORY = "sent"
    RETURNED_TO_STUDENT = "sent-back"


# python attribute -> key used in submissions.json
WIRE_KEYS: Dict[str, str] = {
    "filename": "filename",
    "owner": "user",
    "state": "state",
    "file": "file",
    "content": "content",
    "time": "time",
    "deadline": "deadline",
    "notes": "notes",
    "sent_to_reviewer": "sentToReviewer",
    "sent_by": "sentBy",
    "returned_from_review": "returnedFromReview",
    "sent_back_to_student": "sentBackToStudent",
    "sent_back_by": "sentBackBy",
    "reviewed_by": "reviewedBy",
}


def derive_state(stage: Optional[str], flags: Dict[str, Any]) -> WorkflowState:
    """Map a legacy stage + boolean flag combination onto one state."""
    if stage == Stage.STAGE0.value:
        return WorkflowState.RETURNED_TO_STUDENT
    if stage == Stage.STAGE2.value:
        if flags.get("finalApproved"):
            return WorkflowState.FINAL_APPROVED
        if flags.get("returnedFromReview"):
            return WorkflowState.RETURNED_FROM_REVIEW
        if flags.get("sentToReviewer"):
            return WorkflowState.WITH_REVIEWER
        return WorkflowState.AWAITING_DISPATCH
    return WorkflowState.SUBMITTED


@dataclass(frozen=True)
class Submission:
    """One physical version of a logical document, as stored in submissions.json."""

    filename: str
    owner: str
    state: WorkflowState
    time: int
    file: Optional[str] = None      # blob digest under objects/
    content: Optional[str] = None   # legacy base64 payload
    deadline: Optional[str] = None
    notes: Optional[str] = None
    sent_to_reviewer: bool = False
    sent_by: Optional[str] = None
    returned_from_review: bool = False
    sent_back_to_student: bool = False
    sent_back_by: Optional[str] = None
    reviewed_by: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def stage(self) -> Stage:
        return STAGE_OF[self.state]

    @property
    def status_label(self) -> str:
        return STATE_LABELS[self.state]

    def evolve(self, **changes: Any) -> "Submission":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = dict(self.extra)
        for attr, key in WIRE_KEYS.items():
            value = getattr(self, attr)
            if isinstance(value, Enum):
                value = value.value
            d[key] = value
        d["stage"] = self.stage.value
        d["finalApproved"] = self.state == WorkflowState.FINAL_APPROVED
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Submission":
        # imported here: identity depends on models for the Stage enum
        from shared.identity import owner_from_filename

        known = set(WIRE_KEYS.values()) | {"stage", "finalApproved"}
        extra = {k: v for k, v in data.items() if k not in known}
        filename = str(data.get("filename") or "")
        raw_state = data.get("state")
        try:
            state = WorkflowState(raw_state)
        except ValueError:
            state = derive_state(data.get("stage"), data)
        return cls(
            filename=filename,
            owner=str(data.get("user") or owner_from_filename(filename)),
            state=state,
            time=int(data.get("time") or 0),
            file=data.get("file") or None,
            content=data.get("content") or None,
            deadline=data.get("deadline") or None,
            notes=data.get("notes"),
            sent_to_reviewer=bool(data.get("sentToReviewer")),
            sent_by=data.get("sentBy") or None,
            returned_from_review=bool(data.get("returnedFromReview")),
            sent_back_to_student=bool(data.get("sentBackToStudent")),
            sent_back_by=data.get("sentBackBy") or None,
            reviewed_by=data.get("reviewedBy") or None,
            extra=extra,
        )


@dataclass(frozen=True)
class NotificationEvent:
    """Immutable cross-actor event consumed by the notification delivery UI."""

    id: str
    filename: str
    target_user: str
    target_stage: str
    time: int
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "filename": self.filename,
            "targetUser": self.target_user,
            "targetStage": self.target_stage,
            "time": self.time,
            "message": self.message,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NotificationEvent":
        return cls(
            id=str(data.get("id") or ""),
            filename=str(data.get("filename") or ""),
            target_user=str(data.get("targetUser") or ""),
            target_stage=str(data.get("targetStage") or ""),
            time=int(data.get("time") or 0),
            message=str(data.get("message") or ""),
        )


def new_notification_id() -> str:
    """Timestamp prefix plus short uuid, like notification_<ms>_<hex>."""
    return f"notification_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"
