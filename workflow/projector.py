from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Dict, Iterable, List, Optional

from shared.models import Role, Submission, Tab, WorkflowState
from shared.timeutil import date_bound_ms
from submissionstore.store import dedupe_current

_TO_REVIEW_LIBRARIAN = (WorkflowState.SUBMITTED, WorkflowState.AWAITING_DISPATCH)


@dataclass
class ViewFilter:
    """Free-text and date filters; empty strings mean 'no filter'."""

    user: str = ""
    status: str = ""
    date_from: str = ""   # YYYY-MM-DD or ISO-8601, inclusive
    date_to: str = ""     # YYYY-MM-DD covers the whole day

    @classmethod
    def from_prefs(cls, prefs: Dict[str, str]) -> "ViewFilter":
        return cls(
            user=prefs.get("user", "") or "",
            status=prefs.get("status", "") or "",
            date_from=prefs.get("dateFrom", prefs.get("date_from", "")) or "",
            date_to=prefs.get("dateTo", prefs.get("date_to", "")) or "",
        )

    def to_prefs(self) -> Dict[str, str]:
        d = asdict(self)
        return {"user": d["user"], "status": d["status"], "dateFrom": d["date_from"], "dateTo": d["date_to"]}

    def is_empty(self) -> bool:
        return not (self.user or self.status or self.date_from or self.date_to)


def _is_own_send_back(r: Submission, actor: str) -> bool:
    return r.state == WorkflowState.RETURNED_TO_STUDENT and r.sent_back_to_student and r.sent_back_by == actor


def tab_for(r: Submission, actor: str, role: Role = Role.LIBRARIAN) -> Optional[Tab]:
    """
    The one tab a record shows up on for this actor, or None.
    Tabs are checked in a fixed order, so a record can never match two.
    """
    if role == Role.LIBRARIAN:
        if r.state in _TO_REVIEW_LIBRARIAN:
            return Tab.TO_REVIEW
        if r.state == WorkflowState.RETURNED_FROM_REVIEW:
            return Tab.RETURNED
        if _is_own_send_back(r, actor):
            return Tab.RETURNED_TO_STUDENT
        if r.sent_by == actor:
            return Tab.HISTORY
        return None
    if role == Role.REVIEWER:
        if r.state == WorkflowState.WITH_REVIEWER:
            return Tab.TO_REVIEW
        if _is_own_send_back(r, actor):
            return Tab.RETURNED_TO_STUDENT
        if r.reviewed_by == actor:
            return Tab.HISTORY
        return None
    # student: only their own documents
    if r.owner != actor:
        return None
    if r.state == WorkflowState.RETURNED_TO_STUDENT:
        return Tab.RETURNED_TO_STUDENT
    return Tab.HISTORY


def matches_filter(r: Submission, f: ViewFilter) -> bool:
    if f.user:
        hay = f"{r.owner} {r.filename}".lower()
        if f.user.lower() not in hay:
            return False
    if f.status:
        needle = f.status.lower()
        if needle not in r.stage.value.lower() and needle not in r.status_label.lower():
            return False
    lo = date_bound_ms(f.date_from)
    if lo is not None and not (r.time and r.time >= lo):
        return False
    hi = date_bound_ms(f.date_to, end_of_day=True)
    if hi is not None and not (r.time and r.time <= hi):
        return False
    return True


def project(records: Iterable[Submission], actor: str, tab: Tab, filters: Optional[ViewFilter] = None,
            role: Role = Role.LIBRARIAN) -> List[Submission]:
    """Deduplicated, tab-scoped, filtered view in store order."""
    out = [r for r in dedupe_current(records) if tab_for(r, actor, role) == tab]
    if filters is not None and not filters.is_empty():
        out = [r for r in out if matches_filter(r, filters)]
    return out


def tab_counts(records: Iterable[Submission], actor: str, role: Role = Role.LIBRARIAN) -> Dict[Tab, int]:
    """Badge numbers: the projection per tab with no filters applied."""
    pool = list(records)
    return {tab: len(project(pool, actor, tab, None, role)) for tab in Tab}
