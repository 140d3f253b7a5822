from pathlib import Path

import pytest

from shared import config
from shared.models import Role, Tab, WorkflowState
from submissionstore.store import SubmissionStore
from workflow.engine import WorkflowEngine
from workflow.errors import ReadOnlyView, SelectionRequired
from workflow.session import SEND_BACK_WARNING, ActorSession, Outcome
from workflow.sync import SyncPoller

from conftest import make_record

MB = 1024 * 1024


class Prompt:
    """Stand-in for the yes/no dialog; records every question asked."""

    def __init__(self, answer: bool) -> None:
        self.answer = answer
        self.asked: list[str] = []

    def __call__(self, text: str) -> bool:
        self.asked.append(text)
        return self.answer


def _session(store: SubmissionStore, answer: bool = True, *, actor: str = "lib1", role: Role = Role.LIBRARIAN,
             confirm_on: bool = False, poller: SyncPoller | None = None) -> tuple[ActorSession, Prompt]:
    prompt = Prompt(answer)
    s = ActorSession(WorkflowEngine(store), actor, role, confirm=prompt, confirm_on=confirm_on,
                     max_bytes=10 * MB, poller=poller)
    return s, prompt


def test_send_back_always_asks_and_decline_changes_nothing(store: SubmissionStore):
    rec = store.upsert(make_record("alice_lee_Stage1.pdf"))
    session, prompt = _session(store, answer=False, confirm_on=False)
    session.select(rec)
    before = store.paths["submissions"].read_text(encoding="utf-8")

    result = session.send_back_to_student()

    assert result.outcome == Outcome.DECLINED
    assert prompt.asked == [SEND_BACK_WARNING]
    assert store.paths["submissions"].read_text(encoding="utf-8") == before
    assert session.engine.notifier.read_notifications() == []
    assert session.selected == rec


def test_confirm_setting_gates_ordinary_actions(store: SubmissionStore):
    rec = store.upsert(make_record("alice_lee_Stage1.pdf"))

    quiet, quiet_prompt = _session(store, answer=False, confirm_on=False)
    quiet.selected = rec
    assert quiet.approve().done
    assert quiet_prompt.asked == []
    assert quiet.selected is None

    rec2 = store.upsert(make_record("bob_ray_Stage1.pdf"))
    careful, careful_prompt = _session(store, answer=False, confirm_on=True)
    assert careful.select(rec2).outcome == Outcome.DECLINED
    careful.selected = rec2
    assert careful.approve().outcome == Outcome.DECLINED
    assert careful_prompt.asked == ["Select submission?", "Send to reviewer?"]
    assert store.current_for("bob_ray").state == WorkflowState.SUBMITTED


def test_actions_need_a_selection(store: SubmissionStore):
    session, _ = _session(store)
    with pytest.raises(SelectionRequired) as exc:
        session.approve()
    assert exc.value.message == "Select one"
    with pytest.raises(SelectionRequired):
        session.replace_file("a.pdf", b"%PDF")


def test_history_tab_is_read_only(store: SubmissionStore):
    s1 = store.upsert(make_record("alice_lee_Stage1.pdf"))
    session, _ = _session(store)
    session.select(s1)
    session.approve()

    session.set_tab(Tab.HISTORY)
    [sent] = session.visible()
    session.select(sent)
    with pytest.raises(ReadOnlyView):
        session.send_back_to_student()
    with pytest.raises(ReadOnlyView):
        session.replace_file("a.pdf", b"%PDF")


def test_filters_are_remembered_per_actor(store: SubmissionStore):
    session, _ = _session(store, actor="lib1")
    session.set_filter(user="alice", date_from="2025-09-01")
    assert config.get_filter_prefs("lib1") == {"user": "alice", "dateFrom": "2025-09-01"}
    assert config.get_filter_prefs("lib2") == {}

    again, _ = _session(store, actor="lib1")
    assert again.filters.user == "alice"
    again.clear_filters()
    assert config.get_filter_prefs("lib1") == {}


def test_visible_and_counts_follow_the_poller(qapp, store: SubmissionStore):
    poller = SyncPoller(store, interval_ms=1000)
    session, _ = _session(store, poller=poller)
    s1 = store.upsert(make_record("alice_lee_Stage1.pdf"))
    store.upsert(make_record("bob_ray_Stage1.pdf"))
    poller.poll_once()

    assert session.counts()[Tab.TO_REVIEW] == 2
    session.select(s1)
    session.set_filter(user="bob")
    assert [r.filename for r in session.visible()] == ["bob_ray_Stage1.pdf"]

    # another session approves alice; our selection follows the new version
    WorkflowEngine(store).approve(s1, "lib2")
    poller.poll_once()
    assert session.selected.filename == "alice_lee_Stage2.pdf"
    assert session.counts()[Tab.TO_REVIEW] == 1

    session.logout()
    assert not poller.is_running()


def test_replace_file_keeps_selection_and_marks_receipt(store: SubmissionStore):
    s1 = store.upsert(make_record("alice_lee_Stage1.pdf"))
    session, _ = _session(store)
    session.select(s1)
    assert config.get_receipts("lib1") == {"alice_lee_Stage1.pdf": True}

    result = session.replace_file("scan.pdf", b"%PDF-1.4 new")
    assert result.message == "PDF updated successfully!"
    assert session.selected == result.record
    assert store.read_payload(result.record) == b"%PDF-1.4 new"


def test_reviewer_session_flow(store: SubmissionStore):
    s1 = store.upsert(make_record("alice_lee_Stage1.pdf"))
    WorkflowEngine(store).approve(s1, "lib1")
    reviewer, prompt = _session(store, actor="rev1", role=Role.REVIEWER)

    [queued] = reviewer.visible()
    reviewer.select(queued)
    assert reviewer.return_to_librarian().done
    assert reviewer.visible() == []
    reviewer.set_tab(Tab.HISTORY)
    assert [r.state for r in reviewer.visible()] == [WorkflowState.RETURNED_FROM_REVIEW]
    assert prompt.asked == []


def test_clear_history_needs_confirmation(store: SubmissionStore):
    s1 = store.upsert(make_record("alice_lee_Stage1.pdf"))
    WorkflowEngine(store).approve(s1, "lib1")

    no, _ = _session(store, answer=False)
    assert no.clear_history().outcome == Outcome.DECLINED
    assert len(store.load()) == 1

    yes, prompt = _session(store, answer=True)
    assert yes.clear_history().done
    assert store.load() == []
    assert len(prompt.asked) == 1


def test_download_and_calendar_export(tmp_path: Path, store: SubmissionStore):
    rec = store.upsert(make_record("alice_lee_Stage1.pdf", file=store.put_payload(b"%PDF-1.4 body")))
    session, _ = _session(store)
    session.select(rec)
    assert session.download(tmp_path / "dl").read_bytes() == b"%PDF-1.4 body"

    assert session.export_calendar(rec, tmp_path / "cal") is None
    dated = session.set_deadline("2025-10-04").record
    ics_path = session.export_calendar(dated, tmp_path / "cal")
    assert ics_path.name == "Review_Deadline_alice_lee_Stage1.pdf.ics"
    assert "DTSTART:20251004T000000Z" in ics_path.read_text(encoding="utf-8")


def test_notification_counts_reach_callback(store: SubmissionStore):
    s1 = store.upsert(make_record("alice_lee_Stage1.pdf"))
    librarian, _ = _session(store)
    librarian.select(s1)
    librarian.send_back_to_student()

    student, _ = _session(store, actor="alice_lee", role=Role.STUDENT)
    reported = []
    assert student.notification_counts(reported.append) == {"Stage0": 1}
    assert reported == [{"Stage0": 1}]
    student.set_tab(Tab.RETURNED_TO_STUDENT)
    assert [r.filename for r in student.visible()] == ["alice_lee_Stage0.pdf"]


def test_available_actions_follow_role_state_and_tab(store: SubmissionStore):
    from workflow.transitions import Action

    s1 = store.upsert(make_record("alice_lee_Stage1.pdf"))
    librarian, _ = _session(store)
    assert librarian.available_actions() == []
    librarian.select(s1)
    assert set(librarian.available_actions()) == {
        Action.APPROVE, Action.SEND_BACK_TO_STUDENT, Action.REPLACE_FILE,
    }

    sent = librarian.approve().record
    reviewer, _ = _session(store, actor="rev1", role=Role.REVIEWER)
    reviewer.select(sent)
    assert Action.FINAL_APPROVE in reviewer.available_actions()
    assert Action.APPROVE not in reviewer.available_actions()

    librarian.set_tab(Tab.HISTORY)
    librarian.select(sent)
    assert librarian.available_actions() == []
