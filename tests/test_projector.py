from datetime import datetime, timezone
from itertools import product

from shared.identity import base_identity
from shared.models import Role, Submission, Tab, WorkflowState
from workflow.projector import ViewFilter, project, tab_counts, tab_for

from conftest import make_record


def _ms(y: int, m: int, d: int, h: int = 12) -> int:
    return int(datetime(y, m, d, h, tzinfo=timezone.utc).timestamp() * 1000)


def _sample() -> list[Submission]:
    return [
        make_record("alice_lee_Stage1.pdf", time=_ms(2025, 9, 1)),
        make_record("alice_lee_Stage2.pdf", WorkflowState.WITH_REVIEWER, time=_ms(2025, 9, 2),
                    sent_to_reviewer=True, sent_by="lib1"),
        make_record("bob_ray_Stage1.pdf", time=_ms(2025, 9, 3)),
        make_record("cara_diaz_Stage2.pdf", WorkflowState.RETURNED_FROM_REVIEW, time=_ms(2025, 9, 4),
                    returned_from_review=True, sent_by="lib1", reviewed_by="rev1"),
        make_record("dan_ito_Stage0.pdf", WorkflowState.RETURNED_TO_STUDENT, time=_ms(2025, 9, 5),
                    sent_back_to_student=True, sent_back_by="lib1", sent_by="lib2"),
        make_record("eve_moss_Stage2.pdf", WorkflowState.AWAITING_DISPATCH, time=_ms(2025, 9, 6)),
    ]


def test_projection_is_deduplicated():
    records = _sample()
    seen = []
    for tab in Tab:
        out = project(records, "lib1", tab)
        seen.extend(base_identity(r.filename) for r in out)
        assert len({base_identity(r.filename) for r in out}) == len(out)
    # alice's superseded Stage1 version never shows
    assert "alice_lee_Stage1.pdf" not in [r.filename for tab in Tab for r in project(records, "lib1", tab)]
    assert len(seen) == len(set(seen))


def test_librarian_tabs():
    records = _sample()
    names = {tab: [r.filename for r in project(records, "lib1", tab)] for tab in Tab}
    assert names[Tab.TO_REVIEW] == ["bob_ray_Stage1.pdf", "eve_moss_Stage2.pdf"]
    assert names[Tab.RETURNED] == ["cara_diaz_Stage2.pdf"]
    assert names[Tab.HISTORY] == ["alice_lee_Stage2.pdf"]
    assert names[Tab.RETURNED_TO_STUDENT] == ["dan_ito_Stage0.pdf"]
    # the other librarian sent dan's file, but lib1 sent it back
    assert [r.filename for r in project(records, "lib2", Tab.HISTORY)] == ["dan_ito_Stage0.pdf"]


def test_reviewer_and_student_tabs():
    records = _sample()
    assert [r.filename for r in project(records, "rev1", Tab.TO_REVIEW, role=Role.REVIEWER)] == ["alice_lee_Stage2.pdf"]
    assert [r.filename for r in project(records, "rev1", Tab.HISTORY, role=Role.REVIEWER)] == ["cara_diaz_Stage2.pdf"]
    assert [r.filename for r in project(records, "dan_ito", Tab.RETURNED_TO_STUDENT, role=Role.STUDENT)] == [
        "dan_ito_Stage0.pdf"
    ]
    assert project(records, "dan_ito", Tab.TO_REVIEW, role=Role.STUDENT) == []


def test_tabs_are_mutually_exclusive():
    actors = ["lib1", "lib2", "rev1", "alice_lee"]
    for state, sent, returned, back, sent_by, back_by, reviewed_by in product(
        WorkflowState, [False, True], [False, True], [False, True], actors, actors, actors
    ):
        r = make_record("alice_lee_Stage1.pdf", state, sent_to_reviewer=sent, returned_from_review=returned,
                        sent_back_to_student=back, sent_by=sent_by, sent_back_by=back_by, reviewed_by=reviewed_by)
        for actor, role in product(actors, Role):
            hits = [tab for tab in Tab if project([r], actor, tab, role=role)]
            assert len(hits) <= 1
            assert hits == ([tab_for(r, actor, role)] if tab_for(r, actor, role) else [])


def test_text_filters_are_case_insensitive():
    records = _sample()
    f = ViewFilter(user="BOB")
    assert [r.filename for r in project(records, "lib1", Tab.TO_REVIEW, f)] == ["bob_ray_Stage1.pdf"]
    f = ViewFilter(status="stage2")
    assert [r.filename for r in project(records, "lib1", Tab.TO_REVIEW, f)] == ["eve_moss_Stage2.pdf"]
    f = ViewFilter(status="awaiting")
    assert [r.filename for r in project(records, "lib1", Tab.TO_REVIEW, f)] == ["eve_moss_Stage2.pdf"]


def test_date_range_is_inclusive():
    records = _sample()
    f = ViewFilter(date_from="2025-09-03", date_to="2025-09-06")
    assert [r.filename for r in project(records, "lib1", Tab.TO_REVIEW, f)] == [
        "bob_ray_Stage1.pdf",
        "eve_moss_Stage2.pdf",
    ]
    f = ViewFilter(date_to="2025-09-03")
    assert [r.filename for r in project(records, "lib1", Tab.TO_REVIEW, f)] == ["bob_ray_Stage1.pdf"]
    f = ViewFilter(date_from="2025-09-04")
    assert [r.filename for r in project(records, "lib1", Tab.TO_REVIEW, f)] == ["eve_moss_Stage2.pdf"]


def test_counts_ignore_filters():
    records = _sample()
    counts = tab_counts(records, "lib1")
    assert counts == {Tab.TO_REVIEW: 2, Tab.RETURNED: 1, Tab.HISTORY: 1, Tab.RETURNED_TO_STUDENT: 1}
    narrowed = project(records, "lib1", Tab.TO_REVIEW, ViewFilter(user="bob"))
    assert len(narrowed) == 1 and counts[Tab.TO_REVIEW] == 2


def test_filter_prefs_round_trip():
    f = ViewFilter(user="alice", date_to="2025-09-30")
    assert ViewFilter.from_prefs(f.to_prefs()) == f
    assert ViewFilter.from_prefs({}).is_empty()
