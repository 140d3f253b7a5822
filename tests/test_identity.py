from shared.identity import (
    base_identity,
    display_filename,
    normalize_name,
    owner_from_filename,
    rename_for_stage,
    stage_from_filename,
    student_filename,
    wrap_display_name,
)
from shared.models import Stage, WorkflowState

from conftest import make_record


def test_base_identity_ignores_stage_and_case():
    assert base_identity("alice_lee_Stage1.pdf") == "alice_lee"
    assert base_identity("alice_lee_stage2.PDF") == "alice_lee"
    assert base_identity("alice_lee_Stage0.pdf") == base_identity("alice_lee_Stage2.pdf")
    # no stage suffix: only the extension goes
    assert base_identity("report.pdf") == "report"


def test_rename_for_stage_keeps_identity():
    assert rename_for_stage("alice_lee_Stage1.pdf", Stage.STAGE2) == "alice_lee_Stage2.pdf"
    assert rename_for_stage("alice_lee_STAGE2.pdf", "Stage0") == "alice_lee_Stage0.pdf"
    renamed = rename_for_stage("bob_ray_Stage1.pdf", Stage.STAGE0)
    assert base_identity(renamed) == "bob_ray"


def test_rename_for_stage_falls_back_on_odd_names():
    assert rename_for_stage("thesis final.pdf", Stage.STAGE2) == "thesis final_Stage2.pdf"
    assert rename_for_stage("notes", Stage.STAGE1) == "notes_Stage1.pdf"
    # repaired names parse afterwards
    assert stage_from_filename(rename_for_stage("thesis.pdf", Stage.STAGE2)) == Stage.STAGE2


def test_stage_and_owner_parsing():
    assert stage_from_filename("alice_lee_Stage2.pdf") == Stage.STAGE2
    assert stage_from_filename("alice_lee_Stage7.pdf") is None
    assert stage_from_filename("alice_lee.pdf") is None
    assert owner_from_filename("alice_lee_Stage1.pdf") == "alice_lee"


def test_student_filename_and_normalize_name():
    assert normalize_name("  Mary  Ann ") == "mary_ann"
    assert student_filename("Alice", "Lee") == "alice_lee_Stage1.pdf"


def test_display_filename_builds_from_owner():
    rec = make_record("scan.pdf", WorkflowState.SUBMITTED, owner="alice_lee")
    assert display_filename(rec) == "alice_lee_Stage1.pdf"
    assert display_filename(make_record("bob_ray_Stage2.pdf", WorkflowState.WITH_REVIEWER)) == "bob_ray_Stage2.pdf"
    assert display_filename(None) == ""


def test_wrap_display_name():
    long_base = "a" * 40 + "_b"
    wrapped = wrap_display_name(f"{long_base}_Stage1.pdf", width=32)
    assert wrapped.split("\n")[0] == "a" * 32
    assert wrapped.endswith("_Stage1.pdf")
    assert wrap_display_name("alice_lee_Stage1.pdf") == "alice_lee_Stage1.pdf"
