import json
from pathlib import Path

from shared import config


def test_defaults_written_on_first_load(isolated_config: Path):
    cfg = config.load_config()
    assert isolated_config.exists()
    assert cfg["settings"]["confirm_on"] is False
    assert config.max_upload_bytes() == 10 * 1024 * 1024
    assert config.poll_interval_ms() == 1000


def test_corrupt_config_is_backed_up_and_reset(isolated_config: Path):
    isolated_config.parent.mkdir(parents=True)
    isolated_config.write_text("{broken", encoding="utf-8")

    cfg = config.load_config()

    assert cfg["defaults"]["role"] == "librarian"
    assert isolated_config.with_suffix(".bak").read_text(encoding="utf-8") == "{broken"


def test_old_config_gains_new_sections(isolated_config: Path):
    isolated_config.parent.mkdir(parents=True)
    isolated_config.write_text(json.dumps({"settings": {"max_upload_mb": 5}}), encoding="utf-8")

    assert config.max_upload_bytes() == 5 * 1024 * 1024
    assert config.get_setting("confirm_on") is False
    assert config.get_filter_prefs("lib1") == {}


def test_actor_scoped_state(isolated_config: Path):
    config.remember_defaults("/srv/shared", "lib1", "librarian")
    assert config.get_defaults()["store_root"] == "/srv/shared"

    config.save_filter_prefs("lib1", {"user": "alice", "status": ""})
    config.mark_receipt("lib1", "alice_lee_Stage1.pdf")
    config.save_session_state("lib1", "alice_lee_Stage1.pdf", "check refs")

    assert config.get_filter_prefs("lib1") == {"user": "alice"}
    assert config.get_receipts("lib1") == {"alice_lee_Stage1.pdf": True}
    assert config.get_receipts("lib2") == {}
    assert config.get_session_state("lib1") == {"selected": "alice_lee_Stage1.pdf", "notes": "check refs"}
