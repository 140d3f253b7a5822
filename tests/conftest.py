from pathlib import Path

import pytest

from shared import config
from shared.models import Submission, WorkflowState
from submissionstore.store import SubmissionStore


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch):
    """Keep every test away from the real per-user config file."""
    cfg_dir = tmp_path / "config"
    monkeypatch.setattr(config, "CONFIG_DIR", cfg_dir)
    monkeypatch.setattr(config, "CONFIG_FILE", cfg_dir / "config.json")
    return cfg_dir / "config.json"


@pytest.fixture
def store(tmp_path: Path) -> SubmissionStore:
    return SubmissionStore(tmp_path / "shared")


@pytest.fixture(scope="session")
def qapp():
    from PySide6.QtCore import QCoreApplication
    return QCoreApplication.instance() or QCoreApplication([])


def make_record(filename: str, state: WorkflowState = WorkflowState.SUBMITTED, time: int = 1000, **kw) -> Submission:
    owner = kw.pop("owner", "_".join(filename.split("_")[:2]))
    return Submission(filename=filename, owner=owner, state=state, time=time, **kw)
