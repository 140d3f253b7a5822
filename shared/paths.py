from __future__ import annotations

import os
import re
import tempfile
from pathlib import Path

SUBMISSIONS_FILE = "submissions.json"


def slugify(name: str) -> str:
    s = name.strip().lower()
    s = re.sub(r"[^a-z0-9]+", "-", s)
    s = re.sub(r"-{2,}", "-", s).strip("-")
    return s or "untitled"


def ensure_dirs(*paths: Path) -> None:
    for p in paths:
        p.mkdir(parents=True, exist_ok=True)


def atomic_write(path: Path, data: bytes) -> None:
    """
    Replace `path` with `data` in one rename. Each call writes its own temp
    file next to the target, so concurrent writers never share one.
    """
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise


def store_paths(store_root: Path) -> dict[str, Path]:
    """
    Layout of a shared store folder:
      <root>/submissions.json   ordered record list
      <root>/objects/           zstd payload blobs
      <root>/notifications/     one JSON file per notification
      <root>/activity/          one JSON file per logged action
    """
    subs = {
        "objects": store_root / "objects",
        "notifications": store_root / "notifications",
        "activity": store_root / "activity",
    }
    ensure_dirs(store_root, *subs.values())
    subs["root"] = store_root
    subs["submissions"] = store_root / SUBMISSIONS_FILE
    return subs


def export_name(title: str, ext: str) -> str:
    """'Review Deadline: a_b_Stage1.pdf' -> 'Review_Deadline_a_b_Stage1.pdf.ics'"""
    name = re.sub(r'[\\/:*?"<>|]', "", title.strip())
    return re.sub(r"\s+", "_", name) + ext
