# shared/osutil.py
from __future__ import annotations

import subprocess
import sys
import tempfile
from pathlib import Path


def open_with_default_app(path: Path) -> None:
    if sys.platform.startswith("win"):
        import os
        os.startfile(str(path))  # type: ignore[attr-defined]
    elif sys.platform == "darwin":
        subprocess.run(["open", str(path)], check=False)
    else:
        subprocess.run(["xdg-open", str(path)], check=False)


def preview_bytes(data: bytes, filename: str) -> Path:
    """Write a payload to a temp folder and hand it to the system PDF viewer."""
    folder = Path(tempfile.mkdtemp(prefix="reviewdesk-preview-"))
    dst = folder / Path(filename).name
    dst.write_bytes(data)
    open_with_default_app(dst)
    return dst
