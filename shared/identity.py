from __future__ import annotations

import re
from typing import TYPE_CHECKING, Optional, Union

from shared.models import Stage

if TYPE_CHECKING:
    from shared.models import Submission

# john_doe_Stage1.pdf -> ("john_doe", "1")
_STAGE_SUFFIX = re.compile(r"^(.+)_Stage(\d+)\.pdf$", re.IGNORECASE)
_PDF_EXT = re.compile(r"\.pdf$", re.IGNORECASE)


def _stage_value(stage: Union[Stage, str]) -> str:
    return stage.value if isinstance(stage, Stage) else str(stage)


def base_identity(filename: str) -> str:
    """Logical document identity: the filename without its _Stage<N>.pdf suffix."""
    m = _STAGE_SUFFIX.match(filename or "")
    if m:
        return m.group(1)
    return _PDF_EXT.sub("", filename or "")


def rename_for_stage(filename: str, stage: Union[Stage, str]) -> str:
    """
    Swap the stage suffix, keeping the base identity.
    Names that do not follow <first>_<last>_Stage<N>.pdf get `_<Stage>`
    appended before the extension instead of failing.
    """
    sv = _stage_value(stage)
    m = _STAGE_SUFFIX.match(filename or "")
    if m:
        return f"{m.group(1)}_{sv}.pdf"
    if _PDF_EXT.search(filename or ""):
        return _PDF_EXT.sub(f"_{sv}.pdf", filename)
    return f"{filename}_{sv}.pdf"


def stage_from_filename(filename: str) -> Optional[Stage]:
    m = _STAGE_SUFFIX.match(filename or "")
    if not m:
        return None
    try:
        return Stage(f"Stage{int(m.group(2))}")
    except ValueError:
        return None


def normalize_name(name: str) -> str:
    """'  Mary  Ann ' -> 'mary_ann'"""
    return re.sub(r"\s+", "_", name or "").strip("_").lower()


def owner_from_filename(filename: str) -> str:
    """first_last taken from <first>_<last>_Stage<N>.pdf; the whole base otherwise."""
    base = base_identity(filename)
    parts = base.split("_")
    if len(parts) >= 2:
        return f"{parts[0]}_{parts[1]}"
    return base


def student_filename(first: str, last: str, stage: Union[Stage, str] = Stage.STAGE1) -> str:
    return f"{normalize_name(first)}_{normalize_name(last)}_{_stage_value(stage)}.pdf"


def display_filename(record: Optional["Submission"]) -> str:
    if record is None:
        return ""
    if stage_from_filename(record.filename) is not None:
        return record.filename
    parts = (record.owner or "").split("_")
    first = parts[0] if parts else ""
    last = parts[1] if len(parts) > 1 else ""
    return f"{first}_{last}_{Stage.STAGE1.value}.pdf"


def wrap_display_name(filename: str, width: int = 32) -> str:
    """Break long base names into `width`-sized chunks, keeping the stage suffix whole."""
    base = base_identity(filename)
    if len(base) <= width:
        return filename
    suffix = filename[len(base):]
    chunks = [base[i:i + width] for i in range(0, len(base), width)]
    return "\n".join(chunks) + suffix
