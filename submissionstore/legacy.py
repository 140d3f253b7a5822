"""
Migration of records written by the browser client.

Those records carry the PDF inline as base64 in `content` (sometimes as a
full data URL) instead of a `file` handle. Loading materialises the bytes
into the blob store and clears `content`.
"""
from __future__ import annotations

import base64
import binascii
import logging
import re
from pathlib import Path

from shared.identity import rename_for_stage, stage_from_filename
from shared.models import Submission

from .storage.cas import put_bytes

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


def strip_data_url(content: str) -> str:
    """'data:application/pdf;base64,JVBE...' -> 'JVBE...' with whitespace removed."""
    s = content
    if s.startswith("data:"):
        s = s.split(",", 1)[1] if "," in s else ""
    return _WHITESPACE.sub("", s)


def decode_legacy_content(content: str) -> bytes:
    """Raises binascii.Error / ValueError on malformed input."""
    cleaned = strip_data_url(content)
    if not cleaned:
        raise ValueError("empty payload")
    return base64.b64decode(cleaned, validate=True)


def encode_payload(data: bytes, *, data_url: bool = False) -> str:
    encoded = base64.b64encode(data).decode("ascii")
    if data_url:
        return f"data:application/pdf;base64,{encoded}"
    return encoded


def repair_filename(record: Submission) -> Submission:
    """Force the filename suffix to agree with the record's stage."""
    if stage_from_filename(record.filename) == record.stage:
        return record
    fixed = rename_for_stage(record.filename, record.stage)
    logger.info("Renamed %s -> %s to match %s", record.filename, fixed, record.stage.value)
    return record.evolve(filename=fixed)


def materialise_content(record: Submission, objects_dir: Path) -> Submission:
    """
    Move a legacy base64 payload into the blob store. A record whose payload
    does not decode is returned unchanged so the rest of the store still loads.
    """
    if not record.content or record.file:
        return record
    try:
        data = decode_legacy_content(record.content)
    except (binascii.Error, ValueError) as e:
        logger.warning("Could not decode legacy content of %s: %s", record.filename, e)
        return record
    digest = put_bytes(objects_dir, data)
    return record.evolve(file=digest, content=None)


def normalise_record(record: Submission, objects_dir: Path) -> Submission:
    return materialise_content(repair_filename(record), objects_dir)
