from __future__ import annotations

import hashlib
from pathlib import Path

import zstandard as zstd

from shared.paths import atomic_write

# Payloads are plain PDFs; a mid compression level keeps writes fast on
# synced folders.
COMPRESSION_LEVEL = 6


def _hash_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def blob_path(objects_dir: Path, digest: str) -> Path:
    return objects_dir / digest[:2] / digest[2:]


def has_blob(objects_dir: Path, digest: str) -> bool:
    return bool(digest) and blob_path(objects_dir, digest).exists()


def put_bytes(objects_dir: Path, data: bytes) -> str:
    """
    Store a payload under objects/<hh>/<rest>, zstd-compressed.
    Returns the sha256 hex digest, which doubles as the record's file handle.
    Identical payloads are stored once.
    """
    digest = _hash_bytes(data)
    if has_blob(objects_dir, digest):
        return digest
    dst = blob_path(objects_dir, digest)
    dst.parent.mkdir(parents=True, exist_ok=True)
    atomic_write(dst, zstd.ZstdCompressor(level=COMPRESSION_LEVEL).compress(data))
    return digest


def get_bytes(objects_dir: Path, digest: str) -> bytes:
    src = blob_path(objects_dir, digest)
    if not src.exists():
        raise FileNotFoundError(f"Payload not found: {digest}")
    return zstd.ZstdDecompressor().decompress(src.read_bytes())


def remove_unreferenced(objects_dir: Path, referenced: set[str]) -> int:
    """Delete blobs no record points at any more. Returns the number removed."""
    removed = 0
    if not objects_dir.exists():
        return removed
    for p in objects_dir.glob("??/*"):
        if p.suffix == ".tmp":
            continue
        if p.parent.name + p.name not in referenced:
            p.unlink()
            removed += 1
    return removed
