from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import List, Optional

from shared.models import Submission

from .legacy import decode_legacy_content, encode_payload
from .store import SubmissionStore


class ContentConverter:
    """
    Payload encode/decode off the caller's thread. Every call returns a
    Future the UI can poll or cancel; `shutdown()` cancels what has not
    started yet.
    """

    def __init__(self, max_workers: int = 2) -> None:
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="reviewdesk-convert")

    def encode(self, data: bytes, *, data_url: bool = False) -> "Future[str]":
        return self._pool.submit(encode_payload, data, data_url=data_url)

    def decode(self, content: str) -> "Future[bytes]":
        return self._pool.submit(decode_legacy_content, content)

    def read_file(self, path: Path) -> "Future[bytes]":
        return self._pool.submit(path.read_bytes)

    def load_records(self, store: SubmissionStore) -> "Future[List[Submission]]":
        """store.load() on a worker; legacy payload migration happens there too."""
        return self._pool.submit(store.load)

    def load_payload(self, store: SubmissionStore, record: Submission) -> "Future[bytes]":
        return self._pool.submit(store.read_payload, record)

    def preview_url(self, store: SubmissionStore, record: Submission) -> "Future[str]":
        """data:application/pdf;base64,... for viewers that take a URL."""
        def _run() -> str:
            return encode_payload(store.read_payload(record), data_url=True)
        return self._pool.submit(_run)

    def shutdown(self, wait: bool = False) -> None:
        self._pool.shutdown(wait=wait, cancel_futures=True)

    def __enter__(self) -> "ContentConverter":
        return self

    def __exit__(self, *exc: Optional[object]) -> None:
        self.shutdown(wait=True)
