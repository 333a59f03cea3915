from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from cloudnotes.errors import UploadError

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass(frozen=True)
class StoredBlob:
    url: str
    path: str


class BlobStore(Protocol):
    def upload(self, owner: str, filename: str, data: bytes, content_type: str | None = None) -> StoredBlob: ...


def _safe_name(name: str) -> str:
    cleaned = _UNSAFE_CHARS.sub("_", Path(name or "upload").name).strip("._")
    return cleaned or "upload"


class LocalBlobStore:
    """Files under `<data_dir>/images/<owner>/<ms>-<name>`, served below `base_url`."""

    def __init__(self, base_dir: Path, base_url: str):
        self.root = Path(base_dir) / "images"
        self.base_url = base_url.rstrip("/")

    def upload(self, owner: str, filename: str, data: bytes, content_type: str | None = None) -> StoredBlob:
        rel = f"{_safe_name(owner)}/{time.time_ns() // 1_000_000}-{_safe_name(filename)}"
        target = self.root / rel
        if target.exists():
            raise UploadError("Image already exists")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            logger.error("Image upload failed for %s: %s", owner, exc)
            raise UploadError() from exc
        logger.info("Stored image %s (%d bytes, %s)", rel, len(data), content_type or "unknown type")
        return StoredBlob(url=f"{self.base_url}/{rel}", path=rel)
