from __future__ import annotations

import copy
import json
import logging
import os
import threading
import uuid
from pathlib import Path
from typing import Any, Iterable, Protocol
from urllib.parse import quote, unquote

from cloudnotes.errors import StorageError

logger = logging.getLogger(__name__)

_SUFFIX = ".json"
_TMP_MARKER = ".tmp-"


class KVStore(Protocol):
    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any) -> None: ...

    def delete(self, key: str) -> None: ...

    def delete_many(self, keys: Iterable[str]) -> int: ...

    def scan_by_prefix(self, prefix: str) -> list[Any]: ...


def _atomic_write_json(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    # unique temp name so concurrent writers of one key never share a temp file
    tmp_path = path.with_name(f"{path.name}{_TMP_MARKER}{uuid.uuid4().hex}")
    try:
        with tmp_path.open("w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False)
            f.flush()
            os.fsync(f.fileno())
        tmp_path.replace(path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


def _raise_partial(failed: list[str], total: int) -> None:
    if failed:
        raise StorageError(f"Failed to delete {len(failed)} of {total} keys: {', '.join(failed)}")


class FileKVStore:
    """One JSON file per key; the file name is the percent-encoded key."""

    def __init__(self, base_dir: Path):
        self.base_dir = Path(base_dir) / "kv"

    def _path(self, key: str) -> Path:
        if not key:
            raise ValueError("Empty key")
        return self.base_dir / (quote(key, safe="") + _SUFFIX)

    def get(self, key: str) -> Any | None:
        path = self._path(key)
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as exc:
            logger.error("Failed to read key %s: %s", key, exc)
            raise StorageError(f"Failed to read {key}") from exc

    def set(self, key: str, value: Any) -> None:
        try:
            _atomic_write_json(self._path(key), value)
        except (OSError, TypeError, ValueError) as exc:
            logger.error("Failed to write key %s: %s", key, exc)
            raise StorageError(f"Failed to write {key}") from exc

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as exc:
            logger.error("Failed to delete key %s: %s", key, exc)
            raise StorageError(f"Failed to delete {key}") from exc

    def delete_many(self, keys: Iterable[str]) -> int:
        keys = list(keys)
        failed: list[str] = []
        for key in keys:
            try:
                self.delete(key)
            except StorageError:
                failed.append(key)
        _raise_partial(failed, len(keys))
        return len(keys)

    def scan_by_prefix(self, prefix: str) -> list[Any]:
        if not self.base_dir.exists():
            return []
        out: list[Any] = []
        try:
            names = os.listdir(self.base_dir)
        except OSError as exc:
            raise StorageError("Failed to scan store") from exc
        for name in names:
            if not name.endswith(_SUFFIX) or _TMP_MARKER in name:
                continue
            key = unquote(name[: -len(_SUFFIX)])
            if not key.startswith(prefix):
                continue
            # deleted between listdir and read: not live anymore, skip it
            value = self.get(key)
            if value is not None:
                out.append(value)
        return out


class MemoryKVStore:
    def __init__(self) -> None:
        self._data: dict[str, Any] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        with self._lock:
            value = self._data.get(key)
        return copy.deepcopy(value)

    def set(self, key: str, value: Any) -> None:
        value = copy.deepcopy(value)
        with self._lock:
            self._data[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def delete_many(self, keys: Iterable[str]) -> int:
        keys = list(keys)
        failed: list[str] = []
        for key in keys:
            try:
                self.delete(key)
            except StorageError:
                failed.append(key)
        _raise_partial(failed, len(keys))
        return len(keys)

    def scan_by_prefix(self, prefix: str) -> list[Any]:
        with self._lock:
            values = [v for k, v in self._data.items() if k.startswith(prefix)]
        return copy.deepcopy(values)


def open_store(backend: str, data_dir: Path) -> KVStore:
    if backend == "memory":
        return MemoryKVStore()
    if backend == "file":
        return FileKVStore(data_dir)
    raise ValueError(f"Unknown storage backend: {backend}")
