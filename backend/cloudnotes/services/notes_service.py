from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Mapping
from urllib.parse import quote

from cloudnotes.errors import NotFound, StorageError
from cloudnotes.storage.kv_store import KVStore

logger = logging.getLogger(__name__)

# fields a caller may change; id/createdAt/updatedAt are owned by the service
EDITABLE_FIELDS = ("title", "content")


def now_ms() -> int:
    return time.time_ns() // 1_000_000


def tenant_prefix(tenant_id: str) -> str:
    # quoted so a tenant id containing ":" cannot spell another tenant's prefix
    if not tenant_id:
        raise ValueError("Invalid tenant_id")
    return f"tenant:{quote(tenant_id, safe='')}:note:"


def note_key(tenant_id: str, note_id: str) -> str:
    return tenant_prefix(tenant_id) + note_id


def new_note_id(ms: int) -> str:
    return f"{ms}-{uuid.uuid4().hex[:12]}"


@dataclass(frozen=True)
class Note:
    id: str
    title: str
    content: str
    created_at: int
    updated_at: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Note":
        return cls(
            id=str(raw["id"]),
            title=str(raw.get("title") or ""),
            content=str(raw.get("content") or ""),
            created_at=int(raw["createdAt"]),
            updated_at=int(raw["updatedAt"]),
        )


def sort_notes(notes: list[Note]) -> list[Note]:
    """Newest first; equal timestamps fall back to id so the order is stable."""
    by_id = sorted(notes, key=lambda n: n.id)
    return sorted(by_id, key=lambda n: n.updated_at, reverse=True)


def _decode(raw: Any, tenant_id: str) -> Note:
    try:
        return Note.from_dict(raw)
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        logger.error("Corrupted note record for tenant %s: %s", tenant_id, exc)
        raise StorageError("Corrupted note record") from exc


class NoteService:
    """Tenant-scoped CRUD over notes stored as `tenant:{tenant}:note:{id}` keys.

    Callers pass a tenant id that AuthGate already verified; the key prefix is
    the only thing separating tenants.
    """

    def __init__(self, kv: KVStore, clock: Callable[[], int] = now_ms):
        self.kv = kv
        self.clock = clock

    def list_notes(self, tenant_id: str) -> list[Note]:
        raw_notes = self.kv.scan_by_prefix(tenant_prefix(tenant_id))
        return sort_notes([_decode(raw, tenant_id) for raw in raw_notes])

    def get_note(self, tenant_id: str, note_id: str) -> Note | None:
        raw = self.kv.get(note_key(tenant_id, note_id))
        if raw is None:
            return None
        return _decode(raw, tenant_id)

    def create_note(self, tenant_id: str, title: str = "", content: str = "") -> Note:
        now = self.clock()
        note = Note(
            id=new_note_id(now),
            title=title or "",
            content=content or "",
            created_at=now,
            updated_at=now,
        )
        self.kv.set(note_key(tenant_id, note.id), note.to_dict())
        logger.debug("Created note %s for tenant %s", note.id, tenant_id)
        return note

    def update_note(self, tenant_id: str, note_id: str, fields: Mapping[str, Any]) -> Note:
        key = note_key(tenant_id, note_id)
        raw = self.kv.get(key)
        if raw is None:
            # also the answer for another tenant's id: different key, same miss
            raise NotFound()

        existing = _decode(raw, tenant_id)
        merged = existing.to_dict()
        for name in EDITABLE_FIELDS:
            if fields.get(name) is not None:
                merged[name] = fields[name]
        merged["id"] = existing.id
        merged["createdAt"] = existing.created_at
        # strictly increasing even when two updates land in the same millisecond
        merged["updatedAt"] = max(self.clock(), existing.updated_at + 1)

        updated = Note.from_dict(merged)
        self.kv.set(key, updated.to_dict())
        return updated

    def delete_note(self, tenant_id: str, note_id: str) -> None:
        # absent note is not an error: delete is idempotent
        self.kv.delete(note_key(tenant_id, note_id))

    def delete_all(self, tenant_id: str) -> int:
        """Best-effort bulk delete; returns how many notes existed at scan time.

        Not atomic: a failure partway leaves the already-deleted notes deleted
        and raises StorageError.
        """
        raw_notes = self.kv.scan_by_prefix(tenant_prefix(tenant_id))
        keys = [note_key(tenant_id, _decode(raw, tenant_id).id) for raw in raw_notes]
        if keys:
            try:
                self.kv.delete_many(keys)
            except StorageError:
                logger.warning("Partial bulk delete for tenant %s (%d keys)", tenant_id, len(keys))
                raise
        logger.info("Deleted %d notes for tenant %s", len(keys), tenant_id)
        return len(keys)
