"""Client-side note collection kept in sync with the notes API.

Local edits are applied immediately and flushed in the background; a periodic
poll replaces the collection with the server's list (last write wins).

Per-note states::

    CLEAN --edit--> DIRTY --flush--> SYNCING --ok--> CLEAN
                                             --fail--> ERROR (still dirty)
    ERROR --poll sent after the failure--> CLEAN (server record) or dropped

Every edit bumps a per-note counter. A flush response only replaces the local
record when no newer edit happened meanwhile, and with
``protect_unflushed_edits`` a poll response never overwrites a note whose flush
is still in flight or that changed locally after the poll was sent. Once a
flush has settled, either way, the next poll is authoritative for that note.
"""

from __future__ import annotations

import asyncio
import contextlib
import enum
import logging
from dataclasses import replace
from typing import Any, Callable, Optional

from cloudnotes.client.api_client import NotesApiClient
from cloudnotes.client.document import word_count
from cloudnotes.errors import NotesError
from cloudnotes.services.notes_service import EDITABLE_FIELDS, Note, now_ms

logger = logging.getLogger(__name__)

ErrorCallback = Callable[[str, Optional[str], NotesError], None]


class SyncState(str, enum.Enum):
    CLEAN = "clean"
    DIRTY = "dirty"
    SYNCING = "syncing"
    ERROR = "error"


class SyncClient:
    """In-memory mirror of one user's notes.

    Args:
        api: Client for the notes REST API.
        poll_interval: Seconds between background polls.
        protect_unflushed_edits: Keep local records that are newer than a poll
            response instead of overwriting them. ``False`` gives the plain
            whole-collection replace.
        on_error: Called with ``(operation, note_id, error)`` when a background
            flush fails.
    """

    def __init__(
        self,
        api: NotesApiClient,
        poll_interval: float = 5.0,
        protect_unflushed_edits: bool = True,
        on_error: ErrorCallback | None = None,
    ) -> None:
        self._api = api
        self.poll_interval = poll_interval
        self.protect_unflushed_edits = protect_unflushed_edits
        self._on_error = on_error

        self._notes: list[Note] = []
        self._states: dict[str, SyncState] = {}
        self._edit_seq: dict[str, int] = {}
        self._pending: dict[str, dict[str, Any]] = {}
        # note id -> None while a local change is unconfirmed, else the last
        # poll number that may still predate the confirmed local record
        self._guards: dict[str, Optional[int]] = {}
        self._tombstones: dict[str, Optional[int]] = {}
        self._poll_seq = 0

        self._in_flight = 0
        self._tasks: set[asyncio.Task] = set()
        self._poll_task: asyncio.Task | None = None
        self.last_synced_at: int | None = None

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def notes(self) -> list[Note]:
        return list(self._notes)

    @property
    def is_syncing(self) -> bool:
        return self._in_flight > 0

    def get(self, note_id: str) -> Note | None:
        idx = self._index(note_id)
        return None if idx is None else self._notes[idx]

    def state_of(self, note_id: str) -> SyncState | None:
        if self._index(note_id) is None:
            return None
        return self._states.get(note_id, SyncState.CLEAN)

    def search(self, query: str) -> list[Note]:
        if not query:
            return self.notes
        q = query.lower()
        return [n for n in self._notes if q in n.title.lower() or q in n.content.lower()]

    def total_words(self) -> int:
        return sum(word_count(n.content) for n in self._notes)

    # ------------------------------------------------------------------
    # Fetch and poll
    # ------------------------------------------------------------------

    async def refresh(self) -> list[Note]:
        """Fetch the full list and replace local state. Failures propagate."""
        self._poll_seq += 1
        seq = self._poll_seq
        self._in_flight += 1
        try:
            server_notes = await self._api.list_notes()
        finally:
            self._in_flight -= 1
        self._replace(server_notes, seq)
        return self.notes

    async def poll_once(self) -> bool:
        """Background refresh: failures are logged, never raised."""
        try:
            await self.refresh()
        except NotesError as exc:
            logger.warning("Background sync failed: %s", exc)
            return False
        return True

    def start(self) -> None:
        if self._poll_task is None or self._poll_task.done():
            self._poll_task = asyncio.get_running_loop().create_task(self._poll_loop())

    async def stop(self) -> None:
        """Stop polling. In-flight requests are left to finish."""
        task, self._poll_task = self._poll_task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def wait_idle(self) -> None:
        """Wait for every background flush scheduled so far."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            try:
                await self.poll_once()
            except Exception:
                logger.exception("Unexpected error in sync loop")

    def _replace(self, server_notes: list[Note], seq: int) -> None:
        if not self.protect_unflushed_edits:
            self._notes = list(server_notes)
        else:
            local = {n.id: n for n in self._notes}
            server_ids = {n.id for n in server_notes}
            # confirmed-locally notes a stale response does not know about yet
            merged = [
                n for n in self._notes
                if n.id not in server_ids and self._keeps_local(n.id, seq)
            ]
            for note in server_notes:
                if self._hidden(note.id, seq):
                    continue
                if note.id in local and self._keeps_local(note.id, seq):
                    merged.append(local[note.id])
                else:
                    merged.append(note)
                    # server record wins: edits that never got through are dropped
                    self._states.pop(note.id, None)
                    self._pending.pop(note.id, None)
            self._notes = merged
        self._expire(self._guards, seq)
        self._expire(self._tombstones, seq)

        live = {n.id for n in self._notes}
        for table in (self._states, self._edit_seq, self._pending, self._guards):
            for note_id in [k for k in table if k not in live]:
                del table[note_id]
        self.last_synced_at = now_ms()

    def _keeps_local(self, note_id: str, seq: int) -> bool:
        if note_id not in self._guards:
            return False
        guard = self._guards[note_id]
        return guard is None or seq <= guard

    def _hidden(self, note_id: str, seq: int) -> bool:
        if note_id not in self._tombstones:
            return False
        tomb = self._tombstones[note_id]
        return tomb is None or seq <= tomb

    @staticmethod
    def _expire(table: dict[str, Optional[int]], seq: int) -> None:
        for note_id in [k for k, v in table.items() if v is not None and seq > v]:
            del table[note_id]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create(self, title: str = "", content: str = "") -> Note:
        """Create on the server, then insert at the head. Failures propagate."""
        self._in_flight += 1
        try:
            note = await self._api.create_note(title=title, content=content)
        finally:
            self._in_flight -= 1
        self._notes = [note] + [n for n in self._notes if n.id != note.id]
        self._states[note.id] = SyncState.CLEAN
        self._guards[note.id] = self._poll_seq
        self.last_synced_at = now_ms()
        return note

    def edit(self, note_id: str, *, title: str | None = None, content: str | None = None) -> asyncio.Task:
        """Apply an edit locally right away and flush it in the background.

        Returns the flush task; its result is the server record, or None when
        the flush failed (the failure goes to ``on_error``). Raises KeyError
        when the note is not in the local collection.
        """
        fields = {k: v for k, v in (("title", title), ("content", content)) if v is not None}
        if not fields:
            raise ValueError("Nothing to edit")
        idx = self._index(note_id)
        if idx is None:
            raise KeyError(note_id)

        self._notes[idx] = replace(self._notes[idx], **fields)
        self._edit_seq[note_id] = self._edit_seq.get(note_id, 0) + 1
        self._pending.setdefault(note_id, {}).update(fields)
        self._states[note_id] = SyncState.DIRTY
        self._guards[note_id] = None
        return self._schedule_flush(note_id)

    def flush(self, note_id: str) -> asyncio.Task | None:
        """Re-send the unconfirmed edits of a note; None when it is clean."""
        if not self._pending.get(note_id) or self._index(note_id) is None:
            return None
        self._guards[note_id] = None
        return self._schedule_flush(note_id)

    async def delete(self, note_id: str) -> None:
        """Remove locally, then on the server. No rollback when the server fails."""
        self._notes = [n for n in self._notes if n.id != note_id]
        for table in (self._states, self._edit_seq, self._pending, self._guards):
            table.pop(note_id, None)
        self._tombstones[note_id] = None
        self._in_flight += 1
        try:
            await self._api.delete_note(note_id)
        finally:
            self._in_flight -= 1
            # polls sent before this point may still list the note
            self._tombstones[note_id] = self._poll_seq

    async def clear_all(self) -> int:
        self._in_flight += 1
        try:
            count = await self._api.delete_all()
        finally:
            self._in_flight -= 1
        for note in self._notes:
            self._tombstones[note.id] = self._poll_seq
        self._notes = []
        for table in (self._states, self._edit_seq, self._pending, self._guards):
            table.clear()
        return count

    async def upload_image(self, filename: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        """Upload an attachment and return its URL."""
        stored = await self._api.upload_image(filename, data, content_type=content_type)
        return stored["url"]

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _index(self, note_id: str) -> int | None:
        for i, note in enumerate(self._notes):
            if note.id == note_id:
                return i
        return None

    def _schedule_flush(self, note_id: str) -> asyncio.Task:
        fields = {k: v for k, v in self._pending[note_id].items() if k in EDITABLE_FIELDS}
        seq = self._edit_seq.get(note_id, 0)
        task = asyncio.get_running_loop().create_task(self._flush(note_id, fields, seq))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _flush(self, note_id: str, fields: dict[str, Any], seq: int) -> Note | None:
        if self._index(note_id) is not None:
            self._states[note_id] = SyncState.SYNCING
        self._in_flight += 1
        try:
            note = await self._api.update_note(note_id, fields)
        except NotesError as exc:
            current = self._edit_seq.get(note_id) == seq
            if current and self._index(note_id) is not None:
                self._states[note_id] = SyncState.ERROR
                # nothing in flight any more: polls sent from now on win
                self._guards[note_id] = self._poll_seq
            logger.warning("Failed to sync note %s: %s", note_id, exc)
            if self._on_error is not None:
                self._on_error("update", note_id, exc)
            return None
        finally:
            self._in_flight -= 1

        idx = self._index(note_id)
        if idx is None:
            # deleted locally while the update was in flight
            return note
        if self._edit_seq.get(note_id) != seq:
            # a newer edit is on its way; its response will settle the record
            return note
        self._notes[idx] = note
        self._states[note_id] = SyncState.CLEAN
        self._pending.pop(note_id, None)
        self._guards[note_id] = self._poll_seq
        self.last_synced_at = now_ms()
        return note
