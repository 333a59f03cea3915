"""Async HTTP client for the notes REST API.

Usage::

    async with NotesApiClient("http://localhost:8000", token) as api:
        notes = await api.list_notes()
        note = await api.create_note(title="Groceries")

Error responses come back as the same :mod:`cloudnotes.errors` classes the
server raised (mapped from the HTTP status); network failures raise
:class:`~cloudnotes.errors.TransportError`.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from cloudnotes.errors import TransportError, error_for_status
from cloudnotes.services.notes_service import Note

logger = logging.getLogger(__name__)


class NotesApiClient:
    """Thin async wrapper around ``/notes`` and ``/images`` endpoints.

    Args:
        base_url: API root (trailing slash is stripped).
        token: Bearer credential sent on every request.
        client: Optional pre-built ``httpx.AsyncClient`` (tests pass one with an
            ``ASGITransport``); when omitted the client owns its own.
        timeout: Request timeout in seconds for an owned client.
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        self._url = base_url.rstrip("/")
        self._token = token
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def __aenter__(self) -> "NotesApiClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # Notes
    # ------------------------------------------------------------------

    async def list_notes(self) -> list[Note]:
        data = await self._request("GET", "/notes")
        return [Note.from_dict(raw) for raw in data.get("notes") or []]

    async def create_note(self, title: str = "", content: str = "") -> Note:
        data = await self._request("POST", "/notes", json={"title": title, "content": content})
        return Note.from_dict(data["note"])

    async def update_note(self, note_id: str, fields: dict[str, Any]) -> Note:
        data = await self._request("PUT", f"/notes/{note_id}", json=fields)
        return Note.from_dict(data["note"])

    async def delete_note(self, note_id: str) -> None:
        await self._request("DELETE", f"/notes/{note_id}")

    async def delete_all(self) -> int:
        data = await self._request("DELETE", "/notes")
        return int(data.get("deletedCount", 0))

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    async def upload_image(self, filename: str, data: bytes, content_type: str = "application/octet-stream") -> dict:
        """Upload bytes to the blob store; returns ``{"url": ..., "path": ...}``."""
        return await self._request("POST", "/images/upload", files={"file": (filename, data, content_type)})

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict:
        headers = {"Authorization": f"Bearer {self._token}"}
        try:
            response = await self._client.request(method, f"{self._url}{path}", headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise TransportError(str(exc) or None) from exc

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.is_error:
            message = data.get("error") if isinstance(data, dict) else None
            logger.debug("%s %s -> %d %s", method, path, response.status_code, message)
            raise error_for_status(response.status_code, message)
        return data
