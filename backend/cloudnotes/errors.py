from __future__ import annotations


class NotesError(Exception):
    """Base error; `status_code` is the HTTP status it maps to at the API boundary."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthenticated(NotesError):
    status_code = 401
    default_message = "Unauthorized"


class NotFound(NotesError):
    status_code = 404
    default_message = "Note not found"


class ValidationError(NotesError):
    status_code = 400
    default_message = "Invalid request"


class Conflict(NotesError):
    status_code = 409
    default_message = "Conflict"


class StorageError(NotesError):
    status_code = 500
    default_message = "Storage failure"


class UploadError(NotesError):
    status_code = 500
    default_message = "Failed to upload image"


class TransportError(NotesError):
    """Client side: the API could not be reached."""

    status_code = 503
    default_message = "Notes API unreachable"


_BY_STATUS: dict[int, type[NotesError]] = {
    400: ValidationError,
    401: Unauthenticated,
    404: NotFound,
    409: Conflict,
    422: ValidationError,
}


def error_for_status(status_code: int, message: str | None = None) -> NotesError:
    """Rebuild the error class for an API response status (client side)."""
    cls = _BY_STATUS.get(status_code)
    if cls is None:
        cls = StorageError if status_code >= 500 else NotesError
    return cls(message)
