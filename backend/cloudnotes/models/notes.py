from typing import Optional

from pydantic import BaseModel, Field

from cloudnotes.services.notes_service import Note


class NoteCreate(BaseModel):
    title: str = Field(default="", max_length=500)
    content: str = Field(default="", max_length=2_000_000)


class NoteUpdate(BaseModel):
    # partial Note; id/createdAt/updatedAt may be sent back and are ignored
    title: Optional[str] = Field(default=None, max_length=500)
    content: Optional[str] = Field(default=None, max_length=2_000_000)


class NoteOut(BaseModel):
    id: str
    title: str
    content: str
    createdAt: int
    updatedAt: int

    @classmethod
    def from_note(cls, note: Note) -> "NoteOut":
        return cls(**note.to_dict())


class NoteResponse(BaseModel):
    note: NoteOut


class NotesResponse(BaseModel):
    notes: list[NoteOut]


class DeleteResponse(BaseModel):
    success: bool = True


class DeleteAllResponse(BaseModel):
    success: bool = True
    deletedCount: int


class UploadResponse(BaseModel):
    url: str
    path: str
