from fastapi import APIRouter, Depends, Request

from cloudnotes.models.notes import (
    DeleteAllResponse,
    DeleteResponse,
    NoteCreate,
    NoteOut,
    NoteResponse,
    NotesResponse,
    NoteUpdate,
)
from cloudnotes.services.notes_service import NoteService
from cloudnotes.utils.auth_gate import get_tenant_id

router = APIRouter(prefix="/notes", tags=["notes"])


def get_note_service(request: Request) -> NoteService:
    return request.app.state.notes


@router.get("", response_model=NotesResponse)
def list_notes(
    tenant_id: str = Depends(get_tenant_id),
    notes: NoteService = Depends(get_note_service),
) -> NotesResponse:
    return NotesResponse(notes=[NoteOut.from_note(n) for n in notes.list_notes(tenant_id)])


@router.post("", response_model=NoteResponse)
def create_note(
    payload: NoteCreate,
    tenant_id: str = Depends(get_tenant_id),
    notes: NoteService = Depends(get_note_service),
) -> NoteResponse:
    note = notes.create_note(tenant_id, title=payload.title, content=payload.content)
    return NoteResponse(note=NoteOut.from_note(note))


@router.put("/{note_id}", response_model=NoteResponse)
def update_note(
    note_id: str,
    payload: NoteUpdate,
    tenant_id: str = Depends(get_tenant_id),
    notes: NoteService = Depends(get_note_service),
) -> NoteResponse:
    updated = notes.update_note(tenant_id, note_id, payload.model_dump(exclude_none=True))
    return NoteResponse(note=NoteOut.from_note(updated))


@router.delete("/{note_id}", response_model=DeleteResponse)
def delete_note(
    note_id: str,
    tenant_id: str = Depends(get_tenant_id),
    notes: NoteService = Depends(get_note_service),
) -> DeleteResponse:
    notes.delete_note(tenant_id, note_id)
    return DeleteResponse()


@router.delete("", response_model=DeleteAllResponse)
def delete_all_notes(
    tenant_id: str = Depends(get_tenant_id),
    notes: NoteService = Depends(get_note_service),
) -> DeleteAllResponse:
    return DeleteAllResponse(deletedCount=notes.delete_all(tenant_id))
