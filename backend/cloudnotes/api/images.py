from typing import Optional

from fastapi import APIRouter, Depends, File, Request, UploadFile

from cloudnotes.errors import ValidationError
from cloudnotes.models.notes import UploadResponse
from cloudnotes.storage.blob_store import BlobStore
from cloudnotes.utils.auth_gate import get_tenant_id

router = APIRouter(prefix="/images", tags=["images"])


def get_blob_store(request: Request) -> BlobStore:
    return request.app.state.blobs


@router.post("/upload", response_model=UploadResponse)
def upload_image(
    request: Request,
    file: Optional[UploadFile] = File(default=None),
    tenant_id: str = Depends(get_tenant_id),
    blobs: BlobStore = Depends(get_blob_store),
) -> UploadResponse:
    if file is None or not file.filename:
        raise ValidationError("No file provided")

    limit = request.app.state.settings.max_upload_bytes
    data = file.file.read(limit + 1)
    if len(data) > limit:
        raise ValidationError(f"File exceeds {limit} bytes")

    stored = blobs.upload(tenant_id, file.filename, data, content_type=file.content_type)
    return UploadResponse(url=stored.url, path=stored.path)
