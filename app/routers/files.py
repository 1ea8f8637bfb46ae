# app/routers/files.py

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import get_current_identity
from app.database import get_session
from app.schemas import FileListItem, FileListResponse, FileMetadata, FileOut, FileUploadResponse, MessageResponse
from app.services import file_service
from app.services.file_storage import FileStorageError, FileStorageService
from guard.identity import Identity

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/files", tags=["Files"])


def get_file_storage(request: Request) -> FileStorageService:
    return request.app.state.file_storage


def _forbidden() -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized to perform this action")


@router.post("/upload", response_model=FileUploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_file(
    request: Request,
    file: UploadFile = File(...),
    description: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    is_public: bool = Form(False),
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_session),
    storage: FileStorageService = Depends(get_file_storage),
):
    """
    Store an uploaded file under a random name and record its metadata.

    Only allow-listed extensions are accepted; the SHA-256 checksum is kept
    with the record.
    """
    try:
        metadata = FileMetadata(description=description, category=category, is_public=is_public)
    except ValidationError as exc:
        raise RequestValidationError(exc.errors())

    content = await file.read(storage.max_file_bytes + 1)
    try:
        stored = storage.store(file.filename or "", content)
    except FileStorageError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    record = await file_service.record_upload(
        session,
        stored,
        original_file_name=file.filename or stored.file_name,
        content_type=file.content_type or "application/octet-stream",
        uploaded_by=identity.subject_id,
        description=metadata.description,
        category=metadata.category,
        is_public=metadata.is_public,
    )

    download_url = f"{request.app.state.settings.API_V1_STR}/files/download/{record.id}"
    return FileUploadResponse(**FileOut.model_validate(record).model_dump(), download_url=download_url)


@router.get("", response_model=FileListResponse)
async def list_files(
    file_name: Optional[str] = Query(None, max_length=100),
    category: Optional[str] = Query(None, max_length=50),
    uploaded_by: Optional[str] = Query(None, max_length=100),
    from_date: Optional[datetime] = Query(None),
    to_date: Optional[datetime] = Query(None),
    is_public: Optional[bool] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=file_service.MAX_PAGE_SIZE),
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_session),
):
    search = file_service.FileSearch(
        file_name=file_name,
        category=category,
        uploaded_by=uploaded_by,
        from_date=from_date,
        to_date=to_date,
        is_public=is_public,
        page=page,
        page_size=page_size,
    )
    records, total = await file_service.search_files(session, identity.subject_id, search)

    items = [
        FileListItem(
            **FileOut.model_validate(record).model_dump(),
            can_download=file_service.can_access(record, identity.subject_id),
        )
        for record in records
    ]
    return FileListResponse(files=items, total_count=total, page=page, page_size=page_size)


@router.get("/download/{file_id}")
async def download_file(
    file_id: int,
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_session),
    storage: FileStorageService = Depends(get_file_storage),
):
    record = await file_service.get_active_file(session, file_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    if not file_service.can_access(record, identity.subject_id):
        raise _forbidden()

    try:
        path = storage.locate(record.file_path)
    except (FileNotFoundError, FileStorageError):
        logger.warning("Stored file missing on disk: id=%s name=%s", record.id, record.file_name)
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found on disk")

    return FileResponse(path, media_type=record.content_type, filename=record.original_file_name)


@router.get("/{file_id}", response_model=FileListItem)
async def get_file(
    file_id: int,
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_session),
):
    record = await file_service.get_active_file(session, file_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    if not file_service.can_access(record, identity.subject_id):
        raise _forbidden()

    return FileListItem(**FileOut.model_validate(record).model_dump(), can_download=True)


@router.delete("/{file_id}", response_model=MessageResponse)
async def delete_file(
    file_id: int,
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_session),
):
    record = await file_service.get_active_file(session, file_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    if record.uploaded_by != identity.subject_id:
        raise _forbidden()

    await file_service.deactivate_file(session, record, identity.subject_id)
    return MessageResponse(message="File deleted successfully")
