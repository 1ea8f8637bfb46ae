from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import FileUpload
from app.services.file_storage import StoredFile

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


@dataclass(slots=True)
class FileSearch:
    file_name: Optional[str] = None
    category: Optional[str] = None
    uploaded_by: Optional[str] = None
    from_date: Optional[datetime] = None
    to_date: Optional[datetime] = None
    is_public: Optional[bool] = None
    page: int = 1
    page_size: int = 20


def can_access(record: FileUpload, subject_id: str) -> bool:
    return record.is_public or record.uploaded_by == subject_id


async def record_upload(
    session: AsyncSession,
    stored: StoredFile,
    original_file_name: str,
    content_type: str,
    uploaded_by: str,
    description: Optional[str],
    category: Optional[str],
    is_public: bool,
) -> FileUpload:
    record = FileUpload(
        file_name=stored.file_name,
        original_file_name=original_file_name[:255],
        content_type=(content_type or "application/octet-stream")[:100],
        file_path=stored.file_path,
        file_size=stored.file_size,
        uploaded_by=uploaded_by,
        description=description,
        category=category,
        is_public=is_public,
        checksum=stored.checksum,
    )
    session.add(record)
    await session.commit()

    logger.info("File uploaded: %s by %s", record.file_name, uploaded_by)
    return record


async def get_active_file(session: AsyncSession, file_id: int) -> Optional[FileUpload]:
    result = await session.execute(
        select(FileUpload).where(FileUpload.id == file_id, FileUpload.is_active.is_(True))
    )
    return result.scalar_one_or_none()


async def search_files(session: AsyncSession, subject_id: str, search: FileSearch) -> tuple[Sequence[FileUpload], int]:
    """Active files visible to ``subject_id`` (public or owned), newest first, paginated."""
    conditions = [
        FileUpload.is_active.is_(True),
        or_(FileUpload.is_public.is_(True), FileUpload.uploaded_by == subject_id),
    ]
    if search.file_name:
        conditions.append(FileUpload.original_file_name.contains(search.file_name, autoescape=True))
    if search.category:
        conditions.append(FileUpload.category == search.category)
    if search.uploaded_by:
        conditions.append(FileUpload.uploaded_by == search.uploaded_by)
    if search.from_date is not None:
        conditions.append(FileUpload.uploaded_at >= search.from_date)
    if search.to_date is not None:
        conditions.append(FileUpload.uploaded_at <= search.to_date)
    if search.is_public is not None:
        conditions.append(FileUpload.is_public.is_(search.is_public))

    total = await session.scalar(select(func.count()).select_from(FileUpload).where(*conditions))

    page = max(search.page, 1)
    page_size = min(max(search.page_size, 1), MAX_PAGE_SIZE)
    result = await session.execute(
        select(FileUpload)
        .where(*conditions)
        .order_by(FileUpload.uploaded_at.desc(), FileUpload.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return result.scalars().all(), int(total or 0)


async def deactivate_file(session: AsyncSession, record: FileUpload, subject_id: str) -> None:
    record.is_active = False
    await session.commit()

    logger.info("File deleted: %s by %s", record.file_name, subject_id)
