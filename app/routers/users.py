# app/routers/users.py

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import require_roles
from app.database import get_session
from app.models import ROLE_ADMIN
from app.schemas import MessageResponse, PublicUserMatch, UserAdminView, UserUpdate
from app.services import user_service
from guard.identity import Identity

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])

require_admin = require_roles(ROLE_ADMIN)


@router.get("/public-search", response_model=List[PublicUserMatch])
async def public_search(
    username: Optional[str] = Query(None, max_length=100),
    session: AsyncSession = Depends(get_session),
):
    """Anonymous lookup returning at most five matching usernames and nothing else."""
    if not username or not username.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Username parameter is required")

    return await user_service.search_users(session, username=username, limit=user_service.PUBLIC_SEARCH_LIMIT)


@router.get("/search", response_model=List[UserAdminView])
async def search_users(
    username: Optional[str] = Query(None, max_length=100),
    email: Optional[str] = Query(None, max_length=255),
    session: AsyncSession = Depends(get_session),
    admin: Identity = Depends(require_admin),
):
    return await user_service.search_users(session, username=username, email=email)


@router.get("", response_model=List[UserAdminView])
async def list_users(
    session: AsyncSession = Depends(get_session),
    admin: Identity = Depends(require_admin),
):
    return await user_service.list_users(session)


@router.get("/{user_id}", response_model=UserAdminView)
async def get_user(
    user_id: int,
    session: AsyncSession = Depends(get_session),
    admin: Identity = Depends(require_admin),
):
    user = await user_service.get_user_by_id(session, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


@router.put("/{user_id}", response_model=MessageResponse)
async def update_user(
    user_id: int,
    payload: UserUpdate,
    session: AsyncSession = Depends(get_session),
    admin: Identity = Depends(require_admin),
):
    try:
        user = await user_service.update_user(session, user_id, payload)
    except user_service.UserConflictError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    logger.info("User updated by admin %s: %s", admin.subject_id, user_id)
    return MessageResponse(message="User updated successfully")


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: int,
    session: AsyncSession = Depends(get_session),
    admin: Identity = Depends(require_admin),
):
    if not await user_service.deactivate_user(session, user_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    logger.info("User deleted by admin %s: %s", admin.subject_id, user_id)
    return MessageResponse(message="User deleted successfully")
