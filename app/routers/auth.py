# app/routers/auth.py

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import create_access_token, get_current_identity, get_token_service, subject_user_id
from app.database import get_session
from app.schemas import (
    AuthResponse,
    ChangePasswordRequest,
    LoginRequest,
    MessageResponse,
    UserProfile,
    UserPublic,
    UserRegister,
)
from app.services import user_service
from guard.identity import Identity, TokenService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(
    payload: UserRegister,
    session: AsyncSession = Depends(get_session),
    tokens: TokenService = Depends(get_token_service),
):
    """
    Create a regular user account and return it with a fresh access token.
    """
    try:
        user = await user_service.create_user(session, payload)
    except user_service.UserConflictError as exc:
        logger.warning("Registration failed: %s", exc)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    return AuthResponse(user=UserPublic.model_validate(user), token=create_access_token(user, tokens))


@router.post("/login", response_model=AuthResponse)
async def login(
    payload: LoginRequest,
    session: AsyncSession = Depends(get_session),
    tokens: TokenService = Depends(get_token_service),
):
    """
    Authenticate user and return a signed access token.
    """
    user = await user_service.authenticate_user(session, payload.username, payload.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return AuthResponse(user=UserPublic.model_validate(user), token=create_access_token(user, tokens))


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    payload: ChangePasswordRequest,
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_session),
):
    user_id = subject_user_id(identity)
    changed = await user_service.change_password(session, user_id, payload.current_password, payload.new_password)
    if not changed:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Current password is incorrect")

    return MessageResponse(message="Password changed successfully")


@router.get("/profile", response_model=UserProfile)
async def profile(
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_session),
):
    user = await user_service.get_user_by_id(session, subject_user_id(identity))
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user
