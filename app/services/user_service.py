from __future__ import annotations

import logging
from typing import Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import get_password_hash, verify_password
from app.models import ROLE_ADMIN, ROLE_USER, User, utcnow
from app.schemas import UserRegister, UserUpdate

logger = logging.getLogger(__name__)

PUBLIC_SEARCH_LIMIT = 5


class UserConflictError(ValueError):
    pass


async def get_user_by_id(session: AsyncSession, user_id: int) -> Optional[User]:
    result = await session.execute(select(User).where(User.id == user_id, User.is_active.is_(True)))
    return result.scalar_one_or_none()


async def get_user_by_username(session: AsyncSession, username: str) -> Optional[User]:
    result = await session.execute(select(User).where(User.username == username, User.is_active.is_(True)))
    return result.scalar_one_or_none()


async def get_user_by_email(session: AsyncSession, email: str) -> Optional[User]:
    result = await session.execute(select(User).where(User.email == email, User.is_active.is_(True)))
    return result.scalar_one_or_none()


async def list_users(session: AsyncSession) -> Sequence[User]:
    result = await session.execute(select(User).where(User.is_active.is_(True)).order_by(User.id))
    return result.scalars().all()


async def search_users(
    session: AsyncSession,
    username: Optional[str] = None,
    email: Optional[str] = None,
    limit: Optional[int] = None,
) -> Sequence[User]:
    """Case-insensitive substring search over active users."""
    query = select(User).where(User.is_active.is_(True))
    if username and username.strip():
        query = query.where(func.lower(User.username).contains(username.strip().lower(), autoescape=True))
    if email and email.strip():
        query = query.where(func.lower(User.email).contains(email.strip().lower(), autoescape=True))
    query = query.order_by(User.id)
    if limit is not None:
        query = query.limit(limit)

    result = await session.execute(query)
    return result.scalars().all()


async def _ensure_unique(session: AsyncSession, username: str, email: str, exclude_id: Optional[int] = None) -> None:
    result = await session.execute(select(User).where(User.username == username))
    existing = result.scalar_one_or_none()
    if existing is not None and existing.id != exclude_id:
        raise UserConflictError("Username already exists")

    result = await session.execute(select(User).where(User.email == email))
    existing = result.scalar_one_or_none()
    if existing is not None and existing.id != exclude_id:
        raise UserConflictError("Email already exists")


async def create_user(session: AsyncSession, payload: UserRegister, roles: Optional[list[str]] = None) -> User:
    await _ensure_unique(session, payload.username, payload.email)

    user = User(
        username=payload.username,
        email=payload.email,
        password_hash=get_password_hash(payload.password),
        age=payload.age,
        roles=list(roles or [ROLE_USER]),
    )
    session.add(user)
    await session.commit()

    logger.info("User created: %s", user.username)
    return user


async def update_user(session: AsyncSession, user_id: int, payload: UserUpdate) -> Optional[User]:
    user = await get_user_by_id(session, user_id)
    if user is None:
        return None

    await _ensure_unique(session, payload.username, payload.email, exclude_id=user.id)

    user.username = payload.username
    user.email = payload.email
    user.age = payload.age
    user.updated_at = utcnow()
    await session.commit()

    logger.info("User updated: %s", user.username)
    return user


async def deactivate_user(session: AsyncSession, user_id: int) -> bool:
    user = await get_user_by_id(session, user_id)
    if user is None:
        return False

    user.is_active = False
    user.updated_at = utcnow()
    await session.commit()

    logger.info("User deactivated: %s", user.username)
    return True


async def authenticate_user(session: AsyncSession, username: str, password: str) -> Optional[User]:
    """Authenticates a user by username and password and records the login time."""
    user = await get_user_by_username(session, username)

    if not user or not verify_password(password, user.password_hash):
        logger.warning("Failed login attempt for user: %s", username[:100])
        return None

    user.last_login_at = utcnow()
    await session.commit()

    logger.info("User logged in: %s", user.username)
    return user


async def change_password(session: AsyncSession, user_id: int, current_password: str, new_password: str) -> bool:
    user = await get_user_by_id(session, user_id)
    if user is None or not verify_password(current_password, user.password_hash):
        return False

    user.password_hash = get_password_hash(new_password)
    user.updated_at = utcnow()
    await session.commit()

    logger.info("Password changed for user: %s", user.username)
    return True


async def seed_admin(session: AsyncSession, username: str, email: str, password: str) -> Optional[User]:
    """Creates the initial administrator unless a user with that name already exists."""
    result = await session.execute(select(User).where(User.username == username))
    if result.scalar_one_or_none() is not None:
        return None

    admin = User(
        username=username,
        email=email,
        password_hash=get_password_hash(password),
        age=18,
        roles=[ROLE_ADMIN, ROLE_USER],
    )
    session.add(admin)
    await session.commit()

    logger.info("Seeded initial admin user: %s", username)
    return admin
