# app/core/security.py

from typing import Callable, Optional
from fastapi import HTTPException, Request, status, Depends
from passlib.context import CryptContext

from app.models import User
from guard.identity import Identity, TokenService

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verifies a plain password against a hashed one."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hashes a plain password."""
    return pwd_context.hash(password)


def get_token_service(request: Request) -> TokenService:
    return request.app.state.tokens


def create_access_token(user: User, tokens: TokenService) -> str:
    """Creates a new signed access token for the given user."""
    return tokens.issue(
        subject_id=user.id,
        display_name=user.username,
        roles=user.roles or [],
        email=user.email,
    )


def get_optional_identity(request: Request) -> Optional[Identity]:
    """Identity resolved by the inspection pipeline, if any."""
    return getattr(request.state, "identity", None)


def get_current_identity(identity: Optional[Identity] = Depends(get_optional_identity)) -> Identity:
    """Dependency requiring an authenticated caller."""
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return identity


def require_roles(*roles: str) -> Callable[..., Identity]:
    """Dependency factory: the caller must hold at least one of ``roles``."""

    def dependency(identity: Identity = Depends(get_current_identity)) -> Identity:
        if not identity.has_any_role(roles):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Not authorized to perform this action"
            )
        return identity

    return dependency


def subject_user_id(identity: Identity) -> int:
    try:
        return int(identity.subject_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
