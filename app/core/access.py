# app/core/access.py

from typing import List

from app.models import ROLE_ADMIN
from guard.pipeline import AccessRule, anonymous, authenticated, roles_required

WRITE_METHODS = ("POST", "PUT", "PATCH", "DELETE")


def build_access_rules(api_prefix: str) -> List[AccessRule]:
    """Route access table; the first matching rule wins and unlisted paths are anonymous."""
    p = api_prefix.rstrip("/")
    return [
        anonymous(f"{p}/users/public-search", methods=["GET"]),
        roles_required(f"{p}/users", [ROLE_ADMIN]),
        anonymous(f"{p}/products", methods=["GET", "HEAD"]),
        roles_required(f"{p}/products", [ROLE_ADMIN], methods=WRITE_METHODS),
        authenticated(f"{p}/auth/change-password"),
        authenticated(f"{p}/auth/profile"),
        authenticated(f"{p}/files"),
    ]
