"""
Request principal from the auth service's bearer token.

Tokens are HS256 JWTs signed with SECRET_KEY carrying `sub` (or `userId`), `role` and,
for park admins, `parkId`.
"""
import logging

import jwt
from fastapi import Header, HTTPException

from parkbook.config import settings
from parkbook.core.constants import ADMIN_ROLES, ROLE_ADMIN, ROLE_PARK_ADMIN
from parkbook.core.errors import Forbidden

logger = logging.getLogger(__name__)


class Principal:
    __slots__ = ("user_id", "role", "park_id")

    def __init__(self, *, user_id: str, role: str = "user", park_id: int | None = None):
        self.user_id = user_id
        self.role = role
        self.park_id = park_id

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    def can_manage_park(self, park_id: int) -> bool:
        if self.role == ROLE_ADMIN:
            return True
        return self.role == ROLE_PARK_ADMIN and self.park_id is not None and self.park_id == park_id


def decode_token(token: str) -> Principal:
    try:
        claims = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except jwt.PyJWTError as e:
        logger.debug("Rejected bearer token: %s", e)
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    user_id = claims.get("sub") or claims.get("userId")
    if not user_id:
        raise HTTPException(status_code=401, detail="Token has no subject")
    park_id = claims.get("parkId")
    try:
        park_id = int(park_id) if park_id is not None else None
    except (TypeError, ValueError):
        park_id = None
    return Principal(user_id=str(user_id), role=str(claims.get("role") or "user"), park_id=park_id)


def get_current_principal(authorization: str | None = Header(None)) -> Principal:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=401, detail="Not authenticated")
    return decode_token(authorization[7:].strip())


def ensure_can_manage_park(principal: Principal, park_id: int) -> None:
    if not principal.can_manage_park(park_id):
        raise Forbidden("Not allowed to manage this park", parkId=park_id, role=principal.role)
