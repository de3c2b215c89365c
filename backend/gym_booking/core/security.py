"""
Session/role gate.

Requests carry a bearer JWT issued by the identity provider with the
profile id in `sub` and the profile role in `role`. The booking core only
ever sees the already-resolved principal.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from gym_booking.core.config import get_settings
from gym_booking.core.logging import get_logger
from gym_booking.models.profile import UserRole

logger = get_logger(__name__)
settings = get_settings()

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Principal:
    user_id: int
    role: UserRole


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode["exp"] = expire
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def _credentials_error() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_access_token(token: str) -> Principal:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        user_id = int(payload["sub"])
        role = UserRole(payload.get("role", UserRole.MEMBER.value))
    except (jwt.PyJWTError, KeyError, ValueError, TypeError) as e:
        logger.warning("token_rejected", error=str(e))
        raise _credentials_error()
    return Principal(user_id=user_id, role=role)


async def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Principal:
    if credentials is None:
        raise _credentials_error()
    return decode_access_token(credentials.credentials)


async def get_current_user_id(principal: Principal = Depends(get_current_principal)) -> int:
    return principal.user_id


def require_roles(*roles: UserRole):
    """Dependency factory that only admits principals holding one of `roles`."""

    async def dependency(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role not in roles:
            logger.warning(
                "role_forbidden",
                user_id=principal.user_id,
                role=principal.role.value,
                allowed=[r.value for r in roles],
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not have permission to perform this action",
            )
        return principal

    return dependency
