"""
Caller identity and role checks.

Authentication is handled upstream; requests arrive carrying an opaque
user id and a role in headers.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from fastapi import Header

from courtguardian.core.errors import AuthenticationError, AuthorizationError


class Role(str, Enum):
    USER = "user"
    MODERATOR = "moderator"
    ADMIN = "admin"


@dataclass(frozen=True)
class Caller:
    user_id: str
    role: Role

    @property
    def is_moderator(self) -> bool:
        return self.role in (Role.MODERATOR, Role.ADMIN)

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


def require_moderator(caller: Caller) -> None:
    if not caller.is_moderator:
        raise AuthorizationError("Moderator access required")


def require_admin(caller: Caller) -> None:
    if not caller.is_admin:
        raise AuthorizationError("Admin access required")


async def get_caller(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> Caller:
    """Build the caller from identity headers."""
    if not x_user_id:
        raise AuthenticationError("Authentication required")
    try:
        role = Role((x_user_role or Role.USER.value).lower())
    except ValueError:
        raise AuthorizationError(f"Unknown role: {x_user_role}")
    return Caller(user_id=x_user_id, role=role)


async def get_moderator(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> Caller:
    caller = await get_caller(x_user_id, x_user_role)
    require_moderator(caller)
    return caller


async def get_admin(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> Caller:
    caller = await get_caller(x_user_id, x_user_role)
    require_admin(caller)
    return caller
