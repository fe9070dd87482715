# pallet_orders/api/deps.py
"""
Identity comes from the authenticating gateway in front of the service.

The gateway verifies the session and forwards the user as X-User-* headers;
these dependencies only read them and enforce roles.
"""
from dataclasses import dataclass, field
from typing import FrozenSet

from fastapi import Depends, Header

from pallet_orders.domain.errors import AuthenticationError, AuthorizationError

ADMIN_ROLE = "admin"
APPROVED_ROLE = "approved"


@dataclass(frozen=True)
class CurrentUser:
    id: str
    email: str | None = None
    name: str | None = None
    roles: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def is_admin(self) -> bool:
        return ADMIN_ROLE in self.roles

    @property
    def is_approved(self) -> bool:
        #admins are always allowed to order
        return APPROVED_ROLE in self.roles or self.is_admin


def get_current_user(
    x_user_id: str | None = Header(None),
    x_user_email: str | None = Header(None),
    x_user_name: str | None = Header(None),
    x_user_roles: str | None = Header(None),
) -> CurrentUser:
    if not x_user_id:
        raise AuthenticationError("Unauthorized")
    roles = frozenset(r.strip().lower() for r in (x_user_roles or "").split(",") if r.strip())
    return CurrentUser(id=x_user_id, email=x_user_email, name=x_user_name, roles=roles)


def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_admin:
        raise AuthorizationError("Forbidden")
    return user


def require_approved(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_approved:
        raise AuthorizationError("Account is pending approval")
    return user
