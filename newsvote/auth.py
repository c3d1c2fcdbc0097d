"""
Principal extraction for requests forwarded by the authentication gateway.

Token issuance and verification happen upstream; this service trusts the
``X-User-Id`` and ``X-User-Role`` headers the gateway sets.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException

from newsvote.errors import PermissionDenied
from newsvote.models import UserRole


@dataclass(frozen=True)
class Principal:
    """The authenticated caller."""

    user_id: str
    role: UserRole = UserRole.USER

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMINISTRATOR


def get_principal(
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
) -> Principal:
    """Dependency returning the caller, or 401 when unauthenticated."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Authentication required")

    try:
        role = UserRole(x_user_role) if x_user_role else UserRole.USER
    except ValueError:
        raise HTTPException(status_code=401, detail="Unknown user role")

    return Principal(user_id=x_user_id.strip(), role=role)


def require_admin(principal: Principal = Depends(get_principal)) -> Principal:
    """Dependency restricting a route to administrators."""
    if not principal.is_admin:
        raise PermissionDenied("Insufficient permissions, administrator role required")
    return principal


def get_optional_principal(
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
) -> Optional[Principal]:
    """Like ``get_principal`` but returns ``None`` for anonymous callers."""
    if not x_user_id or not x_user_id.strip():
        return None
    return get_principal(x_user_id, x_user_role)
