"""Requester identity forwarded by the API gateway.

The gateway authenticates the caller and forwards:
- X-User-Id: numeric user id (trusted as already validated)
- X-User-Role: "admin" for administrators, anything else otherwise

Provides:
- get_requester(): FastAPI dependency for the authenticated user
- require_admin(): FastAPI dependency for admin-only routes
"""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException

ADMIN_ROLE = "admin"


@dataclass
class Requester:
    """Authenticated caller context."""

    user_id: int
    role: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


def get_requester(
    x_user_id: str | None = Header(None, alias="X-User-Id"),
    x_user_role: str | None = Header(None, alias="X-User-Role"),
) -> Requester:
    """FastAPI dependency: the caller identified by the gateway.

    Raises:
        HTTPException: 401 if X-User-Id is missing or not a positive integer.
    """
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing user identity")
    try:
        user_id = int(x_user_id)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid user identity")
    if user_id <= 0:
        raise HTTPException(status_code=401, detail="Invalid user identity")
    return Requester(user_id=user_id, role=(x_user_role or "").strip().lower() or None)


def require_admin(requester: Requester = Depends(get_requester)) -> Requester:
    """FastAPI dependency: an authenticated admin.

    Raises:
        HTTPException: 401 without identity, 403 when not an admin.
    """
    if not requester.is_admin:
        raise HTTPException(status_code=403, detail="Admin role required")
    return requester
