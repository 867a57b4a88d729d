from __future__ import annotations

from typing import Callable

from fastapi import Depends, Header, HTTPException, status
from pydantic import ValidationError

from app.core.config import settings
from app.schemas.applications import Principal, UserRole

_ROLES: tuple[str, ...] = ("candidate", "hr_approved", "admin")


def check_api_key(x_api_key: str | None) -> None:
    if not settings.api_key:
        return
    if x_api_key != settings.api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Please provide a valid API key.",
        )


def get_principal(
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
    x_user_email: str | None = Header(default=None, alias="X-User-Email"),
    x_user_name: str | None = Header(default=None, alias="X-User-Name"),
    x_user_role: str | None = Header(default=None, alias="X-User-Role"),
) -> Principal:
    """Resolve the caller from headers set by the trusted auth gateway."""
    check_api_key(x_api_key)
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required.",
        )
    role = (x_user_role or "candidate").strip().lower()
    if role not in _ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Unknown role '{role}'.",
        )
    try:
        return Principal(
            id=user_id,
            email=(x_user_email or "").strip(),
            display_name=(x_user_name or "").strip(),
            role=role,
        )
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid principal.") from exc


def require_role(*roles: UserRole) -> Callable[..., Principal]:
    allowed = set(roles)

    def dependency(principal: Principal = Depends(get_principal)) -> Principal:
        if principal.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not have permission to perform this action.",
            )
        return principal

    return dependency
