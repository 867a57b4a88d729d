from __future__ import annotations

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.config import settings


def principal_or_remote_address(request: Request) -> str:
    user_id = (request.headers.get("X-User-Id") or "").strip()
    if user_id:
        return f"user:{user_id}"
    return get_remote_address(request)


limiter = Limiter(key_func=principal_or_remote_address, enabled=settings.rate_limit_enabled)


def rate_limit(limit: str | None = None):
    """Limit a route per authenticated user, or per client address for anonymous calls."""
    return limiter.limit(limit or settings.rate_limit)
