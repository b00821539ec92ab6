# =============================================================================
# ADAPTIVE AUTH - CLIENT IDENTITY MIDDLEWARE
# =============================================================================
# File: api/middleware/client_identity.py
# Description: Opaque per-client cookie keying sessions and rate limiting
# =============================================================================

from typing import Callable
import re

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from adaptive_auth.core.config import settings
from adaptive_auth.core.security import generate_session_id

CLIENT_ID_PATTERN = re.compile(r"^[A-Za-z0-9-]{8,64}$")


def get_client_ip(request: Request) -> str:
    """Extract client IP from request (proxy headers first)."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    return request.client.host if request.client else ""


class ClientIdentityMiddleware(BaseHTTPMiddleware):
    """
    ┌─────────────────────────────────────────────────────────────────────────┐
    │                    CLIENT IDENTITY MIDDLEWARE                            │
    │  Issues the cookie that ties a browser to its session slots             │
    └─────────────────────────────────────────────────────────────────────────┘

    The cookie value is random and carries no data; everything about the
    client lives in the session store under that id.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: Callable,
    ) -> Response:
        """Attach ``request.state.client_id`` and set the cookie when new."""
        cookie_name = settings.session_cookie_name
        client_id = request.cookies.get(cookie_name, "")
        is_new = not CLIENT_ID_PATTERN.match(client_id)
        if is_new:
            client_id = generate_session_id()

        request.state.client_id = client_id
        request.state.client_ip = get_client_ip(request)

        response = await call_next(request)

        if is_new:
            response.set_cookie(
                key=cookie_name,
                value=client_id,
                max_age=settings.session_ttl,
                httponly=True,
                samesite="lax",
                secure=settings.is_production,
            )
        return response
