"""
Session cookie helpers

The cookie only ever carries the random session id; the identity snapshot
stays server-side in the sessions table.
"""
from typing import Optional
from fastapi import Response
from starlette.requests import Request

from referral_api.core.config import settings


def get_cookie_domain(request: Request) -> Optional[str]:
    """
    Cookie domain from settings, or None to let the browser scope it to the host.
    """
    if settings.COOKIE_DOMAIN:
        return settings.COOKIE_DOMAIN
    return None


def set_session_cookie(response: Response, request: Request, session_id: str) -> None:
    """Set the HttpOnly session cookie for the full (fixed) session lifetime."""
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=session_id,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite=settings.COOKIE_SAMESITE,
        domain=get_cookie_domain(request),
        max_age=settings.SESSION_TTL_DAYS * 24 * 60 * 60,
        path="/",
    )


def clear_session_cookie(response: Response, request: Request) -> None:
    response.delete_cookie(
        key=settings.SESSION_COOKIE_NAME,
        domain=get_cookie_domain(request),
        path="/",
    )


def get_session_id_from_cookie(request: Request) -> Optional[str]:
    return request.cookies.get(settings.SESSION_COOKIE_NAME)
