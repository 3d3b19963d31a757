"""
API dependencies
"""
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from referral_api.core.cookies import get_session_id_from_cookie
from referral_api.core.database import get_db
from referral_api.schemas.auth import IdentitySnapshot
from referral_api.services.auth_service import AuthService


async def get_auth_service(db: AsyncSession = Depends(get_db)) -> AuthService:
    return AuthService.from_db(db)


def get_session_id(request: Request) -> Optional[str]:
    return get_session_id_from_cookie(request)


async def get_optional_identity(
    session_id: Optional[str] = Depends(get_session_id),
    service: AuthService = Depends(get_auth_service),
) -> Optional[IdentitySnapshot]:
    """Identity for the current session, or None when anonymous."""
    return await service.authenticate(session_id)


async def get_current_identity(
    session_id: Optional[str] = Depends(get_session_id),
    service: AuthService = Depends(get_auth_service),
) -> IdentitySnapshot:
    """Require a live session (401 otherwise)."""
    return await service.current_user(session_id)


async def require_email_verified(
    identity: Optional[IdentitySnapshot] = Depends(get_optional_identity),
) -> IdentitySnapshot:
    """
    Require a live session whose account has a verified email.

    401 when anonymous, 403 when unverified. Used by bill submission and
    payout routes.
    """
    return AuthService.require_email_verified(identity)
