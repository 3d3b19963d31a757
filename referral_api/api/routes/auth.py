"""
Authentication routes

- Registration and login set an HttpOnly session cookie
- Credential and token endpoints are rate limited per client IP
- Failed logins feed the account lockout policy (423 once locked)
- Password reset and email verification use single-use emailed tokens
"""
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response

from referral_api.api.deps import (
    get_auth_service,
    get_current_identity,
    get_optional_identity,
    get_session_id,
)
from referral_api.core.config import settings
from referral_api.core.cookies import clear_session_cookie, set_session_cookie
from referral_api.core.rate_limit import limiter
from referral_api.schemas.auth import (
    AuthStatusResponse,
    AuthUserResponse,
    ForgotPasswordRequest,
    IdentitySnapshot,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    ResetPasswordRequest,
    VerifyEmailRequest,
)
from referral_api.services.auth_service import AuthService

router = APIRouter()


@router.post("/register", response_model=AuthUserResponse)
@limiter.limit(settings.RATE_LIMIT_AUTH)
async def register(
    request: Request,
    response: Response,
    user_data: RegisterRequest,
    service: AuthService = Depends(get_auth_service),
):
    """Create an account and log it in."""
    user, session_id = await service.register(user_data)
    set_session_cookie(response, request, session_id)
    return AuthUserResponse(
        message="Registration complete! Check your inbox for the welcome email.",
        user=user,
    )


@router.post("/login", response_model=AuthUserResponse)
@limiter.limit(settings.RATE_LIMIT_AUTH)
async def login(
    request: Request,
    response: Response,
    credentials: LoginRequest,
    service: AuthService = Depends(get_auth_service),
):
    """
    Log in with username and password.

    401 bad credentials, 423 locked, 403 deactivated.
    """
    user, session_id = await service.login(credentials.username, credentials.password)
    set_session_cookie(response, request, session_id)
    return AuthUserResponse(message="Login successful", user=user)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    response: Response,
    session_id: Optional[str] = Depends(get_session_id),
    service: AuthService = Depends(get_auth_service),
):
    """Destroy the current session. Works without one too."""
    await service.logout(session_id)
    clear_session_cookie(response, request)
    return MessageResponse(message="Logged out successfully")


@router.get("/user", response_model=IdentitySnapshot)
async def get_user(user: IdentitySnapshot = Depends(get_current_identity)):
    """Get the logged-in identity."""
    return user


@router.get("/status", response_model=AuthStatusResponse)
async def auth_status(user: Optional[IdentitySnapshot] = Depends(get_optional_identity)):
    return AuthStatusResponse(authenticated=user is not None, user=user)


# ============================================================
# Email verification
# ============================================================

@router.post("/verify-email", response_model=MessageResponse)
@limiter.limit(settings.RATE_LIMIT_AUTH)
async def verify_email(
    request: Request,
    body: VerifyEmailRequest,
    session_id: Optional[str] = Depends(get_session_id),
    service: AuthService = Depends(get_auth_service),
):
    await service.verify_email(body.token, session_id)
    return MessageResponse(message="Email verified successfully! You can now log in.")


@router.post("/request-verification", response_model=MessageResponse)
@limiter.limit(settings.RATE_LIMIT_AUTH)
async def request_verification(
    request: Request,
    user: IdentitySnapshot = Depends(get_current_identity),
    service: AuthService = Depends(get_auth_service),
):
    """Send a fresh verification link to the logged-in account."""
    await service.request_verification(user)
    return MessageResponse(message="Verification email sent! Check your inbox.")


# ============================================================
# Password reset
# ============================================================

@router.post("/forgot-password", response_model=MessageResponse)
@limiter.limit(settings.RATE_LIMIT_AUTH)
async def forgot_password(
    request: Request,
    body: ForgotPasswordRequest,
    service: AuthService = Depends(get_auth_service),
):
    """
    Request a password reset email.

    Always answers the same way, whether or not the address is registered.
    """
    message = await service.forgot_password(str(body.email))
    return MessageResponse(message=message)


@router.post("/reset-password", response_model=MessageResponse)
@limiter.limit(settings.RATE_LIMIT_AUTH)
async def reset_password(
    request: Request,
    body: ResetPasswordRequest,
    service: AuthService = Depends(get_auth_service),
):
    await service.reset_password(body.token, body.password)
    return MessageResponse(message="Password updated successfully!")
