"""
Auth Service

Registration, login, logout, email verification and password reset as one
coherent state machine over the token service, lockout policy and session
manager.

Failure semantics:
- AuthError subclasses carry the client-facing status and message
- anything unexpected is logged here and surfaces as a generic InternalError
- emails are best-effort and never fail the primary operation
"""
import functools
import logging
import secrets
import time
from typing import Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from referral_api.core.account_lockout import AccountLockoutPolicy
from referral_api.core.config import settings
from referral_api.core.exceptions import (
    AuthError,
    AuthenticationError,
    AccountLockedError,
    AccountInactiveError,
    AccountNotFoundError,
    AlreadyVerifiedError,
    DuplicateEmailError,
    DuplicateUsernameError,
    EmailNotVerifiedError,
    InternalError,
    NotAuthenticatedError,
    TokenInvalidError,
    ValidationError,
)
from referral_api.core.security import get_password_hash, verify_password
from referral_api.core.utils import utcnow
from referral_api.models import TokenKind
from referral_api.schemas.auth import IdentitySnapshot, RegisterRequest, check_password_length
from referral_api.services.account_store import AccountStore, TokenStore, SessionStore
from referral_api.services.auth_email_service import AuthEmailService, display_name_for
from referral_api.services.session_service import SessionService
from referral_api.services.token_service import TokenService

logger = logging.getLogger(__name__)

FORGOT_PASSWORD_ACK = "If the email exists, you will receive password reset instructions."


def new_account_id() -> str:
    return f"user_{int(time.time() * 1000)}_{secrets.token_hex(8)}"


def ensure_hashable(password: str) -> str:
    """Reject passwords bcrypt cannot hash as a field error instead of a 500."""
    try:
        return check_password_length(password)
    except ValueError as e:
        raise ValidationError(str(e), field="password")


def snapshot_of(account) -> IdentitySnapshot:
    return IdentitySnapshot(
        id=account.id,
        username=account.username,
        email=account.email,
        first_name=account.first_name,
        last_name=account.last_name,
        email_verified=bool(account.email_verified),
    )


def auth_boundary(operation: str):
    """Pass AuthErrors through; log anything else and replace it with InternalError."""
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except AuthError:
                raise
            except Exception:
                logger.exception(f"{operation} failed")
                raise InternalError()
        return wrapper
    return decorator


class AuthService:
    """
    Auth façade.

    Collaborators are injected so the same orchestration runs over the SQL
    stores in production and over in-memory stores in tests.
    """

    def __init__(
        self,
        accounts,
        tokens: TokenService,
        lockout: AccountLockoutPolicy,
        sessions: SessionService,
        emails,
        require_email_verification: Optional[bool] = None,
        bcrypt_rounds: Optional[int] = None,
    ):
        self.accounts = accounts
        self.tokens = tokens
        self.lockout = lockout
        self.sessions = sessions
        self.emails = emails
        if require_email_verification is None:
            require_email_verification = settings.REQUIRE_EMAIL_VERIFICATION
        self.require_email_verification = require_email_verification
        self.bcrypt_rounds = bcrypt_rounds

    @classmethod
    def from_db(cls, db: AsyncSession, emails=None) -> "AuthService":
        accounts = AccountStore(db)
        return cls(
            accounts=accounts,
            tokens=TokenService(TokenStore(db)),
            lockout=AccountLockoutPolicy(accounts),
            sessions=SessionService(SessionStore(db)),
            emails=emails or AuthEmailService(),
        )

    # ============================================================
    # Registration
    # ============================================================

    @auth_boundary("registration")
    async def register(self, data: RegisterRequest) -> Tuple[IdentitySnapshot, str]:
        """
        Create a local account and log it in.

        Returns:
            (identity snapshot, raw session id)

        Raises:
            DuplicateUsernameError, DuplicateEmailError
        """
        email = str(data.email).lower()

        if await self.accounts.get_by_username(data.username):
            raise DuplicateUsernameError()
        if await self.accounts.get_by_email(email):
            raise DuplicateEmailError()

        hashed_password = get_password_hash(ensure_hashable(data.password), rounds=self.bcrypt_rounds)

        try:
            account = await self.accounts.create(
                id=new_account_id(),
                username=data.username,
                email=email,
                hashed_password=hashed_password,
                first_name=data.first_name,
                last_name=data.last_name,
                provider="local",
                email_verified=not self.require_email_verification,
                is_active=True,
                failed_login_attempts=0,
            )
        except IntegrityError:
            # Lost a race with a concurrent registration
            if await self.accounts.get_by_username(data.username):
                raise DuplicateUsernameError()
            raise DuplicateEmailError()

        verification_token = None
        if self.require_email_verification:
            verification_token = await self.tokens.issue(account.id, TokenKind.EMAIL_VERIFICATION)

        snapshot = snapshot_of(account)
        session_id = await self.sessions.create(snapshot)
        await self.accounts.commit()
        logger.info(f"Registered account {account.id} ({account.username})")

        display_name = display_name_for(email, data.first_name, data.last_name, data.username)
        await self._best_effort(
            "welcome email", self.emails.send_welcome_email(email, display_name)
        )
        if verification_token:
            await self._best_effort(
                "verification email",
                self.emails.send_email_verification(email, verification_token, display_name),
            )

        return snapshot, session_id

    # ============================================================
    # Login / logout
    # ============================================================

    @auth_boundary("login")
    async def login(self, username: str, password: str) -> Tuple[IdentitySnapshot, str]:
        """
        Check credentials and open a session.

        The order of checks is part of the contract: unknown account,
        locked, inactive, wrong password, success.
        """
        now = utcnow()
        account = await self.accounts.get_by_username(username)

        if not account or not account.has_password:
            raise AuthenticationError()

        if self.lockout.is_locked(account, now):
            raise AccountLockedError(self.lockout.remaining_minutes(account, now))

        if not account.is_active:
            raise AccountInactiveError()

        if not verify_password(password, account.hashed_password):
            decision = await self.lockout.record_failure(account, now)
            # The failure must survive the error response
            await self.accounts.commit()
            if decision.locked:
                raise AccountLockedError(self.lockout.LOCKOUT_DURATION_MINUTES)
            raise AuthenticationError()

        first_login = account.last_login_at is None
        await self.lockout.record_success(account, now)

        snapshot = snapshot_of(account)
        session_id = await self.sessions.create(snapshot, now)
        await self.accounts.commit()

        if first_login:
            logger.info(f"First login completed for account {account.id}")
        return snapshot, session_id

    @auth_boundary("logout")
    async def logout(self, session_id: Optional[str]) -> None:
        await self.sessions.destroy(session_id)
        await self.accounts.commit()

    @auth_boundary("session lookup")
    async def authenticate(self, session_id: Optional[str]) -> Optional[IdentitySnapshot]:
        return await self.sessions.authenticate(session_id)

    async def current_user(self, session_id: Optional[str]) -> IdentitySnapshot:
        snapshot = await self.authenticate(session_id)
        if snapshot is None:
            raise NotAuthenticatedError()
        return snapshot

    @staticmethod
    def require_email_verified(snapshot: Optional[IdentitySnapshot]) -> IdentitySnapshot:
        """Guard for routes that need a verified email address."""
        if snapshot is None:
            raise NotAuthenticatedError()
        if not snapshot.email_verified:
            raise EmailNotVerifiedError()
        return snapshot

    # ============================================================
    # Email verification
    # ============================================================

    @auth_boundary("email verification")
    async def verify_email(self, token: str, session_id: Optional[str] = None) -> str:
        """
        Consume an email verification token and mark the account verified.

        If the caller is logged in as the same account, the cached session
        snapshot is updated as well.

        Returns:
            The verified account id
        """
        record = await self.tokens.validate(token, TokenKind.EMAIL_VERIFICATION)
        if not record:
            raise TokenInvalidError()

        account_id = record.user_id
        await self.tokens.consume(token)
        await self.accounts.mark_email_verified(account_id)

        if session_id:
            snapshot = await self.sessions.authenticate(session_id)
            if snapshot and snapshot.id == account_id:
                await self.sessions.refresh_snapshot(
                    session_id, snapshot.model_copy(update={"email_verified": True})
                )

        await self.accounts.commit()
        logger.info(f"Email verified for account {account_id}")
        return account_id

    @auth_boundary("verification request")
    async def request_verification(self, snapshot: IdentitySnapshot) -> None:
        """
        Issue a fresh verification token for the logged-in account and mail it.

        Raises:
            AccountNotFoundError: the session outlived its account
            AlreadyVerifiedError: nothing to verify
        """
        account = await self.accounts.get_by_id(snapshot.id)
        if not account:
            raise AccountNotFoundError()
        if account.email_verified:
            raise AlreadyVerifiedError()

        token = await self.tokens.issue(account.id, TokenKind.EMAIL_VERIFICATION)
        await self.accounts.commit()

        display_name = display_name_for(account.email, account.first_name, account.last_name, account.username)
        await self._best_effort(
            "verification email",
            self.emails.send_email_verification(account.email, token, display_name),
        )

    # ============================================================
    # Password reset
    # ============================================================

    @auth_boundary("forgot password")
    async def forgot_password(self, email: str) -> str:
        """
        Start a password reset.

        Always returns the same acknowledgement so callers cannot tell whether
        the address belongs to an account.
        """
        account = await self.accounts.get_by_email(email)
        if not account:
            return FORGOT_PASSWORD_ACK

        try:
            token = await self.tokens.issue(account.id, TokenKind.PASSWORD_RESET)
            await self.accounts.commit()
        except Exception:
            # A 500 here would only ever happen for known addresses
            logger.exception(f"Could not issue password reset token for account {account.id}")
            await self.accounts.rollback()
            return FORGOT_PASSWORD_ACK

        display_name = display_name_for(account.email, account.first_name, account.last_name, account.username)
        await self._best_effort(
            "password reset email",
            self.emails.send_password_reset_email(account.email, token, display_name),
        )
        return FORGOT_PASSWORD_ACK

    @auth_boundary("password reset")
    async def reset_password(self, token: str, new_password: str) -> str:
        """
        Consume a reset token, store the new password and clear lockout state.

        Returns:
            The account id whose password changed
        """
        ensure_hashable(new_password)
        record = await self.tokens.validate(token, TokenKind.PASSWORD_RESET)
        if not record:
            raise TokenInvalidError()

        account_id = record.user_id
        await self.tokens.consume(token)
        await self.accounts.update_password(
            account_id, get_password_hash(new_password, rounds=self.bcrypt_rounds)
        )
        await self.lockout.clear(account_id)
        await self.accounts.commit()

        logger.info(f"Password reset for account {account_id}")
        return account_id

    # ============================================================
    # Helpers
    # ============================================================

    @staticmethod
    async def _best_effort(what: str, send) -> bool:
        try:
            return bool(await send)
        except Exception:
            logger.exception(f"Failed to send {what}")
            return False
