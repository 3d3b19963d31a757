"""
Token Service

Opaque single-use tokens for email verification and password reset.

- 256 random bits, hex encoded
- validate() treats unknown, wrong-kind and expired tokens the same way
- consume() deletes by value; a second consume of the same token fails
"""
import logging
from datetime import datetime, timedelta
from typing import Optional

from referral_api.core.config import settings
from referral_api.core.exceptions import TokenInvalidError
from referral_api.core.security import generate_token
from referral_api.core.utils import utcnow
from referral_api.models import AuthToken, TokenKind

logger = logging.getLogger(__name__)


class TokenService:

    DEFAULT_TTL = timedelta(hours=settings.AUTH_TOKEN_TTL_HOURS)

    def __init__(self, tokens):
        self.tokens = tokens

    async def issue(
        self,
        account_id: str,
        kind: TokenKind,
        ttl: Optional[timedelta] = None,
        now: Optional[datetime] = None,
    ) -> str:
        """
        Create and persist a new token for an account.

        Returns:
            The raw token value to embed in the emailed link
        """
        now = now or utcnow()
        value = generate_token()
        await self.tokens.create(
            user_id=account_id,
            token=value,
            kind=TokenKind(kind).value,
            expires_at=now + (ttl or self.DEFAULT_TTL),
        )
        return value

    async def validate(
        self,
        token: str,
        kind: TokenKind,
        now: Optional[datetime] = None,
    ) -> Optional[AuthToken]:
        """Return the live token record, or None if unknown, of another kind, or expired."""
        if not token:
            return None
        return await self.tokens.find_valid(token, TokenKind(kind).value, now or utcnow())

    async def consume(self, token: str) -> None:
        """
        Delete the token.

        Raises:
            TokenInvalidError: the token no longer exists (already consumed)
        """
        deleted = await self.tokens.delete(token)
        if deleted == 0:
            raise TokenInvalidError()

    async def sweep_expired(self, now: Optional[datetime] = None) -> int:
        """Delete expired rows. Storage hygiene only; validate() already rejects them."""
        return await self.tokens.delete_expired(now or utcnow())
