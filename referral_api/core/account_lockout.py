"""
Account Lockout policy

Brute force protection: after MAX_FAILED_ATTEMPTS consecutive wrong passwords
the account is locked for LOCKOUT_DURATION_MINUTES.

The failure counter is only cleared by a successful login or a password
reset. A lock that simply runs out leaves the counter where it was, so the
next wrong password after expiry locks the account again straight away.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from referral_api.core.config import settings
from referral_api.core.utils import utcnow, as_utc, minutes_until

logger = logging.getLogger(__name__)


@dataclass
class LockDecision:
    locked: bool
    attempts: int
    remaining_attempts: int
    locked_until: Optional[datetime] = None


class AccountLockoutPolicy:
    """
    Manages account lockout for brute force protection.

    Features:
    - Fixed-length lockout once the threshold is reached
    - Automatic unlock after duration
    - Counter increments done server-side to stay correct under concurrent attempts
    """

    MAX_FAILED_ATTEMPTS = settings.LOCKOUT_MAX_ATTEMPTS

    LOCKOUT_DURATION_MINUTES = settings.LOCKOUT_MINUTES

    def __init__(self, accounts):
        self.accounts = accounts

    async def record_failure(self, account, now: Optional[datetime] = None) -> LockDecision:
        """
        Record a failed login attempt.

        Args:
            account: Account that failed the password check
            now: Clock override

        Returns:
            LockDecision describing the post-attempt state
        """
        now = now or utcnow()
        attempts = await self.accounts.increment_failed_logins(account.id)
        remaining = max(0, self.MAX_FAILED_ATTEMPTS - attempts)

        if attempts >= self.MAX_FAILED_ATTEMPTS:
            locked_until = now + timedelta(minutes=self.LOCKOUT_DURATION_MINUTES)
            await self.accounts.lock(account.id, locked_until)
            logger.warning(
                f"Account {account.id} locked until {locked_until.isoformat()} "
                f"after {attempts} failed attempts"
            )
            return LockDecision(
                locked=True,
                attempts=attempts,
                remaining_attempts=0,
                locked_until=locked_until,
            )

        return LockDecision(locked=False, attempts=attempts, remaining_attempts=remaining)

    async def record_success(self, account, now: Optional[datetime] = None) -> None:
        """Reset failed attempts and any lock, and stamp the login time."""
        await self.accounts.reset_failed_logins(account.id)
        await self.accounts.update_last_login(account.id, now or utcnow())

    async def clear(self, account_id: str) -> None:
        """Reset lockout state without counting as a login (password reset)."""
        await self.accounts.reset_failed_logins(account_id)

    @staticmethod
    def is_locked(account, now: Optional[datetime] = None) -> bool:
        if not account.locked_until:
            return False
        now = now or utcnow()
        return now < as_utc(account.locked_until)

    @classmethod
    def remaining_minutes(cls, account, now: Optional[datetime] = None) -> int:
        """Minutes left on the lock, rounded up. 0 when not locked."""
        now = now or utcnow()
        if not cls.is_locked(account, now):
            return 0
        return minutes_until(account.locked_until, now)
