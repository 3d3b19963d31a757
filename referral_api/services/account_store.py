"""
Credential store

Thin SQLAlchemy query layer over accounts, auth tokens and sessions. Every
mutation that has to be race-free is a single statement executed by the
database: the failed-login increment and the delete-by-value of tokens.
"""
from datetime import datetime
from typing import Optional, Dict, Any

from sqlalchemy import select, update, delete, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from referral_api.core.utils import utcnow
from referral_api.models import Account, AuthToken, Session


class _SqlStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def commit(self) -> None:
        await self.db.commit()

    async def rollback(self) -> None:
        await self.db.rollback()


class AccountStore(_SqlStore):
    """Account lookups and lockout/verification bookkeeping."""

    async def get_by_id(self, account_id: str) -> Optional[Account]:
        result = await self.db.execute(select(Account).where(Account.id == account_id))
        return result.scalar_one_or_none()

    async def get_by_username(self, username: str) -> Optional[Account]:
        result = await self.db.execute(select(Account).where(Account.username == username))
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> Optional[Account]:
        result = await self.db.execute(
            select(Account).where(func.lower(Account.email) == email.lower())
        )
        return result.scalar_one_or_none()

    async def create(self, **fields) -> Account:
        """
        Insert a new account.

        Raises:
            IntegrityError: username or email taken by a concurrent registration
        """
        account = Account(**fields)
        self.db.add(account)
        try:
            await self.db.flush()
        except IntegrityError:
            await self.db.rollback()
            raise
        return account

    async def increment_failed_logins(self, account_id: str) -> int:
        """Atomically bump the failure counter and return its new value."""
        result = await self.db.execute(
            update(Account)
            .where(Account.id == account_id)
            .values(
                failed_login_attempts=Account.failed_login_attempts + 1,
                updated_at=utcnow(),
            )
            .returning(Account.failed_login_attempts)
        )
        return result.scalar_one()

    async def lock(self, account_id: str, until: datetime) -> None:
        await self.db.execute(
            update(Account)
            .where(Account.id == account_id)
            .values(locked_until=until, updated_at=utcnow())
        )

    async def reset_failed_logins(self, account_id: str) -> None:
        await self.db.execute(
            update(Account)
            .where(Account.id == account_id)
            .values(failed_login_attempts=0, locked_until=None, updated_at=utcnow())
        )

    async def update_last_login(self, account_id: str, at: datetime) -> None:
        await self.db.execute(
            update(Account)
            .where(Account.id == account_id)
            .values(last_login_at=at, updated_at=utcnow())
        )

    async def mark_email_verified(self, account_id: str) -> None:
        await self.db.execute(
            update(Account)
            .where(Account.id == account_id)
            .values(email_verified=True, updated_at=utcnow())
        )

    async def update_password(self, account_id: str, hashed_password: str) -> None:
        await self.db.execute(
            update(Account)
            .where(Account.id == account_id)
            .values(hashed_password=hashed_password, updated_at=utcnow())
        )


class TokenStore(_SqlStore):
    """Rows of the user_tokens table."""

    async def create(self, user_id: str, token: str, kind: str, expires_at: datetime) -> AuthToken:
        record = AuthToken(user_id=user_id, token=token, type=kind, expires_at=expires_at)
        self.db.add(record)
        await self.db.flush()
        return record

    async def find_valid(self, token: str, kind: str, now: datetime) -> Optional[AuthToken]:
        result = await self.db.execute(
            select(AuthToken).where(
                AuthToken.token == token,
                AuthToken.type == kind,
                AuthToken.expires_at > now,
            )
        )
        return result.scalar_one_or_none()

    async def delete(self, token: str) -> int:
        """Delete by value. Returns the number of rows removed (0 or 1)."""
        result = await self.db.execute(delete(AuthToken).where(AuthToken.token == token))
        return result.rowcount or 0

    async def delete_expired(self, now: datetime) -> int:
        result = await self.db.execute(delete(AuthToken).where(AuthToken.expires_at < now))
        return result.rowcount or 0


class SessionStore(_SqlStore):
    """Rows of the sessions table, keyed by the digest of the session id."""

    async def create(self, sid: str, sess: Dict[str, Any], expire: datetime) -> Session:
        record = Session(sid=sid, sess=sess, expire=expire)
        self.db.add(record)
        await self.db.flush()
        return record

    async def get_valid(self, sid: str, now: datetime) -> Optional[Session]:
        result = await self.db.execute(
            select(Session).where(Session.sid == sid, Session.expire > now)
        )
        return result.scalar_one_or_none()

    async def update_sess(self, sid: str, sess: Dict[str, Any]) -> None:
        await self.db.execute(update(Session).where(Session.sid == sid).values(sess=sess))

    async def delete(self, sid: str) -> int:
        result = await self.db.execute(delete(Session).where(Session.sid == sid))
        return result.rowcount or 0

    async def delete_expired(self, now: datetime) -> int:
        result = await self.db.execute(delete(Session).where(Session.expire < now))
        return result.rowcount or 0
