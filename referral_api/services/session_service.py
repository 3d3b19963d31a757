"""
Session Service

Server-side sessions with a fixed absolute lifetime. A session is created at
login, destroyed at logout, and never extended by activity.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional

from referral_api.core.config import settings
from referral_api.core.security import generate_session_id, hash_session_id
from referral_api.core.utils import utcnow
from referral_api.schemas.auth import IdentitySnapshot

logger = logging.getLogger(__name__)


class SessionService:
    """
    Service for managing user sessions.

    Features:
    - Identity snapshot cached in the row (no account lookup per request)
    - Absolute timeout only
    - Rows keyed by a keyed digest of the cookie value
    """

    TTL = timedelta(days=settings.SESSION_TTL_DAYS)

    def __init__(self, sessions):
        self.sessions = sessions

    async def create(self, snapshot: IdentitySnapshot, now: Optional[datetime] = None) -> str:
        """
        Persist a new session.

        Returns:
            Raw session id for the cookie
        """
        now = now or utcnow()
        session_id = generate_session_id()
        await self.sessions.create(
            sid=hash_session_id(session_id),
            sess=snapshot.model_dump(),
            expire=now + self.TTL,
        )
        return session_id

    async def authenticate(
        self,
        session_id: Optional[str],
        now: Optional[datetime] = None,
    ) -> Optional[IdentitySnapshot]:
        """Return the identity snapshot for a live session, None otherwise."""
        if not session_id:
            return None
        record = await self.sessions.get_valid(hash_session_id(session_id), now or utcnow())
        if not record:
            return None
        return IdentitySnapshot.model_validate(record.sess)

    async def refresh_snapshot(self, session_id: str, snapshot: IdentitySnapshot) -> None:
        """Rewrite the cached identity. Does not touch the expiry."""
        await self.sessions.update_sess(hash_session_id(session_id), snapshot.model_dump())

    async def destroy(self, session_id: Optional[str]) -> None:
        """Delete the session. An unknown or missing id is not an error."""
        if not session_id:
            return
        deleted = await self.sessions.delete(hash_session_id(session_id))
        if not deleted:
            logger.debug("Logout for a session that was already gone")

    async def sweep_expired(self, now: Optional[datetime] = None) -> int:
        return await self.sessions.delete_expired(now or utcnow())
