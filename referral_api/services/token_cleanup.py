"""
Expired Token Cleanup

Background sweep that deletes expired auth tokens and sessions. Expired rows
are already rejected on lookup, so this is storage hygiene only; a failed run
is logged and simply retried on the next tick.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

from referral_api.core.config import settings
from referral_api.core.database import get_db_session
from referral_api.core.utils import utcnow
from referral_api.services.account_store import SessionStore, TokenStore
from referral_api.services.session_service import SessionService
from referral_api.services.token_service import TokenService

logger = logging.getLogger(__name__)

cleanup_heartbeat: dict = {
    "last_run": None,
    "last_success": None,
    "tokens_deleted": 0,
    "sessions_deleted": 0,
    "errors": 0,
}


async def delete_expired_records(db, now: Optional[datetime] = None) -> dict:
    """
    Delete expired tokens and sessions in one transaction.

    Returns:
        dict with tokens_deleted and sessions_deleted counts
    """
    now = now or utcnow()
    tokens = await TokenService(TokenStore(db)).sweep_expired(now)
    sessions = await SessionService(SessionStore(db)).sweep_expired(now)
    await db.commit()
    return {"tokens_deleted": tokens, "sessions_deleted": sessions}


async def run_token_cleanup(session_factory=get_db_session) -> Optional[dict]:
    """
    One sweep. Updates the heartbeat used by /health.
    Never raises.
    """
    cleanup_heartbeat["last_run"] = datetime.now(timezone.utc).isoformat()

    try:
        async with session_factory() as db:
            stats = await delete_expired_records(db)
    except Exception as e:
        cleanup_heartbeat["errors"] += 1
        logger.error(f"Token cleanup failed: {e}")
        return None

    cleanup_heartbeat["last_success"] = datetime.now(timezone.utc).isoformat()
    cleanup_heartbeat["tokens_deleted"] += stats["tokens_deleted"]
    cleanup_heartbeat["sessions_deleted"] += stats["sessions_deleted"]

    if stats["tokens_deleted"] or stats["sessions_deleted"]:
        logger.info(
            f"Token cleanup: removed {stats['tokens_deleted']} tokens, "
            f"{stats['sessions_deleted']} sessions"
        )
    return stats


async def token_cleanup_scheduler():
    """
    Runs the sweep every TOKEN_SWEEP_INTERVAL_MINUTES until cancelled during shutdown.
    """
    interval_seconds = settings.TOKEN_SWEEP_INTERVAL_MINUTES * 60
    logger.info(f"Token cleanup scheduler started (interval: {settings.TOKEN_SWEEP_INTERVAL_MINUTES} minutes)")

    while True:
        await run_token_cleanup()
        await asyncio.sleep(interval_seconds)
