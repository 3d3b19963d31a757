"""
Referral API - FastAPI Backend

Authentication and account security for the energy-switching referral
program: registration, session login, email verification, password reset.

Background work:
- Expired token/session sweep with heartbeat metrics (see /health)
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text

from referral_api import __version__
from referral_api.api.routes import auth
from referral_api.core.config import settings
from referral_api.core.database import AsyncSessionLocal
from referral_api.core.error_handler import register_error_handlers
from referral_api.core.logging_config import configure_logging
from referral_api.core.rate_limit import limiter, rate_limit_exceeded_handler
from referral_api.services.email_provider import get_email_provider
from referral_api.services.token_cleanup import cleanup_heartbeat, token_cleanup_scheduler

logger = logging.getLogger(__name__)

_token_cleanup_task: Optional[asyncio.Task] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the token sweep on startup; stop it and close HTTP clients on shutdown."""
    global _token_cleanup_task

    configure_logging()

    if settings.TOKEN_SWEEP_ENABLED:
        _token_cleanup_task = asyncio.create_task(token_cleanup_scheduler())
        logger.info("Token cleanup scheduler ENABLED")
    else:
        logger.info("Token cleanup scheduler DISABLED via config")

    yield

    if _token_cleanup_task and not _token_cleanup_task.done():
        _token_cleanup_task.cancel()
        try:
            await _token_cleanup_task
        except asyncio.CancelledError:
            logger.info("Token cleanup scheduler cancelled")

    await get_email_provider().close()
    logger.info("Email HTTP client closed")


app = FastAPI(
    lifespan=lifespan,
    title=settings.APP_NAME,
    description="Authentication API for the energy-switching referral program",
    version=__version__,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

register_error_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
)

app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])


@app.get("/")
async def root():
    return {"message": f"{settings.APP_NAME} is running", "version": __version__}


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check with a real DB ping and the token sweep heartbeat.
    Returns 503 if the database is unreachable.
    """
    health_status = {
        "status": "healthy",
        "database": "unknown",
        "token_cleanup": cleanup_heartbeat,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    try:
        async with AsyncSessionLocal() as db:
            await db.execute(text("SELECT 1"))
        health_status["database"] = "connected"
    except Exception as e:
        health_status["database"] = f"error: {type(e).__name__}"
        health_status["status"] = "unhealthy"
        return JSONResponse(status_code=503, content=health_status)

    return health_status
