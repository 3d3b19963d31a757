"""
Rate limiting for credential endpoints

slowapi keyed by client IP. Storage defaults to process memory; point
RATE_LIMIT_STORAGE_URI at Redis when running more than one instance.
"""
import logging
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from starlette.requests import Request
from starlette.responses import JSONResponse

from referral_api.core.config import settings

logger = logging.getLogger(__name__)


def get_client_ip(request: Request) -> str:
    """
    Client address for rate-limit keys.

    Each trusted proxy appends the address it received the request from, so
    with N trusted hops the client is the Nth X-Forwarded-For entry from the
    right. Anything further left was supplied by the client and is ignored.
    """
    hops = settings.TRUSTED_PROXY_HOPS
    if hops > 0:
        forwarded = [h.strip() for h in request.headers.get("X-Forwarded-For", "").split(",") if h.strip()]
        if len(forwarded) >= hops:
            return forwarded[-hops]
    return get_remote_address(request)


limiter = Limiter(
    key_func=get_client_ip,
    enabled=settings.RATE_LIMIT_ENABLED,
    default_limits=[settings.RATE_LIMIT_DEFAULT],
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """429 in the same error body shape as every other failure."""
    client = get_client_ip(request)
    limit = exc.detail or settings.RATE_LIMIT_AUTH
    logger.warning(f"Rate limit {limit} exceeded by {client} on {request.url.path}")

    return JSONResponse(
        status_code=429,
        content={
            "error": "rate_limit_exceeded",
            "message": "Too many requests. Please slow down and try again shortly.",
            "limit": limit,
        },
        headers={"Retry-After": "60"},
    )
