from fastapi import Depends, status, Request
from fastapi.security import HTTPAuthorizationCredentials
from typing import Optional
import logging
import redis

from ..core.config import settings
from ..core.database import get_redis
from ..core.exceptions import AppException, AuthenticationError, AuthorizationError
from ..core.security import security, verify_token, TokenPayload

logger = logging.getLogger(__name__)

def get_current_identity(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> TokenPayload:
    """Extract and verify the bearer token from the Authorization header.

    The decoded claims are trusted until expiry; the user row is not
    re-read here.
    """
    if credentials is None:
        if not request.headers.get("Authorization"):
            raise AuthenticationError("Authentication token not provided", remove_token=True)
        # Header present but not a usable bearer token
        raise AuthorizationError()

    token_payload = verify_token(credentials.credentials)
    if not token_payload:
        raise AuthorizationError()

    return token_payload

# Rate limiting dependency
def rate_limit_check(
    request: Request,
    redis_client = Depends(get_redis)
) -> None:
    """Basic rate limiting for the public account endpoints."""
    if not settings.RATE_LIMIT_ENABLED:
        return

    client_ip = request.client.host if request.client else "unknown"
    key = f"rate_limit:{request.url.path}:{client_ip}"

    try:
        current_requests = redis_client.get(key)
        if current_requests is None:
            redis_client.setex(key, settings.RATE_LIMIT_WINDOW_SECONDS, 1)
            return
        if int(current_requests) >= settings.RATE_LIMIT_REQUESTS:
            raise AppException(
                "Too many requests. Please try again later.",
                status.HTTP_429_TOO_MANY_REQUESTS
            )
        redis_client.incr(key)
    except redis.RedisError as exc:
        # Throttling is best effort; an unreachable Redis must not block sign-ups
        logger.warning(f"Rate limit check skipped: {exc}")
