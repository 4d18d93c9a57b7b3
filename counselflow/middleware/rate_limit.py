"""
Rate Limiting Middleware
========================

Redis-based per-caller rate limiting for the API.

Callers are keyed by the ``sub`` claim of their bearer token when it verifies,
otherwise by client IP. When Redis cannot be reached every request is allowed.
"""

import logging
import time
from typing import Callable, Optional, Tuple

import redis
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from ..auth import decode_token, extract_bearer_token
from ..config import Settings
from ..schemas import error_envelope

logger = logging.getLogger(__name__)

EXEMPT_PATHS = ("/health", "/docs", "/redoc", "/openapi.json")


class RateLimiter:
    """
    Redis-based rate limiter using sliding window algorithm.
    """

    def __init__(self, redis_url: str = "redis://localhost:6379/0", client=None):
        self.redis_url = redis_url
        self._client = client

    @property
    def client(self):
        """Lazy-load Redis client"""
        if self._client is None:
            try:
                client = redis.from_url(self.redis_url, decode_responses=True)
                client.ping()  # Test connection
                self._client = client
            except redis.RedisError as e:
                logger.warning(f"Redis connection failed: {e}")
                return None
        return self._client

    def is_allowed(self, key: str, limit: int, window_seconds: int = 60) -> Tuple[bool, int, int]:
        """
        Check if request is allowed under rate limit.

        Args:
            key: Rate limit key (e.g., "ratelimit:user:123")
            limit: Maximum requests allowed
            window_seconds: Time window in seconds

        Returns:
            (is_allowed, remaining, reset_time)
        """
        client = self.client
        if client is None:
            return (True, limit, 0)

        now = time.time()
        window_start = now - window_seconds

        try:
            pipe = client.pipeline()
            pipe.zremrangebyscore(key, 0, window_start)
            pipe.zcard(key)
            pipe.zadd(key, {str(now): now})
            pipe.expire(key, window_seconds)
            results = pipe.execute()
        except redis.RedisError as e:
            logger.warning(f"Rate limit check failed, allowing request: {e}")
            return (True, limit, 0)

        current_count = results[1]
        reset_time = int(now + window_seconds)

        if current_count >= limit:
            return (False, 0, reset_time)
        return (True, max(0, limit - current_count - 1), reset_time)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    FastAPI middleware for per-user rate limiting.
    """

    def __init__(self, app, settings: Settings, limiter: Optional[RateLimiter] = None):
        super().__init__(app)
        self.settings = settings
        self.limit = settings.rate_limit_per_user
        self.limiter = limiter or RateLimiter(settings.redis_url)

    def _caller_key(self, request: Request) -> str:
        token = extract_bearer_token(request.headers.get("authorization"))
        if token:
            payload = decode_token(token, self.settings)
            if payload and payload.get("sub"):
                return f"ratelimit:user:{payload['sub']}"
        host = request.client.host if request.client else "unknown"
        return f"ratelimit:ip:{host}"

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in EXEMPT_PATHS:
            return await call_next(request)

        allowed, remaining, reset = self.limiter.is_allowed(
            self._caller_key(request), self.limit, window_seconds=60
        )

        if not allowed:
            retry_after = max(0, reset - int(time.time()))
            return JSONResponse(
                status_code=429,
                content=error_envelope(
                    "Rate limit exceeded",
                    f"Limit: {self.limit} requests per minute",
                ),
                headers={
                    "X-RateLimit-Limit": str(self.limit),
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Reset": str(reset),
                    "Retry-After": str(retry_after),
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self.limit)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        return response
