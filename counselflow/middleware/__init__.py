"""
Middleware Package
==================

Starlette middleware for request ids, security headers and rate limiting.
"""

from .rate_limit import RateLimitMiddleware, RateLimiter
from .request_context import RequestContextMiddleware, RequestIdFilter, get_request_id
from .security import SecurityHeadersMiddleware

__all__ = [
    "RateLimitMiddleware",
    "RateLimiter",
    "RequestContextMiddleware",
    "RequestIdFilter",
    "get_request_id",
    "SecurityHeadersMiddleware",
]
