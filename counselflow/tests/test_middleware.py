"""
Middleware Tests
================

Rate limiter (with a mocked Redis), rate-limit middleware, security headers
and request ids.
"""

import logging
from unittest.mock import MagicMock

import redis
from fastapi import FastAPI
from fastapi.testclient import TestClient

from counselflow.auth import create_access_token
from counselflow.middleware import (
    RateLimiter, RateLimitMiddleware, RequestContextMiddleware, RequestIdFilter, SecurityHeadersMiddleware,
    get_request_id,
)


def _redis_with_count(count: int) -> MagicMock:
    client = MagicMock()
    client.pipeline.return_value.execute.return_value = [0, count, 1, True]
    return client


# =============================================================================
# RateLimiter
# =============================================================================

class TestRateLimiter:

    def test_allows_under_limit(self):
        limiter = RateLimiter(client=_redis_with_count(3))
        allowed, remaining, reset = limiter.is_allowed("ratelimit:user:u1", limit=10)
        assert allowed is True
        assert remaining == 6
        assert reset > 0

    def test_blocks_at_limit(self):
        limiter = RateLimiter(client=_redis_with_count(10))
        allowed, remaining, _ = limiter.is_allowed("ratelimit:user:u1", limit=10)
        assert allowed is False
        assert remaining == 0

    def test_uses_sliding_window_commands(self):
        client = _redis_with_count(0)
        RateLimiter(client=client).is_allowed("k", limit=5, window_seconds=60)
        pipe = client.pipeline.return_value
        pipe.zremrangebyscore.assert_called_once()
        pipe.zcard.assert_called_once_with("k")
        pipe.expire.assert_called_once_with("k", 60)

    def test_fails_open_when_redis_errors(self):
        client = MagicMock()
        client.pipeline.return_value.execute.side_effect = redis.ConnectionError("down")
        allowed, remaining, _ = RateLimiter(client=client).is_allowed("k", limit=5)
        assert allowed is True
        assert remaining == 5


# =============================================================================
# RateLimitMiddleware
# =============================================================================

def _limited_app(settings, limiter) -> FastAPI:
    app = FastAPI()
    app.add_middleware(RateLimitMiddleware, settings=settings, limiter=limiter)

    @app.get("/ping")
    def ping():
        return {"ok": True}

    @app.get("/health")
    def health():
        return {"status": "healthy"}

    return app


def test_rate_limit_returns_429_envelope(settings):
    limiter = MagicMock()
    limiter.is_allowed.return_value = (False, 0, 2_000_000_000)
    client = TestClient(_limited_app(settings, limiter))

    response = client.get("/ping")
    assert response.status_code == 429
    assert response.json()["success"] is False
    assert response.json()["error"] == "Rate limit exceeded"
    assert response.headers["X-RateLimit-Remaining"] == "0"
    assert "Retry-After" in response.headers


def test_rate_limit_keys_on_token_subject(settings):
    limiter = MagicMock()
    limiter.is_allowed.return_value = (True, 41, 0)
    client = TestClient(_limited_app(settings, limiter))
    token = create_access_token({"sub": "user-42"}, settings)

    response = client.get("/ping", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 200
    assert response.headers["X-RateLimit-Remaining"] == "41"
    assert limiter.is_allowed.call_args[0][0] == "ratelimit:user:user-42"

    client.get("/ping")
    assert limiter.is_allowed.call_args[0][0].startswith("ratelimit:ip:")


def test_health_is_not_rate_limited(settings):
    limiter = MagicMock()
    client = TestClient(_limited_app(settings, limiter))
    assert client.get("/health").status_code == 200
    limiter.is_allowed.assert_not_called()


# =============================================================================
# Security headers / request ids
# =============================================================================

def _plain_app(**security_kwargs) -> FastAPI:
    app = FastAPI()
    app.add_middleware(SecurityHeadersMiddleware, **security_kwargs)
    app.add_middleware(RequestContextMiddleware)

    @app.get("/ping")
    async def ping():
        return {"request_id": get_request_id()}

    return app


def test_security_headers():
    response = TestClient(_plain_app()).get("/ping")
    assert response.headers["X-Frame-Options"] == "DENY"
    assert response.headers["Content-Security-Policy"] == "default-src 'none'; frame-ancestors 'none'"
    assert "Strict-Transport-Security" not in response.headers


def test_hsts_behind_https_proxy():
    response = TestClient(_plain_app(hsts_max_age=600)).get("/ping", headers={"X-Forwarded-Proto": "https"})
    assert response.headers["Strict-Transport-Security"] == "max-age=600; includeSubDomains"


def test_https_redirect_when_enforced():
    client = TestClient(_plain_app(enforce_https=True), follow_redirects=False)
    response = client.get("/ping")
    assert response.status_code == 301
    assert response.headers["location"].startswith("https://")


def test_request_id_is_echoed_and_visible_to_handlers():
    client = TestClient(_plain_app())
    response = client.get("/ping", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"
    assert response.json() == {"request_id": "req-123"}

    generated = client.get("/ping")
    assert generated.headers["X-Request-ID"]
    assert generated.headers["X-Request-ID"] != "req-123"


def test_request_id_filter_outside_requests():
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)
    assert RequestIdFilter().filter(record) is True
    assert record.request_id == "-"
