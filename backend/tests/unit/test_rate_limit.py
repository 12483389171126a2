from types import SimpleNamespace

import pytest
from starlette.requests import Request

from cashora.core import rate_limit
from cashora.core.errors import AppHTTPException
from cashora.core.rate_limit import InMemoryRateLimiter, RateLimiter, client_ip


def _request(ip: str = "10.1.1.1", forwarded: str | None = None) -> Request:
    headers = []
    if forwarded:
        headers.append((b"x-forwarded-for", forwarded.encode()))
    return Request({"type": "http", "method": "POST", "path": "/api/auth/login", "headers": headers, "client": (ip, 5000)})


def test_client_ip_prefers_forwarded_header():
    assert client_ip(_request(forwarded="203.0.113.7, 10.0.0.1")) == "203.0.113.7"
    assert client_ip(_request("10.9.9.9")) == "10.9.9.9"


async def test_memory_backend_blocks_after_limit():
    limiter = InMemoryRateLimiter()
    for _ in range(3):
        await limiter.hit(("1.1.1.1", "/login"), limit=3, window=60)

    with pytest.raises(AppHTTPException) as exc:
        await limiter.hit(("1.1.1.1", "/login"), limit=3, window=60)
    assert exc.value.status_code == 429
    assert exc.value.detail["code"] == "RATE_LIMITED"
    assert exc.value.detail["details"] == {"limit": 3, "window_seconds": 60}


async def test_memory_backend_counts_per_key():
    limiter = InMemoryRateLimiter()
    await limiter.hit(("1.1.1.1", "/login"), limit=1, window=60)
    await limiter.hit(("2.2.2.2", "/login"), limit=1, window=60)
    await limiter.hit(("1.1.1.1", "/signup"), limit=1, window=60)


async def test_memory_backend_reset():
    limiter = InMemoryRateLimiter()
    await limiter.hit(("1.1.1.1", "/login"), limit=1, window=60)
    limiter.reset()
    await limiter.hit(("1.1.1.1", "/login"), limit=1, window=60)


async def test_facade_uses_ip_and_scope():
    limiter = RateLimiter(InMemoryRateLimiter())
    assert limiter.backend == "memory"

    await limiter.check(_request("10.0.0.5"), 1, "/api/user/transfer")
    with pytest.raises(AppHTTPException):
        await limiter.check(_request("10.0.0.5"), 1, "/api/user/transfer")
    await limiter.check(_request("10.0.0.6"), 1, "/api/user/transfer")


async def test_memory_backend_drops_expired_buckets(monkeypatch):
    clock = SimpleNamespace(now=1000.0)
    monkeypatch.setattr(rate_limit, "time", SimpleNamespace(time=lambda: clock.now))

    limiter = InMemoryRateLimiter()
    for i in range(5):
        await limiter.hit((f"10.0.0.{i}", "/login"), limit=3, window=60)
    assert limiter.size() == 5

    clock.now += 61
    await limiter.hit(("10.0.0.99", "/login"), limit=3, window=60)
    assert limiter.size() == 1
