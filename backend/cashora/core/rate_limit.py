from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from threading import Lock
from typing import Dict, Optional, Tuple

import redis.asyncio as aioredis
from fastapi import Request

from cashora.core.errors import AppHTTPException, ErrorMessages
from cashora.core.settings import settings

"""
Core Rate Limit.

Rôle (fonctionnel) :
- Protège les endpoints sensibles (login, signup, mouvements d’argent) contre les rafales.
- Fenêtre fixe de RATE_LIMIT_WINDOW_SECONDS, clé = (IP client, chemin de route).
- Deux backends interchangeables :
  - InMemoryRateLimiter : local / tests / mono-worker
  - RedisRateLimiter    : compteurs partagés (INCR + EXPIRE) dès que REDIS_URL est renseignée

Le quota est choisi par route (dépendance RateLimit(limit) dans cashora.api.deps).
"""

log = logging.getLogger("cashora.rate_limit")


def client_ip(request: Request) -> str:
    """IP client : 1re entrée de X-Forwarded-For (reverse proxy), sinon pair TCP."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return request.client.host if request.client else "unknown"


def _too_many(limit: int, window: int) -> AppHTTPException:
    return AppHTTPException(
        429,
        "RATE_LIMITED",
        ErrorMessages.RATE_LIMIT,
        details={"limit": limit, "window_seconds": window},
    )


@dataclass
class _Bucket:
    """État minimal d’un compteur sur une fenêtre fixe."""
    window_start: float
    count: int
    window: int


class InMemoryRateLimiter:
    """Compteurs en mémoire par (IP, route), remis à zéro à chaque nouvelle fenêtre."""

    backend = "memory"

    def __init__(self) -> None:
        self._lock = Lock()
        self._buckets: Dict[Tuple[str, str], _Bucket] = {}
        self._last_sweep = 0.0

    async def hit(self, key: Tuple[str, str], limit: int, window: int) -> None:
        now = time.time()

        with self._lock:
            if now - self._last_sweep >= window:
                self._sweep(now)

            bucket = self._buckets.get(key)

            if bucket is None or (now - bucket.window_start) >= window:
                self._buckets[key] = _Bucket(window_start=now, count=1, window=window)
                return

            bucket.count += 1
            if bucket.count > limit:
                raise _too_many(limit, window)

    def _sweep(self, now: float) -> None:
        # Compteurs dont la fenêtre est terminée
        stale = [k for k, b in self._buckets.items() if (now - b.window_start) >= b.window]
        for k in stale:
            del self._buckets[k]
        self._last_sweep = now

    def size(self) -> int:
        return len(self._buckets)

    def reset(self) -> None:
        with self._lock:
            self._buckets.clear()


class RedisRateLimiter:
    """Compteurs partagés dans Redis : INCR sur la clé de fenêtre, EXPIRE au premier hit."""

    backend = "redis"

    def __init__(self, url: str) -> None:
        self._redis = aioredis.from_url(url, decode_responses=True)

    async def hit(self, key: Tuple[str, str], limit: int, window: int) -> None:
        slot = int(time.time() // window)
        redis_key = f"ratelimit:{key[0]}:{key[1]}:{slot}"

        count = await self._redis.incr(redis_key)
        if count == 1:
            await self._redis.expire(redis_key, window)

        if count > limit:
            raise _too_many(limit, window)

    def reset(self) -> None:
        # Les clés expirent d’elles-mêmes (TTL = fenêtre)
        return None


class RateLimiter:
    """Façade : applique la config (activation, fenêtre) puis délègue au backend."""

    def __init__(self, backend: Optional[InMemoryRateLimiter | RedisRateLimiter] = None) -> None:
        if backend is None:
            backend = RedisRateLimiter(settings.REDIS_URL) if settings.REDIS_URL else InMemoryRateLimiter()
        self._backend = backend

    @property
    def backend(self) -> str:
        return self._backend.backend

    async def check(self, request: Request, limit: int, scope: str) -> None:
        """Lève 429 si (IP, scope) dépasse `limit` requêtes sur la fenêtre courante."""
        if not settings.RATE_LIMIT_ENABLED or limit <= 0:
            return

        ip = client_ip(request)
        try:
            await self._backend.hit((ip, scope), limit, settings.RATE_LIMIT_WINDOW_SECONDS)
        except AppHTTPException:
            log.warning("rate_limited", extra={"client_ip": ip, "path": scope})
            raise

    def reset(self) -> None:
        self._backend.reset()


# Instance globale importable (utilisée par la dépendance RateLimit)
rate_limiter = RateLimiter()
