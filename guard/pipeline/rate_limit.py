"""Fixed-window rate limiting keyed by client identity."""

from __future__ import annotations

import logging
import math
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError
from starlette.responses import Response

from .base import Inspector
from .context import InspectionContext
from .errors import RateExceeded

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 30
DEFAULT_WINDOW_SECONDS = 60
RATE_KEY_PREFIX = "ratelimit:"


@dataclass(slots=True)
class RateWindow:
    key: str
    window_start: float
    count: int
    limit: int

    def expired(self, now: float, window_seconds: float) -> bool:
        return now - self.window_start >= window_seconds


@dataclass(frozen=True, slots=True)
class RateDecision:
    allowed: bool
    count: int
    limit: int
    retry_after: int = 0


class RateLimiter(ABC):
    def __init__(self, limit: int = DEFAULT_LIMIT, window_seconds: int = DEFAULT_WINDOW_SECONDS):
        if limit < 1 or window_seconds < 1:
            raise ValueError("Rate limit and window must be positive")
        self.limit = limit
        self.window_seconds = window_seconds

    @abstractmethod
    async def admit(self, key: str) -> RateDecision:
        """Count one request for key and decide whether it may proceed."""

    async def close(self) -> None:
        return None


class InMemoryRateLimiter(RateLimiter):
    """
    Process-local limiter.

    The increment and the comparison happen under one lock, so concurrent
    requests for the same key can never both take the last slot. Expired
    windows are swept at most once per window.
    """

    def __init__(
        self,
        limit: int = DEFAULT_LIMIT,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(limit, window_seconds)
        self._clock = clock
        self._lock = threading.Lock()
        self._windows: dict[str, RateWindow] = {}
        self._last_sweep = clock()

    def __len__(self) -> int:
        return len(self._windows)

    async def admit(self, key: str) -> RateDecision:
        with self._lock:
            now = self._clock()
            self._sweep(now)

            window = self._windows.get(key)
            if window is None or window.expired(now, self.window_seconds):
                window = RateWindow(key=key, window_start=now, count=0, limit=self.limit)
                self._windows[key] = window

            window.count += 1
            allowed = window.count <= window.limit
            retry_after = 0
            if not allowed:
                retry_after = max(1, math.ceil(window.window_start + self.window_seconds - now))

            return RateDecision(allowed=allowed, count=window.count, limit=window.limit, retry_after=retry_after)

    def _sweep(self, now: float) -> None:
        if now - self._last_sweep < self.window_seconds:
            return

        expired = [key for key, window in self._windows.items() if window.expired(now, self.window_seconds)]
        for key in expired:
            del self._windows[key]
        self._last_sweep = now


class RedisRateLimiter(RateLimiter):
    """
    Shared limiter backed by Redis.

    Each window has its own key; INCR and EXPIRE run in one MULTI/EXEC
    transaction. When Redis is unreachable the limiter fails open.
    """

    def __init__(
        self,
        client: redis.Redis,
        limit: int = DEFAULT_LIMIT,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.time,
        prefix: str = RATE_KEY_PREFIX,
    ):
        super().__init__(limit, window_seconds)
        self._client = client
        self._clock = clock
        self._prefix = prefix

    @classmethod
    def from_url(cls, url: str, **kwargs) -> "RedisRateLimiter":
        return cls(redis.from_url(url, decode_responses=True), **kwargs)

    def window_key(self, key: str, now: float) -> str:
        return f"{self._prefix}{key}:{int(now // self.window_seconds)}"

    async def admit(self, key: str) -> RateDecision:
        now = self._clock()
        window_key = self.window_key(key, now)

        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.incr(window_key)
                pipe.expire(window_key, self.window_seconds * 2)
                results = await pipe.execute()
        except (RedisError, OSError):
            logger.exception("Rate limit lookup failed for key=%s. Falling open.", key)
            return RateDecision(allowed=True, count=0, limit=self.limit)

        count = int(results[0])
        allowed = count <= self.limit
        retry_after = 0
        if not allowed:
            retry_after = max(1, math.ceil(self.window_seconds - (now % self.window_seconds)))

        return RateDecision(allowed=allowed, count=count, limit=self.limit, retry_after=retry_after)

    async def close(self) -> None:
        await self._client.aclose()


def client_key(ctx: InspectionContext, trust_forwarded: bool = False) -> str:
    """Client identity for rate limiting: the peer address unless a proxy is trusted."""
    if trust_forwarded:
        forwarded = ctx.headers.get("x-forwarded-for", "")
        if forwarded:
            first_hop = forwarded.split(",")[0].strip()
            if first_hop:
                return first_hop

        real_ip = ctx.headers.get("x-real-ip", "").strip()
        if real_ip:
            return real_ip

    return ctx.client_host


class RateLimitInspector(Inspector):
    name = "rate-limit"

    def __init__(self, limiter: RateLimiter, trust_forwarded: bool = False):
        self.limiter = limiter
        self.trust_forwarded = trust_forwarded

    async def inspect(self, ctx: InspectionContext) -> Optional[Response]:
        key = client_key(ctx, self.trust_forwarded)
        decision = await self.limiter.admit(key)
        if decision.allowed:
            return None

        logger.warning(
            "RATE_LIMIT_EXCEEDED client=%s count=%d limit=%d retry_after=%d path=%s",
            key,
            decision.count,
            decision.limit,
            decision.retry_after,
            ctx.path,
        )
        raise RateExceeded(decision.retry_after, reason=f"{decision.count}/{decision.limit} in window")
