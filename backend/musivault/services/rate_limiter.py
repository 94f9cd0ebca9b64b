"""Minimum-interval limiters for outbound Discogs calls."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable

from redis import Redis
from redis.exceptions import RedisError

from musivault.core.config import get_settings
from musivault.services import progress_tracker

logger = logging.getLogger(__name__)

RATE_LIMIT_KEY = "discogs:ratelimit:slot"


class LocalRateLimiter:
    """Enforce a minimum delay between requests issued by this process."""

    def __init__(
        self,
        interval: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.interval = interval
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._next_slot = 0.0

    def acquire(self) -> float:
        """Block until a request may be sent; return the time waited."""
        with self._lock:
            now = self._clock()
            wait = max(0.0, self._next_slot - now)
            if wait > 0:
                self._sleep(wait)
            self._next_slot = max(now, self._next_slot) + self.interval
        return wait


class RedisRateLimiter:
    """Share one request slot per interval between every worker using the same key.

    A slot is a Redis key set with NX and a PX expiry equal to the interval, so
    whoever creates it owns the next request and everyone else waits for it to
    expire.
    """

    def __init__(
        self,
        redis_client: Redis,
        interval: float,
        *,
        key: str = RATE_LIMIT_KEY,
        fallback: LocalRateLimiter | None = None,
        sleep: Callable[[float], None] = time.sleep,
        max_wait: float = 120.0,
    ):
        self.redis = redis_client
        self.interval = interval
        self.key = key
        self.fallback = fallback or LocalRateLimiter(interval, sleep=sleep)
        self._sleep = sleep
        self.max_wait = max_wait

    def acquire(self) -> float:
        interval_ms = max(1, int(self.interval * 1000))
        waited = 0.0
        try:
            while True:
                if self.redis.set(self.key, "1", nx=True, px=interval_ms):
                    return waited
                ttl_ms = self.redis.pttl(self.key)
                if ttl_ms == -1:
                    # Slot without expiry would block everyone forever
                    self.redis.pexpire(self.key, interval_ms)
                    ttl_ms = interval_ms
                elif ttl_ms is None or ttl_ms < 0:
                    # Expired between SET and PTTL
                    continue
                pause = max(ttl_ms, 5) / 1000.0
                if waited + pause > self.max_wait:
                    logger.warning(
                        f"Waited {waited:.1f}s for a Discogs slot, proceeding with local limiter"
                    )
                    return waited + self.fallback.acquire()
                self._sleep(pause)
                waited += pause
        except RedisError as e:
            logger.warning(f"Redis rate limiter unavailable ({e}), using local limiter")
            return waited + self.fallback.acquire()


def build_rate_limiter(
    scope: str,
    interval: float,
    redis_client: Redis | None = None,
) -> LocalRateLimiter | RedisRateLimiter:
    if scope == "global" and redis_client is not None:
        return RedisRateLimiter(redis_client, interval)
    return LocalRateLimiter(interval)


_shared_limiter: LocalRateLimiter | RedisRateLimiter | None = None


def get_shared_rate_limiter() -> LocalRateLimiter | RedisRateLimiter:
    """One limiter per process; with the global scope it is backed by Redis."""
    global _shared_limiter
    if _shared_limiter is None:
        settings = get_settings()
        _shared_limiter = build_rate_limiter(
            settings.discogs_rate_limit_scope,
            settings.discogs_rate_limit_seconds,
            progress_tracker.redis_client,
        )
    return _shared_limiter
