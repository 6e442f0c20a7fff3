"""Sliding window throttles guarding registration and credential checks."""

from __future__ import annotations

import logging
import time
import uuid
from collections import defaultdict, deque
from threading import Lock
from typing import Deque, DefaultDict, Protocol

from redis import Redis
from redis.exceptions import RedisError

from ..config import Settings

logger = logging.getLogger(__name__)


class AttemptThrottle(Protocol):
    def allow(self, key: str) -> bool:
        ...


class InMemoryThrottle:
    """Thread-safe sliding window throttle for a single process."""

    def __init__(self, max_requests: int, window_seconds: int) -> None:
        self._max_requests = max_requests
        self._window = window_seconds
        self._attempts: DefaultDict[str, Deque[float]] = defaultdict(deque)
        self._lock = Lock()

    def allow(self, key: str) -> bool:
        """Return ``True`` and record the attempt when ``key`` is under its limit."""
        now = time.monotonic()
        with self._lock:
            attempts = self._attempts[key]
            while attempts and now - attempts[0] > self._window:
                attempts.popleft()
            if len(attempts) >= self._max_requests:
                return False
            attempts.append(now)
            return True


class RedisThrottle:
    """Sliding window throttle shared across replicas through Redis sorted sets.

    Each attempt is added to the key's set before counting; an attempt that pushes the
    count over the limit is removed again so refused attempts do not extend the window.
    """

    def __init__(
        self,
        client: Redis,
        *,
        max_requests: int,
        window_seconds: int,
        key_prefix: str = "throttle",
    ) -> None:
        self._client = client
        self._max_requests = max_requests
        self._window_ms = window_seconds * 1000
        self._key_prefix = key_prefix

    def allow(self, key: str) -> bool:
        now_ms = int(time.time() * 1000)
        redis_key = f"{self._key_prefix}:{key}"
        member = f"{now_ms}:{uuid.uuid4().hex}"

        pipe = self._client.pipeline(transaction=True)
        pipe.zremrangebyscore(redis_key, 0, now_ms - self._window_ms)
        pipe.zadd(redis_key, {member: now_ms})
        pipe.zcard(redis_key)
        pipe.pexpire(redis_key, self._window_ms)
        _, _, count, _ = pipe.execute()

        if count > self._max_requests:
            self._client.zrem(redis_key, member)
            return False
        return True


def build_throttle(settings: Settings) -> AttemptThrottle:
    """Instantiate the configured throttle backend, preferring Redis when reachable."""
    if settings.rate_limit_backend == "redis" and settings.redis_url:
        try:
            client = Redis.from_url(settings.redis_url)
            client.ping()
        except RedisError as exc:
            logger.warning("redis throttle unavailable, falling back to in-memory: %s", exc)
        else:
            logger.info("throttle configured for redis backend at %s", settings.redis_url)
            return RedisThrottle(
                client,
                max_requests=settings.rate_limit_requests,
                window_seconds=settings.rate_limit_window_seconds,
            )

    logger.info("throttle using in-memory backend")
    return InMemoryThrottle(
        max_requests=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
