"""Redis-backed sliding window rate limiter."""

from __future__ import annotations

import logging
import time
import uuid
from typing import Final

from redis import Redis
from redis.exceptions import ResponseError

logger = logging.getLogger(__name__)

# KEYS[1] = hit set; ARGV = cutoff_ms, limit, now_ms, member, ttl_ms
_ATOMIC_HIT: Final[str] = """
redis.call('ZREMRANGEBYSCORE', KEYS[1], '-inf', ARGV[1])
if redis.call('ZCARD', KEYS[1]) >= tonumber(ARGV[2]) then
    return 0
end
redis.call('ZADD', KEYS[1], ARGV[3], ARGV[4])
redis.call('PEXPIRE', KEYS[1], ARGV[5])
return 1
"""


def _scripting_unavailable(exc: ResponseError) -> bool:
    message = str(exc).lower()
    return "unknown command" in message and "eval" in message


class RedisSlidingWindowRateLimiter:
    """Limiter shared by every replica.

    Each throttle key maps to one sorted set whose members are individual hits
    scored by their timestamp in milliseconds. Servers that refuse ``EVALSHA``
    are detected on the first call and handled with a MULTI/EXEC pipeline from
    then on.
    """

    def __init__(
        self,
        client: Redis,
        *,
        max_requests: int,
        window_seconds: int,
        key_prefix: str = "linkhub:throttle",
    ) -> None:
        self._client = client
        self._max_requests = max_requests
        self._window_ms = window_seconds * 1000
        self._key_prefix = key_prefix
        self._script = client.register_script(_ATOMIC_HIT)
        self._use_script = True

    def _key(self, key: str) -> str:
        return f"{self._key_prefix}:{key}"

    def allow(self, key: str) -> bool:
        """Record a hit for ``key`` and return ``False`` once the window is full."""
        redis_key = self._key(key)
        now_ms = int(time.time() * 1000)
        member = f"{now_ms}:{uuid.uuid4().hex}"
        if self._use_script:
            try:
                result = self._script(
                    keys=[redis_key],
                    args=[now_ms - self._window_ms, self._max_requests, now_ms, member, self._window_ms],
                )
                return int(result) == 1
            except ResponseError as exc:
                if not _scripting_unavailable(exc):
                    raise
                logger.warning("redis scripting unavailable, throttling with pipelines: %s", exc)
                self._use_script = False
        return self._allow_pipelined(redis_key, now_ms, member)

    def reset(self, key: str) -> None:
        """Forget every recorded hit for ``key``."""
        self._client.delete(self._key(key))

    def _allow_pipelined(self, redis_key: str, now_ms: int, member: str) -> bool:
        """Two round trips; concurrent callers may briefly overshoot the limit."""
        with self._client.pipeline(transaction=True) as pipe:
            pipe.zremrangebyscore(redis_key, "-inf", now_ms - self._window_ms)
            pipe.zcard(redis_key)
            _, hits = pipe.execute()
        if hits >= self._max_requests:
            return False
        with self._client.pipeline(transaction=True) as pipe:
            pipe.zadd(redis_key, {member: now_ms})
            pipe.pexpire(redis_key, self._window_ms)
            pipe.execute()
        return True

    @property
    def uses_script(self) -> bool:
        return self._use_script
