"""Tests for the in-memory and Redis-backed sliding window limiters."""

from __future__ import annotations

import time

import fakeredis
import pytest
from redis.exceptions import ResponseError

from linkhub_identity.security.rate_limiter import SlidingWindowRateLimiter
from linkhub_identity.security.redis_rate_limiter import RedisSlidingWindowRateLimiter


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def redis_client() -> fakeredis.FakeStrictRedis:
    client = fakeredis.FakeStrictRedis()
    client.flushall()
    return client


def _refuse_scripting(limiter: RedisSlidingWindowRateLimiter) -> None:
    def refuse(*args, **kwargs):
        raise ResponseError("unknown command 'evalsha', with args beginning with: ")

    limiter._script = refuse


@pytest.fixture(params=["script", "pipeline"])
def make_redis_limiter(request, redis_client):
    """Build limiters that either run the Lua script or the pipeline path."""

    def build(**kwargs) -> RedisSlidingWindowRateLimiter:
        limiter = RedisSlidingWindowRateLimiter(redis_client, key_prefix="test", **kwargs)
        if request.param == "pipeline":
            _refuse_scripting(limiter)
        return limiter

    return build


def test_memory_limiter_blocks_excess_per_key(clock):
    limiter = SlidingWindowRateLimiter(max_requests=2, window_seconds=60, clock=clock)
    assert limiter.allow("login:ada@example.com")
    assert limiter.allow("login:ada@example.com")
    assert not limiter.allow("login:ada@example.com")
    assert limiter.allow("login:grace@example.com")


def test_memory_limiter_reopens_after_window(clock):
    limiter = SlidingWindowRateLimiter(max_requests=1, window_seconds=60, clock=clock)
    assert limiter.allow("key")
    assert not limiter.allow("key")
    clock.now += 61
    assert limiter.allow("key")


def test_memory_limiter_reset_clears_history(clock):
    limiter = SlidingWindowRateLimiter(max_requests=1, window_seconds=60, clock=clock)
    assert limiter.allow("key")
    assert not limiter.allow("key")
    limiter.reset("key")
    assert limiter.allow("key")


def test_memory_limiter_forgets_idle_keys(clock):
    limiter = SlidingWindowRateLimiter(max_requests=5, window_seconds=60, clock=clock)
    for index in range(1000):
        assert limiter.allow(f"login:user{index}@example.com")
    assert len(limiter) == 1000

    clock.now += 61
    assert limiter.allow("login:latest@example.com")
    assert len(limiter) == 1


def test_memory_limiter_rejection_does_not_track_new_keys(clock):
    limiter = SlidingWindowRateLimiter(max_requests=0, window_seconds=60, clock=clock)
    assert not limiter.allow("login:ada@example.com")
    assert len(limiter) == 0


def test_redis_rate_limiter_blocks_excess(make_redis_limiter):
    limiter = make_redis_limiter(max_requests=2, window_seconds=1)
    key = "register:127.0.0.1"
    assert limiter.allow(key)
    assert limiter.allow(key)
    assert not limiter.allow(key)
    assert limiter.allow("register:10.0.0.1")


def test_redis_rate_limiter_expires_entries(make_redis_limiter):
    limiter = make_redis_limiter(max_requests=1, window_seconds=1)
    key = "register:127.0.0.1"
    assert limiter.allow(key)
    assert not limiter.allow(key)
    time.sleep(1.1)
    assert limiter.allow(key)


def test_redis_rate_limiter_reset(make_redis_limiter, redis_client):
    limiter = make_redis_limiter(max_requests=1, window_seconds=60)
    key = "login:ada@example.com"
    assert limiter.allow(key)
    assert not limiter.allow(key)
    limiter.reset(key)
    assert not redis_client.exists("test:login:ada@example.com")
    assert limiter.allow(key)


def test_redis_rate_limiter_switches_to_pipelines_without_scripting(redis_client):
    limiter = RedisSlidingWindowRateLimiter(redis_client, max_requests=1, window_seconds=60, key_prefix="test")
    _refuse_scripting(limiter)

    assert limiter.allow("login:ada@example.com")
    assert not limiter.uses_script
    assert not limiter.allow("login:ada@example.com")
    assert redis_client.zcard("test:login:ada@example.com") == 1


def test_redis_rate_limiter_propagates_other_errors(redis_client):
    limiter = RedisSlidingWindowRateLimiter(redis_client, max_requests=1, window_seconds=60)

    def broken(*args, **kwargs):
        raise ResponseError("WRONGTYPE Operation against a key holding the wrong kind of value")

    limiter._script = broken
    with pytest.raises(ResponseError, match="WRONGTYPE"):
        limiter.allow("login:ada@example.com")
    assert limiter.uses_script
