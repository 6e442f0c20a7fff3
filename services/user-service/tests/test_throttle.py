"""Tests for the in-memory and Redis-backed attempt throttles."""

from __future__ import annotations

import time

import fakeredis
import pytest

from app.config import Settings
from app.security.throttle import InMemoryThrottle, RedisThrottle, build_throttle


@pytest.fixture()
def redis_client() -> fakeredis.FakeStrictRedis:
    client = fakeredis.FakeStrictRedis()
    client.flushall()
    return client


def test_in_memory_throttle_blocks_excess_per_key():
    throttle = InMemoryThrottle(max_requests=2, window_seconds=60)

    assert throttle.allow("login:alice")
    assert throttle.allow("login:alice")
    assert not throttle.allow("login:alice")
    assert throttle.allow("login:bob")


def test_redis_throttle_allows_within_threshold(redis_client):
    throttle = RedisThrottle(redis_client, max_requests=3, window_seconds=1, key_prefix="test")

    assert throttle.allow("login:alice")
    assert throttle.allow("login:alice")
    assert throttle.allow("login:alice")


def test_redis_throttle_blocks_excess_without_growing_window(redis_client):
    throttle = RedisThrottle(redis_client, max_requests=2, window_seconds=60, key_prefix="test")

    assert throttle.allow("login:alice")
    assert throttle.allow("login:alice")
    assert not throttle.allow("login:alice")
    assert not throttle.allow("login:alice")
    assert redis_client.zcard("test:login:alice") == 2


def test_redis_throttle_expires_entries(redis_client):
    throttle = RedisThrottle(redis_client, max_requests=1, window_seconds=1, key_prefix="test")

    assert throttle.allow("login:alice")
    assert not throttle.allow("login:alice")
    time.sleep(1.1)
    assert throttle.allow("login:alice")


def test_build_throttle_defaults_to_memory():
    throttle = build_throttle(Settings(rate_limit_backend="memory"))

    assert isinstance(throttle, InMemoryThrottle)


def test_build_throttle_falls_back_when_redis_unreachable():
    settings = Settings(rate_limit_backend="redis", redis_url="redis://127.0.0.1:1/0")

    assert isinstance(build_throttle(settings), InMemoryThrottle)
