"""Unit tests for the fixed-window rate limiter, against an in-memory Redis."""

import fakeredis
import pytest
from fakeredis.aioredis import FakeRedis

from core.rate_limit import FixedWindowRateLimiter, rate_limit_key

pytestmark = pytest.mark.unit

T0 = 1_800_000_000.0  # start of a 60 s window


@pytest.fixture
def server():
    return fakeredis.FakeServer()


@pytest.fixture
def limiter(server):
    return FixedWindowRateLimiter(FakeRedis(server=server))


async def test_allows_up_to_the_limit_then_blocks(limiter):
    decisions = [await limiter.hit("ip:1.2.3.4", 3, 60, T0 + i) for i in range(4)]

    assert [d.allowed for d in decisions] == [True, True, True, False]
    assert [d.remaining for d in decisions] == [2, 1, 0, 0]
    assert decisions[0].reset_at == T0 + 60


async def test_new_window_starts_fresh(limiter):
    for _ in range(3):
        await limiter.hit("ip:1.2.3.4", 2, 60, T0)
    decision = await limiter.hit("ip:1.2.3.4", 2, 60, T0 + 60)
    assert decision.allowed
    assert decision.remaining == 1


async def test_clients_are_counted_separately(limiter):
    await limiter.hit("user:1", 1, 60, T0)
    assert not (await limiter.hit("user:1", 1, 60, T0)).allowed
    assert (await limiter.hit("user:2", 1, 60, T0)).allowed


async def test_workers_share_one_budget(server):
    # Two limiters on one Redis behave like two uvicorn workers
    first = FixedWindowRateLimiter(FakeRedis(server=server))
    second = FixedWindowRateLimiter(FakeRedis(server=server))

    assert (await first.hit("ip:1.2.3.4", 2, 60, T0)).allowed
    assert (await second.hit("ip:1.2.3.4", 2, 60, T0)).allowed
    assert not (await first.hit("ip:1.2.3.4", 2, 60, T0)).allowed


async def test_counters_expire_with_the_window(limiter):
    await limiter.hit("user:1", 5, 60, T0)
    ttl = await limiter.redis.ttl(f"rate_limit:user:1:{int(T0)}")
    assert 0 < ttl <= 60


def test_keys():
    assert rate_limit_key(5, "10.0.0.1") == "user:5"
    assert rate_limit_key(None, "10.0.0.1") == "ip:10.0.0.1"
