import pytest

from stale.services.quota import QUOTA_KEY, QuotaService


@pytest.fixture
def quota(kv, clock):
    return QuotaService(kv, daily_limit=3, clock=clock)


@pytest.mark.asyncio
async def test_fresh_quota_is_persisted(quota, kv):
    status = await quota.check()
    assert status == {"used": 0, "limit": 3, "remaining": 3, "isPaid": False, "allowed": True}
    assert await kv.get_one(QUOTA_KEY) == {"count": 0, "dailyLimit": 3, "resetDate": "2024-06-15"}


@pytest.mark.asyncio
async def test_increment_until_limit(quota):
    for expected in (1, 2, 3):
        assert await quota.increment() == expected

    status = await quota.check()
    assert status["used"] == 3
    assert status["remaining"] == 0
    assert status["allowed"] is False

    # Soft cap: counting continues past the limit
    assert await quota.increment() == 4
    assert (await quota.check())["remaining"] == 0


@pytest.mark.asyncio
async def test_paid_users_are_always_allowed(quota, kv):
    await kv.set({"license": {"isPaid": True, "purchaseDate": "2024-01-01"}})
    for _ in range(5):
        await quota.increment()
    status = await quota.check()
    assert status["isPaid"] is True
    assert status["allowed"] is True
    assert status["remaining"] == 0


@pytest.mark.asyncio
async def test_new_day_resets_on_read(quota, kv, clock):
    await quota.increment()
    await quota.increment()

    clock.advance(days=1)
    status = await quota.check()
    assert status["used"] == 0
    assert (await kv.get_one(QUOTA_KEY))["resetDate"] == "2024-06-16"

    # Only the first read of the day resets
    await quota.increment()
    assert (await quota.check())["used"] == 1


@pytest.mark.asyncio
async def test_configured_limit_wins_over_stored(kv, clock):
    await kv.set({QUOTA_KEY: {"count": 4, "dailyLimit": 100, "resetDate": "2024-06-15"}})
    status = await QuotaService(kv, daily_limit=5, clock=clock).check()
    assert status["limit"] == 5
    assert status["used"] == 4
    assert status["remaining"] == 1


@pytest.mark.asyncio
async def test_explicit_reset(quota):
    await quota.increment()
    state = await quota.reset()
    assert state == {"count": 0, "dailyLimit": 3, "resetDate": "2024-06-15"}
    assert (await quota.check())["used"] == 0
