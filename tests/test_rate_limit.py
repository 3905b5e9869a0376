import sqlite3
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from contextneeded.gatekeeping.rate_limit import HistoryWindow, RateLimiter, evaluate
from contextneeded.models.submission import RateLimitPolicy

CLIENT = "client_abc"


@pytest.fixture
def limiter(db, clock):
    return RateLimiter(db, RateLimitPolicy(), clock=clock)


async def submit_at(limiter, clock, minutes_after_start, client=CLIENT):
    clock.advance(timedelta(minutes=minutes_after_start))
    await limiter.record(client, "A question", True, "pytest")


@pytest.mark.asyncio
async def test_first_submission_allowed(limiter):
    decision = await limiter.check(CLIENT)
    assert decision.allowed
    assert decision.reason is None


@pytest.mark.asyncio
async def test_cooldown_denies_second_submission(limiter, clock):
    await limiter.record(CLIENT, "First", True)
    clock.advance(timedelta(minutes=2))

    decision = await limiter.check(CLIENT)
    assert not decision.allowed
    assert decision.retry_after_minutes == 3
    assert "5 minutes" in decision.reason


@pytest.mark.asyncio
async def test_cooldown_ends_after_five_minutes(limiter, clock):
    await limiter.record(CLIENT, "First", True)
    clock.advance(timedelta(minutes=5))
    assert (await limiter.check(CLIENT)).allowed


@pytest.mark.asyncio
async def test_fourth_submission_in_hour_denied(limiter, clock):
    await limiter.record(CLIENT, "One", True)
    await submit_at(limiter, clock, 6)
    await submit_at(limiter, clock, 6)
    clock.advance(timedelta(minutes=6))

    decision = await limiter.check(CLIENT)
    assert not decision.allowed
    assert "Hourly" in decision.reason
    assert decision.retry_after_minutes == 42


@pytest.mark.asyncio
async def test_failed_attempts_count_toward_limits(limiter, clock):
    for _ in range(3):
        await limiter.record(CLIENT, "Bad", False)
        clock.advance(timedelta(minutes=10))

    decision = await limiter.check(CLIENT)
    assert not decision.allowed
    assert decision.retry_after_minutes >= 1


@pytest.mark.asyncio
async def test_daily_cap(limiter, clock):
    await limiter.record(CLIENT, "Q", True)
    for _ in range(9):
        await submit_at(limiter, clock, 120)
    clock.advance(timedelta(hours=1))

    decision = await limiter.check(CLIENT)
    assert not decision.allowed
    assert "Daily" in decision.reason
    assert decision.retry_after_minutes == 300


@pytest.mark.asyncio
async def test_other_clients_unaffected(limiter, clock):
    await limiter.record(CLIENT, "Mine", True)
    clock.advance(timedelta(minutes=1))
    assert (await limiter.check("client_other")).allowed


@pytest.mark.asyncio
async def test_policy_is_injected(db, clock):
    limiter = RateLimiter(db, RateLimitPolicy(max_per_hour=1, cooldown_minutes=0), clock=clock)
    await limiter.record(CLIENT, "Only", True)
    clock.advance(timedelta(minutes=30))

    decision = await limiter.check(CLIENT)
    assert not decision.allowed
    assert decision.retry_after_minutes == 30


@pytest.mark.asyncio
async def test_store_read_failure_fails_open(clock):
    store = AsyncMock()
    store.count_submissions.side_effect = sqlite3.OperationalError("database is locked")

    decision = await RateLimiter(store, clock=clock).check(CLIENT)
    assert decision.allowed


@pytest.mark.asyncio
async def test_record_failure_is_swallowed(clock):
    store = AsyncMock()
    store.add_submission.side_effect = sqlite3.OperationalError("disk I/O error")

    await RateLimiter(store, clock=clock).record(CLIENT, "Q", True)
    store.add_submission.assert_awaited_once()


@pytest.mark.asyncio
async def test_record_truncates_prefixes(db, limiter, clock):
    await limiter.record(CLIENT, "t" * 300, False, "u" * 500)
    [record] = await db.recent_submissions()
    assert len(record.question_title_prefix) == 100
    assert len(record.user_agent_prefix) == 200
    assert record.timestamp == clock.now
    assert not record.succeeded


def test_evaluate_hour_cap_wins_over_cooldown(clock):
    now = clock.now
    window = HistoryWindow(
        hour_count=3,
        day_count=3,
        hour_earliest=now - timedelta(minutes=59, seconds=30),
        hour_latest=now - timedelta(minutes=1),
    )
    decision = evaluate(window, now, RateLimitPolicy())
    assert "Hourly" in decision.reason
    assert decision.retry_after_minutes == 1


def test_evaluate_empty_window_allows(clock):
    assert evaluate(HistoryWindow(0, 0), clock.now, RateLimitPolicy()).allowed
