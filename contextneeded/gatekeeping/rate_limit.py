"""Multi-window submission rate limiting keyed on client identity.

The limiter is advisory: reads that fail let the submission through, and
the check-then-record sequence is not atomic, so concurrent submissions
from one client can overshoot a limit slightly.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Protocol

from contextneeded.errors import HistoryStoreError
from contextneeded.models.submission import (
    RateLimitDecision,
    RateLimitPolicy,
    SubmissionRecord,
)

logger = logging.getLogger(__name__)

HOUR = timedelta(hours=1)
DAY = timedelta(hours=24)


class SubmissionHistoryStore(Protocol):
    """Capabilities the limiter needs from the submission history store."""

    async def add_submission(self, record: SubmissionRecord) -> None: ...

    async def count_submissions(self, client_id: str, since: datetime) -> int: ...

    async def latest_submission(
        self, client_id: str, since: datetime
    ) -> SubmissionRecord | None: ...

    async def earliest_submission(
        self, client_id: str, since: datetime
    ) -> SubmissionRecord | None: ...


@dataclass(frozen=True)
class HistoryWindow:
    """What the history store reports for one client at one instant."""

    hour_count: int
    day_count: int
    hour_earliest: datetime | None = None
    hour_latest: datetime | None = None
    day_earliest: datetime | None = None


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def minutes_until(moment: datetime, now: datetime) -> int:
    return max(1, math.ceil((moment - now) / timedelta(minutes=1)))


def evaluate(window: HistoryWindow, now: datetime, policy: RateLimitPolicy) -> RateLimitDecision:
    """Apply the hourly, daily and cooldown checks in order; first denial wins."""
    if window.hour_count >= policy.max_per_hour:
        start = window.hour_earliest or now - HOUR
        return RateLimitDecision(
            allowed=False,
            reason=f"Hourly limit of {policy.max_per_hour} submissions reached",
            retry_after_minutes=minutes_until(start + HOUR, now),
        )

    if window.day_count >= policy.max_per_day:
        start = window.day_earliest or now - DAY
        return RateLimitDecision(
            allowed=False,
            reason=f"Daily limit of {policy.max_per_day} submissions reached",
            retry_after_minutes=minutes_until(start + DAY, now),
        )

    if window.hour_latest is not None:
        cooldown_end = window.hour_latest + timedelta(minutes=policy.cooldown_minutes)
        if now < cooldown_end:
            return RateLimitDecision(
                allowed=False,
                reason=f"Please wait {policy.cooldown_minutes} minutes between submissions",
                retry_after_minutes=minutes_until(cooldown_end, now),
            )

    return RateLimitDecision(allowed=True)


class RateLimiter:
    """Decides whether a client may submit, and records every attempt."""

    def __init__(
        self,
        store: SubmissionHistoryStore,
        policy: RateLimitPolicy | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.policy = policy or RateLimitPolicy()
        self.clock = clock

    async def check(self, client_id: str) -> RateLimitDecision:
        now = self.clock()
        try:
            window = await self._read_window(client_id, now)
        except HistoryStoreError:
            logger.exception("Rate limit check failed for %s, allowing submission", client_id)
            return RateLimitDecision(allowed=True)

        decision = evaluate(window, now, self.policy)
        if not decision.allowed:
            logger.info("Rate limited %s: %s", client_id, decision.reason)
        return decision

    async def record(
        self,
        client_id: str,
        title: str,
        succeeded: bool,
        user_agent: str | None = None,
    ) -> None:
        """Append one attempt to the history; store failures are logged and dropped."""
        record = SubmissionRecord.for_attempt(
            client_id, self.clock(), title, succeeded, user_agent
        )
        try:
            await self.store.add_submission(record)
        except Exception:
            logger.exception("Failed to record submission attempt for %s", client_id)

    async def _read_window(self, client_id: str, now: datetime) -> HistoryWindow:
        hour_start = now - HOUR
        day_start = now - DAY
        try:
            hour_count = await self.store.count_submissions(client_id, hour_start)
            day_count = await self.store.count_submissions(client_id, day_start)
            hour_earliest = await self.store.earliest_submission(client_id, hour_start)
            hour_latest = await self.store.latest_submission(client_id, hour_start)
            day_earliest = await self.store.earliest_submission(client_id, day_start)
        except HistoryStoreError:
            raise
        except Exception as exc:
            raise HistoryStoreError(f"Could not read submission history: {exc}") from exc

        return HistoryWindow(
            hour_count=hour_count,
            day_count=day_count,
            hour_earliest=hour_earliest.timestamp if hour_earliest else None,
            hour_latest=hour_latest.timestamp if hour_latest else None,
            day_earliest=day_earliest.timestamp if day_earliest else None,
        )
