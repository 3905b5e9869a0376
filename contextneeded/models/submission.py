"""Submission audit trail and rate-limit data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

TITLE_PREFIX_LENGTH = 100
USER_AGENT_PREFIX_LENGTH = 200


@dataclass(frozen=True)
class SubmissionRecord:
    """One submission attempt, successful or not."""

    client_id: str
    timestamp: datetime
    question_title_prefix: str
    succeeded: bool
    user_agent_prefix: str | None = None

    @classmethod
    def for_attempt(
        cls,
        client_id: str,
        timestamp: datetime,
        title: str,
        succeeded: bool,
        user_agent: str | None = None,
    ) -> SubmissionRecord:
        return cls(
            client_id=client_id,
            timestamp=timestamp,
            question_title_prefix=title[:TITLE_PREFIX_LENGTH],
            succeeded=succeeded,
            user_agent_prefix=user_agent[:USER_AGENT_PREFIX_LENGTH] if user_agent else None,
        )


@dataclass(frozen=True)
class RateLimitPolicy:
    """Submission limits applied per client identity."""

    max_per_hour: int = 3
    max_per_day: int = 10
    cooldown_minutes: int = 5


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of a rate-limit check."""

    allowed: bool
    reason: str | None = None
    retry_after_minutes: int | None = None


class SubmissionStatus(Enum):
    ACCEPTED = "accepted"
    INVALID = "invalid"
    RATE_LIMITED = "rate_limited"
    FAILED = "failed"


@dataclass
class SubmissionResult:
    """Structured outcome of a submit call, never raised past the facade."""

    status: SubmissionStatus
    question_id: str | None = None
    field_errors: dict[str, str] = field(default_factory=dict)
    reason: str | None = None
    retry_after_minutes: int | None = None

    @property
    def accepted(self) -> bool:
        return self.status is SubmissionStatus.ACCEPTED
