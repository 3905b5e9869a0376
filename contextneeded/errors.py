"""Error taxonomy for question sourcing and submission gatekeeping."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from contextneeded.models.question import Question


class ContextNeededError(Exception):
    """Base class for all errors raised by this package."""


class TransportError(ContextNeededError):
    """A fetch failed or returned a non-success status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ValidationError(ContextNeededError):
    """A sanitized submission is missing a required field."""

    def __init__(self, field_errors: dict[str, str]) -> None:
        super().__init__(f"Invalid question data: {', '.join(sorted(field_errors))}")
        self.field_errors = field_errors


class RateLimitExceeded(ContextNeededError):
    """A submission was denied by the rate limiter."""

    def __init__(self, reason: str, retry_after_minutes: int) -> None:
        super().__init__(reason)
        self.reason = reason
        self.retry_after_minutes = retry_after_minutes


class HistoryStoreError(ContextNeededError):
    """The submission history store could not be read or written."""


class QuestionStoreError(ContextNeededError):
    """The question store could not be read."""


class ErrorKind(Enum):
    TRANSPORT = "transport"
    MALFORMED = "malformed"
    TIMEOUT = "timeout"
    UNEXPECTED = "unexpected"


@dataclass(frozen=True)
class FetchOutcome:
    """Result of a single record fetch: either a question or an error kind."""

    question: Question | None = None
    error: ErrorKind | None = None

    @property
    def ok(self) -> bool:
        return self.question is not None

    @classmethod
    def success(cls, question: Question) -> FetchOutcome:
        return cls(question=question)

    @classmethod
    def failure(cls, error: ErrorKind) -> FetchOutcome:
        return cls(error=error)
