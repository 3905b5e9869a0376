"""Submission pipeline: sanitize, validate, rate limit, persist, record."""

from __future__ import annotations

import logging
from typing import Protocol

from contextneeded.errors import RateLimitExceeded, ValidationError
from contextneeded.gatekeeping.identity import ClientEnvironment, derive_client_id
from contextneeded.gatekeeping.rate_limit import RateLimiter
from contextneeded.gatekeeping.sanitizer import sanitize_question, validate_question
from contextneeded.models.question import Question
from contextneeded.models.submission import (
    RateLimitDecision,
    SubmissionResult,
    SubmissionStatus,
)

logger = logging.getLogger(__name__)


class QuestionStore(Protocol):
    async def add_question(self, question: Question) -> str: ...


class SubmissionService:
    """Accepts public question submissions behind the rate limiter.

    Every outcome is returned as a ``SubmissionResult``; nothing is raised to
    the caller. Invalid and failed attempts are recorded in the submission
    history alongside accepted ones. Denied attempts are not recorded.
    """

    def __init__(self, store: QuestionStore, limiter: RateLimiter) -> None:
        self.store = store
        self.limiter = limiter

    async def check_rate_limit(self, env: ClientEnvironment) -> RateLimitDecision:
        return await self.limiter.check(derive_client_id(env))

    async def submit(self, fields: dict, env: ClientEnvironment) -> SubmissionResult:
        """Submit ``{question, url, site}`` fields; ``email`` is ignored."""
        client_id = derive_client_id(env)
        question = sanitize_question(
            {"title": fields.get("question"), "url": fields.get("url"), "site": fields.get("site")}
        )

        try:
            validate_question(question)
        except ValidationError as exc:
            logger.info("Rejected invalid submission from %s: %s", client_id, exc)
            await self.limiter.record(client_id, question.title, False, env.user_agent)
            return SubmissionResult(
                status=SubmissionStatus.INVALID, field_errors=exc.field_errors
            )

        try:
            await self._enforce_rate_limit(client_id)
        except RateLimitExceeded as exc:
            return SubmissionResult(
                status=SubmissionStatus.RATE_LIMITED,
                reason=exc.reason,
                retry_after_minutes=exc.retry_after_minutes,
            )

        try:
            question_id = await self.store.add_question(question)
        except Exception:
            logger.exception("Failed to persist submission from %s", client_id)
            await self.limiter.record(client_id, question.title, False, env.user_agent)
            return SubmissionResult(
                status=SubmissionStatus.FAILED,
                reason="Failed to submit question. Please wait a moment and try again.",
            )

        await self.limiter.record(client_id, question.title, True, env.user_agent)
        logger.info("Accepted submission %s from %s", question_id, client_id)
        return SubmissionResult(status=SubmissionStatus.ACCEPTED, question_id=question_id)

    async def _enforce_rate_limit(self, client_id: str) -> None:
        decision = await self.limiter.check(client_id)
        if not decision.allowed:
            raise RateLimitExceeded(decision.reason or "Rate limited", decision.retry_after_minutes or 1)
