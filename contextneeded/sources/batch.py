"""Batch fetcher that fans out single random-record fetches and deduplicates."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from contextneeded.errors import ErrorKind, FetchOutcome, TransportError
from contextneeded.models.question import Question

logger = logging.getLogger(__name__)

FetchOne = Callable[[], Awaitable[Question | None]]


@dataclass
class BatchResult:
    """Distinct questions from a batch plus the number of failed fetches."""

    questions: list[Question] = field(default_factory=list)
    errors: int = 0


async def fetch_batch(fetch_one: FetchOne, desired: int, timeout_ms: int) -> BatchResult:
    """Run ``desired`` concurrent fetches under one shared deadline.

    Each fetch settles into a ``FetchOutcome``; failures, malformed records
    and fetches still outstanding at the deadline are counted in ``errors``
    and never abort the batch. Questions are deduplicated on title and url,
    first seen wins.
    """
    if desired <= 0:
        return BatchResult()

    tasks = [asyncio.create_task(_settle(fetch_one)) for _ in range(desired)]
    try:
        _, pending = await asyncio.wait(tasks, timeout=timeout_ms / 1000)
        if pending:
            logger.warning(
                "Batch deadline of %d ms reached with %d fetches outstanding",
                timeout_ms,
                len(pending),
            )
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()

    outcomes = [
        FetchOutcome.failure(ErrorKind.TIMEOUT) if task.cancelled() else task.result()
        for task in tasks
    ]
    return merge_outcomes(outcomes)


def merge_outcomes(outcomes: list[FetchOutcome]) -> BatchResult:
    unique: dict[str, Question] = {}
    errors = 0
    for outcome in outcomes:
        if not outcome.ok:
            errors += 1
            continue
        unique.setdefault(outcome.question.dedup_key, outcome.question)

    logger.info(
        "Batch fetch: %d unique of %d requested, %d errors",
        len(unique),
        len(outcomes),
        errors,
    )
    return BatchResult(questions=list(unique.values()), errors=errors)


async def _settle(fetch_one: FetchOne) -> FetchOutcome:
    try:
        question = await fetch_one()
    except TransportError as exc:
        logger.debug("Random question fetch failed: %s", exc)
        return FetchOutcome.failure(ErrorKind.TRANSPORT)
    except Exception:
        logger.exception("Unexpected error fetching random question")
        return FetchOutcome.failure(ErrorKind.UNEXPECTED)

    if question is None:
        return FetchOutcome.failure(ErrorKind.MALFORMED)
    return FetchOutcome.success(question)
