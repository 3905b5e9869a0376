"""Question source facade: picks a dataset mode and falls back on failure."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from contextneeded.errors import ContextNeededError, QuestionStoreError
from contextneeded.models.question import Question
from contextneeded.sources.batch import fetch_batch
from contextneeded.sources.remote import RemoteDatasetClient

logger = logging.getLogger(__name__)

FALLBACK_QUESTIONS = (
    Question(
        title="How can I tell the difference between a rabbit and a cat?",
        url="http://cooking.stackexchange.com/questions/56418/how-can-i-tell-the-difference-between-a-rabbit-and-a-cat",
        site="Cooking",
    ),
    Question(
        title="Why does my code work on Tuesdays but not on Wednesdays?",
        url="https://stackoverflow.com/questions/example",
        site="Stack Overflow",
    ),
    Question(
        title="Is it normal for my houseplant to start speaking French?",
        url="https://gardening.stackexchange.com/questions/example",
        site="Gardening",
    ),
)

LOAD_ERROR = "Failed to load questions"


class RandomQuestionStore(Protocol):
    async def random_question(self, choose: Callable[[int], int]) -> Question | None: ...


class SourceState(Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    DEGRADED = "degraded"


@dataclass(frozen=True)
class QuestionResponse:
    question: Question
    state: SourceState
    error: str | None = None


class QuestionSource:
    """Serves one question at a time from the best available source.

    Sources are tried in order: a batch from the random-question API (in
    ``"api"`` mode) or a random stored question (in ``"store"`` mode), then
    the full feed, then the built-in fallback list. API batches are served
    without repetition and refetched when used up; the store is asked for a
    fresh pick on every request. The full feed and the fallback list are
    sampled with ``choose``.
    """

    def __init__(
        self,
        client: RemoteDatasetClient,
        csv_url: str,
        mode: str = "api",
        batch_size: int = 12,
        batch_timeout_ms: int = 8000,
        choose: Callable[[int], int] | None = None,
        store: RandomQuestionStore | None = None,
    ) -> None:
        self.client = client
        self.store = store
        self.csv_url = csv_url
        self.mode = mode
        self.batch_size = batch_size
        self.batch_timeout_ms = batch_timeout_ms
        self.choose = choose or random.randrange
        self.state = SourceState.IDLE
        self.error: str | None = None
        self._pool: list[Question] = []
        self._consume = False
        self._load_lock = asyncio.Lock()

    @property
    def total_questions(self) -> int:
        return len(self._pool)

    async def get_question(self) -> QuestionResponse:
        async with self._load_lock:
            if self.state is SourceState.IDLE or (self._consume and not self._pool):
                await self._load()

            if self._consume:
                question = self._pool.pop(0)
            else:
                question = self._pool[self.choose(len(self._pool))]
        return QuestionResponse(question=question, state=self.state, error=self.error)

    async def load(self) -> SourceState:
        """Reload the pool from the first source that yields questions."""
        async with self._load_lock:
            return await self._load()

    async def _load(self) -> SourceState:
        self.state = SourceState.LOADING
        for name, loader, consume in self._loaders():
            try:
                questions = await loader()
            except ContextNeededError as exc:
                logger.warning("Question source %s failed: %s", name, exc)
                continue
            if questions:
                logger.info("Serving %d questions from %s", len(questions), name)
                self._set_pool(list(questions), consume, SourceState.READY, None)
                return self.state
            logger.warning("Question source %s returned no questions", name)

        logger.warning("All question sources failed, using fallback questions")
        self._set_pool(list(FALLBACK_QUESTIONS), False, SourceState.DEGRADED, LOAD_ERROR)
        return self.state

    def _loaders(self) -> list[tuple[str, Callable[[], Awaitable[list[Question]]], bool]]:
        loaders = []
        if self.mode == "api":
            loaders.append(("api", self._load_batch, True))
        elif self.mode == "store" and self.store is not None:
            loaders.append(("store", self._load_stored, True))
        loaders.append(("csv", self._load_feed, False))
        return loaders

    async def _load_batch(self) -> list[Question]:
        result = await fetch_batch(
            self.client.fetch_one_random, self.batch_size, self.batch_timeout_ms
        )
        return result.questions

    async def _load_stored(self) -> list[Question]:
        try:
            question = await self.store.random_question(self.choose)
        except Exception as exc:
            raise QuestionStoreError(f"Could not read stored questions: {exc}") from exc
        return [question] if question else []

    async def _load_feed(self) -> list[Question]:
        return await self.client.fetch_all(self.csv_url)

    def _set_pool(
        self, questions: list[Question], consume: bool, state: SourceState, error: str | None
    ) -> None:
        self._pool = questions
        self._consume = consume
        self.state = state
        self.error = error
