import pytest

from contextneeded.errors import TransportError
from contextneeded.models.question import Question
from contextneeded.orchestrator.question_source import (
    FALLBACK_QUESTIONS,
    LOAD_ERROR,
    QuestionSource,
    SourceState,
)

A = Question("A", "https://a.example", "S")
B = Question("B", "https://b.example", "S")
C = Question("C", "https://c.example", "S")


class FakeClient:
    def __init__(self, random_results=(), feed=None, feed_error=None):
        self.random_results = list(random_results)
        self.feed = feed or []
        self.feed_error = feed_error
        self.feed_calls = 0
        self.random_calls = 0

    async def fetch_one_random(self):
        self.random_calls += 1
        if not self.random_results:
            raise TransportError("empty")
        return self.random_results.pop(0)

    async def fetch_all(self, url):
        self.feed_calls += 1
        if self.feed_error:
            raise self.feed_error
        return list(self.feed)


def make_source(client, **kwargs):
    kwargs.setdefault("batch_size", 2)
    kwargs.setdefault("batch_timeout_ms", 500)
    return QuestionSource(client, csv_url="https://feed.example/data.csv", **kwargs)


@pytest.mark.asyncio
async def test_starts_idle_and_serves_api_batch():
    client = FakeClient(random_results=[A, B])
    source = make_source(client)
    assert source.state is SourceState.IDLE

    first = await source.get_question()
    second = await source.get_question()

    assert [first.question, second.question] == [A, B]
    assert first.state is SourceState.READY
    assert first.error is None
    assert client.feed_calls == 0


@pytest.mark.asyncio
async def test_exhausted_batch_is_refetched():
    client = FakeClient(random_results=[A, B, C, C])
    source = make_source(client)
    for _ in range(2):
        await source.get_question()

    third = await source.get_question()
    assert third.question == C
    assert client.random_calls == 4


@pytest.mark.asyncio
async def test_falls_back_to_feed_when_api_empty():
    client = FakeClient(feed=[A, B, C])
    source = make_source(client, choose=lambda n: 1)

    response = await source.get_question()
    assert response.question == B
    assert response.state is SourceState.READY
    assert source.total_questions == 3


@pytest.mark.asyncio
async def test_csv_mode_skips_api():
    client = FakeClient(random_results=[A], feed=[C])
    source = make_source(client, mode="csv", choose=lambda n: 0)

    assert (await source.get_question()).question == C
    assert client.random_calls == 0


@pytest.mark.asyncio
async def test_degrades_to_fallback_list():
    client = FakeClient(feed_error=TransportError("feed down", status_code=500))
    source = make_source(client, choose=lambda n: 2)

    response = await source.get_question()
    assert response.question == FALLBACK_QUESTIONS[2]
    assert response.state is SourceState.DEGRADED
    assert response.error == LOAD_ERROR


@pytest.mark.asyncio
async def test_empty_feed_degrades_and_stays_degraded():
    client = FakeClient(feed=[])
    source = make_source(client, choose=lambda n: 0)

    await source.get_question()
    response = await source.get_question()
    assert response.question in FALLBACK_QUESTIONS
    assert response.state is SourceState.DEGRADED
    assert client.feed_calls == 1


@pytest.mark.asyncio
async def test_explicit_load_recovers_from_degraded():
    client = FakeClient(feed_error=TransportError("down"))
    source = make_source(client, mode="csv", choose=lambda n: 0)
    await source.get_question()

    client.feed_error = None
    client.feed = [A]
    assert await source.load() is SourceState.READY
    assert (await source.get_question()).question == A


class FakeStore:
    def __init__(self, questions=(), error=None):
        self.questions = list(questions)
        self.error = error
        self.calls = 0

    async def random_question(self, choose):
        self.calls += 1
        if self.error:
            raise self.error
        if not self.questions:
            return None
        return self.questions[choose(len(self.questions))]


@pytest.mark.asyncio
async def test_store_mode_picks_fresh_stored_question_each_time():
    store = FakeStore([A, B, C])
    picks = iter([2, 0])
    client = FakeClient(random_results=[A])
    source = make_source(client, mode="store", store=store, choose=lambda n: next(picks))

    first = await source.get_question()
    second = await source.get_question()

    assert [first.question, second.question] == [C, A]
    assert first.state is SourceState.READY
    assert store.calls == 2
    assert client.random_calls == 0
    assert client.feed_calls == 0


@pytest.mark.asyncio
async def test_empty_store_falls_back_to_feed():
    client = FakeClient(feed=[B])
    source = make_source(client, mode="store", store=FakeStore(), choose=lambda n: 0)

    response = await source.get_question()
    assert response.question == B
    assert response.state is SourceState.READY


@pytest.mark.asyncio
async def test_store_error_degrades_to_fallback_list():
    client = FakeClient(feed_error=TransportError("feed down"))
    store = FakeStore(error=RuntimeError("Database not connected"))
    source = make_source(client, mode="store", store=store, choose=lambda n: 0)

    response = await source.get_question()
    assert response.question == FALLBACK_QUESTIONS[0]
    assert response.state is SourceState.DEGRADED


@pytest.mark.asyncio
async def test_store_mode_serves_from_database(db):
    await db.add_question(A)
    source = make_source(FakeClient(), mode="store", store=db, choose=lambda n: 0)

    assert (await source.get_question()).question == A
