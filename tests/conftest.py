import os
from datetime import datetime, timezone

# Keep the application's module-level database out of the working directory.
os.environ.setdefault("CONTEXTNEEDED_DATABASE_PATH", ":memory:")

import pytest
import pytest_asyncio

from contextneeded.db.database import Database
from contextneeded.models.question import Question


class FrozenClock:
    """Callable clock that tests can move forward."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta) -> None:
        self.now = self.now + delta


@pytest.fixture
def clock():
    return FrozenClock(datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc))


@pytest_asyncio.fixture
async def db():
    database = Database(":memory:")
    await database.connect()
    yield database
    await database.close()


@pytest.fixture
def sample_question():
    return Question(
        title="How do I stop my sourdough from singing?",
        url="https://cooking.stackexchange.com/questions/1",
        site="Cooking",
    )
