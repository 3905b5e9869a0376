"""SQLite question and submission-history store via aiosqlite."""

from __future__ import annotations

import uuid
from collections.abc import Callable
from datetime import datetime, timezone

import aiosqlite

from contextneeded.models.question import Question
from contextneeded.models.submission import SubmissionRecord

PageCursor = tuple[float, str]

SCHEMA = """
CREATE TABLE IF NOT EXISTS questions (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    url TEXT NOT NULL,
    site TEXT NOT NULL,
    created_at REAL NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_questions_created_at ON questions (created_at, id);

CREATE TABLE IF NOT EXISTS submissions (
    id TEXT PRIMARY KEY,
    client_id TEXT NOT NULL,
    timestamp REAL NOT NULL,
    question_title TEXT NOT NULL,
    success INTEGER NOT NULL,
    user_agent TEXT
);

CREATE INDEX IF NOT EXISTS idx_submissions_client_ts ON submissions (client_id, timestamp);
"""


def _to_epoch(moment: datetime) -> float:
    return moment.timestamp()


def _from_epoch(value: float) -> datetime:
    return datetime.fromtimestamp(value, tz=timezone.utc)


def _row_to_record(row: aiosqlite.Row) -> SubmissionRecord:
    return SubmissionRecord(
        client_id=row["client_id"],
        timestamp=_from_epoch(row["timestamp"]),
        question_title_prefix=row["question_title"],
        succeeded=bool(row["success"]),
        user_agent_prefix=row["user_agent"],
    )


def _row_to_question(row: aiosqlite.Row) -> Question:
    return Question(title=row["title"], url=row["url"], site=row["site"])


class Database:
    """Async SQLite database for stored questions and the submission ledger."""

    def __init__(self, path: str = "contextneeded.db") -> None:
        self.path = path
        self._db: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        self._db = await aiosqlite.connect(self.path)
        self._db.row_factory = aiosqlite.Row
        await self._db.executescript(SCHEMA)

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    @property
    def db(self) -> aiosqlite.Connection:
        if self._db is None:
            raise RuntimeError("Database not connected — call connect() first")
        return self._db

    # -- Questions --

    async def add_question(self, question: Question, created_at: datetime | None = None) -> str:
        question_id = str(uuid.uuid4())
        created_at = created_at or datetime.now(timezone.utc)
        await self.db.execute(
            "INSERT INTO questions (id, title, url, site, created_at) VALUES (?, ?, ?, ?, ?)",
            (question_id, question.title, question.url, question.site, _to_epoch(created_at)),
        )
        await self.db.commit()
        return question_id

    async def count_questions(self) -> int:
        cursor = await self.db.execute("SELECT COUNT(*) FROM questions")
        row = await cursor.fetchone()
        return row[0]

    async def list_questions(
        self, page_size: int = 20, before: PageCursor | None = None
    ) -> tuple[list[Question], PageCursor | None]:
        """Return one page of questions, newest first, and the cursor for the next page.

        The cursor is the ``(created_at, id)`` of the last row, so rows that
        share a timestamp are split across pages without being skipped.
        """
        if before is None:
            cursor = await self.db.execute(
                "SELECT * FROM questions ORDER BY created_at DESC, id DESC LIMIT ?",
                (page_size,),
            )
        else:
            created_at, question_id = before
            cursor = await self.db.execute(
                "SELECT * FROM questions "
                "WHERE created_at < ? OR (created_at = ? AND id < ?) "
                "ORDER BY created_at DESC, id DESC LIMIT ?",
                (created_at, created_at, question_id, page_size),
            )
        rows = await cursor.fetchall()
        next_cursor = None
        if len(rows) == page_size:
            next_cursor = (rows[-1]["created_at"], rows[-1]["id"])
        return [_row_to_question(r) for r in rows], next_cursor

    async def random_question(self, choose: Callable[[int], int]) -> Question | None:
        """Pick a stored question; ``choose(n)`` returns an index in ``range(n)``."""
        total = await self.count_questions()
        if total == 0:
            return None
        cursor = await self.db.execute(
            "SELECT * FROM questions ORDER BY created_at, id LIMIT 1 OFFSET ?",
            (choose(total),),
        )
        row = await cursor.fetchone()
        return _row_to_question(row) if row else None

    # -- Submissions --

    async def add_submission(self, record: SubmissionRecord) -> None:
        await self.db.execute(
            "INSERT INTO submissions (id, client_id, timestamp, question_title, success, user_agent) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (
                str(uuid.uuid4()),
                record.client_id,
                _to_epoch(record.timestamp),
                record.question_title_prefix,
                int(record.succeeded),
                record.user_agent_prefix,
            ),
        )
        await self.db.commit()

    async def count_submissions(self, client_id: str, since: datetime) -> int:
        cursor = await self.db.execute(
            "SELECT COUNT(*) FROM submissions WHERE client_id = ? AND timestamp >= ?",
            (client_id, _to_epoch(since)),
        )
        row = await cursor.fetchone()
        return row[0]

    async def latest_submission(self, client_id: str, since: datetime) -> SubmissionRecord | None:
        return await self._edge_submission(client_id, since, "DESC")

    async def earliest_submission(self, client_id: str, since: datetime) -> SubmissionRecord | None:
        return await self._edge_submission(client_id, since, "ASC")

    async def recent_submissions(self, limit: int = 50) -> list[SubmissionRecord]:
        cursor = await self.db.execute(
            "SELECT * FROM submissions ORDER BY timestamp DESC LIMIT ?", (limit,)
        )
        rows = await cursor.fetchall()
        return [_row_to_record(r) for r in rows]

    async def _edge_submission(
        self, client_id: str, since: datetime, order: str
    ) -> SubmissionRecord | None:
        cursor = await self.db.execute(
            "SELECT * FROM submissions WHERE client_id = ? AND timestamp >= ? "
            f"ORDER BY timestamp {order} LIMIT 1",
            (client_id, _to_epoch(since)),
        )
        row = await cursor.fetchone()
        return _row_to_record(row) if row else None
