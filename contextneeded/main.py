"""ContextNeeded — FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from contextneeded.config import settings
from contextneeded.db.database import Database
from contextneeded.gatekeeping.identity import ClientEnvironment
from contextneeded.gatekeeping.rate_limit import RateLimiter
from contextneeded.models.submission import SubmissionStatus
from contextneeded.orchestrator.question_source import QuestionSource
from contextneeded.orchestrator.submissions import SubmissionService
from contextneeded.sources.remote import RemoteDatasetClient

logger = logging.getLogger(__name__)

db = Database(settings.database_path)

question_source = QuestionSource(
    RemoteDatasetClient(settings.random_question_api_url, timeout=settings.http_timeout),
    csv_url=settings.csv_url,
    mode=settings.question_source,
    batch_size=settings.batch_size,
    batch_timeout_ms=settings.batch_timeout_ms,
    store=db,
)

submissions = SubmissionService(db, RateLimiter(db, settings.rate_limit_policy()))


@asynccontextmanager
async def lifespan(app: FastAPI):
    await db.connect()
    yield
    await db.close()


app = FastAPI(
    title="ContextNeeded",
    description="Context-needed question source and submission gatekeeping",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Request / Response models ---


class QuestionModel(BaseModel):
    title: str
    url: str
    site: str


class QuestionResponseModel(BaseModel):
    question: QuestionModel
    state: str
    error: str | None = None


class SubmitRequest(BaseModel):
    question: str = ""
    url: str = ""
    email: str = ""
    site: str = ""


class SubmitResponse(BaseModel):
    status: str
    question_id: str | None = None
    field_errors: dict[str, str] = {}
    reason: str | None = None
    retry_after_minutes: int | None = None


class RateLimitResponse(BaseModel):
    allowed: bool
    reason: str | None = None
    retry_after_minutes: int | None = None


class QuestionPageResponse(BaseModel):
    questions: list[QuestionModel]
    next_cursor: float | None = None
    next_cursor_id: str | None = None


class SubmissionRecordModel(BaseModel):
    client_id: str
    timestamp: str
    question_title: str
    success: bool
    user_agent: str | None = None


# --- Routes ---


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/api/question", response_model=QuestionResponseModel)
async def get_question():
    """Serve the next question; ``state`` is ``degraded`` when only fallbacks remain."""
    response = await question_source.get_question()
    return QuestionResponseModel(
        question=QuestionModel(**response.question.to_dict()),
        state=response.state.value,
        error=response.error,
    )


@app.post("/api/questions", response_model=SubmitResponse)
async def submit_question(req: SubmitRequest, request: Request):
    """Accept a public submission.

    Validation failures answer 422 with field errors, rate-limit denials
    answer 429 with a ``Retry-After`` header, persistence failures 503.
    """
    env = ClientEnvironment.from_headers(request.headers)
    result = await submissions.submit(req.model_dump(), env)
    body = SubmitResponse(
        status=result.status.value,
        question_id=result.question_id,
        field_errors=result.field_errors,
        reason=result.reason,
        retry_after_minutes=result.retry_after_minutes,
    ).model_dump()

    if result.status is SubmissionStatus.INVALID:
        return JSONResponse(body, status_code=422)
    if result.status is SubmissionStatus.RATE_LIMITED:
        headers = {"Retry-After": str((result.retry_after_minutes or 1) * 60)}
        return JSONResponse(body, status_code=429, headers=headers)
    if result.status is SubmissionStatus.FAILED:
        return JSONResponse(body, status_code=503)
    return JSONResponse(body, status_code=201)


@app.get("/api/rate-limit", response_model=RateLimitResponse)
async def check_rate_limit(request: Request):
    decision = await submissions.check_rate_limit(ClientEnvironment.from_headers(request.headers))
    return RateLimitResponse(
        allowed=decision.allowed,
        reason=decision.reason,
        retry_after_minutes=decision.retry_after_minutes,
    )


@app.get("/api/questions", response_model=QuestionPageResponse)
async def list_questions(
    page_size: int = Query(20, ge=1, le=100),
    before: float | None = None,
    before_id: str = "",
):
    """Page through stored questions; pass back ``next_cursor`` and ``next_cursor_id``."""
    cursor = (before, before_id) if before is not None else None
    questions, next_cursor = await db.list_questions(page_size, cursor)
    return QuestionPageResponse(
        questions=[QuestionModel(**q.to_dict()) for q in questions],
        next_cursor=next_cursor[0] if next_cursor else None,
        next_cursor_id=next_cursor[1] if next_cursor else None,
    )


@app.get("/api/questions/count")
async def count_questions():
    return {"count": await db.count_questions()}


@app.get("/api/admin/submissions", response_model=list[SubmissionRecordModel])
async def recent_submissions(limit: int = Query(50, ge=1, le=500)):
    records = await db.recent_submissions(limit)
    return [
        SubmissionRecordModel(
            client_id=r.client_id,
            timestamp=r.timestamp.isoformat(),
            question_title=r.question_title_prefix,
            success=r.succeeded,
            user_agent=r.user_agent_prefix,
        )
        for r in records
    ]
