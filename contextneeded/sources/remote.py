"""Remote dataset client for the full feed and single random records."""

from __future__ import annotations

import logging

import httpx

from contextneeded.errors import TransportError
from contextneeded.models.question import Question
from contextneeded.sources.csv_parser import parse_csv

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class RemoteDatasetClient:
    """Fetches questions from the remote feed and the random-question endpoint.

    Transport failures (connection errors, timeouts, non-2xx statuses) are
    raised as ``TransportError``. A single-record response with the wrong
    shape is not an error: ``fetch_one_random`` returns ``None`` for it.
    """

    def __init__(
        self,
        random_endpoint: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.random_endpoint = random_endpoint
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def fetch_all(self, url: str) -> list[Question]:
        """Download the full delimited feed and parse it."""
        response = await self._get(url)
        questions = parse_csv(response.text)
        logger.info("Loaded %d questions from %s", len(questions), url)
        return questions

    async def fetch_one_random(self, endpoint: str | None = None) -> Question | None:
        """Fetch one random record; ``None`` when the body is not a question.

        Cancelling the awaiting task aborts the request.
        """
        endpoint = endpoint or self.random_endpoint
        if not endpoint:
            raise TransportError("Random question endpoint is not configured")

        response = await self._get(endpoint, headers={"Cache-Control": "no-store"})
        try:
            data = response.json()
        except ValueError:
            logger.debug("Random question response was not JSON")
            return None
        return question_from_payload(data)

    async def _get(self, url: str, headers: dict | None = None) -> httpx.Response:
        try:
            async with self._client() as client:
                response = await client.get(url, headers=headers)
        except httpx.HTTPError as exc:
            raise TransportError(f"Request to {url} failed: {exc}") from exc

        if not response.is_success:
            raise TransportError(
                f"Request to {url} failed: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )
        return response


def question_from_payload(data: object) -> Question | None:
    """Build a question from a decoded JSON body, or ``None`` on shape mismatch."""
    if not isinstance(data, dict):
        return None
    fields = [data.get(key) for key in ("title", "url", "site")]
    if not all(isinstance(value, str) for value in fields):
        return None
    title, url, site = fields
    return Question(title=title, url=url, site=site)
