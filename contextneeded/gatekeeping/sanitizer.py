"""Sanitation of user-submitted question fields before persistence."""

from __future__ import annotations

import re
from urllib.parse import urlsplit

from contextneeded.errors import ValidationError
from contextneeded.models.question import Question

MAX_FIELD_LENGTH = 1500

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f-\x9f]")
_FORBIDDEN_HOST_CHARS = re.compile(r"[\s#%/:<>?@\[\\\]^|]")

FIELD_LABELS = {
    "title": "Question is required",
    "url": "Please enter a valid URL",
    "site": "Site name is required",
}


def sanitize_string(value: object) -> str:
    """Strip control characters and surrounding whitespace, then bound length."""
    if not isinstance(value, str) or not value:
        return ""
    cleaned = _CONTROL_CHARS.sub("", value).strip()
    return cleaned[:MAX_FIELD_LENGTH].strip()


def sanitize_url(value: object) -> str:
    """Return a sanitized absolute URL, or ``""`` when none can be formed.

    Values without a scheme are retried with an ``https://`` prefix.
    """
    sanitized = sanitize_string(value)
    if not sanitized:
        return ""
    if is_absolute_url(sanitized):
        return sanitized
    if sanitized.startswith(("http://", "https://")):
        return ""
    prefixed = f"https://{sanitized}"
    return prefixed if is_absolute_url(prefixed) else ""


def is_absolute_url(value: str) -> bool:
    try:
        parts = urlsplit(value)
        hostname = parts.hostname
        parts.port  # raises ValueError on a malformed port
    except ValueError:
        return False
    if not parts.scheme or not parts.netloc or not hostname:
        return False
    return not _FORBIDDEN_HOST_CHARS.search(hostname)


def sanitize_question(raw: dict) -> Question:
    """Sanitize raw ``title``/``url``/``site`` fields; empty strings mark invalid ones."""
    return Question(
        title=sanitize_string(raw.get("title")),
        url=sanitize_url(raw.get("url")),
        site=sanitize_string(raw.get("site")),
    )


def validate_question(question: Question) -> Question:
    """Raise ``ValidationError`` naming every empty required field."""
    field_errors = {
        name: message
        for name, message in FIELD_LABELS.items()
        if not getattr(question, name)
    }
    if field_errors:
        raise ValidationError(field_errors)
    return question
