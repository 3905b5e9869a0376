"""Delimited record parser for the question feed.

The feed is RFC 4180-like but parsed by hand: the first line is a header and
is discarded, quoted fields may contain commas, and every remaining ``"`` is
stripped from the first three fields after splitting. Malformed rows are
dropped rather than reported.
"""

from __future__ import annotations

import logging

from contextneeded.models.question import Question

logger = logging.getLogger(__name__)


def parse_csv(text: str) -> list[Question]:
    """Parse feed text into complete questions, skipping malformed rows."""
    lines = text.strip().split("\n")
    questions: list[Question] = []
    skipped = 0

    for line in lines[1:]:
        if not line.strip():
            continue

        values = split_csv_line(line)
        if len(values) < 3:
            skipped += 1
            continue

        title, url, site = (_clean(v) for v in values[:3])
        question = Question(title=title, url=url, site=site)
        if question.is_complete():
            questions.append(question)
        else:
            skipped += 1

    if skipped:
        logger.debug("Skipped %d malformed feed rows", skipped)
    return questions


def split_csv_line(line: str) -> list[str]:
    """Split a line on commas that are outside double quotes.

    An unbalanced quote leaves the rest of the line inside the quoted field.
    """
    fields: list[str] = []
    current: list[str] = []
    in_quotes = False

    for char in line:
        if char == '"':
            in_quotes = not in_quotes
        elif char == "," and not in_quotes:
            fields.append("".join(current))
            current = []
        else:
            current.append(char)

    fields.append("".join(current))
    return fields


def _clean(value: str) -> str:
    return value.strip().replace('"', "")
