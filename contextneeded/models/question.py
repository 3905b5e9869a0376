"""Question data model."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Question:
    """An out-of-context question sourced from the web."""

    title: str
    url: str
    site: str

    @property
    def dedup_key(self) -> str:
        return f"{self.title}|{self.url}"

    def is_complete(self) -> bool:
        return bool(self.title and self.url and self.site)

    def to_dict(self) -> dict:
        return {"title": self.title, "url": self.url, "site": self.site}
