from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator


def _optional_text(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    normalized = value.strip()
    return normalized or None


class OEmbedPayload(BaseModel):
    """The subset of an oEmbed response the metadata resolver relies on.

    Every field is optional; missing or non-string values decode to None and
    the resolver substitutes its documented fallbacks.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    title: str | None = None
    author_name: str | None = None
    thumbnail_url: str | None = None

    @field_validator("title", "author_name", "thumbnail_url", mode="before")
    @classmethod
    def _normalize_text(cls, value: Any) -> str | None:
        return _optional_text(value)


class TranscriptRun(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    text: str | None = None

    @field_validator("text", mode="before")
    @classmethod
    def _normalize_text(cls, value: Any) -> str | None:
        if not isinstance(value, str):
            return None
        return value
