from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

VIDEO_ID_FIELD_PATTERN = r"^[A-Za-z0-9_-]{11}$"


def utc_timestamp() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


class VideoIdRequest(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    video_id: str = Field(alias="videoId", pattern=VIDEO_ID_FIELD_PATTERN)


class KeywordRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    query: str = Field(min_length=1, max_length=500)

    @field_validator("query")
    @classmethod
    def _require_visible_text(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("Query parameter is required")
        return normalized


class VideoInfoData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str
    author: str
    thumbnail: str


class TranscriptSegmentData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: str
    start_seconds: float | None = Field(default=None, alias="startSeconds")
    end_seconds: float | None = Field(default=None, alias="endSeconds")


class TranscriptData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    transcript: str
    language: str
    track_name: str = Field(alias="trackName")
    word_count: int = Field(alias="wordCount")
    segments: list[TranscriptSegmentData] = Field(default_factory=list)


class ApiEnvelope(BaseModel):
    """Standard `{success, data, message, code, timestamp}` response body."""

    success: bool
    data: Any = None
    message: str
    code: str | None = None
    timestamp: str = Field(default_factory=utc_timestamp)


class VideoInfoEnvelope(ApiEnvelope):
    data: VideoInfoData | None = None


class TranscriptEnvelope(ApiEnvelope):
    data: TranscriptData | None = None


class VideoDetailsResponse(BaseModel):
    title: str
    description: str
    thumbnail: str
    author: str


class TagsResponse(BaseModel):
    tags: list[str]
    count: int
    timestamp: str = Field(default_factory=utc_timestamp)


class KeywordsResponse(BaseModel):
    suggestions: list[str]
    count: int
    query: str
    timestamp: str = Field(default_factory=utc_timestamp)


class RegionRestriction(BaseModel):
    allowed: list[str]


class RegionResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str
    channel_title: str = Field(alias="channelTitle")
    published_at: str | None = Field(default=None, alias="publishedAt")
    thumbnail: str
    region_restriction: RegionRestriction | None = Field(default=None, alias="regionRestriction")
    timestamp: str = Field(default_factory=utc_timestamp)


class ThumbnailEntry(BaseModel):
    quality: str
    resolution: str
    label: str
    url: str


class ThumbnailsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    video_id: str = Field(alias="videoId")
    thumbnails: list[ThumbnailEntry]


class ExtractIdResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    video_id: str = Field(alias="videoId")


class UpstreamHealthResponse(BaseModel):
    status: Literal["ok", "error"]
    youtube: Literal["accessible", "blocked"]
    timestamp: str = Field(default_factory=utc_timestamp)
