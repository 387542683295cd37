from __future__ import annotations

import re
from dataclasses import dataclass

from backend.app.services.errors import InvalidIdentifierError

URL_MAX_LENGTH = 2048
VIDEO_ID_LENGTH = 11
VIDEO_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
YOUTUBE_URL_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"(?:https?://)?(?:www\.)?youtube\.com/watch\?v=([^&\n?#]+)"),
    re.compile(r"(?:https?://)?youtu\.be/([^&\n?#]+)"),
    re.compile(r"(?:https?://)?(?:www\.)?youtube\.com/shorts/([^&\n?#]+)"),
    re.compile(r"(?:https?://)?(?:www\.)?youtube\.com/embed/([^&\n?#]+)"),
)
_URL_UNSAFE_CHARACTERS = re.compile(r"[<>\"']")


@dataclass(frozen=True)
class ThumbnailQuality:
    key: str
    resolution: str
    label: str


THUMBNAIL_QUALITIES: tuple[ThumbnailQuality, ...] = (
    ThumbnailQuality(key="maxresdefault", resolution="1280x720 (HD)", label="HD"),
    ThumbnailQuality(key="hqdefault", resolution="480x360 (HQ)", label="HQ"),
    ThumbnailQuality(key="mqdefault", resolution="320x180 (MQ)", label="MQ"),
    ThumbnailQuality(key="default", resolution="120x90 (Default)", label="SD"),
)


def is_valid_video_id(candidate: object) -> bool:
    return (
        isinstance(candidate, str)
        and len(candidate) == VIDEO_ID_LENGTH
        and VIDEO_ID_PATTERN.match(candidate) is not None
    )


def extract_video_id(raw_url: object) -> str | None:
    """Return the 11-character video ID embedded in a YouTube URL, or None.

    Only `watch?v=`, `youtu.be/`, `/shorts/` and `/embed/` shapes are
    recognized and the first matching shape decides the outcome.
    """
    if not isinstance(raw_url, str) or len(raw_url) > URL_MAX_LENGTH:
        return None
    try:
        sanitized_url = _URL_UNSAFE_CHARACTERS.sub("", raw_url.strip())
        if not sanitized_url:
            return None
        for pattern in YOUTUBE_URL_PATTERNS:
            match = pattern.search(sanitized_url)
            if match is None:
                continue
            candidate = match.group(1)
            return candidate if is_valid_video_id(candidate) else None
    except (re.error, TypeError, ValueError):
        return None
    return None


def require_video_id(candidate: object) -> str:
    if not isinstance(candidate, str) or not is_valid_video_id(candidate):
        raise InvalidIdentifierError()
    return candidate


def canonical_watch_url(video_id: str) -> str:
    return f"https://www.youtube.com/watch?v={video_id}"


def thumbnail_urls(video_id: str) -> list[dict[str, str]]:
    validated_id = require_video_id(video_id)
    return [
        {
            "quality": quality.key,
            "resolution": quality.resolution,
            "label": quality.label,
            "url": f"https://img.youtube.com/vi/{validated_id}/{quality.key}.jpg",
        }
        for quality in THUMBNAIL_QUALITIES
    ]
