from __future__ import annotations

import asyncio
import json
import logging
import re
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from backend.app.models.upstream_contracts import OEmbedPayload
from backend.app.services.errors import (
    ParseError,
    TubeToolsError,
    UpstreamNotFoundError,
    VideoNotFoundError,
)
from backend.app.services.http_fetcher import ResilientFetcher
from backend.app.services.sanitize import (
    mask_video_id,
    sanitize_error_message,
    sanitize_multiline_text,
    sanitize_text,
)
from backend.app.services.tag_synthesizer import synthesize_tags
from backend.app.services.video_id import canonical_watch_url, require_video_id
from backend.app.services.youtube_page import (
    BROWSER_HTML_HEADERS,
    WATCH_PAGE_URL,
    dig,
    extract_embedded_json,
    extract_meta_description,
    nonempty_string,
)

LOGGER = logging.getLogger("tubetools.metadata")

OEMBED_URL = "https://www.youtube.com/oembed"
HEALTH_PROBE_VIDEO_ID = "dQw4w9WgXcQ"
UNKNOWN_TITLE = "Unknown Title"
UNKNOWN_AUTHOR = "Unknown Author"
_AVAILABLE_COUNTRIES_PATTERN = re.compile(r"\"availableCountries\":(\[[^\]]*\])")
_PUBLISH_DATE_PATTERN = re.compile(r"\"publishDate\":\"([^\"]+)\"")
_COUNTRY_CODE_PATTERN = re.compile(r"^[A-Z]{2}$")


@dataclass(frozen=True)
class VideoMetadata:
    title: str
    author: str
    thumbnail_url: str
    description: str | None = None


@dataclass(frozen=True)
class RegionInfo:
    title: str
    channel_title: str
    thumbnail_url: str
    published_at: str | None
    available_countries: tuple[str, ...] | None

    @property
    def region_restriction(self) -> dict[str, list[str]] | None:
        if not self.available_countries:
            return None
        return {"allowed": list(self.available_countries)}


def extract_description_from_initial_data(
    initial_data: dict[str, Any] | None,
    player_response: dict[str, Any] | None = None,
) -> str:
    """Find the description in YouTube's embedded page state.

    Looks, in order, at `videoDetails.shortDescription`, the secondary info
    renderer's `description.runs` (or `attributedDescription.content`) and the
    player microformat description.
    """
    for source in (player_response, initial_data):
        short_description = nonempty_string(dig(source, "videoDetails", "shortDescription"))
        if short_description is not None:
            return short_description

    contents = dig(
        initial_data, "contents", "twoColumnWatchNextResults", "results", "results", "contents"
    )
    if isinstance(contents, list):
        for content in contents:
            secondary_info = dig(content, "videoSecondaryInfoRenderer")
            runs = dig(secondary_info, "description", "runs")
            if isinstance(runs, list):
                joined = "".join(
                    run["text"]
                    for run in runs
                    if isinstance(run, dict) and isinstance(run.get("text"), str)
                )
                if joined:
                    return joined
            attributed = nonempty_string(dig(secondary_info, "attributedDescription", "content"))
            if attributed is not None:
                return attributed

    for source in (player_response, initial_data):
        microformat = nonempty_string(
            dig(source, "microformat", "playerMicroformatRenderer", "description", "simpleText")
        )
        if microformat is not None:
            return microformat
    return ""


def extract_description_from_page(page_html: str) -> str:
    initial_data = extract_embedded_json(page_html, "ytInitialData")
    player_response = extract_embedded_json(page_html, "ytInitialPlayerResponse")
    if initial_data is not None or player_response is not None:
        description = extract_description_from_initial_data(initial_data, player_response)
        if description:
            return sanitize_multiline_text(description.replace("\\n", "\n"))

    meta_description = extract_meta_description(page_html)
    if meta_description:
        return sanitize_text(meta_description)
    return ""


def extract_available_countries(page_html: str) -> tuple[str, ...] | None:
    player_response = extract_embedded_json(page_html, "ytInitialPlayerResponse")
    raw_countries = dig(
        player_response, "microformat", "playerMicroformatRenderer", "availableCountries"
    )
    if raw_countries is None:
        match = _AVAILABLE_COUNTRIES_PATTERN.search(page_html)
        if match is None:
            return None
        try:
            raw_countries = json.loads(match.group(1))
        except json.JSONDecodeError:
            return None
    if not isinstance(raw_countries, list):
        return None
    countries = tuple(
        country
        for country in raw_countries
        if isinstance(country, str) and _COUNTRY_CODE_PATTERN.match(country)
    )
    return countries or None


def extract_publish_date(page_html: str) -> str | None:
    player_response = extract_embedded_json(page_html, "ytInitialPlayerResponse")
    publish_date = nonempty_string(
        dig(player_response, "microformat", "playerMicroformatRenderer", "publishDate")
    )
    if publish_date is None:
        match = _PUBLISH_DATE_PATTERN.search(page_html)
        publish_date = match.group(1) if match else None
    return sanitize_text(publish_date) if publish_date else None


class MetadataService:
    def __init__(
        self,
        fetcher: ResilientFetcher,
        *,
        oembed_timeout_seconds: float = 15.0,
        page_timeout_seconds: float = 20.0,
    ) -> None:
        self._fetcher = fetcher
        self._oembed_timeout_seconds = oembed_timeout_seconds
        self._page_timeout_seconds = page_timeout_seconds

    async def resolve_video_info(self, video_id: str) -> VideoMetadata:
        validated_id = require_video_id(video_id)
        try:
            response = await self._fetcher.fetch(
                OEMBED_URL,
                params={"url": canonical_watch_url(validated_id), "format": "json"},
                headers={
                    "Accept": "application/json, text/plain, */*",
                    "Accept-Language": "en-US,en;q=0.9",
                },
                timeout_seconds=self._oembed_timeout_seconds,
            )
        except UpstreamNotFoundError as exc:
            raise VideoNotFoundError() from exc

        try:
            payload = OEmbedPayload.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            LOGGER.warning(
                "oembed payload undecodable video_id=%s", mask_video_id(validated_id)
            )
            raise ParseError("Failed to parse video metadata.") from exc

        return VideoMetadata(
            title=sanitize_text(payload.title or UNKNOWN_TITLE),
            author=sanitize_text(payload.author_name or UNKNOWN_AUTHOR),
            thumbnail_url=payload.thumbnail_url or "",
        )

    async def resolve_description(self, video_id: str) -> str:
        """Best-effort full description; any failure yields an empty string."""
        validated_id = require_video_id(video_id)
        try:
            page_html = await self._fetch_watch_page(validated_id)
        except TubeToolsError as exc:
            LOGGER.info(
                "description unavailable video_id=%s error_type=%s error=%s",
                mask_video_id(validated_id),
                type(exc).__name__,
                exc.message,
            )
            return ""
        try:
            return extract_description_from_page(page_html)
        except (ValueError, TypeError, KeyError, RecursionError) as exc:
            LOGGER.info(
                "description parse failed video_id=%s error=%s",
                mask_video_id(validated_id),
                sanitize_error_message(exc),
            )
            return ""

    async def resolve_video_details(self, video_id: str) -> VideoMetadata:
        validated_id = require_video_id(video_id)
        info, description = await asyncio.gather(
            self.resolve_video_info(validated_id),
            self.resolve_description(validated_id),
        )
        return VideoMetadata(
            title=info.title,
            author=info.author,
            thumbnail_url=info.thumbnail_url,
            description=description,
        )

    async def resolve_tags(self, video_id: str) -> list[str]:
        details = await self.resolve_video_details(video_id)
        return synthesize_tags(details.title, details.description or "")

    async def resolve_region_info(self, video_id: str) -> RegionInfo:
        validated_id = require_video_id(video_id)
        info, page_html = await asyncio.gather(
            self.resolve_video_info(validated_id),
            self._fetch_watch_page_or_none(validated_id),
        )
        available_countries: tuple[str, ...] | None = None
        published_at: str | None = None
        if page_html is not None:
            available_countries = extract_available_countries(page_html)
            published_at = extract_publish_date(page_html)
        return RegionInfo(
            title=info.title,
            channel_title=info.author,
            thumbnail_url=info.thumbnail_url,
            published_at=published_at,
            available_countries=available_countries,
        )

    async def probe_upstream(self) -> bool:
        try:
            await self._fetcher.fetch(
                OEMBED_URL,
                params={"url": canonical_watch_url(HEALTH_PROBE_VIDEO_ID), "format": "json"},
                timeout_seconds=self._oembed_timeout_seconds,
                idempotent=False,
            )
        except TubeToolsError as exc:
            LOGGER.warning("upstream health probe failed error_type=%s", type(exc).__name__)
            return False
        return True

    async def _fetch_watch_page(self, video_id: str) -> str:
        response = await self._fetcher.fetch(
            WATCH_PAGE_URL,
            params={"v": video_id},
            headers=BROWSER_HTML_HEADERS,
            timeout_seconds=self._page_timeout_seconds,
        )
        return response.text

    async def _fetch_watch_page_or_none(self, video_id: str) -> str | None:
        try:
            return await self._fetch_watch_page(video_id)
        except TubeToolsError as exc:
            LOGGER.info(
                "watch page unavailable video_id=%s error_type=%s",
                mask_video_id(video_id),
                type(exc).__name__,
            )
            return None
