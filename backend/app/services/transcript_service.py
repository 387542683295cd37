from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Literal

from backend.app.services.errors import (
    FetchError,
    NoTranscriptError,
    ParseError,
    UpstreamNotFoundError,
    VideoNotFoundError,
)
from backend.app.services.http_fetcher import ResilientFetcher
from backend.app.services.sanitize import mask_video_id
from backend.app.services.transcript_format import count_words, format_paragraphs, render_srt
from backend.app.services.transcript_parser import (
    TRANSCRIPT_PARSE_MESSAGE,
    RegexTranscriptPayloadParser,
    TranscriptPayloadParser,
    TranscriptSegment,
)
from backend.app.services.video_id import require_video_id
from backend.app.services.youtube_page import BROWSER_HTML_HEADERS, WATCH_PAGE_URL

LOGGER = logging.getLogger("tubetools.transcript")

TRANSCRIPT_RPC_URL = "https://www.youtube.com/youtubei/v1/get_transcript"
TRANSCRIPT_CLIENT_NAME = "WEB"
DEFAULT_LANGUAGE_LABEL = "auto-detected"
DEFAULT_TRACK_LABEL = "YouTube Auto-generated"
TRANSCRIPT_PARAMS_PATTERN = re.compile(r"\"getTranscriptEndpoint\":\{\"params\":\"([^\"]+)\"")
LIVE_CONTENT_MARKER = "\"isLiveContent\":true"
UNPLAYABLE_MARKER = "\"playabilityStatus\":{\"status\":\"UNPLAYABLE\""
_AUTO_GENERATED_SUFFIX = re.compile(r"\s*\(auto-generated\)\s*$", re.IGNORECASE)

ExportFormat = Literal["txt", "srt"]
EXPORT_MEDIA_TYPES: dict[str, str] = {
    "txt": "text/plain; charset=utf-8",
    "srt": "application/x-subrip; charset=utf-8",
}


@dataclass(frozen=True)
class TranscriptResult:
    transcript_text: str
    language_label: str
    track_label: str
    word_count: int
    segments: tuple[TranscriptSegment, ...] = ()


def extract_transcript_params(page_html: str) -> str:
    if LIVE_CONTENT_MARKER in page_html:
        raise NoTranscriptError("Live videos don't have transcripts.")
    if UNPLAYABLE_MARKER in page_html:
        raise VideoNotFoundError("Video is not available.")
    match = TRANSCRIPT_PARAMS_PATTERN.search(page_html)
    if match is None:
        raise NoTranscriptError()
    return match.group(1)


class TranscriptService:
    """Two-phase transcript lookup: watch-page token, then the internal transcript RPC."""

    def __init__(
        self,
        fetcher: ResilientFetcher,
        *,
        client_version: str,
        page_timeout_seconds: float = 20.0,
        parser: TranscriptPayloadParser | None = None,
    ) -> None:
        self._fetcher = fetcher
        self._client_version = client_version
        self._page_timeout_seconds = page_timeout_seconds
        self._parser = parser if parser is not None else RegexTranscriptPayloadParser()

    async def resolve_transcript(self, video_id: str) -> TranscriptResult:
        validated_id = require_video_id(video_id)
        params = await self._fetch_transcript_params(validated_id)
        payload = await self._fetch_transcript_payload(validated_id, params)
        result = self.build_result(payload)
        LOGGER.info(
            "transcript resolved video_id=%s segments=%s word_count=%s",
            mask_video_id(validated_id),
            len(result.segments),
            result.word_count,
        )
        return result

    def build_result(self, payload: object) -> TranscriptResult:
        extraction = self._parser.parse(payload)
        segments = extraction.segments
        if not segments:
            raise NoTranscriptError("No transcript segments found.")

        transcript_text = format_paragraphs(segment.text for segment in segments)
        if not transcript_text:
            raise NoTranscriptError("Empty transcript.")

        track_label = extraction.track_title or DEFAULT_TRACK_LABEL
        language_label = (
            _AUTO_GENERATED_SUFFIX.sub("", extraction.track_title).strip()
            if extraction.track_title
            else DEFAULT_LANGUAGE_LABEL
        )
        return TranscriptResult(
            transcript_text=transcript_text,
            language_label=language_label or DEFAULT_LANGUAGE_LABEL,
            track_label=track_label,
            word_count=count_words(transcript_text),
            segments=segments,
        )

    async def _fetch_transcript_params(self, video_id: str) -> str:
        try:
            response = await self._fetcher.fetch(
                WATCH_PAGE_URL,
                params={"v": video_id, "bpctr": "9999999999", "hl": "en"},
                headers=BROWSER_HTML_HEADERS,
                timeout_seconds=self._page_timeout_seconds,
            )
        except UpstreamNotFoundError as exc:
            raise VideoNotFoundError() from exc
        return extract_transcript_params(response.text)

    async def _fetch_transcript_payload(self, video_id: str, params: str) -> object:
        try:
            response = await self._fetcher.fetch(
                TRANSCRIPT_RPC_URL,
                method="POST",
                params={"prettyPrint": "false"},
                headers={
                    "Content-Type": "application/json",
                    "Origin": "https://www.youtube.com",
                    "Referer": f"https://www.youtube.com/watch?v={video_id}",
                    "Accept": "*/*",
                    "Accept-Language": "en-US,en;q=0.9",
                    "Sec-Fetch-Dest": "empty",
                    "Sec-Fetch-Mode": "cors",
                    "Sec-Fetch-Site": "same-origin",
                },
                json_body={
                    "context": {
                        "client": {
                            "clientName": TRANSCRIPT_CLIENT_NAME,
                            "clientVersion": self._client_version,
                        }
                    },
                    "params": params,
                    "externalVideoId": video_id,
                },
                timeout_seconds=self._page_timeout_seconds,
                idempotent=True,
            )
        except UpstreamNotFoundError as exc:
            raise VideoNotFoundError() from exc
        except FetchError as exc:
            if exc.status_code == 403:
                raise NoTranscriptError("Access denied to transcript.") from exc
            raise

        try:
            return response.json()
        except ValueError as exc:
            raise ParseError(TRANSCRIPT_PARSE_MESSAGE) from exc


def render_transcript_text(result: TranscriptResult) -> str:
    return f"{result.transcript_text}\n"


def render_transcript_export(result: TranscriptResult, export_format: ExportFormat) -> str:
    if export_format == "srt":
        return render_srt(result.transcript_text, result.segments)
    return render_transcript_text(result)


def export_filename(video_id: str, export_format: ExportFormat) -> str:
    return f"transcript-{video_id}.{export_format}"
