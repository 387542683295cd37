from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, Response
from structlog.contextvars import bind_contextvars, reset_contextvars

from backend.app.config import AppSettings
from backend.app.dependencies import (
    get_metadata_service,
    get_rate_limiter,
    get_settings,
    get_transcript_service,
)
from backend.app.models.api_contracts import (
    ExtractIdResponse,
    KeywordRequest,
    KeywordsResponse,
    RegionResponse,
    RegionRestriction,
    TagsResponse,
    ThumbnailEntry,
    ThumbnailsResponse,
    TranscriptData,
    TranscriptEnvelope,
    TranscriptSegmentData,
    UpstreamHealthResponse,
    VideoDetailsResponse,
    VideoIdRequest,
    VideoInfoData,
    VideoInfoEnvelope,
)
from backend.app.services.errors import InvalidIdentifierError, RateLimitedError
from backend.app.services.keyword_suggestions import (
    generate_keyword_suggestions,
    sanitize_query_echo,
)
from backend.app.services.metadata_service import MetadataService
from backend.app.services.rate_limiter import RateLimitDecision, RateLimiter, resolve_client_key
from backend.app.services.sanitize import mask_client_address, mask_video_id
from backend.app.services.transcript_service import (
    EXPORT_MEDIA_TYPES,
    ExportFormat,
    TranscriptService,
    export_filename,
    render_transcript_export,
)
from backend.app.services.video_id import extract_video_id, require_video_id, thumbnail_urls

LOGGER = logging.getLogger("tubetools.api")

router = APIRouter(prefix="/api")


def enforce_rate_limit(
    request: Request,
    response: Response,
    limiter: Annotated[RateLimiter, Depends(get_rate_limiter)],
) -> RateLimitDecision:
    peer_address = request.client.host if request.client is not None else None
    client_key = resolve_client_key(request.headers, fallback=peer_address)
    decision = limiter.take(client_key)
    if not decision.allowed:
        LOGGER.warning(
            "rate limit exceeded client=%s path=%s",
            mask_client_address(client_key),
            request.url.path,
        )
        raise RateLimitedError(retry_after_seconds=decision.retry_after_seconds)
    response.headers["X-RateLimit-Remaining"] = str(decision.remaining)
    return decision


RateLimited = Annotated[RateLimitDecision, Depends(enforce_rate_limit)]
Settings = Annotated[AppSettings, Depends(get_settings)]
Metadata = Annotated[MetadataService, Depends(get_metadata_service)]
Transcripts = Annotated[TranscriptService, Depends(get_transcript_service)]


def _cache_for(response: Response, max_age_seconds: int) -> None:
    response.headers["Cache-Control"] = f"public, max-age={max_age_seconds}"


@router.get(
    "/video-info",
    response_model=VideoInfoEnvelope,
    tags=["videos"],
    operation_id="get_video_info",
)
async def get_video_info(
    response: Response,
    _: RateLimited,
    settings: Settings,
    metadata: Metadata,
    video_id: Annotated[str, Query(alias="videoId")] = "",
) -> VideoInfoEnvelope:
    validated_id = require_video_id(video_id)
    info = await metadata.resolve_video_info(validated_id)
    _cache_for(response, settings.video_info_cache_max_age_seconds)
    return VideoInfoEnvelope(
        success=True,
        data=VideoInfoData(title=info.title, author=info.author, thumbnail=info.thumbnail_url),
        message="Video information fetched successfully",
    )


@router.get(
    "/transcript",
    response_model=TranscriptEnvelope,
    tags=["transcripts"],
    operation_id="get_transcript",
)
async def get_transcript(
    response: Response,
    _: RateLimited,
    settings: Settings,
    transcripts: Transcripts,
    video_id: Annotated[str, Query(alias="videoId")] = "",
) -> TranscriptEnvelope:
    validated_id = require_video_id(video_id)
    context_tokens = bind_contextvars(video_id=mask_video_id(validated_id))
    try:
        result = await transcripts.resolve_transcript(validated_id)
    finally:
        reset_contextvars(**context_tokens)
    _cache_for(response, settings.transcript_cache_max_age_seconds)
    return TranscriptEnvelope(
        success=True,
        data=TranscriptData(
            transcript=result.transcript_text,
            language=result.language_label,
            track_name=result.track_label,
            word_count=result.word_count,
            segments=[
                TranscriptSegmentData(
                    text=segment.text,
                    start_seconds=segment.start_seconds,
                    end_seconds=segment.end_seconds,
                )
                for segment in result.segments
            ],
        ),
        message="Transcript fetched successfully",
    )


@router.get("/transcript/export", tags=["transcripts"], operation_id="export_transcript")
async def export_transcript(
    decision: RateLimited,
    settings: Settings,
    transcripts: Transcripts,
    video_id: Annotated[str, Query(alias="videoId")] = "",
    export_format: Annotated[ExportFormat, Query(alias="format")] = "txt",
) -> Response:
    validated_id = require_video_id(video_id)
    result = await transcripts.resolve_transcript(validated_id)
    return Response(
        content=render_transcript_export(result, export_format),
        media_type=EXPORT_MEDIA_TYPES[export_format],
        headers={
            "Content-Disposition": (
                f'attachment; filename="{export_filename(validated_id, export_format)}"'
            ),
            "Cache-Control": f"public, max-age={settings.transcript_cache_max_age_seconds}",
            "X-RateLimit-Remaining": str(decision.remaining),
        },
    )


@router.post(
    "/youtube",
    response_model=VideoDetailsResponse,
    tags=["videos"],
    operation_id="get_video_details",
)
async def get_video_details(
    request: VideoIdRequest,
    response: Response,
    _: RateLimited,
    settings: Settings,
    metadata: Metadata,
) -> VideoDetailsResponse:
    details = await metadata.resolve_video_details(request.video_id)
    _cache_for(response, settings.video_info_cache_max_age_seconds)
    return VideoDetailsResponse(
        title=details.title,
        description=details.description or "",
        thumbnail=details.thumbnail_url,
        author=details.author,
    )


@router.post(
    "/youtube-tags",
    response_model=TagsResponse,
    tags=["videos"],
    operation_id="get_video_tags",
)
async def get_video_tags(
    request: VideoIdRequest,
    _: RateLimited,
    metadata: Metadata,
) -> TagsResponse:
    tags = await metadata.resolve_tags(request.video_id)
    return TagsResponse(tags=tags, count=len(tags))


@router.post(
    "/youtube-keywords",
    response_model=KeywordsResponse,
    tags=["keywords"],
    operation_id="get_keyword_suggestions",
)
async def get_keyword_suggestions(request: KeywordRequest, _: RateLimited) -> KeywordsResponse:
    suggestions = generate_keyword_suggestions(request.query)
    return KeywordsResponse(
        suggestions=suggestions,
        count=len(suggestions),
        query=sanitize_query_echo(request.query),
    )


@router.post(
    "/youtube-region",
    response_model=RegionResponse,
    tags=["videos"],
    operation_id="get_region_info",
)
async def get_region_info(
    request: VideoIdRequest,
    _: RateLimited,
    metadata: Metadata,
) -> RegionResponse:
    region = await metadata.resolve_region_info(request.video_id)
    restriction = region.region_restriction
    return RegionResponse(
        title=region.title,
        channel_title=region.channel_title,
        published_at=region.published_at,
        thumbnail=region.thumbnail_url,
        region_restriction=(
            RegionRestriction(allowed=restriction["allowed"]) if restriction is not None else None
        ),
    )


@router.get(
    "/thumbnails",
    response_model=ThumbnailsResponse,
    tags=["videos"],
    operation_id="get_thumbnails",
)
def get_thumbnails(
    _: RateLimited,
    url: Annotated[str | None, Query()] = None,
    video_id: Annotated[str | None, Query(alias="videoId")] = None,
) -> ThumbnailsResponse:
    candidate = extract_video_id(url) if url else video_id
    validated_id = require_video_id(candidate)
    return ThumbnailsResponse(
        video_id=validated_id,
        thumbnails=[ThumbnailEntry(**entry) for entry in thumbnail_urls(validated_id)],
    )


@router.get(
    "/extract-id",
    response_model=ExtractIdResponse,
    tags=["videos"],
    operation_id="extract_video_id",
)
def extract_id(
    _: RateLimited,
    url: Annotated[str, Query()] = "",
) -> ExtractIdResponse:
    video_id = extract_video_id(url)
    if video_id is None:
        raise InvalidIdentifierError("Could not find a YouTube video ID in the URL.")
    return ExtractIdResponse(video_id=video_id)


@router.get(
    "/health",
    response_model=UpstreamHealthResponse,
    tags=["system"],
    operation_id="upstream_health",
)
async def upstream_health(metadata: Metadata) -> UpstreamHealthResponse:
    reachable = await metadata.probe_upstream()
    return UpstreamHealthResponse(
        status="ok",
        youtube="accessible" if reachable else "blocked",
    )
