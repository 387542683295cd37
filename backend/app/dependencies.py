from __future__ import annotations

from functools import lru_cache

from backend.app.config import AppSettings, load_settings
from backend.app.services.http_fetcher import ResilientFetcher
from backend.app.services.metadata_service import MetadataService
from backend.app.services.rate_limiter import RateLimiter
from backend.app.services.transcript_service import TranscriptService
from backend.app.telemetry import TelemetryClient, build_telemetry_client


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    return load_settings()


@lru_cache(maxsize=1)
def get_telemetry() -> TelemetryClient:
    settings = get_settings()
    return build_telemetry_client(
        enabled=settings.telemetry_enabled,
        sink=settings.telemetry_sink,
    )


@lru_cache(maxsize=1)
def get_rate_limiter() -> RateLimiter:
    settings = get_settings()
    return RateLimiter(
        max_requests=settings.rate_limit_max_requests,
        window_seconds=settings.rate_limit_window_seconds,
        sweep_interval_seconds=settings.rate_limit_sweep_interval_seconds,
    )


@lru_cache(maxsize=1)
def get_fetcher() -> ResilientFetcher:
    settings = get_settings()
    return ResilientFetcher(
        timeout_seconds=settings.http_timeout_seconds,
        max_retries=settings.http_max_retries,
        backoff_base_seconds=settings.http_backoff_base_seconds,
        backoff_max_seconds=settings.http_backoff_max_seconds,
        user_agent=settings.youtube_user_agent,
        telemetry=get_telemetry(),
    )


@lru_cache(maxsize=1)
def get_metadata_service() -> MetadataService:
    settings = get_settings()
    return MetadataService(
        get_fetcher(),
        oembed_timeout_seconds=settings.http_timeout_seconds,
        page_timeout_seconds=settings.page_timeout_seconds,
    )


@lru_cache(maxsize=1)
def get_transcript_service() -> TranscriptService:
    settings = get_settings()
    return TranscriptService(
        get_fetcher(),
        client_version=settings.youtube_client_version,
        page_timeout_seconds=settings.page_timeout_seconds,
    )


def reset_upstream_dependencies() -> None:
    get_transcript_service.cache_clear()
    get_metadata_service.cache_clear()
    get_fetcher.cache_clear()


def reset_cached_dependencies() -> None:
    reset_upstream_dependencies()
    get_rate_limiter.cache_clear()
    get_telemetry.cache_clear()
    get_settings.cache_clear()
