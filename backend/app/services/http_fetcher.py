from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable, Mapping
from time import perf_counter
from typing import Any
from urllib.parse import urlsplit

import httpx

from backend.app.services.errors import (
    FetchError,
    InvalidDestinationError,
    NetworkError,
    RateLimitedError,
    UpstreamNotFoundError,
    UpstreamTimeoutError,
)
from backend.app.services.retry import exponential_backoff, retry_async
from backend.app.telemetry import TelemetryClient

LOGGER = logging.getLogger("tubetools.http")

ALLOWED_HOSTS: frozenset[str] = frozenset(
    {
        "youtube.com",
        "www.youtube.com",
        "m.youtube.com",
        "consent.youtube.com",
        "youtubei.googleapis.com",
        "localhost",
        "127.0.0.1",
    }
)
IDEMPOTENT_METHODS: frozenset[str] = frozenset({"GET", "HEAD", "OPTIONS"})


def is_allowed_destination(url: str, allowed_hosts: frozenset[str] = ALLOWED_HOSTS) -> bool:
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    if parts.scheme not in {"http", "https"}:
        return False
    if parts.username or parts.password:
        return False
    hostname = (parts.hostname or "").lower()
    return hostname in allowed_hosts


def _parse_retry_after(raw_value: str | None) -> int | None:
    if raw_value is None:
        return None
    try:
        return max(1, int(raw_value.strip()))
    except ValueError:
        return None


class ResilientFetcher:
    """Outbound HTTP gateway for every upstream call.

    Requests are only sent to allow-listed hosts (redirect targets included),
    each attempt runs under its own deadline, and idempotent calls are retried
    with exponential backoff when the failure is transient. Non-2xx responses
    are raised as typed errors instead of being returned.
    """

    def __init__(
        self,
        *,
        timeout_seconds: float = 15.0,
        max_retries: int = 3,
        backoff_base_seconds: float = 0.5,
        backoff_max_seconds: float = 8.0,
        user_agent: str | None = None,
        allowed_hosts: frozenset[str] = ALLOWED_HOSTS,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        jitter: Callable[[], float] = random.random,
        telemetry: TelemetryClient | None = None,
    ) -> None:
        self._timeout_seconds = max(0.1, timeout_seconds)
        self._max_retries = max(0, max_retries)
        self._backoff_base_seconds = max(0.0, backoff_base_seconds)
        self._backoff_max_seconds = max(self._backoff_base_seconds, backoff_max_seconds)
        self._allowed_hosts = allowed_hosts
        self._sleep = sleep
        self._jitter = jitter
        self._telemetry = telemetry if telemetry is not None else TelemetryClient.disabled()
        default_headers = {"User-Agent": user_agent} if user_agent else None
        self._client = httpx.AsyncClient(
            transport=transport,
            headers=default_headers,
            follow_redirects=True,
            event_hooks={"request": [self._guard_redirect_destination]},
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch(
        self,
        url: str,
        *,
        method: str = "GET",
        params: Mapping[str, str] | None = None,
        headers: Mapping[str, str] | None = None,
        json_body: Any = None,
        timeout_seconds: float | None = None,
        idempotent: bool | None = None,
    ) -> httpx.Response:
        normalized_method = method.upper()
        if not is_allowed_destination(url, self._allowed_hosts):
            LOGGER.warning("upstream fetch blocked destination host=%s", urlsplit(url).hostname)
            raise InvalidDestinationError()

        retry_enabled = (
            normalized_method in IDEMPOTENT_METHODS if idempotent is None else idempotent
        )
        delays = (
            exponential_backoff(
                retries=self._max_retries,
                base_seconds=self._backoff_base_seconds,
                max_seconds=self._backoff_max_seconds,
                jitter=self._jitter,
            )
            if retry_enabled
            else ()
        )
        deadline = timeout_seconds if timeout_seconds is not None else self._timeout_seconds
        host = urlsplit(url).hostname or ""

        async def _attempt() -> httpx.Response:
            return await self._send_once(
                normalized_method,
                url,
                params=params,
                headers=headers,
                json_body=json_body,
                timeout_seconds=deadline,
            )

        started_at = perf_counter()
        try:
            response = await retry_async(
                _attempt,
                delays=delays,
                sleep=self._sleep,
                description=f"{normalized_method} {host}",
            )
        except Exception as exc:
            self._telemetry.emit(
                "upstream.fetch.error",
                method=normalized_method,
                host=host,
                duration_ms=int((perf_counter() - started_at) * 1000),
                error_type=type(exc).__name__,
            )
            raise
        self._telemetry.emit(
            "upstream.fetch.finish",
            method=normalized_method,
            host=host,
            duration_ms=int((perf_counter() - started_at) * 1000),
            status_code=response.status_code,
        )
        return response

    async def _send_once(
        self,
        method: str,
        url: str,
        *,
        params: Mapping[str, str] | None,
        headers: Mapping[str, str] | None,
        json_body: Any,
        timeout_seconds: float,
    ) -> httpx.Response:
        try:
            async with asyncio.timeout(timeout_seconds):
                response = await self._client.request(
                    method,
                    url,
                    params=params,
                    headers=headers,
                    json=json_body,
                    timeout=timeout_seconds,
                )
        except (TimeoutError, httpx.TimeoutException) as exc:
            raise UpstreamTimeoutError() from exc
        except httpx.TransportError as exc:
            raise NetworkError(f"Network error while contacting YouTube: {type(exc).__name__}") from exc
        except httpx.TooManyRedirects as exc:
            raise FetchError("Too many redirects from YouTube.") from exc
        except httpx.RequestError as exc:
            raise NetworkError(f"Network error while contacting YouTube: {type(exc).__name__}") from exc

        LOGGER.debug(
            "upstream response method=%s host=%s path=%s status=%s",
            method,
            response.request.url.host,
            response.request.url.path,
            response.status_code,
        )
        if response.is_success:
            return response
        if response.status_code == 429:
            raise RateLimitedError(
                "YouTube rate limit exceeded.",
                retry_after_seconds=_parse_retry_after(response.headers.get("retry-after")),
            )
        if response.status_code == 404:
            raise UpstreamNotFoundError()
        raise FetchError(
            f"Upstream request failed (HTTP {response.status_code}).",
            status_code=response.status_code,
        )

    async def _guard_redirect_destination(self, request: httpx.Request) -> None:
        if not is_allowed_destination(str(request.url), self._allowed_hosts):
            LOGGER.warning("upstream redirect blocked destination host=%s", request.url.host)
            raise InvalidDestinationError()
