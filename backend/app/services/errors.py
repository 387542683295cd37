from __future__ import annotations

from backend.app.services.sanitize import sanitize_error_message


class TubeToolsError(Exception):
    """Base of every failure the core can raise.

    `code` is the stable identifier surfaced to API clients, `http_status` is the
    status the API layer answers with and `retryable` tells the fetcher whether
    another attempt may succeed.
    """

    code = "INTERNAL_ERROR"
    http_status = 500
    retryable = False
    default_message = "Something went wrong. Please try again."

    def __init__(self, message: str | None = None) -> None:
        self.message = sanitize_error_message(message or self.default_message)
        super().__init__(self.message)


class InvalidIdentifierError(TubeToolsError):
    code = "INVALID_VIDEO_ID"
    http_status = 400
    default_message = "Invalid YouTube video ID."


class InvalidDestinationError(TubeToolsError):
    code = "INVALID_DESTINATION"
    default_message = "Invalid request destination."


class UpstreamTimeoutError(TubeToolsError):
    code = "TIMEOUT"
    retryable = True
    default_message = "Request timed out. Please try again."


class NetworkError(TubeToolsError):
    code = "NETWORK_ERROR"
    retryable = True
    default_message = "Network error while contacting YouTube."


class FetchError(TubeToolsError):
    code = "FETCH_ERROR"
    default_message = "Upstream request failed."

    def __init__(self, message: str | None = None, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        # Server-side failures are transient; other statuses are permanent.
        self.retryable = status_code is not None and status_code >= 500


class UpstreamNotFoundError(FetchError):
    default_message = "Upstream resource not found."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message, status_code=404)


class RateLimitedError(TubeToolsError):
    code = "RATE_LIMITED"
    http_status = 429
    default_message = "Too many requests. Please try again later."

    def __init__(self, message: str | None = None, *, retry_after_seconds: int | None = None) -> None:
        super().__init__(message)
        self.retry_after_seconds = retry_after_seconds


class VideoNotFoundError(TubeToolsError):
    code = "VIDEO_NOT_FOUND"
    http_status = 404
    default_message = "Video not found or private."


class NoTranscriptError(TubeToolsError):
    code = "NO_TRANSCRIPT"
    http_status = 404
    default_message = "No transcript available for this video."


class ParseError(TubeToolsError):
    code = "PARSE_ERROR"
    default_message = "Failed to parse upstream data."
