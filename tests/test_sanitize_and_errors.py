from __future__ import annotations

import pytest

from backend.app.services.errors import (
    FetchError,
    InvalidDestinationError,
    NoTranscriptError,
    RateLimitedError,
    TubeToolsError,
    UpstreamNotFoundError,
    VideoNotFoundError,
)
from backend.app.services.sanitize import (
    mask_client_address,
    mask_user_agent,
    mask_video_id,
    sanitize_error_message,
    sanitize_multiline_text,
    sanitize_output,
    sanitize_text,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("  plain text  ", "plain text"),
        ("<script>alert(1)</script>", "scriptalert(1)/script"),
        ("tab\tand\u0000null", "tabandnull"),
        ("JavaScript:alert(1)", "alert(1)"),
    ],
)
def test_sanitize_text(raw: str, expected: str) -> None:
    assert sanitize_text(raw) == expected


def test_sanitize_multiline_text_keeps_line_breaks() -> None:
    assert sanitize_multiline_text("one<br>\r\ntwo\u0007\n") == "onebr\ntwo"


def test_sanitize_output_strips_every_unsafe_character() -> None:
    sanitized = sanitize_output("""<a href='x'>"Tom" & Jerry</a>""")
    assert sanitized == "a href=xTom  Jerry/a"
    assert len(sanitize_output("x" * 500)) == 200
    assert len(sanitize_output("x" * 500, max_length=10)) == 10


def test_masking_helpers() -> None:
    assert mask_video_id("dQw4w9WgXcQ") == "dQw4w9Wg..."
    assert mask_video_id("<bad>id") == "badid..."
    assert mask_client_address("203.0.113.77") == "203.0.11..."
    assert mask_user_agent("Mozilla/5.0\r\n" + "x" * 100).startswith("Mozilla/5.0xxx")
    assert sanitize_error_message("line\none\ttab") == "lineonetab"


def test_error_messages_are_sanitized_and_capped() -> None:
    error = TubeToolsError("boom\n" + "x" * 500)
    assert "\n" not in error.message
    assert len(error.message) == 200
    assert str(error) == error.message


def test_error_taxonomy_metadata() -> None:
    assert VideoNotFoundError().http_status == 404
    assert VideoNotFoundError().message == "Video not found or private."
    assert NoTranscriptError().code == "NO_TRANSCRIPT"
    assert InvalidDestinationError().retryable is False
    assert RateLimitedError(retry_after_seconds=12).retry_after_seconds == 12

    not_found = UpstreamNotFoundError()
    assert isinstance(not_found, FetchError)
    assert not_found.status_code == 404
    assert not_found.retryable is False
    assert FetchError(status_code=502).retryable is True
    assert FetchError().retryable is False
