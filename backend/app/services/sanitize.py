from __future__ import annotations

import re

_HTML_BRACKETS_PATTERN = re.compile(r"[<>]")
_CONTROL_CHARACTERS_PATTERN = re.compile(r"[\u0000-\u001F\u007F-\u009F]")
_JAVASCRIPT_PROTOCOL_PATTERN = re.compile(r"javascript:", re.IGNORECASE)
_OUTPUT_UNSAFE_PATTERN = re.compile(r"[<>\"'&]")
_LOG_BREAK_PATTERN = re.compile(r"[\r\n\t]")
_VIDEO_ID_UNSAFE_PATTERN = re.compile(r"[^A-Za-z0-9_-]")
_ADDRESS_UNSAFE_PATTERN = re.compile(r"[^0-9A-Fa-f.:]")

MAX_ERROR_MESSAGE_LENGTH = 200


def sanitize_text(text: str) -> str:
    """Strip HTML brackets, control characters and `javascript:` from upstream text."""
    cleaned = _HTML_BRACKETS_PATTERN.sub("", text)
    cleaned = _CONTROL_CHARACTERS_PATTERN.sub("", cleaned)
    cleaned = _JAVASCRIPT_PROTOCOL_PATTERN.sub("", cleaned)
    return cleaned.strip()


def sanitize_multiline_text(text: str) -> str:
    """Like `sanitize_text` but keeps line breaks, for descriptions."""
    lines = [sanitize_text(line) for line in text.replace("\r\n", "\n").split("\n")]
    return "\n".join(lines).strip()


def sanitize_output(text: str, *, max_length: int = 200) -> str:
    """Boundary sanitization for user-echoed strings: no `<>"'&`, capped length."""
    return _OUTPUT_UNSAFE_PATTERN.sub("", text)[:max_length]


def sanitize_error_message(message: object) -> str:
    return _LOG_BREAK_PATTERN.sub("", str(message))[:MAX_ERROR_MESSAGE_LENGTH]


def mask_video_id(video_id: str) -> str:
    return f"{_VIDEO_ID_UNSAFE_PATTERN.sub('', video_id)[:8]}..."


def mask_client_address(address: str) -> str:
    return f"{_ADDRESS_UNSAFE_PATTERN.sub('', address)[:8]}..."


def mask_user_agent(user_agent: str) -> str:
    return f"{_LOG_BREAK_PATTERN.sub('', user_agent)[:50]}..."
