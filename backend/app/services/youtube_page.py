from __future__ import annotations

import html
import json
import re
from typing import Any

WATCH_PAGE_URL = "https://www.youtube.com/watch"
BROWSER_HTML_HEADERS: dict[str, str] = {
    "Accept": (
        "text/html,application/xhtml+xml,application/xml;q=0.9,"
        "image/avif,image/webp,image/apng,*/*;q=0.8"
    ),
    "Accept-Language": "en-US,en;q=0.9",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
    "Sec-Ch-Ua": '"Not A(Brand";v="99", "Google Chrome";v="121", "Chromium";v="121"',
    "Sec-Ch-Ua-Mobile": "?0",
    "Sec-Ch-Ua-Platform": '"Windows"',
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Sec-Fetch-User": "?1",
    "Upgrade-Insecure-Requests": "1",
}

_ASSIGNMENT_PATTERN_TEMPLATE = r"(?:var\s+|window\[\"){name}(?:\"\])?\s*=\s*"
_META_DESCRIPTION_PATTERN = re.compile(
    r"<meta\s+name=\"description\"\s+content=\"([^\"]*)\"",
    re.IGNORECASE,
)
_JSON_DECODER = json.JSONDecoder()


def extract_embedded_json(page_html: str, variable_name: str) -> dict[str, Any] | None:
    """Decode the object literal assigned to a page-level global such as `ytInitialData`.

    Returns None when the assignment is missing or the literal is not valid JSON.
    """
    pattern = re.compile(_ASSIGNMENT_PATTERN_TEMPLATE.format(name=re.escape(variable_name)))
    match = pattern.search(page_html)
    if match is None:
        return None
    start = match.end()
    if start >= len(page_html) or page_html[start] != "{":
        return None
    try:
        decoded, _ = _JSON_DECODER.raw_decode(page_html, start)
    except json.JSONDecodeError:
        return None
    return decoded if isinstance(decoded, dict) else None


def extract_meta_description(page_html: str) -> str | None:
    match = _META_DESCRIPTION_PATTERN.search(page_html)
    if match is None:
        return None
    return html.unescape(match.group(1))


def dig(value: Any, *path: str | int) -> Any:
    """Walk nested dicts/lists, returning None as soon as a step is missing."""
    current = value
    for step in path:
        if isinstance(step, int):
            if not isinstance(current, list) or not -len(current) <= step < len(current):
                return None
            current = current[step]
            continue
        if not isinstance(current, dict):
            return None
        current = current.get(step)
    return current


def nonempty_string(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value
    return None
