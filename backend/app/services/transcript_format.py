from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from typing import cast

from backend.app.services.transcript_parser import TranscriptSegment

SENTENCES_PER_PARAGRAPH = 5
FALLBACK_SECONDS_PER_SENTENCE = 3
_SENTENCE_BOUNDARY_PATTERN = re.compile(r"(?<=[.!?])\s+")
_WHITESPACE_PATTERN = re.compile(r"\s+")


def normalize_whitespace(text: str) -> str:
    return _WHITESPACE_PATTERN.sub(" ", text).strip()


def split_sentences(text: str) -> list[str]:
    return [sentence for sentence in _SENTENCE_BOUNDARY_PATTERN.split(text) if sentence.strip()]


def format_paragraphs(fragments: Iterable[str]) -> str:
    """Join fragments, reflow into paragraphs of five sentences, blank line between."""
    all_text = normalize_whitespace(" ".join(fragments))
    if not all_text:
        return ""
    sentences = split_sentences(all_text)
    paragraphs = [
        " ".join(sentences[index : index + SENTENCES_PER_PARAGRAPH]).strip()
        for index in range(0, len(sentences), SENTENCES_PER_PARAGRAPH)
    ]
    return "\n\n".join(paragraph for paragraph in paragraphs if paragraph)


def count_words(text: str) -> int:
    return len(text.split())


def format_srt_timestamp(seconds: float) -> str:
    total_milliseconds = max(0, int(round(seconds * 1000)))
    hours, remainder = divmod(total_milliseconds, 3_600_000)
    minutes, remainder = divmod(remainder, 60_000)
    secs, milliseconds = divmod(remainder, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d},{milliseconds:03d}"


def _timed_cues(segments: Sequence[TranscriptSegment]) -> list[tuple[float, float, str]] | None:
    if not segments or any(segment.start_seconds is None for segment in segments):
        return None
    cues: list[tuple[float, float, str]] = []
    for index, segment in enumerate(segments):
        start = cast(float, segment.start_seconds)
        end = segment.end_seconds
        if end is None:
            next_start = segments[index + 1].start_seconds if index + 1 < len(segments) else None
            end = next_start if next_start is not None else start + FALLBACK_SECONDS_PER_SENTENCE
        cues.append((start, max(start, end), segment.text))
    return cues


def _spaced_cues(transcript_text: str) -> list[tuple[float, float, str]]:
    sentences = split_sentences(normalize_whitespace(transcript_text))
    return [
        (
            index * FALLBACK_SECONDS_PER_SENTENCE,
            (index + 1) * FALLBACK_SECONDS_PER_SENTENCE,
            sentence.strip(),
        )
        for index, sentence in enumerate(sentences)
    ]


def render_srt(transcript_text: str, segments: Sequence[TranscriptSegment] = ()) -> str:
    """Render SubRip cues.

    Upstream segment timings are used when every segment has a start time;
    otherwise each sentence gets a fixed three-second slot.
    """
    cues = _timed_cues(segments) or _spaced_cues(transcript_text)
    blocks = [
        f"{number}\n{format_srt_timestamp(start)} --> {format_srt_timestamp(end)}\n{text}\n"
        for number, (start, end, text) in enumerate(cues, start=1)
    ]
    return "\n".join(blocks)
