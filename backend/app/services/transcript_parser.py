from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Protocol

from pydantic import TypeAdapter, ValidationError

from backend.app.models.upstream_contracts import TranscriptRun
from backend.app.services.errors import ParseError
from backend.app.services.sanitize import sanitize_text

LOGGER = logging.getLogger("tubetools.transcript")

SEGMENT_BLOCK_PATTERN = re.compile(
    r"\"transcriptSegmentRenderer\":\{[^}]*\"snippet\":\{\"runs\":\[[^\]]*\]"
)
RUNS_PATTERN = re.compile(r"\"runs\":\[([^\]]+)\]")
START_MS_PATTERN = re.compile(r"\"startMs\":\"(\d+)\"")
END_MS_PATTERN = re.compile(r"\"endMs\":\"(\d+)\"")
SELECTED_TRACK_PATTERN = re.compile(r"\{\"title\":\"([^\"]{1,120})\",\"selected\":true")
_WHITESPACE_PATTERN = re.compile(r"\s+")
TRANSCRIPT_PARSE_MESSAGE = "Failed to parse transcript data."
_RUNS_ADAPTER: TypeAdapter[list[TranscriptRun]] = TypeAdapter(list[TranscriptRun])


@dataclass(frozen=True)
class TranscriptSegment:
    text: str
    start_seconds: float | None = None
    end_seconds: float | None = None


@dataclass(frozen=True)
class ParsedSegment:
    segment: TranscriptSegment


@dataclass(frozen=True)
class SkippedSegment:
    reason: str


SegmentOutcome = ParsedSegment | SkippedSegment


@dataclass(frozen=True)
class TranscriptExtraction:
    outcomes: tuple[SegmentOutcome, ...] = ()
    track_title: str | None = None

    @property
    def segments(self) -> tuple[TranscriptSegment, ...]:
        return tuple(
            outcome.segment for outcome in self.outcomes if isinstance(outcome, ParsedSegment)
        )

    @property
    def skipped_count(self) -> int:
        return sum(1 for outcome in self.outcomes if isinstance(outcome, SkippedSegment))


class TranscriptPayloadParser(Protocol):
    def parse(self, payload: Any) -> TranscriptExtraction:
        ...


def _milliseconds_to_seconds(match: re.Match[str] | None) -> float | None:
    if match is None:
        return None
    return int(match.group(1)) / 1000


def parse_segment_block(block: str) -> SegmentOutcome:
    runs_match = RUNS_PATTERN.search(block)
    if runs_match is None:
        return SkippedSegment(reason="missing_runs")
    try:
        runs = _RUNS_ADAPTER.validate_json(f"[{runs_match.group(1)}]")
    except ValidationError:
        return SkippedSegment(reason="malformed_runs")

    fragments = [
        sanitize_text(run.text.strip()) for run in runs if run.text is not None and run.text.strip()
    ]
    text = _WHITESPACE_PATTERN.sub(" ", " ".join(fragment for fragment in fragments if fragment))
    text = text.strip()
    if not text:
        return SkippedSegment(reason="empty_text")

    start_seconds = _milliseconds_to_seconds(START_MS_PATTERN.search(block))
    end_seconds = _milliseconds_to_seconds(END_MS_PATTERN.search(block))
    if start_seconds is not None and end_seconds is not None and end_seconds < start_seconds:
        end_seconds = None
    return ParsedSegment(
        TranscriptSegment(text=text, start_seconds=start_seconds, end_seconds=end_seconds)
    )


class RegexTranscriptPayloadParser:
    """Pattern-based extraction over the serialized transcript RPC response.

    The payload is re-serialized compactly and scanned for segment renderer
    blocks; each block is decoded on its own and a malformed block is skipped
    without affecting the others.
    """

    def parse(self, payload: Any) -> TranscriptExtraction:
        try:
            serialized = json.dumps(payload, separators=(",", ":"), ensure_ascii=False)
        except (TypeError, ValueError, RecursionError) as exc:
            raise ParseError(TRANSCRIPT_PARSE_MESSAGE) from exc

        outcomes = tuple(
            parse_segment_block(match.group(0)) for match in SEGMENT_BLOCK_PATTERN.finditer(serialized)
        )
        track_match = SELECTED_TRACK_PATTERN.search(serialized)
        track_title = sanitize_text(track_match.group(1)) if track_match else None

        extraction = TranscriptExtraction(outcomes=outcomes, track_title=track_title or None)
        if extraction.skipped_count:
            LOGGER.debug(
                "transcript segments skipped skipped=%s parsed=%s",
                extraction.skipped_count,
                len(extraction.segments),
            )
        return extraction
