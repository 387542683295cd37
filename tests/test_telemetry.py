from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from backend.app.telemetry import TelemetryClient, build_telemetry_client


class _CaptureSink:
    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        self.events.append((event_name, dict(attributes)))


def test_telemetry_client_redacts_sensitive_fields() -> None:
    sink = _CaptureSink()
    client = TelemetryClient(enabled=True, sink=sink)

    client.emit(
        "upstream.fetch.start",
        request_id="req_123",
        payload={"params": "sensitive"},
        transcript="very long transcript text",
        Client_IP="203.0.113.1",
        query_text="cooking",
        attempt=3,
    )

    assert len(sink.events) == 1
    event_name, attributes = sink.events[0]
    assert event_name == "upstream.fetch.start"
    assert attributes["request_id"] == "req_123"
    assert attributes["attempt"] == 3
    assert attributes["payload"] == "[redacted]"
    assert attributes["transcript"] == "[redacted]"
    assert attributes["client_ip"] == "[redacted]"
    assert attributes["query_text"] == "[redacted]"


def test_telemetry_client_compacts_values() -> None:
    sink = _CaptureSink()
    client = TelemetryClient(enabled=True, sink=sink)

    client.emit(
        "http.request.finish",
        path="/api/video-info\n   extra",
        host="x" * 400,
        error=RuntimeError("boom"),
        duration_ms=12.5,
        cached=False,
        missing=None,
    )

    _, attributes = sink.events[0]
    assert attributes["path"] == "/api/video-info extra"
    assert attributes["host"] == "x" * 160 + "..."
    assert attributes["error"] == "RuntimeError"
    assert attributes["duration_ms"] == 12.5
    assert attributes["cached"] is False
    assert attributes["missing"] is None


def test_disabled_telemetry_client_does_not_emit() -> None:
    sink = _CaptureSink()
    client = TelemetryClient(enabled=False, sink=sink)

    client.emit("http.request.start", request_id="req_1")
    assert sink.events == []


def test_build_telemetry_client_sinks() -> None:
    assert build_telemetry_client(enabled=True, sink="none").enabled is False
    assert build_telemetry_client(enabled=False, sink="log").enabled is False
    assert build_telemetry_client(enabled=True, sink="log").enabled is True
