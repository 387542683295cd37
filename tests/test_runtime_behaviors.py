from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest
import structlog
from fastapi.testclient import TestClient
from pydantic import ValidationError

from backend.app.config import AppSettings, load_settings
from backend.app.dependencies import get_fetcher, get_metadata_service
from backend.app.logging_config import (
    LOG_FILE_NAME,
    TELEMETRY_LOG_FILE_NAME,
    _stream_supports_color,  # pyright: ignore[reportPrivateUsage]
    configure_application_logging,
)
from backend.app.main import create_app


def test_load_settings_defaults(tmp_path: Path) -> None:
    settings = load_settings()

    assert settings.environment == "test"
    assert settings.data_dir == (tmp_path / "runtime-data").resolve()
    assert settings.log_dir == (tmp_path / "runtime-data" / "logs").resolve()
    assert settings.rate_limit_max_requests == 100
    assert settings.rate_limit_window_seconds == 900
    assert settings.transcript_cache_max_age_seconds == 3600
    assert settings.video_info_cache_max_age_seconds == 7200
    assert settings.allowed_origins == ["http://localhost:3000", "https://localhost:3000"]
    assert settings.expose_error_details is False


def test_load_settings_env_overrides(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TUBETOOLS_ENVIRONMENT", " Development ")
    monkeypatch.setenv("TUBETOOLS_LOG_DIR", str(tmp_path / "elsewhere"))
    monkeypatch.setenv("TUBETOOLS_RATE_LIMIT_MAX_REQUESTS", "5")
    monkeypatch.setenv("TUBETOOLS_CORS_ALLOWED_ORIGINS", "https://a.example/, ,https://b.example")
    monkeypatch.setenv("TUBETOOLS_YOUTUBE_CLIENT_VERSION", "  2.20250101.00.00 ")

    settings = load_settings()

    assert settings.environment == "development"
    assert settings.expose_error_details is True
    assert settings.log_dir == (tmp_path / "elsewhere").resolve()
    assert settings.rate_limit_max_requests == 5
    assert settings.allowed_origins == ["https://a.example", "https://b.example"]
    assert settings.youtube_client_version == "2.20250101.00.00"


def test_load_settings_bool_branches(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TUBETOOLS_TELEMETRY_ENABLED", "off")
    assert load_settings().telemetry_enabled is False

    monkeypatch.setenv("TUBETOOLS_TELEMETRY_ENABLED", "yes")
    assert load_settings().telemetry_enabled is True

    monkeypatch.setenv("TUBETOOLS_TELEMETRY_ENABLED", "maybe")
    assert load_settings().telemetry_enabled is True


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("TUBETOOLS_ENVIRONMENT", "staging"),
        ("TUBETOOLS_TELEMETRY_SINK", "otel"),
        ("TUBETOOLS_RATE_LIMIT_MAX_REQUESTS", "0"),
        ("TUBETOOLS_YOUTUBE_USER_AGENT", "   "),
    ],
)
def test_load_settings_rejects_invalid_values(
    monkeypatch: pytest.MonkeyPatch,
    name: str,
    value: str,
) -> None:
    monkeypatch.setenv(name, value)
    with pytest.raises(ValidationError):
        load_settings()


def test_main_lifespan_starts_and_stops_rate_limiter(monkeypatch: pytest.MonkeyPatch) -> None:
    class FakeRateLimiter:
        started = False
        stopped = False

        def start(self) -> None:
            FakeRateLimiter.started = True

        def stop(self) -> None:
            FakeRateLimiter.stopped = True

    monkeypatch.setattr("backend.app.main.get_rate_limiter", lambda: FakeRateLimiter())

    app = create_app()
    with TestClient(app) as client:
        response = client.get("/health")
        assert response.status_code == 200
        assert FakeRateLimiter.started is True
        assert FakeRateLimiter.stopped is False

    assert FakeRateLimiter.stopped is True


def test_main_lifespan_replaces_closed_fetcher_between_runs() -> None:
    app = create_app()

    with TestClient(app):
        first_fetcher = get_fetcher()
        first_service = get_metadata_service()

    assert first_fetcher._client.is_closed  # pyright: ignore[reportPrivateUsage]

    with TestClient(app) as client:
        assert client.get("/health").status_code == 200
        second_fetcher = get_fetcher()
        assert second_fetcher is not first_fetcher
        assert not second_fetcher._client.is_closed  # pyright: ignore[reportPrivateUsage]
        assert get_metadata_service() is not first_service


def test_configure_application_logging_creates_files(tmp_path: Path) -> None:
    settings = AppSettings(
        data_dir=tmp_path,
        log_dir=tmp_path / "logs",
        log_level="INFO",
        telemetry_sink="log",
    )

    log_file = configure_application_logging(settings)
    logging.getLogger("tubetools.test").info("runtime-log-test video=%s", "abc")
    structlog.get_logger("tubetools.telemetry").info(
        "telemetry",
        telemetry_event="test.event",
    )

    app_logger = logging.getLogger("tubetools")
    assert app_logger.propagate is False
    assert len(app_logger.handlers) == 2
    assert {handler.level for handler in app_logger.handlers} == {logging.INFO, logging.DEBUG}
    for handler in app_logger.handlers:
        handler.flush()

    telemetry_logger = logging.getLogger("tubetools.telemetry")
    assert telemetry_logger.propagate is False
    assert len(telemetry_logger.handlers) == 1
    for handler in telemetry_logger.handlers:
        handler.flush()

    assert log_file == settings.log_dir / LOG_FILE_NAME
    parsed_events = [
        json.loads(line)
        for line in log_file.read_text(encoding="utf-8").splitlines()
        if line.strip()
    ]
    runtime_event = next(
        event for event in parsed_events if event.get("event") == "runtime-log-test video=abc"
    )
    assert runtime_event["logger"] == "tubetools.test"
    assert runtime_event["level"] == "info"
    assert runtime_event["pathname"]
    assert runtime_event["lineno"]
    assert all(event.get("telemetry_event") != "test.event" for event in parsed_events)

    telemetry_log_file = settings.log_dir / TELEMETRY_LOG_FILE_NAME
    telemetry_events = [
        json.loads(line)
        for line in telemetry_log_file.read_text(encoding="utf-8").splitlines()
        if line.strip()
    ]
    telemetry_event = next(
        event for event in telemetry_events if event.get("telemetry_event") == "test.event"
    )
    assert telemetry_event["logger"] == "tubetools.telemetry"


def test_configure_application_logging_is_idempotent(tmp_path: Path) -> None:
    settings = AppSettings(data_dir=tmp_path, log_dir=tmp_path / "logs")

    configure_application_logging(settings)
    configure_application_logging(settings)

    assert len(logging.getLogger("tubetools").handlers) == 2
    assert len(logging.getLogger("tubetools.telemetry").handlers) == 1


def test_configure_application_logging_skips_telemetry_file_without_log_sink(
    tmp_path: Path,
) -> None:
    settings = AppSettings(data_dir=tmp_path, log_dir=tmp_path / "logs", telemetry_sink="none")

    configure_application_logging(settings)

    telemetry_logger = logging.getLogger("tubetools.telemetry")
    assert [type(handler) for handler in telemetry_logger.handlers] == [logging.NullHandler]
    assert not (settings.log_dir / TELEMETRY_LOG_FILE_NAME).exists()


def test_stream_supports_color_detects_tty() -> None:
    class _TTY:
        def isatty(self) -> bool:
            return True

    class _Pipe:
        def isatty(self) -> bool:
            return False

    class _Broken:
        def isatty(self) -> bool:
            raise RuntimeError("boom")

    assert _stream_supports_color(_TTY()) is True
    assert _stream_supports_color(_Pipe()) is False
    assert _stream_supports_color(_Broken()) is False
    assert _stream_supports_color(object()) is False
