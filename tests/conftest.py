from __future__ import annotations

from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import httpx
import pytest
from fastapi.testclient import TestClient

from backend.app.dependencies import (
    get_metadata_service,
    get_transcript_service,
    reset_cached_dependencies,
)
from backend.app.main import create_app
from backend.app.services.http_fetcher import ResilientFetcher
from backend.app.services.metadata_service import MetadataService
from backend.app.services.transcript_service import TranscriptService
from tests.youtube_stubs import FetcherFactory, Handler, youtube_handler


async def _no_sleep(_: float) -> None:
    return None


@pytest.fixture(autouse=True)
def _isolated_runtime(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:  # pyright: ignore[reportUnusedFunction]
    monkeypatch.setenv("TUBETOOLS_DATA_DIR", str(tmp_path / "runtime-data"))
    monkeypatch.setenv("TUBETOOLS_ENVIRONMENT", "test")
    monkeypatch.setenv("TUBETOOLS_TELEMETRY_SINK", "none")
    for name in ("TUBETOOLS_RATE_LIMIT_MAX_REQUESTS", "TUBETOOLS_LOG_DIR"):
        monkeypatch.delenv(name, raising=False)
    reset_cached_dependencies()
    yield
    reset_cached_dependencies()


@pytest.fixture
def make_fetcher() -> FetcherFactory:
    def _factory(handler: Handler, **overrides: Any) -> ResilientFetcher:
        options: dict[str, Any] = {
            "max_retries": 2,
            "backoff_base_seconds": 0.01,
            "backoff_max_seconds": 0.02,
            "sleep": _no_sleep,
            "jitter": lambda: 0.0,
        }
        options.update(overrides)
        return ResilientFetcher(transport=httpx.MockTransport(handler), **options)

    return _factory


@pytest.fixture
def api_client_factory(
    make_fetcher: FetcherFactory,
) -> Iterator[Callable[..., TestClient]]:
    clients: list[TestClient] = []

    def _factory(handler: Handler | None = None, **client_options: Any) -> TestClient:
        fetcher = make_fetcher(handler or youtube_handler())
        metadata_service = MetadataService(fetcher)
        transcript_service = TranscriptService(fetcher, client_version="2.20241215.01.00")
        reset_cached_dependencies()
        app = create_app()
        app.dependency_overrides[get_metadata_service] = lambda: metadata_service
        app.dependency_overrides[get_transcript_service] = lambda: transcript_service
        test_client = TestClient(app, **client_options)
        test_client.__enter__()
        clients.append(test_client)
        return test_client

    yield _factory

    for test_client in clients:
        test_client.__exit__(None, None, None)
