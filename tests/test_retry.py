from __future__ import annotations

import asyncio

import pytest

from backend.app.services.errors import (
    FetchError,
    NetworkError,
    NoTranscriptError,
    RateLimitedError,
    UpstreamTimeoutError,
)
from backend.app.services.retry import exponential_backoff, is_retriable_error, retry_async


class _FlakyOperation:
    def __init__(self, failures: list[Exception], result: str = "ok") -> None:
        self.failures = list(failures)
        self.result = result
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.failures:
            raise self.failures.pop(0)
        return self.result


class _RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def test_exponential_backoff_doubles_and_caps() -> None:
    delays = list(exponential_backoff(retries=5, base_seconds=0.5, max_seconds=3, jitter=lambda: 0))
    assert delays == [0.5, 1.0, 2.0, 3.0, 3.0]


def test_exponential_backoff_adds_jitter_within_cap() -> None:
    delays = list(
        exponential_backoff(retries=3, base_seconds=1, max_seconds=10, jitter=lambda: 0.5)
    )
    assert delays == [1.5, 2.5, 4.5]
    assert list(exponential_backoff(retries=0, base_seconds=1, max_seconds=10)) == []


def test_is_retriable_error_classification() -> None:
    assert is_retriable_error(UpstreamTimeoutError()) is True
    assert is_retriable_error(NetworkError()) is True
    assert is_retriable_error(FetchError(status_code=503)) is True
    assert is_retriable_error(FetchError(status_code=400)) is False
    assert is_retriable_error(RateLimitedError()) is False
    assert is_retriable_error(NoTranscriptError()) is False
    assert is_retriable_error(ValueError("boom")) is False


def test_retry_async_recovers_from_transient_failures() -> None:
    operation = _FlakyOperation([NetworkError(), UpstreamTimeoutError()])
    sleep = _RecordingSleep()

    result = asyncio.run(retry_async(operation, delays=[0.1, 0.2, 0.4], sleep=sleep))

    assert result == "ok"
    assert operation.calls == 3
    assert sleep.delays == [0.1, 0.2]


def test_retry_async_reraises_last_failure_when_schedule_exhausted() -> None:
    final_error = FetchError("final", status_code=502)
    operation = _FlakyOperation([NetworkError(), NetworkError(), final_error])
    sleep = _RecordingSleep()

    with pytest.raises(FetchError) as exc_info:
        asyncio.run(retry_async(operation, delays=[0.1, 0.2], sleep=sleep))

    assert exc_info.value is final_error
    assert operation.calls == 3
    assert sleep.delays == [0.1, 0.2]


def test_retry_async_never_retries_permanent_failures() -> None:
    operation = _FlakyOperation([FetchError(status_code=403)])
    sleep = _RecordingSleep()

    with pytest.raises(FetchError):
        asyncio.run(retry_async(operation, delays=[0.1, 0.2], sleep=sleep))

    assert operation.calls == 1
    assert sleep.delays == []


def test_retry_async_honors_custom_predicate() -> None:
    operation = _FlakyOperation([ValueError("transient")])
    sleep = _RecordingSleep()

    result = asyncio.run(
        retry_async(
            operation,
            is_retriable=lambda error: isinstance(error, ValueError),
            delays=(0.3,),
            sleep=sleep,
        )
    )

    assert result == "ok"
    assert sleep.delays == [0.3]
