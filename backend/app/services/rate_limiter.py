from __future__ import annotations

import logging
import math
import threading
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from time import time

LOGGER = logging.getLogger("tubetools.rate_limiter")

CLIENT_ADDRESS_HEADERS: tuple[str, ...] = (
    "x-forwarded-for",
    "x-real-ip",
    "x-client-ip",
    "cf-connecting-ip",
    "x-forwarded",
    "forwarded-for",
    "forwarded",
)
UNKNOWN_CLIENT = "unknown"


@dataclass
class RateLimitEntry:
    count: int
    window_reset_at: float


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    retry_after_seconds: int
    reset_after_seconds: int


class RateLimiter:
    """Per-client request counter over fixed windows that restart on expiry.

    The first request from an unseen key (or the first one after its window
    elapsed) opens a new window. Entries are mutated under a single lock and
    expired ones are dropped by a background sweep thread.
    """

    def __init__(
        self,
        *,
        max_requests: int = 100,
        window_seconds: float = 900,
        sweep_interval_seconds: float = 300,
        clock: Callable[[], float] = time,
    ) -> None:
        self._max_requests = max(1, max_requests)
        self._window_seconds = max(0.001, window_seconds)
        self._sweep_interval_seconds = max(0.01, sweep_interval_seconds)
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, RateLimitEntry] = {}
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    def take(self, key: str) -> RateLimitDecision:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or now > entry.window_reset_at:
                entry = RateLimitEntry(count=1, window_reset_at=now + self._window_seconds)
                self._entries[key] = entry
                return self._decision(entry, now=now, allowed=True)

            if entry.count >= self._max_requests:
                return self._decision(entry, now=now, allowed=False)

            entry.count += 1
            return self._decision(entry, now=now, allowed=True)

    def is_allowed(self, key: str) -> bool:
        return self.take(key).allowed

    def remaining(self, key: str) -> int:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or now > entry.window_reset_at:
                return self._max_requests
            return max(0, self._max_requests - entry.count)

    def reset_at(self, key: str) -> float:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or now > entry.window_reset_at:
                return now + self._window_seconds
            return entry.window_reset_at

    def sweep(self) -> int:
        now = self._clock()
        with self._lock:
            expired_keys = [
                key for key, entry in self._entries.items() if now > entry.window_reset_at
            ]
            for key in expired_keys:
                del self._entries[key]
            tracked = len(self._entries)
        if expired_keys:
            LOGGER.debug(
                "rate limiter sweep removed=%s tracked=%s", len(expired_keys), tracked
            )
        return len(expired_keys)

    def tracked_keys(self) -> int:
        with self._lock:
            return len(self._entries)

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_sweep_loop, name="tubetools-rate-limit-sweep")
        self._thread.daemon = True
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=3)
            self._thread = None

    def _run_sweep_loop(self) -> None:
        while not self._stop_event.wait(self._sweep_interval_seconds):
            try:
                self.sweep()
            except Exception:
                LOGGER.exception("rate limiter sweep failed")

    def _decision(self, entry: RateLimitEntry, *, now: float, allowed: bool) -> RateLimitDecision:
        reset_after_seconds = max(1, math.ceil(entry.window_reset_at - now))
        return RateLimitDecision(
            allowed=allowed,
            limit=self._max_requests,
            remaining=max(0, self._max_requests - entry.count),
            retry_after_seconds=0 if allowed else reset_after_seconds,
            reset_after_seconds=reset_after_seconds,
        )


def resolve_client_key(
    headers: Mapping[str, str],
    *,
    fallback: str | None = None,
    header_names: Iterable[str] = CLIENT_ADDRESS_HEADERS,
) -> str:
    """Pick the client address used as the rate-limit key.

    The first proxy header with a usable value wins; only its first
    comma-separated segment is used.
    """
    for header_name in header_names:
        raw_value = headers.get(header_name)
        if not raw_value:
            continue
        candidate = raw_value.split(",")[0].strip()
        if candidate and candidate.lower() != UNKNOWN_CLIENT:
            return candidate
    if fallback:
        return fallback
    return UNKNOWN_CLIENT
