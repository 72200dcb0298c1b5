"""Per-key attempt counting for password-protected views."""

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass


@dataclass
class _Window:
    count: int
    started_at: float


@dataclass(frozen=True, slots=True)
class AttemptResult:
    allowed: bool
    retry_after: float | None = None


class AttemptLimiter:
    """
    Fixed-start window counter keyed by an attempt identity (client + secret id).

    The first attempt opens a window. Up to ``max_attempts`` attempts are
    allowed inside it; further attempts are denied until ``window_seconds``
    have passed since the window opened, at which point the next attempt
    opens a fresh window.

    Process-local and best-effort: it slows password guessing, it is not a
    distributed guarantee. Owned by the application instance, so tests can
    build their own with a fake clock.
    """

    def __init__(
        self,
        window_seconds: float = 300,
        max_attempts: int = 5,
        clock: Callable[[], float] = time.monotonic,
        evict_threshold: int = 10_000,
    ) -> None:
        self.window_seconds = window_seconds
        self.max_attempts = max_attempts
        self._clock = clock
        self._evict_threshold = evict_threshold
        self._windows: dict[str, _Window] = {}
        self._lock = threading.Lock()

    def hit(self, key: str) -> AttemptResult:
        """Record an attempt for ``key`` and report whether it may proceed."""
        with self._lock:
            now = self._clock()
            if len(self._windows) >= self._evict_threshold:
                self._evict_locked(now)

            window = self._windows.get(key)
            if window is None:
                self._windows[key] = _Window(count=1, started_at=now)
                return AttemptResult(allowed=True)

            elapsed = now - window.started_at
            if elapsed > self.window_seconds:
                window.count = 1
                window.started_at = now
                return AttemptResult(allowed=True)

            if window.count >= self.max_attempts:
                return AttemptResult(allowed=False, retry_after=self.window_seconds - elapsed)

            window.count += 1
            return AttemptResult(allowed=True)

    def evict_expired(self) -> int:
        """Drop windows that have fully elapsed. Returns how many were removed."""
        with self._lock:
            return self._evict_locked(self._clock())

    def _evict_locked(self, now: float) -> int:
        stale = [
            key
            for key, window in self._windows.items()
            if now - window.started_at > self.window_seconds
        ]
        for key in stale:
            del self._windows[key]
        return len(stale)

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)
