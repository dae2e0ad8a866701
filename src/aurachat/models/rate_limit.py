"""Process-wide outbound rate limiting for the model service."""

from __future__ import annotations

from collections import deque
import threading
import time
from typing import Callable

from aurachat.errors import ModelRateLimited


class ModelRateLimiter:
    """Caps concurrent model calls and requests per sliding window.

    One instance is shared by every request in the process; all state is
    guarded by a lock or a semaphore.
    """

    def __init__(
        self,
        max_concurrency: int = 8,
        requests_per_window: int = 60,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_concurrency = max(1, max_concurrency)
        self.requests_per_window = max(1, requests_per_window)
        self.window_seconds = window_seconds
        self._clock = clock
        self._slots = threading.BoundedSemaphore(self.max_concurrency)
        self._lock = threading.Lock()
        self._sent: deque[float] = deque()

    def acquire(self, timeout_seconds: float | None = None) -> None:
        wait = None if timeout_seconds is None else max(0.0, timeout_seconds)
        if not self._slots.acquire(timeout=wait):
            raise ModelRateLimited("model concurrency limit reached")
        try:
            self._take_window_slot()
        except ModelRateLimited:
            self._slots.release()
            raise

    def release(self) -> None:
        self._slots.release()

    def remaining(self) -> int:
        with self._lock:
            self._expire(self._clock())
            return self.requests_per_window - len(self._sent)

    def _take_window_slot(self) -> None:
        with self._lock:
            now = self._clock()
            self._expire(now)
            if len(self._sent) >= self.requests_per_window:
                raise ModelRateLimited("model request window exhausted")
            self._sent.append(now)

    def _expire(self, now: float) -> None:
        cutoff = now - self.window_seconds
        while self._sent and self._sent[0] <= cutoff:
            self._sent.popleft()

    def __enter__(self) -> "ModelRateLimiter":
        self.acquire()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()
