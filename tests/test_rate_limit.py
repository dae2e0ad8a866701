import threading

import pytest

from aurachat.errors import ModelRateLimited
from aurachat.models.rate_limit import ModelRateLimiter


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_window_limit_and_expiry():
    clock = FakeClock()
    limiter = ModelRateLimiter(max_concurrency=5, requests_per_window=2, window_seconds=60, clock=clock)
    for _ in range(2):
        limiter.acquire(0)
        limiter.release()
    with pytest.raises(ModelRateLimited):
        limiter.acquire(0)
    clock.now = 61
    limiter.acquire(0)
    limiter.release()
    assert limiter.remaining() == 1


def test_concurrency_slots_are_shared_across_threads():
    limiter = ModelRateLimiter(max_concurrency=1, requests_per_window=100)
    limiter.acquire(0)
    errors = []

    def contender() -> None:
        try:
            limiter.acquire(0.05)
        except ModelRateLimited as exc:
            errors.append(exc)

    thread = threading.Thread(target=contender)
    thread.start()
    thread.join()
    assert len(errors) == 1
    limiter.release()
    limiter.acquire(0)
    limiter.release()


def test_window_rejection_frees_concurrency_slot():
    limiter = ModelRateLimiter(max_concurrency=1, requests_per_window=1)
    limiter.acquire(0)
    limiter.release()
    with pytest.raises(ModelRateLimited):
        limiter.acquire(0)
    # the semaphore slot was given back
    with pytest.raises(ModelRateLimited, match="window"):
        limiter.acquire(0)
