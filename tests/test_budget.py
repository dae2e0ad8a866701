import pytest

from aurachat.budget import Allowed, Denied, DeadlineManager


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def test_authorizes_until_deadline():
    clock = FakeClock()
    manager = DeadlineManager.start(10, max_rounds=2, clock=clock)
    assert manager.authorize_model() == Allowed()
    assert manager.authorize_tools() == Allowed()
    clock.advance(10)
    assert manager.authorize_model() == Denied("deadline_passed")
    assert manager.authorize_tools() == Denied("deadline_passed")


def test_round_ceiling_applies_to_tools_only():
    clock = FakeClock()
    manager = DeadlineManager.start(10, max_rounds=1, clock=clock)
    manager.charge_round(0.5)
    assert manager.authorize_tools() == Denied("max_rounds_reached")
    assert manager.authorize_model() == Allowed()
    assert manager.budget.rounds_used == 1
    assert manager.budget.round_seconds == [0.5]


def test_charge_past_ceiling_raises():
    manager = DeadlineManager.start(10, max_rounds=0, clock=FakeClock())
    with pytest.raises(RuntimeError):
        manager.charge_round(0.1)
    assert manager.budget.rounds_used == 0


def test_call_timeout_is_capped_by_remaining_time():
    clock = FakeClock()
    manager = DeadlineManager.start(10, max_rounds=2, clock=clock)
    assert manager.call_timeout(30) == 10
    assert manager.call_timeout(5) == 5
    clock.advance(8)
    assert manager.call_timeout(5) == pytest.approx(2)
    clock.advance(5)
    assert manager.remaining() == 0
    assert manager.call_timeout() == 0
