"""Request-level wall-clock and round budget."""

from __future__ import annotations

from dataclasses import dataclass, field
import time
from typing import Callable, Union


@dataclass(frozen=True)
class Allowed:
    pass


@dataclass(frozen=True)
class Denied:
    reason: str


Authorization = Union[Allowed, Denied]

DEADLINE_PASSED = "deadline_passed"
MAX_ROUNDS_REACHED = "max_rounds_reached"


@dataclass
class Budget:
    """Deadline (monotonic seconds) and tool-round ceiling for one request."""

    deadline: float
    max_rounds: int
    rounds_used: int = 0
    round_seconds: list[float] = field(default_factory=list)


class DeadlineManager:
    """The only writer of a request's ``Budget``.

    Tool rounds count against ``max_rounds``; model calls are gated by the
    deadline alone so a final synthesis can follow the last tool round.
    """

    def __init__(self, budget: Budget, clock: Callable[[], float] = time.monotonic) -> None:
        self.budget = budget
        self._clock = clock

    @classmethod
    def start(
        cls,
        budget_seconds: float,
        max_rounds: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> "DeadlineManager":
        budget = Budget(deadline=clock() + budget_seconds, max_rounds=max(0, max_rounds))
        return cls(budget, clock)

    def remaining(self) -> float:
        return max(0.0, self.budget.deadline - self._clock())

    def expired(self) -> bool:
        return self._clock() >= self.budget.deadline

    def authorize_model(self) -> Authorization:
        if self.expired():
            return Denied(DEADLINE_PASSED)
        return Allowed()

    def authorize_tools(self) -> Authorization:
        if self.expired():
            return Denied(DEADLINE_PASSED)
        if self.budget.rounds_used >= self.budget.max_rounds:
            return Denied(MAX_ROUNDS_REACHED)
        return Allowed()

    def call_timeout(self, limit: float | None = None) -> float:
        """Timeout for the next external call: its own limit, capped by the deadline."""
        remaining = self.remaining()
        if limit is None:
            return remaining
        return min(limit, remaining)

    def charge_round(self, elapsed_seconds: float) -> None:
        if self.budget.rounds_used >= self.budget.max_rounds:
            raise RuntimeError("tool round charged past max_rounds")
        self.budget.rounds_used += 1
        self.budget.round_seconds.append(elapsed_seconds)
