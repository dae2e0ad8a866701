"""Tool execution with per-call timeouts and uniform result envelopes."""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FuturesTimeout
from dataclasses import dataclass, field
import json
import threading
import time
from typing import Any, Mapping

from pydantic import BaseModel

from aurachat.errors import (
    DegradeReason,
    ProviderError,
    RejectReason,
    ToolArgumentsError,
)
from aurachat.models.base import ToolCall
from aurachat.runtime.audit import AuditRecord, AuditRecorder, utc_now
from aurachat.runtime.observability import MetricsCollector
from aurachat.tools.base import Tool
from aurachat.tools.registry import ToolRegistry
from aurachat.tools.results import Degraded, Rejected, Success, ToolResult
from aurachat.util.logging import get_logger

logger = get_logger(__name__)

CallKey = tuple[str, str]


def call_key(call: ToolCall) -> CallKey:
    """Identity of a tool call: name plus canonical arguments."""
    return call.name, json.dumps(call.arguments, sort_keys=True, default=str)


@dataclass
class _InFlight:
    """One submitted call.

    ``timeout`` runs from the moment a worker picks the call up; ``round_deadline``
    bounds the whole wait, queueing included, by the remaining budget.
    """

    call: ToolCall
    submitted: float
    started_at: str
    timeout: float
    round_deadline: float
    future: Future | None = None
    running: threading.Event = field(default_factory=threading.Event)
    run_started: float | None = None


class ToolExecutor:
    """Runs tool calls against their providers.

    Provider failures never raise out of this class; they come back as
    ``Degraded`` results. Unknown tools and bad arguments come back as
    ``Rejected`` without touching the network.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        audit: AuditRecorder | None = None,
        metrics: MetricsCollector | None = None,
        max_workers: int = 4,
    ) -> None:
        self.registry = registry
        self.audit = audit
        self.metrics = metrics or MetricsCollector()
        self.max_workers = max(1, max_workers)

    def execute(
        self,
        call: ToolCall,
        timeout_seconds: float | None = None,
        *,
        request_id: str | None = None,
        user_id: str | None = None,
    ) -> ToolResult:
        return self.execute_round(
            [call], timeout_seconds, request_id=request_id, user_id=user_id
        )[0]

    def execute_round(
        self,
        calls: list[ToolCall],
        timeout_cap: float | None = None,
        *,
        reuse: Mapping[CallKey, ToolResult] | None = None,
        request_id: str | None = None,
        user_id: str | None = None,
    ) -> list[ToolResult]:
        """Execute one round of calls concurrently.

        Returns one result per call, in request order. Identical calls in the
        round share one provider invocation; calls found in ``reuse`` are not
        executed at all. Each call waits at most its own timeout, capped by
        ``timeout_cap``.
        """
        keys = [call_key(call) for call in calls]
        resolved: dict[CallKey, ToolResult] = {}
        in_flight: dict[CallKey, _InFlight] = {}
        pool: ThreadPoolExecutor | None = None
        audit_context = {"request_id": request_id, "user_id": user_id}

        try:
            for call, key in zip(calls, keys):
                if key in resolved or key in in_flight:
                    self.metrics.inc("tool_dedup_hits")
                    continue
                if reuse is not None and key in reuse:
                    self.metrics.inc("tool_dedup_hits")
                    resolved[key] = reuse[key]
                    continue
                spec = self.registry.resolve(call.name)
                tool = self.registry.get(call.name)
                if spec is None or tool is None:
                    resolved[key] = self._reject(call, RejectReason.UNKNOWN_TOOL, audit_context)
                    continue
                try:
                    validated = spec.validate(call.arguments)
                except ToolArgumentsError as exc:
                    logger.info("Rejected %s arguments: %s", call.name, exc.errors)
                    resolved[key] = self._reject(call, exc.reason, audit_context)
                    continue
                if timeout_cap is not None and timeout_cap <= 0:
                    resolved[key] = self._skip(call, audit_context)
                    continue
                if pool is None:
                    pool = ThreadPoolExecutor(
                        max_workers=min(self.max_workers, len(set(keys))),
                        thread_name_prefix="tool",
                    )
                self.metrics.inc("tool_calls")
                submitted = time.monotonic()
                flight = _InFlight(
                    call=call,
                    submitted=submitted,
                    started_at=utc_now().isoformat(),
                    timeout=spec.timeout_seconds,
                    round_deadline=submitted + timeout_cap
                    if timeout_cap is not None
                    else float("inf"),
                )
                flight.future = pool.submit(_invoke, flight, tool, validated)
                in_flight[key] = flight

            for key, flight in in_flight.items():
                resolved[key] = self._collect(flight, audit_context)
        finally:
            if pool is not None:
                # Timed-out calls finish on their own provider timeout.
                pool.shutdown(wait=False, cancel_futures=True)

        return [resolved[key] for key in keys]

    def _collect(self, flight: _InFlight, audit_context: dict[str, Any]) -> ToolResult:
        result: ToolResult
        try:
            response = flight.future.result(timeout=_wait_for(flight))
        except FuturesTimeout:
            flight.future.cancel()
            result = Degraded(DegradeReason.PROVIDER_TIMEOUT.value)
        except ProviderError as exc:
            logger.warning("Provider for %s failed: %s", flight.call.name, exc)
            result = Degraded(exc.reason.value)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unexpected failure in tool %s: %s", flight.call.name, exc)
            result = Degraded(DegradeReason.PROVIDER_ERROR.value)
        else:
            if response.success:
                result = Success(response.data)
            else:
                logger.warning(
                    "Provider for %s reported failure: %s", flight.call.name, response.message
                )
                result = Degraded(DegradeReason.PROVIDER_UNAVAILABLE.value)

        elapsed = time.monotonic() - flight.submitted
        self.metrics.observe(f"tool_latency.{flight.call.name}", elapsed)
        if isinstance(result, Degraded):
            self.metrics.inc("tool_degraded")
        self._audit(
            AuditRecord(
                tool=flight.call.name,
                arguments=flight.call.arguments,
                started_at=flight.started_at,
                duration_ms=int(elapsed * 1000),
                outcome=result.status,
                reason=getattr(result, "reason", None),
                **audit_context,
            )
        )
        return result

    def _skip(self, call: ToolCall, audit_context: dict[str, Any]) -> Degraded:
        self.metrics.inc("tool_degraded")
        self._audit(
            AuditRecord(
                tool=call.name,
                arguments=call.arguments,
                started_at=utc_now().isoformat(),
                duration_ms=0,
                outcome=Degraded.status,
                reason=DegradeReason.BUDGET_EXHAUSTED.value,
                **audit_context,
            )
        )
        return Degraded(DegradeReason.BUDGET_EXHAUSTED.value)

    def _reject(
        self, call: ToolCall, reason: RejectReason, audit_context: dict[str, Any]
    ) -> Rejected:
        self.metrics.inc("tool_rejected")
        self._audit(
            AuditRecord(
                tool=call.name,
                arguments=call.arguments,
                started_at=utc_now().isoformat(),
                duration_ms=0,
                outcome=Rejected.status,
                reason=reason.value,
                **audit_context,
            )
        )
        return Rejected(reason.value)

    def _audit(self, record: AuditRecord) -> None:
        if self.audit is None:
            return
        try:
            self.audit.record(record)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Audit recording failed for %s: %s", record.tool, exc)


def _wait_for(flight: _InFlight) -> float:
    """Seconds left for a call: its own timeout once running, capped by the round."""
    queue_wait = None
    if flight.round_deadline != float("inf"):
        queue_wait = max(0.0, flight.round_deadline - time.monotonic())
    if not flight.running.wait(timeout=queue_wait):
        return 0.0
    deadline = min(flight.run_started + flight.timeout, flight.round_deadline)
    return max(0.0, deadline - time.monotonic())


def _invoke(flight: _InFlight, tool: Tool, validated: BaseModel):
    flight.run_started = time.monotonic()
    flight.running.set()
    return tool.run(validated)
