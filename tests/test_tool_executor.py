from __future__ import annotations

import threading
import time
from typing import Callable

from pydantic import BaseModel

from aurachat.errors import ProviderError
from aurachat.models.base import ToolCall
from aurachat.runtime.audit import AuditRecorder
from aurachat.runtime.storage import AuditSink
from aurachat.tools.base import ProviderResponse, Tool
from aurachat.tools.executor import ToolExecutor, call_key
from aurachat.tools.registry import ToolRegistry
from aurachat.tools.results import Degraded, Rejected, Success


class SymbolInput(BaseModel):
    symbol: str


class StubTool(Tool):
    description = "stub"
    input_schema = SymbolInput

    def __init__(
        self,
        name: str,
        handler: Callable[[SymbolInput], ProviderResponse],
        timeout_seconds: float = 1.0,
    ) -> None:
        self.name = name
        self.handler = handler
        self.timeout_seconds = timeout_seconds
        self.calls: list[dict] = []
        self._lock = threading.Lock()

    def run(self, data: BaseModel) -> ProviderResponse:
        with self._lock:
            self.calls.append(data.model_dump())
        return self.handler(data)


class ListSink(AuditSink):
    def __init__(self) -> None:
        self.records: list[dict] = []

    def append(self, record: dict) -> None:
        self.records.append(record)


def ok(data: SymbolInput) -> ProviderResponse:
    return ProviderResponse(success=True, data={"symbol": data.symbol, "price": 1.0})


def sleeper(seconds: float):
    def handler(data: SymbolInput) -> ProviderResponse:
        time.sleep(seconds)
        return ok(data)

    return handler


def build(*tools: Tool, audit: AuditRecorder | None = None) -> ToolExecutor:
    registry = ToolRegistry()
    registry.register_all(tools)
    return ToolExecutor(registry, audit=audit)


def test_success_result():
    executor = build(StubTool("price", ok))
    result = executor.execute(ToolCall(name="price", arguments={"symbol": "EURUSD"}))
    assert result == Success({"symbol": "EURUSD", "price": 1.0})


def test_unknown_tool_is_rejected():
    executor = build(StubTool("price", ok))
    result = executor.execute(ToolCall(name="horoscope", arguments={}))
    assert result == Rejected("unknown_tool")


def test_invalid_arguments_rejected_without_provider_call():
    tool = StubTool("price", ok)
    executor = build(tool)
    result = executor.execute(ToolCall(name="price", arguments={"ticker": "EURUSD"}))
    assert result == Rejected("invalid_arguments")
    assert tool.calls == []


def test_provider_timeout_degrades():
    executor = build(StubTool("price", sleeper(0.5), timeout_seconds=0.05))
    started = time.monotonic()
    result = executor.execute(ToolCall(name="price", arguments={"symbol": "XAUUSD"}))
    assert result == Degraded("provider_timeout")
    assert time.monotonic() - started < 0.4


def test_timeout_cap_tightens_tool_timeout():
    executor = build(StubTool("price", sleeper(0.5), timeout_seconds=5))
    result = executor.execute(ToolCall(name="price", arguments={"symbol": "XAUUSD"}), 0.05)
    assert result == Degraded("provider_timeout")


def test_provider_error_and_failure_envelope_degrade():
    def boom(data: SymbolInput) -> ProviderResponse:
        raise ProviderError("upstream 502 with a stack trace")

    def refused(data: SymbolInput) -> ProviderResponse:
        return ProviderResponse(success=False, message="no data")

    executor = build(StubTool("boom", boom), StubTool("refused", refused))
    results = executor.execute_round(
        [
            ToolCall(name="boom", arguments={"symbol": "A"}),
            ToolCall(name="refused", arguments={"symbol": "A"}),
        ]
    )
    assert results == [Degraded("provider_error"), Degraded("provider_unavailable")]


def test_unexpected_exception_degrades():
    def crash(data: SymbolInput) -> ProviderResponse:
        raise KeyError("price")

    executor = build(StubTool("crash", crash))
    assert executor.execute(ToolCall(name="crash", arguments={"symbol": "A"})) == Degraded(
        "provider_error"
    )


def test_round_runs_calls_concurrently():
    executor = build(
        StubTool("price", sleeper(0.3)),
        StubTool("news", sleeper(0.3)),
    )
    started = time.monotonic()
    results = executor.execute_round(
        [
            ToolCall(name="price", arguments={"symbol": "XAUUSD"}),
            ToolCall(name="news", arguments={"symbol": "XAUUSD"}),
        ]
    )
    elapsed = time.monotonic() - started
    assert all(isinstance(result, Success) for result in results)
    assert elapsed < 0.55


def test_identical_calls_in_round_invoke_provider_once():
    tool = StubTool("price", ok)
    executor = build(tool)
    calls = [
        ToolCall(id="a", name="price", arguments={"symbol": "XAUUSD"}),
        ToolCall(id="b", name="price", arguments={"symbol": "XAUUSD"}),
    ]
    results = executor.execute_round(calls)
    assert len(results) == 2
    assert results[0] == results[1]
    assert len(tool.calls) == 1
    assert executor.metrics.counters["tool_dedup_hits"] == 1


def test_reuse_skips_execution():
    tool = StubTool("price", ok)
    executor = build(tool)
    call = ToolCall(name="price", arguments={"symbol": "XAUUSD"})
    cached = Success({"price": 2.0})
    results = executor.execute_round([call], reuse={call_key(call): cached})
    assert results == [cached]
    assert tool.calls == []


def test_every_outcome_is_audited():
    sink = ListSink()
    audit = AuditRecorder([sink])
    executor = build(StubTool("price", ok), StubTool("news", ok), audit=audit)
    executor.execute_round(
        [
            ToolCall(name="price", arguments={"symbol": "XAUUSD"}),
            ToolCall(name="unknown", arguments={}),
        ],
        request_id="req_1",
    )
    skipped = executor.execute(
        ToolCall(name="news", arguments={"symbol": "XAUUSD"}), 0.0, request_id="req_1"
    )
    audit.flush()
    assert skipped == Degraded("budget_exhausted")
    outcomes = sorted((record["tool"], record["outcome"], record["reason"]) for record in sink.records)
    assert outcomes == [
        ("news", "degraded", "budget_exhausted"),
        ("price", "success", None),
        ("unknown", "rejected", "unknown_tool"),
    ]
    assert all(record["request_id"] == "req_1" for record in sink.records)
    audit.close()


def test_queued_call_gets_its_full_timeout():
    registry = ToolRegistry()
    registry.register_all(
        [
            StubTool("slow", sleeper(0.2), timeout_seconds=0.3),
            StubTool("fast", sleeper(0.2), timeout_seconds=0.3),
        ]
    )
    executor = ToolExecutor(registry, max_workers=1)
    results = executor.execute_round(
        [
            ToolCall(name="slow", arguments={"symbol": "A"}),
            ToolCall(name="fast", arguments={"symbol": "B"}),
        ]
    )
    assert [result.status for result in results] == ["success", "success"]


def test_queued_call_still_bounded_by_round_cap():
    registry = ToolRegistry()
    registry.register_all(
        [
            StubTool("first", sleeper(0.3), timeout_seconds=1.0),
            StubTool("second", sleeper(0.3), timeout_seconds=1.0),
        ]
    )
    executor = ToolExecutor(registry, max_workers=1)
    started = time.monotonic()
    results = executor.execute_round(
        [
            ToolCall(name="first", arguments={"symbol": "A"}),
            ToolCall(name="second", arguments={"symbol": "B"}),
        ],
        timeout_cap=0.15,
    )
    assert results == [Degraded("provider_timeout"), Degraded("provider_timeout")]
    assert time.monotonic() - started < 0.5
