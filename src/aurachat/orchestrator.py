"""Tool-use orchestration loop.

One ``Orchestrator.run`` call drives a single user turn through a small state
machine::

    AWAITING_MODEL -> MODEL_ANSWERED -> FINAL_ANSWER
    AWAITING_MODEL -> MODEL_REQUESTED_TOOLS -> EXECUTING_TOOLS
                   -> RESULTS_APPENDED -> AWAITING_MODEL

Any step may instead end in ``DEGRADED_ANSWER`` (the model service failed
transiently) or ``BUDGET_EXHAUSTED_ANSWER`` (the deadline passed or the tool
round ceiling was hit). Rate-limit, quota and auth failures of the model
service propagate as ``ModelServiceError`` for the caller to map.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import json
import time
from typing import Any, Callable
from uuid import uuid4

from aurachat.budget import Denied, DeadlineManager
from aurachat.conversation import ConversationState
from aurachat.errors import ModelErrorKind, ModelServiceError
from aurachat.models.base import BaseChatModel, ModelResponse, ToolCall
from aurachat.runtime.observability import MetricsCollector
from aurachat.tools.executor import CallKey, ToolExecutor, call_key
from aurachat.tools.registry import ToolRegistry
from aurachat.tools.results import Degraded, ToolResult
from aurachat.trace import RunTrace
from aurachat.util.logging import bind_request, get_logger, redact

logger = get_logger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "You are AURA AI, a professional trading assistant. Be conversational, answer "
    "directly, and always put risk management first. Use the available tools for "
    "live prices, news, economic events, trading math and knowledge-base lookups. "
    "Be clear about what is live data and what is your own analysis. If a tool "
    "reports that data is unavailable, say so and answer from general knowledge."
)

FALLBACK_ANSWER = (
    "I'm sorry, I couldn't complete that analysis in time. Please try again in a "
    "moment, or ask a narrower question."
)


class LoopState(str, Enum):
    AWAITING_MODEL = "AWAITING_MODEL"
    MODEL_ANSWERED = "MODEL_ANSWERED"
    MODEL_REQUESTED_TOOLS = "MODEL_REQUESTED_TOOLS"
    EXECUTING_TOOLS = "EXECUTING_TOOLS"
    RESULTS_APPENDED = "RESULTS_APPENDED"
    FINAL_ANSWER = "FINAL_ANSWER"
    DEGRADED_ANSWER = "DEGRADED_ANSWER"
    BUDGET_EXHAUSTED_ANSWER = "BUDGET_EXHAUSTED_ANSWER"


TERMINAL_STATES = frozenset(
    {LoopState.FINAL_ANSWER, LoopState.DEGRADED_ANSWER, LoopState.BUDGET_EXHAUSTED_ANSWER}
)


@dataclass
class RunResult:
    request_id: str
    state: LoopState
    answer: str
    rounds_used: int
    model_calls: int
    tools_used: list[str] = field(default_factory=list)
    degraded_tools: list[str] = field(default_factory=list)
    transitions: list[str] = field(default_factory=list)
    transcript: list[dict[str, Any]] = field(default_factory=list)
    elapsed_ms: int = 0
    stop_reason: str | None = None
    trace_path: str | None = None


@dataclass
class _Run:
    """Mutable state owned by exactly one run."""

    request_id: str
    user_id: str | None
    conversation: ConversationState
    deadline: DeadlineManager
    trace: RunTrace
    log: Any
    started: float
    model_calls: int = 0
    response: ModelResponse | None = None
    pending_calls: list[ToolCall] = field(default_factory=list)
    round_results: list[ToolResult] = field(default_factory=list)
    previous_round: dict[CallKey, ToolResult] = field(default_factory=dict)
    tools_used: list[str] = field(default_factory=list)
    degraded_tools: list[str] = field(default_factory=list)
    answer: str = ""
    stop_reason: str | None = None


class Orchestrator:
    """Sequences model and tool calls for one user turn at a time.

    Instances hold only read-only collaborators and may serve concurrent
    requests; all per-request state lives in the run.
    """

    def __init__(
        self,
        model: BaseChatModel,
        registry: ToolRegistry,
        executor: ToolExecutor | None = None,
        *,
        budget_seconds: float = 55.0,
        max_rounds: int = 2,
        model_timeout_seconds: float | None = None,
        transient_retries: int = 1,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        metrics: MetricsCollector | None = None,
        trace_dir: str | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.model = model
        self.registry = registry
        self.metrics = metrics or MetricsCollector()
        self.executor = executor or ToolExecutor(registry, metrics=self.metrics)
        self.budget_seconds = budget_seconds
        self.max_rounds = max(0, max_rounds)
        self.model_timeout_seconds = model_timeout_seconds
        self.transient_retries = max(0, transient_retries)
        self.system_prompt = system_prompt
        self.trace_dir = trace_dir
        self._clock = clock
        self._handlers = {
            LoopState.AWAITING_MODEL: self._await_model,
            LoopState.MODEL_ANSWERED: self._model_answered,
            LoopState.MODEL_REQUESTED_TOOLS: self._model_requested_tools,
            LoopState.EXECUTING_TOOLS: self._execute_tools,
            LoopState.RESULTS_APPENDED: self._results_appended,
        }

    def run(
        self,
        message: str,
        history: list[dict[str, str]] | None = None,
        *,
        request_id: str | None = None,
        user_id: str | None = None,
    ) -> RunResult:
        request_id = request_id or f"req_{uuid4().hex[:12]}"
        log = bind_request(logger, request_id)
        run = _Run(
            request_id=request_id,
            user_id=user_id,
            conversation=self._initial_conversation(message, history),
            deadline=DeadlineManager.start(self.budget_seconds, self.max_rounds, self._clock),
            trace=RunTrace(trace_id=request_id, trace_dir=self.trace_dir),
            log=log,
            started=self._clock(),
        )
        log.info("Run started (budget=%.1fs, max_rounds=%d).", self.budget_seconds, self.max_rounds)
        log.info("User message: %s", redact(message[:200]))

        state = LoopState.AWAITING_MODEL
        run.trace.record_transition("START", state.value)
        try:
            while state not in TERMINAL_STATES:
                next_state = self._handlers[state](run)
                run.trace.record_transition(state.value, next_state.value)
                state = next_state
        except ModelServiceError as exc:
            self.metrics.inc("runs.aborted")
            log.error("Run aborted by model service error (%s): %s", exc.kind.value, exc)
            raise

        if state is not LoopState.FINAL_ANSWER:
            run.answer = self._partial_answer(run)
        elapsed = self._clock() - run.started
        self.metrics.inc(f"runs.{state.value}")
        self.metrics.observe("run_latency", elapsed)
        stats = {
            "state": state.value,
            "rounds_used": run.deadline.budget.rounds_used,
            "model_calls": run.model_calls,
            "elapsed_seconds": round(elapsed, 3),
        }
        log.info("Run finished: %s", stats)
        return RunResult(
            request_id=request_id,
            state=state,
            answer=run.answer,
            rounds_used=run.deadline.budget.rounds_used,
            model_calls=run.model_calls,
            tools_used=run.tools_used,
            degraded_tools=run.degraded_tools,
            transitions=run.trace.transitions(),
            transcript=run.conversation.transcript(),
            elapsed_ms=int(elapsed * 1000),
            stop_reason=run.stop_reason,
            trace_path=run.trace.finalize(stats),
        )

    def _initial_conversation(
        self, message: str, history: list[dict[str, str]] | None
    ) -> ConversationState:
        conversation = ConversationState()
        conversation.add_system(self.system_prompt)
        for item in history or []:
            if item.get("role") == "user":
                conversation.add_user(item["content"])
            elif item.get("role") == "assistant":
                conversation.add_assistant(item["content"])
        conversation.add_user(message)
        return conversation

    def _await_model(self, run: _Run) -> LoopState:
        attempts = self.transient_retries + 1
        for attempt in range(1, attempts + 1):
            authorization = run.deadline.authorize_model()
            if isinstance(authorization, Denied):
                run.stop_reason = authorization.reason
                run.log.warning("Model call denied: %s.", authorization.reason)
                return LoopState.BUDGET_EXHAUSTED_ANSWER
            try:
                response = self._call_model(run)
            except ModelServiceError as exc:
                self.metrics.inc(f"model_errors.{exc.kind.value}")
                if exc.kind is ModelErrorKind.TRANSIENT and attempt < attempts:
                    run.log.warning("Transient model failure (attempt %d): %s", attempt, exc)
                    continue
                if exc.kind in {ModelErrorKind.TRANSIENT, ModelErrorKind.OTHER}:
                    run.log.warning("Model unavailable, degrading: %s", exc)
                    run.stop_reason = exc.kind.value
                    return LoopState.DEGRADED_ANSWER
                raise
            run.trace.record_model_response(
                response.final_text, [call.model_dump() for call in response.tool_calls]
            )
            run.response = response
            if response.wants_tools:
                return LoopState.MODEL_REQUESTED_TOOLS
            if not (response.final_text or "").strip():
                run.log.warning("Model returned an empty answer.")
                run.stop_reason = "empty_response"
                return LoopState.DEGRADED_ANSWER
            return LoopState.MODEL_ANSWERED
        return LoopState.DEGRADED_ANSWER

    def _call_model(self, run: _Run) -> ModelResponse:
        timeout = run.deadline.call_timeout(self.model_timeout_seconds)
        run.model_calls += 1
        self.metrics.inc("model_calls")
        started = time.perf_counter()
        try:
            return self.model.chat(
                run.conversation.messages(),
                self.registry.openai_schemas() or None,
                timeout_seconds=timeout,
            )
        finally:
            latency = time.perf_counter() - started
            self.metrics.observe("model_latency", latency)
            run.log.info("Model call %d took %.2fs.", run.model_calls, latency)

    def _model_answered(self, run: _Run) -> LoopState:
        text = run.response.final_text.strip()
        run.conversation.add_assistant(text)
        run.answer = text
        return LoopState.FINAL_ANSWER

    def _model_requested_tools(self, run: _Run) -> LoopState:
        response = run.response
        authorization = run.deadline.authorize_tools()
        if isinstance(authorization, Denied):
            run.stop_reason = authorization.reason
            run.log.warning(
                "Tool round denied (%s); %d requested calls dropped.",
                authorization.reason,
                len(response.tool_calls),
            )
            if response.final_text and response.final_text.strip():
                run.conversation.add_assistant(response.final_text.strip())
            return LoopState.BUDGET_EXHAUSTED_ANSWER
        round_number = run.deadline.budget.rounds_used + 1
        run.pending_calls = _with_unique_ids(response.tool_calls, round_number)
        run.conversation.add_tool_request(run.pending_calls, response.final_text)
        return LoopState.EXECUTING_TOOLS

    def _execute_tools(self, run: _Run) -> LoopState:
        calls = run.pending_calls
        run.log.info("Executing tools: %s", ", ".join(call.name for call in calls))
        started = self._clock()
        run.round_results = self.executor.execute_round(
            calls,
            timeout_cap=run.deadline.call_timeout(),
            reuse=run.previous_round,
            request_id=run.request_id,
            user_id=run.user_id,
        )
        run.deadline.charge_round(self._clock() - started)
        return LoopState.RESULTS_APPENDED

    def _results_appended(self, run: _Run) -> LoopState:
        latest: dict[CallKey, ToolResult] = {}
        for call, result in zip(run.pending_calls, run.round_results):
            run.conversation.add_tool_result(call, result)
            latest[call_key(call)] = result
            run.trace.record_tool_result(call.name, result.status, getattr(result, "reason", None))
            if call.name not in run.tools_used:
                run.tools_used.append(call.name)
            if isinstance(result, Degraded) and call.name not in run.degraded_tools:
                run.degraded_tools.append(call.name)
        run.previous_round = latest
        run.pending_calls = []
        run.round_results = []
        return LoopState.AWAITING_MODEL

    def _partial_answer(self, run: _Run) -> str:
        text = run.conversation.last_assistant_text()
        if text:
            return text
        gathered = run.conversation.successful_results()
        if gathered:
            lines = ["I couldn't finish the full analysis, but here is the latest data I retrieved:"]
            for name, data in gathered:
                summary = json.dumps(data, ensure_ascii=False, default=str)
                if len(summary) > 400:
                    summary = summary[:400] + "..."
                lines.append(f"- {name}: {summary}")
            return "\n".join(lines)
        return FALLBACK_ANSWER


def _with_unique_ids(calls: list[ToolCall], round_number: int) -> list[ToolCall]:
    seen: set[str] = set()
    unique: list[ToolCall] = []
    for index, call in enumerate(calls):
        call_id = call.id
        if not call_id or call_id in seen:
            call_id = f"call_r{round_number}_{index}"
        seen.add(call_id)
        unique.append(call.model_copy(update={"id": call_id}))
    return unique
