"""Mock chat model for offline testing."""

from __future__ import annotations

import json
from typing import Any, Callable

from aurachat.errors import ModelServiceError
from aurachat.models.base import BaseChatModel, ModelResponse, ToolCall

ScriptedStep = ModelResponse | ModelServiceError | Callable[[list[dict[str, Any]]], ModelResponse]


class MockChatModel(BaseChatModel):
    """Deterministic mock model used when no API key is available.

    Scripted steps are consumed in order. A step may be a response, an error to
    raise, or a callable receiving the message history.
    """

    def __init__(self, scripted: list[ScriptedStep] | None = None) -> None:
        self._scripted = list(scripted or [])
        self.calls: list[list[dict[str, Any]]] = []

    def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None,
        timeout_seconds: float | None = None,
    ) -> ModelResponse:
        self.calls.append([dict(message) for message in messages])
        if self._scripted:
            step = self._scripted.pop(0)
            if isinstance(step, ModelServiceError):
                raise step
            if callable(step) and not isinstance(step, ModelResponse):
                return step(messages)
            return step
        last = messages[-1] if messages else {}
        if last.get("role") == "tool":
            return ModelResponse(final_text=f"Mock answer using {last.get('name')}: {last.get('content')}")
        content = last.get("content") or ""
        if isinstance(content, str) and content.startswith("USE_TOOL:"):
            response = self._tool_call_from_prompt(content, tools)
            if response is not None:
                return response
        return ModelResponse(final_text=f"Mock response to: {content}")

    def _tool_call_from_prompt(
        self, prompt: str, tools: list[dict[str, Any]] | None
    ) -> ModelResponse | None:
        stripped = prompt[len("USE_TOOL:") :].strip()
        if not tools or not stripped:
            return None
        parts = stripped.split(maxsplit=1)
        tool_name = parts[0]
        try:
            arguments = json.loads(parts[1]) if len(parts) > 1 else {}
        except json.JSONDecodeError:
            return None
        if not isinstance(arguments, dict):
            return None
        return ModelResponse(tool_calls=[ToolCall(id="mock-0", name=tool_name, arguments=arguments)])
