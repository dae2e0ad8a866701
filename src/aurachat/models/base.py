"""Base model interfaces."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, Field


class ToolCall(BaseModel):
    id: str | None = None
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class ModelResponse(BaseModel):
    """One model turn: final text, or one or more requested tool calls."""

    final_text: str | None = None
    tool_calls: list[ToolCall] = Field(default_factory=list)

    @property
    def wants_tools(self) -> bool:
        return bool(self.tool_calls)


class BaseChatModel(ABC):
    """Abstract chat model interface."""

    @abstractmethod
    def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None,
        timeout_seconds: float | None = None,
    ) -> ModelResponse:
        """Send chat request and return model response.

        Failures raise a subclass of ``ModelServiceError``.
        """
        raise NotImplementedError
