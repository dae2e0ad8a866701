"""Per-request conversation history."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import json
from typing import Any, Iterable

from aurachat.errors import ConversationError
from aurachat.models.base import ToolCall
from aurachat.tools.results import Success, ToolResult, result_content


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True)
class Turn:
    role: Role
    content: str | None
    tool_calls: tuple[ToolCall, ...] = ()
    tool_name: str | None = None
    tool_call_id: str | None = None
    result: ToolResult | None = None

    def to_message(self) -> dict[str, Any]:
        message: dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.tool_calls:
            message["tool_calls"] = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {
                        "name": call.name,
                        "arguments": json.dumps(call.arguments, ensure_ascii=False),
                    },
                }
                for call in self.tool_calls
            ]
        if self.role is Role.TOOL:
            message["tool_call_id"] = self.tool_call_id
            message["name"] = self.tool_name
        return message


class ConversationState:
    """Append-only turn list owned by one orchestration run.

    A tool-request turn must be answered by one result turn per call before
    anything else is appended or the history is handed to the model.
    """

    def __init__(self) -> None:
        self._turns: list[Turn] = []
        self._pending: dict[str, ToolCall] = {}

    def _append(self, turn: Turn) -> None:
        if self._pending and turn.role is not Role.TOOL:
            raise ConversationError(
                f"cannot append {turn.role.value} turn with {len(self._pending)} unanswered tool calls"
            )
        self._turns.append(turn)

    def add_system(self, content: str) -> None:
        self._append(Turn(Role.SYSTEM, content))

    def add_user(self, content: str) -> None:
        self._append(Turn(Role.USER, content))

    def add_assistant(self, content: str) -> None:
        self._append(Turn(Role.ASSISTANT, content))

    def add_tool_request(self, calls: Iterable[ToolCall], content: str | None = None) -> None:
        calls = tuple(calls)
        if not calls:
            raise ConversationError("tool request turn needs at least one call")
        ids = [call.id for call in calls]
        if any(not call_id for call_id in ids) or len(set(ids)) != len(ids):
            raise ConversationError("tool calls need unique ids")
        self._append(Turn(Role.ASSISTANT, content, tool_calls=calls))
        self._pending = {call.id: call for call in calls}

    def add_tool_result(self, call: ToolCall, result: ToolResult) -> None:
        if call.id not in self._pending:
            raise ConversationError(f"no pending tool call with id {call.id!r}")
        del self._pending[call.id]
        self._turns.append(
            Turn(
                Role.TOOL,
                result_content(result),
                tool_name=call.name,
                tool_call_id=call.id,
                result=result,
            )
        )

    def messages(self) -> list[dict[str, Any]]:
        """Messages for the model; refuses to expose a partial round."""
        if self._pending:
            raise ConversationError("model cannot see a partially answered tool round")
        return [turn.to_message() for turn in self._turns]

    def last_assistant_text(self) -> str | None:
        for turn in reversed(self._turns):
            if turn.role is Role.ASSISTANT and turn.content and turn.content.strip():
                return turn.content
            if turn.role is Role.USER:
                return None
        return None

    def successful_results(self) -> list[tuple[str, Any]]:
        return [
            (turn.tool_name or "", turn.result.data)
            for turn in self._turns
            if turn.role is Role.TOOL and isinstance(turn.result, Success)
        ]

    def transcript(self) -> list[dict[str, Any]]:
        return [turn.to_message() for turn in self._turns if turn.role is not Role.SYSTEM]
