"""Tagged tool outcomes fed back into the conversation."""

from __future__ import annotations

from dataclasses import dataclass
import json
from typing import Any, Union

_DEGRADED_NOTE = (
    "Live data is temporarily unavailable. Answer from general knowledge and "
    "tell the user the figures may be out of date."
)


@dataclass(frozen=True)
class Success:
    data: Any
    status = "success"


@dataclass(frozen=True)
class Degraded:
    reason: str
    status = "degraded"


@dataclass(frozen=True)
class Rejected:
    reason: str
    status = "rejected"


ToolResult = Union[Success, Degraded, Rejected]


def result_payload(result: ToolResult) -> dict[str, Any]:
    if isinstance(result, Success):
        return {"ok": True, "data": result.data}
    if isinstance(result, Degraded):
        return {"ok": False, "status": result.status, "reason": result.reason, "note": _DEGRADED_NOTE}
    return {
        "ok": False,
        "status": result.status,
        "reason": result.reason,
        "note": "The tool call was not executed. Fix the call or answer without it.",
    }


def result_content(result: ToolResult) -> str:
    """Serialize a result for a tool-result turn."""
    return json.dumps(result_payload(result), ensure_ascii=False, default=str)
