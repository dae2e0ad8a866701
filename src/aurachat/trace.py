"""Trace recorder for orchestration runs."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from aurachat.util.logging import redact


@dataclass
class RunTrace:
    trace_id: str
    trace_dir: str | None = None
    started_at: float = field(default_factory=time.time)
    events: list[dict[str, Any]] = field(default_factory=list)

    def record(self, event_type: str, payload: dict[str, Any]) -> None:
        self.events.append(
            {
                "type": event_type,
                "timestamp": time.time(),
                "payload": payload,
            }
        )

    def record_transition(self, source: str, target: str, **detail: Any) -> None:
        self.record("transition", {"from": source, "to": target, **detail})

    def record_model_response(self, content: str | None, tool_calls: list[dict[str, Any]]) -> None:
        self.record(
            "model_response",
            {"content": redact(content or ""), "tool_calls": tool_calls},
        )

    def record_tool_result(self, tool_name: str, status: str, reason: str | None) -> None:
        self.record(
            "tool_result",
            {"tool_name": tool_name, "status": status, "reason": reason},
        )

    def transitions(self) -> list[str]:
        path = [event["payload"]["to"] for event in self.events if event["type"] == "transition"]
        return path

    def finalize(self, stats: dict[str, Any]) -> str | None:
        if not self.trace_dir:
            return None
        trace_dir = Path(self.trace_dir)
        trace_dir.mkdir(parents=True, exist_ok=True)
        trace_path = trace_dir / f"{self.trace_id}.json"
        payload = {
            "trace_id": self.trace_id,
            "started_at": self.started_at,
            "ended_at": time.time(),
            "stats": stats,
            "events": self.events,
        }
        trace_path.write_text(json.dumps(payload, indent=2, default=str), encoding="utf-8")
        return str(trace_path)
