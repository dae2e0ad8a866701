"""Tool registry."""

from __future__ import annotations

from typing import Iterable

from aurachat.tools.base import Tool, ToolSpec


class ToolRegistry:
    """Registry of tools available to the assistant.

    Populated once at startup and only read while requests are served.
    """

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}
        self._specs: dict[str, ToolSpec] = {}

    def register(self, tool: Tool, timeout_seconds: float | None = None) -> None:
        self._tools[tool.name] = tool
        self._specs[tool.name] = tool.spec(timeout_seconds)

    def register_all(self, tools: Iterable[Tool]) -> None:
        for tool in tools:
            self.register(tool)

    def resolve(self, name: str) -> ToolSpec | None:
        return self._specs.get(name)

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._specs)

    def list(self) -> list[ToolSpec]:
        return list(self._specs.values())

    def openai_schemas(self) -> list[dict]:
        return [spec.openai_schema() for spec in self._specs.values()]
