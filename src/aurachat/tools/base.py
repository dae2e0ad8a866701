"""Base tool definitions."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ValidationError

from aurachat.errors import ToolArgumentsError


class ProviderResponse(BaseModel):
    """Envelope every provider answers with: ``{success, data | message}``."""

    success: bool
    data: Any = None
    message: str | None = None


@dataclass(frozen=True)
class ToolSpec:
    """Immutable description of a callable capability."""

    name: str
    description: str
    input_schema: type[BaseModel]
    timeout_seconds: float

    def validate(self, arguments: dict[str, Any]) -> BaseModel:
        try:
            return self.input_schema.model_validate(arguments)
        except ValidationError as exc:
            raise ToolArgumentsError(
                self.name, exc.errors(include_url=False, include_context=False)
            ) from exc

    def openai_schema(self) -> dict[str, Any]:
        """Return OpenAI-compatible tool schema."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.input_schema.model_json_schema(),
            },
        }


class Tool(ABC):
    """Abstract tool backed by one external provider."""

    name: str
    description: str
    input_schema: type[BaseModel]
    timeout_seconds: float = 5.0

    @abstractmethod
    def run(self, data: BaseModel) -> ProviderResponse:
        """Call the provider with validated arguments.

        Implementations raise ``ProviderError`` subclasses on failure.
        """
        raise NotImplementedError

    def spec(self, timeout_seconds: float | None = None) -> ToolSpec:
        return ToolSpec(
            name=self.name,
            description=self.description,
            input_schema=self.input_schema,
            timeout_seconds=timeout_seconds if timeout_seconds is not None else self.timeout_seconds,
        )
