"""FastAPI service."""

from __future__ import annotations

from functools import lru_cache
from typing import Any

from fastapi import Depends, FastAPI, Header
from fastapi.responses import JSONResponse
from pydantic import AliasChoices, BaseModel, Field

from aurachat.config import Settings
from aurachat.errors import ModelServiceError
from aurachat.factory import build_model, build_orchestrator, build_rate_limiter, build_registry
from aurachat.gate import TierGate
from aurachat.history import sanitize_history
from aurachat.orchestrator import Orchestrator
from aurachat.util.logging import get_logger

logger = get_logger(__name__)

app = FastAPI(title="aurachat")


class ChatRequest(BaseModel):
    message: str = ""
    conversation_history: list[Any] = Field(
        default_factory=list,
        validation_alias=AliasChoices("conversation_history", "conversationHistory"),
    )


class ChatResponse(BaseModel):
    success: bool = True
    response: str
    state: str
    rounds: int
    request_id: str
    tools_used: list[str]
    degraded_tools: list[str]
    timing_ms: int


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


@lru_cache(maxsize=1)
def get_orchestrator() -> Orchestrator:
    settings = get_settings()
    model = build_model(settings, rate_limiter=build_rate_limiter(settings))
    return build_orchestrator(settings, model, build_registry(settings))


def get_gate() -> TierGate:
    return TierGate.from_csv(get_settings().allowed_tiers)


def _failure(status_code: int, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message, **extra})


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/chat", response_model=ChatResponse)
def chat(
    request: ChatRequest,
    x_subscription_tier: str | None = Header(default=None),
    x_user_id: str | None = Header(default=None),
    settings: Settings = Depends(get_settings),
    orchestrator: Orchestrator = Depends(get_orchestrator),
    gate: TierGate = Depends(get_gate),
):
    if not gate.is_allowed(x_subscription_tier):
        return _failure(403, "Premium subscription required to access the AI assistant.")
    message = request.message.strip()
    if not message:
        return _failure(400, "Message required")
    if len(message) > settings.max_message_chars:
        return _failure(
            400, f"Message exceeds maximum length of {settings.max_message_chars}"
        )
    history = sanitize_history(
        request.conversation_history,
        max_turns=settings.max_history_turns,
        max_chars=settings.max_message_chars,
    )
    try:
        result = orchestrator.run(message, history, user_id=x_user_id)
    except ModelServiceError as exc:
        logger.error("Chat request failed: %s (%s)", exc.kind.value, exc)
        extra: dict[str, Any] = {"errorType": exc.error_type}
        if exc.requires_action:
            extra["requiresAction"] = True
        return _failure(exc.http_status, exc.user_message, **extra)
    return ChatResponse(
        response=result.answer,
        state=result.state.value,
        rounds=result.rounds_used,
        request_id=result.request_id,
        tools_used=result.tools_used,
        degraded_tools=result.degraded_tools,
        timing_ms=result.elapsed_ms,
    )
