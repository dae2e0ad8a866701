"""OpenAI-compatible chat model client."""

from __future__ import annotations

import json
from typing import Any
from urllib.parse import urlparse, urlunparse

import httpx

from aurachat.errors import (
    ModelAuthError,
    ModelQuotaExceeded,
    ModelRateLimited,
    ModelServiceError,
    ModelTransientError,
)
from aurachat.models.base import BaseChatModel, ModelResponse, ToolCall
from aurachat.models.rate_limit import ModelRateLimiter


def classify_error(status_code: int, body: Any) -> ModelServiceError:
    """Map an HTTP error response from the model service to a typed error."""
    code = ""
    message = ""
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            code = str(error.get("code") or error.get("type") or "")
            message = str(error.get("message") or "")
    detail = f"{status_code} {code} {message}".strip()
    if code == "insufficient_quota":
        return ModelQuotaExceeded(detail, status_code=status_code)
    if status_code == 429 or code == "rate_limit_exceeded":
        return ModelRateLimited(detail, status_code=status_code)
    if status_code in {401, 403}:
        return ModelAuthError(detail, status_code=status_code)
    if status_code >= 500 or status_code == 408:
        return ModelTransientError(detail, status_code=status_code)
    return ModelServiceError(detail, status_code=status_code)


class OpenAICompatChatModel(BaseChatModel):
    """HTTP client for OpenAI-compatible chat/completions."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        model: str,
        timeout_seconds: float = 30,
        temperature: float = 0.8,
        max_tokens: int = 1500,
        max_response_bytes: int = 2_000_000,
        extra_headers: dict[str, str] | None = None,
        rate_limiter: ModelRateLimiter | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        normalized = base_url.strip()
        if not normalized.startswith(("http://", "https://")):
            normalized = f"http://{normalized}"
        self.base_url = normalized.rstrip("/")
        self.api_key = api_key
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.max_response_bytes = max_response_bytes
        self.extra_headers = extra_headers or {}
        self.rate_limiter = rate_limiter
        self.transport = transport

    def _request_payload(
        self, messages: list[dict[str, Any]], tools: list[dict[str, Any]] | None
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        if tools:
            payload["tools"] = tools
            payload["tool_choice"] = "auto"
        return payload

    def _build_url(self) -> str:
        parsed = urlparse(self.base_url)
        path = parsed.path or ""
        if path in {"", "/"}:
            base_path = "/v1"
        else:
            base_path = path.rstrip("/")
            segments = [segment for segment in base_path.split("/") if segment]
            if "v1" not in segments:
                base_path = f"{base_path}/v1"
        if base_path.endswith("/chat/completions"):
            final_path = base_path
        else:
            final_path = f"{base_path}/chat/completions"
        return urlunparse(parsed._replace(path=final_path, params="", query="", fragment=""))

    def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None,
        timeout_seconds: float | None = None,
    ) -> ModelResponse:
        url = self._build_url()
        headers = {"Authorization": f"Bearer {self.api_key}", **self.extra_headers}
        payload = self._request_payload(messages, tools)
        limit = self.timeout_seconds
        if timeout_seconds is not None:
            limit = max(0.001, min(limit, timeout_seconds))

        if self.rate_limiter is not None:
            self.rate_limiter.acquire(limit)
        try:
            with httpx.Client(timeout=httpx.Timeout(limit), transport=self.transport) as client:
                response = client.post(url, headers=headers, json=payload)
        except httpx.TimeoutException as exc:
            raise ModelTransientError(f"model request timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise ModelTransientError(f"model transport error: {exc}") from exc
        finally:
            if self.rate_limiter is not None:
                self.rate_limiter.release()

        if response.status_code >= 400:
            try:
                body = response.json()
            except json.JSONDecodeError:
                body = None
            raise classify_error(response.status_code, body)
        if len(response.content) > self.max_response_bytes:
            raise ModelServiceError("Response too large")
        try:
            data = response.json()
        except json.JSONDecodeError as exc:
            raise ModelTransientError("Malformed JSON response") from exc
        return parse_completion(data)


def parse_completion(data: dict[str, Any]) -> ModelResponse:
    """Extract text or tool calls from a chat/completions body."""
    choices = data.get("choices") or [{}]
    message = choices[0].get("message") or {}
    content = message.get("content")
    text = content if isinstance(content, str) else None
    calls: list[ToolCall] = []
    for index, raw in enumerate(message.get("tool_calls") or []):
        function = raw.get("function") or {}
        name = function.get("name")
        if not isinstance(name, str):
            continue
        calls.append(
            ToolCall(
                id=raw.get("id") or f"call_{index}",
                name=name,
                arguments=_decode_arguments(function.get("arguments")),
            )
        )
    legacy = message.get("function_call")
    if not calls and isinstance(legacy, dict) and isinstance(legacy.get("name"), str):
        calls.append(
            ToolCall(
                id="call_0",
                name=legacy["name"],
                arguments=_decode_arguments(legacy.get("arguments")),
            )
        )
    return ModelResponse(final_text=text, tool_calls=calls)


def _decode_arguments(raw: Any) -> dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    if not isinstance(raw, str) or not raw.strip():
        return {}
    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError:
        return {}
    return decoded if isinstance(decoded, dict) else {}
