"""Shared HTTP plumbing for data-provider tools."""

from __future__ import annotations

from typing import Any

import httpx
from pydantic import BaseModel, ValidationError

from aurachat.errors import ProviderError, ProviderTimeout, ProviderUnavailable
from aurachat.tools.base import ProviderResponse, Tool


class HttpProviderTool(Tool):
    """Tool that POSTs its validated arguments to a provider endpoint."""

    def __init__(
        self,
        url: str,
        timeout_seconds: float | None = None,
        headers: dict[str, str] | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.url = url
        if timeout_seconds is not None:
            self.timeout_seconds = timeout_seconds
        self.headers = headers or {}
        self.transport = transport

    def request_body(self, data: BaseModel) -> dict[str, Any]:
        return data.model_dump(exclude_none=True)

    def run(self, data: BaseModel) -> ProviderResponse:
        body = self.request_body(data)
        try:
            with httpx.Client(timeout=self.timeout_seconds, transport=self.transport) as client:
                response = client.post(self.url, json=body, headers=self.headers)
        except httpx.TimeoutException as exc:
            raise ProviderTimeout(f"{self.name} timed out") from exc
        except httpx.HTTPError as exc:
            raise ProviderError(f"{self.name} transport error: {exc.__class__.__name__}") from exc
        if response.status_code >= 400:
            raise ProviderError(f"{self.name} returned HTTP {response.status_code}")
        try:
            envelope = ProviderResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise ProviderError(f"{self.name} returned a malformed body") from exc
        if not envelope.success:
            raise ProviderUnavailable(f"{self.name}: {envelope.message or 'no data'}")
        return envelope
