"""Market news headlines."""

from __future__ import annotations

from pydantic import BaseModel, Field

from aurachat.tools.builtins.http_provider import HttpProviderTool


class MarketNewsInput(BaseModel):
    symbol: str | None = Field(default=None, max_length=20)
    category: str = Field(default="general", max_length=40)
    limit: int = Field(default=10, ge=1, le=20)


class MarketNewsTool(HttpProviderTool):
    name = "get_market_news"
    description = "Fetch recent market news, optionally filtered to one instrument."
    input_schema = MarketNewsInput
    timeout_seconds = 5.0
