"""Live price lookups."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator

from aurachat.tools.builtins.http_provider import HttpProviderTool


class MarketDataInput(BaseModel):
    symbol: str = Field(
        min_length=1,
        max_length=20,
        description="Trading symbol, e.g. AAPL, EURUSD, BTCUSD, XAUUSD, SPY",
    )
    type: Literal["quote", "intraday"] = Field(
        default="quote",
        description='"quote" for the current price, "intraday" for intraday bars',
    )

    @field_validator("symbol")
    @classmethod
    def _normalize_symbol(cls, value: str) -> str:
        return value.strip().upper()


class MarketDataTool(HttpProviderTool):
    name = "get_market_data"
    description = (
        "Fetch real-time market data for stocks, forex, crypto and commodities. "
        "Use whenever the user asks for a current price or quote."
    )
    input_schema = MarketDataInput
    timeout_seconds = 5.0
