"""Economic calendar events."""

from __future__ import annotations

from datetime import date as Date
from typing import Literal

from pydantic import BaseModel, Field

from aurachat.tools.builtins.http_provider import HttpProviderTool


class EconomicCalendarInput(BaseModel):
    date: Date | None = Field(
        default=None, description="Date in YYYY-MM-DD format; today when omitted"
    )
    impact: Literal["High", "Medium", "Low"] | None = None


class EconomicCalendarTool(HttpProviderTool):
    name = "get_economic_calendar"
    description = (
        "Fetch economic calendar events with their expected market impact."
    )
    input_schema = EconomicCalendarInput
    timeout_seconds = 5.0

    def request_body(self, data: BaseModel) -> dict:
        return data.model_dump(mode="json", exclude_none=True)
