"""Configuration settings for the assistant service."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or overrides."""

    model_config = SettingsConfigDict(
        env_prefix="", case_sensitive=False, populate_by_name=True
    )

    openai_api_key: str | None = Field(default=None, validation_alias="OPENAI_API_KEY")
    openai_base_url: str = Field(
        default="https://api.openai.com/v1", validation_alias="OPENAI_BASE_URL"
    )
    openai_model: str = Field(default="gpt-4o", validation_alias="OPENAI_MODEL")
    openai_timeout_seconds: float = Field(
        default=30, validation_alias="OPENAI_TIMEOUT_SECONDS"
    )
    openai_extra_headers: str | None = Field(
        default=None, validation_alias="OPENAI_EXTRA_HEADERS"
    )
    openai_temperature: float = Field(default=0.8, validation_alias="OPENAI_TEMPERATURE")
    openai_max_tokens: int = Field(default=1500, validation_alias="OPENAI_MAX_TOKENS")

    request_budget_seconds: float = Field(
        default=55, validation_alias="REQUEST_BUDGET_SECONDS"
    )
    max_rounds: int = Field(default=2, ge=0, validation_alias="MAX_ROUNDS")
    model_transient_retries: int = Field(
        default=1, ge=0, validation_alias="MODEL_TRANSIENT_RETRIES"
    )
    model_max_concurrency: int = Field(
        default=8, ge=1, validation_alias="MODEL_MAX_CONCURRENCY"
    )
    model_requests_per_minute: int = Field(
        default=60, ge=1, validation_alias="MODEL_REQUESTS_PER_MINUTE"
    )

    tool_timeout_seconds: float | None = Field(
        default=None, gt=0, validation_alias="TOOL_TIMEOUT_SECONDS"
    )
    tool_max_workers: int = Field(default=4, ge=1, validation_alias="TOOL_MAX_WORKERS")
    market_data_url: str = Field(
        default="http://localhost:3000/api/ai/market-data", validation_alias="MARKET_DATA_URL"
    )
    market_news_url: str = Field(
        default="http://localhost:3000/api/ai/market-news", validation_alias="MARKET_NEWS_URL"
    )
    economic_calendar_url: str = Field(
        default="http://localhost:3000/api/ai/forex-factory-calendar",
        validation_alias="ECONOMIC_CALENDAR_URL",
    )
    knowledge_base_url: str = Field(
        default="http://localhost:3000/api/ai/knowledge-base",
        validation_alias="KNOWLEDGE_BASE_URL",
    )

    max_history_turns: int = Field(default=20, ge=1, validation_alias="MAX_HISTORY_TURNS")
    max_message_chars: int = Field(default=10000, ge=1, validation_alias="MAX_MESSAGE_CHARS")

    audit_dir: str | None = Field(default=None, validation_alias="AUDIT_DIR")
    audit_sqlite_path: str | None = Field(default=None, validation_alias="AUDIT_SQLITE_PATH")
    trace_dir: str | None = Field(default=None, validation_alias="TRACE_DIR")

    allowed_tiers: str = Field(
        default="premium,a7fx,elite,admin,super_admin", validation_alias="ALLOWED_TIERS"
    )


DEFAULT_SETTINGS = Settings()
