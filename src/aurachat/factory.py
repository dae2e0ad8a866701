"""Shared construction helpers for models, tools, and the orchestrator."""

from __future__ import annotations

import json

from aurachat.config import Settings
from aurachat.models.base import BaseChatModel
from aurachat.models.mock import MockChatModel
from aurachat.models.openai_compat import OpenAICompatChatModel
from aurachat.models.rate_limit import ModelRateLimiter
from aurachat.orchestrator import Orchestrator
from aurachat.runtime.audit import AuditRecorder
from aurachat.runtime.observability import MetricsCollector
from aurachat.runtime.storage import AuditSink, JsonlAuditSink, SqliteAuditSink
from aurachat.tools.builtins.economic_calendar import EconomicCalendarTool
from aurachat.tools.builtins.knowledge import KnowledgeSearchTool
from aurachat.tools.builtins.market_data import MarketDataTool
from aurachat.tools.builtins.news import MarketNewsTool
from aurachat.tools.builtins.trading_calculator import TradingCalculatorTool
from aurachat.tools.executor import ToolExecutor
from aurachat.tools.registry import ToolRegistry


def build_rate_limiter(settings: Settings) -> ModelRateLimiter:
    return ModelRateLimiter(
        max_concurrency=settings.model_max_concurrency,
        requests_per_window=settings.model_requests_per_minute,
    )


def build_model(
    settings: Settings,
    rate_limiter: ModelRateLimiter | None = None,
    use_mock: bool = False,
) -> BaseChatModel:
    if use_mock or not settings.openai_api_key:
        return MockChatModel()
    extra_headers = None
    if settings.openai_extra_headers:
        extra_headers = json.loads(settings.openai_extra_headers)
    return OpenAICompatChatModel(
        base_url=settings.openai_base_url,
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        timeout_seconds=settings.openai_timeout_seconds,
        temperature=settings.openai_temperature,
        max_tokens=settings.openai_max_tokens,
        extra_headers=extra_headers,
        rate_limiter=rate_limiter or build_rate_limiter(settings),
    )


def build_registry(settings: Settings) -> ToolRegistry:
    registry = ToolRegistry()
    # Unset keeps each tool's own timeout.
    timeout = settings.tool_timeout_seconds
    registry.register(MarketDataTool(settings.market_data_url, timeout_seconds=timeout))
    registry.register(MarketNewsTool(settings.market_news_url, timeout_seconds=timeout))
    registry.register(EconomicCalendarTool(settings.economic_calendar_url, timeout_seconds=timeout))
    registry.register(KnowledgeSearchTool(settings.knowledge_base_url, timeout_seconds=timeout))
    registry.register(TradingCalculatorTool())
    return registry


def build_audit(settings: Settings) -> AuditRecorder:
    sinks: list[AuditSink] = []
    if settings.audit_dir:
        sinks.append(JsonlAuditSink(settings.audit_dir))
    if settings.audit_sqlite_path:
        sinks.append(SqliteAuditSink(settings.audit_sqlite_path))
    return AuditRecorder(sinks)


def build_orchestrator(
    settings: Settings,
    model: BaseChatModel,
    registry: ToolRegistry,
    *,
    audit: AuditRecorder | None = None,
    metrics: MetricsCollector | None = None,
) -> Orchestrator:
    metrics = metrics or MetricsCollector()
    executor = ToolExecutor(
        registry,
        audit=audit if audit is not None else build_audit(settings),
        metrics=metrics,
        max_workers=settings.tool_max_workers,
    )
    return Orchestrator(
        model,
        registry,
        executor,
        budget_seconds=settings.request_budget_seconds,
        max_rounds=settings.max_rounds,
        model_timeout_seconds=settings.openai_timeout_seconds,
        transient_retries=settings.model_transient_retries,
        metrics=metrics,
        trace_dir=settings.trace_dir,
    )
