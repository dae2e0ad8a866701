"""Command-line interface."""

from __future__ import annotations

import argparse
import sys
from typing import Any

from aurachat.config import Settings
from aurachat.errors import ModelServiceError
from aurachat.factory import build_model, build_orchestrator, build_registry


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Ask the trading assistant a question")
    parser.add_argument("query", type=str, help="Question to ask")
    parser.add_argument("--base-url", dest="base_url")
    parser.add_argument("--api-key", dest="api_key")
    parser.add_argument("--model", dest="model")
    parser.add_argument("--budget-seconds", type=float, dest="budget_seconds")
    parser.add_argument("--max-rounds", type=int, dest="max_rounds")
    parser.add_argument("--tool-timeout", type=float, dest="tool_timeout")
    parser.add_argument("--audit-dir", dest="audit_dir")
    parser.add_argument("--trace-dir", dest="trace_dir")
    parser.add_argument("--mock", action="store_true", dest="mock")
    return parser.parse_args(argv)


def apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    data: dict[str, Any] = settings.model_dump()
    if args.base_url:
        data["openai_base_url"] = args.base_url
    if args.api_key:
        data["openai_api_key"] = args.api_key
    if args.model:
        data["openai_model"] = args.model
    if args.budget_seconds:
        data["request_budget_seconds"] = args.budget_seconds
    if args.max_rounds is not None:
        data["max_rounds"] = args.max_rounds
    if args.tool_timeout:
        data["tool_timeout_seconds"] = args.tool_timeout
    if args.audit_dir:
        data["audit_dir"] = args.audit_dir
    if args.trace_dir:
        data["trace_dir"] = args.trace_dir
    return Settings(**data)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    settings = apply_overrides(Settings(), args)
    model = build_model(settings, use_mock=args.mock)
    orchestrator = build_orchestrator(settings, model, build_registry(settings))
    try:
        result = orchestrator.run(args.query)
    except ModelServiceError as exc:
        print(exc.user_message, file=sys.stderr)
        return 1
    finally:
        orchestrator.executor.audit.close()
    print("State:", result.state.value)
    print("Rounds:", result.rounds_used)
    print("Tools used:", ", ".join(result.tools_used) or "none")
    if result.degraded_tools:
        print("Degraded:", ", ".join(result.degraded_tools))
    print("Answer:\n", result.answer)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
