"""Sanitising of client-supplied conversation history."""

from __future__ import annotations

from typing import Any

_ALLOWED_ROLES = {"user", "assistant"}
_TRUNCATED_MARKER = "[TRUNCATED]"


def _text_of(content: Any) -> str | None:
    if isinstance(content, str):
        return content
    if isinstance(content, dict) and isinstance(content.get("text"), str):
        return content["text"]
    if isinstance(content, list):
        parts = [
            item.get("text")
            for item in content
            if isinstance(item, dict) and isinstance(item.get("text"), str)
        ]
        return "\n".join(parts) if parts else None
    return None


def truncate(text: str, max_chars: int) -> str:
    if len(text) <= max_chars:
        return text
    if max_chars <= len(_TRUNCATED_MARKER):
        return text[:max_chars]
    return text[: max_chars - len(_TRUNCATED_MARKER)] + _TRUNCATED_MARKER


def sanitize_history(
    history: list[Any] | None,
    max_turns: int = 20,
    max_chars: int = 10000,
) -> list[dict[str, str]]:
    """Keep the last ``max_turns`` exchanges of plain user/assistant text.

    Tool and system turns from clients are dropped.
    """
    cleaned: list[dict[str, str]] = []
    for item in history or []:
        if not isinstance(item, dict) or item.get("role") not in _ALLOWED_ROLES:
            continue
        text = _text_of(item.get("content"))
        if text is None or not text.strip():
            continue
        cleaned.append({"role": item["role"], "content": truncate(text, max_chars)})
    return cleaned[-max(1, max_turns) * 2 :]
