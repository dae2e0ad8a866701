"""Fire-and-forget audit trail of tool invocations."""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
import threading
from typing import Any, Iterable

from aurachat.runtime.storage import AuditSink
from aurachat.util.logging import get_logger

logger = get_logger(__name__)

REDACT_KEYS = ("key", "token", "password", "secret")


def redact(payload: Any, rules: Iterable[str] = REDACT_KEYS) -> Any:
    if isinstance(payload, dict):
        redacted: dict[str, Any] = {}
        for key, value in payload.items():
            if any(rule in str(key).lower() for rule in rules):
                redacted[key] = "[redacted]"
            else:
                redacted[key] = redact(value, rules)
        return redacted
    if isinstance(payload, list):
        return [redact(item, rules) for item in payload]
    if isinstance(payload, str) and len(payload) > 2000:
        return payload[:2000] + "...[truncated]"
    return payload


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class AuditRecord:
    tool: str
    arguments: dict[str, Any]
    started_at: str
    duration_ms: int
    outcome: str
    reason: str | None = None
    request_id: str | None = None
    user_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["arguments"] = redact(self.arguments)
        return payload


class AuditRecorder:
    """Hands records to a background worker so sinks never block a response.

    Sink failures are logged and dropped.
    """

    def __init__(self, sinks: Iterable[AuditSink] | None = None) -> None:
        self.sinks = list(sinks or [])
        self._pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="audit")
        self._pending: set[Future] = set()
        self._lock = threading.Lock()
        self._closed = False

    def record(self, record: AuditRecord) -> None:
        if not self.sinks or self._closed:
            return
        try:
            future = self._pool.submit(self._write, record.to_dict())
        except RuntimeError as exc:
            logger.warning("Audit record dropped for %s: %s", record.tool, exc)
            return
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def _write(self, payload: dict[str, Any]) -> None:
        for sink in self.sinks:
            try:
                sink.append(payload)
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "Audit sink %s failed for %s: %s",
                    sink.__class__.__name__,
                    payload.get("tool"),
                    exc,
                )

    def flush(self, timeout_seconds: float | None = 5.0) -> None:
        with self._lock:
            pending = list(self._pending)
        if pending:
            wait(pending, timeout=timeout_seconds)

    def close(self) -> None:
        self.flush()
        self._closed = True
        self._pool.shutdown(wait=True)
