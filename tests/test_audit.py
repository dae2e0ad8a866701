from __future__ import annotations

import json

from aurachat.runtime.audit import AuditRecord, AuditRecorder, redact
from aurachat.runtime.storage import AuditSink, JsonlAuditSink, SqliteAuditSink


def _record(**overrides) -> AuditRecord:
    fields = {
        "tool": "get_market_data",
        "arguments": {"symbol": "XAUUSD"},
        "started_at": "2024-01-01T00:00:00+00:00",
        "duration_ms": 12,
        "outcome": "success",
        "request_id": "req_1",
        "user_id": "user_1",
    }
    fields.update(overrides)
    return AuditRecord(**fields)


class BrokenSink(AuditSink):
    def append(self, record):
        raise OSError("disk full")


def test_redact_masks_secret_keys_and_truncates():
    payload = {"api_key": "sk-123", "nested": {"password": "x", "ok": "y" * 2500}}
    cleaned = redact(payload)
    assert cleaned["api_key"] == "[redacted]"
    assert cleaned["nested"]["password"] == "[redacted]"
    assert cleaned["nested"]["ok"].endswith("...[truncated]")


def test_jsonl_sink_appends_one_line_per_record(tmp_path):
    sink = JsonlAuditSink(tmp_path / "audit")
    recorder = AuditRecorder([sink])
    recorder.record(_record())
    recorder.record(_record(outcome="degraded", reason="provider_timeout"))
    recorder.close()

    lines = sink.path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    second = json.loads(lines[1])
    assert second["outcome"] == "degraded"
    assert second["reason"] == "provider_timeout"
    assert second["request_id"] == "req_1"


def test_sqlite_sink_writes_tool_calls_log(tmp_path):
    sink = SqliteAuditSink(tmp_path / "audit.db")
    recorder = AuditRecorder([sink])
    recorder.record(_record(arguments={"symbol": "EURUSD", "token": "abc"}))
    recorder.close()

    rows = sink.fetch_all()
    assert len(rows) == 1
    assert rows[0]["tool_name"] == "get_market_data"
    assert rows[0]["user_id"] == "user_1"
    assert json.loads(rows[0]["parameters"]) == {"symbol": "EURUSD", "token": "[redacted]"}


def test_failing_sink_does_not_block_other_sinks(tmp_path):
    good = JsonlAuditSink(tmp_path)
    recorder = AuditRecorder([BrokenSink(), good])
    recorder.record(_record())
    recorder.close()
    assert len(good.path.read_text(encoding="utf-8").splitlines()) == 1


def test_records_after_close_are_dropped(tmp_path):
    sink = JsonlAuditSink(tmp_path)
    recorder = AuditRecorder([sink])
    recorder.close()
    recorder.record(_record())
    assert not sink.path.exists()
