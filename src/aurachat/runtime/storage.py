"""Audit sink backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
import json
import sqlite3
import threading
from typing import Any


class AuditSink(ABC):
    @abstractmethod
    def append(self, record: dict[str, Any]) -> None:
        raise NotImplementedError


class JsonlAuditSink(AuditSink):
    """Appends one JSON line per tool call to ``<dir>/tool_calls.jsonl``."""

    def __init__(self, audit_dir: str | Path) -> None:
        self.audit_dir = Path(audit_dir)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self.audit_dir / "tool_calls.jsonl"

    def append(self, record: dict[str, Any]) -> None:
        line = json.dumps(record, ensure_ascii=False, default=str) + "\n"
        with self._lock:
            self.audit_dir.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(line)


class SqliteAuditSink(AuditSink):
    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self._init_db()

    def _init_db(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS tool_calls_log (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    request_id TEXT,
                    user_id TEXT,
                    tool_name TEXT NOT NULL,
                    parameters TEXT,
                    outcome TEXT,
                    reason TEXT,
                    duration_ms INTEGER,
                    started_at TEXT
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_tool_calls_tool ON tool_calls_log (tool_name)"
            )
            conn.commit()

    def append(self, record: dict[str, Any]) -> None:
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                """
                INSERT INTO tool_calls_log (
                    request_id, user_id, tool_name, parameters, outcome,
                    reason, duration_ms, started_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.get("request_id"),
                    record.get("user_id"),
                    record.get("tool"),
                    json.dumps(record.get("arguments"), ensure_ascii=False, default=str),
                    record.get("outcome"),
                    record.get("reason"),
                    record.get("duration_ms"),
                    record.get("started_at"),
                ),
            )
            conn.commit()

    def fetch_all(self) -> list[dict[str, Any]]:
        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row
            rows = conn.execute("SELECT * FROM tool_calls_log ORDER BY id").fetchall()
        return [dict(row) for row in rows]
