from __future__ import annotations

import json

import pytest

from aurachat import cli


@pytest.fixture(autouse=True)
def _offline_env(monkeypatch: pytest.MonkeyPatch, tmp_path):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.setenv("AUDIT_DIR", str(tmp_path / "audit"))


def test_apply_overrides_updates_settings():
    args = cli.parse_args(["hi", "--model", "gpt-test", "--max-rounds", "0", "--budget-seconds", "5"])
    settings = cli.apply_overrides(cli.Settings(), args)
    assert settings.openai_model == "gpt-test"
    assert settings.max_rounds == 0
    assert settings.request_budget_seconds == 5


def test_mock_run_prints_answer(capsys: pytest.CaptureFixture[str]):
    assert cli.main(["gold price", "--mock"]) == 0
    out = capsys.readouterr().out
    assert "State: FINAL_ANSWER" in out
    assert "Mock response to: gold price" in out


def test_mock_run_executes_local_tool(capsys: pytest.CaptureFixture[str], tmp_path):
    arguments = {
        "operation": "calculate_risk_reward",
        "entry_price": 100,
        "stop_loss": 95,
        "take_profit": 110,
    }
    query = "USE_TOOL: calculate_trading_math " + json.dumps(arguments)
    assert cli.main([query, "--mock"]) == 0
    out = capsys.readouterr().out
    assert "Tools used: calculate_trading_math" in out
    assert "risk_reward_ratio" in out

    audit_lines = (tmp_path / "audit" / "tool_calls.jsonl").read_text(encoding="utf-8").splitlines()
    assert json.loads(audit_lines[0])["outcome"] == "success"
