import pytest
from pydantic import ValidationError

from aurachat.models.base import ToolCall
from aurachat.tools.builtins.trading_calculator import TradingCalculatorTool, TradingMathInput
from aurachat.tools.executor import ToolExecutor
from aurachat.tools.registry import ToolRegistry
from aurachat.tools.results import Rejected


def run(**arguments):
    tool = TradingCalculatorTool()
    response = tool.run(TradingMathInput.model_validate(arguments))
    assert response.success
    return response.data["result"]


def test_forex_position_size_uses_pips():
    result = run(
        operation="calculate_position_size",
        account_size=10000,
        risk_percent=1,
        instrument="EURUSD",
        entry_price=1.1000,
        stop_loss=1.0950,
    )
    assert result["risk_amount"] == 100.0
    assert result["pips"] == 50.0
    assert result["position_size"] == 0.2
    assert result["units"] == 20000


def test_jpy_pair_uses_wider_pip():
    result = run(
        operation="calculate_position_size",
        account_size=10000,
        risk_percent=1,
        instrument="USDJPY",
        entry_price=150.00,
        stop_loss=149.50,
    )
    assert result["pips"] == 50.0
    assert result["pip_value"] == 8.33


def test_non_forex_position_size_in_units():
    result = run(
        operation="calculate_position_size",
        account_size=5000,
        risk_percent=2,
        instrument="XAUUSD1",
        entry_price=2400,
        stop_loss=2390,
    )
    assert result["position_size"] == 10.0
    assert result["total_value"] == 24000.0


def test_risk_reward_recommendation():
    result = run(operation="calculate_risk_reward", entry_price=100, stop_loss=95, take_profit=112)
    assert result["risk_reward_ratio"] == 2.4
    assert result["recommendation"] == "Excellent R:R"
    assert result["is_profitable"] is True


def test_margin_warning_below_150_percent():
    result = run(
        operation="calculate_margin",
        account_size=1000,
        leverage=100,
        entry_price=1.1,
        position_size=1,
    )
    assert result["required_margin"] == 1100.0
    assert result["liquidation_warning"] is True


def test_atr_stop():
    result = run(operation="calculate_atr_based_stop", atr=2, atr_multiplier=1.5, entry_price=100)
    assert result["long_stop"] == 97
    assert result["short_stop"] == 103


def test_unknown_operation_fails_validation():
    with pytest.raises(ValidationError):
        TradingMathInput.model_validate({"operation": "predict_the_future"})


def test_missing_parameters_fail_validation():
    with pytest.raises(ValidationError, match="take_profit"):
        TradingMathInput(operation="calculate_risk_reward", entry_price=100, stop_loss=95)


def test_zero_distance_stop_fails_validation():
    with pytest.raises(ValidationError, match="must differ"):
        TradingMathInput(
            operation="calculate_position_size",
            account_size=10000,
            risk_percent=1,
            entry_price=100,
            stop_loss=100,
        )


@pytest.mark.parametrize(
    "arguments",
    [
        {"operation": "calculate_margin"},
        {"operation": "calculate_risk_reward", "entry_price": 100, "stop_loss": 100, "take_profit": 110},
    ],
)
def test_bad_arguments_are_rejected_before_dispatch(arguments):
    registry = ToolRegistry()
    registry.register(TradingCalculatorTool())
    result = ToolExecutor(registry).execute(ToolCall(name="calculate_trading_math", arguments=arguments))
    assert result == Rejected("invalid_arguments")
