"""Trading math: position sizing, risk/reward, pip value, margin, ATR stops."""

from __future__ import annotations

import re
from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator

from aurachat.tools.base import ProviderResponse, Tool

_FOREX_PAIR = re.compile(r"^[A-Z]{6}$")

_REQUIRED = {
    "calculate_position_size": ("account_size", "risk_percent", "entry_price", "stop_loss"),
    "calculate_risk_reward": ("entry_price", "stop_loss", "take_profit"),
    "calculate_pip_value": ("instrument", "contract_size"),
    "calculate_margin": ("account_size", "leverage", "entry_price", "position_size"),
    "calculate_atr_based_stop": ("atr", "atr_multiplier", "entry_price"),
}


class TradingMathInput(BaseModel):
    operation: Literal[
        "calculate_position_size",
        "calculate_risk_reward",
        "calculate_pip_value",
        "calculate_margin",
        "calculate_atr_based_stop",
    ]
    account_size: float | None = Field(default=None, gt=0)
    risk_percent: float | None = Field(default=None, gt=0, le=100)
    instrument: str | None = None
    entry_price: float | None = Field(default=None, gt=0)
    stop_loss: float | None = Field(default=None, gt=0)
    take_profit: float | None = Field(default=None, gt=0)
    leverage: float | None = Field(default=None, gt=0)
    contract_size: float | None = Field(default=None, gt=0)
    pip_value: float | None = Field(default=None, gt=0)
    position_size: float | None = Field(default=None, gt=0)
    atr: float | None = Field(default=None, gt=0)
    atr_multiplier: float | None = Field(default=None, gt=0)

    @model_validator(mode="after")
    def _check_operation_parameters(self) -> "TradingMathInput":
        missing = [name for name in _REQUIRED[self.operation] if getattr(self, name) is None]
        if missing:
            raise ValueError(f"missing parameters for {self.operation}: {', '.join(missing)}")
        if "stop_loss" in _REQUIRED[self.operation] and self.entry_price == self.stop_loss:
            raise ValueError("entry_price and stop_loss must differ")
        return self


class TradingCalculatorTool(Tool):
    name = "calculate_trading_math"
    description = (
        "Exact trading calculations: position size from risk, risk/reward ratio, "
        "pip value, margin requirements and ATR-based stops."
    )
    input_schema = TradingMathInput
    timeout_seconds = 1.0

    def run(self, data: BaseModel) -> ProviderResponse:
        payload = TradingMathInput.model_validate(data)
        handler = _OPERATIONS[payload.operation]
        return ProviderResponse(
            success=True,
            data={"operation": payload.operation, "result": handler(payload)},
        )


def _is_forex(instrument: str | None) -> bool:
    return bool(instrument and _FOREX_PAIR.match(instrument.upper()))


def _pip_size(instrument: str) -> float:
    return 0.01 if "JPY" in instrument.upper() else 0.0001


def position_size(payload: TradingMathInput) -> dict[str, Any]:
    risk_amount = payload.account_size * payload.risk_percent / 100
    price_risk = abs(payload.entry_price - payload.stop_loss)
    if _is_forex(payload.instrument):
        instrument = payload.instrument.upper()
        pip_value = payload.pip_value or (8.33 if "JPY" in instrument else 10.0)
        pips = price_risk / _pip_size(instrument)
        lots = risk_amount / (pips * pip_value)
        contract = payload.contract_size or 100_000
        return {
            "position_size": round(lots, 2),
            "risk_amount": round(risk_amount, 2),
            "risk_percent": payload.risk_percent,
            "pips": round(pips, 1),
            "pip_value": pip_value,
            "units": round(lots * contract),
        }
    contract = payload.contract_size or 1
    units = risk_amount / price_risk
    return {
        "position_size": round(units, 4),
        "risk_amount": round(risk_amount, 2),
        "risk_percent": payload.risk_percent,
        "price_risk": round(price_risk, 4),
        "contract_size": contract,
        "total_value": round(units * payload.entry_price, 2),
        "units": round(units * contract, 4),
    }


def risk_reward(payload: TradingMathInput) -> dict[str, Any]:
    risk = abs(payload.entry_price - payload.stop_loss)
    reward = abs(payload.take_profit - payload.entry_price)
    ratio = reward / risk
    if ratio >= 2:
        verdict = "Excellent R:R"
    elif ratio >= 1.5:
        verdict = "Good R:R"
    elif ratio >= 1:
        verdict = "Acceptable R:R"
    else:
        verdict = "Poor R:R - consider adjusting TP"
    return {
        "risk": round(risk, 4),
        "reward": round(reward, 4),
        "risk_reward_ratio": round(ratio, 2),
        "risk_percent": round(risk / payload.entry_price * 100, 2),
        "reward_percent": round(reward / payload.entry_price * 100, 2),
        "is_profitable": ratio >= 1,
        "recommendation": verdict,
    }


def pip_value(payload: TradingMathInput) -> dict[str, Any]:
    size = _pip_size(payload.instrument)
    return {
        "pip_value": payload.contract_size * size,
        "pip_size": size,
        "contract_size": payload.contract_size,
        "is_jpy": "JPY" in payload.instrument.upper(),
    }


def margin(payload: TradingMathInput) -> dict[str, Any]:
    contract = payload.contract_size or 100_000
    notional = payload.position_size * payload.entry_price * contract
    required = notional / payload.leverage
    level = payload.account_size / required * 100
    if level < 150:
        warning = "WARNING: Margin level below 150% - high liquidation risk!"
    elif level > 200:
        warning = "Margin level is safe"
    else:
        warning = "Monitor margin level closely"
    return {
        "notional_value": round(notional, 2),
        "required_margin": round(required, 2),
        "free_margin": round(payload.account_size - required, 2),
        "margin_level_percent": round(level, 2),
        "leverage": payload.leverage,
        "is_safe": level > 200,
        "liquidation_warning": level < 150,
        "warning": warning,
    }


def atr_stop(payload: TradingMathInput) -> dict[str, Any]:
    distance = payload.atr * payload.atr_multiplier
    return {
        "atr_stop": distance,
        "long_stop": payload.entry_price - distance,
        "short_stop": payload.entry_price + distance,
        "atr_multiplier": payload.atr_multiplier,
    }


_OPERATIONS = {
    "calculate_position_size": position_size,
    "calculate_risk_reward": risk_reward,
    "calculate_pip_value": pip_value,
    "calculate_margin": margin,
    "calculate_atr_based_stop": atr_stop,
}
