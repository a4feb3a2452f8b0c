"""
SignalForge — Stop Loss / Take Profit Strategy

Fast/slow SMA crossovers open a position: an upward cross is a BUY (long),
a downward cross a SELL (short). Stop-loss and take-profit levels are set
from the entry close, as a percentage or a fixed price distance. The first
later close that reaches either level is an EXIT; a newer crossover
replaces the position.
"""

from __future__ import annotations

import math

import numpy as np
from pydantic import Field, model_validator

from signalforge.engines.indicators import sma
from signalforge.models import SignalType
from signalforge.strategies.base import (
    Evaluation,
    Strategy,
    StrategyKind,
    StrategyParams,
    register_strategy,
)
from signalforge.utils.frames import BarArrays


class StopLossTakeProfitParams(StrategyParams):
    fast_period: int = Field(default=14, ge=1)
    slow_period: int = Field(default=28, ge=2)
    stop_loss_pct: float = Field(default=2.0, gt=0, lt=100)
    take_profit_pct: float = Field(default=4.0, gt=0)
    use_fixed_amount: bool = False
    fixed_stop_loss: float = Field(default=100.0, gt=0)
    fixed_take_profit: float = Field(default=200.0, gt=0)
    position_size_pct: float = Field(default=5.0, gt=0, le=100)
    account_balance: float = Field(default=100_000.0, gt=0)

    @model_validator(mode="after")
    def _fast_below_slow(self) -> "StopLossTakeProfitParams":
        if self.fast_period >= self.slow_period:
            raise ValueError("fast_period must be below slow_period")
        return self


def exit_levels(entry: float, long: bool, params: StopLossTakeProfitParams) -> tuple[float, float]:
    """(stop_loss, take_profit) for a position opened at *entry*."""
    if params.use_fixed_amount:
        risk, reward = params.fixed_stop_loss, params.fixed_take_profit
    else:
        risk, reward = entry * params.stop_loss_pct / 100, entry * params.take_profit_pct / 100
    if long:
        return entry - risk, entry + reward
    return entry + risk, entry - reward


def position_size(price: float, stop_loss: float, params: StopLossTakeProfitParams) -> float:
    """Units whose loss at the stop equals position_size_pct % of the account."""
    risk_per_unit = abs(price - stop_loss)
    if risk_per_unit == 0:
        return 0.0
    return float(math.floor(params.account_balance * params.position_size_pct / 100 / risk_per_unit))


@register_strategy(StrategyKind.STOP_LOSS_TAKE_PROFIT)
class StopLossTakeProfitStrategy(Strategy):

    params_model = StopLossTakeProfitParams

    def warmup(self, params: StopLossTakeProfitParams) -> int:
        return params.slow_period + 1

    def evaluate(self, arrays: BarArrays, params: StopLossTakeProfitParams) -> Evaluation:
        closes = arrays.close
        fast = np.asarray(sma(closes, params.fast_period))
        slow = np.asarray(sma(closes, params.slow_period))
        spread = fast[-len(slow):] - slow
        offset = len(closes) - len(spread)

        up = np.concatenate(([False], (spread[:-1] <= 0) & (spread[1:] > 0)))
        down = np.concatenate(([False], (spread[:-1] >= 0) & (spread[1:] < 0)))
        crosses = np.flatnonzero(up | down)
        last = len(spread) - 1
        price = float(closes[-1])

        def values(stop: float, take: float, size: float = 0.0) -> dict[str, float]:
            return {
                "fast_sma": float(fast[-1]),
                "slow_sma": float(slow[-1]),
                "stop_loss": stop,
                "take_profit": take,
                "position_size": size,
            }

        if crosses.size and crosses[-1] == last:
            long = bool(up[last])
            stop, take = exit_levels(price, long, params)
            size = position_size(price, stop, params)
            if long:
                return Evaluation(SignalType.BUY, 0.8, "sma_bullish_crossover", values(stop, take, size))
            return Evaluation(SignalType.SELL, 0.8, "sma_bearish_crossover", values(stop, take, size))

        if crosses.size:
            entry_index = int(crosses[-1]) + offset
            long = bool(up[crosses[-1]])
            entry = float(closes[entry_index])
            stop, take = exit_levels(entry, long, params)

            held = closes[entry_index + 1:-1]
            if long:
                closed = bool(np.any((held <= stop) | (held >= take)))
            else:
                closed = bool(np.any((held >= stop) | (held <= take)))

            if not closed:
                size = position_size(entry, stop, params)
                stopped = price <= stop if long else price >= stop
                target = price >= take if long else price <= take
                if stopped:
                    return Evaluation(SignalType.EXIT, 1.0, "stop_loss_hit", values(stop, take, size))
                if target:
                    return Evaluation(SignalType.EXIT, 1.0, "take_profit_hit", values(stop, take, size))
                return Evaluation(values=values(stop, take, size))

        stop, take = exit_levels(price, True, params)
        return Evaluation(values=values(stop, take))
