"""
SignalForge — Volatility Breakout Strategy

Compares short-window realized volatility (scaled by a stress factor from
the latest move) with long-window realized volatility. An expanding spread
while price is pressed against the lower Bollinger band is a BUY; a
contracting spread at the upper band is a SELL.
"""

from __future__ import annotations

from pydantic import Field, model_validator

from signalforge.engines.indicators import bollinger_bands
from signalforge.models import SignalType
from signalforge.strategies.base import (
    Evaluation,
    Strategy,
    StrategyKind,
    StrategyParams,
    register_strategy,
)
from signalforge.strategies.stats import historical_volatility
from signalforge.utils.frames import BarArrays


class VolatilityBreakoutParams(StrategyParams):
    period: int = Field(default=20, ge=3)
    short_period: int = Field(default=10, ge=2)
    threshold: float = Field(default=0.5, gt=0)
    band_k: float = Field(default=2.0, gt=0)
    band_trigger: float = Field(default=0.8, gt=0)
    stress_multiplier: float = Field(default=10.0, ge=0)

    @model_validator(mode="after")
    def _short_below_long(self) -> "VolatilityBreakoutParams":
        if self.short_period >= self.period:
            raise ValueError("short_period must be below period")
        return self


@register_strategy(StrategyKind.VOLATILITY_BREAKOUT)
class VolatilityBreakoutStrategy(Strategy):

    params_model = VolatilityBreakoutParams

    def warmup(self, params: VolatilityBreakoutParams) -> int:
        return params.period + 1

    def evaluate(self, arrays: BarArrays, params: VolatilityBreakoutParams) -> Evaluation:
        closes = arrays.close
        long_vol = historical_volatility(closes, params.period)
        short_vol = historical_volatility(closes, params.short_period)

        last_move = abs(closes[-1] - closes[-2]) / closes[-2]
        stressed_vol = short_vol * (1 + last_move * params.stress_multiplier)
        spread = stressed_vol / long_vol - 1 if long_vol > 0 else 0.0

        bands = bollinger_bands(closes[-params.period:], params.period, params.band_k)
        middle, upper = bands["middle"][-1], bands["upper"][-1]
        position = (closes[-1] - middle) / (upper - middle) if upper > middle else 0.0

        values = {
            "historical_volatility": long_vol,
            "short_volatility": stressed_vol,
            "volatility_spread": spread,
            "band_position": float(position),
        }

        strength = abs(spread) / params.threshold
        if spread > params.threshold and position < -params.band_trigger:
            return Evaluation(
                SignalType.BUY, strength, f"Volatility expansion at lower band (spread {spread:.3f})", values,
            )
        if spread < -params.threshold and position > params.band_trigger:
            return Evaluation(
                SignalType.SELL, strength, f"Volatility contraction at upper band (spread {spread:.3f})", values,
            )
        return Evaluation(values=values)
