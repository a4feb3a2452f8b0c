"""
SignalForge — Regression Strategies

  linear_regression  Linear Regression Oscillator: distance of the close
                     from its regression line, normalized by stddev;
                     zero-line crossings and extreme-level exits.
  deviation_trend    Deviation from the recent mean, confirmed by a
                     regression trend line and a volume check.
"""

from __future__ import annotations

from pydantic import Field, model_validator

from signalforge.models import SignalType
from signalforge.strategies.base import (
    Evaluation,
    Strategy,
    StrategyKind,
    StrategyParams,
    register_strategy,
)
from signalforge.strategies.stats import regression_value
from signalforge.utils.frames import BarArrays


def normalized_lro(closes) -> tuple[float, float]:
    """(lro, normalized) for the last close against the window's regression line."""
    lro = float(closes[-1] - regression_value(closes))
    std = float(closes.std())
    return lro, (lro / std if std > 0 else 0.0)


# ── Linear Regression Oscillator ──

class LinearRegressionParams(StrategyParams):
    period: int = Field(default=14, ge=2)
    upper_threshold: float = Field(default=1.5, gt=0)
    lower_threshold: float = Field(default=-1.5, lt=0)


@register_strategy(StrategyKind.LINEAR_REGRESSION)
class LinearRegressionStrategy(Strategy):
    """BUY on an upward zero crossing of the normalized oscillator, SELL on a
    downward one, EXIT once it reaches either extreme."""

    params_model = LinearRegressionParams

    def warmup(self, params: LinearRegressionParams) -> int:
        return params.period + 1

    def evaluate(self, arrays: BarArrays, params: LinearRegressionParams) -> Evaluation:
        period = params.period
        closes = arrays.close
        lro, current = normalized_lro(closes[-period:])
        _, previous = normalized_lro(closes[-period - 1:-1])
        values = {"lro": lro, "normalized": current}

        if previous <= 0 < current:
            return Evaluation(
                SignalType.BUY, abs(current) / params.upper_threshold, "bullish_crossover", values,
            )
        if previous >= 0 > current:
            return Evaluation(
                SignalType.SELL, abs(current) / abs(params.lower_threshold), "bearish_crossover", values,
            )
        if current >= params.upper_threshold or current <= params.lower_threshold:
            return Evaluation(SignalType.EXIT, 0.8, "extreme_level", values)
        return Evaluation(values=values)


# ── Deviation Trend ──

class DeviationTrendParams(StrategyParams):
    period: int = Field(default=20, ge=2)
    deviation_multiplier: float = Field(default=2.0, gt=0)
    trend_period: int = Field(default=50, ge=2)
    volume_confirmation: bool = True
    volume_factor: float = Field(default=1.2, gt=0)
    exit_threshold: float = Field(default=0.5, gt=0)

    @model_validator(mode="after")
    def _trend_covers_period(self) -> "DeviationTrendParams":
        if self.trend_period < self.period:
            raise ValueError("trend_period must be >= period")
        return self


@register_strategy(StrategyKind.DEVIATION_TREND)
class DeviationTrendStrategy(Strategy):
    """Trade a deviation sign flip in the direction of the regression trend."""

    params_model = DeviationTrendParams

    def warmup(self, params: DeviationTrendParams) -> int:
        return max(params.period + 2, params.trend_period + 1)

    @staticmethod
    def _deviation(closes, end: int, period: int, multiplier: float) -> float:
        """Deviation of closes[end] from the mean of the *period* closes before it."""
        reference = closes[end - period:end]
        std = float(reference.std())
        if std == 0:
            return 0.0
        return float((closes[end] - reference.mean()) / (std * multiplier))

    def evaluate(self, arrays: BarArrays, params: DeviationTrendParams) -> Evaluation:
        closes = arrays.close
        last = len(closes) - 1
        period = params.period

        trend_value = regression_value(closes[last - params.trend_period:last])
        deviation = self._deviation(closes, last, period, params.deviation_multiplier)
        previous = self._deviation(closes, last - 1, period, params.deviation_multiplier)
        support = float(arrays.low[last - period:].min())
        resistance = float(arrays.high[last - period:].max())

        confirmed = True
        if params.volume_confirmation:
            avg_volume = float(arrays.volume[last - period:last].mean())
            confirmed = arrays.volume[last] > avg_volume * params.volume_factor

        price = float(closes[last])
        values = {
            "deviation": deviation,
            "trend_line": trend_value,
            "support": support,
            "resistance": resistance,
        }
        strength = abs(deviation) / params.deviation_multiplier

        if price > support and previous < 0 < deviation and price > trend_value and confirmed:
            return Evaluation(SignalType.BUY, strength, "support_breakout_with_trend", values)
        if price < resistance and previous > 0 > deviation and price < trend_value and confirmed:
            return Evaluation(SignalType.SELL, strength, "resistance_breakdown_with_trend", values)
        if abs(deviation) < params.exit_threshold < abs(previous):
            return Evaluation(SignalType.EXIT, 0.8, "return_to_trend", values)
        return Evaluation(values=values)
