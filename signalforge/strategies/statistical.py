"""
SignalForge — Statistical Strategies

  zscore_trend    Fade closes that sit more than `threshold` standard
                  deviations from the mean of the preceding bars.
  mean_reversion  Z-score entry gated on a short mean-reversion half-life
                  and blended into a confidence score.
"""

from __future__ import annotations

from pydantic import Field

from signalforge.models import SignalType
from signalforge.strategies.base import (
    Evaluation,
    Strategy,
    StrategyKind,
    StrategyParams,
    register_strategy,
)
from signalforge.strategies.stats import autocorrelation, half_life, simple_returns, zscore
from signalforge.utils.frames import BarArrays


class ZScoreTrendParams(StrategyParams):
    period: int = Field(default=20, ge=2)
    threshold: float = Field(default=2.0, gt=0)


@register_strategy(StrategyKind.ZSCORE_TREND)
class ZScoreTrendStrategy(Strategy):
    """SELL when z > threshold (overbought), BUY when z < -threshold."""

    params_model = ZScoreTrendParams

    def warmup(self, params: ZScoreTrendParams) -> int:
        return params.period + 1

    def evaluate(self, arrays: BarArrays, params: ZScoreTrendParams) -> Evaluation:
        closes = arrays.close
        reference = closes[-params.period - 1:-1]
        z = zscore(closes[-1], reference)
        values = {
            "zscore": z,
            "moving_average": float(reference.mean()),
            "standard_deviation": float(reference.std()),
        }

        strength = abs(z) / params.threshold
        if z > params.threshold:
            return Evaluation(SignalType.SELL, strength, f"Overbought condition (Z-Score: {z:.2f})", values)
        if z < -params.threshold:
            return Evaluation(SignalType.BUY, strength, f"Oversold condition (Z-Score: {z:.2f})", values)
        return Evaluation(values=values)


class MeanReversionParams(StrategyParams):
    lookback: int = Field(default=60, ge=4)
    zscore_threshold: float = Field(default=2.0, gt=0)
    half_life_threshold: float = Field(default=30, gt=0)
    min_confidence: float = Field(default=0.6, ge=0, le=1)


@register_strategy(StrategyKind.MEAN_REVERSION)
class MeanReversionStrategy(Strategy):
    """Statistical-arbitrage style entry on a single series."""

    params_model = MeanReversionParams

    def warmup(self, params: MeanReversionParams) -> int:
        return params.lookback + 1

    def confidence(self, z: float, hl: float, speed: float, params: MeanReversionParams) -> float:
        z_part = min(abs(z) / params.zscore_threshold, 1.0)
        hl_part = max(0.0, 1 - hl / params.half_life_threshold)
        speed_part = min(abs(speed) * 10, 1.0)
        return z_part * 0.4 + hl_part * 0.3 + speed_part * 0.3

    def evaluate(self, arrays: BarArrays, params: MeanReversionParams) -> Evaluation:
        closes = arrays.close
        reference = closes[-params.lookback - 1:-1]
        returns = simple_returns(reference)

        z = zscore(closes[-1], reference)
        hl = half_life(returns)
        speed = autocorrelation(returns)
        values = {
            "zscore": z,
            "half_life": hl,
            "mean_reversion_speed": speed,
            "expected_reversion": float(reference.mean()),
        }

        if abs(z) > params.zscore_threshold and hl < params.half_life_threshold:
            confidence = self.confidence(z, hl, speed, params)
            if confidence > params.min_confidence:
                signal_type = SignalType.SELL if z > 0 else SignalType.BUY
                return Evaluation(signal_type, confidence, "statistical_mean_reversion", values)
        return Evaluation(values=values)
