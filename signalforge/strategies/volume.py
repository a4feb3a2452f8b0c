"""
SignalForge — Volume Profile Strategy

Builds a volume-by-price profile over the preceding `profile_period` bars,
then trades breakouts through the point of control (POC) and the value
area edges when the current bar's volume is elevated.
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
from signalforge.strategies.stats import point_of_control, value_area, volume_profile
from signalforge.utils.frames import BarArrays


class VolumeProfileParams(StrategyParams):
    profile_period: int = Field(default=100, ge=2)
    value_area_pct: float = Field(default=70, gt=0, le=100)
    price_step_pct: float = Field(default=0.1, gt=0)
    volume_threshold: float = Field(default=1.5, gt=0)
    min_volume: float = Field(default=1000, ge=0)
    breakout_confirmation: bool = True
    poc_breakout_pct: float = Field(default=0.005, ge=0)


@register_strategy(StrategyKind.VOLUME_PROFILE)
class VolumeProfileStrategy(Strategy):
    """POC breakout/breakdown, value-area edge and return-to-POC signals."""

    params_model = VolumeProfileParams

    def warmup(self, params: VolumeProfileParams) -> int:
        return params.profile_period + 2

    @staticmethod
    def _profile(arrays: BarArrays, start: int, end: int, params: VolumeProfileParams) -> dict[float, float]:
        return volume_profile(
            arrays.high[start:end],
            arrays.low[start:end],
            arrays.close[start:end],
            arrays.volume[start:end],
            params.price_step_pct,
        )

    def evaluate(self, arrays: BarArrays, params: VolumeProfileParams) -> Evaluation:
        last = len(arrays) - 1
        period = params.profile_period

        profile = self._profile(arrays, last - period, last, params)
        poc = point_of_control(profile)
        prev_poc = point_of_control(self._profile(arrays, last - 1 - period, last - 1, params))
        va_low, va_high = value_area(profile, params.value_area_pct)

        avg_volume = float(arrays.volume[last - period:last].mean())
        volume = float(arrays.volume[last])
        intensity = volume / avg_volume if avg_volume > 0 else 0.0

        price = float(arrays.close[last])
        confirmed = not params.breakout_confirmation or volume > params.min_volume
        values = {
            "poc": poc,
            "value_area_high": va_high,
            "value_area_low": va_low,
            "volume_intensity": intensity,
        }

        threshold = params.volume_threshold
        breakout_strength = intensity / (threshold * 2)

        if price > poc and price > prev_poc * (1 + params.poc_breakout_pct) and intensity > threshold and confirmed:
            return Evaluation(SignalType.BUY, breakout_strength, "poc_breakout_bullish", values)
        if price < poc and price < prev_poc * (1 - params.poc_breakout_pct) and intensity > threshold and confirmed:
            return Evaluation(SignalType.SELL, breakout_strength, "poc_breakdown_bearish", values)
        if price > va_high and intensity > threshold * 0.8:
            return Evaluation(SignalType.BUY, 0.7, "value_area_high_breakout", values)
        if price < va_low and intensity > threshold * 0.8:
            return Evaluation(SignalType.SELL, 0.7, "value_area_low_breakdown", values)
        if poc > 0 and abs(price - poc) / poc < params.poc_breakout_pct and intensity < threshold * 0.5:
            return Evaluation(SignalType.EXIT, 0.6, "return_to_poc", values)
        return Evaluation(values=values)
