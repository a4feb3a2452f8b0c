"""
SignalForge — Ultimate (Combined) Strategy

Evaluates several registered strategies on the same window and merges
their signals for the current bar:

  weighted   strength-times-weight sums for BUY and SELL, normalized by the
             weight of the strategies that fired; the net side wins unless
             it sits inside `neutral_band`
  consensus  at least `minimum_consensus` strategies on one side; strength
             is their average

Combined signals weaker than `signal_threshold` are dropped.
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field, field_validator

from signalforge.models import SignalType
from signalforge.strategies.base import (
    Evaluation,
    Strategy,
    StrategyKind,
    StrategyParams,
    get_strategy,
    register_strategy,
)
from signalforge.utils.frames import BarArrays


def _default_weights() -> dict[StrategyKind, float]:
    return {StrategyKind.LINEAR_REGRESSION: 0.25, StrategyKind.ZSCORE_TREND: 0.25}


class UltimateParams(StrategyParams):
    method: Literal["weighted", "consensus"] = "weighted"
    weights: dict[StrategyKind, float] = Field(default_factory=_default_weights)
    signal_threshold: float = Field(default=0.6, ge=0, le=1)
    neutral_band: float = Field(default=0.1, ge=0)
    minimum_consensus: int = Field(default=2, ge=1)

    @field_validator("weights")
    @classmethod
    def _check_weights(cls, v: dict[StrategyKind, float]) -> dict[StrategyKind, float]:
        if not v:
            raise ValueError("at least one component strategy is required")
        if StrategyKind.ULTIMATE in v:
            raise ValueError("ultimate cannot be its own component")
        if any(weight < 0 for weight in v.values()):
            raise ValueError("component weights must be >= 0")
        return v


@register_strategy(StrategyKind.ULTIMATE)
class UltimateStrategy(Strategy):

    params_model = UltimateParams

    def _components(self, params: UltimateParams) -> list[tuple[Strategy, float]]:
        return [(get_strategy(kind), weight) for kind, weight in params.weights.items()]

    def warmup(self, params: UltimateParams) -> int:
        return max(s.warmup(s.resolve_params()) for s, _ in self._components(params))

    def evaluate(self, arrays: BarArrays, params: UltimateParams) -> Evaluation:
        values: dict[str, float] = {}
        buy = sell = total_weight = 0.0
        buy_votes: list[float] = []
        sell_votes: list[float] = []

        for strategy, weight in self._components(params):
            evaluation = strategy.evaluate(arrays, strategy.resolve_params())
            for name, value in evaluation.values.items():
                values[f"{strategy.kind.value}.{name}"] = value
            if evaluation.type == SignalType.HOLD:
                continue

            strength = max(0.0, min(1.0, evaluation.strength))
            total_weight += weight
            if evaluation.type == SignalType.BUY:
                buy += strength * weight
                buy_votes.append(strength)
            elif evaluation.type == SignalType.SELL:
                sell += strength * weight
                sell_votes.append(strength)

        if total_weight > 0:
            buy /= total_weight
            sell /= total_weight
        values.update({
            "buy_strength": buy,
            "sell_strength": sell,
            "buy_votes": float(len(buy_votes)),
            "sell_votes": float(len(sell_votes)),
        })

        signal_type, strength = SignalType.HOLD, 0.0
        if params.method == "weighted":
            net = buy - sell
            if total_weight > 0 and abs(net) >= params.neutral_band:
                signal_type = SignalType.BUY if net > 0 else SignalType.SELL
                strength = abs(net)
        elif len(buy_votes) >= params.minimum_consensus:
            signal_type, strength = SignalType.BUY, sum(buy_votes) / len(buy_votes)
        elif len(sell_votes) >= params.minimum_consensus:
            signal_type, strength = SignalType.SELL, sum(sell_votes) / len(sell_votes)

        if signal_type == SignalType.HOLD or strength < params.signal_threshold:
            return Evaluation(values=values)
        return Evaluation(signal_type, strength, f"{params.method}_combination", values)
