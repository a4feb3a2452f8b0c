"""
SignalForge — Regime Detection Strategy

Scores the `lookback` closes before the current bar for three market
regimes (trending, mean-reverting, volatile), turns the scores into
probabilities with a softmax and signals when the dominant regime is strong
and has just moved away from its recent average.

Signal direction per regime:
  trending        follow the trend score
  mean_reverting  fade the trend score
  volatility      follow the current bar's move
"""

from __future__ import annotations

import math

import numpy as np
from pydantic import Field

from signalforge.models import SignalType
from signalforge.strategies.base import (
    Evaluation,
    Strategy,
    StrategyKind,
    StrategyParams,
    register_strategy,
)
from signalforge.strategies.stats import (
    lag_autocorrelation,
    linear_regression,
    reversal_frequency,
    simple_returns,
    softmax,
)
from signalforge.utils.frames import BarArrays

REGIMES = ("trending", "mean_reverting", "volatility")

ADAPTIVE_STRATEGIES = {
    "trending": "momentum_following",
    "mean_reverting": "contrarian_reversion",
    "volatility": "volatility_trading",
}


class RegimeDetectionParams(StrategyParams):
    lookback: int = Field(default=50, ge=20)
    regime_threshold: float = Field(default=0.6, ge=0, le=1)
    transition_sensitivity: float = Field(default=0.3, ge=0)
    history: int = Field(default=5, ge=1)


# ── Regime scores ──

def _linear_trend(prices: np.ndarray) -> float:
    slope, _ = linear_regression(prices)
    average = float(prices.mean())
    if average == 0:
        return 0.0
    return math.tanh(slope / average * len(prices) * 10)


def _momentum(prices: np.ndarray) -> float:
    short = float(prices[-(len(prices) // 4):].mean())
    long = float(prices[-(len(prices) // 2):].mean())
    if long == 0:
        return 0.0
    return math.tanh((short - long) / long * 10)


def _breakout(prices: np.ndarray) -> float:
    recent, history = prices[-10:], prices[:-10]
    recent_max, recent_min = float(recent.max()), float(recent.min())
    history_max, history_min = float(history.max()), float(history.min())
    up = (recent_max - history_max) / history_max if recent_max > history_max > 0 else 0.0
    down = (history_min - recent_min) / history_min if recent_min < history_min and history_min > 0 else 0.0
    return math.tanh((up + down) * 10)


def trending_score(prices: np.ndarray, returns: np.ndarray) -> float:
    consistency = abs((returns > 0).sum() / len(returns) - 0.5) * 2 if len(returns) else 0.0
    return (_linear_trend(prices) + _momentum(prices) + float(consistency) + _breakout(prices)) / 4


def mean_reverting_score(returns: np.ndarray) -> float:
    mean_abs = float(np.abs(returns).mean()) if len(returns) else 0.0
    range_score = float(returns.max() - returns.min()) / mean_abs if mean_abs > 0 else 0.0
    return (-lag_autocorrelation(returns) + reversal_frequency(returns) + range_score) / 3


def volatility_score(returns: np.ndarray) -> float:
    clustering = lag_autocorrelation(np.abs(returns))
    garch = max(0.0, lag_autocorrelation(returns ** 2)) if len(returns) >= 5 else 0.0
    return (float(returns.std()) + clustering + garch) / 3


def regime_scores(prices: np.ndarray) -> dict[str, float]:
    returns = simple_returns(prices)
    return {
        "trending": trending_score(prices, returns),
        "mean_reverting": mean_reverting_score(returns),
        "volatility": volatility_score(returns),
    }


def dominant_regime(probabilities: dict[str, float]) -> str:
    """Most probable regime; the later regime wins an exact tie."""
    best = REGIMES[0]
    for name in REGIMES[1:]:
        if probabilities[name] >= probabilities[best]:
            best = name
    return best


@register_strategy(StrategyKind.REGIME_DETECTION)
class RegimeDetectionStrategy(Strategy):

    params_model = RegimeDetectionParams

    def warmup(self, params: RegimeDetectionParams) -> int:
        return params.lookback + 1

    @staticmethod
    def _probabilities(closes: np.ndarray, end: int, lookback: int) -> tuple[dict[str, float], dict[str, float]]:
        scores = regime_scores(closes[end - lookback:end])
        return scores, softmax(scores)

    def evaluate(self, arrays: BarArrays, params: RegimeDetectionParams) -> Evaluation:
        closes = arrays.close
        last = len(closes) - 1
        scores, probabilities = self._probabilities(closes, last, params.lookback)

        # Transition needs `history` earlier evaluations inside the window
        transition = 0.0
        if last - params.lookback >= params.history:
            past = [
                self._probabilities(closes, last - k, params.lookback)[1]
                for k in range(1, params.history + 1)
            ]
            transition = max(
                abs(probabilities[name] - sum(p[name] for p in past) / params.history)
                for name in REGIMES
            )

        regime = dominant_regime(probabilities)
        strength = probabilities[regime]
        values = {
            "trending_probability": probabilities["trending"],
            "mean_reverting_probability": probabilities["mean_reverting"],
            "volatility_probability": probabilities["volatility"],
            "regime_strength": strength,
            "regime_transition": transition,
            "trending_score": scores["trending"],
            "mean_reverting_score": scores["mean_reverting"],
            "volatility_score": scores["volatility"],
        }

        if strength > params.regime_threshold and transition > params.transition_sensitivity:
            if regime == "trending":
                bullish = scores["trending"] > 0
            elif regime == "mean_reverting":
                bullish = scores["trending"] <= 0
            else:
                bullish = closes[last] >= closes[last - 1]
            signal_type = SignalType.BUY if bullish else SignalType.SELL
            return Evaluation(signal_type, strength, ADAPTIVE_STRATEGIES[regime], values)
        return Evaluation(values=values)
