"""
SignalForge — Momentum Model Strategy

A fixed-weight linear model over features of the `feature_window` bars
before the current one (momentum, RSI, volatility, volume, trend strength,
mean reversion, return moments), squashed to a prediction in (-1, 1).
A separate confidence score rewards steady, trending, low-volatility
windows. BUY or SELL fires when both clear their thresholds.
"""

from __future__ import annotations

import math

import numpy as np
from pydantic import Field, model_validator

from signalforge.engines.indicators import rsi
from signalforge.models import SignalType
from signalforge.strategies.base import (
    Evaluation,
    Strategy,
    StrategyKind,
    StrategyParams,
    register_strategy,
)
from signalforge.strategies.stats import (
    excess_kurtosis,
    lag_autocorrelation,
    simple_returns,
    skewness,
    trend_strength,
)
from signalforge.utils.frames import BarArrays

MODEL_WEIGHTS = {
    "momentum_short": 0.25,
    "momentum_long": 0.15,
    "rsi_normalized": -0.02,
    "volatility": -0.1,
    "volume_ratio": 0.08,
    "trend_strength": 0.3,
    "mean_reversion": -0.12,
    "skewness": 0.05,
    "kurtosis": -0.03,
}

ANNUALIZATION = 252


class MomentumModelParams(StrategyParams):
    feature_window: int = Field(default=20, ge=15)
    short_momentum: int = Field(default=5, ge=1)
    long_momentum: int = Field(default=20, ge=2)
    rsi_period: int = Field(default=14, ge=2)
    confidence_threshold: float = Field(default=0.6, ge=0, le=1)
    prediction_threshold: float = Field(default=0.3, ge=0, lt=1)
    stress_window: int = Field(default=5, ge=3)
    stress_volatility: float = Field(default=0.03, gt=0)

    @model_validator(mode="after")
    def _fits_window(self) -> "MomentumModelParams":
        if self.short_momentum >= self.feature_window or self.rsi_period >= self.feature_window:
            raise ValueError("short_momentum and rsi_period must be below feature_window")
        if self.stress_window > self.feature_window:
            raise ValueError("stress_window must not exceed feature_window")
        return self


def _momentum(prices: np.ndarray, period: int) -> float:
    period = min(period, len(prices) - 1)
    past = float(prices[-1 - period])
    return (float(prices[-1]) - past) / past if past != 0 else 0.0


def _annualized_volatility(returns: np.ndarray) -> float:
    if len(returns) == 0:
        return 0.0
    return math.sqrt(float(returns.var()) * ANNUALIZATION)


def extract_features(prices: np.ndarray, volumes: np.ndarray, params: MomentumModelParams) -> dict[str, float]:
    returns = simple_returns(prices)

    mean_volume = float(volumes.mean())
    ratio = float(volumes[-1]) / mean_volume if mean_volume > 0 else 0.0

    return {
        "momentum_short": _momentum(prices, params.short_momentum),
        "momentum_long": _momentum(prices, params.long_momentum),
        "rsi_normalized": (rsi(prices, params.rsi_period)[-1] - 50) / 50,
        "volatility": _annualized_volatility(returns),
        # Log scale; missing volume carries no information
        "volume_ratio": math.log(ratio) if ratio > 0 else 0.0,
        "trend_strength": trend_strength(returns),
        "mean_reversion": -lag_autocorrelation(returns),
        "skewness": skewness(returns),
        "kurtosis": excess_kurtosis(returns),
    }


def predict(features: dict[str, float]) -> float:
    linear = sum(weight * features[name] for name, weight in MODEL_WEIGHTS.items())
    adjusted = (
        linear
        + math.tanh(features["momentum_short"] * 2) * 0.1
        - min(features["volatility"] * 2, 0.2)
        + features["trend_strength"] * 0.15
    )
    return math.tanh(adjusted)


def prediction_confidence(features: dict[str, float], recent_volatility: float, params: MomentumModelParams) -> float:
    volume_stability = min(abs(features["volume_ratio"]), 2) / 2
    confidence = (
        0.5
        - min(abs(features["volatility"]) * 3, 0.3)
        + abs(features["trend_strength"]) * 0.2
        + (1 - volume_stability) * 0.1
    )
    if recent_volatility > params.stress_volatility:
        confidence *= 0.8
    return max(0.1, min(confidence, 0.95))


def feature_importance(features: dict[str, float]) -> float:
    total = sum(abs(w) for w in MODEL_WEIGHTS.values())
    return sum(abs(w * features[name]) for name, w in MODEL_WEIGHTS.items()) / total


@register_strategy(StrategyKind.ML_MOMENTUM)
class MomentumModelStrategy(Strategy):

    params_model = MomentumModelParams

    def warmup(self, params: MomentumModelParams) -> int:
        return params.feature_window + 1

    def evaluate(self, arrays: BarArrays, params: MomentumModelParams) -> Evaluation:
        window = params.feature_window
        prices = arrays.close[-window - 1:-1]
        features = extract_features(prices, arrays.volume[-window - 1:-1], params)

        prediction = predict(features)
        recent = simple_returns(prices[-params.stress_window:])
        confidence = prediction_confidence(features, _annualized_volatility(recent), params)

        span = min(params.long_momentum, window)
        short_return = _momentum(prices[-params.short_momentum:], params.short_momentum)
        long_return = _momentum(prices[-span:], span)

        price = float(arrays.close[-1])
        values = {
            "prediction": prediction,
            "confidence": confidence,
            "momentum_score": (short_return - long_return) * 100,
            "feature_importance": feature_importance(features),
            "expected_return": prediction * price * 0.01,
        }

        if confidence > params.confidence_threshold and abs(prediction) > params.prediction_threshold:
            signal_type = SignalType.BUY if prediction > 0 else SignalType.SELL
            return Evaluation(signal_type, confidence, "model_momentum", values)
        return Evaluation(values=values)
