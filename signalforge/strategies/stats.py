"""
SignalForge — Shared Strategy Statistics

One home for the regression / z-score / volatility / volume-profile math
the strategies share. All functions are pure and never return NaN.
"""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np

from signalforge.utils.validators import as_float_array, require_length


def linear_regression(values: Sequence[float]) -> tuple[float, float]:
    """Least-squares (slope, intercept) of *values* against x = 0..n-1."""
    y = as_float_array(values)
    require_length(y, 2, "linear regression")
    n = len(y)
    x = np.arange(n, dtype=float)
    sum_x = x.sum()
    sum_y = y.sum()
    denominator = n * (x * x).sum() - sum_x * sum_x
    slope = (n * (x * y).sum() - sum_x * sum_y) / denominator
    intercept = (sum_y - slope * sum_x) / n
    return float(slope), float(intercept)


def regression_value(values: Sequence[float]) -> float:
    """Value of the fitted regression line at the last index."""
    slope, intercept = linear_regression(values)
    return intercept + slope * (len(values) - 1)


def zscore(value: float, reference: Sequence[float]) -> float:
    """(value - mean) / population std of *reference*; 0 when std is 0."""
    ref = as_float_array(reference, "reference")
    require_length(ref, 1, "z-score")
    std = float(ref.std())
    if std == 0:
        return 0.0
    return float((value - ref.mean()) / std)


def historical_volatility(closes: Sequence[float], period: int, annualization: int = 252) -> float:
    """Annualized sample stddev of the last *period* log returns."""
    prices = as_float_array(closes, "closes")
    if period < 2:
        raise ValueError(f"period must be >= 2, got {period}")
    require_length(prices, period + 1, f"historical volatility({period})")
    tail = prices[-(period + 1):]
    if np.any(tail <= 0):
        raise ValueError("historical volatility requires positive prices")
    returns = np.diff(np.log(tail))
    return float(math.sqrt(returns.var(ddof=1) * annualization))


def simple_returns(values: Sequence[float]) -> np.ndarray:
    """Bar-over-bar percent returns; 0 where the base is 0."""
    arr = as_float_array(values)
    base = arr[:-1]
    with np.errstate(divide="ignore", invalid="ignore"):
        out = np.diff(arr) / base
    out[base == 0] = 0.0
    return out


def half_life(series: Sequence[float]) -> float:
    """Mean-reversion half-life from the lag-1 regression slope of *series*.

    Returns math.inf when there is no reversion (|slope| >= 1) or the
    series is too short / constant to estimate; 0 for a zero slope.
    """
    values = as_float_array(series)
    if len(values) < 3:
        return math.inf
    lagged, current = values[:-1], values[1:]
    n = len(lagged)
    denominator = n * (lagged * lagged).sum() - lagged.sum() ** 2
    if denominator == 0:
        return math.inf
    slope = (n * (lagged * current).sum() - lagged.sum() * current.sum()) / denominator
    if abs(slope) >= 1:
        return math.inf
    if slope == 0:
        return 0.0
    return float(-math.log(2) / math.log(abs(slope)))


def autocorrelation(series: Sequence[float]) -> float:
    """Lag-1 autocorrelation normalized by the population variance."""
    values = as_float_array(series)
    if len(values) < 2:
        return 0.0
    centered = values - values.mean()
    variance = float((centered ** 2).mean())
    if variance == 0:
        return 0.0
    covariance = float((centered[1:] * centered[:-1]).sum())
    return covariance / ((len(values) - 1) * variance)


def volume_profile(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    volumes: Sequence[float],
    price_step_pct: float = 0.1,
) -> dict[float, float]:
    """Volume traded per price level.

    Each bar's volume lands on its typical price rounded to a step of
    price_step_pct % of the window's high-low range. Levels keep first-seen
    order.
    """
    h = as_float_array(highs, "highs")
    l = as_float_array(lows, "lows")
    c = as_float_array(closes, "closes")
    v = as_float_array(volumes, "volumes")
    require_length(c, 1, "volume profile")

    typical = (h + l + c) / 3
    step = (h.max() - l.min()) * price_step_pct / 100
    levels = np.round(typical / step) * step if step > 0 else typical

    profile: dict[float, float] = {}
    for level, volume in zip(levels.tolist(), v.tolist()):
        profile[level] = profile.get(level, 0.0) + volume
    return profile


def point_of_control(profile: dict[float, float]) -> float:
    """Price level with the most volume; first seen wins ties."""
    if not profile:
        raise ValueError("empty volume profile")
    return max(profile, key=profile.get)


def value_area(profile: dict[float, float], value_area_pct: float = 70) -> tuple[float, float]:
    """(low, high) of the busiest levels holding value_area_pct % of volume."""
    if not profile:
        raise ValueError("empty volume profile")
    ranked = sorted(profile.items(), key=lambda item: item[1], reverse=True)
    target = sum(profile.values()) * value_area_pct / 100

    accumulated = 0.0
    prices = []
    for price, volume in ranked:
        accumulated += volume
        prices.append(price)
        if accumulated >= target:
            break
    return min(prices), max(prices)


def lag_autocorrelation(series: Sequence[float], lag: int = 1) -> float:
    """Sample autocorrelation at *lag*: lagged cross-products over the total
    sum of squares. 0 when the series is too short or constant."""
    values = as_float_array(series)
    if len(values) <= lag:
        return 0.0
    centered = values - values.mean()
    total = float((centered ** 2).sum())
    if total == 0:
        return 0.0
    return float((centered[lag:] * centered[:-lag]).sum()) / total


def reversal_frequency(returns: Sequence[float]) -> float:
    """Share of interior returns whose sign differs from both neighbours."""
    r = as_float_array(returns)
    if len(r) < 3:
        return 0.0
    prev, mid, nxt = r[:-2], r[1:-1], r[2:]
    flips = ((prev > 0) & (mid < 0) & (nxt > 0)) | ((prev < 0) & (mid > 0) & (nxt < 0))
    return float(flips.sum()) / (len(r) - 2)


def skewness(values: Sequence[float]) -> float:
    """Population skewness; 0 for an empty or constant series."""
    arr = as_float_array(values)
    if len(arr) == 0:
        return 0.0
    std = float(arr.std())
    if std == 0:
        return 0.0
    return float((((arr - arr.mean()) / std) ** 3).mean())


def excess_kurtosis(values: Sequence[float]) -> float:
    """Population kurtosis minus 3; 0 for an empty or constant series."""
    arr = as_float_array(values)
    if len(arr) == 0:
        return 0.0
    std = float(arr.std())
    if std == 0:
        return 0.0
    return float((((arr - arr.mean()) / std) ** 4).mean()) - 3


def softmax(scores: dict[str, float]) -> dict[str, float]:
    """Normalized exponentials of *scores*, keeping key order."""
    top = max(scores.values())
    weights = {key: math.exp(value - top) for key, value in scores.items()}
    total = sum(weights.values())
    return {key: weight / total for key, weight in weights.items()}


def trend_strength(returns: Sequence[float]) -> float:
    """Directional bias of a return series in [-1, 1].

    Blends the share of up moves (60%) with the share of up magnitude (40%).
    A series with no moves at all has no bias.
    """
    r = as_float_array(returns)
    ups = r[r > 0]
    downs = r[r < 0]
    if len(ups) == 0 and len(downs) == 0:
        return 0.0
    ratio = len(ups) / len(r)
    avg_up = float(ups.mean()) if len(ups) else 0.0
    avg_down = abs(float(r[r <= 0].sum())) / (len(r) - len(ups)) if len(r) > len(ups) else 0.0
    magnitude = avg_up / (avg_up + avg_down) if avg_up + avg_down > 0 else 0.5
    return (ratio * 0.6 + magnitude * 0.4) * 2 - 1
