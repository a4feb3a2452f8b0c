"""
SignalForge — Indicator Library

Pure array-to-array technical indicators over OHLCV columns. Each function
returns a list aligned to a suffix of its input (the first `warm-up - 1`
positions are dropped, never padded), raises InsufficientDataError when the
input is shorter than the warm-up, and substitutes a neutral default
wherever a zero denominator would otherwise leak NaN or Infinity:

  oscillators (RSI, Stochastic %K)  -> 50
  Williams %R                       -> -50
  trend / ratio (CCI, ROC)          -> 0

Uses the `ta` library where its formula coincides exactly with ours
(SMA, WMA, Bollinger, Stochastic %K, Williams %R, ROC); the recursive and
cumulative indicators are computed directly with numpy.
"""

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np
import pandas as pd
from numpy.lib.stride_tricks import sliding_window_view
from ta.momentum import ROCIndicator, StochasticOscillator, WilliamsRIndicator
from ta.trend import SMAIndicator, WMAIndicator
from ta.volatility import BollingerBands

from signalforge.config import IndicatorSuiteConfig
from signalforge.errors import InsufficientDataError
from signalforge.utils.validators import (
    as_float_array,
    require_length,
    validate_period,
    validate_same_length,
)

# Relative size below which a mean deviation counts as zero
_DEGENERATE_EPS = 1e-12

FIBONACCI_RATIOS = {
    "0.0%": 0.0,
    "23.6%": 0.236,
    "38.2%": 0.382,
    "50.0%": 0.5,
    "61.8%": 0.618,
    "78.6%": 0.786,
    "100.0%": 1.0,
}


# ──────────────────────────────────────────────
# Helpers
# ──────────────────────────────────────────────

def _series(arr: np.ndarray) -> pd.Series:
    return pd.Series(arr, dtype=float)


def _neutralize(values, default: float) -> np.ndarray:
    """Replace NaN/±Infinity with *default*."""
    out = np.array(values, dtype=float)
    out[~np.isfinite(out)] = default
    return out


def _hlc(highs, lows, closes) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    h = as_float_array(highs, "highs")
    l = as_float_array(lows, "lows")
    c = as_float_array(closes, "closes")
    validate_same_length(highs=h, lows=l, closes=c)
    return h, l, c


def latest(series: Sequence[float]) -> Optional[float]:
    """Last value of a series, or None when empty."""
    return float(series[-1]) if len(series) else None


# ──────────────────────────────────────────────
# Moving Averages
# ──────────────────────────────────────────────

def sma(values: Sequence[float], period: int) -> list[float]:
    """Simple trailing mean. First output corresponds to index period-1."""
    period = validate_period(period)
    arr = as_float_array(values)
    require_length(arr, period, f"SMA({period})")
    out = SMAIndicator(_series(arr), window=period).sma_indicator().to_numpy()
    return _neutralize(out[period - 1:], 0.0).tolist()


def ema(values: Sequence[float], period: int) -> list[float]:
    """Exponential moving average seeded with the SMA of the first
    min(period, len) values; multiplier 2/(period+1).

    A series shorter than *period* yields the single seed value.
    """
    period = validate_period(period)
    arr = as_float_array(values)
    require_length(arr, 1, f"EMA({period})")

    k = 2 / (period + 1)
    seed_len = min(period, len(arr))
    result = [float(arr[:seed_len].sum() / seed_len)]
    for price in arr[period:]:
        result.append(float(price * k + result[-1] * (1 - k)))
    return result


def wma(values: Sequence[float], period: int) -> list[float]:
    """Linearly weighted moving average (weights 1..period, newest heaviest)."""
    period = validate_period(period)
    arr = as_float_array(values)
    require_length(arr, period, f"WMA({period})")
    out = WMAIndicator(_series(arr), window=period).wma().to_numpy()
    return _neutralize(out[period - 1:], 0.0).tolist()


# ──────────────────────────────────────────────
# Oscillators
# ──────────────────────────────────────────────

def _rsi_value(avg_gain: float, avg_loss: float) -> float:
    if avg_loss == 0:
        # Flat window: no gains and no losses
        return 50.0 if avg_gain == 0 else 100.0
    return 100 - 100 / (1 + avg_gain / avg_loss)


def rsi(values: Sequence[float], period: int = 14) -> list[float]:
    """Relative Strength Index with Wilder smoothing.

    The first value uses the plain average of the first *period* deltas;
    later values smooth with avg = (avg*(period-1) + x) / period.
    Output length is len(values) - period.
    """
    period = validate_period(period)
    arr = as_float_array(values)
    require_length(arr, period + 1, f"RSI({period})")

    deltas = np.diff(arr)
    gains = np.clip(deltas, 0, None)
    losses = np.clip(-deltas, 0, None)

    avg_gain = float(gains[:period].mean())
    avg_loss = float(losses[:period].mean())
    result = [_rsi_value(avg_gain, avg_loss)]

    for gain, loss in zip(gains[period:], losses[period:]):
        avg_gain = (avg_gain * (period - 1) + gain) / period
        avg_loss = (avg_loss * (period - 1) + loss) / period
        result.append(_rsi_value(avg_gain, avg_loss))
    return [float(v) for v in result]


def stochastic(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    k_period: int = 14,
    d_period: int = 3,
) -> dict[str, list[float]]:
    """Stochastic oscillator. %K defaults to 50 when the window range is zero;
    %D is the SMA of %K.
    """
    k_period = validate_period(k_period, "k_period")
    d_period = validate_period(d_period, "d_period")
    h, l, c = _hlc(highs, lows, closes)
    require_length(c, k_period + d_period - 1, f"Stochastic({k_period},{d_period})")

    raw_k = StochasticOscillator(
        _series(h), _series(l), _series(c), window=k_period, smooth_window=d_period,
    ).stoch().to_numpy()
    k = _neutralize(raw_k[k_period - 1:], 50.0).tolist()
    return {"k": k, "d": sma(k, d_period)}


def williams_r(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    period: int = 14,
) -> list[float]:
    """Williams %R in [-100, 0]; -50 when the window range is zero."""
    period = validate_period(period)
    h, l, c = _hlc(highs, lows, closes)
    require_length(c, period, f"Williams%R({period})")
    out = WilliamsRIndicator(_series(h), _series(l), _series(c), lbp=period).williams_r().to_numpy()
    return _neutralize(out[period - 1:], -50.0).tolist()


def macd(
    values: Sequence[float],
    fast: int = 12,
    slow: int = 26,
    signal: int = 9,
) -> dict[str, list[float]]:
    """MACD line, signal line and histogram.

    The fast EMA is aligned on the tail of the slow EMA; the histogram is
    aligned on the tail of the signal line. Lengths:
      macd      = n - slow + 1
      signal    = len(macd) - signal + 1
      histogram = len(signal)
    """
    fast = validate_period(fast, "fast")
    slow = validate_period(slow, "slow")
    signal = validate_period(signal, "signal")
    if fast >= slow:
        raise ValueError(f"fast period ({fast}) must be below slow period ({slow})")
    arr = as_float_array(values)
    require_length(arr, slow + signal - 1, f"MACD({fast},{slow},{signal})")

    ema_fast = np.array(ema(arr, fast))
    ema_slow = np.array(ema(arr, slow))
    macd_line = ema_fast[-len(ema_slow):] - ema_slow
    signal_line = np.array(ema(macd_line, signal))
    histogram = macd_line[-len(signal_line):] - signal_line
    return {
        "macd": macd_line.tolist(),
        "signal": signal_line.tolist(),
        "histogram": histogram.tolist(),
    }


def cci(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    period: int = 20,
    constant: float = 0.015,
) -> list[float]:
    """Commodity Channel Index: (TP - SMA(TP)) / (constant * mean abs deviation).

    A zero mean deviation yields 0.
    """
    period = validate_period(period)
    h, l, c = _hlc(highs, lows, closes)
    require_length(c, period, f"CCI({period})")

    typical = (h + l + c) / 3
    windows = sliding_window_view(typical, period)
    means = windows.mean(axis=1)
    mean_dev = np.abs(windows - means[:, None]).mean(axis=1)

    with np.errstate(divide="ignore", invalid="ignore"):
        out = (typical[period - 1:] - means) / (constant * mean_dev)
    out[mean_dev <= _DEGENERATE_EPS * np.maximum(np.abs(means), 1.0)] = 0.0
    return _neutralize(out, 0.0).tolist()


def momentum(values: Sequence[float], period: int = 10) -> list[float]:
    """Price difference against the value *period* bars back."""
    period = validate_period(period)
    arr = as_float_array(values)
    require_length(arr, period + 1, f"Momentum({period})")
    return (arr[period:] - arr[:-period]).tolist()


def roc(values: Sequence[float], period: int = 10) -> list[float]:
    """Percent rate of change against *period* bars back; 0 on a zero base."""
    period = validate_period(period)
    arr = as_float_array(values)
    require_length(arr, period + 1, f"ROC({period})")
    out = ROCIndicator(_series(arr), window=period).roc().to_numpy()
    return _neutralize(out[period:], 0.0).tolist()


# ──────────────────────────────────────────────
# Volatility
# ──────────────────────────────────────────────

def bollinger_bands(
    values: Sequence[float],
    period: int = 20,
    k: float = 2.0,
) -> dict[str, list[float]]:
    """SMA middle band ± k population standard deviations."""
    period = validate_period(period)
    if k <= 0:
        raise ValueError(f"k must be positive, got {k}")
    arr = as_float_array(values)
    require_length(arr, period, f"Bollinger({period})")

    bb = BollingerBands(_series(arr), window=period, window_dev=k)
    start = period - 1
    return {
        "upper": _neutralize(bb.bollinger_hband().to_numpy()[start:], 0.0).tolist(),
        "middle": _neutralize(bb.bollinger_mavg().to_numpy()[start:], 0.0).tolist(),
        "lower": _neutralize(bb.bollinger_lband().to_numpy()[start:], 0.0).tolist(),
    }


def true_range(highs: Sequence[float], lows: Sequence[float], closes: Sequence[float]) -> list[float]:
    """max(high-low, |high-prevClose|, |low-prevClose|) from the second bar on."""
    h, l, c = _hlc(highs, lows, closes)
    require_length(c, 2, "TrueRange")
    prev_close = c[:-1]
    tr = np.maximum.reduce([
        h[1:] - l[1:],
        np.abs(h[1:] - prev_close),
        np.abs(l[1:] - prev_close),
    ])
    return tr.tolist()


def atr(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    period: int = 14,
) -> list[float]:
    """Average True Range as the simple average of true range."""
    period = validate_period(period)
    h, l, c = _hlc(highs, lows, closes)
    require_length(c, period + 1, f"ATR({period})")
    return sma(true_range(h, l, c), period)


# ──────────────────────────────────────────────
# Volume
# ──────────────────────────────────────────────

def vwap(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    volumes: Sequence[float],
    session_starts: Optional[Sequence[bool]] = None,
) -> list[float]:
    """Volume-weighted average of the typical price.

    Cumulative from the first bar unless *session_starts* flags the bars
    that open a new session, in which case the sums reset there. Bars with
    zero volume carry a weight of 1.
    """
    h, l, c = _hlc(highs, lows, closes)
    v = as_float_array(volumes, "volumes")
    validate_same_length(closes=c, volumes=v)
    require_length(c, 1, "VWAP")
    if session_starts is not None and len(session_starts) != len(c):
        raise ValueError("session_starts must match the bar count")

    typical = (h + l + c) / 3
    weights = np.where(v > 0, v, 1.0)

    result = []
    cum_pv = cum_v = 0.0
    for i in range(len(c)):
        if session_starts is not None and session_starts[i]:
            cum_pv = cum_v = 0.0
        cum_pv += typical[i] * weights[i]
        cum_v += weights[i]
        result.append(cum_pv / cum_v)
    return result


def on_balance_volume(closes: Sequence[float], volumes: Sequence[float]) -> list[float]:
    """Running volume total seeded with the first bar's volume."""
    c = as_float_array(closes, "closes")
    v = as_float_array(volumes, "volumes")
    validate_same_length(closes=c, volumes=v)
    require_length(c, 1, "OBV")
    direction = np.sign(np.diff(c))
    obv = v[0] + np.concatenate(([0.0], np.cumsum(direction * v[1:])))
    return obv.tolist()


# ──────────────────────────────────────────────
# Price Levels
# ──────────────────────────────────────────────

def pivot_points(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
) -> dict[str, list[float]]:
    """Classic floor pivots computed from each previous bar."""
    h, l, c = _hlc(highs, lows, closes)
    require_length(c, 2, "PivotPoints")
    ph, pl, pc = h[:-1], l[:-1], c[:-1]
    pivot = (ph + pl + pc) / 3
    span = ph - pl
    return {
        "pivot": pivot.tolist(),
        "r1": (2 * pivot - pl).tolist(),
        "r2": (pivot + span).tolist(),
        "s1": (2 * pivot - ph).tolist(),
        "s2": (pivot - span).tolist(),
    }


def fibonacci_retracement(high: float, low: float) -> dict[str, float]:
    """Retracement levels from *high* (0%) down to *low* (100%)."""
    if high < low:
        raise ValueError(f"high ({high}) must not be below low ({low})")
    diff = high - low
    return {label: float(high - diff * ratio) for label, ratio in FIBONACCI_RATIOS.items()}


# ──────────────────────────────────────────────
# Engine Bundle
# ──────────────────────────────────────────────

def compute_indicator_suite(
    closes: Sequence[float],
    highs: Sequence[float],
    lows: Sequence[float],
    volumes: Sequence[float],
    config: Optional[IndicatorSuiteConfig] = None,
) -> dict:
    """Compute every indicator the analysis engine scores and reports.

    Returns a dict keyed by indicator name; multi-line indicators map to a
    dict of named series.
    """
    cfg = config or IndicatorSuiteConfig()
    c = as_float_array(closes, "closes")
    h, l, _ = _hlc(highs, lows, c)
    v = as_float_array(volumes, "volumes")
    validate_same_length(closes=c, volumes=v)

    required = cfg.required_bars()
    if len(c) < required:
        raise InsufficientDataError(required=required, available=len(c), context="indicator suite")

    ma = cfg.moving_averages
    return {
        "rsi": rsi(c, cfg.rsi.period),
        "macd": macd(c, cfg.macd.fast, cfg.macd.slow, cfg.macd.signal),
        "bollinger_bands": bollinger_bands(c, cfg.bollinger.period, cfg.bollinger.k),
        "stochastic": stochastic(h, l, c, cfg.stochastic.k_period, cfg.stochastic.d_period),
        "ema20": ema(c, ma.ema_fast),
        "ema50": ema(c, ma.ema_slow),
        "sma20": sma(c, ma.sma_fast),
        "sma50": sma(c, ma.sma_slow),
        "atr": atr(h, l, c, cfg.atr.period),
        "cci": cci(h, l, c, cfg.cci.period, cfg.cci.constant),
        "momentum": momentum(c, cfg.momentum.period),
        "roc": roc(c, cfg.roc.period),
        "vwap": vwap(h, l, c, v),
        "obv": on_balance_volume(c, v),
        "williams": williams_r(h, l, c, cfg.williams.period),
    }
