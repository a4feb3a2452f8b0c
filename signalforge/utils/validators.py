"""
SignalForge — Input Validators

Reusable validation helpers for indicator periods, numeric series and bar
windows. Raise ValueError (or InsufficientDataError, a ValueError) on
invalid input so callers can treat every bad argument uniformly.
"""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np

from signalforge.errors import InsufficientDataError
from signalforge.models import OHLCV


def validate_period(period: int, name: str = "period") -> int:
    """Return *period* when it is a positive integer.

    >>> validate_period(14)
    14
    """
    if isinstance(period, bool) or not isinstance(period, (int, np.integer)):
        raise ValueError(f"{name} must be an integer, got {type(period).__name__}")
    if period < 1:
        raise ValueError(f"{name} must be >= 1, got {period}")
    return int(period)


def as_float_array(values: Sequence[float], name: str = "values") -> np.ndarray:
    """Convert a numeric sequence to a 1-D float64 array of finite values."""
    arr = np.asarray(values, dtype=float)
    if arr.ndim != 1:
        raise ValueError(f"{name} must be one-dimensional, got shape {arr.shape}")
    if arr.size and not np.all(np.isfinite(arr)):
        raise ValueError(f"{name} contains NaN or infinite values")
    return arr


def require_length(arr: Sequence, required: int, context: str) -> None:
    """Raise InsufficientDataError when *arr* is shorter than *required*."""
    if len(arr) < required:
        raise InsufficientDataError(required=required, available=len(arr), context=context)


def validate_same_length(**series: np.ndarray) -> int:
    """Ensure parallel series share one length; return it."""
    lengths = {name: len(values) for name, values in series.items()}
    if len(set(lengths.values())) > 1:
        detail = ", ".join(f"{k}={v}" for k, v in lengths.items())
        raise ValueError(f"Parallel series must have equal length ({detail})")
    return next(iter(lengths.values()), 0)


def validate_bars(bars: Sequence[OHLCV]) -> list[OHLCV]:
    """Check a bar window is strictly ascending in time with finite prices.

    Returns the bars as a list.
    """
    bars = list(bars)
    for i, bar in enumerate(bars):
        prices = (bar.open, bar.high, bar.low, bar.close, bar.volume)
        if not all(math.isfinite(p) for p in prices):
            raise ValueError(f"Bar {i} contains non-finite values")
        if i and bar.timestamp <= bars[i - 1].timestamp:
            raise ValueError(
                f"Bars must be strictly ascending by timestamp "
                f"(bar {i} at {bar.timestamp} follows {bars[i - 1].timestamp})"
            )
    return bars
