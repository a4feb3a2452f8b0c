"""
SignalForge — Bar Conversion Helpers

Turn OHLCV bar lists into the column arrays the engines work on.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np

from signalforge.models import OHLCV


@dataclass(frozen=True)
class BarArrays:
    """Column view of a bar window. Arrays are read-only."""
    open: np.ndarray
    high: np.ndarray
    low: np.ndarray
    close: np.ndarray
    volume: np.ndarray

    def __len__(self) -> int:
        return len(self.close)

    def window(self, stop: int) -> "BarArrays":
        """View of the first *stop* bars (no copy)."""
        return BarArrays(
            open=self.open[:stop],
            high=self.high[:stop],
            low=self.low[:stop],
            close=self.close[:stop],
            volume=self.volume[:stop],
        )


def bars_to_arrays(bars: Sequence[OHLCV]) -> BarArrays:
    """Convert OHLCV bars to parallel float arrays."""
    columns = {
        "open": np.array([b.open for b in bars], dtype=float),
        "high": np.array([b.high for b in bars], dtype=float),
        "low": np.array([b.low for b in bars], dtype=float),
        "close": np.array([b.close for b in bars], dtype=float),
        "volume": np.array([b.volume for b in bars], dtype=float),
    }
    for arr in columns.values():
        arr.setflags(write=False)
    return BarArrays(**columns)

