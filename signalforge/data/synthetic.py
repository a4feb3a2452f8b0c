"""
SignalForge — Synthetic Market Data

Deterministic bar generators standing in for a market-data source:
  generate_bars  — seeded geometric random walk with realistic shadows
  trending_bars  — constant percent step per bar (monotone series)
  flat_bars      — constant price, for degenerate-input checks

Usage:
    python -m signalforge.data.synthetic
    python -m signalforge.data.synthetic --bars 300 --seed 7 --backend thread
"""

from __future__ import annotations

import argparse
from datetime import datetime, timedelta
from typing import Optional

import numpy as np
import structlog

from signalforge.models import OHLCV

log = structlog.get_logger(__name__)

DEFAULT_START = datetime(2024, 1, 1)


def generate_bars(
    n: int = 200,
    start_price: float = 100.0,
    seed: int = 42,
    drift: float = 0.0005,
    volatility: float = 0.02,
    base_volume: float = 1_000_000,
    start: datetime = DEFAULT_START,
    interval: timedelta = timedelta(days=1),
) -> list[OHLCV]:
    """Seeded random-walk OHLCV bars. Same arguments, same bars."""
    if n < 1:
        raise ValueError(f"n must be >= 1, got {n}")
    rng = np.random.default_rng(seed)

    closes = start_price * np.exp(np.cumsum(rng.normal(drift, volatility, n)))
    opens = np.concatenate(([start_price], closes[:-1]))
    upper_wick = np.abs(rng.normal(0, volatility / 2, n))
    lower_wick = np.abs(rng.normal(0, volatility / 2, n))
    highs = np.maximum(opens, closes) * (1 + upper_wick)
    lows = np.minimum(opens, closes) * (1 - lower_wick)
    volumes = np.round(base_volume * (1 + np.abs(rng.normal(0, 0.3, n))))

    return [
        OHLCV(
            timestamp=start + interval * i,
            open=round(float(opens[i]), 4),
            high=round(float(highs[i]), 4),
            low=round(float(lows[i]), 4),
            close=round(float(closes[i]), 4),
            volume=float(volumes[i]),
        )
        for i in range(n)
    ]


def trending_bars(
    n: int = 60,
    start_price: float = 100.0,
    step_pct: float = 0.01,
    shadow_pct: float = 0.001,
    volume: float = 1000.0,
    start: datetime = DEFAULT_START,
    interval: timedelta = timedelta(days=1),
) -> list[OHLCV]:
    """Bars whose close moves by step_pct every bar, starting at start_price.

    Each bar opens at the previous close; shadows extend shadow_pct beyond
    the body on both sides.
    """
    bars = []
    prev_close = start_price / (1 + step_pct)
    for i in range(n):
        close = start_price * (1 + step_pct) ** i
        top, bottom = max(prev_close, close), min(prev_close, close)
        bars.append(OHLCV(
            timestamp=start + interval * i,
            open=prev_close,
            high=top * (1 + shadow_pct),
            low=bottom * (1 - shadow_pct),
            close=close,
            volume=volume,
        ))
        prev_close = close
    return bars


def flat_bars(
    n: int = 50,
    price: float = 100.0,
    volume: float = 0.0,
    start: datetime = DEFAULT_START,
    interval: timedelta = timedelta(days=1),
) -> list[OHLCV]:
    """Constant-price bars (open = high = low = close)."""
    return [
        OHLCV(timestamp=start + interval * i, open=price, high=price, low=price, close=price, volume=volume)
        for i in range(n)
    ]


def main(argv: Optional[list[str]] = None) -> None:
    from signalforge.config import AnalysisConfig, Settings, get_settings
    from signalforge.engines.analysis_engine import AnalysisEngine
    from signalforge.engines.compute import create_backend
    from signalforge.observability import configure_logging

    parser = argparse.ArgumentParser(description="Analyze a synthetic OHLCV series")
    parser.add_argument("--bars", type=int, default=200, help="Number of bars (default: 200)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    parser.add_argument(
        "--backend",
        choices=["in_process", "thread", "process"],
        default=None,
        help="Compute backend (default: SIGNALFORGE_COMPUTE_BACKEND or in_process)",
    )
    args = parser.parse_args(argv)

    settings = get_settings()
    if args.backend:
        settings = Settings(compute_backend=args.backend, max_workers=settings.max_workers)
    configure_logging(settings.log_level, settings.log_json)

    bars = generate_bars(args.bars, seed=args.seed)
    with create_backend(settings) as backend:
        engine = AnalysisEngine(AnalysisConfig.from_settings(settings), backend=backend)
        result = engine.analyze(bars)

    signal = result.to_signal()
    log.info(
        "synthetic.analysis",
        bars=result.bars_analyzed,
        last_close=result.last_close,
        signal=signal.type.value,
        strength=round(signal.strength, 3),
        trend=result.trend.direction.value,
        patterns=len(result.patterns.candlestick) + len(result.patterns.chart),
        levels=len(result.patterns.support_resistance),
        reasons=signal.reasons,
    )


if __name__ == "__main__":
    main()
