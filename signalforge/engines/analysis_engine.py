"""
SignalForge — Analysis Engine

Orchestrates one analysis pass over a bar window:
  1. indicator bundle   (engines.indicators)
  2. pattern scan       (engines.pattern_engine)
  3. trend              (EMA fast vs slow over a short lookback)
  4. signal scoring     (additive points from ScoringPolicy)

Stages 1–3 are independent and dispatched through a ComputeBackend, so the
same engine runs sequentially, on a thread pool or on a process pool with
identical results.
"""

from __future__ import annotations

import asyncio
from typing import Optional, Sequence

import numpy as np
import structlog

from signalforge.config import AnalysisConfig, MovingAverageConfig, TrendConfig
from signalforge.engines.compute import ComputeBackend, InProcessBackend, Job
from signalforge.engines.indicators import compute_indicator_suite, ema, latest
from signalforge.engines.pattern_engine import PatternEngine
from signalforge.errors import InsufficientDataError
from signalforge.models import (
    OHLCV,
    AnalysisResult,
    PatternScanResult,
    SignalSummary,
    TrendAnalysis,
    TrendDirection,
)
from signalforge.observability import StageMetrics, trace_span
from signalforge.utils.frames import bars_to_arrays
from signalforge.utils.validators import as_float_array, validate_bars

log = structlog.get_logger(__name__)


# ──────────────────────────────────────────────
# Trend Classification
# ──────────────────────────────────────────────

def classify_trend(
    closes: Sequence[float],
    moving_averages: Optional[MovingAverageConfig] = None,
    trend: Optional[TrendConfig] = None,
) -> TrendAnalysis:
    """Classify the trend from the last `lookback` values of EMA fast vs slow.

    Bullish (bearish) only when the fast EMA is above (below) the slow EMA at
    the latest bar AND the fast EMA never decreased (increased) across the
    lookback window. Duration counts consecutive consistent steps walking
    back from the end, capped at the lookback.
    """
    ma = moving_averages or MovingAverageConfig()
    cfg = trend or TrendConfig()
    prices = as_float_array(closes, "closes")
    if len(prices) < ma.ema_fast:
        return TrendAnalysis()

    fast = np.array(ema(prices, ma.ema_fast))
    slow = np.array(ema(prices, ma.ema_slow))
    recent = fast[-cfg.lookback:]
    steps = np.diff(recent)

    if fast[-1] > slow[-1] and np.all(steps >= 0):
        direction = TrendDirection.BULLISH
        consistent = steps >= 0
    elif fast[-1] < slow[-1] and np.all(steps <= 0):
        direction = TrendDirection.BEARISH
        consistent = steps <= 0
    else:
        return TrendAnalysis()

    strength = 0.0
    if len(steps) and recent[0] != 0:
        pct = abs((recent[-1] - recent[0]) / recent[0])
        strength = min(pct * cfg.strength_scale, 1.0) * float(np.mean(consistent))

    duration = 0
    for i in range(len(fast) - 1, 0, -1):
        if duration >= cfg.lookback:
            break
        step = fast[i] - fast[i - 1]
        if (direction == TrendDirection.BULLISH and step < 0) or \
           (direction == TrendDirection.BEARISH and step > 0):
            break
        duration += 1

    return TrendAnalysis(direction=direction, strength=float(strength), duration=duration)


# ──────────────────────────────────────────────
# Engine
# ──────────────────────────────────────────────

class AnalysisEngine:
    """Indicator + pattern + trend analysis with additive signal scoring.

    Usage:
        engine = AnalysisEngine()
        result = engine.analyze(bars)
        signal = result.to_signal()

    The config and compute backend are injected; nothing is shared between
    engine instances.
    """

    def __init__(
        self,
        config: Optional[AnalysisConfig] = None,
        backend: Optional[ComputeBackend] = None,
        metrics: Optional[StageMetrics] = None,
    ):
        self.config = config or AnalysisConfig()
        self.backend = backend or InProcessBackend()
        self.metrics = metrics
        self.pattern_engine = PatternEngine(self.config.patterns)

    # ── Public API ──

    def analyze(self, bars: Sequence[OHLCV]) -> AnalysisResult:
        """Run the full analysis over *bars* (oldest first).

        Raises:
            InsufficientDataError: fewer than config.min_bars bars.
            ValueError: bars out of order or with non-finite values.
        """
        bars = validate_bars(bars)
        if len(bars) < self.config.min_bars:
            raise InsufficientDataError(
                required=self.config.min_bars, available=len(bars), context="analysis",
            )

        arrays = bars_to_arrays(bars)
        cfg = self.config
        log.info("analysis.start", bars=len(bars), backend=self.backend.name)

        with trace_span("analysis.compute", metadata={"bars": len(bars)}, metrics=self.metrics):
            stages = self.backend.run({
                "indicators": Job(
                    compute_indicator_suite,
                    (arrays.close, arrays.high, arrays.low, arrays.volume, cfg.indicators),
                ),
                "patterns": Job(self.pattern_engine.scan_all_patterns, (bars,)),
                "trend": Job(
                    classify_trend,
                    (arrays.close, cfg.indicators.moving_averages, cfg.trend),
                ),
            })

        with trace_span("analysis.signals", metrics=self.metrics):
            signals = self.generate_signals(bars, stages["indicators"], stages["patterns"])

        result = AnalysisResult(
            indicators=stages["indicators"],
            patterns=stages["patterns"],
            signals=signals,
            trend=stages["trend"],
            bars_analyzed=len(bars),
            last_timestamp=bars[-1].timestamp,
            last_close=bars[-1].close,
            backend=self.backend.name,
        )
        log.info(
            "analysis.complete",
            bars=len(bars),
            buy=signals.buy,
            sell=signals.sell,
            buy_score=signals.buy_score,
            sell_score=signals.sell_score,
            trend=result.trend.direction.value,
        )
        return result

    async def analyze_async(self, bars: Sequence[OHLCV]) -> AnalysisResult:
        """Run analyze() in a worker thread so the event loop stays free."""
        return await asyncio.to_thread(self.analyze, bars)

    def analyze_trend(self, closes: Sequence[float]) -> TrendAnalysis:
        """Trend classification using this engine's moving-average and trend config."""
        return classify_trend(closes, self.config.indicators.moving_averages, self.config.trend)

    # ── Scoring ──

    def generate_signals(
        self,
        bars: Sequence[OHLCV],
        indicators: dict,
        patterns: PatternScanResult,
    ) -> SignalSummary:
        """Score the latest bar with the additive point system.

        Each rule adds its weight to the buy or the sell side and appends a
        reason. A side wins only if it outscores the other and reaches
        min_score.
        """
        if len(bars) < 2:
            return SignalSummary()

        policy = self.config.scoring
        current, previous = bars[-1], bars[-2]
        buy_score = 0
        sell_score = 0
        reasons: list[str] = []

        # ── RSI ──
        rsi_now = latest(indicators["rsi"])
        if rsi_now is not None:
            if rsi_now < policy.rsi_oversold:
                buy_score += policy.rsi_weight
                reasons.append(f"RSI oversold (<{policy.rsi_oversold:g})")
            elif rsi_now > policy.rsi_overbought:
                sell_score += policy.rsi_weight
                reasons.append(f"RSI overbought (>{policy.rsi_overbought:g})")

        # ── MACD ──
        macd_now = latest(indicators["macd"]["macd"])
        signal_now = latest(indicators["macd"]["signal"])
        if macd_now is not None and signal_now is not None:
            if macd_now > signal_now and macd_now > 0:
                buy_score += policy.macd_weight
                reasons.append("MACD bullish crossover")
            elif macd_now < signal_now and macd_now < 0:
                sell_score += policy.macd_weight
                reasons.append("MACD bearish crossover")

        # ── EMA ──
        ema_fast = latest(indicators["ema20"])
        ema_slow = latest(indicators["ema50"])
        if ema_fast is not None and ema_slow is not None:
            if ema_fast > ema_slow and current.close > ema_fast:
                buy_score += policy.ema_weight
                reasons.append("Price above bullish EMA")
            elif ema_fast < ema_slow and current.close < ema_fast:
                sell_score += policy.ema_weight
                reasons.append("Price below bearish EMA")

        # ── Stochastic ──
        stoch_k = latest(indicators["stochastic"]["k"])
        if stoch_k is not None:
            if stoch_k < policy.stochastic_oversold:
                buy_score += policy.stochastic_weight
                reasons.append("Stochastic oversold")
            elif stoch_k > policy.stochastic_overbought:
                sell_score += policy.stochastic_weight
                reasons.append("Stochastic overbought")

        # ── Candlestick patterns ──
        for pattern in patterns.candlestick:
            if "BULLISH" in pattern.type or pattern.type == "HAMMER":
                buy_score += policy.candlestick_weight
                reasons.append(f"Bullish pattern: {pattern.type}")
            elif "BEARISH" in pattern.type or pattern.type == "SHOOTING_STAR":
                sell_score += policy.candlestick_weight
                reasons.append(f"Bearish pattern: {pattern.type}")

        # ── Chart patterns ──
        for pattern in patterns.chart:
            if any(tag.startswith("BUY") for tag in pattern.signals):
                buy_score += policy.chart_pattern_weight
                reasons.append(f"Chart pattern: {pattern.type}")
            elif any(tag.startswith("SELL") for tag in pattern.signals):
                sell_score += policy.chart_pattern_weight
                reasons.append(f"Chart pattern: {pattern.type}")

        # ── Volume confirmation ──
        if current.volume > previous.volume * policy.volume_surge_ratio:
            if current.close > previous.close:
                buy_score += policy.volume_weight
                reasons.append("Volume surge on price increase")
            else:
                sell_score += policy.volume_weight
                reasons.append("Volume surge on price decrease")

        top = max(buy_score, sell_score)
        return SignalSummary(
            buy=buy_score > sell_score and buy_score >= policy.min_score,
            sell=sell_score > buy_score and sell_score >= policy.min_score,
            strength=min(top / policy.strength_divisor, 1.0),
            reasons=reasons,
            buy_score=buy_score,
            sell_score=sell_score,
        )
