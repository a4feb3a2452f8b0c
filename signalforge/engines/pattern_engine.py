"""
SignalForge — Pattern Recognition Engine

Rule-based detection over an OHLCV window. Deterministic, numpy only.

Candlestick:  Doji, Hammer, Shooting Star, Bullish/Bearish Engulfing
Chart:        Double Top/Bottom, Head & Shoulders (& Inverse),
              Ascending/Descending/Symmetrical Triangle
Levels:       Support / Resistance clustering with bounce/rejection counts

Non-matches produce empty lists, never exceptions.
"""

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np
import structlog

from signalforge.config import PatternConfig
from signalforge.models import (
    OHLCV,
    LevelType,
    PatternMatch,
    PatternScanResult,
    SupportResistanceLevel,
)
from signalforge.utils.frames import BarArrays, bars_to_arrays

log = structlog.get_logger(__name__)

Extremum = tuple[int, float]

# Parallel trend lines never converge
_PARALLEL_SLOPE_EPS = 0.0001


def _clamp_confidence(value: float) -> float:
    return max(0.1, min(0.95, value))


class PatternEngine:
    """Candlestick, chart-pattern and support/resistance detector.

    Usage:
        engine = PatternEngine()
        result = engine.scan_all_patterns(bars)
    """

    def __init__(self, config: Optional[PatternConfig] = None):
        self.config = config or PatternConfig()

    # ──────────────────────────────────────────
    # Candlestick Predicates
    # ──────────────────────────────────────────

    @staticmethod
    def is_doji(bar: OHLCV, body_ratio: float = 0.1) -> bool:
        """Body smaller than *body_ratio* of the bar's range."""
        rng = bar.high - bar.low
        return rng > 0 and abs(bar.close - bar.open) / rng < body_ratio

    @staticmethod
    def is_hammer(
        bar: OHLCV,
        shadow_ratio: float = 2.0,
        opposite_ratio: float = 0.3,
        body_ratio: float = 0.3,
    ) -> bool:
        """Small body at the top of the range with a long lower shadow."""
        rng = bar.high - bar.low
        if rng <= 0:
            return False
        body = abs(bar.close - bar.open)
        lower = min(bar.open, bar.close) - bar.low
        upper = bar.high - max(bar.open, bar.close)
        return lower > body * shadow_ratio and upper < body * opposite_ratio and body / rng < body_ratio

    @staticmethod
    def is_shooting_star(
        bar: OHLCV,
        shadow_ratio: float = 2.0,
        opposite_ratio: float = 0.3,
        body_ratio: float = 0.3,
    ) -> bool:
        """Mirror of the hammer: long upper shadow, small body at the bottom."""
        rng = bar.high - bar.low
        if rng <= 0:
            return False
        body = abs(bar.close - bar.open)
        lower = min(bar.open, bar.close) - bar.low
        upper = bar.high - max(bar.open, bar.close)
        return upper > body * shadow_ratio and lower < body * opposite_ratio and body / rng < body_ratio

    @staticmethod
    def engulfing(prev: OHLCV, cur: OHLCV) -> Optional[str]:
        """Return "bullish", "bearish" or None for a two-bar engulfing."""
        prev_body = abs(prev.close - prev.open)
        cur_body = abs(cur.close - cur.open)
        if cur_body <= prev_body:
            return None

        if (prev.close < prev.open and cur.close > cur.open
                and cur.open < prev.close and cur.close > prev.open):
            return "bullish"
        if (prev.close > prev.open and cur.close < cur.open
                and cur.open > prev.close and cur.close < prev.open):
            return "bearish"
        return None

    def detect_candlestick_patterns(self, bars: Sequence[OHLCV]) -> list[PatternMatch]:
        """Scan every bar from index 1 (or the configured tail) for candle patterns."""
        cfg = self.config
        n = len(bars)
        if n < 2:
            return []

        start = 1
        if cfg.candlestick_scan_bars is not None:
            start = max(1, n - cfg.candlestick_scan_bars)

        shadow = dict(
            shadow_ratio=cfg.hammer_shadow_ratio,
            opposite_ratio=cfg.hammer_opposite_shadow_ratio,
            body_ratio=cfg.hammer_body_ratio,
        )

        patterns: list[PatternMatch] = []
        for i in range(start, n):
            bar = bars[i]

            if self.is_doji(bar, cfg.doji_body_ratio):
                patterns.append(PatternMatch(
                    type="DOJI", confidence=0.7, start_index=i, end_index=i,
                    description="Indecision candle - potential reversal",
                ))

            if self.is_hammer(bar, **shadow):
                patterns.append(PatternMatch(
                    type="HAMMER", confidence=0.8, start_index=i, end_index=i,
                    description="Bullish reversal candle",
                ))

            if self.is_shooting_star(bar, **shadow):
                patterns.append(PatternMatch(
                    type="SHOOTING_STAR", confidence=0.8, start_index=i, end_index=i,
                    description="Bearish reversal candle",
                ))

            direction = self.engulfing(bars[i - 1], bar)
            if direction:
                patterns.append(PatternMatch(
                    type=f"{direction.upper()}_ENGULFING", confidence=0.85,
                    start_index=i - 1, end_index=i,
                    description=f"{direction.capitalize()} engulfing pattern",
                ))

        return patterns

    # ──────────────────────────────────────────
    # Extrema
    # ──────────────────────────────────────────

    def find_peaks(self, values: Sequence[float]) -> list[Extremum]:
        """Strict local maxima within ±min_distance that clear the prominence bar.

        Prominence is measured against the higher of the left/right minima
        over the prominence window.
        """
        data = np.asarray(values, dtype=float)
        d = self.config.min_distance
        w = self.config.prominence_window
        peaks: list[Extremum] = []

        for i in range(d, len(data) - d):
            v = data[i]
            neighbours = np.concatenate((data[i - d:i], data[i + 1:i + d + 1]))
            if np.any(neighbours >= v) or v <= 0:
                continue
            left_min = data[max(0, i - w):i].min()
            right_min = data[i + 1:min(len(data), i + w + 1)].min()
            prominence = (v - max(left_min, right_min)) / v
            if prominence >= self.config.min_prominence:
                peaks.append((i, float(v)))
        return peaks

    def find_troughs(self, values: Sequence[float]) -> list[Extremum]:
        """Strict local minima; prominence against the lower of the left/right maxima."""
        data = np.asarray(values, dtype=float)
        d = self.config.min_distance
        w = self.config.prominence_window
        troughs: list[Extremum] = []

        for i in range(d, len(data) - d):
            v = data[i]
            neighbours = np.concatenate((data[i - d:i], data[i + 1:i + d + 1]))
            if np.any(neighbours <= v) or v <= 0:
                continue
            left_max = data[max(0, i - w):i].max()
            right_max = data[i + 1:min(len(data), i + w + 1)].max()
            prominence = (min(left_max, right_max) - v) / v
            if prominence >= self.config.min_prominence:
                troughs.append((i, float(v)))
        return troughs

    # ──────────────────────────────────────────
    # Chart Patterns
    # ──────────────────────────────────────────

    @staticmethod
    def _double_confidence(first: Extremum, second: Extremum) -> float:
        avg = (first[1] + second[1]) / 2
        similarity = 1 - abs(first[1] - second[1]) / avg
        separation = abs(second[0] - first[0])
        return _clamp_confidence(min(0.95, 0.3 + similarity * 0.4 + min(separation / 30, 1) * 0.25))

    @staticmethod
    def _head_shoulders_confidence(points: list[Extremum], inverse: bool) -> float:
        (_, left), (_, head), (_, right) = points
        similarity = 1 - abs(left - right) / ((left + right) / 2)
        if inverse:
            prominence = (min(left, right) - head) / min(left, right)
        else:
            prominence = (head - max(left, right)) / head
        return _clamp_confidence(min(0.9, 0.2 + similarity * 0.4 + prominence * 0.3))

    def _double_extrema(self, points: list[Extremum]) -> Optional[tuple[Extremum, Extremum, float]]:
        if len(points) < 2:
            return None
        first, second = points[-2:]
        avg = (first[1] + second[1]) / 2
        if abs(first[1] - second[1]) / avg > self.config.double_tolerance:
            return None
        if second[0] - first[0] < self.config.min_separation:
            return None
        return first, second, avg

    def detect_double_top(self, bars: Sequence[OHLCV], arrays: Optional[BarArrays] = None) -> Optional[PatternMatch]:
        """Two similar peaks on the highs with a valley between."""
        if len(bars) < self.config.double_min_bars:
            return None
        a = arrays or bars_to_arrays(bars)
        found = self._double_extrema(self.find_peaks(a.high))
        if found is None:
            return None

        first, second, avg = found
        neckline = float(a.low[first[0]:second[0] + 1].min())
        return PatternMatch(
            type="DOUBLE_TOP",
            confidence=self._double_confidence(first, second),
            start_index=first[0],
            end_index=second[0],
            description=f"Bearish reversal: two peaks near {avg:.2f}, neckline {neckline:.2f}",
            signals=["SELL_ON_BREAK", "RESISTANCE_LEVEL"],
            target_price=neckline - (avg - neckline),
            stop_loss=max(first[1], second[1]) * 1.02,
        )

    def detect_double_bottom(self, bars: Sequence[OHLCV], arrays: Optional[BarArrays] = None) -> Optional[PatternMatch]:
        """Two similar troughs on the lows with a peak between."""
        if len(bars) < self.config.double_min_bars:
            return None
        a = arrays or bars_to_arrays(bars)
        found = self._double_extrema(self.find_troughs(a.low))
        if found is None:
            return None

        first, second, avg = found
        neckline = float(a.high[first[0]:second[0] + 1].max())
        return PatternMatch(
            type="DOUBLE_BOTTOM",
            confidence=self._double_confidence(first, second),
            start_index=first[0],
            end_index=second[0],
            description=f"Bullish reversal: two troughs near {avg:.2f}, neckline {neckline:.2f}",
            signals=["BUY_ON_BREAK", "SUPPORT_LEVEL"],
            target_price=neckline + (neckline - avg),
            stop_loss=min(first[1], second[1]) * 0.98,
        )

    def _shoulders_match(self, left: float, right: float) -> bool:
        avg = (left + right) / 2
        return abs(left - right) / avg <= self.config.head_shoulders_tolerance

    def detect_head_and_shoulders(self, bars: Sequence[OHLCV], arrays: Optional[BarArrays] = None) -> Optional[PatternMatch]:
        """Last three peaks: head above both shoulders, shoulders level."""
        if len(bars) < self.config.head_shoulders_min_bars:
            return None
        a = arrays or bars_to_arrays(bars)
        peaks = self.find_peaks(a.high)
        if len(peaks) < 3:
            return None

        points = peaks[-3:]
        (ls_i, ls_v), (_, hd_v), (rs_i, rs_v) = points
        if hd_v <= ls_v or hd_v <= rs_v or not self._shoulders_match(ls_v, rs_v):
            return None

        # Mean of the lowest lows between consecutive peaks
        valleys = [float(a.low[points[j][0]:points[j + 1][0] + 1].min()) for j in range(2)]
        neckline = sum(valleys) / len(valleys)
        return PatternMatch(
            type="HEAD_AND_SHOULDERS",
            confidence=self._head_shoulders_confidence(points, inverse=False),
            start_index=ls_i,
            end_index=rs_i,
            description=f"Bearish reversal: head {hd_v:.2f} above shoulders, neckline {neckline:.2f}",
            signals=["SELL_ON_NECKLINE_BREAK", "VOLUME_CONFIRMATION"],
            target_price=neckline - (hd_v - neckline),
            stop_loss=hd_v * 1.02,
        )

    def detect_inverse_head_and_shoulders(self, bars: Sequence[OHLCV], arrays: Optional[BarArrays] = None) -> Optional[PatternMatch]:
        """Last three troughs: head below both shoulders, shoulders level."""
        if len(bars) < self.config.head_shoulders_min_bars:
            return None
        a = arrays or bars_to_arrays(bars)
        troughs = self.find_troughs(a.low)
        if len(troughs) < 3:
            return None

        points = troughs[-3:]
        (ls_i, ls_v), (_, hd_v), (rs_i, rs_v) = points
        if hd_v >= ls_v or hd_v >= rs_v or not self._shoulders_match(ls_v, rs_v):
            return None

        # Mean of the highest highs between consecutive troughs
        rallies = [float(a.high[points[j][0]:points[j + 1][0] + 1].max()) for j in range(2)]
        neckline = sum(rallies) / len(rallies)
        return PatternMatch(
            type="INVERSE_HEAD_AND_SHOULDERS",
            confidence=self._head_shoulders_confidence(points, inverse=True),
            start_index=ls_i,
            end_index=rs_i,
            description=f"Bullish reversal: head {hd_v:.2f} below shoulders, neckline {neckline:.2f}",
            signals=["BUY_ON_NECKLINE_BREAK", "VOLUME_CONFIRMATION"],
            target_price=neckline + (neckline - hd_v),
            stop_loss=hd_v * 0.98,
        )

    @staticmethod
    def _trend_line(points: list[Extremum]) -> Optional[tuple[float, float]]:
        """Least-squares (slope, intercept) through extrema, or None."""
        if len(points) < 2:
            return None
        x = np.array([p[0] for p in points], dtype=float)
        y = np.array([p[1] for p in points], dtype=float)
        slope, intercept = np.polyfit(x, y, 1)
        return float(slope), float(intercept)

    def detect_triangles(self, bars: Sequence[OHLCV], arrays: Optional[BarArrays] = None) -> Optional[PatternMatch]:
        """Descending resistance line and ascending support line converging ahead."""
        cfg = self.config
        if len(bars) < cfg.triangle_min_bars:
            return None
        a = arrays or bars_to_arrays(bars)
        peaks = self.find_peaks(a.high)
        troughs = self.find_troughs(a.low)

        upper = self._trend_line(peaks)
        lower = self._trend_line(troughs)
        if upper is None or lower is None:
            return None
        (m_up, b_up), (m_lo, b_lo) = upper, lower
        if m_up >= 0 or m_lo <= 0:
            return None
        if abs(m_up - m_lo) < _PARALLEL_SLOPE_EPS:
            return None

        apex_x = (b_lo - b_up) / (m_up - m_lo)
        apex_y = m_up * apex_x + b_up
        last_index = max(peaks[-1][0], troughs[-1][0])
        distance = abs(apex_x - last_index)
        if not cfg.convergence_min < distance < cfg.convergence_max:
            return None

        if abs(m_up) < cfg.flat_slope:
            kind, signals = "ASCENDING_TRIANGLE", ["BUY_ON_BREAKOUT", "VOLUME_CONFIRMATION"]
            stop = b_lo * 0.98
        elif abs(m_lo) < cfg.flat_slope:
            kind, signals = "DESCENDING_TRIANGLE", ["SELL_ON_BREAKDOWN", "VOLUME_CONFIRMATION"]
            stop = b_up * 1.02
        else:
            kind, signals = "SYMMETRICAL_TRIANGLE", ["BREAKOUT_DIRECTION", "VOLUME_CONFIRMATION"]
            stop = b_up * 1.02

        return PatternMatch(
            type=kind,
            confidence=0.75,
            start_index=min(peaks[0][0], troughs[0][0]),
            end_index=last_index,
            description=f"{kind.replace('_', ' ').lower()} - consolidation pattern, apex {apex_y:.2f}",
            signals=signals,
            target_price=float(apex_y),
            stop_loss=float(stop),
        )

    def detect_chart_patterns(self, bars: Sequence[OHLCV]) -> list[PatternMatch]:
        """Run every chart-pattern detector over the window."""
        if not bars:
            return []
        arrays = bars_to_arrays(bars)
        detectors = (
            self.detect_double_top,
            self.detect_double_bottom,
            self.detect_head_and_shoulders,
            self.detect_inverse_head_and_shoulders,
            self.detect_triangles,
        )
        patterns = []
        for detect in detectors:
            match = detect(bars, arrays)
            if match is not None:
                patterns.append(match)
        return patterns

    # ──────────────────────────────────────────
    # Support / Resistance
    # ──────────────────────────────────────────

    def detect_support_resistance(self, bars: Sequence[OHLCV]) -> list[SupportResistanceLevel]:
        """Cluster highs, lows and every Nth close into price levels.

        A price joins the first existing bucket within tolerance (buckets keep
        their founding price); buckets with enough touches become levels.
        """
        cfg = self.config
        n = len(bars)
        if n == 0:
            return []
        a = bars_to_arrays(bars)
        tol = cfg.sr_tolerance

        candidates = np.concatenate((a.high, a.low, a.close[::cfg.sr_close_stride]))
        buckets: list[list] = []  # [price, count]
        for price in candidates:
            for bucket in buckets:
                if abs(price - bucket[0]) <= tol * abs(bucket[0]):
                    bucket[1] += 1
                    break
            else:
                buckets.append([float(price), 1])

        bullish = a.close > a.open
        bearish = a.close < a.open

        levels = []
        for price, touches in buckets:
            if touches < cfg.sr_min_touches:
                continue
            lo, hi = price * (1 - tol), price * (1 + tol)
            low_near = (a.low[1:] >= lo) & (a.low[1:] <= hi)
            high_near = (a.high[1:] >= lo) & (a.high[1:] <= hi)
            bounces = int(np.sum(low_near & bullish[1:] & bearish[:-1]))
            rejections = int(np.sum(high_near & bearish[1:] & bullish[:-1]))

            is_support = bounces >= cfg.sr_min_reactions
            is_resistance = rejections >= cfg.sr_min_reactions
            if is_support and not is_resistance:
                level_type = LevelType.SUPPORT
            elif is_resistance and not is_support:
                level_type = LevelType.RESISTANCE
            else:
                level_type = LevelType.BOTH

            strength = touches / n * 100
            if is_support and is_resistance:
                strength *= 1.5
            elif is_support or is_resistance:
                strength *= 1.2

            levels.append(SupportResistanceLevel(
                price=price, touches=touches, type=level_type, strength=min(10.0, strength),
            ))

        return sorted(levels, key=lambda lvl: lvl.strength, reverse=True)

    # ──────────────────────────────────────────
    # Combined Scan
    # ──────────────────────────────────────────

    def scan_all_patterns(self, bars: Sequence[OHLCV]) -> PatternScanResult:
        """Combined candlestick + chart + support/resistance scan."""
        result = PatternScanResult(
            candlestick=self.detect_candlestick_patterns(bars),
            chart=self.detect_chart_patterns(bars),
            support_resistance=self.detect_support_resistance(bars),
        )
        log.debug(
            "patterns.scanned",
            bars=len(bars),
            candlestick=len(result.candlestick),
            chart=len(result.chart),
            levels=len(result.support_resistance),
            bias=result.overall_bias.value,
        )
        return result
