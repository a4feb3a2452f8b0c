"""
SignalForge — Pydantic Models

All I/O schemas for the library. Engines and strategies return these,
callers serialize them with model_dump().
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ──────────────────────────────────────────────
# Enums
# ──────────────────────────────────────────────

class SignalType(str, Enum):
    """Signal emitted by the engine or a strategy for one bar."""
    BUY = "BUY"
    SELL = "SELL"
    EXIT = "EXIT"
    HOLD = "HOLD"


class TrendDirection(str, Enum):
    BULLISH = "bullish"
    BEARISH = "bearish"
    SIDEWAYS = "sideways"


class PatternDirection(str, Enum):
    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"


class LevelType(str, Enum):
    SUPPORT = "support"
    RESISTANCE = "resistance"
    BOTH = "both"


# ──────────────────────────────────────────────
# Market Data Models
# ──────────────────────────────────────────────

class OHLCV(BaseModel):
    """Single immutable OHLCV bar."""
    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float = Field(default=0.0, ge=0)

    @model_validator(mode="after")
    def _high_above_low(self) -> "OHLCV":
        if self.high < self.low:
            raise ValueError(f"high ({self.high}) below low ({self.low}) at {self.timestamp}")
        return self


# ──────────────────────────────────────────────
# Pattern Models
# ──────────────────────────────────────────────

class PatternMatch(BaseModel):
    """A detected structural event over a bar range."""
    model_config = ConfigDict(frozen=True)

    type: str
    confidence: float = Field(ge=0, le=1)
    start_index: int = Field(ge=0)
    end_index: int = Field(ge=0)
    description: str = ""
    signals: list[str] = Field(default_factory=list)
    target_price: Optional[float] = None
    stop_loss: Optional[float] = None

    @property
    def direction(self) -> PatternDirection:
        """Bias implied by the pattern type and its signal tags."""
        if self.type.startswith("BULLISH") or self.type == "HAMMER":
            return PatternDirection.BULLISH
        if self.type.startswith("BEARISH") or self.type == "SHOOTING_STAR":
            return PatternDirection.BEARISH
        if any(tag.startswith("BUY") for tag in self.signals):
            return PatternDirection.BULLISH
        if any(tag.startswith("SELL") for tag in self.signals):
            return PatternDirection.BEARISH
        return PatternDirection.NEUTRAL


class SupportResistanceLevel(BaseModel):
    """Price level touched repeatedly within the window."""
    model_config = ConfigDict(frozen=True)

    price: float
    touches: int = Field(ge=1)
    type: LevelType
    strength: float = Field(ge=0, le=10)


class PatternScanResult(BaseModel):
    """Combined candlestick + chart + support/resistance scan."""
    candlestick: list[PatternMatch] = Field(default_factory=list)
    chart: list[PatternMatch] = Field(default_factory=list)
    support_resistance: list[SupportResistanceLevel] = Field(default_factory=list)

    @property
    def bullish_count(self) -> int:
        return sum(1 for p in self.candlestick + self.chart if p.direction == PatternDirection.BULLISH)

    @property
    def bearish_count(self) -> int:
        return sum(1 for p in self.candlestick + self.chart if p.direction == PatternDirection.BEARISH)

    @property
    def overall_bias(self) -> PatternDirection:
        if self.bullish_count > self.bearish_count:
            return PatternDirection.BULLISH
        if self.bearish_count > self.bullish_count:
            return PatternDirection.BEARISH
        return PatternDirection.NEUTRAL


# ──────────────────────────────────────────────
# Signal & Analysis Models
# ──────────────────────────────────────────────

class Signal(BaseModel):
    """Externally visible signal for one bar."""
    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    type: SignalType
    strength: float = Field(ge=0, le=1)
    price: float
    reasons: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


class SignalSummary(BaseModel):
    """Scored buy/sell decision for the latest bar of an analysis window."""
    buy: bool = False
    sell: bool = False
    strength: float = Field(default=0.0, ge=0, le=1)
    reasons: list[str] = Field(default_factory=list)
    buy_score: int = 0
    sell_score: int = 0


class TrendAnalysis(BaseModel):
    direction: TrendDirection = TrendDirection.SIDEWAYS
    strength: float = Field(default=0.0, ge=0, le=1)
    duration: int = Field(default=0, ge=0)


IndicatorValue = Union[list[float], dict[str, list[float]]]


class AnalysisResult(BaseModel):
    """Everything the analysis engine computes for one bar window."""
    indicators: dict[str, IndicatorValue]
    patterns: PatternScanResult
    signals: SignalSummary
    trend: TrendAnalysis
    bars_analyzed: int
    last_timestamp: datetime
    last_close: float
    backend: str = "in_process"

    def to_signal(self) -> Signal:
        """Collapse the summary into a BUY/SELL/HOLD signal for the last bar."""
        if self.signals.buy:
            signal_type = SignalType.BUY
        elif self.signals.sell:
            signal_type = SignalType.SELL
        else:
            signal_type = SignalType.HOLD
        return Signal(
            timestamp=self.last_timestamp,
            type=signal_type,
            strength=self.signals.strength,
            price=self.last_close,
            reasons=list(self.signals.reasons),
            metadata={
                "buy_score": self.signals.buy_score,
                "sell_score": self.signals.sell_score,
                "trend": self.trend.direction.value,
            },
        )


# ──────────────────────────────────────────────
# Strategy Models
# ──────────────────────────────────────────────

class StrategyPerformance(BaseModel):
    """Round-trip statistics over the signals a strategy emitted."""
    total_return_pct: float = 0.0
    win_rate_pct: float = 0.0
    total_trades: int = 0
    max_drawdown_pct: float = 0.0


class StrategyResult(BaseModel):
    strategy: str
    signals: list[Signal] = Field(default_factory=list)
    indicators: dict[str, list[float]] = Field(default_factory=dict)
    performance: StrategyPerformance = Field(default_factory=StrategyPerformance)
