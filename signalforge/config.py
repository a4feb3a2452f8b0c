"""
SignalForge — Configuration Management

Two layers:
  * Settings: process-level knobs loaded from the environment / .env via
    pydantic-settings (compute backend, worker count, logging).
  * Algorithm configs: fully enumerated pydantic models, one per indicator
    plus pattern, scoring and trend policies. Every field has a documented
    default and is validated at construction.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Process configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SIGNALFORGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Compute ──
    compute_backend: Literal["in_process", "thread", "process"] = "in_process"
    max_workers: int = Field(default=2, ge=1)

    # ── Analysis ──
    min_bars: int = Field(default=50, ge=2)

    # ── Logging ──
    log_level: str = "INFO"
    log_json: bool = False


@lru_cache()
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()


class _FrozenConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


# ──────────────────────────────────────────────
# Indicator Configs
# ──────────────────────────────────────────────

class RSIConfig(_FrozenConfig):
    """Relative Strength Index (Wilder smoothing)."""
    period: int = Field(default=14, ge=1)


class StochasticConfig(_FrozenConfig):
    """Stochastic oscillator: %K lookback and %D smoothing."""
    k_period: int = Field(default=14, ge=1)
    d_period: int = Field(default=3, ge=1)


class WilliamsConfig(_FrozenConfig):
    """Williams %R lookback."""
    period: int = Field(default=14, ge=1)


class MACDConfig(_FrozenConfig):
    """MACD fast/slow EMA periods and signal EMA period."""
    fast: int = Field(default=12, ge=1)
    slow: int = Field(default=26, ge=1)
    signal: int = Field(default=9, ge=1)

    @model_validator(mode="after")
    def _fast_below_slow(self) -> "MACDConfig":
        if self.fast >= self.slow:
            raise ValueError(f"MACD fast period ({self.fast}) must be below slow period ({self.slow})")
        return self


class BollingerConfig(_FrozenConfig):
    """Bollinger Bands: SMA period and stddev multiplier (population stddev)."""
    period: int = Field(default=20, ge=1)
    k: float = Field(default=2.0, gt=0)


class ATRConfig(_FrozenConfig):
    """Average True Range (simple average of true range)."""
    period: int = Field(default=14, ge=1)


class CCIConfig(_FrozenConfig):
    """Commodity Channel Index lookback and Lambert constant."""
    period: int = Field(default=20, ge=1)
    constant: float = Field(default=0.015, gt=0)


class MomentumConfig(_FrozenConfig):
    """Momentum (price difference) lookback."""
    period: int = Field(default=10, ge=1)


class ROCConfig(_FrozenConfig):
    """Rate of change (percent) lookback."""
    period: int = Field(default=10, ge=1)


class MovingAverageConfig(_FrozenConfig):
    """Fast/slow EMA and SMA periods used for trend and scoring."""
    ema_fast: int = Field(default=20, ge=1)
    ema_slow: int = Field(default=50, ge=1)
    sma_fast: int = Field(default=20, ge=1)
    sma_slow: int = Field(default=50, ge=1)

    @model_validator(mode="after")
    def _fast_below_slow(self) -> "MovingAverageConfig":
        if self.ema_fast >= self.ema_slow:
            raise ValueError("ema_fast must be below ema_slow")
        if self.sma_fast >= self.sma_slow:
            raise ValueError("sma_fast must be below sma_slow")
        return self


class IndicatorSuiteConfig(_FrozenConfig):
    """Periods for every indicator in the engine's bundle."""
    rsi: RSIConfig = Field(default_factory=RSIConfig)
    stochastic: StochasticConfig = Field(default_factory=StochasticConfig)
    williams: WilliamsConfig = Field(default_factory=WilliamsConfig)
    macd: MACDConfig = Field(default_factory=MACDConfig)
    bollinger: BollingerConfig = Field(default_factory=BollingerConfig)
    atr: ATRConfig = Field(default_factory=ATRConfig)
    cci: CCIConfig = Field(default_factory=CCIConfig)
    momentum: MomentumConfig = Field(default_factory=MomentumConfig)
    roc: ROCConfig = Field(default_factory=ROCConfig)
    moving_averages: MovingAverageConfig = Field(default_factory=MovingAverageConfig)

    def required_bars(self) -> int:
        """Longest warm-up across the bundle."""
        return max(
            self.rsi.period + 1,
            self.stochastic.k_period + self.stochastic.d_period - 1,
            self.williams.period,
            self.macd.slow + self.macd.signal - 1,
            self.bollinger.period,
            self.atr.period + 1,
            self.cci.period,
            self.momentum.period + 1,
            self.roc.period + 1,
            self.moving_averages.ema_slow,
            self.moving_averages.sma_slow,
        )


# ──────────────────────────────────────────────
# Pattern / Scoring / Trend Policies
# ──────────────────────────────────────────────

class PatternConfig(_FrozenConfig):
    """Thresholds for candlestick, extremum and support/resistance detection."""

    # Candlesticks
    doji_body_ratio: float = Field(default=0.1, gt=0, lt=1)
    hammer_shadow_ratio: float = Field(default=2.0, gt=0)
    hammer_opposite_shadow_ratio: float = Field(default=0.3, ge=0)
    hammer_body_ratio: float = Field(default=0.3, gt=0, lt=1)
    # None scans every bar of the window
    candlestick_scan_bars: Optional[int] = Field(default=None, ge=2)

    # Extrema
    min_distance: int = Field(default=5, ge=1)
    prominence_window: int = Field(default=20, ge=1)
    min_prominence: float = Field(default=0.02, ge=0)

    # Chart patterns
    double_tolerance: float = Field(default=0.03, gt=0)
    head_shoulders_tolerance: float = Field(default=0.05, gt=0)
    min_separation: int = Field(default=10, ge=1)
    double_min_bars: int = Field(default=30, ge=1)
    head_shoulders_min_bars: int = Field(default=50, ge=1)
    triangle_min_bars: int = Field(default=40, ge=1)
    flat_slope: float = Field(default=0.001, ge=0)
    convergence_min: float = Field(default=5, ge=0)
    convergence_max: float = Field(default=50, gt=0)

    # Support / resistance
    sr_tolerance: float = Field(default=0.015, gt=0)
    sr_min_touches: int = Field(default=3, ge=1)
    sr_close_stride: int = Field(default=5, ge=1)
    sr_min_reactions: int = Field(default=2, ge=1)


class ScoringPolicy(_FrozenConfig):
    """Additive point system turning indicators and patterns into a signal.

    The defaults reproduce the fixed demo weights. They are policy, not
    law: override them per engine.
    """

    rsi_oversold: float = 30
    rsi_overbought: float = 70
    rsi_weight: int = Field(default=2, ge=0)
    macd_weight: int = Field(default=2, ge=0)
    ema_weight: int = Field(default=1, ge=0)
    stochastic_oversold: float = 20
    stochastic_overbought: float = 80
    stochastic_weight: int = Field(default=1, ge=0)
    candlestick_weight: int = Field(default=1, ge=0)
    chart_pattern_weight: int = Field(default=2, ge=0)
    volume_surge_ratio: float = Field(default=1.5, gt=0)
    volume_weight: int = Field(default=1, ge=0)
    min_score: int = Field(default=3, ge=0)
    strength_divisor: float = Field(default=5, gt=0)

    @model_validator(mode="after")
    def _ordered_bands(self) -> "ScoringPolicy":
        if self.rsi_oversold >= self.rsi_overbought:
            raise ValueError("rsi_oversold must be below rsi_overbought")
        if self.stochastic_oversold >= self.stochastic_overbought:
            raise ValueError("stochastic_oversold must be below stochastic_overbought")
        return self


class TrendConfig(_FrozenConfig):
    """Trend classification window over EMA fast vs slow."""
    lookback: int = Field(default=10, ge=2)
    strength_scale: float = Field(default=10, gt=0)


class AnalysisConfig(_FrozenConfig):
    """Everything the analysis engine needs, with engine-wide minimum window."""
    min_bars: int = Field(default=50, ge=2)
    indicators: IndicatorSuiteConfig = Field(default_factory=IndicatorSuiteConfig)
    patterns: PatternConfig = Field(default_factory=PatternConfig)
    scoring: ScoringPolicy = Field(default_factory=ScoringPolicy)
    trend: TrendConfig = Field(default_factory=TrendConfig)

    @model_validator(mode="after")
    def _window_covers_warmup(self) -> "AnalysisConfig":
        needed = self.indicators.required_bars()
        if self.min_bars < needed:
            raise ValueError(
                f"min_bars ({self.min_bars}) is below the indicator warm-up ({needed})"
            )
        return self

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "AnalysisConfig":
        settings = settings or get_settings()
        return cls(min_bars=settings.min_bars)
