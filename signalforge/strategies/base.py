"""
SignalForge — Strategy Base & Registry

Every strategy is a tagged variant of one interface:

  warmup(params)                 bars needed before the first signal
  compute_signal(window, params) Signal for the window's last bar (HOLD if nothing fires)
  scan(bars, params)             walk a series, collect non-HOLD signals

Variants register themselves with @register_strategy(kind); callers resolve
them by StrategyKind through get_strategy() / compute_signal().
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Optional, Sequence, Union

import structlog
from pydantic import BaseModel, ConfigDict

from signalforge.errors import UnknownStrategyError
from signalforge.models import OHLCV, Signal, SignalType, StrategyPerformance, StrategyResult
from signalforge.observability import traced
from signalforge.utils.frames import BarArrays, bars_to_arrays
from signalforge.utils.validators import require_length, validate_bars

log = structlog.get_logger(__name__)


class StrategyKind(str, Enum):
    LINEAR_REGRESSION = "linear_regression"
    ZSCORE_TREND = "zscore_trend"
    DEVIATION_TREND = "deviation_trend"
    VOLATILITY_BREAKOUT = "volatility_breakout"
    MEAN_REVERSION = "mean_reversion"
    VOLUME_PROFILE = "volume_profile"
    REGIME_DETECTION = "regime_detection"
    ML_MOMENTUM = "ml_momentum"
    STOP_LOSS_TAKE_PROFIT = "stop_loss_take_profit"
    ULTIMATE = "ultimate"


class StrategyParams(BaseModel):
    """Base for per-strategy parameter models."""
    model_config = ConfigDict(frozen=True, extra="forbid")


ParamsInput = Union[StrategyParams, dict, None]


@dataclass
class Evaluation:
    """Outcome of evaluating a strategy on the last bar of a window."""
    type: SignalType = SignalType.HOLD
    strength: float = 0.0
    reason: str = ""
    values: dict[str, float] = field(default_factory=dict)


# ──────────────────────────────────────────────
# Strategy Interface
# ──────────────────────────────────────────────

class Strategy(ABC):
    """Base class for signal strategies."""

    kind: ClassVar[StrategyKind]
    params_model: ClassVar[type[StrategyParams]] = StrategyParams

    def resolve_params(self, params: ParamsInput = None) -> StrategyParams:
        """Accept a params model, a plain dict, or None for defaults."""
        if params is None:
            return self.params_model()
        if isinstance(params, self.params_model):
            return params
        if isinstance(params, dict):
            return self.params_model.model_validate(params)
        raise TypeError(
            f"{type(self).__name__} expects {self.params_model.__name__}, got {type(params).__name__}"
        )

    @abstractmethod
    def warmup(self, params: StrategyParams) -> int:
        """Minimum number of bars evaluate() needs."""

    @abstractmethod
    def evaluate(self, arrays: BarArrays, params: StrategyParams) -> Evaluation:
        """Evaluate the last bar of *arrays*. Length is at least warmup()."""

    def compute_signal(self, window: Sequence[OHLCV], params: ParamsInput = None) -> Signal:
        """Signal for the last bar of *window*."""
        p = self.resolve_params(params)
        bars = validate_bars(window)
        require_length(bars, self.warmup(p), f"{self.kind.value} strategy")
        evaluation = self.evaluate(bars_to_arrays(bars), p)
        return self._to_signal(bars[-1], evaluation)

    @traced("strategies.scan")
    def scan(self, bars: Sequence[OHLCV], params: ParamsInput = None) -> StrategyResult:
        """Evaluate every bar from the warm-up on and collect the non-HOLD signals."""
        p = self.resolve_params(params)
        bars = validate_bars(bars)
        warmup = self.warmup(p)
        require_length(bars, warmup, f"{self.kind.value} strategy")

        arrays = bars_to_arrays(bars)
        signals: list[Signal] = []
        indicators: dict[str, list[float]] = {}

        for end in range(warmup, len(bars) + 1):
            evaluation = self.evaluate(arrays.window(end), p)
            for name, value in evaluation.values.items():
                indicators.setdefault(name, []).append(value)
            if evaluation.type != SignalType.HOLD:
                signals.append(self._to_signal(bars[end - 1], evaluation))

        performance = compute_performance(signals)
        log.debug(
            "strategy.scanned",
            strategy=self.kind.value,
            bars=len(bars),
            signals=len(signals),
            trades=performance.total_trades,
        )
        return StrategyResult(
            strategy=self.kind.value,
            signals=signals,
            indicators=indicators,
            performance=performance,
        )

    def _to_signal(self, bar: OHLCV, evaluation: Evaluation) -> Signal:
        return Signal(
            timestamp=bar.timestamp,
            type=evaluation.type,
            strength=max(0.0, min(1.0, evaluation.strength)),
            price=bar.close,
            reasons=[evaluation.reason] if evaluation.reason else [],
            metadata={"strategy": self.kind.value, **evaluation.values},
        )


# ──────────────────────────────────────────────
# Performance
# ──────────────────────────────────────────────

def compute_performance(signals: Sequence[Signal]) -> StrategyPerformance:
    """Long-only round trips: BUY opens, SELL or EXIT closes.

    Returns are summed for total_return_pct; drawdown is measured on the
    compounded equity curve of closed trades.
    """
    entry: Optional[float] = None
    returns: list[float] = []
    for signal in signals:
        if signal.type == SignalType.BUY and entry is None:
            entry = signal.price
        elif signal.type in (SignalType.SELL, SignalType.EXIT) and entry is not None:
            if entry > 0:
                returns.append((signal.price - entry) / entry)
            entry = None

    equity = peak = 1.0
    max_drawdown = 0.0
    for r in returns:
        equity *= 1 + r
        peak = max(peak, equity)
        if peak > 0:
            max_drawdown = max(max_drawdown, (peak - equity) / peak)

    wins = sum(1 for r in returns if r > 0)
    return StrategyPerformance(
        total_return_pct=math.fsum(returns) * 100,
        win_rate_pct=wins / len(returns) * 100 if returns else 0.0,
        total_trades=len(returns),
        max_drawdown_pct=max_drawdown * 100,
    )


# ──────────────────────────────────────────────
# Registry
# ──────────────────────────────────────────────

_REGISTRY: dict[StrategyKind, type[Strategy]] = {}


def register_strategy(kind: StrategyKind):
    """Class decorator binding a Strategy subclass to its kind tag."""
    def decorator(cls: type[Strategy]) -> type[Strategy]:
        cls.kind = kind
        _REGISTRY[kind] = cls
        return cls
    return decorator


def _resolve_kind(kind: Any) -> StrategyKind:
    try:
        return StrategyKind(kind)
    except ValueError:
        raise UnknownStrategyError(str(kind)) from None


def get_strategy(kind: Union[StrategyKind, str]) -> Strategy:
    """Instantiate the strategy registered for *kind*."""
    resolved = _resolve_kind(kind)
    cls = _REGISTRY.get(resolved)
    if cls is None:
        raise UnknownStrategyError(resolved.value)
    return cls()


def available_strategies() -> list[StrategyKind]:
    return sorted(_REGISTRY, key=lambda k: k.value)


def compute_signal(
    kind: Union[StrategyKind, str],
    window: Sequence[OHLCV],
    params: ParamsInput = None,
) -> Signal:
    """Resolve *kind* and compute its signal for the last bar of *window*."""
    return get_strategy(kind).compute_signal(window, params)
