"""SignalForge — Strategy Modules (registry + variants)."""

from signalforge.strategies.base import (  # noqa: F401
    Evaluation,
    Strategy,
    StrategyKind,
    StrategyParams,
    available_strategies,
    compute_performance,
    compute_signal,
    get_strategy,
    register_strategy,
)

# Variant modules register themselves on import
from signalforge.strategies import (  # noqa: F401, E402
    ensemble,
    momentum,
    regime,
    regression,
    risk,
    statistical,
    volatility,
    volume,
)

__all__ = [
    "Evaluation",
    "Strategy",
    "StrategyKind",
    "StrategyParams",
    "available_strategies",
    "compute_performance",
    "compute_signal",
    "get_strategy",
    "register_strategy",
]
