"""
SignalForge — Technical Analysis & Signal Generation

Indicators, candlestick/chart pattern recognition, additive signal scoring
and statistical strategies over OHLCV bar windows.
"""

from signalforge.config import AnalysisConfig, Settings, get_settings  # noqa: F401
from signalforge.engines.analysis_engine import AnalysisEngine  # noqa: F401
from signalforge.errors import (  # noqa: F401
    BackendError,
    InsufficientDataError,
    SignalForgeError,
    UnknownStrategyError,
)
from signalforge.models import OHLCV, AnalysisResult, Signal, SignalType  # noqa: F401

__version__ = "0.1.0"

__all__ = [
    "OHLCV",
    "AnalysisConfig",
    "AnalysisEngine",
    "AnalysisResult",
    "BackendError",
    "InsufficientDataError",
    "Settings",
    "Signal",
    "SignalForgeError",
    "SignalType",
    "UnknownStrategyError",
    "get_settings",
]
