# Engines: indicators, pattern recognition, analysis, compute backends
from signalforge.engines.analysis_engine import AnalysisEngine, classify_trend
from signalforge.engines.compute import (
    ComputeBackend,
    InProcessBackend,
    Job,
    ParallelBackend,
    create_backend,
)
from signalforge.engines.pattern_engine import PatternEngine

__all__ = [
    "AnalysisEngine",
    "ComputeBackend",
    "InProcessBackend",
    "Job",
    "ParallelBackend",
    "PatternEngine",
    "classify_trend",
    "create_backend",
]
