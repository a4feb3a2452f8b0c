"""
SignalForge — Observability

Structured logging setup plus lightweight span timing for engine stages.

Usage:
  1. Call configure_logging() once at process start (optional; structlog's
     defaults apply otherwise).
  2. Wrap expensive blocks with trace_span() or decorate with @traced.
  3. Pass a StageMetrics instance to AnalysisEngine to aggregate latencies.
"""

from __future__ import annotations

import functools
import inspect
import logging
import time
from contextlib import contextmanager
from typing import Any, Callable, Optional

import structlog

logger = structlog.get_logger(__name__)

# Spans slower than this are logged at warning level
SLOW_SPAN_SECONDS = 5.0


# ──────────────────────────────────────────────
# Configuration
# ──────────────────────────────────────────────

def configure_logging(level: str = "INFO", json_logs: bool = False) -> None:
    """Configure structlog processors and the stdlib root level."""
    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", level=log_level)

    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        cache_logger_on_first_use=True,
    )
    logger.info("logging_configured", level=level.upper(), json_logs=json_logs)


# ──────────────────────────────────────────────
# Span Timing
# ──────────────────────────────────────────────

@contextmanager
def trace_span(
    name: str,
    metadata: Optional[dict] = None,
    metrics: Optional["StageMetrics"] = None,
):
    """Context manager timing a block of engine work.

    Args:
        name: Name of the span (e.g., "analysis.indicators").
        metadata: Optional key/values attached to the log events.
        metrics: Optional StageMetrics collector to record the latency.

    Usage:
        with trace_span("analysis.patterns", metadata={"bars": 200}):
            result = engine.scan_all_patterns(bars)
    """
    extra = {"span_name": name, **(metadata or {})}
    start = time.perf_counter()
    logger.debug("trace_span_start", **extra)
    success = True
    try:
        yield
    except Exception:
        success = False
        raise
    finally:
        elapsed = time.perf_counter() - start
        logger.debug("trace_span_end", elapsed_ms=round(elapsed * 1000, 2), success=success, **extra)
        if metrics is not None:
            metrics.record_call(name, elapsed * 1000, success=success)
        if elapsed > SLOW_SPAN_SECONDS:
            logger.warning("trace_span_slow", elapsed_s=round(elapsed, 2), **extra)


def traced(name: Optional[str] = None):
    """Decorator to time a function as a span.

    Usage:
        @traced("strategies.scan")
        def scan(...):
            ...
    """
    def decorator(func: Callable) -> Callable:
        span_name = name or f"{func.__module__}.{func.__qualname__}"

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            with trace_span(span_name):
                return func(*args, **kwargs)

        @functools.wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            with trace_span(span_name):
                return await func(*args, **kwargs)

        if inspect.iscoroutinefunction(func):
            return async_wrapper
        return wrapper

    return decorator


# ──────────────────────────────────────────────
# Stage Metrics
# ──────────────────────────────────────────────

class StageMetrics:
    """Aggregate call counts, latency and errors per engine stage."""

    def __init__(self):
        self._call_counts: dict[str, int] = {}
        self._total_latency: dict[str, float] = {}
        self._error_counts: dict[str, int] = {}

    def record_call(self, stage: str, latency_ms: float, success: bool = True):
        """Record a single stage execution."""
        self._call_counts[stage] = self._call_counts.get(stage, 0) + 1
        self._total_latency[stage] = self._total_latency.get(stage, 0.0) + latency_ms
        if not success:
            self._error_counts[stage] = self._error_counts.get(stage, 0) + 1

    def get_stats(self) -> dict[str, dict]:
        """Get performance stats per stage."""
        stats = {}
        for stage in self._call_counts:
            calls = self._call_counts[stage]
            stats[stage] = {
                "total_calls": calls,
                "avg_latency_ms": round(self._total_latency.get(stage, 0) / max(calls, 1), 2),
                "error_count": self._error_counts.get(stage, 0),
                "error_rate": round(self._error_counts.get(stage, 0) / max(calls, 1), 4),
            }
        return stats

    def reset(self):
        """Reset all metrics."""
        self._call_counts.clear()
        self._total_latency.clear()
        self._error_counts.clear()
