"""
SignalForge — Exceptions

Every error raised by the library derives from SignalForgeError so callers
can catch the whole family at once. InsufficientDataError is also a
ValueError: short input is a bad argument, and callers that only know about
builtin exceptions still catch it.
"""

from __future__ import annotations

from typing import Optional


class SignalForgeError(Exception):
    """Base class for all SignalForge errors."""

    def __init__(self, message: str, detail: Optional[str] = None):
        self.message = message
        self.detail = detail
        super().__init__(message)


class InsufficientDataError(SignalForgeError, ValueError):
    """Raised when a window is shorter than the warm-up an operation needs.

    Partial results are never returned in place of this error.
    """

    def __init__(self, required: int, available: int, context: str = "analysis"):
        self.required = required
        self.available = available
        self.context = context
        super().__init__(
            f"Insufficient data for {context}: {required} values required, {available} supplied",
            detail=context,
        )

    def __reduce__(self):
        return type(self), (self.required, self.available, self.context)


class UnknownStrategyError(SignalForgeError, KeyError):
    """Raised when a strategy kind has no registered implementation."""

    def __init__(self, kind: str):
        self.kind = kind
        super().__init__(f"No strategy registered for '{kind}'", detail=kind)

    def __reduce__(self):
        return type(self), (self.kind,)

    def __str__(self) -> str:
        return self.message


class BackendError(SignalForgeError):
    """Raised when a compute backend is used after it has been closed."""
