"""Typed errors raised by the modulation analysis library.

All errors derive from ``ValueError`` so callers that only care about
"bad input" can keep catching that.  Each error carries the offending
parameter name and value.
"""

from __future__ import annotations

import math


class ModulationError(ValueError):
    """Base class for invalid input to the modulation library."""

    def __init__(self, message: str, parameter: str | None = None, value: object = None) -> None:
        super().__init__(message)
        self.parameter = parameter
        self.value = value


class InvalidParameterError(ModulationError):
    """A scalar parameter is out of its valid domain (e.g. ``fs <= 0``)."""


class DegenerateFilterRangeError(ModulationError):
    """Band edges where the upper cutoff is not above the lower one."""

    def __init__(self, low_hz: float, high_hz: float) -> None:
        super().__init__(
            f"High cutoff must exceed low cutoff, got low={low_hz} Hz, high={high_hz} Hz",
            parameter="high_hz",
            value=high_hz,
        )
        self.low_hz = low_hz
        self.high_hz = high_hz


class TransformSizeError(ModulationError):
    """FFT length not supported by the spectrum analyser."""


def require_positive(name: str, value: float) -> float:
    """Return ``value`` if it is > 0, else raise InvalidParameterError."""
    if not value > 0:
        raise InvalidParameterError(f"{name} must be > 0, got {value}", name, value)
    return value


def require_non_negative(name: str, value: float) -> float:
    """Return ``value`` if it is >= 0, else raise InvalidParameterError."""
    if not value >= 0:
        raise InvalidParameterError(f"{name} must be >= 0, got {value}", name, value)
    return value


def require_positive_int(name: str, value: int) -> int:
    """Return ``value`` as int if it is an integer ≥ 1."""
    if not math.isfinite(value) or int(value) != value or value < 1:
        raise InvalidParameterError(f"{name} must be an integer ≥ 1, got {value}", name, value)
    return int(value)
