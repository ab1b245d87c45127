"""Rectification, envelope detection and DC utilities.

Building blocks for the demodulators: rectifiers, a moving‑average
envelope detector, adaptive and fixed DC removal, first differences and
a scaled running integral.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import ArrayLike, NDArray

from mcp_server_modulation.analysis.errors import require_positive, require_positive_int
from mcp_server_modulation.analysis.moving_average import moving_average


def half_wave_rectify(x: ArrayLike) -> NDArray[np.floating]:
    """Keep positive samples, set the rest to zero."""
    x = np.asarray(x, dtype=np.float64)
    return np.where(x > 0, x, 0.0)


def full_wave_rectify(x: ArrayLike) -> NDArray[np.floating]:
    """Absolute value of every sample."""
    return np.abs(np.asarray(x, dtype=np.float64))


def envelope_detector(
    x: ArrayLike,
    window: int,
    prime_with_zeros: bool = True,
) -> NDArray[np.floating]:
    """Smooth a (usually rectified) signal with a moving average.

    Args:
        x: Input signal.
        window: Moving‑average window in samples (≥ 1).
        prime_with_zeros: Prime the estimator with ``0`` if True, otherwise
            with the first sample of ``x``.

    Returns:
        Envelope estimate, same length as ``x``.
    """
    require_positive_int("window", window)
    x = np.asarray(x, dtype=np.float64)
    if len(x) == 0:
        return x.copy()
    prime = 0.0 if prime_with_zeros else float(x[0])
    return moving_average(x, window, prime_value=prime)


def remove_dc(x: ArrayLike, window: int) -> NDArray[np.floating]:
    """Adaptive DC removal: subtract a long moving average.

    The estimator is primed with the first sample, so a constant input
    maps to zeros from the very first sample.

    Args:
        x: Input signal.
        window: DC‑estimation window in samples (large, ≥ 1).

    Returns:
        ``x[i] - running_mean[i]``.
    """
    require_positive_int("window", window)
    x = np.asarray(x, dtype=np.float64)
    if len(x) == 0:
        return x.copy()
    return x - moving_average(x, window, prime_value=float(x[0]))


def remove_dc_offset(x: ArrayLike, offset: float = 1.0) -> NDArray[np.floating]:
    """Subtract a known constant DC level (1.0 for a unit‑amplitude AM carrier)."""
    return np.asarray(x, dtype=np.float64) - offset


def differentiate(x: ArrayLike) -> NDArray[np.floating]:
    """First difference ``x[i+1] - x[i]`` (length N‑1)."""
    return np.diff(np.asarray(x, dtype=np.float64))


def abs_differentiate(x: ArrayLike) -> NDArray[np.floating]:
    """Absolute first difference ``|x[i+1] - x[i]|`` (length N‑1)."""
    return np.abs(differentiate(x))


def integrate(x: ArrayLike, fs: float) -> NDArray[np.floating]:
    """Running sum scaled by ``1/fs`` (rectangle‑rule integral)."""
    require_positive("fs", fs)
    return np.cumsum(np.asarray(x, dtype=np.float64)) / fs
