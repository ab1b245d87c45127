"""Digital filter bank.

Single‑pole IIR low‑pass / high‑pass sections, cascaded to raise the
order, and the band‑pass / band‑stop filters built from them.  Also
provides a 2‑pole Butterworth‑style low‑pass used by one AM smoothing
variant, and Carson's‑rule band helpers for FM.

The cascade reuses one smoothing factor for every stage, giving a
6·order dB/octave roll‑off.  It is not a maximally‑flat design; outputs
must match the single‑pole recursions below sample for sample.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import ArrayLike, NDArray
from scipy import signal as sig

from mcp_server_modulation.analysis.errors import (
    DegenerateFilterRangeError,
    require_non_negative,
    require_positive,
    require_positive_int,
)

TWO_PI = 2.0 * np.pi
SQRT2 = np.sqrt(2.0)


# ---------------------------------------------------------------------------
# Smoothing factors
# ---------------------------------------------------------------------------

def lowpass_alpha(fs: float, cutoff_hz: float) -> float:
    """Smoothing factor ``1 - exp(-2π·fc/fs)`` of the single‑pole low‑pass."""
    require_positive("fs", fs)
    require_non_negative("cutoff_hz", cutoff_hz)
    return float(1.0 - np.exp(-TWO_PI * cutoff_hz / fs))


def highpass_alpha(fs: float, cutoff_hz: float) -> float:
    """Smoothing factor ``exp(-2π·fc/fs)`` of the single‑pole high‑pass."""
    require_positive("fs", fs)
    require_non_negative("cutoff_hz", cutoff_hz)
    return float(np.exp(-TWO_PI * cutoff_hz / fs))


# ---------------------------------------------------------------------------
# Single stages
# ---------------------------------------------------------------------------

def _lowpass_stage(x: NDArray[np.floating], alpha: float) -> NDArray[np.floating]:
    # y[0] = 0, y[i] = α·x[i] + (1-α)·y[i-1]
    y = np.zeros_like(x)
    if len(x) > 1:
        y[1:] = sig.lfilter([alpha], [1.0, alpha - 1.0], x[1:])
    return y


def _highpass_stage(x: NDArray[np.floating], alpha: float) -> NDArray[np.floating]:
    # y[0] = 0, y[i] = α·(y[i-1] + x[i] - x[i-1])
    y = np.zeros_like(x)
    if len(x) > 1:
        # Filter state carries the x[0] term of the first difference.
        y[1:], _ = sig.lfilter([alpha, -alpha], [1.0, -alpha], x[1:], zi=[-alpha * x[0]])
    return y


def _cascade(x: ArrayLike, stage, alpha: float, order: int) -> NDArray[np.floating]:
    order = require_positive_int("order", order)
    y = np.asarray(x, dtype=np.float64)
    for _ in range(order):
        y = stage(y, alpha)
    return y


# ---------------------------------------------------------------------------
# Public filters
# ---------------------------------------------------------------------------

def lowpass_filter(
    x: ArrayLike,
    fs: float,
    cutoff_hz: float,
    order: int = 1,
) -> NDArray[np.floating]:
    """Cascaded single‑pole low‑pass filter.

    Args:
        x: Input signal.
        fs: Sampling frequency in Hz.
        cutoff_hz: Cutoff frequency in Hz.
        order: Number of cascaded stages (≥ 1).

    Returns:
        Filtered signal, same length as ``x``; the first sample is 0.
    """
    return _cascade(x, _lowpass_stage, lowpass_alpha(fs, cutoff_hz), order)


def highpass_filter(
    x: ArrayLike,
    fs: float,
    cutoff_hz: float,
    order: int = 1,
) -> NDArray[np.floating]:
    """Cascaded single‑pole high‑pass filter.

    Args:
        x: Input signal.
        fs: Sampling frequency in Hz.
        cutoff_hz: Cutoff frequency in Hz.
        order: Number of cascaded stages (≥ 1).

    Returns:
        Filtered signal, same length as ``x``; the first sample is 0.
    """
    return _cascade(x, _highpass_stage, highpass_alpha(fs, cutoff_hz), order)


def bandpass_filter(
    x: ArrayLike,
    fs: float,
    low_hz: float,
    high_hz: float,
    order: int = 1,
) -> NDArray[np.floating]:
    """High‑pass at ``low_hz`` followed by low‑pass at ``high_hz``.

    Raises:
        DegenerateFilterRangeError: If ``high_hz <= low_hz``.
    """
    if high_hz <= low_hz:
        raise DegenerateFilterRangeError(low_hz, high_hz)
    y = highpass_filter(x, fs, low_hz, order)
    return lowpass_filter(y, fs, high_hz, order)


def bandstop_filter(
    x: ArrayLike,
    fs: float,
    low_hz: float,
    high_hz: float,
    order: int = 1,
) -> NDArray[np.floating]:
    """Band‑stop as the input minus its band‑pass‑filtered version.

    Raises:
        DegenerateFilterRangeError: If ``high_hz <= low_hz``.
    """
    x = np.asarray(x, dtype=np.float64)
    return x - bandpass_filter(x, fs, low_hz, high_hz, order)


# ---------------------------------------------------------------------------
# 2‑pole Butterworth‑style low‑pass
# ---------------------------------------------------------------------------

def butterworth2_coefficients(
    fs: float,
    cutoff_hz: float,
) -> tuple[NDArray[np.floating], NDArray[np.floating]]:
    """Coefficients ``(b, a)`` of the 2‑pole low‑pass.

    ``omega_c = 2π·cutoff/nyquist`` and every coefficient is divided by
    ``1 + √2·ω + ω²``.
    """
    nyquist = require_positive("fs", fs) / 2.0
    omega_c = TWO_PI * cutoff_hz / nyquist
    w2 = omega_c * omega_c
    den = 1.0 + SQRT2 * omega_c + w2

    b = np.array([w2, 2.0 * w2, w2]) / den
    a = np.array([1.0, 2.0 * (w2 - 1.0) / den, (1.0 - SQRT2 * omega_c + w2) / den])
    return b, a


def butterworth2_lowpass(
    x: ArrayLike,
    fs: float,
    cutoff_hz: float,
) -> NDArray[np.floating]:
    """Apply the 2‑pole low‑pass with zero history before the first sample.

    ``y[i] = b0·x[i] + b1·x[i-1] + b2·x[i-2] - a1·y[i-1] - a2·y[i-2]``
    """
    b, a = butterworth2_coefficients(fs, cutoff_hz)
    return sig.lfilter(b, a, np.asarray(x, dtype=np.float64))


# ---------------------------------------------------------------------------
# Carson's rule
# ---------------------------------------------------------------------------

def carson_bandwidth(beta: float, fm: float) -> float:
    """FM bandwidth estimate ``2(β + 1)·fm`` in Hz."""
    return 2.0 * (beta + 1.0) * fm


def carson_band(fc: float, fm: float, beta: float) -> tuple[float, float]:
    """``(low_hz, high_hz)`` band centred on ``fc`` with Carson's bandwidth."""
    half = carson_bandwidth(beta, fm) / 2.0
    return fc - half, fc + half
