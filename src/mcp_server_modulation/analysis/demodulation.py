"""AM and FM demodulation pipelines.

Both demodulators are fixed chains of the filter‑bank and envelope
primitives; only window sizes and cutoffs depend on the parameters.

AM (output length N):
  1. Half‑wave rectification
  2. Envelope detection, window floor(fs / 2fc), primed with zeros
  3. Low‑pass smoothing at cutoff_multiplier·fm
  4. DC removal (adaptive window floor(fs / fm), or a fixed offset)

FM (output length N − 1):
  1. Band‑pass around fc (Carson's rule band unless overridden)
  2. Absolute first difference (frequency discriminator + rectifier)
  3. Envelope detection, window floor(fs / (envelope_divisor·fm))
  4. Adaptive DC removal, window dc_window_factor × envelope window
  5. Low‑pass at cutoff_multiplier·fm
"""

from __future__ import annotations

import logging
from typing import Literal

import numpy as np
from numpy.typing import ArrayLike, NDArray

from mcp_server_modulation.analysis.envelope import (
    abs_differentiate,
    differentiate,
    envelope_detector,
    half_wave_rectify,
    remove_dc,
    remove_dc_offset,
)
from mcp_server_modulation.analysis.errors import (
    DegenerateFilterRangeError,
    InvalidParameterError,
    require_positive,
)
from mcp_server_modulation.analysis.filters import (
    bandpass_filter,
    butterworth2_lowpass,
    carson_band,
    lowpass_filter,
)

logger = logging.getLogger(__name__)


def _window(samples: float) -> int:
    """Derived window length, clamped to at least one sample."""
    return max(1, int(np.floor(samples)))


def _check_option(name: str, value: str, allowed: tuple[str, ...]) -> None:
    if value not in allowed:
        raise InvalidParameterError(f"{name} must be one of {allowed}, got {value!r}", name, value)


# ---------------------------------------------------------------------------
# AM
# ---------------------------------------------------------------------------

def am_envelope_window(fs: float, fc: float) -> int:
    """Envelope window of half a carrier period, ``floor(fs / 2fc)``."""
    return _window(fs / (2.0 * fc))


def demodulate_am(
    modulated: ArrayLike,
    fs: float,
    fc: float,
    fm: float,
    cutoff_multiplier: float = 4.0,
    order: int = 2,
    envelope_gain: float = np.pi,
    smoothing: Literal["cascade", "butterworth"] = "cascade",
    dc_removal: Literal["adaptive", "fixed"] = "adaptive",
    dc_window: int | None = None,
    dc_offset: float = 1.0,
) -> NDArray[np.floating]:
    """Recover the message from an AM waveform by envelope detection.

    Args:
        modulated: AM waveform.
        fs: Sampling frequency in Hz.
        fc: Carrier frequency in Hz.
        fm: Message frequency in Hz.
        cutoff_multiplier: Smoothing cutoff as a multiple of ``fm``.
        order: Cascade order of the smoothing low‑pass (``"cascade"`` only).
        envelope_gain: Scale applied to the detected envelope.  The
            default ``π`` is the peak‑to‑mean ratio of a half‑wave
            rectified sine, so the envelope tracks ``Ac + m(t)``.
        smoothing: ``"cascade"`` (single‑pole stages) or ``"butterworth"``
            (2‑pole low‑pass).
        dc_removal: ``"adaptive"`` moving‑average detrending or
            ``"fixed"`` subtraction of ``dc_offset``.
        dc_window: Adaptive DC window; default ``floor(fs / fm)``.
        dc_offset: Constant removed by the ``"fixed"`` policy.

    Returns:
        Recovered message estimate, same length as ``modulated``.
    """
    require_positive("fs", fs)
    require_positive("fc", fc)
    require_positive("fm", fm)
    _check_option("smoothing", smoothing, ("cascade", "butterworth"))
    _check_option("dc_removal", dc_removal, ("adaptive", "fixed"))

    env_window = am_envelope_window(fs, fc)
    cutoff_hz = cutoff_multiplier * fm
    logger.debug(
        "AM demodulation: envelope window=%d, %s smoothing at %.1f Hz, %s DC removal",
        env_window, smoothing, cutoff_hz, dc_removal,
    )

    rectified = half_wave_rectify(modulated)
    envelope = envelope_gain * envelope_detector(rectified, env_window, prime_with_zeros=True)

    if smoothing == "butterworth":
        smoothed = butterworth2_lowpass(envelope, fs, cutoff_hz)
    else:
        smoothed = lowpass_filter(envelope, fs, cutoff_hz, order)

    if dc_removal == "fixed":
        return remove_dc_offset(smoothed, dc_offset)
    return remove_dc(smoothed, dc_window if dc_window is not None else _window(fs / fm))


# ---------------------------------------------------------------------------
# FM
# ---------------------------------------------------------------------------

def fm_passband(
    fc: float,
    fm: float,
    beta: float,
    low_hz: float | None = None,
    high_hz: float | None = None,
    correct_degenerate_band: bool = True,
) -> tuple[float, float]:
    """Resolve the FM pre‑detection band.

    Defaults to Carson's rule, with the lower edge clamped at 0 Hz when
    ``(β + 1)·fm`` exceeds ``fc``; the high-pass stage then only removes
    the initial offset.  A caller override with ``high <= low`` is
    replaced by the Carson band (with a warning) or rejected.  Negative
    caller overrides are rejected by the filter bank.

    Raises:
        DegenerateFilterRangeError: If the override is degenerate and
            ``correct_degenerate_band`` is False.
    """
    carson_low, carson_high = carson_band(fc, fm, beta)
    if carson_low < 0:
        logger.debug("Carson band lower edge %.1f Hz clamped to 0 Hz", carson_low)
        carson_low = 0.0
    low = carson_low if low_hz is None else low_hz
    high = carson_high if high_hz is None else high_hz

    if high <= low:
        if not correct_degenerate_band:
            raise DegenerateFilterRangeError(low, high)
        logger.warning(
            "Degenerate FM band (low=%.1f Hz, high=%.1f Hz); using Carson band %.1f–%.1f Hz",
            low, high, carson_low, carson_high,
        )
        return carson_low, carson_high
    return low, high


def fm_envelope_window(fs: float, fm: float, envelope_divisor: float = 2.0) -> int:
    """Envelope window ``floor(fs / (envelope_divisor·fm))``."""
    return _window(fs / (envelope_divisor * fm))


def demodulate_fm(
    modulated: ArrayLike,
    fs: float,
    fc: float,
    fm: float,
    beta: float = 5.0,
    low_hz: float | None = None,
    high_hz: float | None = None,
    correct_degenerate_band: bool = True,
    bandpass_order: int = 1,
    discriminator: Literal["abs_difference", "difference"] = "abs_difference",
    envelope_divisor: float = 2.0,
    dc_window_factor: int = 3,
    cutoff_multiplier: float = 2.0,
    order: int = 1,
) -> NDArray[np.floating]:
    """Recover the message from an FM waveform.

    Differentiating a constant‑amplitude FM carrier turns frequency
    deviation into amplitude variation; the envelope of the rectified
    derivative then follows the message.

    Args:
        modulated: FM waveform.
        fs: Sampling frequency in Hz.
        fc: Carrier frequency in Hz.
        fm: Message frequency in Hz.
        beta: Modulation index, used for the Carson band.
        low_hz: Optional lower band‑pass edge overriding Carson's rule.
        high_hz: Optional upper band‑pass edge overriding Carson's rule.
        correct_degenerate_band: Replace a degenerate override with the
            Carson band instead of raising.
        bandpass_order: Cascade order of the band‑pass filter.
        discriminator: ``"abs_difference"`` or plain ``"difference"``.
        envelope_divisor: Envelope window is ``fs / (envelope_divisor·fm)``.
        dc_window_factor: DC window as a multiple of the envelope window.
        cutoff_multiplier: Output low‑pass cutoff as a multiple of ``fm``.
        order: Cascade order of the output low‑pass.

    Returns:
        Recovered message estimate, length ``len(modulated) - 1``.
    """
    require_positive("fs", fs)
    require_positive("fc", fc)
    require_positive("fm", fm)
    require_positive("envelope_divisor", envelope_divisor)
    _check_option("discriminator", discriminator, ("abs_difference", "difference"))

    low, high = fm_passband(fc, fm, beta, low_hz, high_hz, correct_degenerate_band)
    env_window = fm_envelope_window(fs, fm, envelope_divisor)
    dc_window = _window(dc_window_factor * env_window)
    cutoff_hz = cutoff_multiplier * fm
    logger.debug(
        "FM demodulation: band %.1f–%.1f Hz, envelope window=%d, DC window=%d, cutoff %.1f Hz",
        low, high, env_window, dc_window, cutoff_hz,
    )

    filtered = bandpass_filter(modulated, fs, low, high, bandpass_order)

    if discriminator == "difference":
        detected = differentiate(filtered)
    else:
        detected = abs_differentiate(filtered)

    envelope = envelope_detector(detected, env_window, prime_with_zeros=True)
    detrended = remove_dc(envelope, dc_window)
    return lowpass_filter(detrended, fs, cutoff_hz, order)
