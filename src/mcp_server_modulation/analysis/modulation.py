"""AM and FM waveform synthesis.

Generates the time axis, message and modulated carrier for amplitude
and frequency modulation from physical parameters.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

import numpy as np
from numpy.typing import NDArray

from mcp_server_modulation.analysis.errors import InvalidParameterError, require_positive

TWO_PI = 2.0 * np.pi

MessageType = Literal["sine", "triangle", "square"]
MESSAGE_TYPES: tuple[str, ...] = ("sine", "triangle", "square")


@dataclass(frozen=True)
class WaveformBundle:
    """Synthesiser output, aligned sample for sample.

    Attributes:
        t: Time axis in seconds, uniformly spaced over ``[0, duration)``.
        message: Message signal m(t).
        modulated: Modulated carrier s(t).
        modulation_index: Am/Ac for AM, β for FM (None if not defined).
    """

    t: NDArray[np.floating]
    message: NDArray[np.floating]
    modulated: NDArray[np.floating]
    modulation_index: float | None = None

    @property
    def n_samples(self) -> int:
        return len(self.t)


def time_axis(fs: float, duration_s: float) -> NDArray[np.floating]:
    """``floor(fs·duration)`` samples spaced ``1/fs`` apart, starting at 0.

    Raises:
        InvalidParameterError: If ``fs`` or ``duration_s`` is not > 0.
    """
    require_positive("fs", fs)
    require_positive("duration_s", duration_s)
    n_samples = int(np.floor(fs * duration_s))
    return np.arange(n_samples) / fs


def generate_message(
    t: NDArray[np.floating],
    fm: float,
    amplitude: float = 1.0,
    message_type: MessageType = "sine",
) -> NDArray[np.floating]:
    """Generate a periodic message signal.

    Args:
        t: Time axis.
        fm: Message frequency in Hz.
        amplitude: Peak amplitude.
        message_type: ``"sine"``, ``"triangle"`` (period‑1 piecewise‑linear
            ramp on the phase ``(fm·t) mod 1``) or ``"square"``
            (``sign(sin)``, with sign(0) = +1).

    Returns:
        Message samples.

    Raises:
        InvalidParameterError: For an unknown ``message_type``.
    """
    if message_type == "sine":
        return amplitude * np.sin(TWO_PI * fm * t)
    if message_type == "triangle":
        phase = np.mod(fm * t, 1.0)
        return amplitude * np.where(phase < 0.5, 4.0 * phase - 1.0, 3.0 - 4.0 * phase)
    if message_type == "square":
        return amplitude * np.where(np.sin(TWO_PI * fm * t) >= 0, 1.0, -1.0)
    raise InvalidParameterError(
        f"message_type must be one of {MESSAGE_TYPES}, got {message_type!r}",
        "message_type",
        message_type,
    )


def generate_am_signal(
    fs: float,
    duration_s: float,
    fc: float,
    fm: float,
    am: float = 0.8,
    ac: float = 1.0,
    message_type: MessageType = "sine",
) -> WaveformBundle:
    """Amplitude‑modulated waveform ``(Ac + m(t))·sin(2π·fc·t)``.

    Args:
        fs: Sampling frequency in Hz.
        duration_s: Signal duration in seconds.
        fc: Carrier frequency in Hz.
        fm: Message frequency in Hz.
        am: Message amplitude.
        ac: Carrier amplitude (> 0).
        message_type: Message waveform shape.

    Returns:
        WaveformBundle with ``modulation_index = am / ac``.
    """
    require_positive("ac", ac)
    t = time_axis(fs, duration_s)
    message = generate_message(t, fm, am, message_type)
    modulated = (ac + message) * np.sin(TWO_PI * fc * t)
    return WaveformBundle(t, message, modulated, modulation_index=am / ac)


def generate_am_signal_from_index(
    fs: float,
    duration_s: float,
    fc: float,
    fm: float,
    modulation_index: float,
) -> WaveformBundle:
    """Index‑form AM ``(1 + μ·sin(2π·fm·t))·cos(2π·fc·t)``."""
    t = time_axis(fs, duration_s)
    message = np.sin(TWO_PI * fm * t)
    carrier = np.cos(TWO_PI * fc * t)
    modulated = (1.0 + modulation_index * message) * carrier
    return WaveformBundle(t, message, modulated, modulation_index=modulation_index)


def frequency_sensitivity(beta: float, fm: float) -> float:
    """FM frequency sensitivity ``kf = 2π·β·fm`` in rad/s per unit message."""
    return TWO_PI * beta * fm


def generate_fm_signal(
    fs: float,
    duration_s: float,
    fc: float,
    fm: float,
    beta: float = 5.0,
    message_type: MessageType = "sine",
) -> WaveformBundle:
    """Frequency‑modulated waveform ``cos(2π·fc·t + kf·∫m dt)``.

    The integral is the running sum of the message divided by ``fs``; the
    discrete accumulation (not a closed form) sets the spectral shape.

    Args:
        fs: Sampling frequency in Hz.
        duration_s: Signal duration in seconds.
        fc: Carrier frequency in Hz.
        fm: Message frequency in Hz.
        beta: Modulation index β (peak deviation / fm).
        message_type: Message waveform shape (unit amplitude).

    Returns:
        WaveformBundle with ``modulation_index = beta``.
    """
    t = time_axis(fs, duration_s)
    message = generate_message(t, fm, 1.0, message_type)
    kf = frequency_sensitivity(beta, fm)

    integral = np.cumsum(message) / fs
    phase = TWO_PI * fc * t + kf * integral
    return WaveformBundle(t, message, np.cos(phase), modulation_index=beta)
