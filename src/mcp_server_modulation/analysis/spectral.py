"""Fixed‑size FFT magnitude spectrum.

The input is zero‑padded or truncated to ``fft_size`` samples and only
the non‑negative half of the spectrum is returned.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import ArrayLike, NDArray

from mcp_server_modulation.analysis.errors import TransformSizeError, require_positive

DEFAULT_FFT_SIZE = 8192


@dataclass(frozen=True)
class Spectrum:
    """Magnitude spectrum, bin k ↔ frequency k·fs/fft_size.

    Attributes:
        frequencies_hz: Bin frequencies, length ``fft_size // 2``.
        magnitudes: Unnormalised ``|X[k]|``, aligned with ``frequencies_hz``.
        fs: Sampling frequency in Hz.
        fft_size: Transform length.
    """

    frequencies_hz: NDArray[np.floating]
    magnitudes: NDArray[np.floating]
    fs: float
    fft_size: int

    @property
    def resolution_hz(self) -> float:
        return self.fs / self.fft_size

    def peak_bin(self, skip_dc: bool = False) -> int:
        start = 1 if skip_dc else 0
        return start + int(np.argmax(self.magnitudes[start:]))

    def peak_frequency(self, skip_dc: bool = False) -> float:
        return float(self.frequencies_hz[self.peak_bin(skip_dc)])


def is_power_of_two(n: int) -> bool:
    return int(n) == n and n >= 1 and (int(n) & (int(n) - 1)) == 0


def compute_magnitude_spectrum(
    x: ArrayLike,
    fs: float,
    fft_size: int = DEFAULT_FFT_SIZE,
) -> Spectrum:
    """Compute the one‑sided magnitude spectrum of a real signal.

    Args:
        x: Time‑domain signal.
        fs: Sampling frequency in Hz.
        fft_size: Transform length, a power of two ≥ 2.  Longer signals
            are truncated, shorter ones zero‑padded.

    Returns:
        Spectrum with ``fft_size // 2`` bins.

    Raises:
        TransformSizeError: If ``fft_size`` is not a power of two ≥ 2.
        InvalidParameterError: If ``fs`` is not > 0.
    """
    if not is_power_of_two(fft_size) or fft_size < 2:
        raise TransformSizeError(
            f"fft_size must be a power of two ≥ 2, got {fft_size}", "fft_size", fft_size
        )
    require_positive("fs", fs)
    fft_size = int(fft_size)

    # n= pads with zeros or truncates to exactly fft_size samples
    X = np.fft.fft(np.asarray(x, dtype=np.float64), n=fft_size)
    half = fft_size // 2
    magnitudes = np.abs(X[:half])
    frequencies = np.arange(half) * fs / fft_size
    return Spectrum(frequencies, magnitudes, float(fs), fft_size)


def dominant_frequency(spectrum: Spectrum, skip_dc: bool = True) -> float:
    """Frequency of the strongest bin, ignoring DC by default."""
    return spectrum.peak_frequency(skip_dc=skip_dc)


def band_energy_fraction(
    spectrum: Spectrum,
    low_hz: float,
    high_hz: float,
) -> float:
    """Share of spectral energy (Σ|X|²) inside ``[low_hz, high_hz]``."""
    power = spectrum.magnitudes ** 2
    total = float(np.sum(power))
    if total == 0:
        return 0.0
    mask = (spectrum.frequencies_hz >= low_hz) & (spectrum.frequencies_hz <= high_hz)
    return float(np.sum(power[mask])) / total


def peak_to_peak(x: ArrayLike) -> float:
    """``max(x) - min(x)``."""
    x = np.asarray(x, dtype=np.float64)
    return float(np.max(x) - np.min(x))
