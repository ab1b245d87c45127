"""Modulation analysis library: synthesis, filtering, demodulation and spectra."""

from mcp_server_modulation.analysis.demodulation import demodulate_am, demodulate_fm
from mcp_server_modulation.analysis.errors import (
    DegenerateFilterRangeError,
    InvalidParameterError,
    ModulationError,
    TransformSizeError,
)
from mcp_server_modulation.analysis.filters import (
    bandpass_filter,
    bandstop_filter,
    highpass_filter,
    lowpass_filter,
)
from mcp_server_modulation.analysis.modulation import (
    WaveformBundle,
    generate_am_signal,
    generate_fm_signal,
)
from mcp_server_modulation.analysis.moving_average import MovingAverage
from mcp_server_modulation.analysis.spectral import Spectrum, compute_magnitude_spectrum

__all__ = [
    "MovingAverage",
    "lowpass_filter",
    "highpass_filter",
    "bandpass_filter",
    "bandstop_filter",
    "WaveformBundle",
    "generate_am_signal",
    "generate_fm_signal",
    "demodulate_am",
    "demodulate_fm",
    "Spectrum",
    "compute_magnitude_spectrum",
    "ModulationError",
    "InvalidParameterError",
    "DegenerateFilterRangeError",
    "TransformSizeError",
]
