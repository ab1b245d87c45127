"""MCP Server for analog modulation (AM / FM) analysis.

Provides tools for waveform synthesis, digital filtering, envelope
detection, demodulation and spectrum computation via the Model Context
Protocol.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Annotated, Literal
from uuid import uuid4

import numpy as np
from mcp.server.fastmcp import FastMCP
from pydantic import Field

from mcp_server_modulation.analysis.demodulation import demodulate_am, demodulate_fm
from mcp_server_modulation.analysis.envelope import (
    envelope_detector,
    full_wave_rectify,
    half_wave_rectify,
)
from mcp_server_modulation.analysis.errors import InvalidParameterError
from mcp_server_modulation.analysis.filters import (
    bandpass_filter,
    bandstop_filter,
    carson_band,
    carson_bandwidth,
    highpass_filter,
    lowpass_filter,
)
from mcp_server_modulation.analysis.modulation import (
    WaveformBundle,
    generate_am_signal,
    generate_am_signal_from_index,
    generate_fm_signal,
)
from mcp_server_modulation.analysis.spectral import (
    band_energy_fraction,
    compute_magnitude_spectrum,
    peak_to_peak,
)
from mcp_server_modulation.config import load_settings

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Server instance
# ---------------------------------------------------------------------------

mcp = FastMCP(
    "modulation",
    instructions=(
        "Analog modulation server. "
        "Synthesises AM and FM waveforms, filters them with a cascaded "
        "single-pole filter bank, demodulates them by envelope detection, "
        "and computes FFT magnitude spectra. "
        "IMPORTANT: Signals and spectra are persisted to disk (~/.modulation_data/) "
        "and referenced by short IDs (e.g. sig_xxxx, spec_xxxx). "
        "Producer tools (generate_am_waveform, generate_fm_waveform, filter_signal, "
        "rectify_signal, detect_envelope, demodulate_am_signal, demodulate_fm_signal, "
        "compute_spectrum) return a short ID. Pass that ID to downstream tools "
        "instead of raw arrays; use get_signal_samples to fetch arrays for plotting. "
        "Typical workflow: "
        "(1) generate a waveform → get signal_id and message_id, "
        "(2) compute its spectrum → get spectrum_id, "
        "(3) demodulate → get the recovered message signal_id."
    ),
)


# ---------------------------------------------------------------------------
# Server-side data store, persisted under MODULATION_DATA_DIR as
# compressed .npz files, with an in-memory cache for the session.
# ---------------------------------------------------------------------------

_SETTINGS = load_settings()
_DATA_DIR = _SETTINGS.data_dir
_SIGNALS_DIR = _SETTINGS.signals_dir
_SPECTRA_DIR = _SETTINGS.spectra_dir

_SIGNALS_DIR.mkdir(parents=True, exist_ok=True)
_SPECTRA_DIR.mkdir(parents=True, exist_ok=True)

_cache: dict[str, dict] = {}


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid4().hex[:8]}"


def _signal_path(sid: str) -> Path:
    return _SIGNALS_DIR / f"{sid}.npz"


def _spectrum_path(sid: str) -> Path:
    return _SPECTRA_DIR / f"{sid}.npz"


def _store_signal(
    signal: np.ndarray | list,
    sampling_freq_hz: float,
    **metadata: object,
) -> str:
    """Store a signal to disk and cache, return a short reference ID."""
    sid = _new_id("sig")
    arr = np.asarray(signal, dtype=np.float64)
    meta_clean = {k: v for k, v in metadata.items() if not isinstance(v, np.ndarray)}
    np.savez_compressed(
        _signal_path(sid),
        signal=arr,
        sampling_freq_hz=np.float64(sampling_freq_hz),
        meta_json=json.dumps(meta_clean, default=str),
    )
    _cache[sid] = {
        "_type": "signal",
        "signal": arr,
        "sampling_freq_hz": float(sampling_freq_hz),
        "n_samples": len(arr),
        **meta_clean,
    }
    logger.debug("Stored signal %s (%d samples)", sid, len(arr))
    return sid


def _store_spectrum(
    frequencies_hz: np.ndarray,
    magnitudes: np.ndarray,
    **metadata: object,
) -> str:
    """Store a spectrum to disk and cache, return a short reference ID."""
    sid = _new_id("spec")
    freqs = np.asarray(frequencies_hz, dtype=np.float64)
    mags = np.asarray(magnitudes, dtype=np.float64)
    meta_clean = {k: v for k, v in metadata.items() if not isinstance(v, np.ndarray)}
    np.savez_compressed(
        _spectrum_path(sid),
        frequencies_hz=freqs,
        magnitudes=mags,
        meta_json=json.dumps(meta_clean, default=str),
    )
    _cache[sid] = {
        "_type": "spectrum",
        "frequencies_hz": freqs,
        "magnitudes": mags,
        "n_bins": len(freqs),
        **meta_clean,
    }
    logger.debug("Stored spectrum %s (%d bins)", sid, len(freqs))
    return sid


def _load_from_disk(sid: str) -> dict:
    """Load a stored .npz into the cache."""
    if sid.startswith("sig_"):
        path = _signal_path(sid)
    elif sid.startswith("spec_"):
        path = _spectrum_path(sid)
    else:
        raise ValueError(f"Unknown data ID: {sid}")
    if not path.exists():
        raise FileNotFoundError(f"No stored data for ID {sid} ({path})")

    data = np.load(path, allow_pickle=False)
    meta = json.loads(str(data["meta_json"])) if "meta_json" in data else {}
    if sid.startswith("sig_"):
        arr = data["signal"]
        entry = {
            "_type": "signal",
            "signal": arr,
            "sampling_freq_hz": float(data["sampling_freq_hz"]),
            "n_samples": len(arr),
            **meta,
        }
    else:
        entry = {
            "_type": "spectrum",
            "frequencies_hz": data["frequencies_hz"],
            "magnitudes": data["magnitudes"],
            "n_bins": len(data["frequencies_hz"]),
            **meta,
        }
    _cache[sid] = entry
    return entry


def _resolve_entry(data_id: str) -> dict:
    """Get an entry from cache or load from disk on demand."""
    if data_id in _cache:
        return _cache[data_id]
    return _load_from_disk(data_id)


def _get_signal_entry(
    signal_id: str | None = None,
    signal: list[float] | None = None,
    sampling_freq_hz: float | None = None,
) -> dict:
    """Resolve a signal from store ID or raw array into an entry dict."""
    if signal_id:
        entry = _resolve_entry(signal_id)
        if entry["_type"] != "signal":
            raise ValueError(f"{signal_id} is not a signal")
        return {**entry, "signal": entry["signal"].copy()}
    if signal is not None:
        if sampling_freq_hz is None:
            raise ValueError("sampling_freq_hz is required when passing a raw signal array")
        return {
            "_type": "signal",
            "signal": np.array(signal, dtype=np.float64),
            "sampling_freq_hz": float(sampling_freq_hz),
        }
    raise ValueError(
        "Provide either signal_id (from a generate/filter/demodulate tool) "
        "or a raw signal array with sampling_freq_hz."
    )


def _param(entry: dict, name: str, value: float | None) -> float:
    """Explicit value, else the one recorded with the stored signal."""
    if value is not None:
        return value
    if entry.get(name) is not None:
        return float(entry[name])
    raise ValueError(f"{name} is required (not recorded with this signal)")


def _list_all_stored_ids() -> list[str]:
    """List all signal and spectrum IDs persisted on disk."""
    ids = [f.stem for f in _SIGNALS_DIR.glob("sig_*.npz")]
    ids += [f.stem for f in _SPECTRA_DIR.glob("spec_*.npz")]
    return sorted(ids)


def _signal_summary(arr: np.ndarray, fs: float) -> dict:
    """Compact statistical summary of a signal (no raw data)."""
    if len(arr) == 0:
        return {"n_samples": 0, "sampling_freq_hz": fs}
    return {
        "n_samples": len(arr),
        "duration_s": round(len(arr) / fs, 6),
        "sampling_freq_hz": fs,
        "rms": round(float(np.sqrt(np.mean(arr**2))), 6),
        "peak_amplitude": round(float(np.max(np.abs(arr))), 6),
        "peak_to_peak": round(peak_to_peak(arr), 6),
        "mean": round(float(np.mean(arr)), 6),
    }


def _spectrum_summary(freqs: np.ndarray, mags: np.ndarray) -> dict:
    """Compact summary of a spectrum (no raw data)."""
    top_idx = np.argsort(mags)[::-1][:5]
    top_peaks = [
        {"freq_hz": round(float(freqs[i]), 3), "magnitude": round(float(mags[i]), 6)}
        for i in top_idx if mags[i] > 0
    ]
    return {
        "n_bins": len(freqs),
        "freq_range_hz": [round(float(freqs[0]), 3), round(float(freqs[-1]), 3)],
        "freq_resolution_hz": round(float(freqs[1] - freqs[0]), 6) if len(freqs) > 1 else 0,
        "max_magnitude": round(float(np.max(mags)), 6),
        "top_5_peaks": top_peaks,
    }


def _check_sample_budget(fs: float, duration_s: float) -> None:
    n = fs * duration_s
    if n > _SETTINGS.max_samples:
        raise InvalidParameterError(
            f"fs·duration = {n:.0f} samples exceeds the limit of {_SETTINGS.max_samples} "
            "(MODULATION_MAX_SAMPLES)",
            "duration_s",
            duration_s,
        )


def _store_bundle(bundle: WaveformBundle, fs: float, **metadata: object) -> dict:
    """Store message and modulated buffers of a bundle, return the IDs."""
    message_id = _store_signal(bundle.message, fs, role="message", **metadata)
    signal_id = _store_signal(bundle.modulated, fs, role="modulated", message_id=message_id, **metadata)
    return {"signal_id": signal_id, "message_id": message_id}


# ===================================================================
# RESOURCE: Formula reference
# ===================================================================

MODULATION_REFERENCE = """# Analog Modulation Reference

## Amplitude Modulation (AM)
- **Signal**: s(t) = (A_c + m(t))·sin(2π·f_c·t), modulation index μ = A_m / A_c
- **Index form**: s(t) = (1 + μ·m(t))·cos(2π·f_c·t)
- **Messages**: sine, triangle, square (sign(0) = +1)
- **Demodulation**: half-wave rectify → moving average over half a carrier
  period → low-pass at k·f_m → DC removal (moving average over one message
  period, or subtract 1.0)

## Frequency Modulation (FM)
- **Signal**: s(t) = cos(2π·f_c·t + k_f·∫m(t)dt), k_f = 2π·β·f_m
- **Integral**: running sum of m divided by f_s
- **Carson's rule**: BW ≈ 2(β + 1)·f_m
- **Demodulation**: band-pass (Carson band) → |first difference| →
  moving average over f_s / 2f_m samples → DC removal (3× window) →
  low-pass at 2·f_m

## Filter bank
- **Low-pass**: α = 1 − exp(−2π·f_c/f_s), y[i] = α·x[i] + (1 − α)·y[i−1]
- **High-pass**: α = exp(−2π·f_c/f_s), y[i] = α·(y[i−1] + x[i] − x[i−1])
- **Order**: stages cascaded with the same α (6 dB/octave per stage)
- **Band-pass**: high-pass(low) then low-pass(high); **band-stop** = x − band-pass

## Spectrum
- Zero-pad / truncate to a power-of-two FFT size N;
  bin k ↔ k·f_s/N, magnitude |X[k]|, k < N/2
"""


@mcp.resource("modulation://reference")
def modulation_reference_resource() -> str:
    """Reference sheet of AM/FM formulas, demodulation pipelines and filter equations."""
    return MODULATION_REFERENCE


# ===================================================================
# TOOL 1: Generate AM waveform
# ===================================================================

@mcp.tool()
def generate_am_waveform(
    sampling_freq_hz: Annotated[float, Field(description="Sampling frequency in Hz", default=500000.0)] = 500000.0,
    duration_s: Annotated[float, Field(description="Signal duration in seconds", default=0.02)] = 0.02,
    carrier_freq_hz: Annotated[float, Field(description="Carrier frequency in Hz", default=10000.0)] = 10000.0,
    message_freq_hz: Annotated[float, Field(description="Message frequency in Hz", default=500.0)] = 500.0,
    message_amplitude: Annotated[float, Field(description="Message amplitude A_m", default=0.8)] = 0.8,
    carrier_amplitude: Annotated[float, Field(description="Carrier amplitude A_c", default=1.0)] = 1.0,
    message_type: Annotated[Literal["sine", "triangle", "square"], Field(description="Message waveform shape", default="sine")] = "sine",
    modulation_index: Annotated[float | None, Field(description="If given, use the index form (1 + μ·sin)·cos and ignore the amplitudes", default=None)] = None,
) -> str:
    """Generate an amplitude-modulated waveform.

    Stores the modulated signal and the message separately and returns
    both IDs plus a compact summary. Carrier and message frequencies are
    recorded so demodulate_am_signal can resolve them from the ID.
    """
    _check_sample_budget(sampling_freq_hz, duration_s)
    if modulation_index is not None:
        bundle = generate_am_signal_from_index(
            sampling_freq_hz, duration_s, carrier_freq_hz, message_freq_hz, modulation_index,
        )
        message_type = "sine"
    else:
        bundle = generate_am_signal(
            sampling_freq_hz, duration_s, carrier_freq_hz, message_freq_hz,
            am=message_amplitude, ac=carrier_amplitude, message_type=message_type,
        )

    ids = _store_bundle(
        bundle, sampling_freq_hz,
        kind="am",
        fc=carrier_freq_hz,
        fm=message_freq_hz,
        modulation_index=bundle.modulation_index,
        message_type=message_type,
    )

    return json.dumps({
        **ids,
        **_signal_summary(bundle.modulated, sampling_freq_hz),
        "modulation_index": bundle.modulation_index,
        "overmodulated": bool(bundle.modulation_index is not None and bundle.modulation_index > 1.0),
        "note": (
            f"AM waveform stored as '{ids['signal_id']}', message as '{ids['message_id']}'. "
            "Pass signal_id to compute_spectrum or demodulate_am_signal."
        ),
    }, indent=2)


# ===================================================================
# TOOL 2: Generate FM waveform
# ===================================================================

@mcp.tool()
def generate_fm_waveform(
    sampling_freq_hz: Annotated[float, Field(description="Sampling frequency in Hz", default=500000.0)] = 500000.0,
    duration_s: Annotated[float, Field(description="Signal duration in seconds", default=0.02)] = 0.02,
    carrier_freq_hz: Annotated[float, Field(description="Carrier frequency in Hz", default=10000.0)] = 10000.0,
    message_freq_hz: Annotated[float, Field(description="Message frequency in Hz", default=500.0)] = 500.0,
    beta: Annotated[float, Field(description="Modulation index β (peak deviation / f_m)", default=5.0)] = 5.0,
    message_type: Annotated[Literal["sine", "triangle", "square"], Field(description="Message waveform shape", default="sine")] = "sine",
) -> str:
    """Generate a frequency-modulated waveform.

    Stores the modulated signal and the message and returns both IDs, the
    Carson's-rule bandwidth, and a compact summary.
    """
    _check_sample_budget(sampling_freq_hz, duration_s)
    bundle = generate_fm_signal(
        sampling_freq_hz, duration_s, carrier_freq_hz, message_freq_hz,
        beta=beta, message_type=message_type,
    )
    ids = _store_bundle(
        bundle, sampling_freq_hz,
        kind="fm",
        fc=carrier_freq_hz,
        fm=message_freq_hz,
        beta=beta,
        message_type=message_type,
    )
    low, high = carson_band(carrier_freq_hz, message_freq_hz, beta)

    return json.dumps({
        **ids,
        **_signal_summary(bundle.modulated, sampling_freq_hz),
        "beta": beta,
        "peak_deviation_hz": beta * message_freq_hz,
        "carson_bandwidth_hz": carson_bandwidth(beta, message_freq_hz),
        "carson_band_hz": [low, high],
        "note": (
            f"FM waveform stored as '{ids['signal_id']}', message as '{ids['message_id']}'. "
            "Pass signal_id to compute_spectrum or demodulate_fm_signal."
        ),
    }, indent=2)


# ===================================================================
# TOOL 3: Filter signal
# ===================================================================

@mcp.tool()
def filter_signal(
    filter_type: Annotated[Literal["lowpass", "highpass", "bandpass", "bandstop"], Field(description="Filter type")],
    signal_id: Annotated[str | None, Field(description="ID of a stored signal. Preferred over raw array.", default=None)] = None,
    signal: Annotated[list[float] | None, Field(description="Time-domain signal array. Use signal_id instead for large signals.", default=None)] = None,
    sampling_freq_hz: Annotated[float | None, Field(description="Sampling frequency in Hz. Auto-resolved when using signal_id.", default=None)] = None,
    cutoff_hz: Annotated[float | None, Field(description="Cutoff for lowpass/highpass (Hz)", default=None)] = None,
    low_hz: Annotated[float | None, Field(description="Lower edge for bandpass/bandstop (Hz)", default=None)] = None,
    high_hz: Annotated[float | None, Field(description="Upper edge for bandpass/bandstop (Hz)", default=None)] = None,
    order: Annotated[int, Field(description="Number of cascaded single-pole stages", default=1)] = 1,
) -> str:
    """Apply a cascaded single-pole filter and store the result.

    Band filters require high_hz > low_hz; a degenerate band is rejected.
    """
    entry = _get_signal_entry(signal_id, signal, sampling_freq_hz)
    x, fs = entry["signal"], entry["sampling_freq_hz"]

    if filter_type in ("lowpass", "highpass"):
        if cutoff_hz is None:
            raise ValueError(f"cutoff_hz is required for a {filter_type} filter")
        fn = lowpass_filter if filter_type == "lowpass" else highpass_filter
        y = fn(x, fs, cutoff_hz, order)
        params: dict = {"cutoff_hz": cutoff_hz}
    else:
        if low_hz is None or high_hz is None:
            raise ValueError(f"low_hz and high_hz are required for a {filter_type} filter")
        fn = bandpass_filter if filter_type == "bandpass" else bandstop_filter
        y = fn(x, fs, low_hz, high_hz, order)
        params = {"low_hz": low_hz, "high_hz": high_hz}

    sid = _store_signal(
        y, fs, source=signal_id or "raw_input", role="filtered",
        filter_type=filter_type, order=order, **params,
    )
    return json.dumps({
        "signal_id": sid,
        **_signal_summary(y, fs),
        "filter": {"type": filter_type, "order": order, **params},
    }, indent=2)


# ===================================================================
# TOOL 4: Rectify signal
# ===================================================================

@mcp.tool()
def rectify_signal(
    signal_id: Annotated[str | None, Field(description="ID of a stored signal. Preferred over raw array.", default=None)] = None,
    signal: Annotated[list[float] | None, Field(description="Time-domain signal array. Use signal_id instead.", default=None)] = None,
    sampling_freq_hz: Annotated[float | None, Field(description="Sampling frequency in Hz. Auto-resolved when using signal_id.", default=None)] = None,
    mode: Annotated[Literal["half", "full"], Field(description="half-wave (clip negatives) or full-wave (absolute value)", default="half")] = "half",
) -> str:
    """Half-wave or full-wave rectify a signal and store the result."""
    entry = _get_signal_entry(signal_id, signal, sampling_freq_hz)
    x, fs = entry["signal"], entry["sampling_freq_hz"]
    y = half_wave_rectify(x) if mode == "half" else full_wave_rectify(x)

    sid = _store_signal(y, fs, source=signal_id or "raw_input", role=f"{mode}_wave_rectified")
    return json.dumps({"signal_id": sid, **_signal_summary(y, fs)}, indent=2)


# ===================================================================
# TOOL 5: Envelope detection
# ===================================================================

@mcp.tool()
def detect_envelope(
    window: Annotated[int, Field(description="Moving-average window in samples (≥ 1)")],
    signal_id: Annotated[str | None, Field(description="ID of a stored signal. Preferred over raw array.", default=None)] = None,
    signal: Annotated[list[float] | None, Field(description="Time-domain signal array. Use signal_id instead.", default=None)] = None,
    sampling_freq_hz: Annotated[float | None, Field(description="Sampling frequency in Hz. Auto-resolved when using signal_id.", default=None)] = None,
    rectify: Annotated[Literal["none", "half", "full"], Field(description="Rectification applied before smoothing", default="half")] = "half",
    prime_with_zeros: Annotated[bool, Field(description="Prime the moving average with zeros (else with the first sample)", default=True)] = True,
) -> str:
    """Extract the envelope of a signal with a moving average.

    For an AM waveform a window of half a carrier period
    (sampling_freq_hz / (2·carrier_freq_hz)) is a good starting point.
    """
    entry = _get_signal_entry(signal_id, signal, sampling_freq_hz)
    x, fs = entry["signal"], entry["sampling_freq_hz"]
    if rectify == "half":
        x = half_wave_rectify(x)
    elif rectify == "full":
        x = full_wave_rectify(x)
    y = envelope_detector(x, window, prime_with_zeros=prime_with_zeros)

    sid = _store_signal(y, fs, source=signal_id or "raw_input", role="envelope", window=window)
    return json.dumps({"signal_id": sid, **_signal_summary(y, fs), "window": window}, indent=2)


# ===================================================================
# TOOL 6: AM demodulation
# ===================================================================

@mcp.tool()
def demodulate_am_signal(
    signal_id: Annotated[str | None, Field(description="ID of a stored AM signal. Preferred over raw array.", default=None)] = None,
    signal: Annotated[list[float] | None, Field(description="AM signal array. Use signal_id instead.", default=None)] = None,
    sampling_freq_hz: Annotated[float | None, Field(description="Sampling frequency in Hz. Auto-resolved when using signal_id.", default=None)] = None,
    carrier_freq_hz: Annotated[float | None, Field(description="Carrier frequency in Hz. Auto-resolved for generated signals.", default=None)] = None,
    message_freq_hz: Annotated[float | None, Field(description="Message frequency in Hz. Auto-resolved for generated signals.", default=None)] = None,
    cutoff_multiplier: Annotated[float, Field(description="Smoothing low-pass cutoff as a multiple of the message frequency", default=4.0)] = 4.0,
    order: Annotated[int, Field(description="Cascade order of the smoothing low-pass", default=2)] = 2,
    smoothing: Annotated[Literal["cascade", "butterworth"], Field(description="Cascaded single-pole or 2-pole Butterworth smoothing", default="cascade")] = "cascade",
    dc_removal: Annotated[Literal["adaptive", "fixed"], Field(description="Adaptive moving-average DC removal or fixed 1.0 subtraction", default="adaptive")] = "adaptive",
) -> str:
    """Demodulate an AM signal by envelope detection.

    Pipeline: half-wave rectify → moving-average envelope → low-pass →
    DC removal. Stores the recovered message and reports its dominant
    frequency and peak-to-peak amplitude.
    """
    entry = _get_signal_entry(signal_id, signal, sampling_freq_hz)
    x, fs = entry["signal"], entry["sampling_freq_hz"]
    fc = _param(entry, "fc", carrier_freq_hz)
    fm = _param(entry, "fm", message_freq_hz)

    y = demodulate_am(
        x, fs, fc, fm,
        cutoff_multiplier=cutoff_multiplier, order=order,
        smoothing=smoothing, dc_removal=dc_removal,
    )
    tone = _recovered_tone(y, fs)
    sid = _store_signal(y, fs, source=signal_id or "raw_input", role="demodulated", kind="am", fc=fc, fm=fm)

    return json.dumps({
        "signal_id": sid,
        **_signal_summary(y, fs),
        **tone,
        "message_id": entry.get("message_id"),
    }, indent=2)


# ===================================================================
# TOOL 7: FM demodulation
# ===================================================================

@mcp.tool()
def demodulate_fm_signal(
    signal_id: Annotated[str | None, Field(description="ID of a stored FM signal. Preferred over raw array.", default=None)] = None,
    signal: Annotated[list[float] | None, Field(description="FM signal array. Use signal_id instead.", default=None)] = None,
    sampling_freq_hz: Annotated[float | None, Field(description="Sampling frequency in Hz. Auto-resolved when using signal_id.", default=None)] = None,
    carrier_freq_hz: Annotated[float | None, Field(description="Carrier frequency in Hz. Auto-resolved for generated signals.", default=None)] = None,
    message_freq_hz: Annotated[float | None, Field(description="Message frequency in Hz. Auto-resolved for generated signals.", default=None)] = None,
    beta: Annotated[float | None, Field(description="Modulation index β for the Carson band. Auto-resolved for generated signals.", default=None)] = None,
    low_hz: Annotated[float | None, Field(description="Override for the lower band-pass edge (Hz)", default=None)] = None,
    high_hz: Annotated[float | None, Field(description="Override for the upper band-pass edge (Hz)", default=None)] = None,
    cutoff_multiplier: Annotated[float, Field(description="Output low-pass cutoff as a multiple of the message frequency", default=2.0)] = 2.0,
    order: Annotated[int, Field(description="Cascade order of the output low-pass", default=1)] = 1,
) -> str:
    """Demodulate an FM signal with a differentiate-and-envelope detector.

    Pipeline: Carson-band band-pass → |first difference| → moving-average
    envelope → adaptive DC removal → low-pass. The output is one sample
    shorter than the input.
    """
    entry = _get_signal_entry(signal_id, signal, sampling_freq_hz)
    x, fs = entry["signal"], entry["sampling_freq_hz"]
    fc = _param(entry, "fc", carrier_freq_hz)
    fm = _param(entry, "fm", message_freq_hz)
    b = _param(entry, "beta", beta)

    y = demodulate_fm(
        x, fs, fc, fm, beta=b, low_hz=low_hz, high_hz=high_hz,
        cutoff_multiplier=cutoff_multiplier, order=order,
    )
    tone = _recovered_tone(y, fs)
    sid = _store_signal(y, fs, source=signal_id or "raw_input", role="demodulated", kind="fm", fc=fc, fm=fm, beta=b)

    return json.dumps({
        "signal_id": sid,
        **_signal_summary(y, fs),
        **tone,
        "message_id": entry.get("message_id"),
    }, indent=2)


def _recovered_tone(y: np.ndarray, fs: float) -> dict:
    """Dominant frequency of a recovered message (largest non-DC bin)."""
    if len(y) < 2:
        return {"dominant_frequency_hz": None}
    fft_size = min(_SETTINGS.max_fft_size, 1 << int(np.ceil(np.log2(len(y)))))
    spectrum = compute_magnitude_spectrum(y, fs, fft_size)
    return {
        "dominant_frequency_hz": round(spectrum.peak_frequency(skip_dc=True), 3),
        "freq_resolution_hz": round(spectrum.resolution_hz, 6),
    }


# ===================================================================
# TOOL 8: Spectrum
# ===================================================================

@mcp.tool()
def compute_spectrum(
    signal_id: Annotated[str | None, Field(description="ID of a stored signal. Preferred over raw array.", default=None)] = None,
    signal: Annotated[list[float] | None, Field(description="Time-domain signal array. Use signal_id instead for large signals.", default=None)] = None,
    sampling_freq_hz: Annotated[float | None, Field(description="Sampling frequency in Hz. Auto-resolved when using signal_id.", default=None)] = None,
    fft_size: Annotated[int, Field(description="FFT length, a power of two (signal is zero-padded or truncated)", default=8192)] = 8192,
    max_freq_hz: Annotated[float | None, Field(description="Maximum frequency to keep (Hz). Omit for the full half-spectrum", default=None)] = None,
) -> str:
    """Compute the FFT magnitude spectrum of a signal.

    Returns a spectrum_id plus a summary with the top peaks. For stored
    FM signals the share of energy inside the Carson band is reported.
    """
    if fft_size > _SETTINGS.max_fft_size:
        raise InvalidParameterError(
            f"fft_size {fft_size} exceeds the limit of {_SETTINGS.max_fft_size} "
            "(MODULATION_MAX_FFT_SIZE)",
            "fft_size",
            fft_size,
        )
    entry = _get_signal_entry(signal_id, signal, sampling_freq_hz)
    x, fs = entry["signal"], entry["sampling_freq_hz"]
    spectrum = compute_magnitude_spectrum(x, fs, fft_size)

    freqs, mags = spectrum.frequencies_hz, spectrum.magnitudes
    if max_freq_hz is not None:
        mask = freqs <= max_freq_hz
        freqs, mags = freqs[mask], mags[mask]

    spec_id = _store_spectrum(freqs, mags, source=signal_id or "raw_input", fft_size=fft_size, sampling_freq_hz=fs)
    result: dict = {"spectrum_id": spec_id, **_spectrum_summary(freqs, mags)}

    if entry.get("kind") == "fm" and entry.get("role") == "modulated":
        low, high = carson_band(entry["fc"], entry["fm"], entry["beta"])
        result["carson_band_hz"] = [low, high]
        result["carson_band_energy_fraction"] = round(band_energy_fraction(spectrum, low, high), 6)

    return json.dumps(result, indent=2)


# ===================================================================
# TOOL 9: Carson's rule
# ===================================================================

@mcp.tool()
def compute_carson_band(
    carrier_freq_hz: Annotated[float, Field(description="Carrier frequency in Hz")],
    message_freq_hz: Annotated[float, Field(description="Message frequency in Hz")],
    beta: Annotated[float, Field(description="Modulation index β")],
) -> str:
    """Carson's-rule bandwidth 2(β+1)·f_m and the band it occupies around f_c."""
    low, high = carson_band(carrier_freq_hz, message_freq_hz, beta)
    return json.dumps({
        "bandwidth_hz": carson_bandwidth(beta, message_freq_hz),
        "low_hz": low,
        "high_hz": high,
        "peak_deviation_hz": beta * message_freq_hz,
    }, indent=2)


# ===================================================================
# UTILITY TOOLS: Data access and store management
# ===================================================================

@mcp.tool()
def get_signal_samples(
    signal_id: Annotated[str, Field(description="ID of a stored signal or spectrum")],
    start: Annotated[int, Field(description="First sample / bin index", default=0)] = 0,
    stop: Annotated[int | None, Field(description="End index (exclusive). Omit for all", default=None)] = None,
) -> str:
    """Return raw arrays of a stored signal or spectrum for plotting.

    Signals come with their time axis; spectra with their frequency axis.
    """
    entry = _resolve_entry(signal_id)
    if entry["_type"] == "spectrum":
        return json.dumps({
            "frequencies_hz": entry["frequencies_hz"][start:stop].tolist(),
            "magnitudes": entry["magnitudes"][start:stop].tolist(),
        })

    arr = entry["signal"]
    fs = entry["sampling_freq_hz"]
    idx = np.arange(len(arr))[start:stop]
    return json.dumps({
        "time_s": (idx / fs).tolist(),
        "signal": arr[start:stop].tolist(),
        "sampling_freq_hz": fs,
    })


@mcp.tool()
def list_stored_data() -> str:
    """List all signals and spectra currently stored on disk.

    Returns a compact summary of each stored item (ID, type, size, and
    key metadata) without the raw data arrays.
    """
    all_ids = _list_all_stored_ids()
    if not all_ids:
        return json.dumps({
            "stored_items": [],
            "data_directory": str(_DATA_DIR),
            "note": "No data stored yet. Use generate_am_waveform or generate_fm_waveform to create signals.",
        })

    items = []
    for sid in all_ids:
        try:
            entry = _resolve_entry(sid)
        except (OSError, ValueError, KeyError) as exc:
            logger.warning("Could not load stored item %s: %s", sid, exc)
            items.append({"id": sid, "type": "unknown", "error": "could not load"})
            continue

        info: dict = {"id": sid, "type": entry["_type"]}
        if entry["_type"] == "signal":
            info["n_samples"] = entry["n_samples"]
            info["sampling_freq_hz"] = entry["sampling_freq_hz"]
            for key in ("kind", "role", "fc", "fm", "beta", "modulation_index"):
                if entry.get(key) is not None:
                    info[key] = entry[key]
        else:
            info["n_bins"] = entry["n_bins"]
        items.append(info)

    return json.dumps({
        "stored_items": items,
        "total": len(items),
        "data_directory": str(_DATA_DIR),
    }, indent=2, default=str)


@mcp.tool()
def clear_stored_data(
    data_id: Annotated[str | None, Field(description="ID of a specific item to remove, or omit to clear everything", default=None)] = None,
) -> str:
    """Delete stored signals and spectra from disk and memory.

    Pass a specific data_id to remove one item, or omit to clear all.
    """
    if data_id is not None:
        path = _signal_path(data_id) if data_id.startswith("sig_") else _spectrum_path(data_id)
        removed = path.exists()
        if removed:
            path.unlink()
        _cache.pop(data_id, None)
        if removed:
            return json.dumps({"cleared": data_id, "remaining": len(_list_all_stored_ids())})
        return json.dumps({"error": f"ID '{data_id}' not found in store."})

    count = 0
    for f in [*_SIGNALS_DIR.glob("sig_*.npz"), *_SPECTRA_DIR.glob("spec_*.npz")]:
        f.unlink()
        count += 1
    _cache.clear()
    logger.info("Cleared %d stored items", count)
    return json.dumps({"cleared": "all", "items_removed": count})


# ===================================================================
# PROMPT: Guided analysis
# ===================================================================

@mcp.prompt()
def analyze_modulation(
    scheme: str = "am",
    carrier_freq_hz: str = "10000",
    message_freq_hz: str = "500",
) -> str:
    """Step-by-step guided prompt for modulating, inspecting and demodulating a signal."""
    return f"""You are exploring {scheme.upper()} modulation.

Parameters:
- Carrier frequency: {carrier_freq_hz} Hz
- Message frequency: {message_freq_hz} Hz

**IMPORTANT — Server-side data store:**
Signals and spectra are stored on the server and referenced by short IDs
(e.g. sig_0001, spec_0001). NEVER pass raw sample arrays in conversation.

Follow this workflow:

1. **Generate the waveform** with `generate_am_waveform` or `generate_fm_waveform`
   — returns a **signal_id** (modulated) and a **message_id**.

2. **Inspect the spectrum** with `compute_spectrum(signal_id=...)`.
   - AM: carrier at f_c with sidebands at f_c ± f_m.
   - FM: energy spread over the Carson band f_c ± (β+1)·f_m
     (see `compute_carson_band`).

3. **Demodulate** with `demodulate_am_signal(signal_id=...)` or
   `demodulate_fm_signal(signal_id=...)` — returns the recovered message ID
   and its dominant frequency, which should match f_m.

4. Optionally explore the building blocks: `filter_signal`, `rectify_signal`,
   `detect_envelope`.

5. Fetch arrays for plotting with `get_signal_samples`.

Report the recovered frequency and amplitude against the original message.
"""


# ---------------------------------------------------------------------------
# Server entry
# ---------------------------------------------------------------------------

def serve(transport: Literal["stdio", "sse", "streamable-http"] = "stdio") -> None:
    """Start the modulation MCP server."""
    logger.info("Starting modulation MCP server (transport=%s, data=%s)", transport, _DATA_DIR)
    mcp.run(transport=transport)
