"""Tests for the MCP tool layer and its on-disk data store."""

from __future__ import annotations

import json
from dataclasses import replace

import numpy as np
import pytest

from mcp_server_modulation import server
from mcp_server_modulation.analysis.errors import (
    DegenerateFilterRangeError,
    InvalidParameterError,
    TransformSizeError,
)


@pytest.fixture(autouse=True)
def store(tmp_path, monkeypatch):
    """Point the data store at a temporary directory."""
    signals = tmp_path / "signals"
    spectra = tmp_path / "spectra"
    signals.mkdir()
    spectra.mkdir()
    monkeypatch.setattr(server, "_DATA_DIR", tmp_path)
    monkeypatch.setattr(server, "_SIGNALS_DIR", signals)
    monkeypatch.setattr(server, "_SPECTRA_DIR", spectra)
    server._cache.clear()
    yield tmp_path
    server._cache.clear()


def _call(tool, **kwargs) -> dict:
    return json.loads(tool(**kwargs))


class TestGenerate:
    def test_am_waveform_ids_and_summary(self, store):
        out = _call(server.generate_am_waveform)
        assert out["signal_id"].startswith("sig_")
        assert out["message_id"].startswith("sig_")
        assert out["n_samples"] == 10_000
        assert out["modulation_index"] == pytest.approx(0.8)
        assert not out["overmodulated"]
        assert (store / "signals" / f"{out['signal_id']}.npz").exists()

    def test_am_index_form(self):
        out = _call(server.generate_am_waveform, modulation_index=1.5)
        assert out["overmodulated"]

    def test_fm_waveform_reports_carson_band(self):
        out = _call(server.generate_fm_waveform, beta=5.0)
        assert out["carson_bandwidth_hz"] == 6000.0
        assert out["carson_band_hz"] == [7000.0, 13000.0]
        assert out["peak_deviation_hz"] == 2500.0

    def test_sample_budget(self):
        with pytest.raises(InvalidParameterError):
            server.generate_am_waveform(sampling_freq_hz=1e9, duration_s=10.0)


class TestDemodulationTools:
    def test_am_round_trip_resolves_parameters(self):
        gen = _call(server.generate_am_waveform)
        out = _call(server.demodulate_am_signal, signal_id=gen["signal_id"])
        assert out["n_samples"] == 10_000
        assert out["message_id"] == gen["message_id"]
        assert abs(out["dominant_frequency_hz"] - 500.0) <= 2 * out["freq_resolution_hz"]

    def test_fm_round_trip(self):
        gen = _call(server.generate_fm_waveform)
        out = _call(server.demodulate_fm_signal, signal_id=gen["signal_id"])
        assert out["n_samples"] == 9_999

    def test_raw_signal_needs_carrier(self):
        with pytest.raises(ValueError, match="fc is required"):
            server.demodulate_am_signal(signal=[0.0, 1.0, 0.0], sampling_freq_hz=1000.0)

    def test_failed_summary_stores_nothing(self, store, monkeypatch):
        # a cap the config layer would reject, so the spectrum step fails
        monkeypatch.setattr(server, "_SETTINGS", replace(server._SETTINGS, max_fft_size=3))
        with pytest.raises(TransformSizeError):
            server.demodulate_am_signal(
                signal=[0.0, 1.0, 0.0, -1.0] * 8, sampling_freq_hz=1000.0,
                carrier_freq_hz=100.0, message_freq_hz=10.0,
            )
        assert list((store / "signals").glob("*.npz")) == []
        assert server._cache == {}

    def test_raw_signal_needs_sampling_rate(self):
        with pytest.raises(ValueError, match="sampling_freq_hz"):
            server.rectify_signal(signal=[0.0, 1.0])


class TestBuildingBlocks:
    def test_filter_signal(self):
        out = _call(
            server.filter_signal, filter_type="lowpass",
            signal=[1.0] * 100, sampling_freq_hz=1000.0, cutoff_hz=50.0, order=2,
        )
        assert out["n_samples"] == 100
        assert out["filter"] == {"type": "lowpass", "order": 2, "cutoff_hz": 50.0}

    def test_filter_degenerate_band(self):
        with pytest.raises(DegenerateFilterRangeError):
            server.filter_signal(
                filter_type="bandpass", signal=[1.0] * 10, sampling_freq_hz=1000.0,
                low_hz=200.0, high_hz=100.0,
            )

    def test_filter_negative_cutoff(self, store):
        with pytest.raises(InvalidParameterError):
            server.filter_signal(
                filter_type="highpass", signal=[1.0, 2.0, 0.5], sampling_freq_hz=1000.0, cutoff_hz=-100.0,
            )
        assert list((store / "signals").glob("*.npz")) == []

    def test_filter_requires_cutoff(self):
        with pytest.raises(ValueError, match="cutoff_hz"):
            server.filter_signal(filter_type="highpass", signal=[1.0], sampling_freq_hz=10.0)

    def test_rectify_full(self):
        out = _call(server.rectify_signal, signal=[-2.0, 1.0], sampling_freq_hz=10.0, mode="full")
        samples = _call(server.get_signal_samples, signal_id=out["signal_id"])
        assert samples["signal"] == [2.0, 1.0]

    def test_detect_envelope(self):
        out = _call(
            server.detect_envelope, window=2,
            signal=[1.0, -1.0, 1.0, -1.0], sampling_freq_hz=4.0, rectify="full",
        )
        samples = _call(server.get_signal_samples, signal_id=out["signal_id"])
        np.testing.assert_allclose(samples["signal"], [0.5, 1.0, 1.0, 1.0])
        assert out["window"] == 2


class TestSpectrumTool:
    def test_fm_spectrum_reports_carson_energy(self):
        gen = _call(server.generate_fm_waveform)
        out = _call(server.compute_spectrum, signal_id=gen["signal_id"])
        assert out["spectrum_id"].startswith("spec_")
        assert out["n_bins"] == 4096
        assert out["carson_band_energy_fraction"] > 0.9

    def test_max_freq_truncates(self):
        gen = _call(server.generate_am_waveform)
        out = _call(server.compute_spectrum, signal_id=gen["signal_id"], max_freq_hz=20_000.0)
        assert out["freq_range_hz"][1] <= 20_000.0
        assert "carson_band_hz" not in out

    def test_non_power_of_two(self):
        with pytest.raises(TransformSizeError):
            server.compute_spectrum(signal=[1.0, 2.0], sampling_freq_hz=10.0, fft_size=1000)

    def test_fft_size_limit(self):
        with pytest.raises(InvalidParameterError):
            server.compute_spectrum(signal=[1.0], sampling_freq_hz=10.0, fft_size=2 ** 30)

    def test_carson_band_tool(self):
        out = _call(server.compute_carson_band, carrier_freq_hz=10_000.0, message_freq_hz=500.0, beta=5.0)
        assert (out["low_hz"], out["high_hz"]) == (7000.0, 13000.0)


class TestStore:
    def test_reload_from_disk(self):
        gen = _call(server.generate_fm_waveform)
        server._cache.clear()
        samples = _call(server.get_signal_samples, signal_id=gen["signal_id"], stop=3)
        assert len(samples["signal"]) == 3
        assert samples["time_s"][1] == pytest.approx(2e-6)
        # metadata survives the round trip through the .npz file
        out = _call(server.demodulate_fm_signal, signal_id=gen["signal_id"])
        assert out["n_samples"] == 9_999

    def test_spectrum_samples(self):
        spec = _call(server.compute_spectrum, signal=[1.0] * 8, sampling_freq_hz=8.0, fft_size=8)
        out = _call(server.get_signal_samples, signal_id=spec["spectrum_id"])
        assert out["frequencies_hz"] == [0.0, 1.0, 2.0, 3.0]

    def test_list_and_clear(self):
        assert _call(server.list_stored_data)["stored_items"] == []
        gen = _call(server.generate_am_waveform)
        listing = _call(server.list_stored_data)
        assert listing["total"] == 2
        roles = {item["role"] for item in listing["stored_items"]}
        assert roles == {"message", "modulated"}

        assert _call(server.clear_stored_data, data_id=gen["signal_id"])["remaining"] == 1
        assert "error" in _call(server.clear_stored_data, data_id=gen["signal_id"])
        assert _call(server.clear_stored_data)["items_removed"] == 1

    def test_unknown_id(self):
        with pytest.raises(ValueError):
            server.get_signal_samples(signal_id="foo_123")


def test_reference_resource():
    assert "Carson's rule" in server.modulation_reference_resource()


def test_prompt_mentions_tools():
    text = server.analyze_modulation(scheme="fm")
    assert "FM modulation" in text
    assert "demodulate_fm_signal" in text
