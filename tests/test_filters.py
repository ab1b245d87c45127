"""Tests for the cascaded single-pole filter bank."""

import numpy as np
import pytest

from mcp_server_modulation.analysis.errors import (
    DegenerateFilterRangeError,
    InvalidParameterError,
)
from mcp_server_modulation.analysis.filters import (
    bandpass_filter,
    bandstop_filter,
    butterworth2_coefficients,
    butterworth2_lowpass,
    carson_band,
    carson_bandwidth,
    highpass_filter,
    highpass_alpha,
    lowpass_alpha,
    lowpass_filter,
)


def _reference_lowpass(x, alpha):
    y = np.zeros(len(x))
    for i in range(1, len(x)):
        y[i] = alpha * x[i] + (1 - alpha) * y[i - 1]
    return y


def _reference_highpass(x, alpha):
    y = np.zeros(len(x))
    for i in range(1, len(x)):
        y[i] = alpha * (y[i - 1] + x[i] - x[i - 1])
    return y


def _tone_amplitude(y, settle=2000):
    return np.max(np.abs(y[settle:]))


class TestAlpha:
    def test_lowpass_alpha(self):
        assert lowpass_alpha(1000.0, 100.0) == pytest.approx(1 - np.exp(-2 * np.pi * 0.1))

    def test_highpass_alpha(self):
        assert highpass_alpha(1000.0, 100.0) == pytest.approx(np.exp(-2 * np.pi * 0.1))

    def test_non_positive_fs_raises(self):
        with pytest.raises(InvalidParameterError):
            lowpass_alpha(0.0, 100.0)

    @pytest.mark.parametrize("alpha_fn", [lowpass_alpha, highpass_alpha])
    @pytest.mark.parametrize("cutoff", [-3000.0, float("nan")])
    def test_negative_cutoff_raises(self, alpha_fn, cutoff):
        with pytest.raises(InvalidParameterError):
            alpha_fn(500_000.0, cutoff)

    def test_zero_cutoff_is_allowed(self):
        assert lowpass_alpha(1000.0, 0.0) == 0.0
        assert highpass_alpha(1000.0, 0.0) == 1.0


class TestSinglePoleRecursion:
    def test_lowpass_matches_recursion(self):
        x = np.random.default_rng(1).normal(size=500)
        alpha = lowpass_alpha(8000.0, 300.0)
        np.testing.assert_allclose(lowpass_filter(x, 8000.0, 300.0), _reference_lowpass(x, alpha), atol=1e-12)

    def test_highpass_matches_recursion(self):
        x = np.random.default_rng(2).normal(size=500)
        alpha = highpass_alpha(8000.0, 300.0)
        np.testing.assert_allclose(highpass_filter(x, 8000.0, 300.0), _reference_highpass(x, alpha), atol=1e-12)

    def test_cascade_reuses_alpha(self):
        x = np.random.default_rng(3).normal(size=400)
        alpha = lowpass_alpha(8000.0, 500.0)
        expected = _reference_lowpass(_reference_lowpass(_reference_lowpass(x, alpha), alpha), alpha)
        np.testing.assert_allclose(lowpass_filter(x, 8000.0, 500.0, order=3), expected, atol=1e-12)

    def test_highpass_cascade(self):
        x = np.random.default_rng(4).normal(size=400)
        alpha = highpass_alpha(8000.0, 500.0)
        expected = _reference_highpass(_reference_highpass(x, alpha), alpha)
        np.testing.assert_allclose(highpass_filter(x, 8000.0, 500.0, order=2), expected, atol=1e-12)

    def test_first_sample_is_zero(self):
        x = np.full(50, 3.0)
        assert lowpass_filter(x, 1000.0, 50.0, order=2)[0] == 0.0
        assert highpass_filter(x, 1000.0, 50.0, order=2)[0] == 0.0

    def test_lowpass_settles_to_dc(self):
        y = lowpass_filter(np.ones(5000), 1000.0, 50.0)
        assert y[-1] == pytest.approx(1.0, abs=1e-9)

    def test_highpass_blocks_dc(self):
        y = highpass_filter(np.ones(5000), 1000.0, 50.0)
        np.testing.assert_allclose(y, 0.0, atol=1e-12)

    def test_short_inputs(self):
        assert len(lowpass_filter(np.array([]), 1000.0, 10.0)) == 0
        np.testing.assert_array_equal(highpass_filter(np.array([2.0]), 1000.0, 10.0), [0.0])

    def test_input_not_mutated(self):
        x = np.array([1.0, 2.0, 3.0, 4.0])
        lowpass_filter(x, 1000.0, 10.0, order=2)
        bandstop_filter(x, 1000.0, 10.0, 100.0)
        np.testing.assert_array_equal(x, [1.0, 2.0, 3.0, 4.0])

    def test_invalid_order_raises(self):
        with pytest.raises(InvalidParameterError):
            lowpass_filter(np.ones(10), 1000.0, 10.0, order=0)

    def test_negative_cutoff_never_filters(self):
        x = np.random.default_rng(6).normal(size=200)
        with pytest.raises(InvalidParameterError):
            highpass_filter(x, 500_000.0, -3000.0)
        with pytest.raises(InvalidParameterError):
            bandpass_filter(x, 500_000.0, -1000.0, 5000.0)

    def test_zero_cutoff_highpass_only_removes_first_sample(self):
        x = np.random.default_rng(6).normal(size=200)
        np.testing.assert_allclose(highpass_filter(x, 1000.0, 0.0), x - x[0], atol=1e-12)


class TestOrderMonotonicity:
    def test_lowpass_attenuation_increases_with_order(self, two_tone):
        fs = two_tone["fs"]
        amplitudes = [
            _tone_amplitude(lowpass_filter(two_tone["high"], fs, 100.0, order=k))
            for k in range(1, 6)
        ]
        assert all(b < a for a, b in zip(amplitudes, amplitudes[1:]))

    def test_highpass_attenuation_increases_with_order(self, two_tone):
        fs = two_tone["fs"]
        amplitudes = [
            _tone_amplitude(highpass_filter(two_tone["low"], fs, 1000.0, order=k))
            for k in range(1, 5)
        ]
        assert all(b < a for a, b in zip(amplitudes, amplitudes[1:]))


class TestBandFilters:
    def test_bandpass_is_highpass_then_lowpass(self, two_tone):
        fs = two_tone["fs"]
        x = two_tone["low"] + two_tone["high"]
        expected = lowpass_filter(highpass_filter(x, fs, 200.0, 2), fs, 2000.0, 2)
        np.testing.assert_array_equal(bandpass_filter(x, fs, 200.0, 2000.0, order=2), expected)

    @pytest.mark.parametrize("order", [1, 2, 4])
    def test_bandstop_plus_bandpass_reconstructs(self, two_tone, order):
        fs = two_tone["fs"]
        x = two_tone["low"] + two_tone["high"]
        bp = bandpass_filter(x, fs, 500.0, 2000.0, order)
        bs = bandstop_filter(x, fs, 500.0, 2000.0, order)
        np.testing.assert_allclose(bs + bp, x, atol=1e-12)

    def test_bandpass_keeps_inband_tone(self, two_tone):
        fs = two_tone["fs"]
        x = two_tone["low"] + two_tone["high"]
        y = bandpass_filter(x, fs, 500.0, 2000.0, order=2)
        spectrum = np.abs(np.fft.rfft(y))
        freqs = np.fft.rfftfreq(len(y), 1.0 / fs)
        idx_50 = np.argmin(np.abs(freqs - 50))
        idx_1000 = np.argmin(np.abs(freqs - 1000))
        assert spectrum[idx_1000] > spectrum[idx_50] * 5

    @pytest.mark.parametrize("low, high", [(500.0, 500.0), (800.0, 200.0)])
    def test_degenerate_band_raises(self, low, high):
        with pytest.raises(DegenerateFilterRangeError) as exc:
            bandpass_filter(np.ones(10), 1000.0, low, high)
        assert exc.value.low_hz == low
        assert exc.value.high_hz == high

    def test_degenerate_band_is_value_error(self):
        with pytest.raises(ValueError):
            bandstop_filter(np.ones(10), 1000.0, 300.0, 100.0)


class TestButterworth2:
    def test_coefficients_formula(self):
        fs, cutoff = 500_000.0, 650.0
        w = 2 * np.pi * cutoff / (fs / 2)
        den = 1 + np.sqrt(2) * w + w * w
        b, a = butterworth2_coefficients(fs, cutoff)
        np.testing.assert_allclose(b, [w * w / den, 2 * w * w / den, w * w / den])
        np.testing.assert_allclose(
            a, [1.0, 2 * (w * w - 1) / den, (1 - np.sqrt(2) * w + w * w) / den]
        )

    def test_difference_equation(self):
        x = np.random.default_rng(5).normal(size=300)
        b, a = butterworth2_coefficients(500_000.0, 650.0)
        y = np.zeros_like(x)
        y[0] = b[0] * x[0]
        y[1] = b[0] * x[1] + b[1] * x[0] - a[1] * y[0]
        for i in range(2, len(x)):
            y[i] = b[0] * x[i] + b[1] * x[i - 1] + b[2] * x[i - 2] - a[1] * y[i - 1] - a[2] * y[i - 2]
        np.testing.assert_allclose(butterworth2_lowpass(x, 500_000.0, 650.0), y, atol=1e-12)

    def test_unity_dc_gain(self):
        y = butterworth2_lowpass(np.ones(4000), 500_000.0, 650.0)
        assert y[-1] == pytest.approx(1.0, abs=1e-6)


class TestCarson:
    def test_bandwidth(self):
        assert carson_bandwidth(5.0, 500.0) == 6000.0

    def test_band_centred_on_carrier(self):
        assert carson_band(10_000.0, 500.0, 5.0) == (7000.0, 13000.0)
