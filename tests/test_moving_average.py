"""Tests for the streaming moving-average estimator."""

import numpy as np
import pytest

from mcp_server_modulation.analysis.errors import InvalidParameterError
from mcp_server_modulation.analysis.moving_average import MovingAverage, moving_average


class TestMovingAverage:
    @pytest.mark.parametrize("window", [1, 3, 7, 25])
    @pytest.mark.parametrize("c", [0.1, -2.5, 1.0 / 3.0])
    def test_constant_input_is_exact(self, window, c):
        ma = MovingAverage(window)
        outputs = [ma.update(c) for _ in range(window)]
        assert all(out == c for out in outputs)

    def test_mean_of_last_window_values(self):
        ma = MovingAverage(3)
        for v in [1.0, 2.0, 3.0, 4.0, 5.0]:
            out = ma.update(v)
        assert out == pytest.approx(4.0)
        assert ma.count == 3

    def test_partial_fill_mean(self):
        ma = MovingAverage(4)
        ma.update(2.0)
        assert ma.update(4.0) == pytest.approx(3.0)

    def test_prime_with_zeros(self):
        ma = MovingAverage(4)
        ma.prime(0.0)
        assert ma.update(4.0) == pytest.approx(1.0)
        assert ma.update(4.0) == pytest.approx(2.0)

    def test_prime_sets_mean(self):
        ma = MovingAverage(5)
        ma.prime(0.7)
        assert ma.mean == 0.7
        assert ma.update(0.7) == 0.7

    def test_window_one_tracks_input(self):
        ma = MovingAverage(1)
        assert [ma.update(v) for v in [3.0, -1.0, 2.0]] == [3.0, -1.0, 2.0]

    def test_reset(self):
        ma = MovingAverage(3)
        ma.prime(5.0)
        ma.reset()
        assert ma.count == 0
        assert ma.update(1.0) == 1.0

    @pytest.mark.parametrize("window", [0, -3, 2.5, float("nan"), float("inf")])
    def test_invalid_window_raises(self, window):
        with pytest.raises(InvalidParameterError):
            MovingAverage(window)


class TestMovingAverageBuffer:
    def test_matches_convolution_after_fill(self):
        rng = np.random.default_rng(0)
        x = rng.normal(size=200)
        w = 8
        y = moving_average(x, w)
        expected = np.convolve(x, np.ones(w) / w, mode="valid")
        np.testing.assert_allclose(y[w - 1:], expected, atol=1e-10)

    def test_primed_buffer(self):
        x = np.ones(10)
        y = moving_average(x, 5, prime_value=0.0)
        np.testing.assert_allclose(y[:5], [0.2, 0.4, 0.6, 0.8, 1.0])
        np.testing.assert_allclose(y[5:], 1.0)

    def test_does_not_mutate_input(self):
        x = np.array([1.0, 2.0, 3.0])
        moving_average(x, 2)
        np.testing.assert_array_equal(x, [1.0, 2.0, 3.0])
