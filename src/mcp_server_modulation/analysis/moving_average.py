"""Streaming fixed‑window moving average.

The estimator behind envelope detection and adaptive DC removal.  A
fixed‑capacity ring buffer holds the last ``window`` samples and the mean
is updated in O(1) per sample from the evicted and incoming values.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import ArrayLike, NDArray

from mcp_server_modulation.analysis.errors import require_positive_int


class MovingAverage:
    """Mean of the last ``window`` values fed to the estimator.

    Until the ring is full, the mean of the values seen so far is
    returned.  Priming fills the whole ring with one value, exactly as if
    ``window`` copies of it had been fed.

    Args:
        window: Number of samples averaged (≥ 1).

    Raises:
        InvalidParameterError: If ``window`` is not an integer ≥ 1.
    """

    def __init__(self, window: int) -> None:
        self._window = require_positive_int("window", window)
        self._buffer = np.zeros(self._window, dtype=np.float64)
        self._index = 0
        self._count = 0
        self._mean = 0.0

    @property
    def window(self) -> int:
        return self._window

    @property
    def count(self) -> int:
        """Number of occupied ring slots (saturates at ``window``)."""
        return self._count

    @property
    def mean(self) -> float:
        return self._mean

    def reset(self) -> None:
        self._buffer.fill(0.0)
        self._index = 0
        self._count = 0
        self._mean = 0.0

    def prime(self, value: float) -> None:
        """Fill every slot with ``value``; the mean becomes ``value``."""
        self._buffer.fill(value)
        self._index = 0
        self._count = self._window
        self._mean = float(value)

    def update(self, value: float) -> float:
        """Feed one sample and return the current windowed mean."""
        value = float(value)
        if self._count < self._window:
            self._buffer[self._count] = value
            self._count += 1
            self._mean += (value - self._mean) / self._count
            return self._mean

        # Ring full: the slot at _index holds the oldest sample.
        oldest = self._buffer[self._index]
        self._buffer[self._index] = value
        self._index = (self._index + 1) % self._window
        self._mean += (value - oldest) / self._window
        return self._mean


def moving_average(
    x: ArrayLike,
    window: int,
    prime_value: float | None = None,
) -> NDArray[np.floating]:
    """Run a fresh MovingAverage over a whole buffer.

    Args:
        x: Input samples.
        window: Averaging window in samples.
        prime_value: If given, the ring is filled with this value before
            the first sample is fed.

    Returns:
        Array of running means, same length as ``x``.
    """
    x = np.asarray(x, dtype=np.float64)
    estimator = MovingAverage(window)
    if prime_value is not None:
        estimator.prime(prime_value)

    out = np.empty_like(x)
    for i, value in enumerate(x):
        out[i] = estimator.update(value)
    return out
