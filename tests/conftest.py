"""Shared test fixtures for modulation tests."""

from __future__ import annotations

import numpy as np
import pytest

from mcp_server_modulation.analysis.modulation import (
    WaveformBundle,
    generate_am_signal,
    generate_fm_signal,
)

FS = 500_000.0
DURATION = 0.02
FC = 10_000.0
FM = 500.0


@pytest.fixture
def am_bundle() -> WaveformBundle:
    """Sine‑message AM at fc = 10 kHz, fm = 500 Hz, Am = 0.8, Ac = 1.0."""
    return generate_am_signal(FS, DURATION, FC, FM, am=0.8, ac=1.0, message_type="sine")


@pytest.fixture
def fm_bundle() -> WaveformBundle:
    """Sine‑message FM at fc = 10 kHz, fm = 500 Hz, β = 5."""
    return generate_fm_signal(FS, DURATION, FC, FM, beta=5.0)


@pytest.fixture
def two_tone():
    """50 Hz + 1 kHz tones sampled at 10 kHz for 1 s."""
    fs = 10_000.0
    t = np.arange(0, 1.0, 1.0 / fs)
    return {
        "fs": fs,
        "t": t,
        "low": np.sin(2 * np.pi * 50 * t),
        "high": np.sin(2 * np.pi * 1000 * t),
    }
