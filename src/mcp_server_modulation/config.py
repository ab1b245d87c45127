"""Environment‑driven settings for the modulation MCP server."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from mcp_server_modulation.analysis.spectral import is_power_of_two


@dataclass(frozen=True)
class ServerSettings:
    """Server configuration.

    Attributes:
        data_dir: Root of the signal / spectrum store.
        max_samples: Upper bound on floor(fs·duration) for synthesis.
        max_fft_size: Upper bound on the FFT length.
        log_level: Default logging level name.
    """

    data_dir: Path
    max_samples: int = 2_000_000
    max_fft_size: int = 1_048_576
    log_level: str = "WARNING"

    @property
    def signals_dir(self) -> Path:
        return self.data_dir / "signals"

    @property
    def spectra_dir(self) -> Path:
        return self.data_dir / "spectra"


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value < 1:
        raise ValueError(f"{name} must be ≥ 1, got {value}")
    return value


def load_settings() -> ServerSettings:
    """Read settings from ``MODULATION_*`` environment variables."""
    max_fft_size = _int_env("MODULATION_MAX_FFT_SIZE", 1_048_576)
    if max_fft_size < 2 or not is_power_of_two(max_fft_size):
        raise ValueError(f"MODULATION_MAX_FFT_SIZE must be a power of two ≥ 2, got {max_fft_size}")
    return ServerSettings(
        data_dir=Path(os.environ.get("MODULATION_DATA_DIR", Path.home() / ".modulation_data")),
        max_samples=_int_env("MODULATION_MAX_SAMPLES", 2_000_000),
        max_fft_size=max_fft_size,
        log_level=os.environ.get("MODULATION_LOG_LEVEL", "WARNING").upper(),
    )
