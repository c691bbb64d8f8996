"""Pytest configuration and shared fixtures."""

import numpy as np
import pytest

from wordlescope.config import VisualizerConfig
from wordlescope.core.sampler import FrequencyBinMap

# Reference capture settings
TEST_SR = 44100
TEST_WINDOW = 1024


def bin_tone(bin_index: int, n_windows: int = 1, amplitude: float = 0.5) -> np.ndarray:
    """
    Sine wave centred exactly on a DFT bin, so it does not leak into
    neighbouring bins.

    Returns:
        float32 array of n_windows * TEST_WINDOW samples.
    """
    n = np.arange(TEST_WINDOW * n_windows)
    y = amplitude * np.sin(2 * np.pi * bin_index * n / TEST_WINDOW)
    return y.astype(np.float32)


def cycles_to_duration(n_cycles: int, config: VisualizerConfig | None = None) -> float:
    """Duration (seconds) that yields exactly n_cycles windows."""
    cfg = config or VisualizerConfig()
    return n_cycles * cfg.window_size / cfg.sample_rate


@pytest.fixture
def config() -> VisualizerConfig:
    """Default configuration (44.1 kHz, 1024-sample windows, 5x6 grid)."""
    return VisualizerConfig()


@pytest.fixture
def bin_map(config) -> FrequencyBinMap:
    return FrequencyBinMap.from_config(config)


@pytest.fixture
def silent_window() -> np.ndarray:
    return np.zeros(TEST_WINDOW, dtype=np.float32)


@pytest.fixture
def column_tone(bin_map):
    """
    Factory for a window holding a pure tone on one column's bin.

    Returns:
        Callable (column) -> float32 window.
    """
    def _make(column: int) -> np.ndarray:
        return bin_tone(bin_map.indices[column])

    return _make


@pytest.fixture
def loud_window(bin_map) -> np.ndarray:
    """One window with equal tones on every mapped bin."""
    return np.sum([bin_tone(idx) for idx in bin_map.indices], axis=0).astype(np.float32)


@pytest.fixture
def temp_audio_file(tmp_path):
    """One second of a 440 Hz tone written to a WAV file."""
    import soundfile as sf

    t = np.arange(TEST_SR) / TEST_SR
    y = (0.5 * np.sin(2 * np.pi * 440.0 * t)).astype(np.float32)
    audio_path = tmp_path / "tone.wav"
    sf.write(audio_path, y, TEST_SR)
    return audio_path


@pytest.fixture
def make_tone():
    return bin_tone


@pytest.fixture
def duration_for():
    return cycles_to_duration
