"""
Frequency bin sampling.

Maps each display column to one bin of the half-spectrum and compresses
that bin's power to a log-scale loudness value.
"""

from dataclasses import dataclass

import librosa
import numpy as np

from wordlescope.config import VisualizerConfig


@dataclass(frozen=True)
class FrequencyBinMap:
    """Immutable column -> spectrum index mapping."""

    indices: tuple[int, ...]
    window_size: int
    sample_rate: int

    def __post_init__(self):
        nyquist = self.window_size // 2
        for col, idx in enumerate(self.indices):
            if not 0 <= idx < nyquist:
                raise ValueError(
                    f"Bin index {idx} for column {col} is outside [0, {nyquist})"
                )

    @classmethod
    def from_config(cls, config: VisualizerConfig) -> "FrequencyBinMap":
        """
        Take the midpoint of `columns` equally spaced slices of the lower
        half of the spectrum, scaled toward the more audible low end.
        """
        stride = config.window_size // 2 // config.columns
        indices = tuple(
            int(stride * (col + 0.5) * config.freq_scaling)
            for col in range(config.columns)
        )
        return cls(
            indices=indices,
            window_size=config.window_size,
            sample_rate=config.sample_rate,
        )

    def __len__(self) -> int:
        return len(self.indices)

    def as_array(self) -> np.ndarray:
        return np.asarray(self.indices, dtype=np.intp)

    def frequencies(self) -> np.ndarray:
        """Centre frequency (Hz) of each mapped bin."""
        freqs = librosa.fft_frequencies(sr=self.sample_rate, n_fft=self.window_size)
        return freqs[self.as_array()]


class BinSampler:
    """Extracts one log-power magnitude per column from a spectrum."""

    def __init__(
        self,
        bin_map: FrequencyBinMap,
        power_floor: float = 1e-12,
        amplitude_ceiling: float = 64.0,
    ):
        """
        Args:
            bin_map: Column to spectrum index mapping.
            power_floor: Squared magnitudes are clamped up to this before log10.
            amplitude_ceiling: Replaces +inf magnitudes.
        """
        self.bin_map = bin_map
        self.power_floor = power_floor
        self.amplitude_ceiling = amplitude_ceiling
        self._indices = bin_map.as_array()

    @property
    def floor_magnitude(self) -> float:
        """Magnitude reported for a silent (zero power) bin."""
        return float(np.log10(self.power_floor))

    def sample(self, spectrum: np.ndarray) -> np.ndarray:
        """
        Compute per-column magnitudes.

        Args:
            spectrum: Complex half-spectrum from SpectralTransformer.

        Returns:
            float64 array of length len(bin_map): log10(re^2 + im^2).
        """
        bins = spectrum[self._indices]
        with np.errstate(over="ignore", invalid="ignore"):
            power = bins.real * bins.real + bins.imag * bins.imag

        power = np.nan_to_num(
            power,
            nan=self.power_floor,
            posinf=np.inf,
            neginf=self.power_floor,
        )
        magnitude = np.log10(np.maximum(power, self.power_floor))
        magnitude = np.minimum(magnitude, self.amplitude_ceiling)
        return magnitude.astype(np.float64)
