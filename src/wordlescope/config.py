"""
Run-time configuration for the visualizer.

Every constant the pipeline consumes lives here so a run can be
reproduced from a single object (or a JSON file with the same keys).
"""

import json
import numbers
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Union

_INT_FIELDS = ("sample_rate", "window_size", "columns", "rows")
_FLOAT_FIELDS = ("duration", "decay", "freq_scaling", "power_floor", "amplitude_ceiling")


def _as_int(name: str, value: Any) -> int:
    """Accept ints and integral floats (JSON may write 5.0)."""
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    if isinstance(value, numbers.Integral):
        return int(value)
    if not float(value).is_integer():
        raise ValueError(f"{name} must be an integer, got {value!r}")
    return int(value)


def _as_float(name: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise ValueError(f"{name} must be a number, got {value!r}")
    return float(value)


@dataclass
class VisualizerConfig:
    """Configuration for capture, transform, smoothing and display."""

    sample_rate: int = 44100
    window_size: int = 1024  # samples per DFT
    duration: float = 10.0  # capture length (seconds)
    decay: float = 0.9  # per-window attenuation of the previous amplitude

    # Display shape
    columns: int = 5
    rows: int = 6

    # Bin map: midpoints of equal slices of the half-spectrum, scaled down
    freq_scaling: float = 0.5

    # Amplitude brackets: < t1 -> low, < t2 -> mid, else high
    thresholds: tuple[float, float] = (0.5, 1.0)

    # Numerical guards
    power_floor: float = 1e-12  # log10(power_floor) is the quietest magnitude
    amplitude_ceiling: float = 64.0

    def __post_init__(self):
        for name in _INT_FIELDS:
            setattr(self, name, _as_int(name, getattr(self, name)))
        for name in _FLOAT_FIELDS:
            setattr(self, name, _as_float(name, getattr(self, name)))

        if isinstance(self.thresholds, (str, bytes)) or not hasattr(self.thresholds, "__len__"):
            raise ValueError(
                f"thresholds must be a pair of numbers, got {self.thresholds!r}"
            )
        self.thresholds = tuple(_as_float("thresholds", t) for t in self.thresholds)

        if self.sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {self.sample_rate}")
        if self.window_size < 2 or self.window_size % 2:
            raise ValueError(
                f"window_size must be an even number >= 2, got {self.window_size}"
            )
        if self.duration <= 0:
            raise ValueError(f"duration must be positive, got {self.duration}")
        if round(self.sample_rate * self.duration) < self.window_size:
            raise ValueError(
                f"duration must cover at least one window "
                f"({self.window_size / self.sample_rate:.4f}s), got {self.duration}"
            )
        if not 0.0 < self.decay < 1.0:
            raise ValueError(f"decay must be in (0, 1), got {self.decay}")
        if self.columns < 1:
            raise ValueError(f"columns must be >= 1, got {self.columns}")
        if self.columns > self.nyquist_index:
            raise ValueError(
                f"columns ({self.columns}) cannot exceed window_size / 2 "
                f"({self.nyquist_index})"
            )
        if self.rows < 1:
            raise ValueError(f"rows must be >= 1, got {self.rows}")
        if not 0.0 < self.freq_scaling <= 1.0:
            raise ValueError(f"freq_scaling must be in (0, 1], got {self.freq_scaling}")
        if len(self.thresholds) != 2 or not self.thresholds[0] < self.thresholds[1]:
            raise ValueError(
                f"thresholds must be two strictly increasing values, got {self.thresholds}"
            )
        if self.power_floor <= 0:
            raise ValueError(f"power_floor must be positive, got {self.power_floor}")
        if self.amplitude_ceiling <= self.thresholds[1]:
            raise ValueError(
                "amplitude_ceiling must be above the highest threshold, "
                f"got {self.amplitude_ceiling}"
            )

    @property
    def nyquist_index(self) -> int:
        """Index of the Nyquist bin (N / 2)."""
        return self.window_size // 2

    @property
    def spectrum_size(self) -> int:
        """Number of complex values in a real-input transform (N / 2 + 1)."""
        return self.window_size // 2 + 1

    @property
    def window_duration(self) -> float:
        """Wall-clock length of one window in seconds."""
        return self.window_size / self.sample_rate

    @property
    def n_cycles(self) -> int:
        """Number of windows captured over the configured duration."""
        return int(round(self.sample_rate * self.duration)) // self.window_size

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["thresholds"] = list(self.thresholds)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VisualizerConfig":
        """
        Build a config from a mapping.

        Keys with a None value are skipped so unset CLI options keep
        their defaults. Unknown keys are rejected.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(unknown)}")

        return cls(**{k: v for k, v in data.items() if v is not None})

    @classmethod
    def from_json(cls, path: Union[str, Path]) -> "VisualizerConfig":
        """Load a config from a JSON object on disk."""
        with open(path) as f:
            data = json.load(f)

        if not isinstance(data, dict):
            raise ValueError(f"Config file must contain a JSON object: {path}")

        return cls.from_dict(data)

    def merged(self, overrides: dict[str, Any]) -> "VisualizerConfig":
        """Return a copy with non-None overrides applied."""
        data = self.to_dict()
        data.update({k: v for k, v in overrides.items() if v is not None})
        return type(self).from_dict(data)
