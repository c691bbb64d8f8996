"""
Temporal smoothing and quantization.

Holds per-column amplitudes across windows with VU-meter ballistics
(instant rise, geometric fall) and discretizes them into display levels
with a per-row attenuation.
"""

from dataclasses import dataclass

import numpy as np

from wordlescope.config import VisualizerConfig

# Display levels, quietest first
LEVEL_LOW = 0
LEVEL_MID = 1
LEVEL_HIGH = 2
N_LEVELS = 3


class FrameState:
    """Per-column amplitudes that persist for the lifetime of a run."""

    def __init__(self, columns: int):
        if columns < 1:
            raise ValueError(f"columns must be >= 1, got {columns}")
        self.amplitudes = np.zeros(columns, dtype=np.float64)

    def __len__(self) -> int:
        return len(self.amplitudes)

    def __getitem__(self, col: int) -> float:
        return float(self.amplitudes[col])

    def reset(self):
        """Return every column to the neutral amplitude."""
        self.amplitudes[:] = 0.0

    def copy(self) -> np.ndarray:
        return self.amplitudes.copy()


@dataclass(frozen=True)
class AmplitudeBrackets:
    """Two ascending thresholds splitting amplitude into three levels."""

    low: float = 0.5
    high: float = 1.0

    def __post_init__(self):
        if not self.low < self.high:
            raise ValueError(
                f"Bracket thresholds must be strictly increasing, got ({self.low}, {self.high})"
            )

    @property
    def edges(self) -> np.ndarray:
        return np.array([self.low, self.high], dtype=np.float64)

    def level(self, amplitude: float) -> int:
        """Level index for a single amplitude."""
        if amplitude < self.low:
            return LEVEL_LOW
        if amplitude < self.high:
            return LEVEL_MID
        return LEVEL_HIGH

    def quantize(self, amplitudes: np.ndarray) -> np.ndarray:
        """Vectorized level(); NaN counts as the lowest level."""
        amplitudes = np.nan_to_num(np.asarray(amplitudes, dtype=np.float64), nan=-np.inf)
        # right=False: t1 <= a < t2 lands in bucket 1, a >= t2 in bucket 2
        return np.digitize(amplitudes, self.edges).astype(np.uint8)


class SmoothingEngine:
    """
    Applies the decay-or-rise update to a FrameState and renders it to a
    rows x columns grid of levels.

    Row 0 is the top of the display and the most attenuated: row r scales
    amplitude by (r + 1) / rows, so the bottom row shows it unscaled.
    """

    def __init__(
        self,
        decay: float = 0.9,
        rows: int = 6,
        brackets: AmplitudeBrackets | None = None,
        amplitude_ceiling: float = 64.0,
    ):
        if not 0.0 < decay < 1.0:
            raise ValueError(f"decay must be in (0, 1), got {decay}")
        if rows < 1:
            raise ValueError(f"rows must be >= 1, got {rows}")

        self.decay = decay
        self.rows = rows
        self.brackets = brackets or AmplitudeBrackets()
        self.amplitude_ceiling = amplitude_ceiling
        self._row_factors = (np.arange(rows, dtype=np.float64) + 1.0) / rows

    @classmethod
    def from_config(cls, config: VisualizerConfig) -> "SmoothingEngine":
        low, high = config.thresholds
        return cls(
            decay=config.decay,
            rows=config.rows,
            brackets=AmplitudeBrackets(low=low, high=high),
            amplitude_ceiling=config.amplitude_ceiling,
        )

    @property
    def row_factors(self) -> np.ndarray:
        return self._row_factors.copy()

    def attenuation(self, row: int) -> float:
        """Scale factor applied to amplitudes on a given row."""
        if not 0 <= row < self.rows:
            raise IndexError(f"row {row} out of range for {self.rows} rows")
        return float(self._row_factors[row])

    def update(self, state: FrameState, magnitudes: np.ndarray) -> FrameState:
        """
        Blend new magnitudes into the state in place.

        frame[col] = max(frame[col] * decay, magnitude[col]), after which
        non-finite values are clamped so one bad window cannot stick.
        """
        magnitudes = np.asarray(magnitudes, dtype=np.float64)
        if magnitudes.shape != state.amplitudes.shape:
            raise ValueError(
                f"Expected {len(state)} magnitudes, got shape {magnitudes.shape}"
            )

        ceiling = self.amplitude_ceiling
        magnitudes = np.nan_to_num(magnitudes, nan=0.0, posinf=ceiling, neginf=-ceiling)

        np.maximum(state.amplitudes * self.decay, magnitudes, out=state.amplitudes)
        np.nan_to_num(state.amplitudes, copy=False, nan=0.0, posinf=ceiling, neginf=-ceiling)
        np.clip(state.amplitudes, -ceiling, ceiling, out=state.amplitudes)
        return state

    def quantize_row(self, amplitudes: np.ndarray, row: int) -> np.ndarray:
        """Levels for one display row."""
        return self.brackets.quantize(np.asarray(amplitudes) * self.attenuation(row))

    def grid(self, state: FrameState) -> np.ndarray:
        """
        Quantize the whole display.

        Returns:
            uint8 array of shape (rows, columns) with values in {0, 1, 2}.
        """
        attenuated = self._row_factors[:, np.newaxis] * state.amplitudes[np.newaxis, :]
        return self.brackets.quantize(attenuated)
