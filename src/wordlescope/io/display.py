"""
Grid renderers.

A renderer receives one rows x columns grid of levels per cycle
(0 = quietest, 2 = loudest) and owns all visual mapping.
"""

import abc
from typing import Optional, Sequence

import numpy as np
from rich.align import Align
from rich.console import Console, Group
from rich.text import Text

from wordlescope.config import VisualizerConfig
from wordlescope.core.smoother import N_LEVELS

# Black, yellow, green squares, as in the daily word game
EMOJI_PALETTE = ("⬛", "\U0001f7e8", "\U0001f7e9")
ASCII_PALETTE = (".", "o", "#")


class GridRenderer(abc.ABC):
    """Sink for quantized display grids."""

    def __init__(self, config: Optional[VisualizerConfig] = None):
        self.cfg = config or VisualizerConfig()

    def validate(self, grid: np.ndarray) -> np.ndarray:
        grid = np.asarray(grid)
        expected = (self.cfg.rows, self.cfg.columns)
        if grid.shape != expected:
            raise ValueError(f"Expected a {expected} grid, got {grid.shape}")
        if grid.size and (grid.min() < 0 or grid.max() >= N_LEVELS):
            raise ValueError(f"Grid levels must be in [0, {N_LEVELS - 1}]")
        return grid

    @abc.abstractmethod
    def render(self, grid: np.ndarray, cycle: int, total: int | None = None):
        """Draw one grid. `cycle` is 1-based."""
        pass

    def close(self):
        pass


class RecordingRenderer(GridRenderer):
    """Keeps a copy of every grid it is given."""

    def __init__(self, config: Optional[VisualizerConfig] = None):
        super().__init__(config)
        self.grids: list[np.ndarray] = []
        self.cycles: list[int] = []
        self.closed = False

    def render(self, grid: np.ndarray, cycle: int, total: int | None = None):
        grid = self.validate(grid)
        self.grids.append(grid.copy())
        self.cycles.append(cycle)

    def close(self):
        self.closed = True

    def __len__(self) -> int:
        return len(self.grids)


class TerminalRenderer(GridRenderer):
    """Clears the terminal and prints the grid as colored squares."""

    def __init__(
        self,
        config: Optional[VisualizerConfig] = None,
        console: Optional[Console] = None,
        palette: Sequence[str] = EMOJI_PALETTE,
        clear: bool = True,
        show_status: bool = True,
    ):
        super().__init__(config)
        if len(palette) != N_LEVELS:
            raise ValueError(f"Palette needs {N_LEVELS} symbols, got {len(palette)}")

        self.console = console or Console()
        self.palette = tuple(palette)
        self.clear = clear
        self.show_status = show_status

    def format_grid(self, grid: np.ndarray) -> list[str]:
        """One string per row, top row first."""
        grid = self.validate(grid)
        return ["".join(self.palette[int(level)] for level in row) for row in grid]

    def render(self, grid: np.ndarray, cycle: int, total: int | None = None):
        lines = self.format_grid(grid)

        body = [Text(""), *(Text(line) for line in lines), Text("")]
        if self.show_status:
            status = f"cycle {cycle}/{total}" if total else f"cycle {cycle}"
            body.append(Text(status, style="dim"))

        if self.clear:
            self.console.clear()
        # Centre the grid so it doesn't need a tiny terminal
        self.console.print(Align.center(Group(*body)))
