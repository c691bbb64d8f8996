"""
Capture loop.

Orchestrates the complete flow from audio source to rendered grid:
read window -> transform -> sample bins -> smooth -> quantize -> render.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from wordlescope.config import VisualizerConfig
from wordlescope.core.sampler import BinSampler, FrequencyBinMap
from wordlescope.core.smoother import FrameState, SmoothingEngine
from wordlescope.core.transform import SpectralTransformer
from wordlescope.io.display import GridRenderer
from wordlescope.io.source import AudioSource, SourceExhausted, SourceReadError

logger = logging.getLogger(__name__)


class LoopState(enum.Enum):
    IDLE = "idle"
    INITIALIZING = "initializing"
    RUNNING = "running"
    DRAINING = "draining"
    DONE = "done"


@dataclass
class RunResult:
    """Outcome of one CaptureLoop.run()."""

    cycles_requested: int
    cycles_completed: int
    state: LoopState
    error: Optional[SourceReadError] = None
    exhausted: bool = False

    @property
    def ok(self) -> bool:
        """True unless the source failed mid-run."""
        return self.error is None or self.exhausted

    @property
    def terminated_early(self) -> bool:
        return self.cycles_completed < self.cycles_requested


class CaptureLoop:
    """
    Drives the signal pipeline once per window for a fixed number of cycles.

    The frame state persists across cycles and is owned here; the
    transformer and source are held only between INITIALIZING and
    DRAINING and are released exactly once on every exit path.
    """

    def __init__(
        self,
        config: Optional[VisualizerConfig] = None,
        source: Optional[AudioSource] = None,
        renderer: Optional[GridRenderer] = None,
    ):
        """
        Initialize the loop.

        Args:
            config: Pipeline configuration.
            source: Where windows come from. Required for run().
            renderer: Where grids go. Required for run().
        """
        self.cfg = config or VisualizerConfig()
        self.source = source
        self.renderer = renderer

        self.bin_map = FrequencyBinMap.from_config(self.cfg)
        self.sampler = BinSampler(
            self.bin_map,
            power_floor=self.cfg.power_floor,
            amplitude_ceiling=self.cfg.amplitude_ceiling,
        )
        self.engine = SmoothingEngine.from_config(self.cfg)
        self.frame = FrameState(self.cfg.columns)

        self.transformer: Optional[SpectralTransformer] = None
        self.state = LoopState.IDLE

    def _initialize(self):
        """Acquire the transform, then the source."""
        self.state = LoopState.INITIALIZING
        if self.transformer is None:
            self.transformer = SpectralTransformer(self.cfg.window_size)
        self.source.open()

    def _drain(self):
        """Release in reverse acquisition order."""
        self.state = LoopState.DRAINING
        try:
            if self.source is not None:
                self.source.close()
        finally:
            if self.transformer is not None:
                self.transformer.close()
                self.transformer = None
            self.state = LoopState.DONE

    def step(self, window: np.ndarray) -> np.ndarray:
        """
        Run the pipeline for one window.

        Outside run() this prepares a transformer on first use, which stays
        alive until close() or the end of a later run().

        Args:
            window: Exactly window_size samples.

        Returns:
            (rows, columns) grid of levels.
        """
        transformer = self.transformer
        if transformer is None:
            # Standalone use (no run() in progress)
            transformer = self.transformer = SpectralTransformer(self.cfg.window_size)

        spectrum = transformer.transform(window)
        magnitudes = self.sampler.sample(spectrum)
        self.engine.update(self.frame, magnitudes)
        return self.engine.grid(self.frame)

    def run(self, n_cycles: Optional[int] = None) -> RunResult:
        """
        Capture, process and render until the configured duration elapses.

        Args:
            n_cycles: Override for the number of windows (default from config).

        Returns:
            RunResult describing how far the run got.

        Raises:
            RuntimeError / SourceOpenError: Fatal initialization failures,
                after releasing anything already acquired.
        """
        if self.source is None or self.renderer is None:
            raise ValueError("CaptureLoop.run() needs both a source and a renderer")

        total = self.cfg.n_cycles if n_cycles is None else n_cycles
        result = RunResult(
            cycles_requested=total,
            cycles_completed=0,
            state=self.state,
        )

        try:
            self._initialize()
        except Exception:
            logger.error("Initialization failed; releasing acquired resources")
            self._drain()
            raise

        logger.info(
            "Running %d cycles of %d samples (%.1f ms each)",
            total,
            self.cfg.window_size,
            self.cfg.window_duration * 1000,
        )
        self.state = LoopState.RUNNING

        try:
            for cycle in range(1, total + 1):
                try:
                    window = self.source.read()
                except SourceExhausted as e:
                    logger.info("Source exhausted after %d cycles", result.cycles_completed)
                    result.error = e
                    result.exhausted = True
                    break
                except SourceReadError as e:
                    logger.error("Read failed on cycle %d: %s", cycle, e)
                    result.error = e
                    break

                grid = self.step(window)
                self.renderer.render(grid, cycle, total)
                result.cycles_completed = cycle
        finally:
            self._drain()
            result.state = self.state

        return result

    def reset(self):
        """Forget accumulated amplitudes."""
        self.frame.reset()

    def close(self):
        """Release a transformer left over from standalone step() calls."""
        if self.state == LoopState.RUNNING:
            raise RuntimeError("Cannot close a CaptureLoop while it is running")
        if self.transformer is not None:
            self.transformer.close()
            self.transformer = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
