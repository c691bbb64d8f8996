"""Tests for the CaptureLoop orchestrator."""

import numpy as np
import pytest

from wordlescope.config import VisualizerConfig
from wordlescope.core.transform import SpectralTransformer
from wordlescope.io.display import RecordingRenderer
from wordlescope.io.source import ArraySource, SourceOpenError, SourceReadError
from wordlescope.pipeline import CaptureLoop, LoopState, RunResult


class _FailingOpenSource(ArraySource):
    def _open(self):
        raise SourceOpenError("no such device")


class _OrderRecordingSource(ArraySource):
    """Notes whether the transform was still alive when the source closed."""

    def __init__(self, samples, config, loop_ref):
        super().__init__(samples, config)
        self.loop_ref = loop_ref
        self.transformer_alive_at_close = None

    def _close(self):
        self.transformer_alive_at_close = self.loop_ref[0].transformer is not None


class _InterruptingRenderer(RecordingRenderer):
    def render(self, grid, cycle, total=None):
        super().render(grid, cycle, total)
        if cycle == 2:
            raise KeyboardInterrupt


class TestCaptureLoop:
    """Tests for the complete pipeline."""

    @pytest.fixture
    def short_config(self, duration_for):
        """Ten cycles of the default window."""
        return VisualizerConfig(duration=duration_for(10))

    def test_step_returns_grid(self, config, silent_window):
        """step() should run without a source and return a rows x columns grid."""
        loop = CaptureLoop(config)
        grid = loop.step(silent_window)

        assert grid.shape == (6, 5)

    def test_tone_raises_its_column(self, config, column_tone):
        """A tone on column 2's bin should lift column 2 above the rest."""
        loop = CaptureLoop(config)
        loop.step(column_tone(2))

        amplitudes = loop.frame.amplitudes
        others = np.delete(amplitudes, 2)
        assert amplitudes[2] > others.max()
        assert loop.step(column_tone(2))[-1, 2] == 2

    def test_silence_renders_lowest_level(self, short_config):
        """All-zero input should leave every cell at level 0 for the whole run."""
        windows = np.zeros((10, 1024), dtype=np.float32)
        renderer = RecordingRenderer(short_config)
        loop = CaptureLoop(short_config, ArraySource(windows, short_config), renderer)

        result = loop.run()

        assert result.ok
        assert result.cycles_completed == 10
        assert len(renderer) == 10
        for grid in renderer.grids:
            assert np.all(grid == 0)

    def test_impulse_then_silence_decays(self, config, loud_window, silent_window):
        """A loud window followed by silence should decay by `decay` per cycle."""
        loop = CaptureLoop(config)
        first = loop.step(loud_window)
        peak = loop.frame.copy()

        assert np.all(first[-1] == 2)

        grids = []
        for k in range(1, 41):
            grids.append(loop.step(silent_window))
            assert np.allclose(loop.frame.amplitudes, peak * config.decay ** k)

        assert np.all(grids[-1] == 0)
        # Levels fall monotonically as the trail fades
        totals = [int(g.sum()) for g in grids]
        assert totals == sorted(totals, reverse=True)

    def test_read_failure_on_third_cycle(self, short_config):
        """A read failure on cycle 3 of 10 should leave exactly 2 renders."""
        windows = np.zeros((10, 1024), dtype=np.float32)
        source = ArraySource(windows, short_config, fail_on=3)
        renderer = RecordingRenderer(short_config)
        loop = CaptureLoop(short_config, source, renderer)

        result = loop.run()

        assert isinstance(result, RunResult)
        assert not result.ok
        assert result.terminated_early
        assert isinstance(result.error, SourceReadError)
        assert result.cycles_requested == 10
        assert result.cycles_completed == 2
        assert renderer.cycles == [1, 2]
        assert source.closed
        assert loop.transformer is None
        assert result.state == LoopState.DONE

    def test_exhausted_source_ends_cleanly(self, short_config):
        """A finite source running out is not a failure."""
        source = ArraySource(np.zeros((4, 1024)), short_config)
        renderer = RecordingRenderer(short_config)

        result = CaptureLoop(short_config, source, renderer).run()

        assert result.ok
        assert result.exhausted
        assert result.cycles_completed == 4
        assert source.closed

    def test_cycle_override(self, short_config):
        source = ArraySource(np.zeros((10, 1024)), short_config)
        renderer = RecordingRenderer(short_config)

        result = CaptureLoop(short_config, source, renderer).run(n_cycles=3)

        assert result.cycles_completed == 3
        assert source.reads == 3

    def test_source_open_failure_is_fatal(self, short_config):
        """An unopenable source should propagate after releasing the transform."""
        source = _FailingOpenSource(np.zeros((10, 1024)), short_config)
        renderer = RecordingRenderer(short_config)
        loop = CaptureLoop(short_config, source, renderer)

        with pytest.raises(SourceOpenError):
            loop.run()

        assert loop.transformer is None
        assert loop.state == LoopState.DONE
        assert len(renderer) == 0

    def test_transform_init_failure_is_fatal(self, short_config, monkeypatch):
        """If the transform cannot be prepared the source is never opened."""
        def _broken(*args, **kwargs):
            raise RuntimeError("transform initialization failed: out of memory")

        monkeypatch.setattr("wordlescope.pipeline.SpectralTransformer", _broken)
        source = ArraySource(np.zeros((10, 1024)), short_config)
        loop = CaptureLoop(short_config, source, RecordingRenderer(short_config))

        with pytest.raises(RuntimeError, match="transform"):
            loop.run()

        assert source.reads == 0
        assert not source.is_open

    def test_release_order(self, short_config):
        """The source should be closed before the transform."""
        loop_ref = []
        source = _OrderRecordingSource(np.zeros((10, 1024)), short_config, loop_ref)
        loop = CaptureLoop(short_config, source, RecordingRenderer(short_config))
        loop_ref.append(loop)

        loop.run()

        assert source.transformer_alive_at_close is True
        assert loop.transformer is None

    def test_interrupt_still_releases(self, short_config):
        """KeyboardInterrupt mid-run should drain before propagating."""
        source = ArraySource(np.zeros((10, 1024)), short_config)
        loop = CaptureLoop(short_config, source, _InterruptingRenderer(short_config))

        with pytest.raises(KeyboardInterrupt):
            loop.run()

        assert source.closed
        assert loop.transformer is None

    def test_transform_released_once(self, short_config, monkeypatch):
        closes = []
        original = SpectralTransformer.close

        def _counting_close(self):
            closes.append(self)
            original(self)

        monkeypatch.setattr(SpectralTransformer, "close", _counting_close)
        source = ArraySource(np.zeros((10, 1024)), short_config, fail_on=5)

        CaptureLoop(short_config, source, RecordingRenderer(short_config)).run()

        assert len(closes) == 1

    def test_run_requires_source_and_renderer(self, config):
        with pytest.raises(ValueError):
            CaptureLoop(config).run()

    def test_frame_state_persists_across_cycles(self, short_config, make_tone):
        """The decayed amplitude carries from one cycle into the next."""
        windows = np.stack([make_tone(127), np.zeros(1024, dtype=np.float32)])
        loop = CaptureLoop(
            short_config,
            ArraySource(windows, short_config),
            RecordingRenderer(short_config),
        )

        loop.run(n_cycles=2)

        assert loop.frame[2] == pytest.approx(np.log10(256.0 ** 2) * 0.9, rel=1e-4)

    def test_reset(self, config, loud_window):
        loop = CaptureLoop(config)
        loop.step(loud_window)
        loop.reset()

        assert np.all(loop.frame.amplitudes == 0.0)

    def test_close_releases_standalone_transformer(self, config, silent_window):
        """close() should release the transform prepared by step()."""
        loop = CaptureLoop(config)
        loop.step(silent_window)
        transformer = loop.transformer

        loop.close()
        loop.close()

        assert transformer.closed
        assert loop.transformer is None

    def test_context_manager_closes(self, config, silent_window):
        with CaptureLoop(config) as loop:
            loop.step(silent_window)
            transformer = loop.transformer

        assert transformer.closed
