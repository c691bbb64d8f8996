"""
Audio sources.

Every source hands out exactly one full window of mono float32 samples
per read() or raises; partial windows are never returned.
"""

import abc
import logging
import time
from pathlib import Path
from typing import Any, Optional, Union

import librosa
import numpy as np

from wordlescope.config import VisualizerConfig

logger = logging.getLogger(__name__)


class AudioSourceError(RuntimeError):
    """Base class for audio source failures."""


class SourceOpenError(AudioSourceError):
    """The source could not be acquired."""


class SourceReadError(AudioSourceError):
    """A window could not be read from an open source."""


class SourceExhausted(SourceReadError):
    """A finite source has no full window left."""


def _load_sounddevice():
    # PortAudio is loaded on import, so defer it until a device is needed
    import sounddevice

    return sounddevice


def parse_device(device: Union[str, int, None]) -> Union[str, int, None]:
    """Numeric strings select a device by index, anything else by name."""
    if isinstance(device, str) and device.strip().isdigit():
        return int(device)
    return device


def list_devices() -> list[dict[str, Any]]:
    """
    Input-capable audio devices.

    Returns:
        One dict per device with index, name, channels and default rate.
    """
    sd = _load_sounddevice()
    devices = []
    for index, info in enumerate(sd.query_devices()):
        if info["max_input_channels"] < 1:
            continue
        devices.append({
            "index": index,
            "name": info["name"],
            "channels": info["max_input_channels"],
            "default_samplerate": info["default_samplerate"],
        })
    return devices


class AudioSource(abc.ABC):
    """Streaming source of fixed-size mono windows."""

    def __init__(self, config: Optional[VisualizerConfig] = None):
        self.cfg = config or VisualizerConfig()
        self.window_size = self.cfg.window_size
        self.reads = 0
        self._opened = False
        self._closed = False

    @property
    def is_open(self) -> bool:
        return self._opened and not self._closed

    @property
    def closed(self) -> bool:
        return self._closed

    def open(self):
        """Acquire the underlying resource."""
        if self._closed:
            raise SourceOpenError(f"{self.describe()} has already been closed")
        if not self._opened:
            self._open()
            self._opened = True
            logger.info("Opened %s", self.describe())

    def read(self) -> np.ndarray:
        """
        Block until one full window is available.

        Returns:
            float32 array of exactly window_size samples.
        """
        if not self.is_open:
            raise SourceReadError(f"{self.describe()} is not open")

        window = self._read()
        self.reads += 1
        return window

    def close(self):
        """Release the resource. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        if self._opened:
            self._close()
            logger.info("Closed %s after %d reads", self.describe(), self.reads)

    def describe(self) -> str:
        return type(self).__name__

    @abc.abstractmethod
    def _open(self):
        pass

    @abc.abstractmethod
    def _read(self) -> np.ndarray:
        pass

    def _close(self):
        pass

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class DeviceSource(AudioSource):
    """Live capture from an input device through a blocking PortAudio stream."""

    def __init__(
        self,
        device: Union[str, int, None],
        config: Optional[VisualizerConfig] = None,
    ):
        """
        Args:
            device: Device name (substring) or index, as sounddevice accepts.
                None selects the system default input.
            config: Sample rate and window size to capture with.
        """
        super().__init__(config)
        self.device = parse_device(device)
        self.stream = None
        self.overflows = 0

    def describe(self) -> str:
        name = "default input" if self.device is None else repr(self.device)
        return f"audio device {name}"

    def _open(self):
        sd = _load_sounddevice()
        try:
            self.stream = sd.InputStream(
                device=self.device,
                channels=1,
                samplerate=self.cfg.sample_rate,
                blocksize=self.window_size,
                dtype="float32",
            )
            self.stream.start()
        except (sd.PortAudioError, ValueError) as e:
            if self.stream is not None:
                self.stream.close()
                self.stream = None
            raise SourceOpenError(f"Could not open {self.describe()}: {e}") from e

    def _read(self) -> np.ndarray:
        sd = _load_sounddevice()
        try:
            data, overflowed = self.stream.read(self.window_size)
        except sd.PortAudioError as e:
            raise SourceReadError(f"Read from {self.describe()} failed: {e}") from e

        if overflowed:
            self.overflows += 1
            logger.warning("Input overflow on %s (read %d)", self.describe(), self.reads + 1)

        window = np.asarray(data, dtype=np.float32).reshape(-1)
        if window.shape[0] != self.window_size:
            raise SourceReadError(
                f"Short read from {self.describe()}: "
                f"{window.shape[0]} of {self.window_size} samples"
            )
        return window

    def _close(self):
        if self.stream is None:
            return
        try:
            self.stream.stop()
        finally:
            self.stream.close()
            self.stream = None


class ArraySource(AudioSource):
    """Serves windows from samples already in memory."""

    def __init__(
        self,
        samples: np.ndarray,
        config: Optional[VisualizerConfig] = None,
        fail_on: int | None = None,
    ):
        """
        Args:
            samples: 1-D signal (cut into consecutive windows, trailing
                partial window dropped) or 2-D (n_windows, window_size).
            config: Window size to serve.
            fail_on: 1-based read number that raises SourceReadError.
        """
        super().__init__(config)
        samples = np.asarray(samples, dtype=np.float32)

        if samples.ndim == 1:
            n_windows = len(samples) // self.window_size
            samples = samples[: n_windows * self.window_size].reshape(
                n_windows, self.window_size
            )
        elif samples.ndim != 2 or samples.shape[1] != self.window_size:
            raise ValueError(
                f"Expected (n_windows, {self.window_size}) samples, got shape {samples.shape}"
            )

        self.windows = samples
        self.fail_on = fail_on
        self._position = 0

    @property
    def n_windows(self) -> int:
        return self.windows.shape[0]

    def describe(self) -> str:
        return f"in-memory source ({self.n_windows} windows)"

    def _open(self):
        self._position = 0

    def _read(self) -> np.ndarray:
        if self.fail_on is not None and self.reads + 1 == self.fail_on:
            raise SourceReadError(f"Simulated read failure on read {self.fail_on}")
        if self._position >= self.n_windows:
            raise SourceExhausted(f"{self.describe()} exhausted")

        window = self.windows[self._position].copy()
        self._position += 1
        return window


class FileSource(ArraySource):
    """Decodes an audio file up front and serves it window by window."""

    def __init__(
        self,
        path: Union[str, Path],
        config: Optional[VisualizerConfig] = None,
        realtime: bool = False,
    ):
        """
        Args:
            path: Audio file (wav, flac, mp3, ...).
            config: Sample rate to resample to, and window size.
            realtime: Pace reads at the window duration, like a live device.
        """
        cfg = config or VisualizerConfig()
        # Windows are decoded on open()
        super().__init__(np.zeros((0, cfg.window_size), dtype=np.float32), cfg)
        self.path = Path(path)
        self.realtime = realtime
        self._next_deadline = None

    def describe(self) -> str:
        return f"audio file {self.path}"

    def _open(self):
        if not self.path.exists():
            raise SourceOpenError(f"Audio file not found: {self.path}")

        try:
            y, _ = librosa.load(self.path, sr=self.cfg.sample_rate, mono=True)
        except Exception as e:
            raise SourceOpenError(f"Could not decode {self.path}: {e}") from e

        n_windows = len(y) // self.window_size
        self.windows = np.asarray(
            y[: n_windows * self.window_size], dtype=np.float32
        ).reshape(n_windows, self.window_size)
        self._position = 0
        self._next_deadline = None
        logger.info(
            "Decoded %s: %d windows (%.2fs)",
            self.path,
            n_windows,
            len(y) / self.cfg.sample_rate,
        )

    def _read(self) -> np.ndarray:
        if self.realtime:
            now = time.monotonic()
            if self._next_deadline is None:
                self._next_deadline = now
            elif now < self._next_deadline:
                time.sleep(self._next_deadline - now)
            self._next_deadline += self.cfg.window_duration

        return super()._read()

    def _close(self):
        self.windows = np.zeros((0, self.window_size), dtype=np.float32)
