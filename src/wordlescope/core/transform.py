"""
Real-to-complex spectral transform.

Wraps scipy's FFT behind fixed, preallocated working buffers so each
window is transformed without reallocating or re-planning.
"""

import logging

import numpy as np
from scipy import fft as sp_fft

logger = logging.getLogger(__name__)


class SpectralTransformer:
    """
    One-shot real DFT of fixed-length sample windows.

    The returned spectrum is the transformer's own output buffer: it is
    overwritten by the next call, so callers must consume it immediately.
    """

    def __init__(self, window_size: int = 1024):
        """
        Initialize buffers and warm the FFT plan cache.

        Args:
            window_size: Number of real samples per window (N).

        Raises:
            RuntimeError: If the transform resources cannot be prepared.
        """
        if window_size < 2:
            raise ValueError(f"window_size must be >= 2, got {window_size}")

        self.window_size = window_size
        self.spectrum_size = window_size // 2 + 1

        try:
            self._input = np.zeros(window_size, dtype=np.float64)
            self._output = np.zeros(self.spectrum_size, dtype=np.complex128)
            # scipy caches the plan per size, so the first call pays for it
            self._output[:] = sp_fft.rfft(self._input)
        except (MemoryError, ValueError, TypeError) as e:
            raise RuntimeError(f"transform initialization failed: {e}") from e

        self._closed = False
        logger.debug("Prepared %d-point real transform", window_size)

    @property
    def closed(self) -> bool:
        return self._closed

    def transform(self, samples: np.ndarray) -> np.ndarray:
        """
        Transform one window.

        Args:
            samples: Exactly window_size real samples (any float dtype).

        Returns:
            Complex spectrum of length window_size // 2 + 1.
        """
        if self._closed:
            raise RuntimeError("SpectralTransformer has been closed")

        samples = np.asarray(samples)
        if samples.ndim != 1 or samples.shape[0] != self.window_size:
            raise ValueError(
                f"Expected a window of {self.window_size} samples, got shape {samples.shape}"
            )

        # Cast into the float64 working buffer (mono only, no interleaving)
        self._input[:] = samples
        self._output[:] = sp_fft.rfft(self._input)
        return self._output

    def close(self):
        """Release the working buffers. Safe to call more than once."""
        if self._closed:
            return
        self._input = None
        self._output = None
        self._closed = True
        logger.debug("Released %d-point transform buffers", self.window_size)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
