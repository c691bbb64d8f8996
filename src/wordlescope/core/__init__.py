"""Core signal processing modules."""

from wordlescope.core.sampler import BinSampler, FrequencyBinMap
from wordlescope.core.smoother import AmplitudeBrackets, FrameState, SmoothingEngine
from wordlescope.core.transform import SpectralTransformer

__all__ = [
    "SpectralTransformer",
    "FrequencyBinMap",
    "BinSampler",
    "AmplitudeBrackets",
    "FrameState",
    "SmoothingEngine",
]
