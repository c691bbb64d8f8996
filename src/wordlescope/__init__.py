"""Terminal audio spectrum grid."""

from wordlescope.config import VisualizerConfig
from wordlescope.core.sampler import BinSampler, FrequencyBinMap
from wordlescope.core.smoother import AmplitudeBrackets, FrameState, SmoothingEngine
from wordlescope.core.transform import SpectralTransformer
from wordlescope.pipeline import CaptureLoop, LoopState, RunResult

__version__ = "0.1.0"
__all__ = [
    "VisualizerConfig",
    "SpectralTransformer",
    "FrequencyBinMap",
    "BinSampler",
    "AmplitudeBrackets",
    "FrameState",
    "SmoothingEngine",
    "CaptureLoop",
    "LoopState",
    "RunResult",
]
