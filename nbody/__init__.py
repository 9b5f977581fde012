"""2D brute-force N-body gravity with splat rendering."""

from .bodies import BodyStore
from .errors import ConfigurationError, ResourceExhaustionError
from .image import AccumulationImage
from .pipeline import FrameSettings, Stage, step_and_render
from .scenes import Preset, initialize
from .simulation import NBodySimulation

__all__ = [
    "AccumulationImage",
    "BodyStore",
    "ConfigurationError",
    "FrameSettings",
    "NBodySimulation",
    "Preset",
    "ResourceExhaustionError",
    "Stage",
    "initialize",
    "step_and_render",
]
