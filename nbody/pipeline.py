"""
Frame Pipeline
==============

Explicit per-frame stage sequence:

    FADE (or CLEAR) -> FORCES -> INTEGRATE -> SPLAT

FORCES and INTEGRATE are skipped while paused; the image keeps fading and
redrawing the frozen bodies. Each stage must be fully materialized before
the next one reads its output. A backend implements the individual stages
plus ``sync()``; ``Pipeline.run_frame`` owns the ordering.
"""

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List

import numpy as np

from config import nbody as config
from .bodies import BodyStore
from .errors import ConfigurationError
from .image import AccumulationImage
from . import kernels


class Stage(Enum):
    FADE = "fade"
    CLEAR = "clear"
    FORCES = "forces"
    INTEGRATE = "integrate"
    SPLAT = "splat"


@dataclass(frozen=True)
class FrameSettings:
    """Scalar inputs of one frame, validated before any kernel runs."""
    delta_time: float = 0.01
    softening: float = 0.001
    particle_size: float = 0.005
    damping: float = 0.9999
    fade: float = 0.95
    star_brightness: float = 0.05
    background: tuple = field(default=(0.0, 0.0, 0.05, 1.0))

    @classmethod
    def from_config(cls, image_height: int = None) -> "FrameSettings":
        """Settings from config/nbody.py.

        With ``image_height`` the configured particle size is rescaled from
        its reference resolution, so splats keep their size in pixels.
        """
        cfg = config.NBODY
        particle_size = float(cfg["particle_size"])
        if image_height:
            particle_size *= float(cfg["particle_size_resolution"]) / image_height
        return cls(
            delta_time=float(cfg["delta_time"]),
            softening=float(cfg["softening"]),
            particle_size=particle_size,
            damping=float(cfg["damping"]),
            fade=float(config.IMAGE["fade"]),
            star_brightness=float(cfg["star_brightness"]),
            background=tuple(config.COLORS["background"]),
        )

    def with_overrides(self, **overrides) -> "FrameSettings":
        """Copy with every non-None override applied, then validate."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes).validate()

    def validate(self) -> "FrameSettings":
        if not math.isfinite(self.delta_time):
            raise ConfigurationError(f"delta_time must be finite, got {self.delta_time}")
        if not (math.isfinite(self.softening) and self.softening > 0.0):
            raise ConfigurationError(f"softening must be > 0, got {self.softening}")
        if not (math.isfinite(self.particle_size) and self.particle_size > 0.0):
            raise ConfigurationError(f"particle_size must be > 0, got {self.particle_size}")
        if not 0.0 <= self.fade <= 1.0:
            raise ConfigurationError(f"fade must be within [0, 1], got {self.fade}")
        if not math.isfinite(self.damping):
            raise ConfigurationError(f"damping must be finite, got {self.damping}")
        if len(self.background) != 4:
            raise ConfigurationError("background must be an RGBA tuple")
        return self


def frame_stages(paused: bool, trails: bool) -> List[Stage]:
    """Ordered stages for one frame."""
    stages = [Stage.FADE if trails else Stage.CLEAR]
    if not paused:
        stages += [Stage.FORCES, Stage.INTEGRATE]
    stages.append(Stage.SPLAT)
    return stages


class Pipeline:
    """Base class binding a store and an image to a set of stage kernels."""

    name = "base"

    def __init__(self):
        self.store = None
        self.image = None

    def bind(self, store: BodyStore, image: AccumulationImage):
        """Attach the store/image the next frames operate on (between frames only)."""
        self.store = store
        self.image = image

    def run_frame(self, settings: FrameSettings, paused: bool = False,
                  trails: bool = True) -> List[Stage]:
        """Execute one frame and return the stages that ran, in order."""
        if self.store is None or self.image is None:
            raise RuntimeError("Pipeline has no bound store/image")
        settings.validate()

        stages = frame_stages(paused, trails)
        background = np.asarray(settings.background, dtype=np.float32)

        for stage in stages:
            if stage == Stage.FADE:
                self.fade(background, settings.fade)
            elif stage == Stage.CLEAR:
                self.clear(background)
            elif stage == Stage.FORCES:
                self.forces(settings.delta_time, settings.softening, settings.damping)
            elif stage == Stage.INTEGRATE:
                self.integrate(settings.delta_time)
            else:
                self.splat(settings.particle_size, settings.star_brightness)

        self.sync()
        return stages

    # Stage kernels, implemented by backends
    def fade(self, background: np.ndarray, fade: float):
        raise NotImplementedError

    def clear(self, background: np.ndarray):
        raise NotImplementedError

    def forces(self, dt: float, softening: float, damping: float):
        raise NotImplementedError

    def integrate(self, dt: float):
        raise NotImplementedError

    def splat(self, particle_size: float, star_brightness: float):
        raise NotImplementedError

    def sync(self):
        """Wait for in-flight work and make host copies current."""


class CPUPipeline(Pipeline):
    """Numba-parallel CPU backend operating directly on host arrays."""

    name = "cpu"

    _warmed_up = False

    def __init__(self, warmup: bool = True):
        super().__init__()
        if warmup and not CPUPipeline._warmed_up:
            self._warmup_numba()
            CPUPipeline._warmed_up = True

    def fade(self, background, fade):
        kernels.fade_image(self.image.pixels, background, fade)

    def clear(self, background):
        kernels.clear_image(self.image.pixels, background)

    def forces(self, dt, softening, damping):
        s = self.store
        kernels.compute_forces(s.positions, s.velocities, s.masses,
                               s.num_bodies, dt, softening, damping)

    def integrate(self, dt):
        s = self.store
        kernels.update_positions(s.positions, s.velocities, s.num_bodies, dt)

    def splat(self, particle_size, star_brightness):
        s = self.store
        kernels.render_bodies(self.image.pixels, s.positions, s.masses, s.colors,
                              s.num_bodies, particle_size, star_brightness)

    def _warmup_numba(self):
        """Pre-compile the kernels with tiny arrays."""
        n = 4
        pos = np.random.uniform(-0.5, 0.5, (n, 2)).astype(np.float32)
        vel = np.zeros((n, 2), dtype=np.float32)
        mass = np.full(n, 0.01, dtype=np.float32)
        colors = np.ones((n, 3), dtype=np.float32)
        pixels = np.zeros((8, 8, 4), dtype=np.float32)
        background = np.zeros(4, dtype=np.float32)

        kernels.fade_image(pixels, background, 0.95)
        kernels.clear_image(pixels, background)
        kernels.compute_forces(pos, vel, mass, n, 0.01, 0.001, 0.9999)
        kernels.update_positions(pos, vel, n, 0.01)
        kernels.render_bodies(pixels, pos, mass, colors, n, 0.005, 0.05)


def step_and_render(store: BodyStore, image: AccumulationImage,
                    delta_time: float, softening: float, particle_size: float,
                    paused: bool = False, trails_enabled: bool = True,
                    pipeline: Pipeline = None) -> AccumulationImage:
    """Run one frame's kernel sequence on ``store`` and ``image``.

    Uses a CPU pipeline unless one is supplied. Damping, fade factor,
    background and star brightness come from the configuration.
    """
    settings = FrameSettings.from_config(image.height).with_overrides(
        delta_time=delta_time,
        softening=softening,
        particle_size=particle_size,
        background=tuple(float(c) for c in image.background),
    )

    if pipeline is None:
        pipeline = CPUPipeline()
    pipeline.bind(store, image)
    pipeline.run_frame(settings, paused=paused, trails=trails_enabled)
    return image
