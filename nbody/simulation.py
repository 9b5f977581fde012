"""
2D brute-force N-body simulation context.

Owns one Body Store, one Accumulation Image and one compute pipeline, and
threads them through every frame. Several contexts can coexist; nothing is
kept in module globals.

Frame order (see pipeline.py):
    FADE -> [FORCES -> INTEGRATE, unless paused] -> SPLAT

Changing the body count or preset replaces the whole store and is only
done between frames via ``reset()``.
"""

from typing import Optional

import numpy as np

from config import nbody as config
from .bodies import BodyStore
from .errors import ConfigurationError
from .gpu_backend import Backend, create_pipeline, get_backend, resolve_backend
from .image import AccumulationImage
from .pipeline import FrameSettings, Pipeline
from .scenes import PRESET_LABELS, Preset, initialize


class NBodySimulation:
    """
    Gravitational N-body simulation rendered into a fading HDR image.

    Automatically uses the best available backend:
    - CUDA (NVIDIA GPUs) - device-resident kernels
    - CPU (fallback) - Numba parallel kernels
    """

    def __init__(self, num_bodies: Optional[int] = None, preset=None,
                 seed: Optional[int] = None, width: Optional[int] = None,
                 height: Optional[int] = None, backend: Optional[Backend] = None,
                 pipeline: Optional[Pipeline] = None):
        nbody_cfg = config.NBODY
        image_cfg = config.IMAGE

        width = int(width if width is not None else image_cfg["width"])
        height = int(height if height is not None else image_cfg["height"])

        self.settings = FrameSettings.from_config(height if height > 0 else None).validate()
        self.trails = bool(nbody_cfg["trails"])
        self.paused = False
        self.exposure = float(image_cfg["exposure"])

        self.preset = Preset.parse(preset if preset is not None else nbody_cfg["preset"])
        self.seed = seed if seed is not None else nbody_cfg["seed"]
        count = int(num_bodies if num_bodies is not None else nbody_cfg["count"])
        if count < 0:
            raise ConfigurationError(f"Body count must be >= 0, got {count}")

        # Image is created once and lives as long as the context
        self.image = AccumulationImage(width, height, background=self.settings.background)

        self.bodies = initialize(self.preset, count, seed=self.seed)
        self.frame_count = 0

        # Backend re-resolved on reset; None keeps an injected pipeline for good
        self._backend = None
        if pipeline is None:
            self._backend = backend if backend is not None else get_backend()[0]
            pipeline = create_pipeline(self._backend, count)
            if pipeline.name != resolve_backend(self._backend, count).value:
                # CUDA failed to start; do not retry it on every reset
                self._backend = Backend.CPU
        self._pipeline = pipeline
        self._pipeline.bind(self.bodies, self.image)

        print(f"[NBody] Initialized {count:,} bodies ({PRESET_LABELS[self.preset]}) "
              f"on {self._pipeline.name}, image {self.image.width}x{self.image.height}")

    @property
    def num_bodies(self) -> int:
        return self.bodies.num_bodies

    @property
    def backend_name(self) -> str:
        return self._pipeline.name

    @property
    def preset_label(self) -> str:
        return PRESET_LABELS[self.preset]

    def reset(self, preset=None, seed: Optional[int] = None,
              num_bodies: Optional[int] = None) -> BodyStore:
        """Replace the Body Store with a fresh scene. Call only between frames."""
        if preset is not None:
            self.preset = Preset.parse(preset)
        if seed is not None:
            self.seed = seed
        count = self.num_bodies if num_bodies is None else int(num_bodies)

        store = initialize(self.preset, count, seed=self.seed)

        pipeline = self._pipeline
        if self._backend is not None and \
                resolve_backend(self._backend, count).value != pipeline.name:
            pipeline = create_pipeline(self._backend, count)
        pipeline.bind(store, self.image)
        self._pipeline = pipeline
        self.bodies = store

        print(f"[NBody] Reset: {PRESET_LABELS[self.preset]} with {count:,} bodies")
        return store

    def restore(self, store: BodyStore, pixels: Optional[np.ndarray] = None):
        """Continue from a saved Body Store and, optionally, saved image pixels."""
        if pixels is not None:
            if pixels.shape != self.image.shape:
                raise ConfigurationError(
                    f"Saved image has shape {pixels.shape}, expected {self.image.shape}"
                )
            self.image.pixels[:] = pixels
        self._pipeline.bind(store, self.image)
        self.bodies = store

    def step_and_render(self, delta_time: Optional[float] = None,
                        softening: Optional[float] = None,
                        particle_size: Optional[float] = None,
                        paused: Optional[bool] = None,
                        trails_enabled: Optional[bool] = None) -> AccumulationImage:
        """Execute exactly one frame and return the updated image.

        Arguments left as None use the context's configured values.
        """
        settings = self.settings.with_overrides(
            delta_time=delta_time,
            softening=softening,
            particle_size=particle_size,
        )
        paused = self.paused if paused is None else paused
        trails = self.trails if trails_enabled is None else trails_enabled

        self._pipeline.run_frame(settings, paused=paused, trails=trails)
        self.frame_count += 1
        return self.image

    def step(self, steps: int = 1, delta_time: Optional[float] = None,
             softening: Optional[float] = None):
        """Advance the physics only (force + integrate), no rendering."""
        settings = self.settings.with_overrides(delta_time=delta_time, softening=softening)
        for _ in range(steps):
            self._pipeline.forces(settings.delta_time, settings.softening, settings.damping)
            self._pipeline.integrate(settings.delta_time)
        self._pipeline.sync()

    def display_image(self, out: Optional[np.ndarray] = None) -> np.ndarray:
        """Current frame as uint8 RGBA."""
        return self.image.to_display(self.exposure, out=out)

    def toggle_pause(self) -> bool:
        self.paused = not self.paused
        return self.paused

    def toggle_trails(self) -> bool:
        self.trails = not self.trails
        return self.trails
