"""
Scene Presets
=============

Initial-condition generators for the toroidal [-1, 1]^2 domain.

Presets:
- RANDOM_CLOUD: Uniform cloud of pastel bodies with random drift
- BINARY_STAR: Two rotating disks at x = -0.5 and x = +0.5
- GALAXY_COLLISION: Two rotating disks at x = -0.4 and x = +0.4 drifting
  toward each other

Tangential speed grows linearly with radius in both disk presets. This is a
scripted starting condition, not a derived orbital solution.
"""

from enum import Enum
from typing import Optional

import numpy as np

from .bodies import BYTES_PER_BODY, BodyStore
from .errors import ConfigurationError, ResourceExhaustionError


class Preset(Enum):
    RANDOM_CLOUD = "random-cloud"
    BINARY_STAR = "binary-star"
    GALAXY_COLLISION = "galaxy-collision"

    @classmethod
    def parse(cls, value) -> "Preset":
        """Accept a Preset, its value ("binary-star") or its name ("BINARY_STAR")."""
        if isinstance(value, cls):
            return value
        key = str(value).strip()
        for preset in cls:
            if key.lower() in (preset.value, preset.name.lower()):
                return preset
        raise ConfigurationError(
            f"Unknown preset '{value}'. Available: {', '.join(p.value for p in cls)}"
        )


PRESET_LABELS = {
    Preset.RANDOM_CLOUD: "Random Cloud",
    Preset.BINARY_STAR: "Binary Star",
    Preset.GALAXY_COLLISION: "Galaxy Collision",
}

FIXED_MASS = 0.01

BINARY = {
    "centers": (-0.5, 0.5),
    "max_radius": 0.3,
    "spin": 2.0,
    "colors": ((1.0, 0.3, 0.3), (0.3, 0.3, 1.0)),
}

GALAXY = {
    "centers": (-0.4, 0.4),
    "max_radius": 0.4,
    "drift": (0.1, -0.1),
    "colors": ((1.0, 0.5, 0.0), (0.0, 0.5, 1.0)),
}


def initialize(preset, count: int, seed: Optional[int] = None,
               rng: Optional[np.random.Generator] = None) -> BodyStore:
    """Build a fresh BodyStore of exactly ``count`` bodies for ``preset``.

    Args:
        preset: Preset member or its string value
        count: Number of bodies (>= 0)
        seed: Seed for a new numpy Generator (ignored when rng is given)
        rng: Injected random source

    Returns:
        BodyStore with float32 arrays

    Raises:
        ResourceExhaustionError: the host cannot hold ``count`` bodies
    """
    preset = Preset.parse(preset)
    if count < 0:
        raise ConfigurationError(f"Body count must be >= 0, got {count}")
    if rng is None:
        rng = np.random.default_rng(seed)

    store = BodyStore.allocate(count)
    try:
        if preset == Preset.RANDOM_CLOUD:
            _random_cloud(store, rng)
        elif preset == Preset.BINARY_STAR:
            _binary_star(store, rng)
        else:
            _galaxy_collision(store, rng)
    except MemoryError as e:
        # float64 scratch arrays are larger than the store itself
        raise ResourceExhaustionError(
            f"Cannot generate {count:,} bodies for {preset.value}",
            required_bytes=count * BYTES_PER_BODY,
        ) from e

    return store


def binary_split(count: int) -> tuple:
    """Sizes of the two binary-star halves. The odd body joins the second half."""
    first = count // 2
    return first, count - first


def _random_cloud(store: BodyStore, rng: np.random.Generator):
    n = store.num_bodies
    store.positions[:] = rng.uniform(-0.8, 0.8, (n, 2))
    store.velocities[:] = rng.uniform(-0.1, 0.1, (n, 2))
    store.masses[:] = rng.uniform(0.005, 0.02, n)

    # Pastel palette
    store.colors[:, 0] = rng.uniform(0.5, 1.0, n)
    store.colors[:, 1] = rng.uniform(0.3, 0.7, n)
    store.colors[:, 2] = rng.uniform(0.3, 1.0, n)


def _spinning_disk(n: int, rng: np.random.Generator, max_radius: float):
    """Uniform angle and radius samples, returned as (radius, cos, sin)."""
    angle = rng.uniform(0.0, 2.0 * np.pi, n)
    radius = rng.uniform(0.0, max_radius, n)
    cos_a, sin_a = np.cos(angle), np.sin(angle)
    return radius, cos_a, sin_a


def _binary_star(store: BodyStore, rng: np.random.Generator):
    start = 0
    for half, size in enumerate(binary_split(store.num_bodies)):
        end = start + size
        radius, cos_a, sin_a = _spinning_disk(size, rng, BINARY["max_radius"])

        store.positions[start:end, 0] = cos_a * radius + BINARY["centers"][half]
        store.positions[start:end, 1] = sin_a * radius
        store.velocities[start:end, 0] = -sin_a * radius * BINARY["spin"]
        store.velocities[start:end, 1] = cos_a * radius * BINARY["spin"]
        store.colors[start:end] = BINARY["colors"][half]
        start = end

    store.masses[:] = FIXED_MASS


def _galaxy_collision(store: BodyStore, rng: np.random.Generator):
    n = store.num_bodies
    radius, cos_a, sin_a = _spinning_disk(n, rng, GALAXY["max_radius"])
    galaxy = rng.integers(0, 2, n)

    x = cos_a * radius
    y = sin_a * radius
    centers = np.asarray(GALAXY["centers"])[galaxy]
    drift = np.asarray(GALAXY["drift"])[galaxy]

    store.positions[:, 0] = x + centers
    store.positions[:, 1] = y
    store.velocities[:, 0] = -y * radius + drift
    store.velocities[:, 1] = x * radius
    store.colors[:] = np.asarray(GALAXY["colors"])[galaxy]
    store.masses[:] = FIXED_MASS
