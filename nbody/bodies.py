"""
Body Store
==========

Structure-of-arrays storage for the simulated point masses. Every array is
contiguous float32 so the kernels (numba CPU or CUDA) can consume it
without conversion:

- positions:  (n, 2)  normalized toroidal domain [-1, 1]
- velocities: (n, 2)
- masses:     (n,)    strictly positive
- colors:     (n, 3)  linear RGB, unclamped
"""

import numpy as np

from .errors import ConfigurationError, ResourceExhaustionError


# Packed record layout (32 bytes, no padding) for transfer/inspection
BODY_DTYPE = np.dtype([
    ("position", np.float32, (2,)),
    ("velocity", np.float32, (2,)),
    ("mass", np.float32),
    ("color", np.float32, (3,)),
])

BYTES_PER_BODY = BODY_DTYPE.itemsize


class BodyStore:
    """Exactly ``num_bodies`` bodies. The count never changes after creation."""

    def __init__(self, positions: np.ndarray, velocities: np.ndarray,
                 masses: np.ndarray, colors: np.ndarray):
        self.positions = _as_f32(positions, "positions", 2)
        n = len(self.positions)
        self.velocities = _as_f32(velocities, "velocities", 2)
        self.masses = np.ascontiguousarray(masses, dtype=np.float32).reshape(-1)
        self.colors = _as_f32(colors, "colors", 3)

        for name, arr in (("velocities", self.velocities),
                          ("masses", self.masses),
                          ("colors", self.colors)):
            if len(arr) != n:
                raise ConfigurationError(
                    f"{name} has {len(arr)} entries, expected {n}"
                )

        if n and not np.all(self.masses > 0.0):
            raise ConfigurationError("Every body must have a mass > 0")

    @classmethod
    def allocate(cls, num_bodies: int) -> "BodyStore":
        """Zero-filled store (unit masses) of the given size."""
        if num_bodies < 0:
            raise ConfigurationError(f"Body count must be >= 0, got {num_bodies}")
        try:
            return cls(
                np.zeros((num_bodies, 2), dtype=np.float32),
                np.zeros((num_bodies, 2), dtype=np.float32),
                np.ones(num_bodies, dtype=np.float32),
                np.zeros((num_bodies, 3), dtype=np.float32),
            )
        except MemoryError as e:
            raise ResourceExhaustionError(
                f"Cannot allocate {num_bodies:,} bodies",
                required_bytes=num_bodies * BYTES_PER_BODY,
            ) from e

    @property
    def num_bodies(self) -> int:
        return len(self.positions)

    def __len__(self) -> int:
        return self.num_bodies

    @property
    def nbytes(self) -> int:
        return (self.positions.nbytes + self.velocities.nbytes
                + self.masses.nbytes + self.colors.nbytes)

    def packed(self) -> np.ndarray:
        """Return the store as a packed record array (BODY_DTYPE)."""
        out = np.empty(self.num_bodies, dtype=BODY_DTYPE)
        out["position"] = self.positions
        out["velocity"] = self.velocities
        out["mass"] = self.masses
        out["color"] = self.colors
        return out

    def copy(self) -> "BodyStore":
        return BodyStore(self.positions.copy(), self.velocities.copy(),
                         self.masses.copy(), self.colors.copy())

    # ------------------------------------------------------------------
    # Diagnostics (float64 accumulation)
    # ------------------------------------------------------------------

    def total_momentum(self) -> np.ndarray:
        m = self.masses.astype(np.float64)
        return (self.velocities.astype(np.float64) * m[:, None]).sum(axis=0)

    def kinetic_energy(self) -> float:
        v = self.velocities.astype(np.float64)
        return float(0.5 * np.sum(self.masses * np.sum(v * v, axis=1)))

    def center_of_mass(self) -> np.ndarray:
        if self.num_bodies == 0:
            raise ConfigurationError("Center of mass is undefined for an empty store")
        m = self.masses.astype(np.float64)
        return (self.positions.astype(np.float64) * m[:, None]).sum(axis=0) / m.sum()


def _as_f32(arr: np.ndarray, name: str, width: int) -> np.ndarray:
    out = np.ascontiguousarray(arr, dtype=np.float32)
    if out.size == 0:
        return out.reshape(0, width)
    if out.ndim != 2 or out.shape[1] != width:
        raise ConfigurationError(f"{name} must have shape (n, {width}), got {out.shape}")
    return out
