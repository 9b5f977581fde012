"""
Accumulation Image
==================

Fixed-resolution HDR RGBA buffer that the fade and splat stages mutate in
place every frame. Stored as float32 (height, width, 4); row 0 maps to
y = -1 in simulation space.
"""

import numpy as np
from numba import njit, prange

from .errors import ConfigurationError, ResourceExhaustionError


class AccumulationImage:
    """HDR pixel grid owned by a single simulation context."""

    def __init__(self, width: int, height: int, background=(0.0, 0.0, 0.05, 1.0)):
        if width <= 0 or height <= 0:
            raise ConfigurationError(f"Image size must be positive, got {width}x{height}")

        self.width = int(width)
        self.height = int(height)
        self.background = np.asarray(background, dtype=np.float32).reshape(4)

        try:
            self.pixels = np.empty((self.height, self.width, 4), dtype=np.float32)
        except MemoryError as e:
            raise ResourceExhaustionError(
                f"Cannot allocate {self.width}x{self.height} image",
                required_bytes=self.width * self.height * 16,
            ) from e
        self.clear()

    @property
    def aspect(self) -> float:
        return self.width / self.height

    @property
    def shape(self) -> tuple:
        return self.pixels.shape

    @property
    def nbytes(self) -> int:
        return self.pixels.nbytes

    def clear(self):
        """Reset every pixel to the background color."""
        self.pixels[:] = self.background

    def to_display(self, exposure: float = 1.0, out: np.ndarray = None) -> np.ndarray:
        """Clamp to [0, 1] and quantize to uint8 RGBA for presentation."""
        if out is None:
            out = np.empty((self.height, self.width, 4), dtype=np.uint8)
        _to_display_kernel(self.pixels, out, exposure)
        return out


@njit(parallel=True, cache=True)
def _to_display_kernel(pixels: np.ndarray, out: np.ndarray, exposure: float):
    height, width = pixels.shape[0], pixels.shape[1]
    for y in prange(height):
        for x in range(width):
            for c in range(4):
                v = pixels[y, x, c] * exposure
                # NaN fails both comparisons and lands on 0
                if v >= 1.0:
                    out[y, x, c] = 255
                elif v > 0.0:
                    out[y, x, c] = int(v * 255.0 + 0.5)
                else:
                    out[y, x, c] = 0
