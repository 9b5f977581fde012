"""
CPU Compute Kernels
===================

Numba-parallel kernels for one simulation frame. Each kernel spawns one
parallel unit per body (forces, integration) or per image row (fade,
splat) via ``prange``; units never write each other's data, so no locking
is required. Returning from a kernel is the barrier between stages.

Hot paths:
- compute_forces: O(n²) direct summation
- render_bodies:  O(width * height * n) splatting

Numeric notes:
- Storage is float32; per-unit accumulators are float64 registers.
- Gravity is softened, F = m_i m_j r_hat / (r² + softening), which keeps
  close encounters finite. It is not exact Newtonian gravity at short
  range.
- fastmath is limited to flags that keep NaN/Inf semantics so the
  isfinite guards are not optimized away.
"""

import math
import numpy as np
from numba import njit, prange


# Fast-math flags that do not assume finite values
SAFE_FASTMATH = {"contract", "arcp", "nsz"}

STAR_THRESHOLD = 0.998
SPLAT_GAIN = 5.0


# ============================================================================
# SHARED HELPERS
# ============================================================================

@njit(cache=True)
def smoothstep(edge0: float, edge1: float, x: float) -> float:
    """Hermite interpolation, valid for edge0 > edge1 as well."""
    t = (x - edge0) / (edge1 - edge0)
    if t < 0.0:
        t = 0.0
    elif t > 1.0:
        t = 1.0
    return t * t * (3.0 - 2.0 * t)


@njit(cache=True)
def wrap_coordinate(v: float) -> float:
    """Map a coordinate back into [-1, 1] on the torus.

    Values inside the closed interval are returned untouched, so +1.0 and
    -1.0 do not wrap. Any excursion is folded back in a single step.
    """
    if v > 1.0 or v < -1.0:
        if not math.isfinite(v):
            return v
        return (v + 1.0) % 2.0 - 1.0
    return v


@njit(cache=True)
def star_hash(x: int, y: int) -> int:
    """32-bit spatial hash of integer pixel coordinates."""
    hx = (np.int64(x) * 73856093) & 0xFFFFFFFF
    hy = (np.int64(y) * 19349663) & 0xFFFFFFFF
    return hx ^ hy


@njit(cache=True)
def star_value(x: int, y: int) -> float:
    """Pseudo-random value in [0, 1) that depends only on (x, y)."""
    return (star_hash(x, y) % 10000) / 10000.0


@njit(cache=True)
def net_force(i: int, positions: np.ndarray, masses: np.ndarray,
              num_bodies: int, softening: float) -> tuple:
    """Softened gravitational force on body i from every other body."""
    px = positions[i, 0]
    py = positions[i, 1]
    mi = masses[i]
    fx = 0.0
    fy = 0.0

    for j in range(num_bodies):
        if j == i:
            continue

        dx = positions[j, 0] - px
        dy = positions[j, 1] - py
        dist_sq = dx * dx + dy * dy

        # Coincident (or NaN) separation has no direction
        if not dist_sq > 0.0:
            continue

        inv_dist = 1.0 / math.sqrt(dist_sq)
        f = mi * masses[j] / (dist_sq + softening)
        cx = f * dx * inv_dist
        cy = f * dy * inv_dist

        if not (math.isfinite(cx) and math.isfinite(cy)):
            continue

        fx += cx
        fy += cy

    return fx, fy


# ============================================================================
# PHYSICS KERNELS
# ============================================================================

@njit(parallel=True, fastmath=SAFE_FASTMATH, cache=True)
def compute_forces(
    positions: np.ndarray,
    velocities: np.ndarray,
    masses: np.ndarray,
    num_bodies: int,
    dt: float,
    softening: float,
    damping: float,
):
    """Accumulate forces and update velocities in place (positions untouched)."""
    for i in prange(num_bodies):
        fx, fy = net_force(i, positions, masses, num_bodies, softening)

        mi = masses[i]
        vx = (velocities[i, 0] + fx / mi * dt) * damping
        vy = (velocities[i, 1] + fy / mi * dt) * damping

        # A poisoned update keeps last step's velocity
        if math.isfinite(vx) and math.isfinite(vy):
            velocities[i, 0] = vx
            velocities[i, 1] = vy


@njit(parallel=True, fastmath=SAFE_FASTMATH, cache=True)
def update_positions(
    positions: np.ndarray,
    velocities: np.ndarray,
    num_bodies: int,
    dt: float,
):
    """Advance positions by one step and wrap them onto the torus."""
    for i in prange(num_bodies):
        positions[i, 0] = wrap_coordinate(positions[i, 0] + velocities[i, 0] * dt)
        positions[i, 1] = wrap_coordinate(positions[i, 1] + velocities[i, 1] * dt)


# ============================================================================
# IMAGE KERNELS
# ============================================================================

@njit(parallel=True, fastmath=SAFE_FASTMATH, cache=True)
def fade_image(pixels: np.ndarray, background: np.ndarray, fade: float):
    """pixel = pixel * fade + background * (1 - fade)"""
    height, width = pixels.shape[0], pixels.shape[1]
    keep = 1.0 - fade

    for y in prange(height):
        for x in range(width):
            for c in range(4):
                v = pixels[y, x, c] * fade + background[c] * keep
                if not math.isfinite(v):
                    v = background[c]
                pixels[y, x, c] = v


@njit(parallel=True, cache=True)
def clear_image(pixels: np.ndarray, background: np.ndarray):
    """Set every pixel to the background color (trails disabled)."""
    height, width = pixels.shape[0], pixels.shape[1]
    for y in prange(height):
        for x in range(width):
            for c in range(4):
                pixels[y, x, c] = background[c]


@njit(parallel=True, fastmath=SAFE_FASTMATH, cache=True)
def render_bodies(
    pixels: np.ndarray,
    positions: np.ndarray,
    masses: np.ndarray,
    colors: np.ndarray,
    num_bodies: int,
    particle_size: float,
    star_brightness: float,
):
    """Splat every body onto every pixel, then add the fixed starfield.

    Reads the already-faded pixel as its base and writes base plus new
    contributions. Bodies with non-finite state are dropped.
    """
    height, width = pixels.shape[0], pixels.shape[1]
    aspect = width / height

    # Per-body footprint radius (smoothstep reaches zero at 2 * size)
    reach = np.empty(num_bodies, dtype=np.float64)
    for i in range(num_bodies):
        reach[i] = 2.0 * particle_size * math.sqrt(masses[i])

    for y in prange(height):
        yi = np.int64(y)
        v = (yi + 0.5) / height * 2.0 - 1.0

        for x in range(width):
            u = ((x + 0.5) / width * 2.0 - 1.0) * aspect
            r = pixels[y, x, 0]
            g = pixels[y, x, 1]
            b = pixels[y, x, 2]

            for i in range(num_bodies):
                dx = positions[i, 0] * aspect - u
                dy = positions[i, 1] - v
                d_sq = dx * dx + dy * dy
                ri = reach[i]

                # Outside the footprint (also rejects NaN)
                if not d_sq < ri * ri:
                    continue

                s = smoothstep(ri, 0.0, math.sqrt(d_sq))
                k = s * s * masses[i] * SPLAT_GAIN
                cr = colors[i, 0] * k
                cg = colors[i, 1] * k
                cb = colors[i, 2] * k

                if not (math.isfinite(cr) and math.isfinite(cg) and math.isfinite(cb)):
                    continue

                r += cr
                g += cg
                b += cb

            if star_value(x, yi) > STAR_THRESHOLD:
                r += star_brightness
                g += star_brightness
                b += star_brightness

            pixels[y, x, 0] = r
            pixels[y, x, 1] = g
            pixels[y, x, 2] = b


@njit(parallel=True, cache=True)
def starfield_mask(width: int, height: int) -> np.ndarray:
    """Boolean (height, width) map of star pixels."""
    mask = np.zeros((height, width), dtype=np.bool_)
    for y in prange(height):
        yi = np.int64(y)
        for x in range(width):
            mask[y, x] = star_value(x, yi) > STAR_THRESHOLD
    return mask
