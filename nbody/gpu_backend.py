"""
GPU Backend Detection and Selection
====================================

Automatically detects and uses the best available compute backend:
1. CUDA (NVIDIA GPUs) - via Numba CUDA
2. CPU (fallback) - via Numba parallel kernels

Both backends run the same brute-force stages (one thread per body for
physics, one thread per pixel for the image). The CUDA pipeline keeps the
store and image resident on the device and copies them back in ``sync()``
so the host always presents a complete frame.
"""

import platform
from enum import Enum
from typing import Optional, Tuple

from config import nbody as config
from .bodies import BYTES_PER_BODY, BodyStore
from .errors import ResourceExhaustionError
from .image import AccumulationImage
from .pipeline import CPUPipeline, Pipeline


class Backend(Enum):
    CUDA = "cuda"
    CPU = "cpu"


def detect_backend() -> Tuple[Backend, str]:
    """Detect the best available compute backend."""
    cuda_available, cuda_info = _check_cuda()
    if cuda_available:
        return Backend.CUDA, cuda_info
    return Backend.CPU, _get_cpu_info()


def _check_cuda() -> Tuple[bool, str]:
    """Check if CUDA is available via Numba."""
    try:
        from numba import cuda
        if cuda.is_available():
            device = cuda.get_current_device()
            name = device.name.decode() if isinstance(device.name, bytes) else device.name
            cc = device.compute_capability
            return True, f"{name} (CC {cc[0]}.{cc[1]})"
    except Exception as e:
        print(f"[GPU] CUDA probe failed: {e}")
    return False, ""


def _get_cpu_info() -> str:
    """Get CPU info for fallback."""
    import multiprocessing
    cores = multiprocessing.cpu_count()
    return f"{platform.processor() or 'CPU'} ({cores} cores)"


# Global backend state
_BACKEND: Optional[Backend] = None
_BACKEND_INFO: str = ""


def get_backend() -> Tuple[Backend, str]:
    """Get the current backend (cached)."""
    global _BACKEND, _BACKEND_INFO
    if _BACKEND is None:
        _BACKEND, _BACKEND_INFO = detect_backend()
        print(f"[GPU] Using backend: {_BACKEND.value} - {_BACKEND_INFO}")
    return _BACKEND, _BACKEND_INFO


def force_backend(backend: Optional[Backend]):
    """Force a specific backend (None re-enables detection)."""
    global _BACKEND, _BACKEND_INFO
    _BACKEND = backend
    _BACKEND_INFO = f"Forced: {backend.value}" if backend else ""


def required_bytes(num_bodies: int, width: int, height: int) -> int:
    """Device memory needed for one store and one image."""
    return num_bodies * BYTES_PER_BODY + width * height * 4 * 4


# =============================================================================
# CUDA IMPLEMENTATION (NVIDIA)
# =============================================================================

def _init_cuda_kernels():
    """Initialize CUDA kernels for the frame stages."""
    from numba import cuda, int64
    import math

    STAR_THRESHOLD = 0.998
    SPLAT_GAIN = 5.0

    @cuda.jit(device=True)
    def wrap(v):
        if v > 1.0 or v < -1.0:
            if math.isinf(v) or math.isnan(v):
                return v
            return (v + 1.0) % 2.0 - 1.0
        return v

    @cuda.jit(device=True)
    def star_value(x, y):
        hx = (int64(x) * 73856093) & 0xFFFFFFFF
        hy = (int64(y) * 19349663) & 0xFFFFFFFF
        return ((hx ^ hy) % 10000) / 10000.0

    @cuda.jit
    def compute_forces_cuda(positions, velocities, masses, n, dt, softening, damping):
        """Brute-force O(n²) force accumulation, one thread per body."""
        i = cuda.grid(1)
        if i >= n:
            return

        px, py = positions[i, 0], positions[i, 1]
        mi = masses[i]
        fx, fy = 0.0, 0.0

        for j in range(n):
            if j == i:
                continue

            dx = positions[j, 0] - px
            dy = positions[j, 1] - py
            dist_sq = dx*dx + dy*dy
            if not dist_sq > 0.0:
                continue

            inv_dist = 1.0 / math.sqrt(dist_sq)
            f = mi * masses[j] / (dist_sq + softening)
            cx = f * dx * inv_dist
            cy = f * dy * inv_dist
            if math.isinf(cx) or math.isnan(cx) or math.isinf(cy) or math.isnan(cy):
                continue
            fx += cx
            fy += cy

        vx = (velocities[i, 0] + fx / mi * dt) * damping
        vy = (velocities[i, 1] + fy / mi * dt) * damping
        if not (math.isinf(vx) or math.isnan(vx) or math.isinf(vy) or math.isnan(vy)):
            velocities[i, 0] = vx
            velocities[i, 1] = vy

    @cuda.jit
    def update_positions_cuda(positions, velocities, n, dt):
        i = cuda.grid(1)
        if i >= n:
            return
        positions[i, 0] = wrap(positions[i, 0] + velocities[i, 0] * dt)
        positions[i, 1] = wrap(positions[i, 1] + velocities[i, 1] * dt)

    @cuda.jit
    def fade_cuda(pixels, background, fade):
        x, y = cuda.grid(2)
        if y >= pixels.shape[0] or x >= pixels.shape[1]:
            return
        for c in range(4):
            v = pixels[y, x, c] * fade + background[c] * (1.0 - fade)
            if math.isinf(v) or math.isnan(v):
                v = background[c]
            pixels[y, x, c] = v

    @cuda.jit
    def clear_cuda(pixels, background):
        x, y = cuda.grid(2)
        if y >= pixels.shape[0] or x >= pixels.shape[1]:
            return
        for c in range(4):
            pixels[y, x, c] = background[c]

    @cuda.jit
    def render_cuda(pixels, positions, masses, colors, n, particle_size, star_brightness):
        """One thread per pixel accumulating every body's splat."""
        x, y = cuda.grid(2)
        height, width = pixels.shape[0], pixels.shape[1]
        if y >= height or x >= width:
            return

        aspect = width / height
        u = ((x + 0.5) / width * 2.0 - 1.0) * aspect
        v = (y + 0.5) / height * 2.0 - 1.0
        r, g, b = pixels[y, x, 0], pixels[y, x, 1], pixels[y, x, 2]

        for i in range(n):
            reach = 2.0 * particle_size * math.sqrt(masses[i])
            dx = positions[i, 0] * aspect - u
            dy = positions[i, 1] - v
            d_sq = dx*dx + dy*dy
            if not d_sq < reach * reach:
                continue

            t = min(max((math.sqrt(d_sq) - reach) / (0.0 - reach), 0.0), 1.0)
            s = t * t * (3.0 - 2.0 * t)
            k = s * s * masses[i] * SPLAT_GAIN
            cr, cg, cb = colors[i, 0] * k, colors[i, 1] * k, colors[i, 2] * k
            if math.isnan(cr + cg + cb) or math.isinf(cr + cg + cb):
                continue
            r += cr
            g += cg
            b += cb

        if star_value(x, y) > STAR_THRESHOLD:
            r += star_brightness
            g += star_brightness
            b += star_brightness

        pixels[y, x, 0] = r
        pixels[y, x, 1] = g
        pixels[y, x, 2] = b

    return {
        'forces': compute_forces_cuda,
        'integrate': update_positions_cuda,
        'fade': fade_cuda,
        'clear': clear_cuda,
        'render': render_cuda,
    }


class CUDAPipeline(Pipeline):
    """CUDA-accelerated frame pipeline with device-resident store and image."""

    name = "cuda"

    def __init__(self):
        super().__init__()
        self.kernels = _init_cuda_kernels()

        self.threads_per_block = int(config.BACKEND["cuda_threads_per_body_block"])
        self.pixel_block = tuple(config.BACKEND["cuda_pixel_block"])

        self.d_positions = None
        self.d_velocities = None
        self.d_masses = None
        self.d_colors = None
        self.d_pixels = None
        self.blocks = 1
        self.pixel_grid = (1, 1)

    def bind(self, store: BodyStore, image: AccumulationImage):
        """Upload the store and image to the device."""
        from numba import cuda

        needed = required_bytes(store.num_bodies, image.width, image.height)
        free, _total = cuda.current_context().get_memory_info()
        if needed > free:
            raise ResourceExhaustionError(
                f"CUDA device has {free // 2**20} MiB free, "
                f"{needed // 2**20} MiB required",
                required_bytes=needed,
            )

        super().bind(store, image)
        self.d_positions = cuda.to_device(store.positions)
        self.d_velocities = cuda.to_device(store.velocities)
        self.d_masses = cuda.to_device(store.masses)
        self.d_colors = cuda.to_device(store.colors)
        self.d_pixels = cuda.to_device(image.pixels)

        self.blocks = max(1, (store.num_bodies + self.threads_per_block - 1) // self.threads_per_block)
        bx, by = self.pixel_block
        self.pixel_grid = ((image.width + bx - 1) // bx, (image.height + by - 1) // by)

        print(f"[CUDA] Bound {store.num_bodies:,} bodies, {image.width}x{image.height} image")

    def fade(self, background, fade):
        self.kernels['fade'][self.pixel_grid, self.pixel_block](
            self.d_pixels, background, fade)

    def clear(self, background):
        self.kernels['clear'][self.pixel_grid, self.pixel_block](
            self.d_pixels, background)

    def forces(self, dt, softening, damping):
        self.kernels['forces'][self.blocks, self.threads_per_block](
            self.d_positions, self.d_velocities, self.d_masses,
            self.store.num_bodies, dt, softening, damping)

    def integrate(self, dt):
        self.kernels['integrate'][self.blocks, self.threads_per_block](
            self.d_positions, self.d_velocities, self.store.num_bodies, dt)

    def splat(self, particle_size, star_brightness):
        self.kernels['render'][self.pixel_grid, self.pixel_block](
            self.d_pixels, self.d_positions, self.d_masses, self.d_colors,
            self.store.num_bodies, particle_size, star_brightness)

    def sync(self):
        """Synchronize the device and copy state back to host."""
        from numba import cuda
        cuda.synchronize()
        self.d_positions.copy_to_host(self.store.positions)
        self.d_velocities.copy_to_host(self.store.velocities)
        self.d_pixels.copy_to_host(self.image.pixels)


# =============================================================================
# FACTORY FUNCTION
# =============================================================================

def resolve_backend(backend: Optional[Backend] = None, num_bodies: int = 0) -> Backend:
    """Backend a pipeline for ``num_bodies`` bodies should run on."""
    if backend is None:
        backend, _info = get_backend()

    if backend == Backend.CUDA:
        limit = int(config.BACKEND["cuda_max_bodies"])
        if num_bodies > limit:
            print(f"[GPU] {num_bodies:,} bodies exceeds CUDA limit ({limit:,}), using CPU")
            return Backend.CPU
    return backend


def create_pipeline(backend: Optional[Backend] = None, num_bodies: int = 0) -> Pipeline:
    """Create the pipeline for ``backend`` (detected when None).

    Falls back to the CPU when the body count exceeds the CUDA limit or the
    CUDA pipeline cannot be created.
    """
    if resolve_backend(backend, num_bodies) == Backend.CUDA:
        try:
            return CUDAPipeline()
        except Exception as e:
            print(f"[GPU] CUDA pipeline init failed: {e}")

    return CPUPipeline()
