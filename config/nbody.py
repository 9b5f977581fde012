"""Configuration for the 2D N-body splat simulation."""

# =============================================================================
# PERFORMANCE PRESETS - Choose one by uncommenting
# =============================================================================
# Both the force stage (N^2) and the splat stage (W*H*N) are brute force.

# PRESET: CUDA (10K bodies, 2048^2 image) - matches a desktop GPU
# BODY_COUNT = 10_000
# IMAGE_SIZE = 2048

# PRESET: CPU MEDIUM (2K bodies, 768^2 image)
# BODY_COUNT = 2_000
# IMAGE_SIZE = 768

# PRESET: CPU SMOOTH (1K bodies, 512^2 image) - interactive on 8+ cores
BODY_COUNT = 1_000
IMAGE_SIZE = 512

# =============================================================================

WINDOW = {
    "width": 1000,
    "height": 1000,
    "title": "N-Body Gravity Simulator",
    "fps": 60,
}

# Accumulation image (fixed resolution, independent of window size)
IMAGE = {
    "width": IMAGE_SIZE,
    "height": IMAGE_SIZE,
    "fade": 0.95,          # Per-frame trail decay
    "exposure": 1.0,       # Scale applied before clamping for display
}

NBODY = {
    "count": BODY_COUNT,
    "preset": "galaxy-collision",   # "random-cloud", "binary-star", "galaxy-collision"
    "seed": None,                   # None = fresh entropy each reset

    # Physics parameters (normalized units)
    "delta_time": 0.01,
    "softening": 0.001,            # Added to r^2, must be > 0
    "damping": 0.9999,             # Velocity multiplier per step

    # Rendering
    "particle_size": 0.005,         # Splat scale for an image particle_size_resolution tall
    "particle_size_resolution": 2048,   # Rescaled to the real image height
    "star_brightness": 0.05,
    "trails": True,
}

COLORS = {
    "background": (0.0, 0.0, 0.05, 1.0),   # Dark blue tint
    "text": (230, 230, 230),
}

BACKEND = {
    "cuda_threads_per_body_block": 256,
    "cuda_pixel_block": (16, 16),
    "cuda_max_bodies": 200_000,
}
