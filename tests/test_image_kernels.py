"""Tests for the fade, splat and starfield kernels and display conversion."""

import math

import numpy as np
import pytest

from nbody import AccumulationImage, ConfigurationError
from nbody import kernels

BACKGROUND = np.array([0.0, 0.0, 0.05, 1.0], dtype=np.float32)


def reference_star_value(x, y):
    h = ((x * 73856093) & 0xFFFFFFFF) ^ ((y * 19349663) & 0xFFFFFFFF)
    return (h % 10000) / 10000.0


def splat(pixels, positions, masses, colors, particle_size=0.1, star_brightness=0.0):
    positions = np.asarray(positions, dtype=np.float32)
    kernels.render_bodies(
        pixels, positions,
        np.asarray(masses, dtype=np.float32),
        np.asarray(colors, dtype=np.float32),
        len(positions), particle_size, star_brightness,
    )


@pytest.mark.parametrize("shape", [(0, 10), (10, 0), (-1, 4)])
def test_zero_sized_image_rejected(shape):
    with pytest.raises(ConfigurationError):
        AccumulationImage(*shape)


def test_new_image_is_background(small_image):
    assert small_image.shape == (24, 32, 4)
    np.testing.assert_array_equal(small_image.pixels[5, 7], BACKGROUND)


def test_fade_deviation_bounded_by_geometric_decay(rng):
    pixels = rng.uniform(0.0, 5.0, (16, 16, 4)).astype(np.float32)
    initial = np.abs(pixels - BACKGROUND)

    for k in range(1, 41):
        kernels.fade_image(pixels, BACKGROUND, 0.95)
        deviation = np.abs(pixels - BACKGROUND)
        assert np.all(deviation <= initial * 0.95 ** k + 1e-5)

    assert np.max(np.abs(pixels - BACKGROUND)) < 5.0 * 0.95 ** 40 + 1e-5


def test_fade_single_step_formula():
    pixels = np.full((2, 2, 4), 1.0, dtype=np.float32)
    kernels.fade_image(pixels, BACKGROUND, 0.95)

    np.testing.assert_allclose(pixels[0, 0], 0.95 + BACKGROUND * 0.05, rtol=1e-6)


def test_fade_resets_non_finite_pixels():
    pixels = np.ones((2, 2, 4), dtype=np.float32)
    pixels[1, 1, 0] = np.nan
    pixels[0, 1, 2] = np.inf

    kernels.fade_image(pixels, BACKGROUND, 0.95)

    assert pixels[1, 1, 0] == BACKGROUND[0]
    assert pixels[0, 1, 2] == BACKGROUND[2]


def test_clear_sets_background():
    pixels = np.full((4, 3, 4), 7.0, dtype=np.float32)
    kernels.clear_image(pixels, BACKGROUND)
    np.testing.assert_array_equal(pixels, np.broadcast_to(BACKGROUND, pixels.shape))


@pytest.mark.parametrize("x, y", [(0, 0), (1, 0), (0, 1), (17, 923), (2047, 2047), (640, 3)])
def test_star_value_matches_32bit_hash(x, y):
    assert kernels.star_value(x, y) == pytest.approx(reference_star_value(x, y))


def test_starfield_is_deterministic_and_sparse():
    a = kernels.starfield_mask(256, 192)
    b = kernels.starfield_mask(256, 192)

    np.testing.assert_array_equal(a, b)
    # Threshold 0.998 leaves roughly 0.2% of pixels lit
    assert 0 < a.sum() < 0.01 * a.size


def test_starfield_independent_of_bodies_and_frames():
    star_mask = kernels.starfield_mask(64, 64)
    empty = np.zeros((0, 2), dtype=np.float32)

    frames = []
    for _ in range(3):
        pixels = np.zeros((64, 64, 4), dtype=np.float32)
        splat(pixels, empty, [], np.zeros((0, 3)), star_brightness=0.25)
        frames.append(pixels)

    for pixels in frames:
        np.testing.assert_array_equal(pixels[..., 0] > 0, star_mask)
        np.testing.assert_allclose(pixels[star_mask][:, :3], 0.25)


def test_single_body_splat_at_center():
    size = 64
    pixels = np.zeros((size, size, 4), dtype=np.float32)
    splat(pixels, [[0.0, 0.0]], [1.0], [[1.0, 0.5, 0.25]], particle_size=0.1)

    # Nearest pixel center to the origin
    u = (31 + 0.5) / size * 2 - 1
    d = math.hypot(u, u)
    t = 1 - d / 0.2
    expected = (t * t * (3 - 2 * t)) ** 2 * 1.0 * 5.0

    np.testing.assert_allclose(pixels[31, 31, :3], [expected, expected * 0.5, expected * 0.25], rtol=1e-5)
    # Outside 2 * size nothing is drawn
    assert np.all(pixels[0, 0] == 0)
    assert np.all(pixels[..., 3] == 0)


def test_splat_radius_scales_with_sqrt_mass():
    small = np.zeros((64, 64, 4), dtype=np.float32)
    large = np.zeros((64, 64, 4), dtype=np.float32)
    splat(small, [[0.0, 0.0]], [0.25], [[1, 1, 1]], particle_size=0.1)
    splat(large, [[0.0, 0.0]], [1.0], [[1, 1, 1]], particle_size=0.1)

    assert (large[..., 0] > 0).sum() > (small[..., 0] > 0).sum()


def test_splat_adds_onto_faded_base():
    pixels = np.full((16, 16, 4), 0.5, dtype=np.float32)
    splat(pixels, [[0.0, 0.0]], [1.0], [[1, 1, 1]], particle_size=0.2)

    assert np.all(pixels[..., :3] >= 0.5)
    assert pixels[8, 8, 0] > 0.5
    assert pixels[0, 0, 0] == 0.5


def test_splat_uses_aspect_corrected_coordinates():
    # 2:1 image, body at x = 0.5 lands at u = 1.0, three quarters across
    pixels = np.zeros((32, 64, 4), dtype=np.float32)
    splat(pixels, [[0.5, 0.0]], [1.0], [[1, 1, 1]], particle_size=0.05)

    row = pixels[16, :, 0]
    assert int(np.argmax(row)) in (47, 48)


def test_degenerate_bodies_are_dropped():
    pixels = np.zeros((32, 32, 4), dtype=np.float32)
    splat(pixels,
          [[np.nan, 0.0], [0.0, 0.0], [0.1, np.inf]],
          [1.0, 1.0, 1.0],
          [[1, 1, 1], [1, 1, 1], [1, 1, 1]],
          particle_size=0.1)

    assert np.all(np.isfinite(pixels))
    assert pixels[16, 16, 0] > 0

    pixels = np.zeros((32, 32, 4), dtype=np.float32)
    splat(pixels, [[0.0, 0.0]], [1.0], [[np.inf, 1, 1]], particle_size=0.1)
    assert np.all(np.isfinite(pixels))


def test_to_display_clamps_and_quantizes():
    image = AccumulationImage(2, 2)
    image.pixels[0, 0] = [2.0, -1.0, 0.5, 1.0]
    image.pixels[0, 1] = [np.nan, 0.0, 1.0, 0.25]

    out = image.to_display()

    assert out.dtype == np.uint8
    np.testing.assert_array_equal(out[0, 0], [255, 0, 128, 255])
    np.testing.assert_array_equal(out[0, 1], [0, 0, 255, 64])


def test_to_display_exposure():
    image = AccumulationImage(1, 1, background=(0.25, 0.25, 0.25, 1.0))
    np.testing.assert_array_equal(image.to_display(exposure=2.0)[0, 0], [128, 128, 128, 255])
