"""Tests for the Body Store."""

import numpy as np
import pytest

from nbody import BodyStore, ConfigurationError
from nbody.bodies import BODY_DTYPE


def make_store(n=3, mass=0.01):
    return BodyStore(
        np.zeros((n, 2)), np.zeros((n, 2)), np.full(n, mass), np.ones((n, 3)),
    )


def test_arrays_are_contiguous_float32():
    store = make_store()
    for arr in (store.positions, store.velocities, store.masses, store.colors):
        assert arr.dtype == np.float32
        assert arr.flags["C_CONTIGUOUS"]


@pytest.mark.parametrize("mass", [0.0, -0.5, float("nan")])
def test_non_positive_mass_rejected(mass):
    with pytest.raises(ConfigurationError, match="mass"):
        make_store(mass=mass)


def test_mismatched_lengths_rejected():
    with pytest.raises(ConfigurationError, match="velocities"):
        BodyStore(np.zeros((3, 2)), np.zeros((2, 2)), np.ones(3), np.ones((3, 3)))


def test_wrong_width_rejected():
    with pytest.raises(ConfigurationError, match="shape"):
        BodyStore(np.zeros((3, 3)), np.zeros((3, 2)), np.ones(3), np.ones((3, 3)))


def test_packed_layout_is_tight():
    assert BODY_DTYPE.itemsize == 32

    store = BodyStore(
        np.array([[0.1, 0.2]]), np.array([[0.3, 0.4]]),
        np.array([0.5]), np.array([[0.6, 0.7, 0.8]]),
    )
    packed = store.packed()
    raw = packed.view(np.float32)

    np.testing.assert_allclose(raw, [0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8], rtol=1e-6)


def test_allocate():
    store = BodyStore.allocate(5)
    assert len(store) == 5
    assert store.nbytes == 5 * 32

    with pytest.raises(ConfigurationError):
        BodyStore.allocate(-1)


def test_diagnostics():
    store = BodyStore(
        np.array([[-0.5, 0.0], [0.5, 0.0]]),
        np.array([[0.0, 1.0], [0.0, -1.0]]),
        np.array([1.0, 3.0]),
        np.ones((2, 3)),
    )

    np.testing.assert_allclose(store.total_momentum(), [0.0, -2.0])
    assert store.kinetic_energy() == pytest.approx(2.0)
    np.testing.assert_allclose(store.center_of_mass(), [0.25, 0.0])


def test_center_of_mass_of_empty_store_rejected():
    with pytest.raises(ConfigurationError):
        BodyStore.allocate(0).center_of_mass()
