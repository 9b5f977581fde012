"""Shared fixtures: every test runs on the CPU backend with small scenes."""

import numpy as np
import pytest

from nbody import AccumulationImage, NBodySimulation
from nbody.gpu_backend import Backend, force_backend
from nbody.pipeline import CPUPipeline


@pytest.fixture(autouse=True)
def cpu_backend():
    force_backend(Backend.CPU)
    yield
    force_backend(None)


@pytest.fixture
def pipeline():
    return CPUPipeline()


@pytest.fixture
def small_image():
    return AccumulationImage(32, 24, background=(0.0, 0.0, 0.05, 1.0))


@pytest.fixture
def simulation():
    return NBodySimulation(num_bodies=16, preset="galaxy-collision", seed=7,
                           width=32, height=32, backend=Backend.CPU)


@pytest.fixture
def rng():
    return np.random.default_rng(1234)
