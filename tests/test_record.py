"""Tests for the headless recorder and its frame codec."""

import json

import numpy as np
import pytest

from nbody import NBodySimulation
from nbody.gpu_backend import Backend
from tools import record as recorder


def random_frame(rng, shape=(12, 10, 4)):
    return rng.integers(0, 256, shape, dtype=np.uint8)


def test_absolute_frame_codec(rng):
    frame = random_frame(rng)
    data = recorder.compress_frame(frame)

    assert data[0] == recorder.FORMAT_ABSOLUTE
    np.testing.assert_array_equal(recorder.decompress_frame(data), frame)


def test_delta_frame_codec_is_lossless(rng):
    prev = random_frame(rng)
    frame = random_frame(rng)
    data = recorder.compress_frame(frame, prev)

    assert data[0] == recorder.FORMAT_DELTA
    np.testing.assert_array_equal(recorder.decompress_frame(data, prev), frame)

    with pytest.raises(ValueError, match="previous frame"):
        recorder.decompress_frame(data)


def test_delta_base_shape_must_match(rng):
    with pytest.raises(ValueError):
        recorder.compress_frame(random_frame(rng), random_frame(rng, (4, 4, 4)))


def test_record_session_roundtrip(tmp_path):
    sim = NBodySimulation(num_bodies=12, preset="binary-star", seed=5,
                          width=24, height=16, backend=Backend.CPU)
    config = {"session_name": "unit", "total_frames": 6, "trails": True}

    rec_dir = recorder.record(config, root=tmp_path, simulation=sim)

    assert rec_dir == tmp_path / "unit"
    assert recorder.get_completed_frames(rec_dir) == 6

    metadata = json.loads((rec_dir / "metadata.json").read_text())
    assert metadata["num_bodies"] == 12
    assert metadata["preset"] == "binary-star"
    assert metadata["backend"] == "cpu"

    last = recorder.load_frame(rec_dir, 5)
    np.testing.assert_array_equal(last, sim.display_image())
    assert recorder.load_frame(rec_dir, 0).shape == (16, 24, 4)


def test_load_missing_frame(tmp_path):
    with pytest.raises(FileNotFoundError):
        recorder.load_frame(tmp_path, 3)


def test_format_time():
    assert recorder.format_time(42) == "42s"
    assert recorder.format_time(125) == "2m 05s"
    assert recorder.format_time(3725) == "1h 02m"


def binary_sim(seed=5):
    return NBodySimulation(num_bodies=12, preset="binary-star", seed=seed,
                           width=24, height=16, backend=Backend.CPU)


def test_metadata_carries_body_diagnostics(tmp_path):
    sim = binary_sim()
    initial_momentum = sim.bodies.total_momentum().tolist()

    rec_dir = recorder.record({"session_name": "diag", "total_frames": 3},
                              root=tmp_path, simulation=sim)
    metadata = recorder.load_metadata(rec_dir)

    assert metadata["initial"]["momentum"] == pytest.approx(initial_momentum)
    assert metadata["final"]["kinetic_energy"] == pytest.approx(sim.bodies.kinetic_energy())
    assert metadata["final"]["center_of_mass"] == pytest.approx(
        sim.bodies.center_of_mass().tolist())


def test_state_snapshots_keep_only_the_latest(tmp_path, monkeypatch):
    monkeypatch.setattr(recorder, "STATE_INTERVAL", 2)

    rec_dir = recorder.record({"session_name": "snap", "total_frames": 5},
                              root=tmp_path, simulation=binary_sim())

    assert sorted(p.name for p in rec_dir.glob("state_*.npz")) == ["state_0003.npz"]


def test_resume_continues_from_latest_snapshot(tmp_path, monkeypatch):
    monkeypatch.setattr(recorder, "STATE_INTERVAL", 3)
    full = recorder.record({"session_name": "full", "total_frames": 7},
                           root=tmp_path, simulation=binary_sim())

    # Interrupted after 5 frames: the snapshot after frame 2 is the latest one
    partial = recorder.record({"session_name": "partial", "total_frames": 5},
                              root=tmp_path, simulation=binary_sim())
    assert (partial / "state_0002.npz").exists()

    # A differently seeded context proves the bodies come from the snapshot
    resumed_sim = binary_sim(seed=99)
    recorder.record({"session_name": "partial", "total_frames": 7},
                    root=tmp_path, simulation=resumed_sim, resume=True)

    assert recorder.get_completed_frames(partial) == 7
    assert resumed_sim.frame_count == 7
    for idx in range(7):
        np.testing.assert_array_equal(recorder.load_frame(partial, idx),
                                      recorder.load_frame(full, idx))
    assert recorder.load_metadata(partial)["total_frames"] == 7


def test_resume_without_frames_starts_fresh(tmp_path):
    rec_dir = recorder.record({"session_name": "fresh", "total_frames": 2},
                              root=tmp_path, simulation=binary_sim(), resume=True)
    assert recorder.get_completed_frames(rec_dir) == 2
