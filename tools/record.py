"""
N-Body Headless Recorder
========================

Runs the frame pipeline without a window and saves every presented frame
to disk. Every STATE_INTERVAL frames the Body Store and the HDR image are
snapshotted, so an interrupted session can pick up where it stopped.

Usage:
    python -m tools.record                          # Record with config defaults
    python -m tools.record --frames 600 -n 500      # Override frame/body count
    python -m tools.record --preset binary-star     # Pick a preset
    python -m tools.record --resume galaxy_1        # Resume an interrupted session
    python -m tools.record --list                   # List all recordings

Output:
    recordings/<session_name>/
        metadata.json     - Recording settings and momentum/energy diagnostics
        frame_0000.zstd   - Compressed uint8 RGBA frame (zstd + delta)
        ...
        state_0049.npz    - Latest Body Store + image snapshot
"""

import argparse
import json
import struct
import time
from datetime import datetime
from pathlib import Path

import numpy as np
import zstandard as zstd

# Get project root (parent of tools/)
PROJECT_ROOT = Path(__file__).parent.parent

# Every KEYFRAME_INTERVAL frames an absolute frame is written
KEYFRAME_INTERVAL = 50

# Simulation state is snapshotted every STATE_INTERVAL frames
STATE_INTERVAL = KEYFRAME_INTERVAL

DEFAULT_FRAMES = 300

FORMAT_ABSOLUTE = 1
FORMAT_DELTA = 2
HEADER = struct.Struct("<BII")  # format, height, width


def get_recording_dir(session_name: str, root: Path = None) -> Path:
    """Get the directory for a recording session."""
    base = (root or PROJECT_ROOT / "recordings") / session_name
    base.mkdir(parents=True, exist_ok=True)
    return base


def save_metadata(rec_dir: Path, config: dict, start_time: float):
    """Save recording metadata."""
    metadata = {
        **config,
        "start_time": start_time,
        "start_datetime": datetime.fromtimestamp(start_time).isoformat(),
    }
    with open(rec_dir / "metadata.json", "w") as f:
        json.dump(metadata, f, indent=2)


def load_metadata(rec_dir: Path) -> dict:
    """Load recording metadata."""
    with open(rec_dir / "metadata.json", "r") as f:
        return json.load(f)


def get_completed_frames(rec_dir: Path) -> int:
    """Count how many consecutive frames have been recorded."""
    count = 0
    while (rec_dir / f"frame_{count:04d}.zstd").exists():
        count += 1
    return count


def find_latest_state(rec_dir: Path, max_frame: int) -> tuple:
    """Find the most recent state file and its frame number."""
    for frame in range(max_frame, -1, -1):
        state_file = rec_dir / f"state_{frame:04d}.npz"
        if state_file.exists():
            return state_file, frame
    return None, -1


def save_state(rec_dir: Path, frame_idx: int, simulation):
    """Snapshot the Body Store and HDR image after ``frame_idx``."""
    store = simulation.bodies
    np.savez(
        rec_dir / f"state_{frame_idx:04d}.npz",
        positions=store.positions,
        velocities=store.velocities,
        masses=store.masses,
        colors=store.colors,
        pixels=simulation.image.pixels,
    )
    # Only the latest snapshot is kept
    old_state = rec_dir / f"state_{frame_idx - STATE_INTERVAL:04d}.npz"
    if old_state.exists():
        old_state.unlink()


def load_state(state_file: Path, simulation):
    """Restore a snapshot written by save_state into ``simulation``."""
    from nbody import BodyStore

    with np.load(state_file) as state:
        store = BodyStore(state["positions"], state["velocities"],
                          state["masses"], state["colors"])
        simulation.restore(store, state["pixels"])


def body_diagnostics(store) -> dict:
    """JSON-friendly momentum and energy summary of a Body Store."""
    diagnostics = {
        "num_bodies": store.num_bodies,
        "momentum": store.total_momentum().tolist(),
        "kinetic_energy": store.kinetic_energy(),
    }
    if store.num_bodies:
        diagnostics["center_of_mass"] = store.center_of_mass().tolist()
    return diagnostics


# =============================================================================
# ZSTD + DELTA FRAME CODEC
# =============================================================================

def compress_frame(frame: np.ndarray, prev_frame: np.ndarray = None,
                   level: int = 9) -> bytes:
    """
    Compress a uint8 RGBA frame with zstd.

    Delta frames store (frame - prev_frame) modulo 256, which is lossless
    and compresses far better for slowly changing images.

    Format:
    - 1 byte: compression format (1=absolute, 2=delta)
    - 4 bytes: height
    - 4 bytes: width
    - N bytes: zstd payload
    """
    frame = np.ascontiguousarray(frame, dtype=np.uint8)
    use_delta = prev_frame is not None
    if use_delta:
        if prev_frame.shape != frame.shape:
            raise ValueError(f"Delta base has shape {prev_frame.shape}, frame has {frame.shape}")
        payload = np.subtract(frame, prev_frame, dtype=np.uint8)
    else:
        payload = frame

    cctx = zstd.ZstdCompressor(level=level)
    header = HEADER.pack(FORMAT_DELTA if use_delta else FORMAT_ABSOLUTE,
                         frame.shape[0], frame.shape[1])
    return header + cctx.compress(payload.tobytes())


def decompress_frame(data: bytes, prev_frame: np.ndarray = None) -> np.ndarray:
    """Decompress frame data produced by compress_frame."""
    if len(data) < HEADER.size:
        raise ValueError("Invalid compressed data")

    comp_format, height, width = HEADER.unpack_from(data)
    raw = zstd.ZstdDecompressor().decompress(data[HEADER.size:])
    payload = np.frombuffer(raw, dtype=np.uint8).reshape(height, width, 4)

    if comp_format == FORMAT_ABSOLUTE:
        return payload.copy()
    if comp_format == FORMAT_DELTA:
        if prev_frame is None:
            raise ValueError("Delta frame requires the previous frame")
        return np.add(prev_frame, payload, dtype=np.uint8)
    raise ValueError(f"Unknown compression format: {comp_format}")


def save_frame(rec_dir: Path, frame_idx: int, frame: np.ndarray,
               prev_frame: np.ndarray = None) -> int:
    """Write one frame, absolute on keyframes. Returns bytes written."""
    base = None if frame_idx % KEYFRAME_INTERVAL == 0 else prev_frame
    data = compress_frame(frame, base)
    with open(rec_dir / f"frame_{frame_idx:04d}.zstd", "wb") as f:
        f.write(data)
    return len(data)


def load_frame(rec_dir: Path, frame_idx: int) -> np.ndarray:
    """
    Load a single frame from disk.

    Walks back to the nearest absolute frame and replays the deltas forward,
    iteratively rather than recursively.
    """
    chain = []
    current = frame_idx
    while current >= 0:
        path = rec_dir / f"frame_{current:04d}.zstd"
        if not path.exists():
            raise FileNotFoundError(f"Frame {current:04d} not found")
        data = path.read_bytes()
        chain.append(data)
        if data[0] == FORMAT_ABSOLUTE:
            break
        current -= 1
    else:
        raise ValueError(f"Frame {frame_idx:04d} has no absolute base frame")

    frame = None
    for data in reversed(chain):
        frame = decompress_frame(data, frame)
    return frame


# =============================================================================
# RECORDING
# =============================================================================

def format_time(seconds: float) -> str:
    """Format seconds as a compact h/m/s string."""
    seconds = int(seconds)
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        return f"{seconds // 60}m {seconds % 60:02d}s"
    return f"{seconds // 3600}h {(seconds % 3600) // 60:02d}m"


def print_progress(frame: int, total: int, elapsed: float):
    """Print a single-line progress bar."""
    done = frame + 1
    bar_len = 30
    filled = int(bar_len * done / total)
    bar = "█" * filled + "░" * (bar_len - filled)
    eta = elapsed / done * (total - done)
    print(f"\r[Record] {bar} {done}/{total}  elapsed {format_time(elapsed)}  "
          f"eta {format_time(eta)}", end="", flush=True)


def record(config: dict, root: Path = None, simulation=None, resume: bool = False) -> Path:
    """Render ``config['total_frames']`` frames headlessly into a session dir.

    With ``resume`` the settings of an existing session are reused and
    rendering continues after its latest state snapshot.
    """
    from nbody import NBodySimulation

    session = config.get("session_name") or datetime.now().strftime("nbody_%Y%m%d_%H%M%S")
    rec_dir = get_recording_dir(session, root)

    state_file, state_frame = None, -1
    if resume:
        completed = get_completed_frames(rec_dir)
        if completed > 0 and (rec_dir / "metadata.json").exists():
            print(f"[Record] Found {completed} completed frames")
            saved = load_metadata(rec_dir)
            config = {**saved, **{k: v for k, v in config.items() if v is not None}}
            state_file, state_frame = find_latest_state(rec_dir, completed - 1)
            if state_file is None:
                print("[Record] Warning: No state file found, recomputing from start...")
        else:
            print(f"[Record] Nothing to resume in '{session}', starting a new recording")

    if simulation is None:
        simulation = NBodySimulation(
            num_bodies=config.get("num_bodies"),
            preset=config.get("preset"),
            seed=config.get("seed"),
            width=config.get("width"),
            height=config.get("height"),
        )
    if "trails" in config:
        simulation.trails = bool(config["trails"])

    start_frame = 0
    prev = None
    if state_file is not None:
        print(f"[Record] Loading state from frame {state_frame}")
        load_state(state_file, simulation)
        start_frame = state_frame + 1
        simulation.frame_count = start_frame
        prev = load_frame(rec_dir, state_frame)
        print(f"[Record] Resuming from frame {start_frame}")

    config = {
        **config,
        "session_name": session,
        "num_bodies": simulation.num_bodies,
        "preset": simulation.preset.value,
        "width": simulation.image.width,
        "height": simulation.image.height,
        "backend": simulation.backend_name,
    }
    total = int(config.get("total_frames") or DEFAULT_FRAMES)
    config["total_frames"] = total
    if start_frame == 0:
        config["initial"] = body_diagnostics(simulation.bodies)
    start_time = time.time()
    save_metadata(rec_dir, config, start_time)

    print(f"[Record] Session '{session}': {total} frames -> {rec_dir}")

    total_bytes = 0
    frame_idx = start_frame - 1
    try:
        for frame_idx in range(start_frame, total):
            simulation.step_and_render(delta_time=config.get("dt"))
            frame = simulation.display_image()
            total_bytes += save_frame(rec_dir, frame_idx, frame, prev)
            prev = frame
            if (frame_idx + 1) % STATE_INTERVAL == 0:
                save_state(rec_dir, frame_idx, simulation)
            print_progress(frame_idx, total, time.time() - start_time)
    except KeyboardInterrupt:
        print()
        print(f"[Record] Paused at frame {frame_idx}")
        print(f"[Record] To resume: python -m tools.record --resume {session}")
        return rec_dir

    config["final"] = body_diagnostics(simulation.bodies)
    save_metadata(rec_dir, config, start_time)

    raw_bytes = (total - start_frame) * simulation.image.width * simulation.image.height * 4
    print()
    print(f"[Record] ✓ Done in {format_time(time.time() - start_time)}, "
          f"{total_bytes / 2**20:.1f} MiB ({raw_bytes / max(total_bytes, 1):.1f}x compression)")
    return rec_dir


def list_recordings(root: Path = None):
    """List all recordings."""
    recordings_dir = root or PROJECT_ROOT / "recordings"
    sessions = []
    if recordings_dir.exists():
        sessions = sorted(d for d in recordings_dir.iterdir()
                          if d.is_dir() and (d / "metadata.json").exists())
    if not sessions:
        print("[Record] No recordings found")
        return

    print("[Record] Recordings:")
    for d in sessions:
        meta = load_metadata(d)
        done = get_completed_frames(d)
        print(f"  {d.name:<28} {meta.get('preset', '?'):<18} "
              f"{meta.get('num_bodies', 0):>8,} bodies  {done}/{meta.get('total_frames', '?')} frames")


def main(argv=None):
    parser = argparse.ArgumentParser(description="N-body headless recorder")
    parser.add_argument("session", nargs="?", help="Session name")
    parser.add_argument("--list", action="store_true", help="List all recordings")
    parser.add_argument("--resume", action="store_true", help="Resume an interrupted session")
    parser.add_argument("--preset", "-p", type=str, help="random-cloud, binary-star or galaxy-collision")
    parser.add_argument("--bodies", "-n", type=int, help="Override number of bodies")
    parser.add_argument("--frames", "-f", type=int, help=f"Number of frames (default {DEFAULT_FRAMES})")
    parser.add_argument("--seed", type=int, help="Random seed")
    parser.add_argument("--dt", type=float, help="Override time step")
    parser.add_argument("--width", type=int, help="Image width")
    parser.add_argument("--height", type=int, help="Image height")
    parser.add_argument("--no-trails", action="store_true", help="Clear the image every frame")
    args = parser.parse_args(argv)

    if args.list:
        list_recordings()
        return

    if args.resume and not args.session:
        parser.error("--resume needs a session name")

    config = {
        "session_name": args.session,
        "preset": args.preset,
        "num_bodies": args.bodies,
        "total_frames": args.frames,
        "seed": args.seed,
        "dt": args.dt,
        "width": args.width,
        "height": args.height,
    }
    if args.no_trails:
        config["trails"] = False
    record(config, resume=args.resume)


if __name__ == "__main__":
    main()
