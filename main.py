"""
2D N-Body Gravity Simulator
===========================

Brute-force O(n²) gravity with a per-pixel splat renderer and fading
motion trails, running on CUDA when available and on Numba-parallel CPU
kernels otherwise.

Controls:
    - SPACE: Pause/Resume simulation
    - R: Reset current preset
    - 1: Binary star
    - 2: Galaxy collision
    - 3: Random cloud
    - G: Toggle trails
    - [ / ]: Halve / double body count
    - H: Toggle help text
    - ESC: Quit
"""

import argparse

from config import nbody as config


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="2D N-body gravity simulator")
    parser.add_argument("--bodies", "-n", type=int, help="Number of bodies")
    parser.add_argument("--preset", "-p", type=str,
                        help="random-cloud, binary-star or galaxy-collision")
    parser.add_argument("--seed", type=int, help="Random seed for the initial scene")
    parser.add_argument("--width", type=int, help="Accumulation image width")
    parser.add_argument("--height", type=int, help="Accumulation image height")
    parser.add_argument("--no-trails", action="store_true", help="Clear the image every frame")
    parser.add_argument("--cpu", action="store_true", help="Force the CPU backend")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    from nbody import NBodySimulation
    from nbody.gpu_backend import Backend
    from core.application import Application

    if args.no_trails:
        config.NBODY["trails"] = False

    simulation = NBodySimulation(
        num_bodies=args.bodies,
        preset=args.preset,
        seed=args.seed,
        width=args.width,
        height=args.height,
        backend=Backend.CPU if args.cpu else None,
    )
    app = Application(simulation)
    app.run()


if __name__ == "__main__":
    main()
