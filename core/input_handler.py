"""Keyboard input for the N-body frame driver."""

import pygame
from pygame.locals import *

from nbody import Preset, ResourceExhaustionError


PRESET_KEYS = {
    K_1: Preset.BINARY_STAR,
    K_2: Preset.GALAXY_COLLISION,
    K_3: Preset.RANDOM_CLOUD,
}


class InputHandler:
    """Maps key presses onto simulation commands.

    All commands run between frames, so replacing the Body Store never
    races an in-flight frame.
    """

    def __init__(self, simulation):
        self.simulation = simulation
        self.show_help = True

    def handle_event(self, event: pygame.event.Event) -> bool:
        """
        Handle a single pygame event.
        Returns False if the application should quit, True otherwise.
        """
        if event.type == QUIT:
            return False
        if event.type != KEYDOWN:
            return True

        sim = self.simulation
        if event.key == K_ESCAPE:
            return False
        elif event.key == K_SPACE:
            paused = sim.toggle_pause()
            print(f"[App] {'Paused' if paused else 'Running'}")
        elif event.key == K_r:
            self.reinitialize(sim.num_bodies)
        elif event.key in PRESET_KEYS:
            self.reinitialize(sim.num_bodies, PRESET_KEYS[event.key])
        elif event.key == K_g:
            print(f"[App] Trails: {sim.toggle_trails()}")
        elif event.key == K_h:
            self.show_help = not self.show_help
        elif event.key == K_LEFTBRACKET:
            self.reinitialize(max(1, sim.num_bodies // 2))
        elif event.key == K_RIGHTBRACKET:
            self.reinitialize(max(1, sim.num_bodies * 2))

        return True

    def reinitialize(self, count: int, preset: Preset = None) -> int:
        """Reset the scene, halving the body count until it fits in memory.

        Returns the body count actually used, or 0 when even an empty scene
        could not be set up.
        """
        while True:
            try:
                self.simulation.reset(preset=preset, num_bodies=count)
                return count
            except ResourceExhaustionError as e:
                if count == 0:
                    print(f"[App] {e}; keeping the previous scene")
                    return 0
                print(f"[App] {e}; retrying with {count // 2:,} bodies")
                count //= 2
