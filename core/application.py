"""Frame driver: window, input, per-frame pipeline dispatch and presentation."""

import pygame
from pygame.locals import *
from OpenGL.GL import *

from config import nbody as config
from nbody import NBodySimulation
from rendering import ImagePresenter, TextRenderer
from .input_handler import InputHandler


HELP_TEXT = "SPACE: Pause | R: Reset | 1-3: Presets | G: Trails | [ ]: Bodies | H: Help"


class Application:
    """Main application owning the simulation and the display loop."""

    def __init__(self, simulation: NBodySimulation = None):
        pygame.init()
        pygame.display.set_mode(
            (config.WINDOW["width"], config.WINDOW["height"]),
            DOUBLEBUF | OPENGL
        )
        pygame.display.set_caption(config.WINDOW["title"])

        print("[App] Initializing N-body simulation...")
        self.simulation = simulation if simulation is not None else NBodySimulation()
        self.input_handler = InputHandler(self.simulation)

        self.presenter = ImagePresenter(self.simulation.image.width,
                                        self.simulation.image.height)
        self.text_renderer = TextRenderer()

        # State
        self.clock = pygame.time.Clock()
        self.running = True
        self.fps = 0

        glClearColor(*config.COLORS["background"])
        glDisable(GL_DEPTH_TEST)
        print("[App] Ready!")
        print("  " + HELP_TEXT)

    def _handle_events(self):
        """Process all pending pygame events."""
        for event in pygame.event.get():
            if not self.input_handler.handle_event(event):
                self.running = False

    def _render(self):
        """Present the frame and draw the HUD."""
        glClear(GL_COLOR_BUFFER_BIT)
        self.presenter.present(self.simulation)

        sim = self.simulation
        screen_size = (config.WINDOW["width"], config.WINDOW["height"])
        status = "PAUSED" if sim.paused else "RUNNING"
        lines = [
            f"Bodies: {sim.num_bodies:,}  |  FPS: {self.fps:.0f}  |  {status}",
            f"{sim.preset_label}  |  Trails: {'on' if sim.trails else 'off'}  |  {sim.backend_name}",
        ]
        if self.input_handler.show_help:
            lines.append(HELP_TEXT)
        self.text_renderer.draw_lines(lines, 10, 10, screen_size)

        pygame.display.flip()

    def run(self):
        """Main application loop."""
        print("[App] Starting main loop...")

        while self.running:
            self.clock.tick(config.WINDOW["fps"])
            self.fps = self.clock.get_fps()

            # Commands (reset/preset) are applied here, between frames
            self._handle_events()
            if not self.running:
                break

            self.simulation.step_and_render()
            self._render()

        self.presenter.release()
        pygame.quit()
        print("[App] Shutdown complete")
