"""
Main application module for the real-time Mandelbrot viewer.

Contains the MandelbrotApp class which handles:
- Window setup and main loop
- User input (zoom, pan, resize, keyboard)
- Publishing parameter snapshots and presenting rendered frames

Each pass of the loop drains the pending events into the
ParameterController, publishes a snapshot, renders it (a no-op when
nothing changed) and presents the result.
"""

import logging

import pygame

from .compute import warmup_jit
from .config import DEFAULTS, check_settings
from .controller import ParameterController
from .precision import DOUBLE_SINGLE, PRECISION_NAMES, precision_from_name
from .renderer import FrameRenderer

logger = logging.getLogger(__name__)


class MandelbrotApp:
    """
    Main application class for the viewer.

    Handles the pygame window and event loop, and connects the
    controller, the renderer and the display.
    """

    ITERATION_STEP = 2  # +/- multiply/divide the iteration cap by this

    def __init__(self, settings=None):
        """
        Initialize the application.

        Args:
            settings: dict as returned by config.load_settings (default: DEFAULTS).
                Invalid values fall back to their defaults with a warning.
        """
        self.settings = check_settings(settings or {})

        s = self.settings
        prefer_emulated = precision_from_name(s['deep_precision']) == DOUBLE_SINGLE
        self.controller = ParameterController(
            s['width'], s['height'],
            max_iterations=s['max_iterations'],
            center=s['center'],
            scale=s['scale'],
            zoom_factor=s['zoom_factor'],
            zoom_sensitivity=s['zoom_sensitivity'],
            prefer_emulated=prefer_emulated,
        )
        self.renderer = FrameRenderer(
            use_gpu=s['use_gpu'],
            color_mode=s['color_mode'],
            prefer_emulated=prefer_emulated,
        )

        # Pygame state (initialized in run())
        self.screen = None
        self.clock = None
        self.current_surface = None
        self.presented_version = None

        self.running = False

    def run(self):
        """Run the application main loop."""
        self._init_pygame()
        self._warmup()

        self.running = True
        while self.running:
            self._handle_events()
            if not self.running:
                break
            self._render_and_present()
            self.clock.tick(self.settings['fps'])

        pygame.quit()

    def _init_pygame(self):
        """Initialize pygame and create window."""
        pygame.init()
        self.screen = pygame.display.set_mode(
            (self.controller.width, self.controller.height),
            pygame.RESIZABLE | pygame.DOUBLEBUF
        )
        pygame.display.set_caption("Mandelbrot Set - Scroll to zoom, drag to pan")
        self.clock = pygame.time.Clock()

    def _warmup(self):
        """Compile the kernels before the first frame."""
        pygame.display.set_caption("Compiling (first run only)...")
        warmup_jit()
        if self.renderer.use_gpu:
            self.renderer._gpu_compute.warmup()
        logger.info("Kernels ready, backend: %s", self.renderer.get_gpu_info()['device']
                    if self.renderer.use_gpu else "numba")

    def _handle_events(self):
        """Process all pending pygame events."""
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                self.running = False
            elif event.type == pygame.VIDEORESIZE:
                self.controller.resize(event.w, event.h)
            elif event.type == pygame.MOUSEWHEEL:
                self.controller.zoom_scroll(event.y, anchor=pygame.mouse.get_pos())
            elif event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
                self.controller.begin_drag(event.pos)
            elif event.type == pygame.MOUSEBUTTONUP and event.button == 1:
                self.controller.end_drag()
            elif event.type == pygame.MOUSEMOTION:
                self.controller.drag_to(event.pos)
            elif event.type == pygame.KEYDOWN:
                self._handle_key(event)

    def _handle_key(self, event):
        """Handle keyboard input."""
        if event.key == pygame.K_ESCAPE:
            self.running = False
        elif event.key == pygame.K_r:
            self.controller.reset()
        elif event.key in (pygame.K_PLUS, pygame.K_EQUALS, pygame.K_KP_PLUS,
                           pygame.K_RIGHTBRACKET):
            self.controller.adjust_iterations(self.ITERATION_STEP)
        elif event.key in (pygame.K_MINUS, pygame.K_KP_MINUS, pygame.K_LEFTBRACKET):
            self.controller.adjust_iterations(1 / self.ITERATION_STEP)
        elif event.key == pygame.K_g:
            self.renderer.toggle_gpu()
            self.presented_version = None

    def _render_and_present(self):
        """Render the current snapshot if it is new and draw it."""
        params = self.controller.snapshot()
        if params.version == self.presented_version:
            return

        frame = self.renderer.render(params)
        rgb = self.renderer.to_rgb8(frame)
        self.current_surface = pygame.surfarray.make_surface(rgb.swapaxes(0, 1))

        self.screen = pygame.display.get_surface()
        self.screen.fill((0, 0, 0))
        self.screen.blit(self.current_surface, (0, 0))
        pygame.display.flip()

        self.presented_version = params.version
        self._update_caption()

    def _update_caption(self):
        c = self.controller
        pygame.display.set_caption(
            f"Mandelbrot Set - zoom {c.zoom_level:.3g}x, {c.max_iterations} iter, "
            f"{PRECISION_NAMES[self.renderer.last_precision]}, "
            f"{self.renderer.last_backend} {self.renderer.last_frame_ms:.0f} ms"
        )


def run(width=None, height=None, max_iter=None, use_gpu=None, settings=None):
    """
    Run the Mandelbrot viewer.

    Args:
        width: Window width (default 800)
        height: Window height (default 600)
        max_iter: Maximum iterations (default 256)
        use_gpu: Force the torch backend on or off (default: auto-detect)
        settings: Base settings dict, e.g. from config.load_settings
    """
    settings = dict(settings or DEFAULTS)
    overrides = {'width': width, 'height': height,
                 'max_iterations': max_iter, 'use_gpu': use_gpu}
    settings.update({k: v for k, v in overrides.items() if v is not None})

    app = MandelbrotApp(settings)
    try:
        app.run()
    except KeyboardInterrupt:
        pygame.quit()
