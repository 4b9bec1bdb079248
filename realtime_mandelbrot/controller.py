"""
Parameter controller: the single owner of the view state.

Input events (drag, scroll, resize, keys) mutate the controller; once per
frame the app calls snapshot() to publish an immutable ViewParameters for
the kernel. Updates that would break an invariant are ignored and the
last valid state is kept.
"""

import logging
import math

from .params import ViewParameters
from .precision import select_precision
from .transform import pixel_to_complex, complex_to_pixel, delta_to_complex

logger = logging.getLogger(__name__)


DEFAULT_CENTER = (-0.5, 0.0)
DEFAULT_SCALE = 3.0
DEFAULT_MAX_ITERATIONS = 256

# scroll of +1 zooms in by 1 / ZOOM_FACTOR
ZOOM_FACTOR = 1.18
ZOOM_SENSITIVITY = 1.0

# Past MIN_SCALE even float64 cannot separate adjacent pixels
MIN_SCALE = 1e-13
MAX_SCALE = 64.0
MAX_ITERATIONS_LIMIT = 1 << 20


class ParameterController:
    """
    Owns the current view and turns input into parameter updates.

    Usage:
        controller = ParameterController(800, 600)
        controller.zoom_scroll(1.0, anchor=(400, 300))
        params = controller.snapshot()   # hand to the renderer

    Every mutating method returns True when the state changed and False
    when the update was rejected or had no effect.
    """

    def __init__(self, width, height, max_iterations=DEFAULT_MAX_ITERATIONS,
                 center=DEFAULT_CENTER, scale=DEFAULT_SCALE,
                 zoom_factor=ZOOM_FACTOR, zoom_sensitivity=ZOOM_SENSITIVITY,
                 prefer_emulated=False):
        """
        Args:
            width, height: Initial viewport in pixels (clamped to >= 1)
            max_iterations: Iteration cap
            center: Complex point at the viewport centre
            scale: Height of the visible window in the complex plane
            zoom_factor: Base of the scroll-to-zoom mapping
            zoom_sensitivity: Multiplier applied to scroll deltas
            prefer_emulated: Deep zooms use double-single instead of double

        Raises:
            InvalidParameters: if the initial state breaks an invariant
        """
        self.width = max(1, int(width))
        self.height = max(1, int(height))
        self.max_iterations = int(max_iterations)
        self.center_re, self.center_im = (float(v) for v in center)
        self.scale = float(scale)
        self.zoom_factor = zoom_factor
        self.zoom_sensitivity = zoom_sensitivity
        self.prefer_emulated = prefer_emulated

        self._initial = (self.max_iterations, (self.center_re, self.center_im), self.scale)
        self._version = 0
        self._dirty = True
        self._published = None

        # Drag state
        self.dragging = False
        self.drag_last = None

        self._current().validate()

    def _current(self, version=0):
        return ViewParameters(
            max_iterations=self.max_iterations,
            scale=self.scale,
            viewport_size=(self.width, self.height),
            center=(self.center_re, self.center_im),
            version=version,
        )

    def _touch(self):
        self._dirty = True
        return True

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------

    def snapshot(self):
        """
        Publish the current state.

        Returns the same ViewParameters object until something changes;
        each change bumps the version by one.
        """
        if self._dirty or self._published is None:
            self._version += 1
            self._published = self._current(self._version)
            self._dirty = False
        return self._published

    @property
    def version(self):
        return self._version

    @property
    def precision(self):
        """Arithmetic strategy for the current zoom depth."""
        return select_precision(self.scale, self.prefer_emulated)

    @property
    def zoom_level(self):
        return self._initial[2] / self.scale

    # ------------------------------------------------------------------
    # Coordinate helpers
    # ------------------------------------------------------------------

    def screen_to_complex(self, px, py):
        return pixel_to_complex(px, py, self.width, self.height, self.scale,
                                self.center_re, self.center_im)

    def complex_to_screen(self, x, y):
        return complex_to_pixel(x, y, self.width, self.height, self.scale,
                                self.center_re, self.center_im)

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------

    def resize(self, width, height):
        """New drawable size. Centre and scale are kept."""
        width = max(1, int(width))
        height = max(1, int(height))
        if (width, height) == (self.width, self.height):
            return False
        self.width, self.height = width, height
        logger.debug("Viewport resized to %dx%d", width, height)
        return self._touch()

    def pan(self, dx, dy):
        """
        Move the view by a screen-space delta in pixels.

        The content follows the pointer: dragging right reveals what was
        to the left.
        """
        if not (math.isfinite(dx) and math.isfinite(dy)):
            logger.debug("Rejected pan by non-finite delta (%r, %r)", dx, dy)
            return False
        if dx == 0 and dy == 0:
            return False
        off_re, off_im = delta_to_complex(dx, dy, self.width, self.height, self.scale)
        new_re = self.center_re - off_re
        new_im = self.center_im - off_im
        if not (math.isfinite(new_re) and math.isfinite(new_im)):
            logger.debug("Rejected pan leaving the finite plane")
            return False
        self.center_re, self.center_im = new_re, new_im
        return self._touch()

    def zoom(self, factor, anchor=None):
        """
        Multiply the scale by ``factor`` keeping ``anchor`` fixed on screen.

        Args:
            factor: < 1 zooms in, > 1 zooms out; must be finite and > 0
            anchor: Pixel position that stays put (default: viewport centre)
        """
        if not math.isfinite(factor) or factor <= 0:
            logger.debug("Rejected zoom factor %r", factor)
            return False
        new_scale = self.scale * factor
        if not math.isfinite(new_scale) or not MIN_SCALE <= new_scale <= MAX_SCALE:
            logger.debug("Rejected zoom to scale %r", new_scale)
            return False
        if new_scale == self.scale:
            return False

        if anchor is None:
            anchor = (self.width / 2, self.height / 2)
        world_re, world_im = self.screen_to_complex(*anchor)
        self.scale = new_scale
        new_re, new_im = self.screen_to_complex(*anchor)

        self.center_re += world_re - new_re
        self.center_im += world_im - new_im
        return self._touch()

    def zoom_scroll(self, delta, anchor=None):
        """Zoom from a scroll-wheel delta (positive scrolls zoom in)."""
        if not math.isfinite(delta):
            return False
        return self.zoom(self.zoom_factor ** (-delta * self.zoom_sensitivity), anchor)

    def set_max_iterations(self, max_iterations):
        max_iterations = int(max_iterations)
        if not 1 <= max_iterations <= MAX_ITERATIONS_LIMIT:
            logger.debug("Rejected iteration cap %d", max_iterations)
            return False
        if max_iterations == self.max_iterations:
            return False
        self.max_iterations = max_iterations
        return self._touch()

    def adjust_iterations(self, factor):
        """Scale the iteration cap, e.g. 2 to double it or 0.5 to halve it."""
        return self.set_max_iterations(max(1, round(self.max_iterations * factor)))

    def reset(self):
        """Back to the startup view (viewport size is kept)."""
        max_iterations, center, scale = self._initial
        if (max_iterations, center, scale) == (
                self.max_iterations, (self.center_re, self.center_im), self.scale):
            return False
        self.max_iterations = max_iterations
        self.center_re, self.center_im = center
        self.scale = scale
        return self._touch()

    # ------------------------------------------------------------------
    # Drag gestures
    # ------------------------------------------------------------------

    def begin_drag(self, pos):
        self.dragging = True
        self.drag_last = pos

    def drag_to(self, pos):
        """Pan by the pointer movement since the previous drag position."""
        if not self.dragging or self.drag_last is None:
            return False
        dx = pos[0] - self.drag_last[0]
        dy = pos[1] - self.drag_last[1]
        self.drag_last = pos
        return self.pan(dx, dy)

    def end_drag(self):
        self.dragging = False
        self.drag_last = None

