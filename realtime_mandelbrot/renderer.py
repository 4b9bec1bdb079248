"""
Frame renderer: dispatches the kernel for a published snapshot.

The FrameRenderer class handles:
- Choosing the backend (Numba CPU kernel, or PyTorch when a CUDA GPU is
  present)
- Choosing the arithmetic strategy from the snapshot's zoom depth, and
  falling back to Numba when the torch device cannot run it
- Skipping work when the same snapshot version is rendered twice
- Turning the raw RGBA frame into displayable 8-bit RGB

Rendering is synchronous: render() returns once every pixel of the frame
has been written. Input that arrives meanwhile goes into the next snapshot.
"""

import logging
import time

import numpy as np

from .compute import render_rgba
from .compute_gpu import TORCH_AVAILABLE, get_gpu_compute, is_gpu_available, should_default_to_gpu
from .precision import PRECISION_NAMES, select_precision

logger = logging.getLogger(__name__)


COLOR_MODES = ('clamp', 'remap')


def frame_to_rgb8(frame, color_mode='clamp'):
    """
    Convert a raw RGBA frame to uint8 RGB.

    The sine mapping yields channels in [-1, 1]. 'clamp' cuts negatives to
    0, as a unorm render target would; 'remap' uses (v + 1) / 2 instead.
    Alpha is dropped.

    Args:
        frame: float array (height, width, 4)
        color_mode: 'clamp' or 'remap'

    Returns:
        uint8 array (height, width, 3)
    """
    rgb = frame[..., :3]
    if color_mode == 'clamp':
        rgb = np.clip(rgb, 0.0, 1.0)
    elif color_mode == 'remap':
        rgb = (np.clip(rgb, -1.0, 1.0) + 1.0) * 0.5
    else:
        raise ValueError(f"Unknown color mode {color_mode!r}, expected one of {COLOR_MODES}")
    return np.round(rgb * 255.0).astype(np.uint8)


class FrameRenderer:
    """
    Renders ViewParameters snapshots.

    Usage:
        renderer = FrameRenderer()
        frame = renderer.render(controller.snapshot())
        rgb = renderer.to_rgb8(frame)

    Attributes:
        use_gpu: Whether frames go to the torch backend when it can run them
        color_mode: 'clamp' or 'remap', see frame_to_rgb8
        prefer_emulated: Deep zooms use double-single instead of double
        last_frame_ms: Wall time of the last kernel dispatch
        last_precision: Strategy used for the last frame
        last_backend: 'numba' or 'torch'
    """

    def __init__(self, use_gpu=None, color_mode='clamp', prefer_emulated=False):
        """
        Initialize the renderer.

        Args:
            use_gpu: Whether to use GPU acceleration (None = auto-detect)
            color_mode: Conversion policy for to_rgb8
            prefer_emulated: Pick double-single for deep zooms
        """
        if color_mode not in COLOR_MODES:
            raise ValueError(f"Unknown color mode {color_mode!r}, expected one of {COLOR_MODES}")
        self.color_mode = color_mode
        self.prefer_emulated = prefer_emulated

        if use_gpu is None:
            # Only default to GPU for CUDA; MPS is slower than Numba for typical frames
            use_gpu = should_default_to_gpu()
        self.use_gpu = bool(use_gpu) and is_gpu_available()
        if use_gpu and not self.use_gpu:
            logger.warning("GPU requested but not available, using the Numba kernel")
        self._gpu_compute = get_gpu_compute(prefer_gpu=True) if self.use_gpu else None

        self._frame = None
        self._frame_version = None
        self._fallback_logged = set()

        self.last_frame_ms = 0.0
        self.last_precision = None
        self.last_backend = None

    def render(self, params):
        """
        Render a snapshot, or return the cached frame if its version was
        already rendered.

        Returns:
            float32 array (height, width, 4) of raw RGBA
        """
        # version 0 marks a snapshot that was never published, never cached
        if self._frame is not None and params.version == self._frame_version and params.version:
            return self._frame

        precision = select_precision(params.scale, self.prefer_emulated)
        start = time.perf_counter()

        if self.use_gpu and self._gpu_compute.supports(precision):
            frame = self._gpu_compute.render_rgba(params, precision)
            self.last_backend = 'torch'
        else:
            if self.use_gpu and precision not in self._fallback_logged:
                self._fallback_logged.add(precision)
                logger.info("%s cannot run %s precision, using the Numba kernel",
                            self._gpu_compute.get_device_info(), PRECISION_NAMES[precision])
            frame = render_rgba(params, precision)
            self.last_backend = 'numba'

        self.last_frame_ms = (time.perf_counter() - start) * 1000.0
        self.last_precision = precision
        self._frame = frame
        self._frame_version = params.version
        logger.debug("Frame v%d %dx%d %s/%s in %.1f ms", params.version,
                     params.width, params.height, self.last_backend,
                     PRECISION_NAMES[precision], self.last_frame_ms)
        return frame

    def to_rgb8(self, frame):
        return frame_to_rgb8(frame, self.color_mode)

    def invalidate(self):
        """Forget the cached frame so the next render always dispatches."""
        self._frame_version = None

    def get_gpu_info(self):
        """
        Get information about GPU status.

        Returns:
            dict with keys 'available', 'enabled' and 'device'
        """
        if not TORCH_AVAILABLE:
            return {
                'available': False,
                'enabled': False,
                'device': 'PyTorch not installed'
            }
        gpu_compute = get_gpu_compute(prefer_gpu=True)
        return {
            'available': gpu_compute.is_gpu,
            'enabled': self.use_gpu,
            'device': gpu_compute.get_device_info()
        }

    def toggle_gpu(self):
        """
        Toggle GPU acceleration on/off.

        Returns:
            bool: New GPU enabled state
        """
        if not is_gpu_available():
            return False
        self.use_gpu = not self.use_gpu
        if self.use_gpu and self._gpu_compute is None:
            self._gpu_compute = get_gpu_compute(prefer_gpu=True)
        self.invalidate()
        logger.info("GPU backend %s", "enabled" if self.use_gpu else "disabled")
        return self.use_gpu
