"""
Real-time Mandelbrot Set Viewer Package

Every frame is recomputed from scratch at full resolution while you pan
and zoom. Pygame handles the window, a Numba JIT kernel (or PyTorch on a
CUDA GPU) evaluates each pixel.

Quick Start:
    from realtime_mandelbrot import run
    run()

Or from command line:
    python -m realtime_mandelbrot

Package Structure:
    - params.py: ViewParameters snapshot and its uniform-buffer layouts
    - precision.py: single / double / emulated double-single arithmetic
    - transform.py: pixel <-> complex plane mapping
    - compute.py: JIT-compiled escape-time kernel and smooth coloring
    - compute_gpu.py: PyTorch version of the kernel
    - controller.py: view state and input handling
    - renderer.py: backend selection and frame conversion
    - config.py: settings.json loading
    - app.py: Main application and event loop

Controls:
    - Scroll: Zoom in/out at mouse position
    - Drag: Pan around
    - + / -: Double / halve the iteration cap
    - G: Toggle GPU backend
    - R: Reset to default view
    - ESC: Quit
"""

from .app import run, MandelbrotApp
from .controller import ParameterController
from .params import ViewParameters, InvalidParameters
from .renderer import FrameRenderer

__version__ = "1.0.0"
__all__ = [
    "run",
    "MandelbrotApp",
    "ParameterController",
    "ViewParameters",
    "InvalidParameters",
    "FrameRenderer",
]
