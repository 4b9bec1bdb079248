"""
GPU-accelerated Mandelbrot frames using PyTorch.

This module provides a tensor version of the escape-time kernel. It
auto-detects available hardware:
- CUDA (NVIDIA GPUs)
- MPS (Apple Silicon)
- CPU fallback via PyTorch

Every pixel is an element of the same tensors, so one loop iteration
advances the whole frame. Pixels that escape or are proven periodic are
frozen with a mask; the loop exits early once no pixel is still active.

Usage:
    from compute_gpu import get_gpu_compute

    gpu = get_gpu_compute()
    if gpu.available and gpu.supports(precision):
        frame = gpu.render_rgba(params, precision)
"""

import logging

from .compute import ESCAPE_RADIUS_SQ, PERIOD_CHECK_INTERVAL, kernel_view
from .params import ViewParameters
from .precision import SINGLE, DOUBLE
from .transform import pixel_axes

try:
    import torch
    TORCH_AVAILABLE = True
except ImportError:
    TORCH_AVAILABLE = False
    torch = None

logger = logging.getLogger(__name__)


class GPUCompute:
    """
    Tensor implementation of the fractal kernel.

    Automatically detects and uses the best available device:
    - CUDA for NVIDIA GPUs, with float64 support
    - MPS for Apple Silicon, float32 only
    - CPU as fallback (still vectorized)

    Double-single emulation is not implemented here; frames that need it
    are rendered by the Numba kernel instead.
    """

    # Test for remaining active pixels every N iterations
    ACTIVE_CHECK_INTERVAL = 16

    def __init__(self, prefer_gpu=True):
        """
        Initialize GPU compute.

        Args:
            prefer_gpu: If False, force CPU even if GPU available
        """
        self.available = TORCH_AVAILABLE
        self.device = None
        self.device_name = "None"
        self.is_gpu = False
        self.is_cuda = False
        self.has_float64 = False

        if not TORCH_AVAILABLE:
            return

        if prefer_gpu and torch.cuda.is_available():
            self.device = torch.device("cuda")
            self.device_name = torch.cuda.get_device_name(0)
            self.is_gpu = True
            self.is_cuda = True
            self.has_float64 = True
        elif prefer_gpu and hasattr(torch.backends, 'mps') and torch.backends.mps.is_available():
            self.device = torch.device("mps")
            self.device_name = "Apple Silicon GPU (MPS)"
            self.is_gpu = True
        else:
            self.device = torch.device("cpu")
            self.device_name = "CPU (PyTorch)"
            self.has_float64 = True

        logger.info("Torch backend on %s", self.get_device_info())

    def get_device_info(self):
        """Return a string describing the compute device."""
        if not self.available:
            return "PyTorch not available"
        return f"{self.device_name} [{self.device}]"

    def supports(self, precision):
        """Whether this device can run a precision strategy natively."""
        if not self.available:
            return False
        if precision == SINGLE:
            return True
        if precision == DOUBLE:
            return self.has_float64
        return False

    def _dtype(self, precision):
        return torch.float64 if precision == DOUBLE else torch.float32

    def escape_time(self, cr, ci, max_iter):
        """
        Run the escape-time iteration on whole tensors of c values.

        Every still-active pixel has executed the same number of
        iterations, so the periodicity counter is shared by the frame.

        Returns:
            (iterations, mag2): int64 tensor of escape counts (max_iter for
            bounded points) and |z|² at the moment of escape
        """
        zr = torch.zeros_like(cr)
        zi = torch.zeros_like(ci)
        zr2 = torch.zeros_like(cr)
        zi2 = torch.zeros_like(ci)
        old_re = torch.zeros_like(cr)
        old_im = torch.zeros_like(ci)
        mag2 = torch.zeros_like(cr)

        iterations = torch.full(cr.shape, max_iter, device=self.device, dtype=torch.int64)
        active = torch.ones(cr.shape, device=self.device, dtype=torch.bool)
        period = 0

        for iteration in range(max_iter):
            new_zi = zr * zi
            new_zi = new_zi + new_zi + ci
            new_zr = zr2 - zi2 + cr
            zr = torch.where(active, new_zr, zr)
            zi = torch.where(active, new_zi, zi)
            zr2 = zr * zr
            zi2 = zi * zi

            current = zr2 + zi2
            escaped = active & (current > ESCAPE_RADIUS_SQ)
            iterations = torch.where(escaped, torch.full_like(iterations, iteration), iterations)
            mag2 = torch.where(escaped, current, mag2)
            active = active & ~escaped

            # Periodic pixels keep iterations == max_iter
            periodic = active & (zr == old_re) & (zi == old_im)
            active = active & ~periodic

            period += 1
            if period >= PERIOD_CHECK_INTERVAL:
                period = 0
                old_re = zr.clone()
                old_im = zi.clone()

            if (iteration + 1) % self.ACTIVE_CHECK_INTERVAL == 0 and not active.any():
                break

        return iterations, mag2

    def render_rgba(self, params, precision=SINGLE):
        """
        Render one frame on the torch device.

        Args:
            params: ViewParameters snapshot
            precision: SINGLE, or DOUBLE when the device has float64

        Returns:
            float32 numpy array (height, width, 4) of raw RGBA, same
            layout and color mapping as compute.render_rgba
        """
        if not self.available:
            raise RuntimeError("PyTorch not available")
        if not self.supports(precision):
            raise RuntimeError(
                f"{self.get_device_info()} cannot run precision {precision}")

        view = kernel_view(params, precision)
        width, height = view.viewport_size
        max_iter = view.max_iterations
        dtype = self._dtype(precision)

        xs, ys = pixel_axes(width, height, view.scale, view.center[0], view.center[1])
        x = torch.from_numpy(xs).to(device=self.device, dtype=dtype)
        y = torch.from_numpy(ys).to(device=self.device, dtype=dtype)
        ci, cr = torch.meshgrid(y, x, indexing='ij')  # Shape: (height, width)

        iterations, mag2 = self.escape_time(cr.contiguous(), ci.contiguous(), max_iter)

        escaped = iterations < max_iter
        safe_mag2 = torch.where(escaped, mag2, torch.full_like(mag2, 4.0))
        t = (iterations.to(dtype) + 1 - torch.log2(torch.log2(safe_mag2))) / max_iter

        rgba = torch.zeros((height, width, 4), device=self.device, dtype=torch.float32)
        for channel, frequency in enumerate((5.0, 10.0, 15.0)):
            rgba[..., channel] = torch.where(
                escaped, torch.sin(frequency * t), torch.zeros_like(t)
            ).to(torch.float32)
        rgba[..., 3] = 1.0

        return rgba.cpu().numpy()

    def warmup(self):
        """Run a tiny frame so the first real frame has no setup stall."""
        if not self.available:
            return
        _ = self.render_rgba(ViewParameters(16, 3.0, (8, 8), (-0.5, 0.0)), SINGLE)
        if self.device.type == 'cuda':
            torch.cuda.synchronize()


# Global instance for easy access
_gpu_compute = None


def get_gpu_compute(prefer_gpu=True):
    """
    Get the global GPU compute instance.

    Creates the instance on first call.
    """
    global _gpu_compute
    if _gpu_compute is None:
        _gpu_compute = GPUCompute(prefer_gpu=prefer_gpu)
    return _gpu_compute


def is_gpu_available():
    """Check if GPU acceleration is available."""
    return TORCH_AVAILABLE and get_gpu_compute().is_gpu


def should_default_to_gpu():
    """
    Check if GPU should be enabled by default.

    Only CUDA is a clear win; the Numba CPU kernel is usually faster than
    MPS for interactive frame sizes and also covers every precision.
    """
    if not TORCH_AVAILABLE:
        return False
    return get_gpu_compute().is_cuda
