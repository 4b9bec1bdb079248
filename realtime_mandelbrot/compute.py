"""
Mandelbrot escape-time kernel using Numba JIT compilation.

This module contains the performance-critical per-pixel evaluator. Every
pixel is an independent invocation: it reads the frame's parameter
snapshot, iterates z -> z² + c, and writes one RGBA color. Rows are
spread over cores with ``prange``; nothing is shared between pixels.

Per pixel:
- Escape test against |z|² > 65536 (radius 256, large enough for
  accurate smooth coloring)
- Periodicity check: the orbit is compared bit-for-bit with a reference
  point refreshed every 20 iterations; an exact repeat means the point is
  bounded and the loop stops early
- Smooth coloring: t = (n + 1 - log2(log2 |z|²)) / max_iter mapped to
  (sin 5t, sin 10t, sin 15t). Interior points are black.

Arithmetic follows the precision strategy of the frame (see precision.py):
the native kernel is specialised by Numba for float32 and float64 inputs,
the double-single kernel works on (hi, lo) float32 pairs.
"""

import math
from collections import namedtuple

import numpy as np
from numba import jit, prange

from .params import pack_uniform, unpack_uniform
from .precision import (
    SINGLE,
    DOUBLE_SINGLE,
    PRECISION_DTYPES,
    select_precision,
    split_array,
    ds_add,
    ds_mul,
    ds_sqr,
    ds_gt,
)
from .transform import pixel_to_complex, pixel_axes


ESCAPE_RADIUS_SQ = 65536.0
PERIOD_CHECK_INTERVAL = 20

KernelResult = namedtuple('KernelResult', ['iterations', 'z_re2', 'z_im2', 'escaped'])


@jit(nopython=True, cache=True)
def escape_time(x, y, max_iter):
    """
    Iterate z² + c for c = (x, y) in the precision of x and y.

    Doubling is done as a sum and zero as a difference so no float64
    literal ever promotes a float32 orbit.

    Returns:
        (iterations, z_re2, z_im2). iterations == max_iter means the
        point never escaped (or was proven periodic).
    """
    zr = x - x
    zi = zr
    zr2 = zr
    zi2 = zr
    old_re = zr
    old_im = zr
    period = 0
    iteration = 0

    while iteration < max_iter:
        zi = zr * zi
        zi = zi + zi + y
        zr = zr2 - zi2 + x
        zr2 = zr * zr
        zi2 = zi * zi

        if zr2 + zi2 > ESCAPE_RADIUS_SQ:
            break

        if zr == old_re and zi == old_im:
            iteration = max_iter
            break

        period += 1
        if period >= PERIOD_CHECK_INTERVAL:
            period = 0
            old_re = zr
            old_im = zi

        iteration += 1

    return iteration, zr2, zi2


@jit(nopython=True, cache=True)
def escape_time_ds(x_hi, x_lo, y_hi, y_lo, max_iter):
    """
    escape_time in emulated double-single arithmetic.

    Returns:
        (iterations, z_re2, z_im2) with the squares collapsed to float64
    """
    zero = x_hi - x_hi
    zr_hi, zr_lo = zero, zero
    zi_hi, zi_lo = zero, zero
    zr2_hi, zr2_lo = zero, zero
    zi2_hi, zi2_lo = zero, zero
    old_re_hi, old_re_lo = zero, zero
    old_im_hi, old_im_lo = zero, zero
    radius = np.float32(ESCAPE_RADIUS_SQ)
    period = 0
    iteration = 0

    while iteration < max_iter:
        p_hi, p_lo = ds_mul(zr_hi, zr_lo, zi_hi, zi_lo)
        zi_hi, zi_lo = ds_add(p_hi + p_hi, p_lo + p_lo, y_hi, y_lo)
        d_hi, d_lo = ds_add(zr2_hi, zr2_lo, -zi2_hi, -zi2_lo)
        zr_hi, zr_lo = ds_add(d_hi, d_lo, x_hi, x_lo)
        zr2_hi, zr2_lo = ds_sqr(zr_hi, zr_lo)
        zi2_hi, zi2_lo = ds_sqr(zi_hi, zi_lo)

        m_hi, m_lo = ds_add(zr2_hi, zr2_lo, zi2_hi, zi2_lo)
        if ds_gt(m_hi, m_lo, radius, zero):
            break

        if (zr_hi == old_re_hi and zr_lo == old_re_lo
                and zi_hi == old_im_hi and zi_lo == old_im_lo):
            iteration = max_iter
            break

        period += 1
        if period >= PERIOD_CHECK_INTERVAL:
            period = 0
            old_re_hi, old_re_lo = zr_hi, zr_lo
            old_im_hi, old_im_lo = zi_hi, zi_lo

        iteration += 1

    zr2 = np.float64(zr2_hi) + np.float64(zr2_lo)
    zi2 = np.float64(zi2_hi) + np.float64(zi2_lo)
    return iteration, zr2, zi2


@jit(nopython=True, cache=True)
def smooth_value(iteration, mag2, max_iter):
    """Continuous escape estimate normalised by max_iter (not clamped)."""
    smooth_iter = iteration + 1 - math.log2(math.log2(mag2))
    return smooth_iter / max_iter


@jit(nopython=True, cache=True)
def sine_color(t):
    return math.sin(5.0 * t), math.sin(10.0 * t), math.sin(15.0 * t)


@jit(nopython=True, cache=True)
def write_color(out, py, px, iteration, mag2, max_iter):
    if iteration >= max_iter:
        out[py, px, 0] = 0.0
        out[py, px, 1] = 0.0
        out[py, px, 2] = 0.0
    else:
        r, g, b = sine_color(smooth_value(iteration, mag2, max_iter))
        out[py, px, 0] = r
        out[py, px, 1] = g
        out[py, px, 2] = b
    out[py, px, 3] = 1.0


@jit(nopython=True, parallel=True, cache=True)
def shade_grid(xs, ys, max_iter, out):
    """
    Evaluate every pixel of the frame.

    Args:
        xs: Real part per column (float32 or float64)
        ys: Imaginary part per row, same dtype as xs
        max_iter: Iteration cap
        out: float32 array (len(ys), len(xs), 4), written in place
    """
    height = ys.shape[0]
    width = xs.shape[0]
    for py in prange(height):
        y = ys[py]
        for px in range(width):
            iteration, zr2, zi2 = escape_time(xs[px], y, max_iter)
            write_color(out, py, px, iteration, np.float64(zr2) + np.float64(zi2), max_iter)


@jit(nopython=True, parallel=True, cache=True)
def shade_grid_ds(xs_hi, xs_lo, ys_hi, ys_lo, max_iter, out):
    """shade_grid for double-single coordinates."""
    height = ys_hi.shape[0]
    width = xs_hi.shape[0]
    for py in prange(height):
        y_hi = ys_hi[py]
        y_lo = ys_lo[py]
        for px in range(width):
            iteration, zr2, zi2 = escape_time_ds(xs_hi[px], xs_lo[px], y_hi, y_lo, max_iter)
            write_color(out, py, px, iteration, zr2 + zi2, max_iter)


def kernel_view(params, precision):
    """The snapshot as the kernel reads it: packed, then decoded."""
    return unpack_uniform(pack_uniform(params, precision), precision)


def render_rgba(params, precision=None, out=None):
    """
    Render one full frame.

    Args:
        params: ViewParameters snapshot for this frame
        precision: Arithmetic strategy (default: picked from params.scale)
        out: Optional float32 (height, width, 4) buffer to reuse

    Returns:
        float32 array (height, width, 4) of raw RGBA. Color channels lie in
        [-1, 1] straight from the sine mapping; row 0 is the top of the screen.
    """
    if precision is None:
        precision = select_precision(params.scale)

    view = kernel_view(params, precision)
    width, height = view.viewport_size
    if out is None or out.shape != (height, width, 4):
        out = np.empty((height, width, 4), dtype=np.float32)

    xs, ys = pixel_axes(width, height, view.scale, view.center[0], view.center[1])
    if precision == DOUBLE_SINGLE:
        xs_hi, xs_lo = split_array(xs)
        ys_hi, ys_lo = split_array(ys)
        shade_grid_ds(xs_hi, xs_lo, ys_hi, ys_lo, view.max_iterations, out)
    else:
        dtype = PRECISION_DTYPES[precision]
        shade_grid(xs.astype(dtype), ys.astype(dtype), view.max_iterations, out)
    return out


def evaluate_pixel(px, py, params, precision=None):
    """
    Run the kernel for a single pixel.

    Uses the same snapshot decoding and coordinate transform as
    render_rgba, so the result matches the corresponding frame pixel.

    Returns:
        KernelResult(iterations, z_re2, z_im2, escaped)
    """
    if precision is None:
        precision = select_precision(params.scale)

    view = kernel_view(params, precision)
    width, height = view.viewport_size
    x, y = pixel_to_complex(px, py, width, height, view.scale,
                            view.center[0], view.center[1])
    return evaluate_point(x, y, view.max_iterations, precision)


def evaluate_point(x, y, max_iter, precision=SINGLE):
    """Run the kernel for a complex point c = (x, y)."""
    if precision == DOUBLE_SINGLE:
        (x_hi,), (x_lo,) = split_array([x])
        (y_hi,), (y_lo,) = split_array([y])
        iteration, zr2, zi2 = escape_time_ds(x_hi, x_lo, y_hi, y_lo, max_iter)
    else:
        dtype = PRECISION_DTYPES[precision]
        iteration, zr2, zi2 = escape_time(dtype(x), dtype(y), max_iter)
    return KernelResult(int(iteration), float(zr2), float(zi2), bool(iteration < max_iter))


def warmup_jit():
    """
    Compile every kernel specialisation on a tiny frame.

    Call this once at startup to avoid a stall on the first real frame
    and on the first switch to a deeper precision.
    """
    out = np.empty((4, 4, 4), dtype=np.float32)
    for dtype in (np.float32, np.float64):
        axis = np.linspace(-2, 1, 4).astype(dtype)
        shade_grid(axis, axis, 10, out)
    hi, lo = split_array(np.linspace(-2, 1, 4))
    shade_grid_ds(hi, lo, hi, lo, 10, out)
