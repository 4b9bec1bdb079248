"""
Screen <-> complex plane coordinate transform.

A pixel (px, py) inside a width x height viewport maps to

    x = (px / width  - 0.5) * scale * aspect_ratio + center_re
    y = (py / height - 0.5) * scale                + center_im

Screen y grows downward, and so does the imaginary axis. The transform is
affine in each axis, so the controller can run it backwards to turn a
pointer position or drag delta into complex-plane units.
"""

import numpy as np


def pixel_to_complex(px, py, width, height, scale, center_re, center_im):
    """Map a pixel position to the complex point it samples."""
    aspect_ratio = width / height
    x = (px / width - 0.5) * scale * aspect_ratio + center_re
    y = (py / height - 0.5) * scale + center_im
    return x, y


def complex_to_pixel(x, y, width, height, scale, center_re, center_im):
    """Inverse of pixel_to_complex."""
    aspect_ratio = width / height
    px = ((x - center_re) / (scale * aspect_ratio) + 0.5) * width
    py = ((y - center_im) / scale + 0.5) * height
    return px, py


def delta_to_complex(dx, dy, width, height, scale):
    """Convert a screen-space displacement into a complex-plane displacement."""
    return dx / width * scale * (width / height), dy / height * scale


def pixel_axes(width, height, scale, center_re, center_im):
    """
    Complex coordinates of every pixel column and row.

    The transform is separable, so the full grid is the outer product of
    one x value per column and one y value per row. Evaluated in float64
    with the same operation order as pixel_to_complex, so a pixel taken
    from the grid is bit-identical to a pixel transformed on its own.

    Returns:
        (xs, ys): float64 arrays of length width and height
    """
    aspect_ratio = width / height
    xs = (np.arange(width, dtype=np.float64) / width - 0.5) * scale * aspect_ratio + center_re
    ys = (np.arange(height, dtype=np.float64) / height - 0.5) * scale + center_im
    return xs, ys
