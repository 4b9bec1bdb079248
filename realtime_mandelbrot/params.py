"""
View parameters and their uniform-buffer layout.

ViewParameters is the immutable per-frame snapshot published by the
ParameterController and read by every kernel invocation of that frame.

The snapshot is marshaled into a fixed-order record before dispatch:

    {max_iterations: u32, scale, viewport_size: (u32, u32), center: (re, im)}

Three layouts exist, one per precision strategy. Fields are placed on
their natural alignment and every record is padded to a multiple of
16 bytes so the same bytes can be bound as a uniform buffer on any GPU
back-end:

    SINGLE         32 bytes  scale f32,        center vec2<f32>
    DOUBLE         48 bytes  scale f64,        center vec2<f64>
    DOUBLE_SINGLE  48 bytes  scale (hi, lo),   center (re_hi, re_lo, im_hi, im_lo)
"""

import math
from dataclasses import dataclass

import numpy as np

from .precision import SINGLE, DOUBLE, DOUBLE_SINGLE, split_double


class InvalidParameters(ValueError):
    """Raised when a ViewParameters instance breaks one of its invariants."""


UNIFORM_DTYPE_F32 = np.dtype({
    'names': ['max_iterations', 'scale', 'viewport_size', 'center'],
    'formats': ['<u4', '<f4', ('<u4', (2,)), ('<f4', (2,))],
    'offsets': [0, 4, 8, 16],
    'itemsize': 32,
})

UNIFORM_DTYPE_F64 = np.dtype({
    'names': ['max_iterations', 'scale', 'viewport_size', 'center'],
    'formats': ['<u4', '<f8', ('<u4', (2,)), ('<f8', (2,))],
    'offsets': [0, 8, 16, 32],
    'itemsize': 48,
})

# Emulated double: every double value travels as a (hi, lo) float32 pair
UNIFORM_DTYPE_DS = np.dtype({
    'names': ['max_iterations', 'scale', 'viewport_size', 'center'],
    'formats': ['<u4', ('<f4', (2,)), ('<u4', (2,)), ('<f4', (4,))],
    'offsets': [0, 8, 16, 32],
    'itemsize': 48,
})

UNIFORM_DTYPES = {
    SINGLE: UNIFORM_DTYPE_F32,
    DOUBLE: UNIFORM_DTYPE_F64,
    DOUBLE_SINGLE: UNIFORM_DTYPE_DS,
}


@dataclass(frozen=True)
class ViewParameters:
    """Camera state for one frame."""
    max_iterations: int
    scale: float
    viewport_size: tuple
    center: tuple
    version: int = 0

    @property
    def width(self):
        return self.viewport_size[0]

    @property
    def height(self):
        return self.viewport_size[1]

    @property
    def aspect_ratio(self):
        return self.viewport_size[0] / self.viewport_size[1]

    def validate(self):
        """
        Check every invariant, raising InvalidParameters on the first failure.

        Returns:
            self, so construction and validation can be chained
        """
        if int(self.max_iterations) <= 0:
            raise InvalidParameters(
                f"max_iterations must be > 0, got {self.max_iterations}")
        if not math.isfinite(self.scale) or self.scale <= 0:
            raise InvalidParameters(f"scale must be finite and > 0, got {self.scale}")
        if len(self.viewport_size) != 2 or min(self.viewport_size) < 1:
            raise InvalidParameters(
                f"viewport_size must be two values >= 1, got {self.viewport_size}")
        if len(self.center) != 2 or not all(math.isfinite(v) for v in self.center):
            raise InvalidParameters(f"center must be two finite values, got {self.center}")
        return self


def pack_uniform(params, precision):
    """
    Marshal a snapshot into the uniform record for a precision strategy.

    Args:
        params: ViewParameters to pack
        precision: SINGLE, DOUBLE or DOUBLE_SINGLE

    Returns:
        0-d numpy structured array; ``.tobytes()`` gives the buffer contents
    """
    record = np.zeros((), dtype=UNIFORM_DTYPES[precision])
    record['max_iterations'] = params.max_iterations
    record['viewport_size'] = params.viewport_size

    if precision == DOUBLE_SINGLE:
        record['scale'] = split_double(params.scale)
        re_hi, re_lo = split_double(params.center[0])
        im_hi, im_lo = split_double(params.center[1])
        record['center'] = (re_hi, re_lo, im_hi, im_lo)
    else:
        record['scale'] = params.scale
        record['center'] = params.center
    return record


def unpack_uniform(buffer, precision):
    """
    Decode a uniform record (or its raw bytes) back into ViewParameters.

    Values come back as the kernel sees them, i.e. rounded to the
    precision of the layout. The version is not part of the layout.
    """
    dtype = UNIFORM_DTYPES[precision]
    if isinstance(buffer, (bytes, bytearray, memoryview)):
        record = np.frombuffer(buffer, dtype=dtype, count=1)[0]
    else:
        record = buffer[()]

    if precision == DOUBLE_SINGLE:
        scale_hi, scale_lo = record['scale']
        re_hi, re_lo, im_hi, im_lo = record['center']
        scale = float(scale_hi) + float(scale_lo)
        center = (float(re_hi) + float(re_lo), float(im_hi) + float(im_lo))
    else:
        scale = float(record['scale'])
        center = (float(record['center'][0]), float(record['center'][1]))

    width, height = record['viewport_size']
    return ViewParameters(
        max_iterations=int(record['max_iterations']),
        scale=scale,
        viewport_size=(int(width), int(height)),
        center=center,
    )
