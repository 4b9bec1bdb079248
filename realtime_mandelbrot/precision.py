"""
Arithmetic strategies for the fractal kernel.

Single precision is enough for the overview and moderate zooms. Once the
visible window gets narrower than float32 can resolve between adjacent
pixels the image turns blocky, so deeper views switch to a wider format:

- SINGLE: native float32
- DOUBLE: native float64
- DOUBLE_SINGLE: emulated double, each value stored as an unevaluated
  float32 pair (hi, lo) with |lo| <= ulp(hi) / 2. Gives roughly 48 bits
  of mantissa on hardware that has no float64 at all.

The double-single primitives are the classic error-free transforms
(Knuth two-sum, Dekker split/two-product). They are compiled without
fastmath: reassociation or FMA contraction would destroy the error terms.
"""

import numpy as np
from numba import jit


SINGLE = 0
DOUBLE = 1
DOUBLE_SINGLE = 2

PRECISION_NAMES = {
    SINGLE: 'single',
    DOUBLE: 'double',
    DOUBLE_SINGLE: 'double-single',
}

# dtype of c and z for the native strategies
PRECISION_DTYPES = {
    SINGLE: np.float32,
    DOUBLE: np.float64,
}

# Below this scale float32 pixel spacing collapses (~1e-5 / 1000 px)
SINGLE_PRECISION_LIMIT = 1e-5


def select_precision(scale, prefer_emulated=False):
    """
    Pick the arithmetic strategy for the current zoom depth.

    Args:
        scale: Height of the visible window in the complex plane
        prefer_emulated: Use DOUBLE_SINGLE instead of DOUBLE for deep
            zooms (for devices without float64)

    Returns:
        SINGLE, DOUBLE or DOUBLE_SINGLE
    """
    if scale >= SINGLE_PRECISION_LIMIT:
        return SINGLE
    return DOUBLE_SINGLE if prefer_emulated else DOUBLE


def precision_from_name(name):
    """Inverse of PRECISION_NAMES; raises KeyError for unknown names."""
    for key, value in PRECISION_NAMES.items():
        if value == name:
            return key
    raise KeyError(name)


def split_double(value):
    """Split a Python float into a (hi, lo) float32 pair."""
    hi = np.float32(value)
    lo = np.float32(value - float(hi))
    return hi, lo


def split_array(values):
    """Vectorized split_double for a float64 array."""
    values = np.asarray(values, dtype=np.float64)
    hi = values.astype(np.float32)
    lo = (values - hi.astype(np.float64)).astype(np.float32)
    return hi, lo


@jit(nopython=True, cache=True)
def two_sum(a, b):
    """s + err == a + b exactly."""
    s = a + b
    bb = s - a
    err = (a - (s - bb)) + (b - bb)
    return s, err


@jit(nopython=True, cache=True)
def quick_two_sum(a, b):
    # requires |a| >= |b|
    s = a + b
    err = b - (s - a)
    return s, err


@jit(nopython=True, cache=True)
def split(a):
    """Dekker split of a float32 into two 12-bit halves."""
    t = np.float32(4097.0) * a
    hi = t - (t - a)
    lo = a - hi
    return hi, lo


@jit(nopython=True, cache=True)
def two_prod(a, b):
    """p + err == a * b exactly."""
    p = a * b
    a_hi, a_lo = split(a)
    b_hi, b_lo = split(b)
    err = ((a_hi * b_hi - p) + a_hi * b_lo + a_lo * b_hi) + a_lo * b_lo
    return p, err


@jit(nopython=True, cache=True)
def ds_add(a_hi, a_lo, b_hi, b_lo):
    s, e = two_sum(a_hi, b_hi)
    e = e + (a_lo + b_lo)
    return quick_two_sum(s, e)


@jit(nopython=True, cache=True)
def ds_mul(a_hi, a_lo, b_hi, b_lo):
    p, e = two_prod(a_hi, b_hi)
    e = e + (a_hi * b_lo + a_lo * b_hi)
    return quick_two_sum(p, e)


@jit(nopython=True, cache=True)
def ds_sqr(a_hi, a_lo):
    return ds_mul(a_hi, a_lo, a_hi, a_lo)


@jit(nopython=True, cache=True)
def ds_gt(a_hi, a_lo, b_hi, b_lo):
    """Compare two double-single values: a > b."""
    return a_hi > b_hi or (a_hi == b_hi and a_lo > b_lo)


@jit(nopython=True, cache=True)
def ds_from_double(value):
    hi = np.float32(value)
    lo = np.float32(value - np.float64(hi))
    return hi, lo


@jit(nopython=True, cache=True)
def ds_to_double(hi, lo):
    return np.float64(hi) + np.float64(lo)
