import dataclasses
import math

import numpy as np
import pytest

from realtime_mandelbrot.params import (
    InvalidParameters,
    UNIFORM_DTYPES,
    ViewParameters,
    pack_uniform,
    unpack_uniform,
)
from realtime_mandelbrot.precision import SINGLE, DOUBLE, DOUBLE_SINGLE


def test_view_parameters_are_immutable():
    params = ViewParameters(100, 3.0, (800, 600), (0.0, 0.0))
    with pytest.raises(dataclasses.FrozenInstanceError):
        params.scale = 1.0


def test_aspect_ratio_and_size_accessors():
    params = ViewParameters(100, 3.0, (800, 600), (0.0, 0.0))
    assert params.width == 800
    assert params.height == 600
    assert params.aspect_ratio == pytest.approx(4 / 3)


@pytest.mark.parametrize("kwargs", [
    dict(max_iterations=0),
    dict(scale=0.0),
    dict(scale=-1.0),
    dict(scale=math.inf),
    dict(viewport_size=(0, 600)),
    dict(viewport_size=(800,)),
    dict(center=(math.nan, 0.0)),
    dict(center=(0.0, math.inf)),
])
def test_validate_rejects_broken_invariants(kwargs):
    values = dict(max_iterations=100, scale=3.0, viewport_size=(800, 600), center=(0.0, 0.0))
    values.update(kwargs)
    with pytest.raises(InvalidParameters):
        ViewParameters(**values).validate()


def test_validate_returns_instance():
    params = ViewParameters(100, 3.0, (800, 600), (0.0, 0.0))
    assert params.validate() is params


def test_uniform_layouts_are_16_byte_aligned():
    for dtype in UNIFORM_DTYPES.values():
        assert dtype.itemsize % 16 == 0
    assert UNIFORM_DTYPES[SINGLE].itemsize == 32
    assert UNIFORM_DTYPES[DOUBLE].itemsize == 48
    assert UNIFORM_DTYPES[DOUBLE].fields['center'][1] == 32


def test_single_layout_bytes():
    params = ViewParameters(256, 3.0, (800, 600), (-0.5, 0.25))
    buf = pack_uniform(params, SINGLE).tobytes()
    assert len(buf) == 32
    assert np.frombuffer(buf[0:4], '<u4')[0] == 256
    assert np.frombuffer(buf[4:8], '<f4')[0] == np.float32(3.0)
    assert list(np.frombuffer(buf[8:16], '<u4')) == [800, 600]
    assert list(np.frombuffer(buf[16:24], '<f4')) == [-0.5, 0.25]
    assert buf[24:] == b'\x00' * 8


@pytest.mark.parametrize("precision", [SINGLE, DOUBLE, DOUBLE_SINGLE])
def test_unpack_reads_back_packed_values(precision):
    params = ViewParameters(500, 0.125, (640, 480), (-0.75, 0.5), version=7)
    record = pack_uniform(params, precision)
    for source in (record, record.tobytes()):
        decoded = unpack_uniform(source, precision)
        assert decoded == dataclasses.replace(params, version=0)


def test_single_layout_rounds_to_float32():
    params = ViewParameters(100, 1e-7, (10, 10), (0.1, -0.2))
    decoded = unpack_uniform(pack_uniform(params, SINGLE), SINGLE)
    assert decoded.center[0] == float(np.float32(0.1))
    assert decoded.center[0] != 0.1


def test_double_single_layout_keeps_extra_bits():
    center = (-0.743643887037151, 0.131825904205330)
    params = ViewParameters(100, 1e-10, (10, 10), center)
    decoded = unpack_uniform(pack_uniform(params, DOUBLE_SINGLE), DOUBLE_SINGLE)
    assert decoded.center[0] == pytest.approx(center[0], abs=1e-14)
    assert decoded.center[1] == pytest.approx(center[1], abs=1e-14)
    assert decoded.scale == pytest.approx(1e-10, rel=1e-12)
