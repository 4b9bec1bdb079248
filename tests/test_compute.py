import math

import numpy as np
import pytest

from realtime_mandelbrot.compute import (
    ESCAPE_RADIUS_SQ,
    escape_time,
    escape_time_ds,
    evaluate_pixel,
    evaluate_point,
    render_rgba,
    sine_color,
    smooth_value,
)
from realtime_mandelbrot.params import ViewParameters
from realtime_mandelbrot.precision import SINGLE, DOUBLE, DOUBLE_SINGLE, split_double


ALL_PRECISIONS = [SINGLE, DOUBLE, DOUBLE_SINGLE]


def make_params(max_iterations=100, scale=3.0, size=(800, 600), center=(0.0, 0.0), version=0):
    return ViewParameters(max_iterations, scale, size, center, version)


@pytest.mark.parametrize("precision", ALL_PRECISIONS)
def test_viewport_center_of_origin_view_is_interior(precision):
    params = make_params(max_iterations=100, scale=3.0, size=(800, 600))
    result = evaluate_pixel(400, 300, params, precision)
    assert result.iterations == 100
    assert not result.escaped

    frame = render_rgba(params, precision)
    assert frame[300, 400].tolist() == [0.0, 0.0, 0.0, 1.0]


@pytest.mark.parametrize("precision", ALL_PRECISIONS)
def test_point_outside_set_escapes_quickly(precision):
    result = evaluate_point(2.0, 0.0, 100, precision)
    assert result.escaped
    # 2 -> 6 -> 38 -> 1446: |z|² first exceeds 65536 on the fourth step
    assert result.iterations == 3
    assert result.z_re2 + result.z_im2 > ESCAPE_RADIUS_SQ


@pytest.mark.parametrize("angle", np.linspace(0, 2 * math.pi, 13))
def test_points_beyond_radius_two_escape(angle):
    x, y = 2.1 * math.cos(angle), 2.1 * math.sin(angle)
    result = evaluate_point(x, y, 1000, DOUBLE)
    assert result.escaped
    assert result.iterations < 20


@pytest.mark.parametrize("c", [(0.0, 0.0), (-1.0, 0.0), (-0.1, 0.1), (-0.12, 0.75)])
@pytest.mark.parametrize("precision", ALL_PRECISIONS)
def test_interior_points_never_escape(c, precision):
    result = evaluate_point(c[0], c[1], 500, precision)
    assert result.iterations == 500
    assert not result.escaped


def test_periodicity_stops_superattracting_cycle_early():
    # c = -1 cycles 0 -> -1 -> 0; the repeat of the origin is detected
    # on the second step and reported as the full cap.
    iterations, zr2, zi2 = escape_time(-1.0, 0.0, 10 ** 9)
    assert iterations == 10 ** 9
    assert zr2 == 0.0 and zi2 == 0.0


def test_iterations_stay_within_bounds_over_a_frame():
    params = make_params(max_iterations=64, scale=3.0, size=(48, 32), center=(-0.5, 0.0))
    for py in range(0, 32, 3):
        for px in range(0, 48, 5):
            result = evaluate_pixel(px, py, params, SINGLE)
            assert 0 <= result.iterations <= 64
            assert result.escaped == (result.iterations < 64)


@pytest.mark.parametrize("precision", ALL_PRECISIONS)
def test_rendering_is_idempotent(precision):
    params = make_params(max_iterations=128, scale=2.5, size=(64, 48), center=(-0.6, 0.1))
    first = render_rgba(params, precision)
    second = render_rgba(params, precision)
    assert np.array_equal(first, second)
    assert evaluate_pixel(10, 20, params, precision) == evaluate_pixel(10, 20, params, precision)


@pytest.mark.parametrize("precision", ALL_PRECISIONS)
def test_single_pixel_matches_frame(precision):
    params = make_params(max_iterations=200, scale=0.05, size=(40, 30), center=(-0.745, 0.11))
    frame = render_rgba(params, precision)
    for px, py in [(0, 0), (39, 29), (17, 8), (25, 21)]:
        result = evaluate_pixel(px, py, params, precision)
        if result.escaped:
            t = smooth_value(result.iterations, result.z_re2 + result.z_im2, 200)
            expected = [math.sin(5 * t), math.sin(10 * t), math.sin(15 * t)]
            assert frame[py, px, :3] == pytest.approx(expected, abs=1e-6)
        else:
            assert frame[py, px, :3].tolist() == [0.0, 0.0, 0.0]
        assert frame[py, px, 3] == 1.0


def test_frame_shape_and_color_range():
    params = make_params(max_iterations=50, scale=3.0, size=(33, 17), center=(-0.5, 0.0))
    frame = render_rgba(params)
    assert frame.shape == (17, 33, 4)
    assert frame.dtype == np.float32
    assert frame[..., :3].min() >= -1.0
    assert frame[..., :3].max() <= 1.0
    assert np.all(frame[..., 3] == 1.0)
    # both the interior (black) and escaping points are present
    assert np.any(np.all(frame[..., :3] == 0.0, axis=-1))
    assert np.any(frame[..., :3] != 0.0)


def test_smooth_value_is_continuous_across_integer_boundaries():
    max_iter = 100
    # Escaping just past the radius at n and just below radius² at n + 1
    # describe almost the same escape depth.
    at_n = smooth_value(10, ESCAPE_RADIUS_SQ * (1 + 1e-9), max_iter)
    at_next = smooth_value(11, ESCAPE_RADIUS_SQ ** 2 * (1 - 1e-9), max_iter)
    assert abs(at_next - at_n) < 2.0 / max_iter
    assert abs(at_next - at_n) < 1e-6


def test_smooth_value_increases_with_depth():
    max_iter = 100
    deeper = smooth_value(20, 1e6, max_iter)
    shallower = smooth_value(20, 1e9, max_iter)
    assert deeper > shallower
    assert smooth_value(21, 1e9, max_iter) > shallower


def test_smooth_value_is_not_clamped():
    # t past 1 is passed through; the sine mapping wraps it
    t = smooth_value(150, 70000.0, 100)
    assert t > 1.0
    assert sine_color(t) == pytest.approx((math.sin(5 * t), math.sin(10 * t), math.sin(15 * t)))


def test_deep_zoom_needs_wider_precision():
    params = make_params(max_iterations=50, scale=1e-8, size=(32, 24), center=(0.5, 0.5))
    pixels = [(0, 0), (31, 0), (0, 23), (31, 23), (16, 12), (7, 19)]

    single = {evaluate_pixel(px, py, params, SINGLE).z_re2 for px, py in pixels}
    double = [evaluate_pixel(px, py, params, DOUBLE) for px, py in pixels]
    emulated = [evaluate_pixel(px, py, params, DOUBLE_SINGLE) for px, py in pixels]

    # float32 collapses the whole window onto one point
    assert len(single) == 1
    assert len({r.z_re2 for r in double}) == len(pixels)
    for d, e in zip(double, emulated):
        assert e.escaped and d.escaped
        assert e.iterations == d.iterations
        assert e.z_re2 == pytest.approx(d.z_re2, rel=1e-6)
    assert len({r.z_re2 for r in emulated}) == len(pixels)


def test_double_single_escape_time_for_split_coordinates():
    x_hi, x_lo = split_double(-0.75)
    y_hi, y_lo = split_double(0.1)
    iterations, _, _ = escape_time_ds(x_hi, x_lo, y_hi, y_lo, 1000)
    reference, _, _ = escape_time(-0.75, 0.1, 1000)
    assert abs(int(iterations) - int(reference)) <= 1
