import numpy as np
import pytest

from realtime_mandelbrot.precision import (
    SINGLE,
    DOUBLE,
    DOUBLE_SINGLE,
    SINGLE_PRECISION_LIMIT,
    PRECISION_NAMES,
    ds_add,
    ds_from_double,
    ds_gt,
    ds_mul,
    ds_sqr,
    ds_to_double,
    precision_from_name,
    select_precision,
    split_array,
    split_double,
    two_prod,
    two_sum,
)


def ds(value):
    return split_double(value)


def test_select_precision_by_zoom_depth():
    assert select_precision(3.0) == SINGLE
    assert select_precision(SINGLE_PRECISION_LIMIT) == SINGLE
    assert select_precision(SINGLE_PRECISION_LIMIT / 2) == DOUBLE
    assert select_precision(1e-9, prefer_emulated=True) == DOUBLE_SINGLE
    assert select_precision(1.0, prefer_emulated=True) == SINGLE


def test_precision_names_round_trip():
    for precision, name in PRECISION_NAMES.items():
        assert precision_from_name(name) == precision
    with pytest.raises(KeyError):
        precision_from_name('quad')


def test_split_double_keeps_more_bits_than_float32():
    value = 0.1
    hi, lo = split_double(value)
    assert hi.dtype == np.float32 and lo.dtype == np.float32
    assert float(hi) != value
    assert abs(float(hi) + float(lo) - value) < 1e-15
    assert (float(hi), float(lo)) == tuple(float(v) for v in ds_from_double(value))


def test_split_array_matches_scalar_split():
    values = np.array([0.1, -0.743643887037151, 1e-9, 2.0])
    hi, lo = split_array(values)
    for i, v in enumerate(values):
        assert (hi[i], lo[i]) == split_double(v)


def test_two_sum_and_two_prod_are_exact():
    a, b = np.float32(1.0), np.float32(1e-8)
    s, err = two_sum(a, b)
    assert float(s) + float(err) == pytest.approx(1.0 + float(b), abs=1e-16)

    a, b = np.float32(1.1), np.float32(3.3)
    p, err = two_prod(a, b)
    assert float(p) + float(err) == float(a) * float(b)


def test_ds_add_and_mul_track_double_precision():
    x, y = 0.1234567890123, -0.98765432109876
    s = ds_to_double(*ds_add(*ds(x), *ds(y)))
    p = ds_to_double(*ds_mul(*ds(x), *ds(y)))
    q = ds_to_double(*ds_sqr(*ds(x)))
    # float32 alone is good to ~1e-7
    assert s == pytest.approx(x + y, rel=1e-13)
    assert p == pytest.approx(x * y, rel=1e-13)
    assert q == pytest.approx(x * x, rel=1e-13)


def test_ds_gt_compares_low_words():
    hi, lo = ds(1.0)
    bigger = ds_add(hi, lo, *ds(1e-12))
    assert ds_gt(*bigger, hi, lo)
    assert not ds_gt(hi, lo, *bigger)
    assert not ds_gt(hi, lo, hi, lo)
