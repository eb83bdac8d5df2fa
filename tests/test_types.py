"""Tests for shared types and numerical helpers."""

import numpy as np
import pytest

from image_acf.numerics import (
    fft_size_for_radius,
    is_zero_variance,
    next_power_of_two,
    normalize_to_zero_lag,
    radial_bin_count,
)
from image_acf.types import CurveFamily, RoiShape, SpacingScheme, StackMode, TemporalMode


def test_enum_parsing():
    """Test parsing of legacy display names."""
    assert RoiShape.parse("Circle") == RoiShape.CIRCLE
    assert SpacingScheme.parse("Power of 2") == SpacingScheme.POWER_OF_2
    assert SpacingScheme.parse("pow2") == SpacingScheme.POWER_OF_2
    assert TemporalMode.parse("ACF on pixels") == TemporalMode.PIXELS
    assert StackMode.parse(StackMode.ALL) is StackMode.ALL

    with pytest.raises(ValueError, match="Unknown SpacingScheme"):
        SpacingScheme.parse("logarithmic")


def test_curve_family_accessors():
    """Test per-point accessors and limits."""
    family = CurveFamily(
        x=np.array([0.0, 1.0, 2.0]),
        y=np.array([[1.0, 0.4, np.nan], [1.0, -0.2, 0.3]]),
        x_label="Time [picture]",
        y_label="AutoCorrelation",
        headings=["a", "b"],
    )

    assert family.n_curves == 2
    assert family.n_points == 3
    assert family.x_value(2) == 2.0
    assert family.y_value(1, 1) == pytest.approx(-0.2)
    assert family.limits() == (pytest.approx(-0.2), 1.0)
    assert family.curve(1).label == "b"


def test_limits_without_finite_values():
    """Test that all-NaN families report NaN limits."""
    family = CurveFamily(
        x=np.array([1.0]), y=np.array([[np.nan]]), x_label="", y_label="", headings=["a"]
    )
    low, high = family.limits()
    assert np.isnan(low) and np.isnan(high)


def test_sizes():
    """Test transform and bin sizes."""
    assert next_power_of_two(20) == 32
    assert next_power_of_two(1) == 4
    assert fft_size_for_radius(10) == 32
    assert fft_size_for_radius(16) == 32
    assert radial_bin_count(16) == 12


def test_zero_variance_detection():
    """Test absolute and relative zero-variance checks."""
    assert is_zero_variance(0.0)
    assert not is_zero_variance(np.nan)
    assert not is_zero_variance(1e-30)
    assert is_zero_variance(1e-30, reference_power=100.0)
    assert not is_zero_variance(1e-3, reference_power=100.0)


def test_normalize_to_zero_lag():
    """Test normalisation, flat curves and NaN propagation."""
    np.testing.assert_allclose(normalize_to_zero_lag([2.0, 1.0, -1.0], 2.0), [1.0, 0.5, -0.5])

    flat = normalize_to_zero_lag(np.array([0.0, 0.0, np.nan]), 0.0)
    np.testing.assert_array_equal(flat[:2], [1.0, 1.0])
    assert np.isnan(flat[2])

    assert np.isnan(normalize_to_zero_lag([1.0, 2.0], np.nan)).all()
