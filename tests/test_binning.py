"""Tests for radial binning."""

import numpy as np
import pytest

from image_acf.binning import Accumulator, RadialBinner


def test_bin_count():
    """Test that the bin count is floor(3/4 of the radius)."""
    assert RadialBinner(16).n_bins == 12
    assert RadialBinner(10).n_bins == 7
    assert RadialBinner(4).n_bins == 3


def test_radius_too_small():
    """Test error handling for radii that produce no bin."""
    with pytest.raises(ValueError, match="too small"):
        RadialBinner(1.0)

    with pytest.raises(ValueError, match="must be positive"):
        RadialBinner(0.0)


def test_bin_indices_fold_first_bin():
    """Test that radii of the first two raw bins share output bin 0."""
    binner = RadialBinner(4)  # 3 bins of width 4/3

    indices = binner.bin_indices(np.array([0.0, 1.0, 1.5, 2.0, 3.0, 3.9, 4.0, 5.4]))

    np.testing.assert_array_equal(indices, [0, 0, 0, 0, 1, 1, 2, -1])


def test_bin_indices_reject_nan():
    """Test that non-finite radii are rejected."""
    binner = RadialBinner(4)
    indices = binner.bin_indices(np.array([np.nan, np.inf, 1.0]))
    np.testing.assert_array_equal(indices, [-1, -1, 0])


def test_bin_centers():
    """Test x axis of a radial curve."""
    binner = RadialBinner(4)
    np.testing.assert_allclose(binner.bin_centers(), [4 / 3, 8 / 3, 4.0])
    np.testing.assert_allclose(binner.bin_centers(pixel_size=0.5), [2 / 3, 4 / 3, 2.0])


def test_accumulate_and_finalize():
    """Test per-bin means and NaN for empty bins."""
    binner = RadialBinner(4)
    acc = binner.accumulate(np.array([0.5, 1.0, 3.0]), np.array([2.0, 4.0, 7.0]))

    np.testing.assert_array_equal(acc.counts, [2, 1, 0])
    profile = acc.finalize()

    assert profile[0] == pytest.approx(3.0)
    assert profile[1] == pytest.approx(7.0)
    assert np.isnan(profile[2])


def test_accumulate_with_counts():
    """Test accumulation of pre-summed groups."""
    binner = RadialBinner(4)
    acc = binner.accumulate(np.array([1.0, 3.0]), np.array([10.0, 6.0]), counts=np.array([5, 2]))

    np.testing.assert_allclose(acc.finalize()[:2], [2.0, 3.0])


def test_accumulate_length_mismatch():
    """Test error handling for mismatched radii and values."""
    binner = RadialBinner(4)
    with pytest.raises(ValueError, match="radii for"):
        binner.accumulate(np.array([1.0, 2.0]), np.array([1.0]))


def test_merge_partial_accumulators():
    """Test that split scans reduce to the same result as one scan."""
    binner = RadialBinner(8)
    rng = np.random.default_rng(1)
    radii = rng.uniform(0, 8, size=200)
    values = rng.normal(size=200)

    whole = binner.accumulate(radii, values)
    parts = [binner.accumulate(radii[i:i + 50], values[i:i + 50]) for i in range(0, 200, 50)]
    merged = Accumulator.reduce(parts)

    np.testing.assert_array_equal(merged.counts, whole.counts)
    np.testing.assert_allclose(merged.sums, whole.sums)

    chained = binner.accumulate(radii[100:], values[100:], accumulator=parts[0].merge(parts[1]))
    np.testing.assert_allclose(chained.sums, whole.sums)


def test_merge_mismatched_bins():
    """Test error handling when merging accumulators of different sizes."""
    with pytest.raises(ValueError, match="Cannot merge"):
        Accumulator.zeros(3).merge(Accumulator.zeros(4))

    with pytest.raises(ValueError, match="Nothing to reduce"):
        Accumulator.reduce([])


def test_profile_of_constant_image():
    """Test radial profile of a constant image."""
    binner = RadialBinner(8)
    image = np.full((16, 16), 2.5)

    profile = binner.profile(image, 8).finalize()

    assert profile.shape == (6,)
    np.testing.assert_allclose(profile, 2.5)
