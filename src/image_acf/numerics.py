"""Shared numerical helpers: transform sizes and zero-lag normalisation."""

import logging
import math
from typing import Optional

import numpy as np

from image_acf.constants import BIN_DENSITY, MIN_FFT_SIZE, ZERO_VARIANCE_RTOL

logger = logging.getLogger(__name__)

__all__ = [
    'next_power_of_two',
    'fft_size_for_radius',
    'radial_bin_count',
    'is_zero_variance',
    'normalize_to_zero_lag',
]


def next_power_of_two(min_size: float, start: int = MIN_FFT_SIZE) -> int:
    """Smallest power of two >= min_size, never below ``start``."""
    size = start
    while size < min_size:
        size *= 2
    return size


def fft_size_for_radius(radius: float) -> int:
    """Side of the square transform buffer for an ROI of the given radius."""
    return next_power_of_two(2 * radius)


def radial_bin_count(radius: float) -> int:
    """Number of radial bins for a maximum radius (0.75 bins per pixel)."""
    return int(math.floor(BIN_DENSITY * radius))


def is_zero_variance(zero_lag: float, reference_power: Optional[float] = None) -> bool:
    """
    Check whether a zero-lag value means the signal has no variance.

    Args:
        zero_lag: Zero-lag (variance-like) value of the ACF
        reference_power: Power of the uncentred signal on the same scale.
            When given, ``zero_lag`` is compared relative to it so that
            round-off in the mean subtraction is not mistaken for signal.

    Returns:
        True for zero variance, False otherwise (NaN is not zero variance)
    """
    if not np.isfinite(zero_lag):
        return False
    if zero_lag == 0.0:
        return True
    if reference_power is None or reference_power <= 0.0:
        return False
    return abs(zero_lag) <= ZERO_VARIANCE_RTOL * reference_power


def normalize_to_zero_lag(
    values: np.ndarray, zero_lag: float, reference_power: Optional[float] = None
) -> np.ndarray:
    """
    Divide a curve by its zero-lag value.

    A zero-variance signal yields a curve of ones. NaN entries (empty bins)
    stay NaN, and a NaN zero-lag value propagates to every entry.
    """
    values = np.asarray(values, dtype=np.float64)
    if is_zero_variance(zero_lag, reference_power):
        logger.debug("Zero-variance signal, returning a flat curve")
        return np.where(np.isnan(values), np.nan, 1.0)
    with np.errstate(divide="ignore", invalid="ignore"):
        return values / zero_lag
