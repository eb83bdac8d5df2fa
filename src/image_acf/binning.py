"""Radial binning of scanned offsets into sum/count accumulators."""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

import numpy as np

from image_acf.numerics import radial_bin_count

logger = logging.getLogger(__name__)

__all__ = ['Accumulator', 'RadialBinner']


@dataclass
class Accumulator:
    """Per-bin sums and counts for one scan."""

    sums: np.ndarray
    counts: np.ndarray

    @classmethod
    def zeros(cls, n_bins: int) -> "Accumulator":
        return cls(
            sums=np.zeros(n_bins, dtype=np.float64),
            counts=np.zeros(n_bins, dtype=np.int64),
        )

    @property
    def n_bins(self) -> int:
        return self.sums.shape[0]

    def merge(self, other: "Accumulator") -> "Accumulator":
        """Combine partial accumulators from disjoint scans."""
        if other.n_bins != self.n_bins:
            raise ValueError(f"Cannot merge {other.n_bins} bins into {self.n_bins}")
        return Accumulator(sums=self.sums + other.sums, counts=self.counts + other.counts)

    @classmethod
    def reduce(cls, parts: Iterable["Accumulator"]) -> "Accumulator":
        """Merge partial accumulators in order."""
        parts = list(parts)
        if not parts:
            raise ValueError("Nothing to reduce")
        total = parts[0]
        for part in parts[1:]:
            total = total.merge(part)
        return total

    def finalize(self) -> np.ndarray:
        """
        Mean value of every bin.

        Bins that received no sample are NaN; they are reported as-is.
        """
        with np.errstate(divide="ignore", invalid="ignore"):
            means = self.sums / self.counts
        empty = int(np.sum(self.counts == 0))
        if empty:
            logger.debug(f"{empty} of {self.n_bins} radial bins are empty")
        return means


class RadialBinner:
    """
    Maps radii to radial bins of width ``max_radius / n_bins``.

    ``n_bins = floor(3 * max_radius / 4)``. A radius falls in bin
    ``floor(R / max_radius * n_bins)``, except that bin 0 is folded into
    bin 1 before the index is shifted down by one. Indices past the last
    bin are dropped.
    """

    def __init__(self, max_radius: float, n_bins: Optional[int] = None):
        if max_radius <= 0:
            raise ValueError(f"max_radius must be positive, got {max_radius}")
        self.max_radius = float(max_radius)
        self.n_bins = radial_bin_count(max_radius) if n_bins is None else int(n_bins)
        if self.n_bins <= 0:
            raise ValueError(
                f"Radius {max_radius} is too small to produce a radial bin "
                f"(n_bins={self.n_bins})"
            )

    def bin_indices(self, radii: np.ndarray) -> np.ndarray:
        """
        Bin index of every radius; -1 marks a rejected radius.

        Args:
            radii: Array of non-negative radii

        Returns:
            int64 array with the same shape as ``radii``
        """
        radii = np.asarray(radii, dtype=np.float64)
        finite = np.isfinite(radii)
        scaled = np.where(finite, radii, 0.0) / self.max_radius * self.n_bins
        bins = np.floor(scaled).astype(np.int64)
        bins[bins == 0] = 1
        bins -= 1
        bins[(bins >= self.n_bins) | ~finite] = -1
        return bins

    def bin_centers(self, pixel_size: float = 1.0) -> np.ndarray:
        """x axis of a radial curve: ``max_radius * (i + 1) / n_bins``."""
        i = np.arange(self.n_bins, dtype=np.float64)
        return pixel_size * self.max_radius * ((i + 1) / self.n_bins)

    def accumulate(
        self,
        radii: np.ndarray,
        values: np.ndarray,
        counts: Optional[np.ndarray] = None,
        accumulator: Optional[Accumulator] = None,
    ) -> Accumulator:
        """
        Add samples to their bins.

        Args:
            radii: Radius of every sample
            values: Value of every sample, or the pre-summed value of a group
                of samples sharing one radius when ``counts`` is given
            counts: Optional number of samples behind each value
            accumulator: Accumulator to add to; a zeroed one is created if omitted

        Returns:
            A new accumulator holding the previous and the new samples
        """
        radii = np.ravel(radii)
        values = np.ravel(np.asarray(values, dtype=np.float64))
        if values.shape != radii.shape:
            raise ValueError(f"Got {radii.size} radii for {values.size} values")
        counts = np.ones(radii.shape, dtype=np.int64) if counts is None else np.ravel(counts)

        bins = self.bin_indices(radii)
        keep = bins >= 0
        sums = np.bincount(bins[keep], weights=values[keep], minlength=self.n_bins)
        hits = np.bincount(bins[keep], weights=counts[keep], minlength=self.n_bins)

        scan = Accumulator(sums=sums[:self.n_bins], counts=hits[:self.n_bins].astype(np.int64))
        if accumulator is None:
            return scan
        return accumulator.merge(scan)

    def profile(self, image: np.ndarray, center: float) -> Accumulator:
        """
        Accumulate an image around ``(center, center)`` within ``max_radius``.

        Only the square of integer offsets ``|dx|, |dy| <= max_radius`` is
        scanned, and the centre sample itself is skipped. Offsets falling
        outside the image wrap around, the image being one period of a
        circular correlation.
        """
        reach = int(np.floor(self.max_radius))
        c = int(center) + reach
        padded = np.pad(image, reach, mode="wrap")
        window = padded[c - reach:c + reach + 1, c - reach:c + reach + 1]
        d = np.arange(-reach, reach + 1, dtype=np.float64)
        radii = np.sqrt(d[:, np.newaxis] ** 2 + d[np.newaxis, :] ** 2)
        off_center = radii > 0
        return self.accumulate(radii[off_center], window[off_center])
