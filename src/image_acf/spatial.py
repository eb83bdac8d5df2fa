"""Radially averaged spatial autocorrelation of an ROI.

Two estimators are provided:
1. FFT: the ROI is mean-subtracted, zero-padded to a power-of-two square and
   its autocorrelation obtained from the inverse transform of the power
   spectrum (Wiener-Khinchin), then binned radially around zero lag.
2. Naive: every pixel pair whose combined reach stays inside the ROI disk is
   correlated directly. Quartic in the radius; a reference for single frames.

Both curves are normalised so that the first radial bin equals 1.

The default FFT curve divides every lag by the total ROI power, so it decays
faster than the naive one as the pair overlap shrinks. With
``overlap_normalized`` the ROI is padded to twice its box and each lag is
divided by its own pair count instead.
"""

import logging
from typing import Optional, Tuple

import numpy as np
from pydantic import Field
from pydantic.dataclasses import dataclass
from scipy import fft as sp_fft

from image_acf.binning import RadialBinner
from image_acf.calibration import Calibration
from image_acf.errors import NonFFTOnStackError
from image_acf.frames import FrameSequence, Roi
from image_acf.numerics import fft_size_for_radius, next_power_of_two, normalize_to_zero_lag
from image_acf.types import CurveFamily, SpatialACFResult

logger = logging.getLogger(__name__)

__all__ = ['SpatialACF']


@dataclass
class SpatialACF:
    """Computes the radial spatial ACF of one frame inside an ROI."""

    workers: Optional[int] = Field(default=None)
    overlap_normalized: bool = False

    def _autocorrelate(self, buffer: np.ndarray) -> np.ndarray:
        spectrum = sp_fft.fft2(buffer, workers=self.workers)
        power = spectrum * np.conj(spectrum)
        return np.fft.fftshift(sp_fft.ifft2(power, workers=self.workers).real)

    def fft_size(self, roi: Roi) -> int:
        """Side of the padded transform buffer (power of two >= 2 * radius and >= the ROI box)."""
        size = fft_size_for_radius(roi.radius)
        while size < roi.size:
            size *= 2
        return size

    def compute_acf_image(self, frame: np.ndarray, roi: Roi) -> np.ndarray:
        """
        Autocorrelation image of the ROI through the power spectrum.

        Args:
            frame: (H, W) frame
            roi: Region of interest

        Returns:
            (F, F) ACF with zero lag at (F/2, F/2), divided by its
            zero-lag value (all ones for a zero-variance ROI)
        """
        if frame.ndim != 2:
            raise ValueError(f"Expected 2D frame, got {frame.ndim}D array with shape {frame.shape}")

        fft_size = self.fft_size(roi)
        buffer = roi.pad_for_fft(frame, fft_size)
        logger.debug(f"ACF buffer {fft_size}x{fft_size} for ROI box {roi.size}")

        acf = self._autocorrelate(buffer)
        zero_lag = acf[fft_size // 2, fft_size // 2]
        inside = roi.crop(frame)[roi.membership()]
        reference_power = float(np.sum(inside ** 2))
        return normalize_to_zero_lag(acf, zero_lag, reference_power)

    def fft_profile(self, frame: np.ndarray, roi: Roi) -> Tuple[np.ndarray, np.ndarray]:
        """
        Radial ACF profile through the FFT.

        Returns:
            Tuple of (profile, acf_image)
        """
        if self.overlap_normalized:
            return self.overlap_profile(frame, roi)
        acf_image = self.compute_acf_image(frame, roi)
        binner = RadialBinner(roi.radius)
        profile = binner.profile(acf_image, acf_image.shape[0] // 2).finalize()
        with np.errstate(divide="ignore", invalid="ignore"):
            profile = profile / profile[0]
        return profile, acf_image

    def overlap_profile(self, frame: np.ndarray, roi: Roi) -> Tuple[np.ndarray, np.ndarray]:
        """
        Radial ACF profile pooled over the pixel pairs inside the ROI.

        Pair-product sums come from the autocorrelation of the mean-subtracted
        ROI, pair counts from the autocorrelation of its footprint. Sums and
        counts are pooled per radial bin, zero lag included.

        Returns:
            Tuple of (profile, acf_image); the image holds the mean pair
            product of every lag divided by the zero-lag value, NaN where no
            pair exists
        """
        if frame.ndim != 2:
            raise ValueError(f"Expected 2D frame, got {frame.ndim}D array with shape {frame.shape}")

        fft_size = next_power_of_two(2 * roi.size)
        buffer = roi.pad_for_fft(frame, fft_size)
        rows, cols = roi.buffer_slice(fft_size)
        footprint = np.zeros_like(buffer)
        footprint[rows, cols] = roi.membership()

        sums = self._autocorrelate(buffer)
        counts = np.rint(self._autocorrelate(footprint)).astype(np.int64)
        logger.debug(f"Overlap-normalised ACF buffer {fft_size}x{fft_size} for ROI box {roi.size}")

        binner = RadialBinner(roi.radius)
        center = fft_size // 2
        reach = int(np.floor(roi.radius))
        window = np.s_[center - reach:center + reach + 1, center - reach:center + reach + 1]
        d = np.arange(-reach, reach + 1, dtype=np.float64)
        radii = np.sqrt(d[:, np.newaxis] ** 2 + d[np.newaxis, :] ** 2)
        profile = binner.accumulate(radii, sums[window], counts=counts[window]).finalize()

        inside = roi.crop(frame)[roi.membership()]
        reference_power = float(np.mean(inside ** 2))
        zero_lag = sums[center, center] / counts[center, center]
        acf_image = np.divide(sums, counts, out=np.full_like(sums, np.nan), where=counts > 0)
        acf_image = normalize_to_zero_lag(acf_image, zero_lag, reference_power)
        return normalize_to_zero_lag(profile, profile[0], reference_power), acf_image

    def naive_profile(self, frame: np.ndarray, roi: Roi) -> np.ndarray:
        """
        Radial ACF profile by direct pair correlation.

        For every pixel p within ``radius`` of the ROI centre and every
        integer offset d with ``|p| + |d| <= radius``, the product
        ``(I(p) - mean) * (I(p + d) - mean)`` is binned by ``|d|``.
        """
        if frame.ndim != 2:
            raise ValueError(f"Expected 2D frame, got {frame.ndim}D array with shape {frame.shape}")

        binner = RadialBinner(roi.radius)
        radius = roi.radius
        n = roi.size

        centred = roi.crop(frame) - roi.mean(frame)
        support_distance = roi.distances()
        reach = int(np.floor(radius))
        padded = np.pad(centred, reach, mode="constant", constant_values=0.0)

        offset_radii = []
        offset_sums = []
        offset_counts = []
        for dy in range(-reach, reach + 1):
            for dx in range(-reach, reach + 1):
                lag = float(np.hypot(dx, dy))
                if lag > radius:
                    continue
                valid = support_distance + lag <= radius
                count = int(np.count_nonzero(valid))
                if count == 0:
                    continue
                shifted = padded[reach + dy:reach + dy + n, reach + dx:reach + dx + n]
                offset_radii.append(lag)
                offset_sums.append(float(np.sum(centred[valid] * shifted[valid])))
                offset_counts.append(count)

        logger.debug(f"Naive ACF scanned {len(offset_radii)} offsets for radius {radius}")
        accumulator = binner.accumulate(
            np.array(offset_radii), np.array(offset_sums), counts=np.array(offset_counts)
        )
        profile = accumulator.finalize()

        inside = roi.crop(frame)[support_distance <= radius]
        reference_power = float(np.mean(inside ** 2)) if inside.size else None
        return normalize_to_zero_lag(profile, profile[0], reference_power)

    def compute(
        self,
        frames: FrameSequence,
        roi: Roi,
        calibration: Optional[Calibration] = None,
        use_fft: bool = True,
        use_calibration: bool = True,
        frame_index: int = 0,
        title: str = "",
    ) -> SpatialACFResult:
        """
        Spatial ACF of one frame of a sequence.

        Args:
            frames: Frame sequence
            roi: Region of interest
            calibration: Optional calibration for the radius axis
            use_fft: Use the FFT estimator; the naive one is single-frame only
            use_calibration: Express radii in calibrated units when available
            frame_index: Frame to analyse
            title: Title handed to the plotting collaborator

        Returns:
            SpatialACFResult with one curve

        Raises:
            NonFFTOnStackError: If ``use_fft`` is False and ``frames`` is a stack
        """
        if not use_fft and frames.is_stack:
            raise NonFFTOnStackError(frames.n_frames)

        calibration = calibration or Calibration()
        scale = calibration.resolve_spatial_scale(use_calibration)
        binner = RadialBinner(roi.radius)
        frame = frames.frame(frame_index)

        logger.info(
            f"Spatial ACF on frame {frame_index + 1} ({'FFT' if use_fft else 'naive'}), "
            f"radius {roi.radius}, {binner.n_bins} bins"
        )
        if use_fft:
            profile, acf_image = self.fft_profile(frame, roi)
        else:
            profile, acf_image = self.naive_profile(frame, roi), None

        curves = CurveFamily(
            x=binner.bin_centers(scale.pixel_size),
            y=profile[np.newaxis, :],
            x_label=f"Radius [{scale.unit}]",
            y_label="AutoCorrelation",
            headings=["AutoCorrelation"],
            title=title or "AutoCorrelation",
        )
        return SpatialACFResult(
            curves=curves,
            acf_image=acf_image,
            n_bins=binner.n_bins,
            used_fft=use_fft,
            aspect_mismatch=scale.aspect_mismatch,
        )
