"""Temporal (lag) autocorrelation over a stack."""

import logging
from typing import Optional

import numpy as np
from pydantic.dataclasses import dataclass

from image_acf.calibration import Calibration, format_value
from image_acf.frames import FrameSequence, Roi
from image_acf.numerics import normalize_to_zero_lag
from image_acf.types import CurveFamily, TemporalACFResult

logger = logging.getLogger(__name__)

__all__ = ['lag_count', 'lag_axis', 'pooled_autocorrelation', 'normalized_pooled_acf', 'TemporalACF']


def lag_count(n_frames: int) -> int:
    """Number of lags ``i`` with ``i < n_frames / 2``."""
    return (n_frames + 1) // 2


def lag_axis(n_frames: int, calibration: Calibration, use_time_calibration: bool):
    """Lag axis (lag index times the frame interval) and its unit."""
    interval, unit = calibration.resolve_time_scale(use_time_calibration)
    return interval * np.arange(lag_count(n_frames), dtype=np.float64), unit


def pooled_autocorrelation(series: np.ndarray) -> np.ndarray:
    """
    Pooled lag autocorrelation of many time series.

    Every series is centred on its own temporal mean; the lag products of
    all series are summed together and divided once by the total number of
    products at that lag.

    Args:
        series: (P, N) array, one time series of N frames per row

    Returns:
        (ceil(N / 2),) array of un-normalised ACF values
    """
    series = np.atleast_2d(np.asarray(series, dtype=np.float64))
    if series.size == 0:
        raise ValueError("No time series to correlate")

    n_series, n_frames = series.shape
    centred = series - series.mean(axis=1, keepdims=True)
    n_lags = lag_count(n_frames)

    acf = np.empty(n_lags, dtype=np.float64)
    for lag in range(n_lags):
        products = centred[:, :n_frames - lag] * centred[:, lag:]
        acf[lag] = products.sum() / (n_series * (n_frames - lag))
    return acf


def normalized_pooled_acf(series: np.ndarray):
    """
    Pooled ACF divided by its lag-0 value.

    Returns:
        Tuple of (normalised_acf, lag0_value)
    """
    series = np.atleast_2d(np.asarray(series, dtype=np.float64))
    acf = pooled_autocorrelation(series)
    reference_power = float(np.mean(series ** 2))
    return normalize_to_zero_lag(acf, acf[0], reference_power), float(acf[0])


@dataclass
class TemporalACF:
    """Temporal ACF of the pixels of an ROI, or of its mean over growing areas."""

    def _time_axis(self, n_frames: int, calibration: Calibration, use_time_calibration: bool):
        interval, unit = calibration.resolve_time_scale(use_time_calibration)
        if use_time_calibration and calibration.has_time_scale:
            return interval * np.arange(n_frames, dtype=np.float64), unit
        return np.arange(1, n_frames + 1, dtype=np.float64), unit

    def pixel_series(self, frames: FrameSequence, roi: Roi, centered_intensity: bool = False) -> np.ndarray:
        """
        Time series of every ROI pixel.

        Args:
            frames: Frame sequence
            roi: Region of interest
            centered_intensity: Subtract the ROI mean of each frame first

        Returns:
            (P, N) array in row-major pixel order
        """
        crops = roi.crop(frames.data)
        if centered_intensity:
            crops = crops - np.asarray(roi.mean(frames.data)).reshape(-1, 1, 1)
        return crops[:, roi.membership()].T

    def pixel_acf(
        self,
        frames: FrameSequence,
        roi: Roi,
        calibration: Optional[Calibration] = None,
        use_time_calibration: bool = True,
        centered_intensity: bool = False,
        title: str = "",
    ) -> TemporalACFResult:
        """
        Pooled temporal ACF of all pixels inside the ROI.

        Args:
            frames: Frame sequence of at least 2 frames
            roi: Region of interest
            calibration: Optional calibration for the lag axis
            use_time_calibration: Express lags as elapsed time when available
            centered_intensity: Subtract each frame's ROI mean and return the
                per-pixel intensity traces as well

        Returns:
            TemporalACFResult with one pooled curve

        Raises:
            StackRequiredError: If ``frames`` holds a single frame
        """
        frames.require_stack("Pixel temporal ACF")
        calibration = calibration or Calibration()

        series = self.pixel_series(frames, roi, centered_intensity)
        logger.info(f"Pixel temporal ACF: {series.shape[0]} pixels over {frames.n_frames} frames")
        acf, _ = normalized_pooled_acf(series)

        x, unit = lag_axis(frames.n_frames, calibration, use_time_calibration)
        curves = CurveFamily(
            x=x,
            y=acf[np.newaxis, :],
            x_label=f"Time [{unit}]",
            y_label="AutoCorrelation",
            headings=["AutoCorrelation"],
            title=title or "Pixel AutoCorrelation",
        )

        traces = None
        if centered_intensity:
            t, t_unit = self._time_axis(frames.n_frames, calibration, use_time_calibration)
            traces = CurveFamily(
                x=t,
                y=series,
                x_label=f"Time [{t_unit}]",
                y_label="Intensity",
                headings=[f"({px};{py})" for px, py in roi.pixel_coordinates()],
                title="Pixel Intensities",
            )
        return TemporalACFResult(curves=curves, traces=traces)

    def area_acf(
        self,
        frames: FrameSequence,
        roi: Roi,
        calibration: Optional[Calibration] = None,
        use_calibration: bool = True,
        use_time_calibration: bool = True,
        centered_intensity: bool = False,
        title: str = "",
    ) -> TemporalACFResult:
        """
        Temporal ACF of the mean ROI intensity for radii 1, 2, ..., floor(radius).

        Each radius yields one time series (the mean intensity of the
        sub-ROI of that radius) and one normalised ACF curve.

        Raises:
            StackRequiredError: If ``frames`` holds a single frame
            ValueError: If the ROI radius is below 1 pixel
        """
        frames.require_stack("Area temporal ACF")
        calibration = calibration or Calibration()
        scale = calibration.resolve_spatial_scale(use_calibration)

        n_radii = int(np.floor(roi.radius))
        if n_radii < 1:
            raise ValueError(f"Area ACF needs a radius of at least 1 pixel, got {roi.radius}")

        n_lags = lag_count(frames.n_frames)
        acf = np.empty((n_radii, n_lags), dtype=np.float64)
        means = np.empty((n_radii, frames.n_frames), dtype=np.float64)
        headings = []

        for k in range(n_radii):
            radius = k + 1
            means[k] = roi.sub_roi(radius).mean(frames.data)
            acf[k], _ = normalized_pooled_acf(means[k])
            if scale.unit == "pixels":
                headings.append(f"R = {radius} px")
            else:
                headings.append(f"R = {format_value(radius * scale.pixel_size, scale.unit)}")

        logger.info(f"Area temporal ACF: {n_radii} radii over {frames.n_frames} frames")

        x, unit = lag_axis(frames.n_frames, calibration, use_time_calibration)
        curves = CurveFamily(
            x=x,
            y=acf,
            x_label=f"Time [{unit}]",
            y_label="AutoCorrelation",
            headings=headings,
            title=title or "Area AutoCorrelation",
        )

        traces = None
        if centered_intensity:
            t, t_unit = self._time_axis(frames.n_frames, calibration, use_time_calibration)
            traces = CurveFamily(
                x=t,
                y=means,
                x_label=f"Time [{t_unit}]",
                y_label="Area Average Intensity",
                headings=list(headings),
                title="Area Intensities",
            )
        return TemporalACFResult(curves=curves, traces=traces, aspect_mismatch=scale.aspect_mismatch)
