"""Wavelength-resolved temporal ACF through a bandpass filter bank."""

import logging
import threading
from typing import Callable, Optional, Union

import numpy as np
from pydantic import Field
from pydantic.dataclasses import dataclass
from scipy import fft as sp_fft
from tqdm import tqdm

from image_acf.bandpass import FilterBank
from image_acf.calibration import Calibration, format_value
from image_acf.constants import DEFAULT_STEP_PERCENT, STEP_PERCENT_TO_BANDS
from image_acf.errors import AnalysisCancelled
from image_acf.frames import FrameSequence, Roi
from image_acf.numerics import normalize_to_zero_lag
from image_acf.spatial import SpatialACF
from image_acf.temporal import lag_axis, lag_count, pooled_autocorrelation
from image_acf.types import CurveFamily, RadialCurve, SpacingScheme, WavelengthACFResult

logger = logging.getLogger(__name__)

__all__ = ['WavelengthACF', 'band_wavelengths']

ProgressCallback = Callable[[int, int], None]


def band_wavelengths(bank: FilterBank, pixel_size: float = 1.0) -> np.ndarray:
    """
    Wavelength at the centre of every band.

    The centre frequency is the midpoint of the pass band, capped at the
    largest radius present in the spectrum. Hard bands pass ``[low, high]``;
    a smooth band passes frequencies between ``1 / large`` and ``1 / small``,
    so its centre moves to lower frequencies as the band index grows.
    """
    size = bank.fft_size
    reach = size / np.sqrt(2.0)
    wavelengths = np.empty(bank.band_count, dtype=np.float64)
    for j in range(bank.band_count):
        if bank.smooth:
            small, large = bank.smooth_scales(j)
            low = min(1.0 / large, reach)
            high = 1.0 / small if small > 0 else reach
        else:
            low, high = bank.band_edges(j)
        centre = (low + min(high, reach)) / 2.0
        wavelengths[j] = pixel_size * size / centre
    return wavelengths


@dataclass
class WavelengthACF:
    """
    Pooled temporal ACF of the ROI pixels after each bandpass filter.

    Every frame is padded and transformed once; each band then costs one
    masked inverse transform of the whole stack.
    """

    workers: Optional[int] = Field(default=None)
    show_progress: bool = False

    def compute(
        self,
        frames: FrameSequence,
        roi: Roi,
        calibration: Optional[Calibration] = None,
        scheme: Union[SpacingScheme, str] = SpacingScheme.POWER_OF_2,
        band_count: Optional[int] = None,
        smooth: bool = False,
        use_calibration: bool = True,
        use_time_calibration: bool = True,
        export_band: Optional[int] = None,
        progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
        title: str = "",
    ) -> WavelengthACFResult:
        """
        Temporal ACF and amplitude of every band.

        Args:
            frames: Frame sequence of at least 2 frames
            roi: Region of interest
            calibration: Optional calibration for wavelengths and lags
            scheme: Band spacing scheme
            band_count: Requested number of bands (ignored by the power-of-two
                scheme); defaults to the 4 % step
            smooth: Use difference-of-Gaussians masks instead of hard edges
            use_calibration: Express wavelengths in calibrated units when available
            use_time_calibration: Express lags as elapsed time when available
            export_band: 1-based band whose filtered frames are returned
            progress: Optional callback receiving (band, n_bands) after each band
            cancel_event: Optional event checked before each band

        Returns:
            WavelengthACFResult with one lag curve per band; a band holding
            no cell of the spectrum gets a NaN curve, zero amplitude and a note

        Raises:
            StackRequiredError: If ``frames`` holds a single frame
            AnalysisCancelled: If ``cancel_event`` is set during the scan
            ValueError: If ``export_band`` is not a valid band number
        """
        frames.require_stack("Wavelength-resolved ACF")
        calibration = calibration or Calibration()
        scale = calibration.resolve_spatial_scale(use_calibration)
        roi.check_bounds((frames.height, frames.width))

        if band_count is None:
            band_count = STEP_PERCENT_TO_BANDS[DEFAULT_STEP_PERCENT]
        fft_size = SpatialACF().fft_size(roi)
        bank = FilterBank(fft_size=fft_size, scheme=scheme, requested_bands=band_count, smooth=smooth)
        n_bands = bank.band_count

        notes = []
        if bank.band_count_forced:
            note = (
                f"{bank.scheme.value} spacing on a {fft_size}x{fft_size} spectrum uses "
                f"{n_bands} bands; {band_count} requested"
            )
            logger.info(note)
            notes.append(note)

        if export_band is not None and not 1 <= export_band <= n_bands:
            raise ValueError(f"export_band must be in [1, {n_bands}], got {export_band}")

        buffers = np.stack([roi.pad_for_fft(frame, fft_size) for frame in frames])
        spectra = sp_fft.fft2(buffers, axes=(-2, -1), workers=self.workers)
        rows, cols = roi.buffer_slice(fft_size)
        inside = roi.membership()

        unfiltered = buffers[:, rows, cols][:, inside]
        reference_power = float(np.mean(unfiltered ** 2))

        n_lags = lag_count(frames.n_frames)
        acf = np.empty((n_bands, n_lags), dtype=np.float64)
        amplitudes = np.empty(n_bands, dtype=np.float64)
        filtered_stack = None

        logger.info(
            f"Wavelength ACF: {n_bands} bands, {int(inside.sum())} pixels, "
            f"{frames.n_frames} frames, FFT size {fft_size}"
        )

        for j in tqdm(range(n_bands), desc="Bands", disable=not self.show_progress):
            if cancel_event is not None and cancel_event.is_set():
                raise AnalysisCancelled(f"Wavelength ACF cancelled before band {j + 1} of {n_bands}")

            filtered = sp_fft.ifft2(bank.apply(spectra, j), axes=(-2, -1), workers=self.workers).real
            if not bank.mask(j).any():
                note = f"Band {j + 1} contains no frequency of the {fft_size}x{fft_size} spectrum"
                logger.warning(note)
                notes.append(note)
                amplitudes[j] = 0.0
                acf[j] = np.nan
            else:
                series = filtered[:, rows, cols][:, inside].T
                raw = pooled_autocorrelation(series)
                amplitudes[j] = raw[0]
                acf[j] = normalize_to_zero_lag(raw, raw[0], reference_power)

            if export_band == j + 1:
                filtered_stack = filtered

            logger.info(f"Band {j + 1} of {n_bands}: amplitude {amplitudes[j]:.4g}")
            if progress is not None:
                progress(j + 1, n_bands)

        wavelengths = band_wavelengths(bank, scale.pixel_size)
        x, unit = lag_axis(frames.n_frames, calibration, use_time_calibration)
        curves = CurveFamily(
            x=x,
            y=acf,
            x_label=f"Time [{unit}]",
            y_label="AutoCorrelation",
            headings=[format_value(w, scale.unit) for w in wavelengths],
            title=title or "Wavelength AutoCorrelation",
        )
        # Band 0 has no finite lower wavelength bound
        amplitude_curve = RadialCurve(x=wavelengths[1:], y=amplitudes[1:], label="Amplitude")

        return WavelengthACFResult(
            curves=curves,
            amplitudes=amplitudes,
            wavelengths=wavelengths,
            bands=bank.bands(),
            amplitude_curve=amplitude_curve,
            fft_size=fft_size,
            filtered_stack=filtered_stack,
            aspect_mismatch=scale.aspect_mismatch,
            notes=notes,
        )
