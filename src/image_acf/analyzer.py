"""Analysis parameters and the facade dispatching to the ACF engines."""

import logging
import threading
from typing import Callable, Optional, Sequence, Union

import numpy as np
from pydantic import Field, field_validator, model_validator
from pydantic.dataclasses import dataclass

from image_acf.calibration import Calibration
from image_acf.constants import DEFAULT_STEP_PERCENT, STEP_PERCENT_TO_BANDS
from image_acf.errors import NonFFTOnStackError
from image_acf.frames import FrameSequence, Roi
from image_acf.spatial import SpatialACF
from image_acf.stack import StackAggregator
from image_acf.temporal import TemporalACF
from image_acf.types import (
    CurveFamily,
    RoiShape,
    SpacingScheme,
    SpatialACFResult,
    StackACFResult,
    StackMode,
    TemporalACFResult,
    TemporalMode,
    WavelengthACFResult,
)
from image_acf.wavelength import WavelengthACF

logger = logging.getLogger(__name__)

__all__ = ['AnalysisParameters', 'AutocorrelationAnalyzer']

FramesLike = Union[FrameSequence, np.ndarray, Sequence[np.ndarray]]
ProgressCallback = Callable[[int, int], None]


@dataclass
class AnalysisParameters:
    """
    Fully resolved parameter bundle of one analysis.

    Selector fields accept enum members or their display names
    (``"Circle"``, ``"Power of 2"``, ``"ACF on area"``...). The number of
    bands is given either directly or as a wavelength step in percent.
    """

    use_fft: bool = True
    overlap_normalized: bool = False
    roi_shape: RoiShape = RoiShape.CIRCLE
    stack_mode: StackMode = StackMode.NONE
    temporal_mode: TemporalMode = TemporalMode.PIXELS
    spacing_scheme: SpacingScheme = SpacingScheme.POWER_OF_2
    band_count: Optional[int] = Field(default=None, ge=1)
    step_percent: Optional[int] = Field(default=None)
    smooth_bandpass: bool = False
    use_calibration: bool = True
    use_time_calibration: bool = True
    centered_intensity: bool = False
    export_band: Optional[int] = Field(default=None, ge=1)
    max_workers: int = Field(default=1, ge=1)
    show_progress: bool = False

    @field_validator("roi_shape", mode="before")
    @classmethod
    def parse_roi_shape(cls, v):
        return RoiShape.parse(v)

    @field_validator("stack_mode", mode="before")
    @classmethod
    def parse_stack_mode(cls, v):
        return StackMode.parse(v)

    @field_validator("temporal_mode", mode="before")
    @classmethod
    def parse_temporal_mode(cls, v):
        return TemporalMode.parse(v)

    @field_validator("spacing_scheme", mode="before")
    @classmethod
    def parse_spacing_scheme(cls, v):
        return SpacingScheme.parse(v)

    @field_validator("step_percent")
    @classmethod
    def validate_step_percent(cls, v: Optional[int]) -> Optional[int]:
        """Only the steps offered by the band dialog are allowed."""
        if v is not None and v not in STEP_PERCENT_TO_BANDS:
            raise ValueError(
                f"step_percent must be one of {sorted(STEP_PERCENT_TO_BANDS)}, got {v}"
            )
        return v

    @model_validator(mode="after")
    def check_band_selection(self):
        if self.band_count is not None and self.step_percent is not None:
            raise ValueError("Give either band_count or step_percent, not both")
        return self

    @property
    def resolved_band_count(self) -> int:
        """Requested number of bands (before the power-of-two override)."""
        if self.band_count is not None:
            return self.band_count
        return STEP_PERCENT_TO_BANDS[self.step_percent or DEFAULT_STEP_PERCENT]


@dataclass
class AutocorrelationAnalyzer:
    """
    Runs spatial, temporal and wavelength-resolved ACF analyses.

    The analyzer holds no state between calls: every call builds and
    returns its own result object.
    """

    parameters: AnalysisParameters = Field(default_factory=AnalysisParameters)

    def __post_init__(self):
        """Initialize the engines."""
        self.spatial_acf = SpatialACF(overlap_normalized=self.parameters.overlap_normalized)
        self.stack_aggregator = StackAggregator(
            max_workers=self.parameters.max_workers,
            show_progress=self.parameters.show_progress,
            overlap_normalized=self.parameters.overlap_normalized,
        )
        self.temporal_acf = TemporalACF()
        self.wavelength_acf = WavelengthACF(show_progress=self.parameters.show_progress)

    @staticmethod
    def as_sequence(frames: FramesLike) -> FrameSequence:
        if isinstance(frames, FrameSequence):
            return frames
        return FrameSequence(frames)

    def make_roi(self, center_x: float, center_y: float, radius: float) -> Roi:
        """ROI of the configured shape."""
        return Roi(center_x=center_x, center_y=center_y, radius=radius, shape=self.parameters.roi_shape)

    def spatial(
        self,
        frames: FramesLike,
        roi: Roi,
        calibration: Optional[Calibration] = None,
        frame_index: int = 0,
        progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Union[SpatialACFResult, StackACFResult]:
        """
        Spatial ACF of one frame, or of every frame when a stack mode is set.

        Args:
            frames: Frames to analyse
            roi: Region of interest
            calibration: Optional calibration
            frame_index: Frame analysed when no stack mode is set
            progress: Optional per-frame callback for stack modes
            cancel_event: Optional cancellation flag for stack modes

        Returns:
            SpatialACFResult for a single frame, StackACFResult for the
            ``all`` and ``mean`` stack modes on a stack

        Raises:
            NonFFTOnStackError: If the naive estimator is requested on a stack
        """
        params = self.parameters
        frames = self.as_sequence(frames)

        if params.stack_mode == StackMode.NONE or not frames.is_stack:
            return self.spatial_acf.compute(
                frames,
                roi,
                calibration=calibration,
                use_fft=params.use_fft,
                use_calibration=params.use_calibration,
                frame_index=frame_index,
            )

        if not params.use_fft:
            raise NonFFTOnStackError(frames.n_frames)

        logger.info(f"Stack mode '{params.stack_mode.value}' on {frames.n_frames} frames")
        return self.stack_aggregator.compute(
            frames,
            roi,
            calibration=calibration,
            use_calibration=params.use_calibration,
            use_time_calibration=params.use_time_calibration,
            progress=progress,
            cancel_event=cancel_event,
        )

    def spatial_curves(self, result: Union[SpatialACFResult, StackACFResult]) -> CurveFamily:
        """Family to display for a spatial result under the configured stack mode."""
        if isinstance(result, StackACFResult):
            return result.reduced(mean=self.parameters.stack_mode == StackMode.MEAN)
        return result.curves

    def temporal(
        self,
        frames: FramesLike,
        roi: Roi,
        calibration: Optional[Calibration] = None,
    ) -> TemporalACFResult:
        """
        Temporal ACF in the configured mode (pooled pixels or growing areas).

        Raises:
            StackRequiredError: If ``frames`` holds a single frame
        """
        params = self.parameters
        frames = self.as_sequence(frames)

        if params.temporal_mode == TemporalMode.AREA:
            return self.temporal_acf.area_acf(
                frames,
                roi,
                calibration=calibration,
                use_calibration=params.use_calibration,
                use_time_calibration=params.use_time_calibration,
                centered_intensity=params.centered_intensity,
            )
        return self.temporal_acf.pixel_acf(
            frames,
            roi,
            calibration=calibration,
            use_time_calibration=params.use_time_calibration,
            centered_intensity=params.centered_intensity,
        )

    def wavelength(
        self,
        frames: FramesLike,
        roi: Roi,
        calibration: Optional[Calibration] = None,
        progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> WavelengthACFResult:
        """
        Wavelength-resolved ACF with the configured filter bank.

        Raises:
            StackRequiredError: If ``frames`` holds a single frame
            AnalysisCancelled: If ``cancel_event`` is set between two bands
        """
        params = self.parameters
        frames = self.as_sequence(frames)
        return self.wavelength_acf.compute(
            frames,
            roi,
            calibration=calibration,
            scheme=params.spacing_scheme,
            band_count=params.resolved_band_count,
            smooth=params.smooth_bandpass,
            use_calibration=params.use_calibration,
            use_time_calibration=params.use_time_calibration,
            export_band=params.export_band,
            progress=progress,
            cancel_event=cancel_event,
        )
