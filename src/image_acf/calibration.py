"""Spatial and temporal calibration of a frame sequence."""

import logging
import warnings
from typing import NamedTuple, Optional, Tuple

from pydantic import Field
from pydantic.dataclasses import dataclass

from image_acf.constants import DEFAULT_SPATIAL_UNIT, DEFAULT_TIME_UNIT
from image_acf.errors import MismatchedPixelAspectWarning

logger = logging.getLogger(__name__)

__all__ = ['Calibration', 'SpatialScale', 'get_digits', 'format_value']

_UNCALIBRATED_UNITS = {"", "pixel", "pixels", "px"}


class SpatialScale(NamedTuple):
    """Resolved spatial scale."""

    pixel_size: float
    unit: str
    aspect_mismatch: bool


def get_digits(n1: float, n2: float) -> int:
    """
    Number of decimals needed to display two related values.

    Integers get 0 decimals; otherwise 3 to 7 depending on magnitude and
    on the difference between the two values.
    """
    if round(n1) == n1 and round(n2) == n2:
        return 0
    n1 = abs(n1)
    n2 = abs(n2)
    n = n1 if 0.0 < n1 < n2 else n2
    diff = abs(n2 - n1)
    if 0.0 < diff < n:
        n = diff
    digits = 3
    if n < 10.0:
        digits = 4
    if n < 0.01:
        digits = 5
    if n < 0.001:
        digits = 6
    if n < 0.0001:
        digits = 7
    return digits


def format_value(value: float, unit: str = "") -> str:
    """Format a calibrated value with its unit, e.g. ``'0.2500 sec'``."""
    text = f"{value:.{get_digits(value, value)}f}"
    return f"{text} {unit}".strip()


@dataclass
class Calibration:
    """
    Calibration metadata of a frame sequence.

    Missing or zero sizes are not errors: the engine falls back to pixel
    and frame-index units.
    """

    pixel_width: Optional[float] = Field(default=None, ge=0.0)
    pixel_height: Optional[float] = Field(default=None, ge=0.0)
    frame_interval: Optional[float] = Field(default=None, ge=0.0)
    spatial_unit: str = Field(default="pixel")
    time_unit: str = Field(default="sec")

    @property
    def has_spatial_scale(self) -> bool:
        if self.spatial_unit.strip().lower() in _UNCALIBRATED_UNITS:
            return False
        return bool(self.pixel_width) or bool(self.pixel_height)

    @property
    def has_time_scale(self) -> bool:
        return bool(self.frame_interval)

    def resolve_spatial_scale(self, use_calibration: bool = True) -> SpatialScale:
        """
        Pixel size and unit to use for radius and wavelength axes.

        Returns:
            SpatialScale; ``aspect_mismatch`` is True when width and height
            differ and their average was used instead.
        """
        if not use_calibration or not self.has_spatial_scale:
            if use_calibration:
                logger.debug("No spatial calibration available, using pixel units")
            return SpatialScale(1.0, DEFAULT_SPATIAL_UNIT, False)

        width = self.pixel_width or self.pixel_height
        height = self.pixel_height or self.pixel_width
        if width != height:
            pixel_size = (width + height) / 2
            message = (
                f"Pixel width ({width}) is different from pixel height ({height}) "
                f"in spatial calibration, average pixel length {pixel_size} used instead"
            )
            logger.warning(message)
            warnings.warn(message, MismatchedPixelAspectWarning, stacklevel=3)
            return SpatialScale(pixel_size, self.spatial_unit, True)

        return SpatialScale(width, self.spatial_unit, False)

    def resolve_time_scale(self, use_time_calibration: bool = True) -> Tuple[float, str]:
        """Frame interval and unit for lag axes; ``(1.0, 'picture')`` when uncalibrated."""
        if not use_time_calibration or not self.has_time_scale:
            return 1.0, DEFAULT_TIME_UNIT
        return self.frame_interval, self.time_unit

    def frame_label(self, index: int, use_time_calibration: bool = True) -> str:
        """Heading of a frame: elapsed time when calibrated, else its 1-based index."""
        if use_time_calibration and self.has_time_scale:
            return format_value(index * self.frame_interval, self.time_unit)
        return str(index + 1)
