"""Shared types: behaviour selectors and result containers."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, NamedTuple, Optional, Tuple

import numpy as np

__all__ = [
    'RoiShape',
    'SpacingScheme',
    'StackMode',
    'TemporalMode',
    'RadialCurve',
    'CurveFamily',
    'SpatialACFResult',
    'StackACFResult',
    'TemporalACFResult',
    'FilterBand',
    'WavelengthACFResult',
]


class _ParsableEnum(str, Enum):
    """String enum that also accepts the legacy display names."""

    @classmethod
    def parse(cls, value):
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower().replace(" ", "_").replace("-", "_")
        for member in cls:
            if key in (member.value, member.name.lower()):
                return member
        aliases = getattr(cls, "_aliases", lambda: {})()
        if key in aliases:
            return cls(aliases[key])
        raise ValueError(f"Unknown {cls.__name__}: {value!r}")


class RoiShape(_ParsableEnum):
    """Shape of the region of interest."""

    CIRCLE = "circle"
    SQUARE = "square"


class SpacingScheme(_ParsableEnum):
    """How bandpass band edges are spread over the spectrum."""

    POWER_OF_2 = "power_of_2"
    LINEAR = "linear"
    INVERSE = "inverse"

    @staticmethod
    def _aliases():
        return {"powerof2": "power_of_2", "pow2": "power_of_2"}


class StackMode(_ParsableEnum):
    """Spatial ACF reduction over a stack."""

    NONE = "none"
    ALL = "all"
    MEAN = "mean"


class TemporalMode(_ParsableEnum):
    """Temporal ACF flavour."""

    PIXELS = "pixels"
    AREA = "area"

    @staticmethod
    def _aliases():
        return {"acf_on_pixels": "pixels", "acf_on_area": "area"}


class RadialCurve(NamedTuple):
    """One curve: bin centres (or lags) and values."""

    x: np.ndarray
    y: np.ndarray
    label: str = ""


@dataclass(frozen=True)
class CurveFamily:
    """Curves sharing one x axis, ready for a plotting or export collaborator."""

    x: np.ndarray
    y: np.ndarray  # (n_curves, n_points)
    x_label: str
    y_label: str
    headings: List[str]  # One per curve
    title: str = ""

    @property
    def n_curves(self) -> int:
        return self.y.shape[0]

    @property
    def n_points(self) -> int:
        return self.x.shape[0]

    def curve(self, index: int) -> RadialCurve:
        """Return one member of the family as a RadialCurve."""
        return RadialCurve(x=self.x, y=self.y[index], label=self.headings[index])

    def x_value(self, index: int) -> float:
        return float(self.x[index])

    def y_value(self, curve: int, index: int) -> float:
        return float(self.y[curve, index])

    def limits(self) -> Tuple[float, float]:
        """Global (min, max) over all curves, ignoring NaN bins."""
        finite = self.y[np.isfinite(self.y)]
        if finite.size == 0:
            return float("nan"), float("nan")
        return float(finite.min()), float(finite.max())


@dataclass(frozen=True)
class SpatialACFResult:
    """Spatial ACF of a single frame."""

    curves: CurveFamily
    acf_image: Optional[np.ndarray]  # Recentred, zero-lag normalised ACF (FFT only)
    n_bins: int
    used_fft: bool
    aspect_mismatch: bool = False

    @property
    def curve(self) -> RadialCurve:
        return self.curves.curve(0)


@dataclass(frozen=True)
class StackACFResult:
    """Spatial ACF of every frame of a stack."""

    curves: CurveFamily  # One curve per frame
    mean_curve: RadialCurve
    y_limits: Tuple[float, float]
    aspect_mismatch: bool = False

    def reduced(self, mean: bool) -> CurveFamily:
        """Family to hand to a plot: the mean curve only, or all curves."""
        if not mean:
            return self.curves
        return CurveFamily(
            x=self.curves.x,
            y=self.mean_curve.y[np.newaxis, :],
            x_label=self.curves.x_label,
            y_label=self.curves.y_label,
            headings=[self.mean_curve.label],
            title=f"Mean {self.curves.title}",
        )


@dataclass(frozen=True)
class TemporalACFResult:
    """Temporal ACF over lags, pooled over pixels or one curve per area radius."""

    curves: CurveFamily
    traces: Optional[CurveFamily] = None  # Intensity vs time, diagnostic mode only
    aspect_mismatch: bool = False


class FilterBand(NamedTuple):
    """One band of the bandpass filter bank."""

    index: int
    low_cutoff: float
    high_cutoff: float
    mask: np.ndarray  # Weights in unshifted FFT layout


@dataclass(frozen=True)
class WavelengthACFResult:
    """Per-band temporal ACF and amplitude spectrum."""

    curves: CurveFamily  # One lag curve per band
    amplitudes: np.ndarray  # Lag-0 value of each band before normalisation
    wavelengths: np.ndarray  # Band-centre wavelength of each band
    bands: List[FilterBand]
    amplitude_curve: RadialCurve  # Amplitude vs wavelength, band 0 excluded
    fft_size: int
    filtered_stack: Optional[np.ndarray] = None
    aspect_mismatch: bool = False
    notes: List[str] = field(default_factory=list)
