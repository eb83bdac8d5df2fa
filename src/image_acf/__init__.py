"""Image ACF - spatial, temporal and wavelength-resolved autocorrelation of image regions"""

__version__ = "0.1.0"

# Export main classes (using relative imports to avoid circular dependencies)
from .analyzer import AnalysisParameters, AutocorrelationAnalyzer
from .calibration import Calibration
from .errors import (
    AnalysisCancelled,
    AutocorrelationError,
    MismatchedPixelAspectWarning,
    NonFFTOnStackError,
    RoiOutOfBoundsError,
    StackRequiredError,
)
from .frames import FrameSequence, Roi
from .types import RoiShape, SpacingScheme, StackMode, TemporalMode

__all__ = [
    "AutocorrelationAnalyzer",
    "AnalysisParameters",
    "Calibration",
    "FrameSequence",
    "Roi",
    "RoiShape",
    "SpacingScheme",
    "StackMode",
    "TemporalMode",
    "AutocorrelationError",
    "StackRequiredError",
    "NonFFTOnStackError",
    "RoiOutOfBoundsError",
    "AnalysisCancelled",
    "MismatchedPixelAspectWarning",
]
