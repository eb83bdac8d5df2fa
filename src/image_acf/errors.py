"""Exceptions and warnings raised by the autocorrelation engine."""

__all__ = [
    'AutocorrelationError',
    'StackRequiredError',
    'NonFFTOnStackError',
    'RoiOutOfBoundsError',
    'AnalysisCancelled',
    'MismatchedPixelAspectWarning',
]


class AutocorrelationError(Exception):
    """Base class for all engine errors."""


class StackRequiredError(AutocorrelationError, ValueError):
    """A temporal or wavelength operation was requested on a single frame."""

    def __init__(self, operation: str, n_frames: int):
        self.operation = operation
        self.n_frames = n_frames
        super().__init__(
            f"{operation} requires a stack of at least 2 frames, got {n_frames}"
        )


class NonFFTOnStackError(AutocorrelationError, ValueError):
    """The brute-force spatial ACF was requested on a stack."""

    def __init__(self, n_frames: int):
        self.n_frames = n_frames
        super().__init__(
            f"Spatial ACF without FFT is only available for a single frame, "
            f"got a stack of {n_frames} frames"
        )


class RoiOutOfBoundsError(AutocorrelationError, ValueError):
    """The region of interest does not fit inside the frame."""


class AnalysisCancelled(AutocorrelationError):
    """The caller set the cancellation flag between two iterations."""


class MismatchedPixelAspectWarning(UserWarning):
    """Pixel width and height differ; an averaged pixel size is used."""
