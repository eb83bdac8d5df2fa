"""Frame buffer adapter: read-only frame sequences and ROI geometry."""

import logging
import math
from typing import Iterator, Sequence, Tuple, Union

import numpy as np
from pydantic import Field, field_validator
from pydantic.dataclasses import dataclass

from image_acf.errors import RoiOutOfBoundsError, StackRequiredError
from image_acf.types import RoiShape

logger = logging.getLogger(__name__)

__all__ = ['FrameSequence', 'Roi']


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class FrameSequence:
    """
    Ordered frames sharing one width and height.

    The engine only reads from the sequence; intensities are exposed as
    float64 regardless of the input dtype.
    """

    def __init__(self, frames: Union[np.ndarray, Sequence[np.ndarray]]):
        """
        Args:
            frames: A single 2-D frame (H, W), a 3-D stack (N, H, W) or a
                list of equally shaped 2-D frames

        Raises:
            ValueError: If the input is empty, not 2-D/3-D or frames differ in shape
        """
        if isinstance(frames, (list, tuple)):
            if len(frames) == 0:
                raise ValueError("Frame sequence is empty")
            shapes = {np.shape(f) for f in frames}
            if len(shapes) != 1:
                raise ValueError(f"All frames must share dimensions, got shapes {sorted(shapes)}")
            data = np.stack([np.asarray(f) for f in frames])
        else:
            data = np.asarray(frames)

        if data.size == 0:
            raise ValueError("Frame array is empty")
        if data.ndim == 2:
            data = data[np.newaxis, :, :]
        if data.ndim != 3:
            raise ValueError(
                f"Expected 2D frame or 3D stack, got {data.ndim}D array with shape {data.shape}"
            )

        self._data = np.array(data, dtype=np.float64)
        self._data.setflags(write=False)
        logger.debug(f"Frame sequence: {self.n_frames} frame(s) of {self.height}x{self.width}")

    @property
    def n_frames(self) -> int:
        return self._data.shape[0]

    @property
    def height(self) -> int:
        return self._data.shape[1]

    @property
    def width(self) -> int:
        return self._data.shape[2]

    @property
    def is_stack(self) -> bool:
        return self.n_frames > 1

    @property
    def data(self) -> np.ndarray:
        """Read-only (N, H, W) float64 view."""
        return self._data

    def frame(self, index: int) -> np.ndarray:
        """Read-only (H, W) view of one frame."""
        return self._data[index]

    def require_stack(self, operation: str) -> None:
        """Fail fast when an operation needs more than one frame."""
        if not self.is_stack:
            raise StackRequiredError(operation, self.n_frames)

    def __len__(self) -> int:
        return self.n_frames

    def __iter__(self) -> Iterator[np.ndarray]:
        return iter(self._data)


@dataclass
class Roi:
    """
    Circular or square region of interest.

    The ROI is rasterised onto an integer bounding box of side
    ``round(2 * radius)``; a pixel belongs to a circular ROI when its centre
    lies within ``radius`` of the box centre.
    """

    center_x: float
    center_y: float
    radius: float = Field(gt=0.0)
    shape: RoiShape = RoiShape.CIRCLE

    @field_validator("shape", mode="before")
    @classmethod
    def parse_shape(cls, v):
        """Accept legacy names such as ``'Circle'``."""
        return RoiShape.parse(v)

    @property
    def size(self) -> int:
        """Side of the integer bounding box."""
        return max(1, _round_half_up(2 * self.radius))

    @property
    def origin(self) -> Tuple[int, int]:
        """(x0, y0) of the bounding box in frame coordinates."""
        return (
            _round_half_up(self.center_x - self.radius),
            _round_half_up(self.center_y - self.radius),
        )

    def offsets(self) -> np.ndarray:
        """Pixel-centre offsets from the box centre along one axis."""
        n = self.size
        return np.arange(n, dtype=np.float64) + 0.5 - n / 2.0

    def distances(self) -> np.ndarray:
        """(n, n) distance of every box pixel centre from the box centre."""
        u = self.offsets()
        return np.sqrt(u[:, np.newaxis] ** 2 + u[np.newaxis, :] ** 2)

    def membership(self) -> np.ndarray:
        """(n, n) boolean mask of the pixels inside the ROI."""
        if self.shape == RoiShape.SQUARE:
            return np.ones((self.size, self.size), dtype=bool)
        return self.distances() <= self.radius

    def check_bounds(self, frame_shape: Tuple[int, int]) -> None:
        """
        Raise if the bounding box does not fit inside a frame.

        Args:
            frame_shape: (H, W) of the frame
        """
        h, w = frame_shape[-2:]
        x0, y0 = self.origin
        n = self.size
        if x0 < 0 or y0 < 0 or x0 + n > w or y0 + n > h:
            raise RoiOutOfBoundsError(
                f"ROI box x=[{x0}, {x0 + n}), y=[{y0}, {y0 + n}) "
                f"does not fit in a {w}x{h} frame"
            )

    def crop(self, frames: np.ndarray) -> np.ndarray:
        """
        Crop the bounding box out of a frame (H, W) or a stack (N, H, W).

        Returns:
            View of shape (n, n) or (N, n, n)
        """
        self.check_bounds(frames.shape)
        x0, y0 = self.origin
        n = self.size
        return frames[..., y0:y0 + n, x0:x0 + n]

    def mean(self, frames: np.ndarray) -> Union[float, np.ndarray]:
        """Mean intensity inside the ROI, per frame for a stack."""
        values = self.crop(frames)[..., self.membership()]
        if values.shape[-1] == 0:
            raise ValueError(f"ROI of radius {self.radius} contains no pixel")
        result = values.mean(axis=-1)
        return float(result) if np.ndim(result) == 0 else result

    def pixel_coordinates(self) -> np.ndarray:
        """(P, 2) frame (x, y) coordinates of the ROI pixels in row-major order."""
        x0, y0 = self.origin
        rows, cols = np.nonzero(self.membership())
        return np.column_stack([cols + x0, rows + y0])

    def sub_roi(self, radius: float) -> "Roi":
        """ROI with the same centre and shape and another radius."""
        return Roi(center_x=self.center_x, center_y=self.center_y, radius=radius, shape=self.shape)

    def pad_for_fft(self, frame: np.ndarray, fft_size: int) -> np.ndarray:
        """
        Prepare a frame for a padded transform.

        The ROI box is cropped, the ROI mean subtracted, samples outside the
        ROI footprint set to 0 and the result centred in a zeroed square
        buffer of side ``fft_size``.

        Args:
            frame: (H, W) frame
            fft_size: Side of the square buffer, at least the ROI box size

        Returns:
            (fft_size, fft_size) float64 buffer
        """
        n = self.size
        if fft_size < n:
            raise ValueError(f"FFT size {fft_size} is smaller than the ROI box ({n})")

        inside = self.membership()
        cropped = self.crop(frame)
        centred = np.where(inside, cropped - cropped[inside].mean(), 0.0)

        buffer = np.zeros((fft_size, fft_size), dtype=np.float64)
        offset = (fft_size - n) // 2
        buffer[offset:offset + n, offset:offset + n] = centred
        return buffer

    def buffer_slice(self, fft_size: int) -> Tuple[slice, slice]:
        """Slices selecting the ROI box inside a buffer built by ``pad_for_fft``."""
        n = self.size
        offset = (fft_size - n) // 2
        return slice(offset, offset + n), slice(offset, offset + n)
