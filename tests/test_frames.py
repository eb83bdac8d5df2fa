"""Tests for frame sequences and ROI geometry."""

import numpy as np
import pytest

from image_acf.errors import RoiOutOfBoundsError, StackRequiredError
from image_acf.frames import FrameSequence, Roi
from image_acf.types import RoiShape


def test_single_frame_sequence():
    """Test wrapping a 2D frame."""
    frames = FrameSequence(np.ones((20, 30), dtype=np.uint8))

    assert frames.n_frames == 1
    assert len(frames) == 1
    assert (frames.height, frames.width) == (20, 30)
    assert not frames.is_stack
    assert frames.data.dtype == np.float64


def test_stack_from_list():
    """Test building a stack from a list of frames."""
    frames = FrameSequence([np.zeros((8, 8)), np.ones((8, 8)), np.full((8, 8), 2.0)])

    assert frames.n_frames == 3
    assert frames.is_stack
    assert [float(f.mean()) for f in frames] == [0.0, 1.0, 2.0]


def test_frames_are_read_only():
    """Test that the engine cannot modify the caller's frames."""
    source = np.zeros((2, 8, 8))
    frames = FrameSequence(source)

    assert not frames.data.flags.writeable
    with pytest.raises(ValueError):
        frames.frame(0)[0, 0] = 1.0
    source[0, 0, 0] = 5.0
    assert frames.frame(0)[0, 0] == 0.0


def test_invalid_sequences():
    """Test error handling for invalid inputs."""
    with pytest.raises(ValueError, match="empty"):
        FrameSequence([])

    with pytest.raises(ValueError, match="Frame array is empty"):
        FrameSequence(np.array([]))

    with pytest.raises(ValueError, match="share dimensions"):
        FrameSequence([np.zeros((8, 8)), np.zeros((8, 9))])

    with pytest.raises(ValueError, match="Expected 2D frame or 3D stack"):
        FrameSequence(np.zeros((2, 2, 8, 8)))


def test_require_stack():
    """Test fail-fast check for temporal operations."""
    with pytest.raises(StackRequiredError, match="at least 2 frames, got 1"):
        FrameSequence(np.zeros((8, 8))).require_stack("Pixel temporal ACF")

    FrameSequence(np.zeros((2, 8, 8))).require_stack("Pixel temporal ACF")


def test_roi_geometry():
    """Test bounding box of a circular ROI."""
    roi = Roi(center_x=32, center_y=32, radius=16)

    assert roi.shape == RoiShape.CIRCLE
    assert roi.size == 32
    assert roi.origin == (16, 16)

    mask = roi.membership()
    assert mask.shape == (32, 32)
    assert mask[16, 16]
    assert not mask[0, 0]
    assert not mask[31, 31]
    # Pixel-centre membership is symmetric
    np.testing.assert_array_equal(mask, mask[::-1, ::-1])
    np.testing.assert_array_equal(mask, mask.T)


def test_square_roi_membership():
    """Test that a square ROI keeps its whole box."""
    roi = Roi(center_x=10, center_y=10, radius=4, shape="Square")

    assert roi.shape == RoiShape.SQUARE
    assert roi.membership().all()
    assert roi.pixel_coordinates().shape == (64, 2)


def test_invalid_roi():
    """Test validation of ROI parameters."""
    with pytest.raises(ValueError):
        Roi(center_x=10, center_y=10, radius=0)

    with pytest.raises(ValueError):
        Roi(center_x=10, center_y=10, radius=4, shape="triangle")


def test_roi_out_of_bounds():
    """Test error handling for an ROI outside the frame."""
    roi = Roi(center_x=5, center_y=5, radius=10)

    with pytest.raises(RoiOutOfBoundsError, match="does not fit"):
        roi.crop(np.zeros((64, 64)))


def test_roi_mean_per_frame():
    """Test ROI mean of a frame and of a stack."""
    stack = np.stack([np.full((32, 32), v) for v in (1.0, 2.0, 4.0)])
    roi = Roi(center_x=16, center_y=16, radius=6)

    assert roi.mean(stack[0]) == pytest.approx(1.0)
    np.testing.assert_allclose(roi.mean(stack), [1.0, 2.0, 4.0])


def test_pixel_coordinates_follow_origin():
    """Test that pixel coordinates are frame coordinates."""
    roi = Roi(center_x=20, center_y=12, radius=2, shape="square")
    coords = roi.pixel_coordinates()

    assert coords[0].tolist() == [18, 10]
    assert coords[-1].tolist() == [21, 13]


def test_sub_roi_keeps_center_and_shape():
    """Test sub-ROI construction."""
    roi = Roi(center_x=20, center_y=20, radius=8, shape="square")
    sub = roi.sub_roi(3)

    assert (sub.center_x, sub.center_y, sub.radius) == (20, 20, 3)
    assert sub.shape == RoiShape.SQUARE


def test_pad_for_fft():
    """Test that the padded buffer holds the mean-subtracted ROI."""
    rng = np.random.default_rng(0)
    frame = rng.uniform(10, 20, size=(64, 64))
    roi = Roi(center_x=32, center_y=32, radius=10)

    buffer = roi.pad_for_fft(frame, 32)

    assert buffer.shape == (32, 32)
    assert buffer.sum() == pytest.approx(0.0, abs=1e-9)
    rows, cols = roi.buffer_slice(32)
    inside = roi.membership()
    np.testing.assert_allclose(
        buffer[rows, cols][inside], roi.crop(frame)[inside] - roi.mean(frame)
    )
    assert np.all(buffer[rows, cols][~inside] == 0.0)
    assert buffer[0, 0] == 0.0

    with pytest.raises(ValueError, match="smaller than the ROI box"):
        roi.pad_for_fft(frame, 16)
