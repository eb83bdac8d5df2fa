"""Tests for the per-frame spatial ACF of a stack."""

import threading

import numpy as np
import pytest
from scipy.ndimage import gaussian_filter

from image_acf.calibration import Calibration
from image_acf.errors import AnalysisCancelled
from image_acf.frames import FrameSequence, Roi
from image_acf.spatial import SpatialACF
from image_acf import stack as stack_module
from image_acf.stack import StackAggregator


def random_stack(n_frames: int = 3, size: int = 48, seed: int = 0) -> FrameSequence:
    rng = np.random.default_rng(seed)
    noise = rng.normal(size=(n_frames, size, size))
    return FrameSequence(100.0 + 20.0 * gaussian_filter(noise, sigma=(0, 2, 2), mode="wrap"))


def test_stack_aggregator_initialization():
    """Test StackAggregator initialization and validation."""
    aggregator = StackAggregator(max_workers=4, show_progress=True)
    assert aggregator.max_workers == 4

    with pytest.raises(ValueError):
        StackAggregator(max_workers=0)


def test_one_curve_per_frame():
    """Test that every frame gets its own curve and heading."""
    frames = random_stack()
    roi = Roi(center_x=24, center_y=24, radius=8)

    result = StackAggregator().compute(frames, roi)

    assert result.curves.y.shape == (3, 6)
    assert result.curves.headings == ["1", "2", "3"]
    np.testing.assert_allclose(result.curves.y[:, 0], 1.0)

    single, _ = SpatialACF().fft_profile(frames.frame(2), roi)
    np.testing.assert_allclose(result.curves.y[2], single)


def test_mean_curve_and_limits():
    """Test the mean curve and the shared y limits."""
    frames = random_stack(n_frames=4)
    roi = Roi(center_x=24, center_y=24, radius=10)

    result = StackAggregator().compute(frames, roi)

    np.testing.assert_allclose(result.mean_curve.y, result.curves.y.mean(axis=0))
    low, high = result.y_limits
    assert low == pytest.approx(np.nanmin(result.curves.y))
    assert high >= 1.0

    reduced = result.reduced(mean=True)
    assert reduced.n_curves == 1
    assert reduced.title == "Mean AutoCorrelation"
    assert result.reduced(mean=False) is result.curves


def test_thread_pool_matches_serial():
    """Test that parallel processing gives the serial result."""
    frames = random_stack(n_frames=6, seed=4)
    roi = Roi(center_x=24, center_y=24, radius=9)

    serial = StackAggregator(max_workers=1).compute(frames, roi)
    parallel = StackAggregator(max_workers=3).compute(frames, roi)

    np.testing.assert_array_equal(serial.curves.y, parallel.curves.y)


def test_progress_callback():
    """Test progress reporting after each frame."""
    frames = random_stack()
    roi = Roi(center_x=24, center_y=24, radius=8)
    calls = []

    StackAggregator().compute(frames, roi, progress=lambda done, total: calls.append((done, total)))

    assert calls == [(1, 3), (2, 3), (3, 3)]


def test_cancellation():
    """Test that a set cancellation flag stops the scan."""
    frames = random_stack()
    roi = Roi(center_x=24, center_y=24, radius=8)
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(AnalysisCancelled, match="before frame 1"):
        StackAggregator().compute(frames, roi, cancel_event=cancel)


def test_time_calibrated_headings():
    """Test frame headings with a frame interval."""
    frames = random_stack()
    roi = Roi(center_x=24, center_y=24, radius=8)
    cal = Calibration(frame_interval=0.5, time_unit="s")

    result = StackAggregator().compute(frames, roi, calibration=cal)

    assert result.curves.headings == ["0 s", "0.5000 s", "1 s"]


def test_progress_bar_follows_completed_frames(monkeypatch):
    """Test that the progress bar advances only as frames finish."""
    frames = random_stack(n_frames=6)
    roi = Roi(center_x=24, center_y=24, radius=8)
    done = []
    updates = []

    class RecordingBar:
        def __init__(self, *args, **kwargs):
            self.total = kwargs["total"]

        def __enter__(self):
            return self

        def __exit__(self, *exc_info):
            return False

        def update(self, n):
            updates.append(len(done))

    monkeypatch.setattr(stack_module, "tqdm", RecordingBar)

    StackAggregator(max_workers=3).compute(frames, roi, progress=lambda d, n: done.append(d))

    assert len(updates) == 6
    assert all(finished >= i + 1 for i, finished in enumerate(updates))


def test_overlap_normalized_stack():
    """Test that the stack uses the overlap-normalised estimator when asked."""
    frames = random_stack()
    roi = Roi(center_x=24, center_y=24, radius=8)

    result = StackAggregator(overlap_normalized=True).compute(frames, roi)
    single, _ = SpatialACF(overlap_normalized=True).fft_profile(frames.frame(1), roi)

    np.testing.assert_allclose(result.curves.y[1], single)
