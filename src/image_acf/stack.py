"""Spatial ACF over every frame of a stack."""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Optional

import numpy as np
from pydantic import Field
from pydantic.dataclasses import dataclass
from tqdm import tqdm

from image_acf.binning import RadialBinner
from image_acf.calibration import Calibration
from image_acf.errors import AnalysisCancelled
from image_acf.frames import FrameSequence, Roi
from image_acf.spatial import SpatialACF
from image_acf.types import CurveFamily, RadialCurve, StackACFResult

logger = logging.getLogger(__name__)

__all__ = ['StackAggregator']

ProgressCallback = Callable[[int, int], None]


@dataclass
class StackAggregator:
    """
    Collects one FFT spatial ACF curve per frame.

    Frames are independent, so they can be processed on a thread pool;
    every curve is written into its own row of a pre-sized result array.
    """

    max_workers: int = Field(default=1, ge=1)
    show_progress: bool = False
    overlap_normalized: bool = False

    def compute(
        self,
        frames: FrameSequence,
        roi: Roi,
        calibration: Optional[Calibration] = None,
        use_calibration: bool = True,
        use_time_calibration: bool = True,
        progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
        title: str = "",
    ) -> StackACFResult:
        """
        Spatial ACF of every frame.

        Args:
            frames: Frame sequence (a single frame gives a one-curve family)
            roi: Region of interest
            calibration: Optional calibration for radii and frame headings
            use_calibration: Express radii in calibrated units when available
            use_time_calibration: Label frames with elapsed time when available
            progress: Optional callback receiving (done, total) after each frame
            cancel_event: Optional event checked before each frame

        Returns:
            StackACFResult with every curve, their mean and shared y limits

        Raises:
            AnalysisCancelled: If ``cancel_event`` is set during the scan
        """
        calibration = calibration or Calibration()
        scale = calibration.resolve_spatial_scale(use_calibration)
        binner = RadialBinner(roi.radius)
        roi.check_bounds((frames.height, frames.width))

        n_frames = frames.n_frames
        curves = np.empty((n_frames, binner.n_bins), dtype=np.float64)
        spatial = SpatialACF(overlap_normalized=self.overlap_normalized)
        done = 0
        lock = threading.Lock()

        logger.info(f"Spatial ACF on {n_frames} frame(s) with {self.max_workers} worker(s)")

        def process(index: int) -> None:
            nonlocal done
            if cancel_event is not None and cancel_event.is_set():
                raise AnalysisCancelled(f"Stack ACF cancelled before frame {index + 1}")
            profile, _ = spatial.fft_profile(frames.frame(index), roi)
            curves[index] = profile
            with lock:
                done += 1
                if progress is not None:
                    progress(done, n_frames)

        with tqdm(total=n_frames, desc="Frames", disable=not self.show_progress) as bar:
            if self.max_workers == 1:
                for index in range(n_frames):
                    process(index)
                    bar.update(1)
            else:
                with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                    futures = [pool.submit(process, index) for index in range(n_frames)]
                    for future in as_completed(futures):
                        # result() re-raises a worker exception
                        future.result()
                        bar.update(1)

        headings = [calibration.frame_label(j, use_time_calibration) for j in range(n_frames)]
        family = CurveFamily(
            x=binner.bin_centers(scale.pixel_size),
            y=curves,
            x_label=f"Radius [{scale.unit}]",
            y_label="AutoCorrelation",
            headings=headings,
            title=title or "AutoCorrelation",
        )
        mean_curve = RadialCurve(x=family.x, y=curves.mean(axis=0), label="AutoCorrelation")

        logger.info(f"Stack ACF complete: {n_frames} curves of {binner.n_bins} bins")
        return StackACFResult(
            curves=family,
            mean_curve=mean_curve,
            y_limits=family.limits(),
            aspect_mismatch=scale.aspect_mismatch,
        )
