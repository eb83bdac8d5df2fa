"""Basic usage example for the autocorrelation analyzer on synthetic data."""

import logging

import numpy as np
from scipy.ndimage import gaussian_filter

from image_acf import AnalysisParameters, AutocorrelationAnalyzer, Calibration, FrameSequence

# Configure logging
logging.basicConfig(level=logging.INFO)


def make_drifting_speckle(n_frames: int = 20, size: int = 64, seed: int = 0) -> np.ndarray:
    """Smooth random texture whose intensity fluctuates slowly over time."""
    rng = np.random.default_rng(seed)
    base = gaussian_filter(rng.normal(size=(size, size)), sigma=2.0, mode="wrap")

    t = np.arange(n_frames)[:, np.newaxis, np.newaxis]
    noise = rng.normal(scale=0.1, size=(n_frames, size, size))
    return 100.0 + 10.0 * base * np.cos(2 * np.pi * t / 10.0) + noise


# Example: Spatial ACF of a single frame, FFT, overlap-normalised FFT and naive
def spatial_single_frame(frames: FrameSequence, calibration: Calibration):
    """Compare the spatial estimators on the first frame."""
    variants = {
        "FFT": AnalysisParameters(),
        "Overlap-normalised FFT": AnalysisParameters(overlap_normalized=True),
        "Naive": AnalysisParameters(use_fft=False),
    }
    for name, params in variants.items():
        analyzer = AutocorrelationAnalyzer(params)
        roi = analyzer.make_roi(32, 32, 12)
        result = analyzer.spatial(FrameSequence(frames.frame(0)), roi, calibration)
        curve = result.curve
        print(f"\n{name} spatial ACF ({result.n_bins} bins):")
        for x, y in zip(curve.x[:5], curve.y[:5]):
            print(f"  {x:8.3f} {result.curves.x_label}: {y: .4f}")


# Example: Temporal and wavelength-resolved ACF of a stack
def temporal_and_wavelength(frames: FrameSequence, calibration: Calibration):
    """Pooled pixel ACF, area ACF and per-band ACF of the same ROI."""
    analyzer = AutocorrelationAnalyzer(
        AnalysisParameters(temporal_mode="ACF on pixels", spacing_scheme="Power of 2")
    )
    roi = analyzer.make_roi(32, 32, 10)

    pixels = analyzer.temporal(frames, roi, calibration)
    print("\nPooled pixel ACF:")
    print("  " + " ".join(f"{v: .3f}" for v in pixels.curves.y[0]))

    area = AutocorrelationAnalyzer(AnalysisParameters(temporal_mode="area")).temporal(
        frames, roi, calibration
    )
    print(f"\nArea ACF: {area.curves.n_curves} radii, lag-1 values:")
    for heading, y in zip(area.curves.headings, area.curves.y[:, 1]):
        print(f"  {heading:>14s}: {y: .3f}")

    bands = analyzer.wavelength(frames, roi, calibration)
    for note in bands.notes:
        print(f"\nNote: {note}")
    print(f"\nWavelength ACF on a {bands.fft_size}x{bands.fft_size} spectrum:")
    for heading, amplitude in zip(bands.curves.headings, bands.amplitudes):
        print(f"  band at {heading:>14s}: amplitude {amplitude:.4g}")


if __name__ == "__main__":
    print("=" * 60)
    print("Image ACF - Basic Usage Example")
    print("=" * 60)

    stack = FrameSequence(make_drifting_speckle())
    cal = Calibration(pixel_width=0.1, pixel_height=0.1, spatial_unit="um", frame_interval=0.5)

    spatial_single_frame(stack, cal)
    temporal_and_wavelength(stack, cal)

    print("\n" + "=" * 60)
