#!/usr/bin/env python3
"""CLI tool for autocorrelation analysis of an image stack.

Usage:
    python analyze_stack.py stack.tif --center 128 128 --radius 20 --mode spatial
    python analyze_stack.py stack.tif --center 128 128 --radius 20 --mode temporal --temporal-mode area
    python analyze_stack.py stack.tif --center 128 128 --radius 20 --mode wavelength --spacing linear --step 10
"""

import argparse
import logging
import sys
from pathlib import Path

import matplotlib

# Use non-interactive backend if not displaying
matplotlib.use("Agg")

import numpy as np
from PIL import Image, ImageSequence
from tqdm import tqdm

from image_acf import AnalysisParameters, AutocorrelationAnalyzer, Calibration, FrameSequence
from image_acf.errors import AutocorrelationError
from image_acf.visualization import plot_amplitude_curve, plot_curve_family

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def load_stack(path: Path) -> FrameSequence:
    """Load every page of a (multi-page) image as a grayscale frame."""
    with Image.open(path) as img:
        pages = [
            np.asarray(page.convert("F"), dtype=np.float64)
            for page in tqdm(ImageSequence.Iterator(img), desc="Loading frames")
        ]
    logger.info(f"Loaded {len(pages)} frame(s) from {path}")
    return FrameSequence(pages)


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Spatial, temporal or wavelength-resolved ACF of an image region",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python analyze_stack.py stack.tif --center 64 64 --radius 16
  python analyze_stack.py stack.tif --center 64 64 --radius 16 --mode spatial --stack-mode mean
  python analyze_stack.py stack.tif --center 64 64 --radius 16 --mode wavelength --smooth
        """,
    )

    parser.add_argument("image_path", type=str, help="Path to a single or multi-page image (.tif)")
    parser.add_argument("--center", nargs=2, type=float, required=True, metavar=("X", "Y"),
                        help="ROI centre in pixels")
    parser.add_argument("--radius", type=float, required=True, help="ROI radius in pixels")
    parser.add_argument("--shape", default="circle", choices=["circle", "square"], help="ROI shape")
    parser.add_argument("--mode", default="spatial", choices=["spatial", "temporal", "wavelength"],
                        help="Analysis to run (default: spatial)")
    parser.add_argument("--no-fft", action="store_true", help="Use the naive spatial estimator")
    parser.add_argument("--stack-mode", default="none", choices=["none", "all", "mean"],
                        help="Spatial ACF over the stack")
    parser.add_argument("--temporal-mode", default="pixels", choices=["pixels", "area"],
                        help="Temporal ACF flavour")
    parser.add_argument("--spacing", default="power_of_2", choices=["power_of_2", "linear", "inverse"],
                        help="Band spacing of the wavelength ACF")
    parser.add_argument("--step", type=int, default=None, help="Wavelength step in percent")
    parser.add_argument("--smooth", action="store_true", help="Smooth bandpass masks")
    parser.add_argument("--pixel-size", type=float, default=None, help="Pixel size")
    parser.add_argument("--unit", default="pixel", help="Spatial unit")
    parser.add_argument("--interval", type=float, default=None, help="Frame interval")
    parser.add_argument("--time-unit", default="sec", help="Time unit")
    parser.add_argument("--workers", type=int, default=1, help="Threads for stack mode")
    parser.add_argument("--output", "-o", type=str, default="output",
                        help="Output directory (default: 'output')")

    args = parser.parse_args()

    image_path = Path(args.image_path)
    if not image_path.exists():
        logger.error(f"Image not found: {image_path}")
        sys.exit(1)

    output_dir = Path(args.output)
    output_dir.mkdir(parents=True, exist_ok=True)

    params = AnalysisParameters(
        use_fft=not args.no_fft,
        roi_shape=args.shape,
        stack_mode=args.stack_mode,
        temporal_mode=args.temporal_mode,
        spacing_scheme=args.spacing,
        step_percent=args.step,
        smooth_bandpass=args.smooth,
        max_workers=args.workers,
        show_progress=True,
    )
    calibration = Calibration(
        pixel_width=args.pixel_size,
        pixel_height=args.pixel_size,
        spatial_unit=args.unit,
        frame_interval=args.interval,
        time_unit=args.time_unit,
    )

    analyzer = AutocorrelationAnalyzer(params)
    roi = analyzer.make_roi(args.center[0], args.center[1], args.radius)
    frames = load_stack(image_path)

    try:
        if args.mode == "spatial":
            result = analyzer.spatial(frames, roi, calibration)
            family = analyzer.spatial_curves(result)
        elif args.mode == "temporal":
            result = analyzer.temporal(frames, roi, calibration)
            family = result.curves
        else:
            result = analyzer.wavelength(frames, roi, calibration)
            family = result.curves
    except AutocorrelationError as e:
        logger.error(f"Analysis failed: {e}")
        sys.exit(1)

    plot_path = output_dir / f"{image_path.stem}_{args.mode}_acf.png"
    plot_curve_family(family, output_path=plot_path)
    print(f"\nSaved ACF plot to: {plot_path}")

    if args.mode == "wavelength":
        amp_path = output_dir / f"{image_path.stem}_amplitude.png"
        unit = calibration.resolve_spatial_scale(params.use_calibration).unit
        plot_amplitude_curve(
            result.amplitude_curve, x_label=f"Wavelength [{unit}]", output_path=amp_path
        )
        print(f"Saved amplitude plot to: {amp_path}")

    print(f"\n{family.title}: {family.n_curves} curve(s) of {family.n_points} point(s)")
    for i in range(min(family.n_curves, 5)):
        values = " ".join(f"{family.y_value(i, k): .3f}" for k in range(min(family.n_points, 8)))
        print(f"  {family.headings[i]:>14s}: {values}")


if __name__ == "__main__":
    main()
