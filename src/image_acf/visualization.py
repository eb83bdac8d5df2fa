"""Plotting helpers for ACF curve families."""

import logging
from pathlib import Path
from typing import Optional, Tuple

import matplotlib.pyplot as plt
import numpy as np

from image_acf.types import CurveFamily, RadialCurve

logger = logging.getLogger(__name__)

__all__ = ['plot_curve_family', 'plot_amplitude_curve']

# Legends with more entries than this are dropped
MAX_LEGEND_ENTRIES = 12


def _finite_limits(values: np.ndarray) -> Optional[Tuple[float, float]]:
    finite = values[np.isfinite(values)]
    if finite.size == 0:
        return None
    low, high = float(finite.min()), float(finite.max())
    if low == high:
        pad = abs(low) * 0.05 or 0.05
        return low - pad, high + pad
    return low, high


def _finish(fig, output_path: Optional[Path], show_plot: bool) -> None:
    if output_path:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(output_path, dpi=150, bbox_inches="tight")
        logger.info(f"Saved plot to {output_path}")

    if show_plot:
        backend = plt.get_backend()
        if backend.lower() != "agg":
            plt.show()
        else:
            logger.debug(f"Skipping plt.show() - non-interactive backend: {backend}")
    else:
        plt.close(fig)


def plot_curve_family(
    family: CurveFamily,
    output_path: Optional[Path] = None,
    show_plot: bool = False,
    y_limits: Optional[Tuple[float, float]] = None,
):
    """
    Plot every curve of a family on shared axes.

    NaN values (empty radial bins) leave gaps in the lines and are ignored
    when computing axis limits.

    Args:
        family: Curves to plot
        output_path: Optional path to save the figure
        show_plot: Whether to display the figure interactively
        y_limits: Optional (min, max) overriding the finite data range

    Returns:
        The matplotlib Figure
    """
    fig, ax = plt.subplots(figsize=(8, 5))
    cmap = plt.get_cmap("viridis")

    for i in range(family.n_curves):
        color = cmap(i / max(1, family.n_curves - 1)) if family.n_curves > 1 else "black"
        ax.plot(family.x, family.y[i], "-o", markersize=3, linewidth=1.2, color=color,
                label=family.headings[i])

    limits = y_limits if y_limits is not None else _finite_limits(family.y)
    if limits is not None and all(np.isfinite(limits)):
        ax.set_ylim(*limits)
    x_limits = _finite_limits(family.x)
    if x_limits is not None:
        ax.set_xlim(*x_limits)

    ax.set_xlabel(family.x_label, fontweight="bold")
    ax.set_ylabel(family.y_label, fontweight="bold")
    ax.set_title(family.title, fontweight="bold")
    ax.grid(True, alpha=0.3)
    if 1 < family.n_curves <= MAX_LEGEND_ENTRIES:
        ax.legend(fontsize=8)

    _finish(fig, output_path, show_plot)
    return fig


def plot_amplitude_curve(
    curve: RadialCurve,
    x_label: str = "Wavelength [pixels]",
    output_path: Optional[Path] = None,
    show_plot: bool = False,
):
    """Plot band amplitude against band-centre wavelength."""
    fig, ax = plt.subplots(figsize=(8, 5))
    ax.plot(curve.x, curve.y, "-s", color="tab:red", markersize=4)
    ax.set_xlabel(x_label, fontweight="bold")
    ax.set_ylabel(curve.label or "Amplitude", fontweight="bold")
    ax.set_title("Amplitude", fontweight="bold")
    ax.grid(True, alpha=0.3)

    _finish(fig, output_path, show_plot)
    return fig
