"""Bandpass filter bank over a square power-of-two spectrum."""

import logging
import math
from typing import List, Tuple

import numpy as np
from PIL import Image
from pydantic import Field, field_validator
from pydantic.dataclasses import dataclass

from image_acf.constants import HARD_LAST_BAND_FACTOR, SMOOTH_LAST_BAND_LARGE
from image_acf.types import FilterBand, SpacingScheme

logger = logging.getLogger(__name__)

__all__ = ['FilterBank', 'power_of_two_band_count']


def power_of_two_band_count(fft_size: int) -> int:
    """Band count of the power-of-two scheme: ``log2(fft_size) + 1``."""
    return int(round(math.log2(fft_size))) + 1


@dataclass
class FilterBank:
    """
    Frequency-domain band masks for the wavelength-resolved ACF.

    Band edges are radii (in frequency samples) from the DC term. Hard
    masks keep the cells whose radius lies in ``[low, high]``; smooth masks
    weight every cell by a difference of Gaussians. Masks are returned in
    unshifted FFT layout so they multiply a raw ``fft2`` output directly.
    """

    fft_size: int = Field(ge=2)
    scheme: SpacingScheme = SpacingScheme.POWER_OF_2
    requested_bands: int = Field(default=25, ge=1)
    smooth: bool = False

    @field_validator("fft_size")
    @classmethod
    def validate_fft_size(cls, v: int) -> int:
        """Filter radii assume a power-of-two square."""
        if v & (v - 1) != 0:
            raise ValueError(f"FFT size must be a power of 2, got {v}")
        return v

    @field_validator("scheme", mode="before")
    @classmethod
    def parse_scheme(cls, v):
        return SpacingScheme.parse(v)

    @property
    def band_count(self) -> int:
        """Number of bands; fixed by the FFT size for the power-of-two scheme."""
        if self.scheme == SpacingScheme.POWER_OF_2:
            return power_of_two_band_count(self.fft_size)
        return self.requested_bands

    @property
    def band_count_forced(self) -> bool:
        return self.band_count != self.requested_bands

    def _check_index(self, j: int) -> None:
        if not 0 <= j < self.band_count:
            raise ValueError(f"Band index {j} out of range [0, {self.band_count})")

    def band_edges(self, j: int) -> Tuple[float, float]:
        """
        Hard-mask radii ``(low, high)`` of band ``j``.

        Inverse edges are evaluated in single precision so that cells lying
        exactly on an edge are classified the same way as in existing
        reference curves.
        """
        self._check_index(j)
        n_bands = self.band_count
        size = self.fft_size
        k = np.float32(n_bands)
        one = np.float32(1)

        if j == 0:
            low = 0.0
        elif self.scheme == SpacingScheme.POWER_OF_2:
            low = float(2 ** (j - 1))
        elif self.scheme == SpacingScheme.LINEAR:
            low = (size / 2) * j / n_bands
        else:
            low = size * float(one / (k + one - np.float32(j)) - one / (k + one))

        if j == n_bands - 1:
            high = HARD_LAST_BAND_FACTOR * size
        elif self.scheme == SpacingScheme.POWER_OF_2:
            high = float(2 ** j)
        elif self.scheme == SpacingScheme.LINEAR:
            high = (size / 2) * (j + 1) / n_bands
        else:
            high = size * float(one / (k - np.float32(j)) - one / (k + one))

        return low, high

    def smooth_scales(self, j: int) -> Tuple[float, float]:
        """
        Gaussian scales ``(small, large)`` of the smooth mask of band ``j``.

        The weight of a cell at frequency radius r is
        ``(1 - exp(-r^2 large^2)) * exp(-r^2 small^2)``.
        """
        self._check_index(j)
        n_bands = self.band_count
        half = self.fft_size / 2

        if j == 0:
            small = 0.0
        elif self.scheme == SpacingScheme.POWER_OF_2:
            small = 2 ** (j - 1) / half
        elif self.scheme == SpacingScheme.LINEAR:
            small = j / (2 * n_bands)
        else:
            small = 2 / (n_bands + 1 - j)

        if j == n_bands - 1:
            large = SMOOTH_LAST_BAND_LARGE
        elif self.scheme == SpacingScheme.POWER_OF_2:
            large = 2 ** j / half
        elif self.scheme == SpacingScheme.LINEAR:
            large = (j + 1) / (2 * n_bands)
        else:
            large = 2 / (n_bands - j)

        return small, large

    def _shifted_radii(self) -> np.ndarray:
        d = np.arange(self.fft_size, dtype=np.float64) - self.fft_size // 2
        return np.sqrt(d[:, np.newaxis] ** 2 + d[np.newaxis, :] ** 2)

    def hard_mask(self, j: int) -> np.ndarray:
        """0/1 mask of band ``j`` in unshifted layout."""
        low, high = self.band_edges(j)
        radii = self._shifted_radii()
        center = self.fft_size // 2

        if self.scheme == SpacingScheme.POWER_OF_2:
            # Band 0 passes DC only; the other bands never pass it
            if j == 0:
                mask = np.zeros_like(radii)
                mask[center, center] = 1.0
            else:
                mask = ((radii >= low) & (radii <= high)).astype(np.float64)
                mask[center, center] = 0.0
        else:
            mask = ((radii >= low) & (radii <= high)).astype(np.float64)

        return np.fft.ifftshift(mask)

    def smooth_mask(self, j: int) -> np.ndarray:
        """Difference-of-Gaussians weights of band ``j`` in unshifted layout."""
        small, large = self.smooth_scales(j)
        freq = np.abs(np.fft.fftfreq(self.fft_size) * self.fft_size)
        r2 = freq[:, np.newaxis] ** 2 + freq[np.newaxis, :] ** 2
        weights = (1.0 - np.exp(-r2 * large ** 2)) * np.exp(-r2 * small ** 2)
        weights[0, 0] = 1.0
        return weights

    def mask(self, j: int) -> np.ndarray:
        return self.smooth_mask(j) if self.smooth else self.hard_mask(j)

    def band(self, j: int) -> FilterBand:
        low, high = self.band_edges(j)
        return FilterBand(index=j, low_cutoff=low, high_cutoff=high, mask=self.mask(j))

    def bands(self) -> List[FilterBand]:
        """Every band of the bank, in order."""
        logger.debug(
            f"Filter bank: {self.band_count} {self.scheme.value} bands on a "
            f"{self.fft_size}x{self.fft_size} spectrum ({'smooth' if self.smooth else 'hard'})"
        )
        return [self.band(j) for j in range(self.band_count)]

    def apply(self, spectrum: np.ndarray, j: int) -> np.ndarray:
        """
        Weight a spectrum (or a stack of spectra) by the mask of band ``j``.

        Args:
            spectrum: (..., F, F) unshifted ``fft2`` output

        Returns:
            Filtered spectrum, same shape
        """
        if spectrum.shape[-2:] != (self.fft_size, self.fft_size):
            raise ValueError(
                f"Spectrum shape {spectrum.shape[-2:]} does not match FFT size {self.fft_size}"
            )
        return spectrum * self.mask(j)

    def mask_stack(self) -> np.ndarray:
        """(K, F, F) stack of all masks, recentred with DC in the middle."""
        return np.stack([np.fft.fftshift(self.mask(j)) for j in range(self.band_count)])

    def mask_image(self, j: int) -> Image.Image:
        """Recentred mask of band ``j`` as an 8-bit grayscale image."""
        shifted = np.fft.fftshift(self.mask(j))
        return Image.fromarray(np.clip(np.round(shifted * 255.0), 0, 255).astype(np.uint8))
