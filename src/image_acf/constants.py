"""Shared constants for the autocorrelation engine."""

# Radial binning
BIN_DENSITY = 0.75  # Radial bins per pixel of radius (nBins = floor(3 * mR / 4))

# FFT buffer
MIN_FFT_SIZE = 4  # Smallest square buffer used for padded transforms

# Normalization
ZERO_VARIANCE_RTOL = 1e-20  # Zero-lag value below this fraction of signal power counts as zero variance

# Bandpass filter bank
DEFAULT_STEP_PERCENT = 4
STEP_PERCENT_TO_BANDS = {
    2: 50,
    4: 25,
    5: 20,
    10: 10,
    20: 5,
    25: 4,
    50: 2,
}
SMOOTH_LAST_BAND_LARGE = 2.0  # Upper scale of the last smooth band
HARD_LAST_BAND_FACTOR = 2.0  # Last hard band reaches 2 * fft_size

# Labels
DEFAULT_SPATIAL_UNIT = "pixels"
DEFAULT_TIME_UNIT = "picture"
