"""
Key Analysis - Krumhansl-Schmuckler key finding on a coarse chroma vector.

Evaluates:
- Chroma from FFT magnitudes of the lowest bins (20 Hz - 5 kHz)
- Correlation against the major/minor profile for every tonic
- Camelot label of the best tonic/mode pair
"""

from __future__ import annotations

import numpy as np

from pymixplanner.analysis.constants import (
    CAMELOT_MAJOR,
    CAMELOT_MINOR,
    KEY_FFT_SIZE,
    KEY_FRAME_BATCH,
    KEY_HOP,
    KEY_MAX_BINS,
    KEY_MAX_FREQ,
    KEY_MIN_FREQ,
    MAJOR_PROFILE,
    MINOR_PROFILE,
)


def _bin_pitch_classes(sr: float) -> tuple[np.ndarray, np.ndarray]:
    """Indices of usable FFT bins and the pitch class each one feeds."""
    n_bins = min(KEY_FFT_SIZE // 2, KEY_MAX_BINS)
    freqs = np.arange(n_bins) * sr / KEY_FFT_SIZE
    usable = np.flatnonzero((freqs > KEY_MIN_FREQ) & (freqs < KEY_MAX_FREQ))
    midi = 12.0 * np.log2(freqs[usable] / 440.0) + 69.0
    pitch_classes = np.floor(midi + 0.5).astype(np.int64) % 12
    return usable, pitch_classes


def compute_chroma(samples: np.ndarray, sr: float) -> np.ndarray:
    """12-bin chroma vector normalized to sum 1 (all zeros for silence)."""
    x = np.asarray(samples, dtype=np.float64)
    chroma = np.zeros(12, dtype=np.float64)
    starts = np.arange(0, len(x) - KEY_FFT_SIZE, KEY_HOP)
    if len(starts) == 0:
        return chroma

    usable, pitch_classes = _bin_pitch_classes(sr)
    offsets = np.arange(KEY_FFT_SIZE)

    for i in range(0, len(starts), KEY_FRAME_BATCH):
        batch = x[starts[i:i + KEY_FRAME_BATCH, None] + offsets]
        magnitude = np.abs(np.fft.rfft(batch, axis=1))[:, usable]
        chroma += np.bincount(pitch_classes, weights=magnitude.sum(axis=0), minlength=12)

    total = chroma.sum()
    if total > 0:
        chroma /= total
    return chroma


def profile_correlations(chroma: np.ndarray) -> np.ndarray:
    """
    Dot product of the chroma vector with each rotated key profile.

    Returns:
        (12, 2) array: row = tonic pitch class, column 0 = major, 1 = minor.
    """
    # rotated[k, j] = chroma[(k + j) % 12] aligns the profile tonic with k
    indices = (np.arange(12)[:, None] + np.arange(12)) % 12
    rotated = chroma[indices]
    return np.stack([rotated @ MAJOR_PROFILE, rotated @ MINOR_PROFILE], axis=1)


def camelot_label(pitch_class: int, minor: bool) -> str:
    return CAMELOT_MINOR[pitch_class] if minor else CAMELOT_MAJOR[pitch_class]


def analyze_key(samples: np.ndarray, sr: float) -> tuple[str, float]:
    """
    Detect the musical key.

    Returns:
        (camelot_key, confidence). The confidence is the raw profile
        correlation and is not bounded to [0, 1].
    """
    scores = profile_correlations(compute_chroma(samples, sr))
    # Row-major argmax scans tonic 0..11 with major before minor; first max wins
    best = int(np.argmax(scores))
    tonic, mode = divmod(best, 2)
    return camelot_label(tonic, bool(mode)), float(scores[tonic, mode])
