"""
Beatgrid Analysis - Tempo estimation from onset autocorrelation.

Steps:
- Mean-square energy per 1024-sample frame (hop 512)
- Half-wave rectified energy flux as onset strength
- Unnormalized autocorrelation over the lag range covering 60-200 BPM
- Sub-hop refinement of the winning lag
"""

from __future__ import annotations

import math

import numpy as np
from numba import njit

from pymixplanner.analysis.constants import (
    BEAT_CONFIDENCE_SCALE,
    DEFAULT_BPM,
    HALF_LAG_RATIO,
    MAX_AUTOCORR_TERMS,
    MAX_BPM,
    MIN_BPM,
    ONSET_HOP,
    ONSET_SMOOTHING,
    ONSET_WINDOW,
)


def onset_strength(samples: np.ndarray) -> np.ndarray:
    """Rectified frame-to-frame energy flux, one value per hop."""
    x = np.asarray(samples, dtype=np.float64)
    n_frames = len(range(0, len(x) - ONSET_WINDOW, ONSET_HOP))
    if n_frames <= 0:
        return np.zeros(0, dtype=np.float64)

    # Each frame spans exactly two hop blocks
    n_blocks = n_frames + 1
    blocks = (x[: n_blocks * ONSET_HOP] ** 2).reshape(n_blocks, ONSET_HOP).sum(axis=1)
    energy = (blocks[:-1] + blocks[1:]) / ONSET_WINDOW

    flux = np.diff(energy, prepend=0.0)
    return np.maximum(flux, 0.0)


@njit(cache=True)
def _autocorrelation(onsets: np.ndarray, max_lag: int, max_terms: int) -> np.ndarray:
    """Correlation for every lag in [0, max_lag], each over at most max_terms products."""
    n = onsets.shape[0]
    corr = np.zeros(max_lag + 1)
    for lag in range(max_lag + 1):
        terms = min(n - lag, max_terms)
        total = 0.0
        for i in range(terms):
            total += onsets[i] * onsets[i + lag]
        corr[lag] = total
    return corr


def _smooth(onsets: np.ndarray) -> np.ndarray:
    before, center, after = ONSET_SMOOTHING
    padded = np.pad(onsets, 1)
    return before * padded[:-2] + center * padded[1:-1] + after * padded[2:]


def _prefer_half_lag(corr: np.ndarray, lag: int, min_lag: int) -> int:
    """Move to the half lag when the beat period is roughly twice as fast."""
    candidates = [c for c in (lag // 2, (lag + 1) // 2) if c >= min_lag]
    if not candidates or corr[lag] <= 0:
        return lag
    half = max(candidates, key=lambda c: corr[c])
    if corr[half] >= HALF_LAG_RATIO * corr[lag]:
        return half
    return lag


def _refine_lag(corr: np.ndarray, lag: int) -> float:
    """Parabolic interpolation of the correlation peak around an integer lag."""
    if lag < 1 or lag + 1 >= len(corr):
        return float(lag)
    before, peak, after = corr[lag - 1], corr[lag], corr[lag + 1]
    denom = before - 2.0 * peak + after
    if denom >= 0:
        return float(lag)
    offset = 0.5 * (before - after) / denom
    return lag + float(np.clip(offset, -0.5, 0.5))


def analyze_beatgrid(samples: np.ndarray, sr: float) -> tuple[float, float]:
    """
    Estimate tempo in BPM.

    The beat period rarely falls on a whole number of hops (128 BPM at
    44.1 kHz is 40.37 hops), so the winning lag is refined:
    - the scan runs on an onset envelope smoothed over adjacent frames
    - the half lag is taken when it holds a comparable correlation
    - the peak is interpolated to a fractional lag

    Returns:
        (bpm, confidence) with bpm in [60, 200] and confidence in [0, 1].
        Signals too short to hold two onset frames give (120.0, 0.0).
    """
    onsets = onset_strength(samples)
    if len(onsets) < 2:
        return DEFAULT_BPM, 0.0

    fps = sr / ONSET_HOP
    min_lag = max(1, math.ceil(60.0 / MAX_BPM * fps))
    max_lag = min(math.floor(60.0 / MIN_BPM * fps), len(onsets) // 2)
    if max_lag < min_lag:
        return DEFAULT_BPM, 0.0

    raw = _autocorrelation(np.ascontiguousarray(onsets), max_lag, MAX_AUTOCORR_TERMS)
    confidence = min(1.0, float(raw[min_lag:].max()) / BEAT_CONFIDENCE_SCALE)

    # One extra lag so the peak at max_lag still has a right neighbor
    corr = _autocorrelation(np.ascontiguousarray(_smooth(onsets)), max_lag + 1, MAX_AUTOCORR_TERMS)
    # argmax returns the first maximum, so ties go to the shorter lag
    lag = min_lag + int(np.argmax(corr[min_lag : max_lag + 1]))
    lag = _prefer_half_lag(corr, lag, min_lag)

    refined = min(max(_refine_lag(corr, lag), float(min_lag)), float(max_lag))
    bpm = 60.0 * fps / refined
    return float(bpm), float(confidence)
