from __future__ import annotations

import math

import numpy as np

from pymixplanner.analysis.constants import WAVEFORM_POINTS, WAVEFORM_PREVIEW_POINTS


def summarize_waveform(samples: np.ndarray, target_points: int = WAVEFORM_POINTS) -> np.ndarray:
    """Peak envelope: max |x| per block, at most `target_points` values."""
    x = np.abs(np.asarray(samples, dtype=np.float32))
    if x.size == 0 or target_points <= 0:
        return np.zeros(0, dtype=np.float32)

    block = math.ceil(x.size / target_points)
    n_blocks = math.ceil(x.size / block)
    padded = np.zeros(n_blocks * block, dtype=np.float32)
    padded[: x.size] = x
    return padded.reshape(n_blocks, block).max(axis=1)


def downsample_preview(summary: np.ndarray, max_points: int = WAVEFORM_PREVIEW_POINTS) -> np.ndarray:
    """Stride-decimate a summary for storage."""
    summary = np.asarray(summary, dtype=np.float32)
    if summary.size <= max_points:
        return summary.copy()
    step = math.ceil(summary.size / max_points)
    return summary[::step].copy()
