"""
Loudness and global energy.

The loudness figures are an RMS-based approximation of EBU R128 values, not
a compliant measurement. Loudness range is a fixed placeholder.
"""

from __future__ import annotations

import math

import numpy as np

from pymixplanner.analysis.constants import (
    ENERGY_FULL_SCALE_RMS,
    ENERGY_LEVELS,
    LOUDNESS_FLOOR,
    LOUDNESS_OFFSET_DB,
    LOUDNESS_RANGE_PLACEHOLDER,
)


def rms(samples: np.ndarray) -> float:
    x = np.asarray(samples, dtype=np.float64)
    if x.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(x * x)))


def analyze_loudness(samples: np.ndarray) -> tuple[float, float, float]:
    """Returns (integrated_loudness, true_peak, loudness_range)."""
    x = np.asarray(samples, dtype=np.float64)
    peak = float(np.max(np.abs(x))) if x.size else 0.0
    integrated = 20.0 * math.log10(max(rms(x), LOUDNESS_FLOOR)) + LOUDNESS_OFFSET_DB
    true_peak = 20.0 * math.log10(max(peak, LOUDNESS_FLOOR))
    return integrated, true_peak, LOUDNESS_RANGE_PLACEHOLDER


def compute_global_energy(samples: np.ndarray) -> int:
    """Map track RMS onto the 0-10 energy scale."""
    level = ENERGY_LEVELS * min(rms(samples) / ENERGY_FULL_SCALE_RMS, 1.0)
    return int(min(max(round(level), 0), ENERGY_LEVELS))
