"""
Analysis Constants - All thresholds and parameters.

Centralized configuration for all analysis parameters to avoid magic numbers
and enable easy tuning. Several of these values define the expected output
of the heuristic stages (sections, cues, planner), so changing them changes
results, not just performance.
"""

from __future__ import annotations

import numpy as np

# ============================================================================
# BEATGRID
# ============================================================================

ONSET_WINDOW = 1024  # Samples per energy frame
ONSET_HOP = 512  # Samples between energy frames
MIN_BPM = 60.0
MAX_BPM = 200.0
DEFAULT_BPM = 120.0  # Returned when the onset signal is too short
MAX_AUTOCORR_TERMS = 1000  # Onset samples used per lag
BEAT_CONFIDENCE_SCALE = 0.05  # Peak correlation that maps to confidence 1.0
HALF_LAG_RATIO = 0.5  # Half lag wins when it keeps this share of the peak correlation
ONSET_SMOOTHING = (0.25, 0.5, 0.25)  # Spreads each onset over its neighbor frames

# ============================================================================
# KEY
# ============================================================================

KEY_FFT_SIZE = 4096
KEY_HOP = KEY_FFT_SIZE // 2
KEY_MAX_BINS = 500  # Only the lowest bins feed the chroma vector
KEY_MIN_FREQ = 20.0
KEY_MAX_FREQ = 5000.0
KEY_FRAME_BATCH = 256  # Frames per FFT batch (bounds memory use)

# Krumhansl-Kessler key profiles
MAJOR_PROFILE = np.array([6.35, 2.23, 3.48, 2.33, 4.38, 4.09, 2.52, 5.19, 2.39, 3.66, 2.29, 2.88])
MINOR_PROFILE = np.array([6.33, 2.68, 3.52, 5.38, 2.60, 3.53, 2.54, 4.75, 3.98, 2.69, 3.34, 3.17])

# Camelot wheel position for each tonic pitch class (C=0 … B=11)
CAMELOT_MAJOR = ("8B", "3B", "10B", "5B", "12B", "7B", "2B", "9B", "4B", "11B", "6B", "1B")
CAMELOT_MINOR = ("5A", "12A", "7A", "2A", "9A", "4A", "11A", "6A", "1A", "8A", "3A", "10A")

# ============================================================================
# LOUDNESS / ENERGY
# ============================================================================

LOUDNESS_OFFSET_DB = -10.0  # Applied to the RMS level to approximate LUFS
LOUDNESS_FLOOR = 1e-10
LOUDNESS_RANGE_PLACEHOLDER = 8.0  # Typical LRA, not measured
ENERGY_FULL_SCALE_RMS = 0.35  # RMS that maps to energy level 10
ENERGY_LEVELS = 10

# ============================================================================
# SECTIONS / CUES
# ============================================================================

SECTION_WINDOW_SECONDS = 4.0
SECTION_EDGE_WINDOWS = 4  # Windows forced to intro (start) and outro (end)
SECTION_DROP_THRESHOLD = 0.7
SECTION_VERSE_THRESHOLD = 0.4
SECTION_MERGE_TOLERANCE = 0.3
SECTION_EDGE_CONFIDENCE = 0.8
SECTION_BODY_CONFIDENCE = 0.7

# ============================================================================
# WAVEFORM
# ============================================================================

WAVEFORM_POINTS = 2000
WAVEFORM_PREVIEW_POINTS = 1000

# ============================================================================
# EMBEDDING
# ============================================================================

EMBEDDING_SAMPLE_RATE = 48000
EMBEDDING_WINDOW_SECONDS = 1.0
EMBEDDING_HOP_SECONDS = 0.5
EMBEDDING_MEL_BANDS = 128
EMBEDDING_FRAMES = 199
EMBEDDING_FFT_SIZE = 2048
EMBEDDING_DIM = 512
EMBEDDING_NORM_TOLERANCE = 1e-5
MEL_FLOOR = 1e-10
RESAMPLE_TOLERANCE_HZ = 1.0

EMBEDDING_WINDOW_SAMPLES = int(EMBEDDING_WINDOW_SECONDS * EMBEDDING_SAMPLE_RATE)
EMBEDDING_HOP_SAMPLES = int(EMBEDDING_HOP_SECONDS * EMBEDDING_SAMPLE_RATE)
MEL_HOP = EMBEDDING_WINDOW_SAMPLES // EMBEDDING_FRAMES

# ============================================================================
# SIMILARITY / PLANNER WEIGHTS
# ============================================================================

# One weighting scheme for both pairwise similarity and planner edges
WEIGHT_TEMPO = 0.25
WEIGHT_KEY = 0.25
WEIGHT_EMBEDDING = 0.30
WEIGHT_ENERGY = 0.20

TEMPO_TOLERANCE_BPM = 20.0  # BPM delta at which tempo similarity reaches 0
TEMPO_MATCH_BPM = 1.0  # Below this delta the explanation reads "tempo match"

KEY_SCORE_SAME = 1.0
KEY_SCORE_COMPATIBLE = 0.85
KEY_SCORE_RELATIVE = 0.7
KEY_SCORE_HARMONIC = 0.7
KEY_SCORE_CLASH = 0.2

VIBE_SIMILAR_PERCENT = 70
VIBE_MODERATE_PERCENT = 50

LOOKAHEAD_WEIGHT = 0.3

# ============================================================================
# TRANSITION POINTS
# ============================================================================

PHRASE_BEATS = 16  # Beats per phrase
PHRASE_SNAP_BEATS = 2  # A window start this close to a boundary counts as on-phrase
MIN_TRANSITION_WINDOW_SECONDS = 8.0  # Shortest low-energy stretch kept as a window
LOW_ENERGY_LEVEL = 0.4  # Normalized beat energy below this is a low-energy stretch
LOW_ENERGY_WINDOW_SCORE = 0.7
PHRASE_POINT_SCORE = 0.9  # Score of the phrase-boundary mix points
WINDOW_BASE_SCORE = 0.5
WINDOW_LOW_ENERGY_WEIGHT = 0.2
WINDOW_STEADY_WEIGHT = 0.15
WINDOW_LENGTH_WEIGHT = 0.15
WINDOW_FULL_LENGTH_SECONDS = 32.0
WINDOW_PHRASE_BONUS = 0.1
