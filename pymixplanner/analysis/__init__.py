"""
PyMixPlanner Analysis Module - Per-track audio analysis.

Architecture:
├── constants.py   - Thresholds and parameters of every stage
├── beatgrid.py    - Tempo from onset autocorrelation
├── key.py         - Krumhansl-Schmuckler key finding, Camelot labels
├── loudness.py    - RMS loudness approximation and 0-10 energy level
├── sections.py    - Energy-based sections and the cue points derived from them
├── waveform.py    - Peak envelope for display
├── embedding.py   - Log-mel windows, model handle, pooled track embedding
└── pipeline.py    - Stage stream for one track, worker pool for many
"""

# Stage analyzers
from pymixplanner.analysis.beatgrid import analyze_beatgrid, onset_strength
from pymixplanner.analysis.key import analyze_key, compute_chroma
from pymixplanner.analysis.loudness import analyze_loudness, compute_global_energy
from pymixplanner.analysis.sections import detect_sections, generate_cue_points
from pymixplanner.analysis.waveform import downsample_preview, summarize_waveform

# Embedding
from pymixplanner.analysis.embedding import (
    ModelHandle,
    import_model_factory,
    mel_filterbank,
    mel_spectrogram,
    resample_linear,
    track_embedding,
)

# Orchestration
from pymixplanner.analysis.pipeline import (
    STAGE_PROGRESS,
    AnalysisPool,
    StageUpdate,
    TrackAnalyzer,
)


__all__ = [
    # Stages
    'analyze_beatgrid',
    'onset_strength',
    'analyze_key',
    'compute_chroma',
    'analyze_loudness',
    'compute_global_energy',
    'detect_sections',
    'generate_cue_points',
    'summarize_waveform',
    'downsample_preview',

    # Embedding
    'ModelHandle',
    'import_model_factory',
    'mel_filterbank',
    'mel_spectrogram',
    'resample_linear',
    'track_embedding',

    # Orchestration
    'STAGE_PROGRESS',
    'AnalysisPool',
    'StageUpdate',
    'TrackAnalyzer',
]
