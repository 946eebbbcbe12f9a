"""
Data model shared by the analysis pipeline, scorer and planner.

Every result type is frozen: re-analysis produces a new object (with a
bumped version) instead of mutating an existing one. Arrays held by results
are flagged read-only for the same reason.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import numpy as np


class SectionType(str, Enum):
    INTRO = "intro"
    VERSE = "verse"
    BUILD = "build"
    DROP = "drop"
    BREAKDOWN = "breakdown"
    OUTRO = "outro"


class CueType(str, Enum):
    INTRO_START = "intro_start"
    INTRO_END = "intro_end"
    OUTRO_START = "outro_start"
    OUTRO_END = "outro_end"
    DROP = "drop"
    BUILD = "build"
    BREAKDOWN = "breakdown"
    LOAD = "load"
    MARKER = "marker"


class Stage(str, Enum):
    """Progress stages of one analysis run, in emission order."""

    DECODING = "decoding"
    BEATGRID = "beatgrid"
    KEY = "key"
    ENERGY = "energy"
    LOUDNESS = "loudness"
    SECTIONS = "sections"
    CUES = "cues"
    WAVEFORM = "waveform"
    EMBEDDING = "embedding"
    COMPLETE = "complete"
    FAILED = "failed"


class ErrorKind(str, Enum):
    DECODE_FAILURE = "decode_failure"
    NO_AUDIO_DATA = "no_audio_data"
    INSUFFICIENT_AUDIO = "insufficient_audio"
    MODEL_UNAVAILABLE = "model_unavailable"
    PREDICTION_FAILED = "prediction_failed"
    UPSTREAM_FAILED = "upstream_failed"
    CANCELLED = "cancelled"
    STAGE_ERROR = "stage_error"


@dataclass(slots=True, frozen=True)
class StageError:
    """A failure attributed to exactly one analysis stage."""
    stage: Stage
    kind: ErrorKind
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"stage": self.stage.value, "kind": self.kind.value, "message": self.message}


@dataclass(slots=True, frozen=True)
class AudioSignal:
    """Mono PCM handed over by the decoder."""
    samples: np.ndarray
    sample_rate: float

    @property
    def duration(self) -> float:
        if self.sample_rate <= 0:
            return 0.0
        return len(self.samples) / self.sample_rate


@dataclass(slots=True, frozen=True)
class Track:
    """Identity record of a track, owned by storage."""
    track_id: str
    path: str
    title: str
    artist: str
    album: str | None = None


@dataclass(slots=True, frozen=True)
class Section:
    type: SectionType
    start_time: float
    end_time: float
    confidence: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "confidence": self.confidence,
        }


@dataclass(slots=True, frozen=True)
class CuePoint:
    type: CueType
    label: str
    time_seconds: float
    beat_index: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "label": self.label,
            "time_seconds": self.time_seconds,
            "beat_index": self.beat_index,
        }


def _frozen_array(values: np.ndarray | None) -> np.ndarray | None:
    if values is None:
        return None
    arr = np.array(values, dtype=np.float32, copy=True)
    arr.flags.writeable = False
    return arr


@dataclass(slots=True, frozen=True, eq=False)
class AnalysisResult:
    """
    Aggregate analysis of one track at one analysis version.

    Fields produced by a stage that failed are None; the failure itself is
    listed in `stage_errors`. Compare results through `to_dict()`.
    """

    track_id: str
    version: int
    duration: float
    bpm: float | None = None
    bpm_confidence: float | None = None
    key: str | None = None
    key_confidence: float | None = None
    energy_global: int | None = None
    integrated_loudness: float | None = None
    true_peak: float | None = None
    loudness_range: float | None = None
    sections: tuple[Section, ...] | None = None
    cue_points: tuple[CuePoint, ...] | None = None
    waveform_preview: np.ndarray | None = None
    embedding: np.ndarray | None = None
    stage_errors: tuple[StageError, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "waveform_preview", _frozen_array(self.waveform_preview))
        object.__setattr__(self, "embedding", _frozen_array(self.embedding))

    @property
    def has_embedding(self) -> bool:
        return self.embedding is not None

    @property
    def failed_stages(self) -> tuple[Stage, ...]:
        return tuple(err.stage for err in self.stage_errors)

    def to_dict(self) -> dict[str, Any]:
        """JSON-serializable view of the result."""
        return {
            "track_id": self.track_id,
            "version": self.version,
            "duration": self.duration,
            "bpm": self.bpm,
            "bpm_confidence": self.bpm_confidence,
            "key": self.key,
            "key_confidence": self.key_confidence,
            "energy_global": self.energy_global,
            "integrated_loudness": self.integrated_loudness,
            "true_peak": self.true_peak,
            "loudness_range": self.loudness_range,
            "sections": None if self.sections is None else [s.to_dict() for s in self.sections],
            "cue_points": None if self.cue_points is None else [c.to_dict() for c in self.cue_points],
            "waveform_preview": None if self.waveform_preview is None else self.waveform_preview.tolist(),
            "embedding": None if self.embedding is None else self.embedding.tolist(),
            "stage_errors": [err.to_dict() for err in self.stage_errors],
        }


@dataclass(slots=True, frozen=True)
class ComponentScores:
    tempo: float
    key: float
    energy: float
    embedding: float


@dataclass(slots=True, frozen=True)
class SimilarityScore:
    """Pairwise compatibility, always re-derivable from two results."""
    track_a_id: str
    track_b_id: str
    components: ComponentScores
    combined_score: float
    key_relation: str
    explanation: str


class WindowType(str, Enum):
    INTRO = "intro"
    OUTRO = "outro"
    BREAKDOWN = "breakdown"
    BUILD_UP = "build_up"
    SUSTAIN = "sustain"


@dataclass(slots=True, frozen=True)
class TransitionWindow:
    """A stretch of a track that suits a blend, scored in [0, 1]."""

    type: WindowType
    start_time: float
    end_time: float
    start_beat: int
    end_beat: int
    score: float
    avg_energy: float
    on_phrase: bool

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time


@dataclass(slots=True, frozen=True)
class TransitionPoint:
    time_seconds: float
    beat_index: int
    score: float
    reason: str
    on_phrase: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "time_seconds": self.time_seconds,
            "beat_index": self.beat_index,
            "score": self.score,
            "reason": self.reason,
            "on_phrase": self.on_phrase,
        }


@dataclass(slots=True, frozen=True)
class TransitionAnalysis:
    """
    Where a track can be mixed in and out.

    `mix_in_points` are sorted by score (best first), `mix_out_points` by
    time (latest first). Phrase boundaries are beat indices.
    """

    track_id: str
    phrase_boundaries: tuple[int, ...]
    windows: tuple[TransitionWindow, ...]
    mix_in_points: tuple[TransitionPoint, ...]
    mix_out_points: tuple[TransitionPoint, ...]
    recommended_mix_in: TransitionPoint
    recommended_mix_out: TransitionPoint


@dataclass(slots=True, frozen=True)
class TransitionPlan:
    from_track_id: str
    to_track_id: str
    score: float
    explanation: str
    bpm_delta: float
    key_relation: str
    energy_delta: int
    # Recommended points; None when the track has no usable tempo
    mix_out: TransitionPoint | None = None
    mix_in: TransitionPoint | None = None


@dataclass(slots=True, frozen=True)
class SetPlanResult:
    ordered_tracks: tuple[str, ...]
    transitions: tuple[TransitionPlan, ...]
    total_score: float
    average_transition_score: float
    energy_flow: tuple[int, ...]
