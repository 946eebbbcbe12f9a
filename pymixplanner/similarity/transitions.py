"""
Transition Points - Where a track can be mixed in and out.

Works from a stored analysis result (tempo, sections, waveform preview),
no audio needed:
- Phrase boundaries every 16 beats from the first beat
- Transition windows from the detected sections, or from low-energy
  stretches of the waveform preview when there are no sections
- Mix-in points at the first phrase boundary and at intro/breakdown windows
- Mix-out points at the last phrase boundary before the outro and at
  outro/breakdown windows
"""

from __future__ import annotations

import numpy as np

from pymixplanner.analysis.constants import (
    LOW_ENERGY_LEVEL,
    LOW_ENERGY_WINDOW_SCORE,
    MIN_TRANSITION_WINDOW_SECONDS,
    PHRASE_BEATS,
    PHRASE_POINT_SCORE,
    PHRASE_SNAP_BEATS,
    WINDOW_BASE_SCORE,
    WINDOW_FULL_LENGTH_SECONDS,
    WINDOW_LENGTH_WEIGHT,
    WINDOW_LOW_ENERGY_WEIGHT,
    WINDOW_PHRASE_BONUS,
    WINDOW_STEADY_WEIGHT,
)
from pymixplanner.models import (
    AnalysisResult,
    Section,
    SectionType,
    TransitionAnalysis,
    TransitionPoint,
    TransitionWindow,
    WindowType,
)

_WINDOW_TYPES = {
    SectionType.INTRO: WindowType.INTRO,
    SectionType.OUTRO: WindowType.OUTRO,
    SectionType.BREAKDOWN: WindowType.BREAKDOWN,
    SectionType.BUILD: WindowType.BUILD_UP,
}
_BLEND_TYPES = (WindowType.INTRO, WindowType.OUTRO, WindowType.BREAKDOWN)


# ============================================================================
# BEAT GRID HELPERS
# ============================================================================

def beat_energy_curve(preview: np.ndarray | None, total_beats: int) -> np.ndarray:
    """Waveform preview resampled to one value per beat, normalized by its max."""
    if preview is None or len(preview) == 0 or total_beats <= 0:
        return np.zeros(0, dtype=np.float64)
    preview = np.asarray(preview, dtype=np.float64)
    centers = (np.arange(total_beats) + 0.5) * len(preview) / total_beats - 0.5
    curve = np.interp(centers, np.arange(len(preview)), preview)
    peak = curve.max()
    return curve / peak if peak > 0 else curve


def phrase_boundaries(total_beats: int) -> tuple[int, ...]:
    return tuple(range(0, max(total_beats, 1), PHRASE_BEATS))


def nearest_boundary(beat: int, boundaries: tuple[int, ...]) -> int:
    # min() keeps the earlier boundary when two are equally close
    return min(boundaries, key=lambda b: abs(b - beat), default=beat)


def _span(curve: np.ndarray, start_beat: int, end_beat: int) -> np.ndarray:
    return curve[max(0, start_beat):min(len(curve), end_beat)]


def _mean(curve: np.ndarray, start_beat: int, end_beat: int) -> float:
    span = _span(curve, start_beat, end_beat)
    return float(span.mean()) if len(span) else 0.0


def _variance(curve: np.ndarray, start_beat: int, end_beat: int) -> float:
    span = _span(curve, start_beat, end_beat)
    return float(span.var()) if len(span) else 0.0


# ============================================================================
# WINDOWS
# ============================================================================

def window_score(
    window_type: WindowType, avg_energy: float, variance: float, duration: float, on_phrase: bool
) -> float:
    """Low, steady energy over a long phrase-aligned stretch scores highest."""
    score = WINDOW_BASE_SCORE
    if window_type in _BLEND_TYPES:
        score += (1.0 - avg_energy) * WINDOW_LOW_ENERGY_WEIGHT
    score += (1.0 - min(variance * 10, 1.0)) * WINDOW_STEADY_WEIGHT
    score += min(duration / WINDOW_FULL_LENGTH_SECONDS, 1.0) * WINDOW_LENGTH_WEIGHT
    if on_phrase:
        score += WINDOW_PHRASE_BONUS
    return min(score, 1.0)


def _section_window(
    section: Section, seconds_per_beat: float, curve: np.ndarray, boundaries: tuple[int, ...]
) -> TransitionWindow:
    window_type = _WINDOW_TYPES.get(section.type, WindowType.SUSTAIN)
    start_beat = int(section.start_time / seconds_per_beat)
    end_beat = int(section.end_time / seconds_per_beat)
    avg_energy = _mean(curve, start_beat, end_beat)
    on_phrase = any(abs(b - start_beat) <= PHRASE_SNAP_BEATS for b in boundaries)
    return TransitionWindow(
        type=window_type,
        start_time=section.start_time,
        end_time=section.end_time,
        start_beat=start_beat,
        end_beat=end_beat,
        score=window_score(
            window_type,
            avg_energy,
            _variance(curve, start_beat, end_beat),
            section.end_time - section.start_time,
            on_phrase,
        ),
        avg_energy=avg_energy,
        on_phrase=on_phrase,
    )


def low_energy_windows(curve: np.ndarray, seconds_per_beat: float) -> list[TransitionWindow]:
    """
    Breakdown windows over stretches of low beat energy.

    A stretch counts once energy rises again, so one still running at the
    end of the track is not a window.
    """
    windows = []
    region_start = None
    for beat, level in enumerate(curve):
        if level < LOW_ENERGY_LEVEL:
            if region_start is None:
                region_start = beat
            continue
        if region_start is not None:
            if (beat - region_start) * seconds_per_beat >= MIN_TRANSITION_WINDOW_SECONDS:
                windows.append(
                    TransitionWindow(
                        type=WindowType.BREAKDOWN,
                        start_time=region_start * seconds_per_beat,
                        end_time=beat * seconds_per_beat,
                        start_beat=region_start,
                        end_beat=beat,
                        score=LOW_ENERGY_WINDOW_SCORE,
                        avg_energy=_mean(curve, region_start, beat),
                        on_phrase=region_start % PHRASE_BEATS == 0,
                    )
                )
            region_start = None
    return windows


# ============================================================================
# MIX POINTS
# ============================================================================

def _window_point(window: TransitionWindow, boundaries: tuple[int, ...], label: str) -> TransitionPoint:
    return TransitionPoint(
        time_seconds=window.start_time,
        beat_index=window.start_beat,
        score=window.score,
        reason=label if window.type is not WindowType.BREAKDOWN else "Breakdown section",
        on_phrase=window.start_beat == nearest_boundary(window.start_beat, boundaries),
    )


def _phrase_point(beat: int, seconds_per_beat: float, reason: str) -> TransitionPoint:
    return TransitionPoint(
        time_seconds=beat * seconds_per_beat,
        beat_index=beat,
        score=PHRASE_POINT_SCORE,
        reason=reason,
        on_phrase=True,
    )


def mix_in_points(
    windows: list[TransitionWindow], boundaries: tuple[int, ...], seconds_per_beat: float
) -> list[TransitionPoint]:
    first = next((b for b in boundaries if b > 0), None)
    points = [_phrase_point(first, seconds_per_beat, "Track intro on phrase boundary")] if first is not None else []
    points.extend(
        _window_point(w, boundaries, "Track intro")
        for w in windows
        if w.type in (WindowType.INTRO, WindowType.BREAKDOWN)
    )
    return sorted(points, key=lambda p: -p.score)


def mix_out_points(
    windows: list[TransitionWindow], boundaries: tuple[int, ...], seconds_per_beat: float, total_beats: int
) -> list[TransitionPoint]:
    before_outro = [b for b in boundaries if b < total_beats - PHRASE_BEATS]
    points = [_phrase_point(before_outro[-1], seconds_per_beat, "Phrase boundary before outro")] if before_outro else []
    points.extend(
        _window_point(w, boundaries, "Track outro")
        for w in windows
        if w.type in (WindowType.OUTRO, WindowType.BREAKDOWN)
    )
    return sorted(points, key=lambda p: -p.time_seconds)


def analyze_transitions(result: AnalysisResult) -> TransitionAnalysis | None:
    """
    Mix-in and mix-out recommendations for one analyzed track.

    Returns:
        None when the result has no tempo or no duration to place beats on.
    """
    if not result.bpm or result.bpm <= 0 or result.duration <= 0:
        return None

    seconds_per_beat = 60.0 / result.bpm
    total_beats = int(result.duration / seconds_per_beat)
    curve = beat_energy_curve(result.waveform_preview, total_beats)
    boundaries = phrase_boundaries(total_beats)

    windows = [_section_window(s, seconds_per_beat, curve, boundaries) for s in result.sections or ()]
    if not windows:
        windows = low_energy_windows(curve, seconds_per_beat)
    windows.sort(key=lambda w: -w.score)

    ins = mix_in_points(windows, boundaries, seconds_per_beat)
    outs = mix_out_points(windows, boundaries, seconds_per_beat, total_beats)

    # Mix in during the first half and out during the second when possible
    halfway = result.duration / 2
    early = [p for p in ins if p.time_seconds <= halfway] or ins
    late = [p for p in outs if p.time_seconds >= halfway] or outs
    recommended_in = early[0] if early else TransitionPoint(0.0, 0, 0.0, "Track start", True)
    if late:
        # max() keeps the latest of equally scored points
        recommended_out = max(late, key=lambda p: p.score)
    else:
        recommended_out = TransitionPoint(
            total_beats * seconds_per_beat, total_beats, 0.0, "Track end", total_beats % PHRASE_BEATS == 0
        )

    return TransitionAnalysis(
        track_id=result.track_id,
        phrase_boundaries=boundaries,
        windows=tuple(windows),
        mix_in_points=tuple(ins),
        mix_out_points=tuple(outs),
        recommended_mix_in=recommended_in,
        recommended_mix_out=recommended_out,
    )
