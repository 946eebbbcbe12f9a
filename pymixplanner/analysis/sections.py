"""
Section detection and cue generation.

Sections come from a heuristic over 4-second RMS windows: the first four
windows are the intro, the last four the outro, and the middle is split
into drop / verse / breakdown runs of similar energy.
"""

from __future__ import annotations

import math

import numpy as np

from pymixplanner.analysis.constants import (
    SECTION_BODY_CONFIDENCE,
    SECTION_DROP_THRESHOLD,
    SECTION_EDGE_CONFIDENCE,
    SECTION_EDGE_WINDOWS,
    SECTION_MERGE_TOLERANCE,
    SECTION_VERSE_THRESHOLD,
    SECTION_WINDOW_SECONDS,
)
from pymixplanner.models import CuePoint, CueType, Section, SectionType


def window_energies(samples: np.ndarray, sr: float) -> np.ndarray:
    """RMS per 4-second window normalized by the loudest window."""
    x = np.asarray(samples, dtype=np.float64)
    window = max(1, int(SECTION_WINDOW_SECONDS * sr))
    energies = np.array(
        [np.sqrt(np.mean(x[start:start + window] ** 2)) for start in range(0, len(x), window)],
        dtype=np.float64,
    )
    peak = energies.max() if energies.size else 0.0
    if peak > 0:
        energies /= peak
    return energies


def _classify(energy: float) -> SectionType:
    if energy > SECTION_DROP_THRESHOLD:
        return SectionType.DROP
    if energy > SECTION_VERSE_THRESHOLD:
        return SectionType.VERSE
    return SectionType.BREAKDOWN


def detect_sections(samples: np.ndarray, sr: float, duration: float) -> list[Section]:
    """
    Split a track into contiguous sections covering [0, duration].

    Returns an empty list for empty audio.
    """
    energies = window_energies(samples, sr)
    n = len(energies)
    if n == 0 or duration <= 0:
        return []

    intro_end = min(SECTION_EDGE_WINDOWS, n)
    outro_start = max(intro_end, n - SECTION_EDGE_WINDOWS)
    has_outro = outro_start < n

    intro_stop = min(intro_end * SECTION_WINDOW_SECONDS, duration) if has_outro else duration
    sections = [Section(SectionType.INTRO, 0.0, intro_stop, SECTION_EDGE_CONFIDENCE)]

    i = intro_end
    while i < outro_start:
        reference = energies[i]
        end = i + 1
        while end < outro_start and abs(energies[end] - reference) <= SECTION_MERGE_TOLERANCE:
            end += 1
        sections.append(
            Section(
                _classify(reference),
                i * SECTION_WINDOW_SECONDS,
                end * SECTION_WINDOW_SECONDS,
                SECTION_BODY_CONFIDENCE,
            )
        )
        i = end

    if has_outro:
        sections.append(
            Section(SectionType.OUTRO, outro_start * SECTION_WINDOW_SECONDS, duration, SECTION_EDGE_CONFIDENCE)
        )
    return sections


_CUE_MAPPING = {
    SectionType.INTRO: (CueType.INTRO_START, "Intro"),
    SectionType.DROP: (CueType.DROP, "Drop {index}"),
    SectionType.BREAKDOWN: (CueType.BREAKDOWN, "Breakdown"),
    SectionType.BUILD: (CueType.BUILD, "Build"),
    SectionType.VERSE: (CueType.MARKER, "Verse"),
    SectionType.OUTRO: (CueType.OUTRO_START, "Outro"),
}


def generate_cue_points(sections: list[Section], bpm: float) -> list[CuePoint]:
    """One cue per section, placed at the section start."""
    cues = []
    for index, section in enumerate(sections):
        cue_type, label = _CUE_MAPPING[section.type]
        cues.append(
            CuePoint(
                type=cue_type,
                label=label.format(index=index),
                time_seconds=section.start_time,
                beat_index=math.floor(section.start_time * bpm / 60.0),
            )
        )
    return cues
