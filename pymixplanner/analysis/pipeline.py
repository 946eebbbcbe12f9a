"""
Per-track analysis pipeline and the worker pool that runs it.

TrackAnalyzer runs the stages of one track in a fixed order and yields a
StageUpdate after each one:

    decoding -> beatgrid -> key -> energy -> loudness -> sections -> cues
    -> waveform -> embedding -> complete

A failing stage is recorded as a StageError and the remaining stages keep
running. Only decode failures and cancellation end the run early, with a
terminal `failed` update and no result.
"""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Callable, Iterator
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import numpy as np

from pymixplanner.analysis.beatgrid import analyze_beatgrid
from pymixplanner.analysis.constants import WAVEFORM_POINTS, WAVEFORM_PREVIEW_POINTS
from pymixplanner.analysis.embedding import ModelHandle, track_embedding
from pymixplanner.analysis.key import analyze_key
from pymixplanner.analysis.loudness import analyze_loudness, compute_global_energy
from pymixplanner.analysis.sections import detect_sections, generate_cue_points
from pymixplanner.analysis.waveform import downsample_preview, summarize_waveform
from pymixplanner.audio import load_audio
from pymixplanner.exceptions import (
    AnalysisCancelled,
    AudioLoadError,
    DecodeFailure,
    InsufficientAudio,
    ModelUnavailable,
    NoAudioData,
    PredictionFailed,
)
from pymixplanner.models import AnalysisResult, AudioSignal, ErrorKind, Stage, StageError

STAGE_PROGRESS = {
    Stage.DECODING: 0.10,
    Stage.BEATGRID: 0.25,
    Stage.KEY: 0.35,
    Stage.ENERGY: 0.45,
    Stage.LOUDNESS: 0.55,
    Stage.SECTIONS: 0.65,
    Stage.CUES: 0.70,
    Stage.WAVEFORM: 0.75,
    Stage.EMBEDDING: 0.90,
    Stage.COMPLETE: 1.0,
}

_ERROR_KINDS = (
    (NoAudioData, ErrorKind.NO_AUDIO_DATA),
    (AudioLoadError, ErrorKind.DECODE_FAILURE),
    (InsufficientAudio, ErrorKind.INSUFFICIENT_AUDIO),
    (ModelUnavailable, ErrorKind.MODEL_UNAVAILABLE),
    (PredictionFailed, ErrorKind.PREDICTION_FAILED),
    (AnalysisCancelled, ErrorKind.CANCELLED),
)


def error_kind(exc: BaseException) -> ErrorKind:
    for exc_type, kind in _ERROR_KINDS:
        if isinstance(exc, exc_type):
            return kind
    return ErrorKind.STAGE_ERROR


@dataclass(slots=True, frozen=True)
class StageUpdate:
    """
    One entry of the progress stream.

    `value` holds what the stage produced (the AnalysisResult for
    `complete`), `error` the StageError when the stage failed.
    """

    track_id: str
    stage: Stage
    progress: float
    value: Any = None
    error: StageError | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def terminal(self) -> bool:
        return self.stage in (Stage.COMPLETE, Stage.FAILED)


AudioSource = AudioSignal | str | Path


class TrackAnalyzer:
    """Runs every analysis stage for one track at a time."""

    def __init__(self, model: ModelHandle | None = None) -> None:
        self.model = model if model is not None else ModelHandle()

    def _decode(self, source: AudioSource) -> AudioSignal:
        signal = source if isinstance(source, AudioSignal) else load_audio(source)
        if len(signal.samples) == 0:
            raise NoAudioData("Audio signal contains no samples.")
        if signal.sample_rate <= 0:
            raise DecodeFailure(f"Invalid sample rate {signal.sample_rate}.")
        return signal

    def iter_stages(
        self,
        track_id: str,
        source: AudioSource,
        version: int = 1,
        cancel_event: threading.Event | None = None,
    ) -> Iterator[StageUpdate]:
        """Analyze one track, yielding a StageUpdate after each stage."""
        errors: list[StageError] = []
        stage = Stage.DECODING

        def update(value: Any = None, error: StageError | None = None) -> StageUpdate:
            return StageUpdate(track_id, stage, STAGE_PROGRESS[stage], value, error)

        def failed(exc: BaseException) -> StageUpdate:
            error = StageError(stage, error_kind(exc), str(exc))
            logging.error(f"Analysis of {track_id} failed at {stage.value}: {exc}")
            return StageUpdate(track_id, Stage.FAILED, STAGE_PROGRESS.get(stage, 0.0), None, error)

        def run(fn: Callable[..., Any], *args: Any) -> tuple[Any, StageError | None]:
            if cancel_event is not None and cancel_event.is_set():
                raise AnalysisCancelled(f"Analysis of {track_id} was cancelled.")
            try:
                return fn(*args), None
            except AnalysisCancelled:
                raise
            except Exception as e:
                logging.warning(f"{stage.value} stage failed for {track_id}: {e}")
                error = StageError(stage, error_kind(e), str(e))
                errors.append(error)
                return None, error

        try:
            try:
                if cancel_event is not None and cancel_event.is_set():
                    raise AnalysisCancelled(f"Analysis of {track_id} was cancelled.")
                signal = self._decode(source)
            except AudioLoadError as e:
                yield failed(e)
                return
            samples, sr, duration = signal.samples, signal.sample_rate, signal.duration
            yield update(duration)

            stage = Stage.BEATGRID
            beatgrid, error = run(analyze_beatgrid, samples, sr)
            yield update(beatgrid, error)

            stage = Stage.KEY
            key, error = run(analyze_key, samples, sr)
            yield update(key, error)

            stage = Stage.ENERGY
            energy, error = run(compute_global_energy, samples)
            yield update(energy, error)

            stage = Stage.LOUDNESS
            loudness, error = run(analyze_loudness, samples)
            yield update(loudness, error)

            stage = Stage.SECTIONS
            sections, error = run(detect_sections, samples, sr, duration)
            sections = None if sections is None else tuple(sections)
            yield update(sections, error)

            stage = Stage.CUES
            if beatgrid is None or sections is None:
                missing = "bpm" if beatgrid is None else "sections"
                error = StageError(stage, ErrorKind.UPSTREAM_FAILED, f"Cue points need {missing}, which failed.")
                errors.append(error)
                cues = None
            else:
                cues, error = run(generate_cue_points, list(sections), beatgrid[0])
                cues = None if cues is None else tuple(cues)
            yield update(cues, error)

            stage = Stage.WAVEFORM
            preview, error = run(self._waveform, samples)
            yield update(preview, error)

            stage = Stage.EMBEDDING
            embedding, error = run(track_embedding, samples, sr, self.model, cancel_event)
            yield update(embedding, error)
        except AnalysisCancelled as e:
            yield failed(e)
            return

        stage = Stage.COMPLETE
        result = AnalysisResult(
            track_id=track_id,
            version=version,
            duration=duration,
            bpm=None if beatgrid is None else beatgrid[0],
            bpm_confidence=None if beatgrid is None else beatgrid[1],
            key=None if key is None else key[0],
            key_confidence=None if key is None else key[1],
            energy_global=energy,
            integrated_loudness=None if loudness is None else loudness[0],
            true_peak=None if loudness is None else loudness[1],
            loudness_range=None if loudness is None else loudness[2],
            sections=sections,
            cue_points=cues,
            waveform_preview=preview,
            embedding=embedding,
            stage_errors=tuple(errors),
        )
        yield update(result)

    @staticmethod
    def _waveform(samples: np.ndarray) -> np.ndarray:
        return downsample_preview(summarize_waveform(samples, WAVEFORM_POINTS), WAVEFORM_PREVIEW_POINTS)

    def analyze(
        self,
        track_id: str,
        source: AudioSource,
        version: int = 1,
        cancel_event: threading.Event | None = None,
        on_update: Callable[[StageUpdate], None] | None = None,
    ) -> AnalysisResult:
        """
        Run all stages and return the result.

        Raises:
            DecodeFailure / NoAudioData: the audio could not be decoded.
            AnalysisCancelled: `cancel_event` was set.
        """
        for item in self.iter_stages(track_id, source, version, cancel_event):
            if on_update is not None:
                on_update(item)
            if item.stage is Stage.COMPLETE:
                return item.value
            if item.stage is Stage.FAILED:
                raise _terminal_exception(item.error)
        raise RuntimeError("Analysis ended without a terminal update.")


def _terminal_exception(error: StageError) -> Exception:
    if error.kind is ErrorKind.CANCELLED:
        return AnalysisCancelled(error.message)
    if error.kind is ErrorKind.NO_AUDIO_DATA:
        return NoAudioData(error.message)
    return DecodeFailure(error.message)


def default_worker_count() -> int:
    env = os.environ.get("PMP_WORKERS")
    if env:
        try:
            return max(1, int(env))
        except ValueError:
            logging.warning(f'Ignoring invalid PMP_WORKERS value "{env}".')
    return os.cpu_count() or 1


class AnalysisPool:
    """
    Analyzes many tracks in parallel, one worker per track.

    Each submitted track gets its own cancel token; `cancel(track_id)` stops
    that track at its next stage boundary.
    """

    def __init__(self, analyzer: TrackAnalyzer, max_workers: int | None = None) -> None:
        self.analyzer = analyzer
        self.max_workers = max_workers or default_worker_count()
        self._executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="pmp-analysis")
        self._tokens: dict[str, threading.Event] = {}
        self._lock = threading.Lock()

    def submit(
        self,
        track_id: str,
        source: AudioSource,
        version: int = 1,
        on_update: Callable[[StageUpdate], None] | None = None,
    ) -> Future:
        token = threading.Event()
        with self._lock:
            self._tokens[track_id] = token
        return self._executor.submit(self._work, track_id, source, version, token, on_update)

    def _work(
        self,
        track_id: str,
        source: AudioSource,
        version: int,
        token: threading.Event,
        on_update: Callable[[StageUpdate], None] | None,
    ) -> AnalysisResult:
        try:
            return self.analyzer.analyze(track_id, source, version, token, on_update)
        finally:
            with self._lock:
                if self._tokens.get(track_id) is token:
                    del self._tokens[track_id]

    def cancel(self, track_id: str) -> bool:
        """Request cancellation; False if the track is not in flight."""
        with self._lock:
            token = self._tokens.get(track_id)
        if token is None:
            return False
        token.set()
        return True

    def cancel_all(self) -> None:
        with self._lock:
            tokens = list(self._tokens.values())
        for token in tokens:
            token.set()

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> AnalysisPool:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None:
            self.cancel_all()
        self.shutdown(wait=True)
