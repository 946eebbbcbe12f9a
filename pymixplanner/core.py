import logging
import threading
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import as_completed
from pathlib import Path

from pymixplanner.analysis import AnalysisPool, ModelHandle, StageUpdate, TrackAnalyzer
from pymixplanner.analysis.embedding import EmbeddingModel
from pymixplanner.exceptions import UnknownTrackError
from pymixplanner.models import AnalysisResult, AudioSignal, SetPlanResult, SimilarityScore, Track, TransitionAnalysis
from pymixplanner.planner import SetMode, SetPlanner
from pymixplanner.similarity import SimilarityScorer, analyze_transitions
from pymixplanner.utils import track_from_file


class MixPlanner:
    """High-level API access to PyMixPlanner's main functions."""

    def __init__(
        self,
        model_loader: Callable[[], EmbeddingModel] | None = None,
        max_workers: int | None = None,
    ):
        """Initializes the MixPlanner with an optional embedding model.

        Args:
            model_loader: zero-argument callable returning the embedding model.
                Without one, the embedding stage fails with model_unavailable.
            max_workers: size of the analysis worker pool (default: CPU count).
        """
        self.model = ModelHandle(model_loader)
        self.analyzer = TrackAnalyzer(self.model)
        self.scorer = SimilarityScorer()
        self.planner = SetPlanner(self.scorer)
        self.max_workers = max_workers
        self.tracks: dict[str, Track] = {}
        self._results: dict[tuple[str, int], AnalysisResult] = {}
        self._versions: dict[str, int] = {}
        self._lock = threading.Lock()

    # Result cache, keyed by (track_id, version)

    def _next_version(self, track_id: str) -> int:
        with self._lock:
            version = self._versions.get(track_id, 0) + 1
            self._versions[track_id] = version
            return version

    def _store(self, result: AnalysisResult) -> AnalysisResult:
        with self._lock:
            self._results[(result.track_id, result.version)] = result
        return result

    def get_result(self, track_id: str, version: int | None = None) -> AnalysisResult:
        """Cached result of a track; the latest stored version by default."""
        with self._lock:
            if version is None:
                versions = [v for (tid, v) in self._results if tid == track_id]
                if not versions:
                    raise UnknownTrackError(f'Track "{track_id}" has not been analyzed.')
                version = max(versions)
            try:
                return self._results[(track_id, version)]
            except KeyError as e:
                raise UnknownTrackError(f'No analysis of "{track_id}" at version {version}.') from e

    def results(self) -> list[AnalysisResult]:
        """Latest result of every analyzed track, in first-analyzed order."""
        latest: dict[str, AnalysisResult] = {}
        with self._lock:
            for (track_id, _), result in self._results.items():
                if track_id not in latest or result.version > latest[track_id].version:
                    latest[track_id] = result
        return list(latest.values())

    # Analysis

    def analyze_signal(
        self,
        track_id: str,
        signal: AudioSignal,
        on_update: Callable[[StageUpdate], None] | None = None,
    ) -> AnalysisResult:
        version = self._next_version(track_id)
        return self._store(self.analyzer.analyze(track_id, signal, version, on_update=on_update))

    def analyze_file(
        self,
        filepath: str | Path,
        on_update: Callable[[StageUpdate], None] | None = None,
    ) -> tuple[Track, AnalysisResult]:
        track = track_from_file(filepath)
        self.tracks[track.track_id] = track
        version = self._next_version(track.track_id)
        result = self.analyzer.analyze(track.track_id, track.path, version, on_update=on_update)
        return track, self._store(result)

    def analyze_many(
        self,
        filepaths: Iterable[str | Path],
        on_update: Callable[[StageUpdate], None] | None = None,
        on_done: Callable[[Track, AnalysisResult | None], None] | None = None,
    ) -> list[tuple[Track, AnalysisResult]]:
        """Analyze files in parallel; files that fail are logged and skipped.

        Results come back in input order. Files with identical content share
        a track id, so only the first of them is analyzed.
        """
        unique: dict[str, Track] = {}
        for filepath in filepaths:
            track = track_from_file(filepath)
            first = unique.setdefault(track.track_id, track)
            if first is not track:
                logging.warning(f'"{Path(track.path).name}" has the same content as "{Path(first.path).name}", skipping.')
        tracks = list(unique.values())
        outcomes: dict[str, AnalysisResult] = {}

        with AnalysisPool(self.analyzer, self.max_workers) as pool:
            futures = {}
            for track in tracks:
                self.tracks[track.track_id] = track
                version = self._next_version(track.track_id)
                futures[pool.submit(track.track_id, track.path, version, on_update)] = track

            for future in as_completed(futures):
                track = futures[future]
                try:
                    outcomes[track.track_id] = self._store(future.result())
                except Exception as e:
                    logging.error(f'"{Path(track.path).name}": {e}')
                    if on_done is not None:
                        on_done(track, None)
                    continue
                if on_done is not None:
                    on_done(track, outcomes[track.track_id])

        return [(track, outcomes[track.track_id]) for track in tracks if track.track_id in outcomes]

    # Similarity and planning

    def similarity(self, track_a_id: str, track_b_id: str) -> SimilarityScore:
        return self.scorer.score(self.get_result(track_a_id), self.get_result(track_b_id))

    def find_similar(self, track_id: str, limit: int = 10) -> list[SimilarityScore]:
        return self.scorer.find_similar(self.get_result(track_id), self.results(), limit)

    def transitions(self, track_id: str) -> TransitionAnalysis | None:
        """Mix-in and mix-out points of the latest analysis of a track."""
        return analyze_transitions(self.get_result(track_id))

    def plan(
        self,
        mode: SetMode | str,
        track_ids: Sequence[str] | None = None,
        start_track_id: str | None = None,
        end_track_id: str | None = None,
    ) -> SetPlanResult:
        """Plan a set over the given tracks (all analyzed tracks by default)."""
        candidates = self.results() if track_ids is None else [self.get_result(t) for t in track_ids]
        return self.planner.optimize(candidates, mode, start_track_id, end_track_id)
