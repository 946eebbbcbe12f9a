"""
Directed transition graph over a candidate set.

Edge weight A -> B combines tempo, key and embedding similarity with a
mode-specific energy term, so A -> B and B -> A generally differ.
"""

from __future__ import annotations

from collections.abc import Sequence
from enum import Enum

from pymixplanner.analysis.constants import WEIGHT_EMBEDDING, WEIGHT_ENERGY, WEIGHT_KEY, WEIGHT_TEMPO
from pymixplanner.models import AnalysisResult
from pymixplanner.similarity.scorer import SimilarityScorer


class SetMode(str, Enum):
    WARM_UP = "warm_up"
    PEAK_TIME = "peak_time"
    OPEN_FORMAT = "open_format"

    @classmethod
    def parse(cls, value: str | SetMode) -> SetMode:
        """Accepts 'warm_up', 'warm-up', 'WARM_UP' and the like."""
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().lower().replace("-", "_"))

    @property
    def display_name(self) -> str:
        return {
            SetMode.WARM_UP: "Warm-up",
            SetMode.PEAK_TIME: "Peak Time",
            SetMode.OPEN_FORMAT: "Open Format",
        }[self]


def energy_term(mode: SetMode, energy_from: int | None, energy_to: int | None) -> float:
    """Mode-specific preference for the energy change of a transition."""
    if energy_from is None or energy_to is None:
        return 0.0
    delta = energy_to - energy_from

    if mode is SetMode.WARM_UP:
        # Gradual build
        if 0 <= delta <= 2:
            return 1.0
        if delta > 2:
            return 0.5
        if delta >= -1:
            return 0.3
        return 0.0

    if mode is SetMode.PEAK_TIME:
        if abs(delta) <= 1 and energy_to >= 7:
            return 1.0
        # Strategic drop from the peak
        if delta <= -2 and energy_from >= 8:
            return 0.8
        return 0.0

    return 1.0 if abs(delta) <= 2 else 0.5


class TransitionGraph:
    """Complete directed graph; weights indexed by position in the input."""

    def __init__(self, results: Sequence[AnalysisResult], mode: SetMode, scorer: SimilarityScorer | None = None) -> None:
        self.results = list(results)
        self.mode = mode
        self.scorer = scorer or SimilarityScorer()
        self.index = {result.track_id: i for i, result in enumerate(self.results)}

        n = len(self.results)
        self.weights = [[0.0] * n for _ in range(n)]
        for i, a in enumerate(self.results):
            for j, b in enumerate(self.results):
                if i != j:
                    self.weights[i][j] = self.transition_score(a, b)

    def transition_score(self, a: AnalysisResult, b: AnalysisResult) -> float:
        components, _ = self.scorer.components(a, b)
        return (
            WEIGHT_TEMPO * components.tempo
            + WEIGHT_KEY * components.key
            + WEIGHT_EMBEDDING * components.embedding
            + WEIGHT_ENERGY * energy_term(self.mode, a.energy_global, b.energy_global)
        )

    def weight(self, i: int, j: int) -> float:
        return self.weights[i][j]

    def __len__(self) -> int:
        return len(self.results)
