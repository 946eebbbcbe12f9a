"""
Pairwise track compatibility.

Combines four component scores into one weighted score and renders a short
explanation, e.g. "similar vibe (82%); Δ+2 BPM; key: 8A→9A (compatible);
energy +1". The same weights are used by the set planner.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

import numpy as np

from pymixplanner.analysis.constants import (
    TEMPO_MATCH_BPM,
    TEMPO_TOLERANCE_BPM,
    VIBE_MODERATE_PERCENT,
    VIBE_SIMILAR_PERCENT,
    WEIGHT_EMBEDDING,
    WEIGHT_ENERGY,
    WEIGHT_KEY,
    WEIGHT_TEMPO,
)
from pymixplanner.models import AnalysisResult, ComponentScores, SimilarityScore
from pymixplanner.similarity.camelot import key_relation


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """Compute cosine similarity between two vectors."""
    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a < 1e-10 or norm_b < 1e-10:
        return 0.0
    return float(np.dot(a, b) / (norm_a * norm_b))


def effective_bpm_delta(bpm_a: float, bpm_b: float) -> float:
    """Smallest of the direct, half-tempo and double-tempo differences."""
    return min(abs(bpm_a - bpm_b), abs(bpm_a - 2 * bpm_b), abs(2 * bpm_a - bpm_b))


def tempo_similarity(bpm_a: float | None, bpm_b: float | None) -> float:
    if bpm_a is None or bpm_b is None:
        return 0.0
    return 1.0 - min(effective_bpm_delta(bpm_a, bpm_b) / TEMPO_TOLERANCE_BPM, 1.0)


def energy_similarity(energy_a: int | None, energy_b: int | None) -> float:
    if energy_a is None or energy_b is None:
        return 0.0
    return max(0.0, 1.0 - abs(energy_a - energy_b) / 10.0)


def embedding_similarity(a: np.ndarray | None, b: np.ndarray | None) -> float:
    """Cosine similarity remapped to [0, 1]; 0.0 when either side is missing."""
    if a is None or b is None or a.shape != b.shape:
        return 0.0
    if np.linalg.norm(a) < 1e-10 or np.linalg.norm(b) < 1e-10:
        return 0.0
    cos = min(max(cosine_similarity(a, b), -1.0), 1.0)
    return (cos + 1.0) / 2.0


def combine(components: ComponentScores) -> float:
    score = (
        WEIGHT_TEMPO * components.tempo
        + WEIGHT_KEY * components.key
        + WEIGHT_EMBEDDING * components.embedding
        + WEIGHT_ENERGY * components.energy
    )
    return min(max(score, 0.0), 1.0)


def format_bpm_delta(delta: float) -> str:
    return f"Δ{round(delta, 1):+g} BPM"


def explain(
    embedding_score: float,
    bpm_a: float | None,
    bpm_b: float | None,
    key_a: str | None,
    key_b: str | None,
    relation: str,
    energy_a: int | None,
    energy_b: int | None,
) -> str:
    """Ordered clauses: vibe, tempo, key, energy."""
    parts = []

    vibe = int(embedding_score * 100)
    if vibe >= VIBE_SIMILAR_PERCENT:
        parts.append(f"similar vibe ({vibe}%)")
    elif vibe >= VIBE_MODERATE_PERCENT:
        parts.append(f"moderate vibe ({vibe}%)")

    if bpm_a is None or bpm_b is None:
        parts.append("tempo unknown")
    elif abs(bpm_b - bpm_a) < TEMPO_MATCH_BPM:
        parts.append("tempo match")
    else:
        parts.append(format_bpm_delta(bpm_b - bpm_a))

    if relation == "same":
        parts.append("same key")
    else:
        parts.append(f"key: {key_a or '?'}→{key_b or '?'} ({relation})")

    if energy_a is not None and energy_b is not None and energy_b != energy_a:
        parts.append(f"energy {energy_b - energy_a:+d}")

    return "; ".join(parts)


class SimilarityScorer:
    """Scores how well two analyzed tracks mix."""

    def components(self, a: AnalysisResult, b: AnalysisResult) -> tuple[ComponentScores, str]:
        key_score, relation = key_relation(a.key, b.key)
        components = ComponentScores(
            tempo=tempo_similarity(a.bpm, b.bpm),
            key=key_score,
            energy=energy_similarity(a.energy_global, b.energy_global),
            embedding=embedding_similarity(a.embedding, b.embedding),
        )
        return components, relation

    def score(self, a: AnalysisResult, b: AnalysisResult) -> SimilarityScore:
        components, relation = self.components(a, b)
        return SimilarityScore(
            track_a_id=a.track_id,
            track_b_id=b.track_id,
            components=components,
            combined_score=combine(components),
            key_relation=relation,
            explanation=explain(
                components.embedding,
                a.bpm,
                b.bpm,
                a.key,
                b.key,
                relation,
                a.energy_global,
                b.energy_global,
            ),
        )

    def find_similar(
        self,
        target: AnalysisResult,
        candidates: Iterable[AnalysisResult],
        limit: int = 10,
    ) -> list[SimilarityScore]:
        """Top `limit` candidates by combined score; equal scores keep input order."""
        scores = [self.score(target, other) for other in candidates if other.track_id != target.track_id]
        scores.sort(key=lambda s: s.combined_score, reverse=True)
        return scores[:max(limit, 0)]

    def score_all(self, results: Sequence[AnalysisResult]) -> list[SimilarityScore]:
        """Scores for every unordered pair (i < j)."""
        return [
            self.score(results[i], results[j])
            for i in range(len(results))
            for j in range(i + 1, len(results))
        ]
