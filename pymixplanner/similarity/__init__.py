from pymixplanner.similarity.camelot import key_relation, parse_camelot, wheel_distance
from pymixplanner.similarity.scorer import (
    SimilarityScorer,
    combine,
    cosine_similarity,
    embedding_similarity,
    energy_similarity,
    explain,
    tempo_similarity,
)
from pymixplanner.similarity.transitions import analyze_transitions, phrase_boundaries

__all__ = [
    'SimilarityScorer',
    'analyze_transitions',
    'combine',
    'cosine_similarity',
    'embedding_similarity',
    'energy_similarity',
    'explain',
    'key_relation',
    'parse_camelot',
    'phrase_boundaries',
    'tempo_similarity',
    'wheel_distance',
]
