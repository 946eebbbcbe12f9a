"""
Set ordering by greedy search with one-step lookahead.

At each step every remaining candidate c is scored as
w(current, c) + 0.3 * max_f w(c, f) over the tracks still left after c.
Candidates are scanned in input order and only a strictly greater score
replaces the running best, so ties go to the earlier track.
Each transition also carries the recommended mix-out point of the outgoing
track and mix-in point of the incoming one.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from pymixplanner.analysis.constants import LOOKAHEAD_WEIGHT
from pymixplanner.exceptions import UnknownTrackError
from pymixplanner.models import AnalysisResult, SetPlanResult, TransitionAnalysis, TransitionPlan
from pymixplanner.planner.graph import SetMode, TransitionGraph
from pymixplanner.similarity.scorer import SimilarityScorer, explain
from pymixplanner.similarity.transitions import analyze_transitions


def _energy(result: AnalysisResult) -> int:
    return result.energy_global if result.energy_global is not None else 0


class SetPlanner:
    """Orders a candidate set for a DJ set in a given mode."""

    def __init__(self, scorer: SimilarityScorer | None = None) -> None:
        self.scorer = scorer or SimilarityScorer()

    def optimize(
        self,
        results: Sequence[AnalysisResult],
        mode: SetMode | str,
        start_track_id: str | None = None,
        end_track_id: str | None = None,
    ) -> SetPlanResult:
        """
        Plan the order of `results`.

        Raises:
            UnknownTrackError: start or end id is not in `results`.
        """
        mode = SetMode.parse(mode)
        results = list(results)
        ids = [r.track_id for r in results]
        for track_id in (start_track_id, end_track_id):
            if track_id is not None and track_id not in ids:
                raise UnknownTrackError(f'Track "{track_id}" is not part of the candidate set.')

        if len(results) < 2:
            return SetPlanResult(
                ordered_tracks=tuple(ids),
                transitions=(),
                total_score=0.0,
                average_transition_score=0.0,
                energy_flow=tuple(r.energy_global for r in results if r.energy_global is not None),
            )

        graph = TransitionGraph(results, mode, self.scorer)
        start = graph.index[start_track_id] if start_track_id is not None else self._default_start(results, mode)
        end = graph.index[end_track_id] if end_track_id is not None else None
        if end == start:
            logging.warning("End track equals start track; ignoring the end constraint.")
            end = None

        order = self._search(graph, start, end)
        points = {i: analyze_transitions(results[i]) for i in order}
        transitions = tuple(
            self._transition(graph, order[k], order[k + 1], points[order[k]], points[order[k + 1]])
            for k in range(len(order) - 1)
        )
        total = sum(t.score for t in transitions)

        return SetPlanResult(
            ordered_tracks=tuple(results[i].track_id for i in order),
            transitions=transitions,
            total_score=total,
            average_transition_score=total / len(transitions),
            energy_flow=tuple(results[i].energy_global for i in order if results[i].energy_global is not None),
        )

    @staticmethod
    def _default_start(results: list[AnalysisResult], mode: SetMode) -> int:
        if mode is SetMode.WARM_UP:
            # min() keeps the first of equal energies
            return min(range(len(results)), key=lambda i: _energy(results[i]))
        if mode is SetMode.PEAK_TIME:
            by_energy = sorted(range(len(results)), key=lambda i: _energy(results[i]), reverse=True)
            return by_energy[len(results) // 3]
        return 0

    @staticmethod
    def _search(graph: TransitionGraph, start: int, end: int | None) -> list[int]:
        order = [start]
        remaining = [i for i in range(len(graph)) if i != start]

        while remaining:
            if end is not None and remaining == [end]:
                order.append(end)
                break

            current = order[-1]
            best, best_score = None, float("-inf")
            for candidate in remaining:
                if candidate == end:
                    continue
                future = [f for f in remaining if f != candidate]
                lookahead = max((graph.weight(candidate, f) for f in future), default=0.0)
                score = graph.weight(current, candidate) + LOOKAHEAD_WEIGHT * lookahead
                if score > best_score:
                    best, best_score = candidate, score

            order.append(best)
            remaining.remove(best)

        return order

    def _transition(
        self,
        graph: TransitionGraph,
        i: int,
        j: int,
        outgoing: TransitionAnalysis | None,
        incoming: TransitionAnalysis | None,
    ) -> TransitionPlan:
        a, b = graph.results[i], graph.results[j]
        components, relation = self.scorer.components(a, b)
        bpm_delta = b.bpm - a.bpm if a.bpm is not None and b.bpm is not None else 0.0
        return TransitionPlan(
            from_track_id=a.track_id,
            to_track_id=b.track_id,
            score=graph.weight(i, j),
            explanation=explain(
                components.embedding, a.bpm, b.bpm, a.key, b.key, relation, a.energy_global, b.energy_global
            ),
            bpm_delta=bpm_delta,
            key_relation=relation,
            energy_delta=_energy(b) - _energy(a),
            mix_out=outgoing.recommended_mix_out if outgoing is not None else None,
            mix_in=incoming.recommended_mix_in if incoming is not None else None,
        )
