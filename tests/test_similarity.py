import unittest

import numpy as np

from pymixplanner.similarity import (
    SimilarityScorer,
    embedding_similarity,
    energy_similarity,
    key_relation,
    parse_camelot,
    tempo_similarity,
    wheel_distance,
)
from tests.signals import make_result, unit


class CamelotTests(unittest.TestCase):
    def test_parse(self) -> None:
        self.assertEqual(parse_camelot("8A"), (8, "A"))
        self.assertEqual(parse_camelot(" 12b "), (12, "B"))
        self.assertIsNone(parse_camelot("13A"))
        self.assertIsNone(parse_camelot("0B"))
        self.assertIsNone(parse_camelot("C#m"))
        self.assertIsNone(parse_camelot(None))
        self.assertIsNone(parse_camelot(""))

    def test_wheel_wraps(self) -> None:
        self.assertEqual(wheel_distance(12, 1), 1)
        self.assertEqual(wheel_distance(1, 7), 6)
        self.assertEqual(wheel_distance(3, 3), 0)

    def test_relations(self) -> None:
        self.assertEqual(key_relation("8A", "8A"), (1.0, "same"))
        self.assertEqual(key_relation("8A", "9A"), (0.85, "compatible"))
        self.assertEqual(key_relation("12A", "1A"), (0.85, "compatible"))
        self.assertEqual(key_relation("8A", "8B"), (0.7, "relative"))
        self.assertEqual(key_relation("8A", "10A"), (0.7, "harmonic"))
        self.assertEqual(key_relation("8A", "9B"), (0.2, "clash"))
        self.assertEqual(key_relation("8A", "3B"), (0.2, "clash"))

    def test_unknown_key_is_a_clash(self) -> None:
        self.assertEqual(key_relation(None, "8A"), (0.2, "clash"))
        self.assertEqual(key_relation("8A", "H#"), (0.2, "clash"))


class ComponentTests(unittest.TestCase):
    def test_tempo(self) -> None:
        self.assertEqual(tempo_similarity(128.0, 128.0), 1.0)
        self.assertAlmostEqual(tempo_similarity(120.0, 122.0), 0.9)
        self.assertEqual(tempo_similarity(100.0, 140.0), 0.0)
        self.assertEqual(tempo_similarity(120.0, None), 0.0)

    def test_tempo_half_and_double_time(self) -> None:
        self.assertEqual(tempo_similarity(70.0, 140.0), 1.0)
        self.assertEqual(tempo_similarity(174.0, 87.0), 1.0)

    def test_energy(self) -> None:
        self.assertEqual(energy_similarity(5, 5), 1.0)
        self.assertAlmostEqual(energy_similarity(2, 9), 0.3)
        self.assertEqual(energy_similarity(0, 10), 0.0)
        self.assertEqual(energy_similarity(None, 4), 0.0)

    def test_embedding(self) -> None:
        self.assertAlmostEqual(embedding_similarity(unit(0), unit(0)), 1.0)
        self.assertAlmostEqual(embedding_similarity(unit(0), unit(1)), 0.5)
        self.assertAlmostEqual(embedding_similarity(unit(0), -unit(0)), 0.0)
        self.assertEqual(embedding_similarity(unit(0), None), 0.0)
        self.assertEqual(embedding_similarity(unit(0), unit(0, dim=16)), 0.0)
        self.assertEqual(embedding_similarity(np.zeros(512, dtype=np.float32), unit(0)), 0.0)


class ScorerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.scorer = SimilarityScorer()

    def test_identical_tracks(self) -> None:
        a = make_result("a", embedding=unit(0))
        b = make_result("b", embedding=unit(0))
        score = self.scorer.score(a, b)
        self.assertAlmostEqual(score.combined_score, 1.0)
        self.assertEqual(score.key_relation, "same")
        self.assertEqual(score.explanation, "similar vibe (100%); tempo match; same key")

    def test_weighted_combination(self) -> None:
        a = make_result("a", bpm=120.0, key="8A", energy=5, embedding=unit(0))
        b = make_result("b", bpm=122.0, key="9A", energy=6, embedding=unit(0))
        score = self.scorer.score(a, b)
        self.assertAlmostEqual(score.components.tempo, 0.9)
        self.assertAlmostEqual(score.components.key, 0.85)
        self.assertAlmostEqual(score.components.energy, 0.9)
        self.assertAlmostEqual(score.components.embedding, 1.0)
        self.assertAlmostEqual(score.combined_score, 0.25 * 0.9 + 0.25 * 0.85 + 0.30 * 1.0 + 0.20 * 0.9)
        self.assertEqual(score.explanation, "similar vibe (100%); Δ+2 BPM; key: 8A→9A (compatible); energy +1")

    def test_explanation_direction(self) -> None:
        a = make_result("a", bpm=128.0, key="5A", energy=8, embedding=unit(0))
        b = make_result("b", bpm=124.5, key="8B", energy=6, embedding=unit(1))
        self.assertEqual(
            self.scorer.score(a, b).explanation,
            "moderate vibe (50%); Δ-3.5 BPM; key: 5A→8B (clash); energy -2",
        )

    def test_missing_values(self) -> None:
        a = make_result("a", bpm=None, key=None, energy=None)
        b = make_result("b")
        score = self.scorer.score(a, b)
        self.assertEqual(score.components.tempo, 0.0)
        self.assertEqual(score.components.energy, 0.0)
        self.assertEqual(score.components.embedding, 0.0)
        self.assertAlmostEqual(score.combined_score, 0.25 * 0.2)
        self.assertEqual(score.explanation, "tempo unknown; key: ?→8A (clash)")

    def test_score_stays_in_unit_interval(self) -> None:
        rng = np.random.default_rng(1)
        results = [
            make_result(
                f"t{i}",
                bpm=float(rng.uniform(60, 200)),
                key=f"{rng.integers(1, 13)}{'AB'[rng.integers(0, 2)]}",
                energy=int(rng.integers(0, 11)),
                embedding=rng.standard_normal(512).astype(np.float32),
            )
            for i in range(8)
        ]
        for score in self.scorer.score_all(results):
            self.assertGreaterEqual(score.combined_score, 0.0)
            self.assertLessEqual(score.combined_score, 1.0)

    def test_track_is_most_similar_to_itself(self) -> None:
        rng = np.random.default_rng(7)
        results = [
            make_result(
                f"t{i}",
                bpm=float(rng.uniform(60, 200)),
                key=f"{rng.integers(1, 13)}{'AB'[rng.integers(0, 2)]}",
                energy=int(rng.integers(0, 11)),
                embedding=rng.standard_normal(512).astype(np.float32),
            )
            for i in range(12)
        ]
        for a in results:
            own = self.scorer.score(a, a).combined_score
            for x in results:
                with self.subTest(a=a.track_id, x=x.track_id):
                    self.assertGreaterEqual(own + 1e-9, self.scorer.score(a, x).combined_score)

    def test_prefers_matching_bpm(self) -> None:
        target = make_result("t1", bpm=120.0, key="8A")
        near = make_result("t2", bpm=121.0, key="3B")
        far = make_result("t3", bpm=150.0, key="3B")
        ranked = self.scorer.find_similar(target, [far, near])
        self.assertEqual([s.track_b_id for s in ranked], ["t2", "t3"])

    def test_prefers_compatible_key(self) -> None:
        target = make_result("t1", bpm=120.0, key="8A")
        clash = make_result("t2", bpm=120.0, key="3B")
        compatible = make_result("t3", bpm=120.0, key="9A")
        ranked = self.scorer.find_similar(target, [clash, compatible])
        self.assertEqual(ranked[0].track_b_id, "t3")

    def test_find_similar_excludes_target_and_limits(self) -> None:
        target = make_result("t0")
        candidates = [target] + [make_result(f"t{i}", bpm=120.0 + i) for i in range(1, 6)]
        ranked = self.scorer.find_similar(target, candidates, limit=3)
        self.assertEqual([s.track_b_id for s in ranked], ["t1", "t2", "t3"])
        self.assertEqual(self.scorer.find_similar(target, candidates, limit=0), [])

    def test_equal_scores_keep_input_order(self) -> None:
        target = make_result("t0")
        candidates = [make_result(name) for name in ("x", "y", "z")]
        ranked = self.scorer.find_similar(target, candidates)
        self.assertEqual([s.track_b_id for s in ranked], ["x", "y", "z"])

    def test_score_all_pairs(self) -> None:
        results = [make_result(f"t{i}") for i in range(4)]
        pairs = [(s.track_a_id, s.track_b_id) for s in self.scorer.score_all(results)]
        self.assertEqual(len(pairs), 6)
        self.assertIn(("t0", "t3"), pairs)
        self.assertNotIn(("t3", "t0"), pairs)


if __name__ == "__main__":
    unittest.main()
