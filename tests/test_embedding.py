import threading
import unittest

import numpy as np

from pymixplanner.analysis.embedding import (
    ModelHandle,
    import_model_factory,
    mel_filterbank,
    mel_spectrogram,
    resample_linear,
    track_embedding,
    window_starts,
)
from pymixplanner.exceptions import (
    AnalysisCancelled,
    InsufficientAudio,
    ModelUnavailable,
    PredictionFailed,
)
from tests.signals import OverlapCountingModel, FakeEmbeddingModel, noise


class SpectrogramTests(unittest.TestCase):
    def test_shape_and_range(self) -> None:
        spec = mel_spectrogram(noise(1.0, 48000))
        self.assertEqual(spec.shape, (128, 199))
        self.assertEqual(spec.dtype, np.float32)
        self.assertAlmostEqual(float(spec.min()), 0.0, places=6)
        self.assertAlmostEqual(float(spec.max()), 1.0, places=6)

    def test_silence_gives_zeros(self) -> None:
        spec = mel_spectrogram(np.zeros(48000, dtype=np.float32))
        self.assertFalse(np.any(spec))

    def test_deterministic(self) -> None:
        window = noise(1.0, 48000, seed=4)
        np.testing.assert_array_equal(mel_spectrogram(window), mel_spectrogram(window))

    def test_filterbank(self) -> None:
        bank = mel_filterbank()
        self.assertEqual(bank.shape, (128, 1024))
        self.assertTrue(np.all(bank >= 0))
        self.assertLessEqual(float(bank.max()), 1.0)


class ResampleTests(unittest.TestCase):
    def test_doubles_length(self) -> None:
        out = resample_linear(np.ones(24000, dtype=np.float32), 24000)
        self.assertEqual(len(out), 48000)
        np.testing.assert_allclose(out, 1.0)

    def test_within_tolerance_is_untouched(self) -> None:
        samples = noise(0.5, 48000)
        self.assertIs(resample_linear(samples, 48000.5), samples)

    def test_interpolates_between_samples(self) -> None:
        out = resample_linear(np.array([0.0, 1.0, 2.0, 3.0], dtype=np.float32), 2, 4)
        np.testing.assert_allclose(out, [0.0, 0.5, 1.0, 1.5, 2.0, 2.5, 3.0, 3.0])


class ModelHandleTests(unittest.TestCase):
    def test_loads_lazily_once(self) -> None:
        loads = []

        def loader():
            loads.append(1)
            return FakeEmbeddingModel()

        handle = ModelHandle(loader)
        self.assertFalse(handle.loaded)
        handle.predict(np.zeros((128, 199), dtype=np.float32))
        handle.predict(np.zeros((128, 199), dtype=np.float32))
        self.assertTrue(handle.loaded)
        self.assertEqual(len(loads), 1)

    def test_missing_loader(self) -> None:
        with self.assertRaises(ModelUnavailable):
            ModelHandle().load()

    def test_failing_loader(self) -> None:
        def loader():
            raise OSError("weights not found")

        with self.assertRaises(ModelUnavailable) as ctx:
            ModelHandle(loader).load()
        self.assertIsInstance(ctx.exception.__cause__, OSError)

    def test_failed_load_is_not_retried(self) -> None:
        attempts = []

        def loader():
            attempts.append(1)
            raise OSError("weights not found")

        handle = ModelHandle(loader)
        for _ in range(3):
            with self.assertRaises(ModelUnavailable):
                handle.load()
        with self.assertRaises(ModelUnavailable):
            track_embedding(noise(2.0, 48000), 48000, handle)
        self.assertEqual(len(attempts), 1)
        self.assertFalse(handle.loaded)

    def test_predictions_are_serialized(self) -> None:
        model = OverlapCountingModel()
        handle = ModelHandle(lambda: model)
        spec = np.zeros((128, 199), dtype=np.float32)

        def worker():
            for _ in range(5):
                handle.predict(spec)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(model.calls, 20)
        self.assertEqual(model.max_active, 1)

    def test_import_model_factory_rejects_malformed_reference(self) -> None:
        with self.assertRaises(ValueError):
            import_model_factory("no_colon_here")

    def test_import_model_factory_resolves_callable(self) -> None:
        loader = import_model_factory("tests.signals:FakeEmbeddingModel")
        self.assertIsInstance(loader(), FakeEmbeddingModel)


class TrackEmbeddingTests(unittest.TestCase):
    def test_unit_norm(self) -> None:
        handle = ModelHandle(FakeEmbeddingModel)
        embedding = track_embedding(noise(3.0, 48000), 48000, handle)
        self.assertEqual(embedding.shape, (512,))
        self.assertEqual(embedding.dtype, np.float32)
        self.assertAlmostEqual(float(np.linalg.norm(embedding)), 1.0, delta=1e-5)

    def test_window_count(self) -> None:
        model = FakeEmbeddingModel()
        track_embedding(noise(3.0, 48000), 48000, ModelHandle(lambda: model))
        self.assertEqual(model.calls, len(window_starts(3 * 48000)))
        self.assertEqual(model.calls, 5)

    def test_resamples_other_rates(self) -> None:
        embedding = track_embedding(noise(2.0, 22050), 22050, ModelHandle(FakeEmbeddingModel))
        self.assertAlmostEqual(float(np.linalg.norm(embedding)), 1.0, delta=1e-5)

    def test_deterministic(self) -> None:
        samples = noise(2.0, 44100, seed=9)
        a = track_embedding(samples, 44100, ModelHandle(FakeEmbeddingModel))
        b = track_embedding(samples, 44100, ModelHandle(FakeEmbeddingModel))
        np.testing.assert_array_equal(a, b)

    def test_insufficient_audio(self) -> None:
        with self.assertRaises(InsufficientAudio):
            track_embedding(noise(0.5, 48000), 48000, ModelHandle(FakeEmbeddingModel))

    def test_model_unavailable(self) -> None:
        with self.assertRaises(ModelUnavailable):
            track_embedding(noise(2.0, 48000), 48000, ModelHandle())

    def test_wrong_output_size_fails(self) -> None:
        handle = ModelHandle(lambda: (lambda spec: np.ones(10)))
        with self.assertLogs(level="WARNING"):
            with self.assertRaises(PredictionFailed):
                track_embedding(noise(2.0, 48000), 48000, handle)

    def test_single_failed_window_is_skipped(self) -> None:
        class FlakyModel(FakeEmbeddingModel):
            def __call__(self, spectrogram):
                self.calls += 1
                if self.calls == 1:
                    raise RuntimeError("transient")
                return FakeEmbeddingModel.__call__(self, spectrogram)

        model = FlakyModel()
        with self.assertLogs(level="WARNING") as logs:
            embedding = track_embedding(noise(2.0, 48000), 48000, ModelHandle(lambda: model))
        self.assertIn("transient", logs.output[0])
        self.assertAlmostEqual(float(np.linalg.norm(embedding)), 1.0, delta=1e-5)

    def test_non_finite_output_counts_as_failure(self) -> None:
        handle = ModelHandle(lambda: (lambda spec: np.full(512, np.nan)))
        with self.assertLogs(level="WARNING"):
            with self.assertRaises(PredictionFailed):
                track_embedding(noise(1.0, 48000), 48000, handle)

    def test_cancel_between_windows(self) -> None:
        event = threading.Event()
        event.set()
        with self.assertRaises(AnalysisCancelled):
            track_embedding(noise(2.0, 48000), 48000, ModelHandle(FakeEmbeddingModel), event)


if __name__ == "__main__":
    unittest.main()
