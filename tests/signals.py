"""Synthetic signals, fake embedding models and result builders shared by the tests."""

import threading
import time

import numpy as np

from pymixplanner.models import AnalysisResult

CLICK_SR = 49152  # 96 onset frames per second: lag 45 is exactly 128 BPM


def click_track(seconds: float = 20.0, sr: int = CLICK_SR, bpm: float = 128.0) -> np.ndarray:
    """64-sample bursts, one per beat, starting half a beat in."""
    samples = np.zeros(int(seconds * sr), dtype=np.float32)
    period = sr * 60.0 / bpm
    position = period / 2
    while position < len(samples) - 64:
        start = int(round(position))
        samples[start:start + 64] = 1.0
        position += period
    return samples


def bin_tones(bins: list[int], seconds: float = 4.0, sr: int = 22050, n_fft: int = 4096) -> np.ndarray:
    """Sum of sines sitting exactly on FFT bin centers."""
    n = np.arange(int(seconds * sr))
    return sum(np.sin(2 * np.pi * b * n / n_fft) for b in bins).astype(np.float32)


def noise(seconds: float, sr: int, seed: int = 0, scale: float = 0.3) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return (rng.standard_normal(int(seconds * sr)) * scale).astype(np.float32)


class FakeEmbeddingModel:
    """Deterministic 512-dim summary of a spectrogram."""

    def __init__(self) -> None:
        self.calls = 0

    def __call__(self, spectrogram: np.ndarray) -> np.ndarray:
        self.calls += 1
        return np.concatenate(
            [
                spectrogram.mean(axis=1),
                spectrogram.std(axis=1),
                spectrogram.max(axis=1),
                np.ones(spectrogram.shape[0], dtype=np.float32),
            ]
        )


class OverlapCountingModel(FakeEmbeddingModel):
    """Records how many calls overlap in time."""

    def __init__(self) -> None:
        super().__init__()
        self._guard = threading.Lock()
        self.active = 0
        self.max_active = 0

    def __call__(self, spectrogram: np.ndarray) -> np.ndarray:
        with self._guard:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        time.sleep(0.005)
        try:
            return super().__call__(spectrogram)
        finally:
            with self._guard:
                self.active -= 1


class BlockingModel(FakeEmbeddingModel):
    """Blocks inside the first call until released."""

    def __init__(self) -> None:
        super().__init__()
        self.started = threading.Event()
        self.release = threading.Event()

    def __call__(self, spectrogram: np.ndarray) -> np.ndarray:
        self.started.set()
        self.release.wait(timeout=10)
        return super().__call__(spectrogram)


def unit(index: int, dim: int = 512) -> np.ndarray:
    v = np.zeros(dim, dtype=np.float32)
    v[index] = 1.0
    return v


def make_result(
    track_id: str,
    bpm: float | None = 120.0,
    key: str | None = "8A",
    energy: int | None = 5,
    embedding: np.ndarray | None = None,
) -> AnalysisResult:
    return AnalysisResult(
        track_id=track_id,
        version=1,
        duration=300.0,
        bpm=bpm,
        bpm_confidence=0.9,
        key=key,
        key_confidence=0.8,
        energy_global=energy,
        embedding=embedding,
    )
