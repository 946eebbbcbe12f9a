"""
Embedding Pipeline - Track-level audio embeddings from an external model.

Steps:
- Resample to 48 kHz (linear interpolation)
- 1.0 s windows stepped by 0.5 s
- Log-mel spectrogram (128 bands x 199 frames) per window, min/max scaled
- Model inference per window through a shared ModelHandle
- L2-normalize each window vector, mean-pool, re-normalize

The model is any callable mapping a (128, 199) float32 array to 512 floats.
Access to it is serialized: one handle may be shared by many analysis
workers.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from functools import lru_cache
from typing import Any

import lazy_loader as lazy
import numpy as np
from scipy.signal import get_window

from pymixplanner.analysis.constants import (
    EMBEDDING_DIM,
    EMBEDDING_FFT_SIZE,
    EMBEDDING_FRAMES,
    EMBEDDING_HOP_SAMPLES,
    EMBEDDING_MEL_BANDS,
    EMBEDDING_SAMPLE_RATE,
    EMBEDDING_WINDOW_SAMPLES,
    MEL_FLOOR,
    MEL_HOP,
    RESAMPLE_TOLERANCE_HZ,
)
from pymixplanner.exceptions import (
    AnalysisCancelled,
    InsufficientAudio,
    ModelUnavailable,
    PredictionFailed,
)

EmbeddingModel = Callable[[np.ndarray], Any]


# ============================================================================
# SIGNAL PREPARATION
# ============================================================================

def resample_linear(samples: np.ndarray, from_rate: float, to_rate: float = EMBEDDING_SAMPLE_RATE) -> np.ndarray:
    """Linear-interpolation resampling; a no-op within 1 Hz of the target."""
    x = np.asarray(samples, dtype=np.float32)
    if abs(from_rate - to_rate) <= RESAMPLE_TOLERANCE_HZ or x.size == 0:
        return x
    ratio = to_rate / from_rate
    n_out = int(x.size * ratio)
    positions = np.arange(n_out, dtype=np.float64) / ratio
    return np.interp(positions, np.arange(x.size), x).astype(np.float32)


def hz_to_mel(hz):
    return 2595.0 * np.log10(1.0 + np.asarray(hz, dtype=np.float64) / 700.0)


def mel_to_hz(mel):
    return 700.0 * (10.0 ** (np.asarray(mel, dtype=np.float64) / 2595.0) - 1.0)


@lru_cache(maxsize=4)
def mel_filterbank(
    n_filters: int = EMBEDDING_MEL_BANDS,
    n_fft: int = EMBEDDING_FFT_SIZE,
    sr: float = EMBEDDING_SAMPLE_RATE,
) -> np.ndarray:
    """
    Triangular filters on integer FFT bins, evenly spaced on the mel scale
    over [0, sr/2].

    Returns:
        (n_filters, n_fft // 2) read-only array.
    """
    n_bins = n_fft // 2
    mel_points = np.linspace(hz_to_mel(0.0), hz_to_mel(sr / 2.0), n_filters + 2)
    bin_points = (mel_to_hz(mel_points) * n_fft / sr).astype(np.int64)

    bank = np.zeros((n_filters, n_bins), dtype=np.float64)
    for m in range(n_filters):
        start, center, end = bin_points[m], bin_points[m + 1], bin_points[m + 2]
        for k in range(start, min(center, n_bins)):
            bank[m, k] = (k - start) / (center - start)
        for k in range(center, min(end, n_bins)):
            bank[m, k] = (end - k) / (end - center)

    bank.flags.writeable = False
    return bank


@lru_cache(maxsize=1)
def _hann() -> np.ndarray:
    return get_window("hann", EMBEDDING_FFT_SIZE)


def mel_spectrogram(window: np.ndarray) -> np.ndarray:
    """
    Normalized log-mel spectrogram of one 48 kHz window.

    The window is zero-padded at the tail so that all frames exist.
    A flat spectrogram comes back as all zeros.

    Returns:
        (128, 199) float32 array with values in [0, 1].
    """
    x = np.asarray(window, dtype=np.float64)
    starts = np.arange(EMBEDDING_FRAMES) * MEL_HOP
    needed = int(starts[-1]) + EMBEDDING_FFT_SIZE
    if x.size < needed:
        x = np.pad(x, (0, needed - x.size))

    frames = x[starts[:, None] + np.arange(EMBEDDING_FFT_SIZE)] * _hann()
    power = np.abs(np.fft.rfft(frames, axis=1)[:, : EMBEDDING_FFT_SIZE // 2]) ** 2
    mel = power @ mel_filterbank().T
    spec = np.log10(np.maximum(mel, MEL_FLOOR)).T

    lo, hi = spec.min(), spec.max()
    if hi > lo:
        spec = (spec - lo) / (hi - lo)
    else:
        spec = np.zeros_like(spec)
    return spec.astype(np.float32)


# ============================================================================
# MODEL ACCESS
# ============================================================================

def import_model_factory(spec: str) -> Callable[[], EmbeddingModel]:
    """
    Resolve a 'module:factory' string into a model loader.

    The module is imported lazily: import errors surface when the loader runs.
    """
    module_name, _, attr = spec.partition(":")
    if not module_name or not attr:
        raise ValueError(f'Model spec "{spec}" must have the form "module:factory".')
    module = lazy.load(module_name)

    def loader() -> EmbeddingModel:
        return getattr(module, attr)()

    return loader


class ModelHandle:
    """
    Exclusive owner of the embedding model.

    The model is loaded lazily on first use. All loads and predictions
    run under one lock. A failed load is remembered, so later calls
    raise ModelUnavailable again without calling the loader.
    """

    def __init__(self, loader: Callable[[], EmbeddingModel] | None = None) -> None:
        self._loader = loader
        self._model: EmbeddingModel | None = None
        self._load_error: ModelUnavailable | None = None
        self._lock = threading.Lock()

    @property
    def loaded(self) -> bool:
        return self._model is not None

    def _ensure_loaded(self) -> EmbeddingModel:
        if self._model is None:
            if self._load_error is not None:
                raise ModelUnavailable(str(self._load_error)) from self._load_error
            if self._loader is None:
                raise ModelUnavailable("No embedding model is configured.")
            try:
                self._model = self._load()
            except ModelUnavailable as e:
                self._load_error = e
                raise
            logging.info("Embedding model loaded.")
        return self._model

    def _load(self) -> EmbeddingModel:
        try:
            model = self._loader()
        except Exception as e:
            raise ModelUnavailable(f"Embedding model could not be loaded: {e}") from e
        if not callable(model):
            raise ModelUnavailable(f"Embedding model loader returned a non-callable {type(model).__name__}.")
        return model

    def load(self) -> None:
        """Load the model now; raises ModelUnavailable on failure."""
        with self._lock:
            self._ensure_loaded()

    def predict(self, spectrogram: np.ndarray) -> np.ndarray:
        with self._lock:
            model = self._ensure_loaded()
            return np.asarray(model(spectrogram), dtype=np.float64)


# ============================================================================
# TRACK EMBEDDING
# ============================================================================

def _unit_vector(raw: np.ndarray) -> np.ndarray | None:
    """L2-normalized model output, or None if the output is unusable."""
    vector = np.asarray(raw, dtype=np.float64).reshape(-1)
    if vector.size != EMBEDDING_DIM or not np.all(np.isfinite(vector)):
        return None
    norm = np.linalg.norm(vector)
    if norm == 0:
        return None
    return vector / norm


def window_starts(n_samples: int) -> range:
    return range(0, n_samples - EMBEDDING_WINDOW_SAMPLES + 1, EMBEDDING_HOP_SAMPLES)


def track_embedding(
    samples: np.ndarray,
    sr: float,
    model: ModelHandle,
    cancel_event: threading.Event | None = None,
) -> np.ndarray:
    """
    Compute the unit-norm 512-dim embedding of a whole track.

    Raises:
        InsufficientAudio: audio shorter than one window at 48 kHz.
        ModelUnavailable: the model could not be loaded.
        PredictionFailed: no window produced a usable vector.
        AnalysisCancelled: `cancel_event` was set between windows.
    """
    audio = resample_linear(samples, sr)
    if audio.size < EMBEDDING_WINDOW_SAMPLES:
        raise InsufficientAudio(
            f"{audio.size} samples at {EMBEDDING_SAMPLE_RATE} Hz; at least {EMBEDDING_WINDOW_SAMPLES} needed."
        )

    model.load()

    total = np.zeros(EMBEDDING_DIM, dtype=np.float64)
    n_ok = 0
    n_windows = 0
    for pos in window_starts(audio.size):
        if cancel_event is not None and cancel_event.is_set():
            raise AnalysisCancelled("Embedding cancelled.")
        n_windows += 1
        spec = mel_spectrogram(audio[pos:pos + EMBEDDING_WINDOW_SAMPLES])
        try:
            vector = _unit_vector(model.predict(spec))
        except Exception as e:
            logging.warning(f"Embedding prediction failed for window at sample {pos}: {e}")
            continue
        if vector is None:
            logging.warning(f"Embedding model returned an invalid vector for window at sample {pos}.")
            continue
        total += vector
        n_ok += 1

    if n_ok == 0:
        raise PredictionFailed(f"All {n_windows} embedding windows failed.")

    pooled = total / n_ok
    norm = np.linalg.norm(pooled)
    if norm == 0:
        raise PredictionFailed("Pooled embedding has zero norm.")

    logging.info(f"Track embedding pooled from {n_ok}/{n_windows} windows.")
    return (pooled / norm).astype(np.float32)
