from pathlib import Path

import librosa
import numpy as np

from pymixplanner.exceptions import DecodeFailure, NoAudioData
from pymixplanner.models import AudioSignal


def load_audio(filepath: str | Path) -> AudioSignal:
    """Decode a file into mono float32 PCM at its native sample rate."""
    path = Path(filepath)

    try:
        raw_audio, sr = librosa.load(path, sr=None, mono=False)
    except Exception as e:
        raise DecodeFailure(
            f"{path.name} could not be decoded. Invalid audio data or unsupported format."
        ) from e

    if raw_audio.size == 0:
        raise NoAudioData(f'No audio data could be loaded from "{path}".')

    mono = librosa.to_mono(raw_audio) if raw_audio.ndim > 1 else raw_audio
    return AudioSignal(samples=np.ascontiguousarray(mono, dtype=np.float32), sample_rate=float(sr))


def format_time(seconds: float) -> str:
    return f"{int(seconds // 60):02d}:{seconds % 60:06.3f}"
