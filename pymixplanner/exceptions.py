class MixPlannerError(Exception):
    """Base class for all pymixplanner errors."""


class AudioLoadError(MixPlannerError):
    """Raised when audio file cannot be loaded or is invalid."""


class DecodeFailure(AudioLoadError):
    """Raised when the audio decoder rejects the file."""


class NoAudioData(AudioLoadError):
    """Raised when a file decodes to zero samples."""


class EmbeddingError(MixPlannerError):
    """Base class for failures of the embedding stage."""


class InsufficientAudio(EmbeddingError):
    """Raised when audio is shorter than one embedding window."""


class ModelUnavailable(EmbeddingError):
    """Raised when the embedding model could not be loaded."""


class PredictionFailed(EmbeddingError):
    """Raised when the embedding model produced no usable output."""


class AnalysisCancelled(MixPlannerError):
    """Raised inside a pipeline when its cancel token is set."""


class UnknownTrackError(MixPlannerError):
    """Raised when a requested track id is not part of the candidate set."""
