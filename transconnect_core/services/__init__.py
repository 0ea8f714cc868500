"""API clients for translation, transcription and speech synthesis."""

from .results import (
    DetectionResult,
    ErrorCategory,
    SpeechAudio,
    SynthesisResult,
    TranscriptionResult,
    TranslationResult,
    classify_error,
)
from .stt import ALLOWED_MIME_TYPES, SpeechClient, TranscriptionError, prepare_wav
from .throttle import RateLimitedRetryingClient
from .translate import TranslationClient
from .tts import AudioPlayer

__all__ = [
    "ALLOWED_MIME_TYPES",
    "AudioPlayer",
    "DetectionResult",
    "ErrorCategory",
    "RateLimitedRetryingClient",
    "SpeechAudio",
    "SpeechClient",
    "SynthesisResult",
    "TranscriptionError",
    "TranscriptionResult",
    "TranslationClient",
    "TranslationResult",
    "classify_error",
    "prepare_wav",
]
