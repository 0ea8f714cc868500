"""Result objects returned by the API clients and error classification."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Final

import openai

from ..models import format_timestamp, utcnow


class ErrorCategory(str, Enum):
    RATE_LIMITED = "rate_limited"
    AUTH_FAILED = "auth_failed"
    INVALID_REQUEST = "invalid_request"
    OTHER = "other"


class InputKind(str, Enum):
    TEXT = "text"
    AUDIO = "audio"


class InvalidInputError(ValueError):
    """Raised locally for input the remote service would reject anyway."""


RATE_LIMITED_MESSAGE: Final[str] = "Too many requests. Please wait a moment and try again."
AUTH_FAILED_MESSAGE: Final[str] = "API key error. Please check your configuration."
INVALID_INPUT_MESSAGES: Final[dict[InputKind, str]] = {
    InputKind.TEXT: "Invalid text format. Please try again.",
    InputKind.AUDIO: "Invalid audio format. Please try recording again.",
}
_STATUS_CATEGORIES: Final[dict[int, ErrorCategory]] = {
    429: ErrorCategory.RATE_LIMITED,
    401: ErrorCategory.AUTH_FAILED,
    400: ErrorCategory.INVALID_REQUEST,
}


def classify_error(exc: BaseException) -> ErrorCategory:
    """Map a failure to the category shown to the user."""
    if isinstance(exc, openai.RateLimitError):
        return ErrorCategory.RATE_LIMITED
    if isinstance(exc, openai.AuthenticationError):
        return ErrorCategory.AUTH_FAILED
    if isinstance(exc, (openai.BadRequestError, InvalidInputError)):
        return ErrorCategory.INVALID_REQUEST
    status = getattr(exc, "status_code", None)
    if isinstance(status, int):
        return _STATUS_CATEGORIES.get(status, ErrorCategory.OTHER)
    return ErrorCategory.OTHER


def is_rate_limited(exc: BaseException) -> bool:
    return classify_error(exc) is ErrorCategory.RATE_LIMITED


def user_message(category: ErrorCategory, operation: str, kind: InputKind = InputKind.TEXT) -> str:
    if category is ErrorCategory.RATE_LIMITED:
        return RATE_LIMITED_MESSAGE
    if category is ErrorCategory.AUTH_FAILED:
        return AUTH_FAILED_MESSAGE
    if category is ErrorCategory.INVALID_REQUEST:
        return INVALID_INPUT_MESSAGES[kind]
    return f"{operation} failed"


def describe_failure(exc: BaseException, operation: str, kind: InputKind = InputKind.TEXT) -> dict[str, Any]:
    """Keyword arguments for the failure fields of any result type."""
    category = classify_error(exc)
    return {
        "success": False,
        "error": str(exc) or exc.__class__.__name__,
        "error_category": category,
        "user_message": user_message(category, operation, kind),
    }


class _Result:
    def to_mapping(self) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        for item in fields(self):  # type: ignore[arg-type]
            payload[item.name] = _jsonable(getattr(self, item.name))
        return payload


@dataclass(slots=True)
class TranslationResult(_Result):
    success: bool
    original_text: str
    translated_text: str | None
    source_language: str
    target_language: str
    timestamp: datetime = field(default_factory=utcnow)
    error: str | None = None
    error_category: ErrorCategory | None = None
    user_message: str | None = None


@dataclass(slots=True)
class DetectionResult(_Result):
    success: bool
    language_code: str
    language_name: str
    confidence: float
    text: str | None = None
    error: str | None = None
    error_category: ErrorCategory | None = None
    user_message: str | None = None


@dataclass(slots=True)
class TranscriptionResult(_Result):
    success: bool
    text: str | None
    detected_language: str | None = None
    duration: float | None = None
    timestamp: datetime = field(default_factory=utcnow)
    error: str | None = None
    error_category: ErrorCategory | None = None
    user_message: str | None = None


@dataclass(slots=True)
class SpeechAudio:
    """Synthesized speech ready to hand to an audio player."""

    data: bytes
    path: Path | None
    voice: str
    mimetype: str = "audio/mpeg"

    def to_mapping(self) -> dict[str, Any]:
        return {
            "path": str(self.path) if self.path else None,
            "voice": self.voice,
            "mimetype": self.mimetype,
            "size": len(self.data),
        }


@dataclass(slots=True)
class SynthesisResult(_Result):
    success: bool
    audio: SpeechAudio | None
    language_code: str
    error: str | None = None
    error_category: ErrorCategory | None = None
    user_message: str | None = None


@dataclass(slots=True)
class PronunciationResult(_Result):
    success: bool
    text: str
    pronunciation: str | None
    language: str
    error: str | None = None
    error_category: ErrorCategory | None = None
    user_message: str | None = None


@dataclass(slots=True)
class AlternativesResult(_Result):
    success: bool
    original_text: str
    alternatives: list[str]
    source_language: str
    target_language: str
    error: str | None = None
    error_category: ErrorCategory | None = None
    user_message: str | None = None


@dataclass(slots=True)
class QualityResult(_Result):
    success: bool
    original_text: str
    translated_text: str
    validation: str | None
    source_language: str
    target_language: str
    error: str | None = None
    error_category: ErrorCategory | None = None
    user_message: str | None = None


def _jsonable(value: Any) -> Any:
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, SpeechAudio):
        return value.to_mapping()
    if isinstance(value, list):
        return [_jsonable(item) for item in value]
    return value


__all__ = [
    "ErrorCategory",
    "InputKind",
    "InvalidInputError",
    "classify_error",
    "is_rate_limited",
    "user_message",
    "describe_failure",
    "TranslationResult",
    "DetectionResult",
    "TranscriptionResult",
    "SpeechAudio",
    "SynthesisResult",
    "PronunciationResult",
    "AlternativesResult",
    "QualityResult",
]
