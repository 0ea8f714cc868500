"""Languages and voices shared by the translation and speech clients."""

from __future__ import annotations

from typing import Final, Sequence

DEFAULT_LANGUAGE_CODE: Final[str] = "en"

LANGUAGES: Sequence[dict[str, str]] = [
    {"code": "en", "name": "English"},
    {"code": "es", "name": "Spanish"},
    {"code": "fr", "name": "French"},
    {"code": "de", "name": "German"},
    {"code": "it", "name": "Italian"},
    {"code": "pt", "name": "Portuguese"},
    {"code": "ru", "name": "Russian"},
    {"code": "ja", "name": "Japanese"},
    {"code": "ko", "name": "Korean"},
    {"code": "zh", "name": "Chinese"},
    {"code": "ar", "name": "Arabic"},
    {"code": "hi", "name": "Hindi"},
]

LANGUAGE_NAME: Final[dict[str, str]] = {item["code"]: item["name"] for item in LANGUAGES}
LANGUAGE_CODE: Final[dict[str, str]] = {item["name"]: item["code"] for item in LANGUAGES}

# OpenAI TTS voices per target language.
VOICE_BY_LANGUAGE: Final[dict[str, str]] = {
    "en": "onyx",
    "es": "nova",
    "fr": "shimmer",
}
DEFAULT_VOICE: Final[str] = "onyx"

COMMON_LANGUAGE_PAIRS: Sequence[tuple[str, str]] = [
    ("English", "Spanish"),
    ("English", "French"),
    ("English", "German"),
    ("Spanish", "English"),
    ("French", "English"),
    ("German", "English"),
    ("English", "Chinese"),
    ("English", "Japanese"),
    ("English", "Korean"),
]


def language_name(code: str | None) -> str:
    return LANGUAGE_NAME.get((code or "").lower(), LANGUAGE_NAME[DEFAULT_LANGUAGE_CODE])


def language_code(value: str | None) -> str:
    """Resolve a language name (or code) to its ISO 639-1 code."""
    if not value:
        return DEFAULT_LANGUAGE_CODE
    if value.lower() in LANGUAGE_NAME:
        return value.lower()
    return LANGUAGE_CODE.get(value, DEFAULT_LANGUAGE_CODE)


def is_supported(code: str) -> bool:
    return code in LANGUAGE_NAME


def transcription_hint(value: str | None) -> str | None:
    """Code to pass to Whisper as a language hint; unknown values mean auto-detect."""
    if not value:
        return None
    if is_supported(value.lower()):
        return value.lower()
    return LANGUAGE_CODE.get(value.title())


def voice_for(code: str | None) -> str:
    return VOICE_BY_LANGUAGE.get((code or "").lower(), DEFAULT_VOICE)


__all__ = [
    "DEFAULT_LANGUAGE_CODE",
    "LANGUAGES",
    "LANGUAGE_NAME",
    "LANGUAGE_CODE",
    "VOICE_BY_LANGUAGE",
    "DEFAULT_VOICE",
    "COMMON_LANGUAGE_PAIRS",
    "language_name",
    "language_code",
    "is_supported",
    "transcription_hint",
    "voice_for",
]
