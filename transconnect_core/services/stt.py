"""Speech transcription and synthesis client."""

from __future__ import annotations

import asyncio
import io
import logging
import uuid
from pathlib import Path
from typing import Any, Final, Union

import soundfile as sf
from openai import AsyncOpenAI

from ..config import Settings
from ..languages import LANGUAGE_CODE, LANGUAGE_NAME, language_name, voice_for
from ._client import OpenAIService
from .results import (
    DetectionResult,
    InputKind,
    InvalidInputError,
    SpeechAudio,
    SynthesisResult,
    TranscriptionResult,
    describe_failure,
)
from .text_utils import format_structured_text
from .throttle import RateLimitedRetryingClient
from .tts import TTS_FORMAT, AudioPlayer, synthesize_speech

LOGGER = logging.getLogger(__name__)

AudioSource = Union[bytes, str, Path]

ALLOWED_MIME_TYPES: Final[set[str]] = {
    "audio/wav",
    "audio/x-wav",
    "audio/webm",
    "audio/ogg",
    "audio/mp4",
    "audio/m4a",
    "audio/x-m4a",
    "audio/mpeg",
}
# ffmpeg demuxer names for the containers pydub has to decode.
_DECODE_FORMATS: Final[dict[str, str]] = {
    "audio/webm": "webm",
    "audio/ogg": "ogg",
    "audio/mp4": "mp4",
    "audio/m4a": "mp4",
    "audio/x-m4a": "mp4",
    "audio/mpeg": "mp3",
}
_SUFFIX_MIME_TYPES: Final[dict[str, str]] = {
    ".wav": "audio/wav",
    ".webm": "audio/webm",
    ".ogg": "audio/ogg",
    ".m4a": "audio/m4a",
    ".mp4": "audio/mp4",
    ".mp3": "audio/mpeg",
}
DETECTION_CONFIDENCE: Final[float] = 0.95


class TranscriptionError(InvalidInputError):
    """Raised when a transcription request fails validation."""


class SpeechClient(OpenAIService):
    """Whisper transcription and OpenAI text-to-speech behind the shared throttle."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        client: AsyncOpenAI | None = None,
        limiter: RateLimitedRetryingClient | None = None,
        player: AudioPlayer | None = None,
        cache_dir: Path | None = None,
    ) -> None:
        super().__init__(settings, client=client, limiter=limiter)
        self.player = player
        self.cache_dir = cache_dir if cache_dir is not None else self.settings.data_path / "cache"

    async def transcribe_audio(
        self,
        audio: AudioSource,
        mimetype: str | None = None,
        language: str | None = None,
    ) -> TranscriptionResult:
        client = self.openai()
        LOGGER.info("Transcribing audio (mimetype=%s, language=%s)", mimetype, language)
        try:
            wav_bytes, duration = await self._prepare(audio, mimetype)
            response = await self.limiter.call(self._transcribe, client, wav_bytes, language)
        except Exception as exc:
            LOGGER.error("Speech transcription error: %s", exc)
            return TranscriptionResult(text=None, **describe_failure(exc, "Transcription", InputKind.AUDIO))

        LOGGER.debug("Received transcription response")
        return TranscriptionResult(
            success=True,
            text=format_structured_text(getattr(response, "text", "") or ""),
            detected_language=_normalize_detected_language(getattr(response, "language", None)),
            duration=getattr(response, "duration", None) or duration,
        )

    async def detect_language_from_audio(self, audio: AudioSource, mimetype: str | None = None) -> DetectionResult:
        client = self.openai()
        try:
            wav_bytes, _ = await self._prepare(audio, mimetype)
            response = await self.limiter.call(self._transcribe, client, wav_bytes, None)
            code = _normalize_detected_language(getattr(response, "language", None))
            if code is None:
                raise TranscriptionError("The transcription service did not report a language")
        except Exception as exc:
            LOGGER.error("Language detection error: %s", exc)
            return DetectionResult(
                language_code="en",
                language_name=language_name("en"),
                confidence=0.0,
                **describe_failure(exc, "Language detection", InputKind.AUDIO),
            )

        return DetectionResult(
            success=True,
            language_code=code,
            language_name=LANGUAGE_NAME.get(code, "Unknown"),
            confidence=DETECTION_CONFIDENCE,
            text=format_structured_text(getattr(response, "text", "") or ""),
        )

    async def synthesize_speech(self, text: str, language_code: str = "en") -> SynthesisResult:
        """Speak *text* with the voice mapped to *language_code*.

        The audio is cached to disk and handed to the configured player, if any.
        """
        client = self.openai()
        voice = voice_for(language_code)
        try:
            data = await self.limiter.call(synthesize_speech, client, text, voice, self.settings.tts_model)
            path = await asyncio.to_thread(self._cache_audio, data)
            audio = SpeechAudio(data=data, path=path, voice=voice)
            if self.player is not None:
                await self.player.play(audio)
        except Exception as exc:
            LOGGER.error("OpenAI TTS error: %s", exc)
            return SynthesisResult(audio=None, language_code=language_code, **describe_failure(exc, "Speech"))
        return SynthesisResult(success=True, audio=audio, language_code=language_code)

    async def _prepare(self, audio: AudioSource, mimetype: str | None) -> tuple[bytes, float]:
        data, resolved = await asyncio.to_thread(_load_audio, audio, mimetype)
        wav_bytes = await asyncio.to_thread(prepare_wav, data, resolved)
        duration = await asyncio.to_thread(_duration_seconds, wav_bytes)
        if duration > self.settings.max_audio_seconds:
            raise TranscriptionError(f"Audio duration exceeds the {self.settings.max_audio_seconds} second limit")
        return wav_bytes, duration

    async def _transcribe(self, client: AsyncOpenAI, wav_bytes: bytes, language: str | None) -> Any:
        # A fresh buffer per attempt; a retried upload must start at offset 0.
        buffer = io.BytesIO(wav_bytes)
        buffer.name = "audio.wav"  # type: ignore[attr-defined]
        kwargs: dict[str, object] = {
            "model": self.settings.transcribe_model,
            "file": buffer,
            "response_format": "verbose_json",
        }
        if language:
            kwargs["language"] = language
        return await client.audio.transcriptions.create(**kwargs)

    def _cache_audio(self, data: bytes) -> Path:
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        path = self.cache_dir / f"tts_{uuid.uuid4().hex}.{TTS_FORMAT}"
        path.write_bytes(data)
        return path


def prepare_wav(audio: bytes, mimetype: str) -> bytes:
    if mimetype not in ALLOWED_MIME_TYPES:
        raise TranscriptionError(f"Unsupported audio mimetype: {mimetype}")
    if not audio:
        raise TranscriptionError("Recorded audio is empty")
    if mimetype in {"audio/wav", "audio/x-wav"}:
        return audio
    try:
        from pydub import AudioSegment
    except ModuleNotFoundError as exc:  # pragma: no cover - optional dependency
        raise TranscriptionError("pydub is required to decode non-WAV uploads") from exc

    segment = AudioSegment.from_file(io.BytesIO(audio), format=_DECODE_FORMATS[mimetype])
    LOGGER.debug("Decoded %s audio via pydub (duration=%.2fs)", mimetype, segment.duration_seconds)
    mono = segment.set_channels(1).set_frame_rate(16000)
    wav_buffer = io.BytesIO()
    mono.export(wav_buffer, format="wav")
    return wav_buffer.getvalue()


def _load_audio(audio: AudioSource, mimetype: str | None) -> tuple[bytes, str]:
    if isinstance(audio, (bytes, bytearray)):
        return bytes(audio), normalize_mime_type(mimetype) or "audio/wav"
    path = Path(audio)
    resolved = normalize_mime_type(mimetype) or _SUFFIX_MIME_TYPES.get(path.suffix.lower(), "")
    try:
        return path.read_bytes(), resolved
    except OSError as exc:
        raise TranscriptionError(f"Could not read recording {path}: {exc}") from exc


def normalize_mime_type(value: Any) -> str:
    mimetype = str(value or "").strip().lower()
    if ";" in mimetype:
        mimetype = mimetype.split(";", 1)[0].strip()
    return mimetype


def _duration_seconds(audio: bytes) -> float:
    try:
        with sf.SoundFile(io.BytesIO(audio)) as data:
            frames = len(data)
            samplerate = data.samplerate or 1
    except RuntimeError as exc:
        raise TranscriptionError(f"Could not decode audio: {exc}") from exc
    return frames / samplerate


def _normalize_detected_language(value: Any) -> str | None:
    """Whisper reports languages by name (``"english"``); map them back to codes."""
    if not value:
        return None
    text = str(value).strip()
    if text.lower() in LANGUAGE_NAME:
        return text.lower()
    return LANGUAGE_CODE.get(text.title(), text.lower())


__all__ = [
    "ALLOWED_MIME_TYPES",
    "AudioSource",
    "SpeechClient",
    "TranscriptionError",
    "normalize_mime_type",
    "prepare_wav",
]
