"""Text-to-speech helpers."""

from __future__ import annotations

import logging
from typing import Final, Protocol

from openai import AsyncOpenAI

from .results import InvalidInputError, SpeechAudio

LOGGER = logging.getLogger(__name__)

TTS_MODEL: Final[str] = "tts-1"
TTS_FORMAT: Final[str] = "mp3"


class AudioPlayer(Protocol):
    """Plays synthesized speech on the device; provided by the host app."""

    async def play(self, audio: SpeechAudio) -> None: ...


async def synthesize_speech(client: AsyncOpenAI, text: str, voice: str, model: str = TTS_MODEL) -> bytes:
    """Generate MP3 audio for *text* using *voice*."""

    clean = text.strip()
    if not clean:
        raise InvalidInputError("Cannot generate speech for empty text")

    LOGGER.info("Generating speech using voice %s", voice)
    response = await client.audio.speech.create(
        input=clean,
        model=model,
        voice=voice,
        response_format=TTS_FORMAT,
    )
    if isinstance(response, (bytes, bytearray)):
        return bytes(response)
    if hasattr(response, "content"):
        return bytes(response.content)
    if hasattr(response, "aread"):
        return await response.aread()
    raise TypeError(f"Unsupported response type: {type(response)}")


__all__ = ["AudioPlayer", "TTS_MODEL", "TTS_FORMAT", "synthesize_speech"]
