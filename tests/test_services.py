from __future__ import annotations

import types

import httpx
import openai
import pytest

from transconnect_core import ConfigurationError, Settings
from transconnect_core.services import (
    ErrorCategory,
    RateLimitedRetryingClient,
    SpeechClient,
    TranslationClient,
    classify_error,
)
from transconnect_core.services import _client
from transconnect_core.services.results import AUTH_FAILED_MESSAGE, RATE_LIMITED_MESSAGE
from transconnect_core.services.translate import parse_language_code

from conftest import StatusError


@pytest.fixture()
def limiter(timer):
    return RateLimitedRetryingClient(1.0, 3, clock=timer.clock, sleep=timer.sleep)


@pytest.fixture()
def translator(settings, fake_openai, limiter):
    return TranslationClient(settings, client=fake_openai, limiter=limiter)


class RecordingPlayer:
    def __init__(self) -> None:
        self.played = []

    async def play(self, audio) -> None:
        self.played.append(audio)


@pytest.mark.asyncio
async def test_translate_uses_openai(translator, fake_openai):
    fake_openai.chat_replies.append('"hola mundo"')

    result = await translator.translate_text("Hello world", "en", "es")

    assert result.success
    assert result.translated_text == "hola mundo"
    [call] = fake_openai.calls_to("chat")
    assert call["temperature"] == 0.3
    assert "from English to Spanish" in call["messages"][1]["content"]


@pytest.mark.asyncio
async def test_translate_blank_text_skips_the_api(translator, fake_openai):
    result = await translator.translate_text("   ", "en", "es")

    assert result.success
    assert result.translated_text == ""
    assert fake_openai.calls == []


@pytest.mark.asyncio
async def test_translate_retries_rate_limits_then_reports_them(translator, fake_openai, timer):
    fake_openai.chat_replies.extend([StatusError(429)] * 3)

    result = await translator.translate_text("Hello", "en", "es")

    assert not result.success
    assert result.error_category is ErrorCategory.RATE_LIMITED
    assert result.user_message == RATE_LIMITED_MESSAGE
    assert len(fake_openai.calls_to("chat")) == 3
    assert timer.sleeps == [1, 2]


@pytest.mark.parametrize(
    ("status", "category", "message"),
    [
        (401, ErrorCategory.AUTH_FAILED, AUTH_FAILED_MESSAGE),
        (400, ErrorCategory.INVALID_REQUEST, "Invalid text format. Please try again."),
        (500, ErrorCategory.OTHER, "Translation failed"),
    ],
)
@pytest.mark.asyncio
async def test_translate_failure_messages(translator, fake_openai, status, category, message):
    fake_openai.chat_replies.append(StatusError(status))

    result = await translator.translate_text("Hello", "en", "es")

    assert not result.success
    assert result.translated_text is None
    assert result.error_category is category
    assert result.user_message == message
    assert len(fake_openai.calls_to("chat")) == 1


def test_classify_sdk_errors():
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    error = openai.RateLimitError("slow down", response=httpx.Response(429, request=request), body=None)

    assert classify_error(error) is ErrorCategory.RATE_LIMITED
    assert classify_error(ValueError("boom")) is ErrorCategory.OTHER


def test_missing_api_key_raises_configuration_error(monkeypatch, settings):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.setattr(_client, "load_dotenv", lambda: None)
    _client.get_openai_client.cache_clear()

    with pytest.raises(ConfigurationError):
        TranslationClient(settings).openai()


@pytest.mark.asyncio
async def test_detect_language(translator, fake_openai):
    fake_openai.chat_replies.append("'FR'.")

    result = await translator.detect_language("Bonjour tout le monde")

    assert result.success
    assert result.language_code == "fr"
    assert result.language_name == "French"
    assert result.confidence == 0.95


@pytest.mark.asyncio
async def test_detect_language_failure_falls_back_to_english(translator, fake_openai):
    result = await translator.detect_language("  ")

    assert not result.success
    assert result.language_code == "en"
    assert result.confidence == 0.0
    assert fake_openai.calls == []


def test_parse_language_code():
    assert parse_language_code(" es\n") == "es"
    with pytest.raises(ValueError):
        parse_language_code("??")


@pytest.mark.asyncio
async def test_alternatives_strip_list_markers(translator, fake_openai):
    fake_openai.chat_replies.append('1. "Hola"\n2. Buenas\n\n- Saludos\n4. Qué tal')

    result = await translator.get_alternative_translations("Hello", "en", "es")

    assert result.success
    assert result.alternatives == ["Hola", "Buenas", "Saludos"]


@pytest.mark.asyncio
async def test_pronunciation_and_validation(translator, fake_openai):
    fake_openai.chat_replies.extend(["/ˈola/ ", "Rating: 9/10 - natural"])

    pronunciation = await translator.get_pronunciation("hola", "es")
    quality = await translator.validate_translation("hello", "hola", "en", "es")

    assert pronunciation.pronunciation == "/ˈola/"
    assert quality.validation == "Rating: 9/10 - natural"


@pytest.mark.asyncio
async def test_transcribe_uses_openai(settings, fake_openai, limiter, wav_bytes):
    speech = SpeechClient(settings, client=fake_openai, limiter=limiter)

    result = await speech.transcribe_audio(wav_bytes, "audio/wav", "en")

    assert result.success
    assert "hello" in result.text
    assert result.detected_language == "en"
    assert result.duration == pytest.approx(0.25)
    [call] = fake_openai.calls_to("transcribe")
    assert call["language"] == "en"
    assert call["response_format"] == "verbose_json"
    assert call["file"].name == "audio.wav"


@pytest.mark.asyncio
async def test_transcribe_rejects_unsupported_audio(settings, fake_openai, limiter):
    speech = SpeechClient(settings, client=fake_openai, limiter=limiter)

    result = await speech.transcribe_audio(b"not audio", "audio/flac")

    assert not result.success
    assert result.error_category is ErrorCategory.INVALID_REQUEST
    assert result.user_message == "Invalid audio format. Please try recording again."
    assert fake_openai.calls == []


@pytest.mark.asyncio
async def test_transcribe_enforces_duration_limit(tmp_path, fake_openai, limiter, wav_bytes):
    settings = Settings(max_audio_seconds=0, data_dir=str(tmp_path))
    speech = SpeechClient(settings, client=fake_openai, limiter=limiter)

    result = await speech.transcribe_audio(wav_bytes, "audio/wav")

    assert not result.success
    assert "limit" in result.error
    assert fake_openai.calls == []


@pytest.mark.asyncio
async def test_detect_language_from_audio(settings, fake_openai, limiter, wav_bytes):
    fake_openai.transcription_replies.append(types.SimpleNamespace(text="hola", language="spanish", duration=0.25))
    speech = SpeechClient(settings, client=fake_openai, limiter=limiter)

    result = await speech.detect_language_from_audio(wav_bytes, "audio/wav")

    assert result.success
    assert result.language_code == "es"
    assert result.text == "hola"


@pytest.mark.asyncio
async def test_synthesize_speech_caches_and_plays(tmp_path, settings, fake_openai, limiter):
    player = RecordingPlayer()
    speech = SpeechClient(settings, client=fake_openai, limiter=limiter, player=player, cache_dir=tmp_path / "cache")

    result = await speech.synthesize_speech("Bonjour", "fr")

    assert result.success
    assert result.audio.voice == "shimmer"
    assert result.audio.path.read_bytes() == b"ID3-fake-mp3"
    assert player.played == [result.audio]
    [call] = fake_openai.calls_to("speech")
    assert call["response_format"] == "mp3"


@pytest.mark.asyncio
async def test_synthesize_speech_defaults_voice_and_rejects_blank_text(settings, fake_openai, limiter):
    speech = SpeechClient(settings, client=fake_openai, limiter=limiter)

    german = await speech.synthesize_speech("Hallo", "de")
    blank = await speech.synthesize_speech("  ", "en")

    assert german.audio.voice == "onyx"
    assert not blank.success
    assert blank.user_message == "Invalid text format. Please try again."
