import types

import pytest

from transconnect_core import DeviceMismatchError, QuotaExceededError, StorageFailure
from transconnect_core.history import HISTORY_KEY

from conftest import StatusError


@pytest.mark.asyncio
async def test_text_translation_is_metered_and_recorded(services, register_user, fake_openai):
    user = await register_user()

    result = await services.workflow.translate_text("Hello", "en", "es")

    assert result.success
    assert result.translation.translated_text == "hola mundo"
    assert result.minutes_used == 1
    assert result.usage == 1
    [entry] = await services.history.list_entries(user.id)
    assert entry.type == "text"
    assert entry.translated == "hola mundo"


@pytest.mark.asyncio
async def test_guest_translations_are_not_metered(services, register_user):
    user = await register_user()
    await services.session.sign_out()

    result = await services.workflow.translate_text("Hello", "en", "es")

    assert result.success
    assert result.usage is None
    assert await services.history.list_entries() == []
    assert await services.meter.get_usage(user.id) == 0


@pytest.mark.asyncio
async def test_quota_exhausted_blocks_before_calling_the_api(services, register_user, fake_openai):
    user = await register_user()
    await services.meter.update_usage(user.id, 30)

    with pytest.raises(QuotaExceededError):
        await services.workflow.translate_text("Hello", "en", "es")

    assert fake_openai.calls == []


@pytest.mark.asyncio
async def test_bound_device_must_match(services, register_user, fake_openai):
    user = await register_user()
    await services.meter.set_subscription(user.id, "weekly", "phone-1")

    with pytest.raises(DeviceMismatchError):
        await services.workflow.translate_text("Hello", "en", "es", device_id="tablet-2")
    assert fake_openai.calls == []

    result = await services.workflow.translate_text("Hello", "en", "es", device_id="phone-1")
    assert result.success


@pytest.mark.asyncio
async def test_failed_translation_is_not_metered(services, register_user, fake_openai):
    user = await register_user()
    fake_openai.chat_replies.append(StatusError(401))

    result = await services.workflow.translate_text("Hello", "en", "es")

    assert not result.success
    assert result.user_message == "API key error. Please check your configuration."
    assert await services.meter.get_usage(user.id) == 0


@pytest.mark.asyncio
async def test_voice_translation(services, register_user, fake_openai, wav_bytes):
    user = await register_user()

    result = await services.workflow.translate_voice(wav_bytes, "English", "Spanish", "audio/wav")

    assert result.success
    assert result.transcription.text == "hello world"
    assert result.minutes_used == 1
    [call] = fake_openai.calls_to("transcribe")
    assert call["language"] == "en"
    [entry] = await services.history.list_entries(user.id, "voice")
    assert entry.original == "hello world"


@pytest.mark.asyncio
async def test_history_failure_does_not_fail_translation(services, register_user, store, monkeypatch):
    user = await register_user()
    original_set = store.set

    async def failing_set(key, value):
        if key == HISTORY_KEY:
            raise StorageFailure("disk full")
        await original_set(key, value)

    monkeypatch.setattr(store, "set", failing_set)

    result = await services.workflow.translate_text("Hello", "en", "es")

    assert result.success
    assert await services.meter.get_usage(user.id) == 1


@pytest.mark.asyncio
async def test_blank_text_is_neither_recorded_nor_charged(services, register_user, fake_openai):
    user = await register_user()

    result = await services.workflow.translate_text("   ", "en", "es")

    assert result.success
    assert result.minutes_used == 0
    assert fake_openai.calls == []
    assert await services.meter.get_usage(user.id) == 0
    assert await services.history.list_entries(user.id) == []


@pytest.mark.asyncio
async def test_empty_transcript_is_not_charged(services, register_user, fake_openai, wav_bytes):
    user = await register_user()
    fake_openai.transcription_replies.append(types.SimpleNamespace(text="", language="english", duration=0.25))

    result = await services.workflow.translate_voice(wav_bytes, "en", "es", "audio/wav")

    assert result.success
    assert result.minutes_used == 0
    assert fake_openai.calls_to("chat") == []
    assert await services.meter.get_usage(user.id) == 0


@pytest.mark.asyncio
async def test_unknown_source_language_lets_whisper_detect(services, fake_openai, wav_bytes):
    result = await services.workflow.translate_voice(wav_bytes, "auto", "es", "audio/wav")

    assert result.success
    [call] = fake_openai.calls_to("transcribe")
    assert "language" not in call
