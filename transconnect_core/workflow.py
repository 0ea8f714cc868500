"""Quota-checked translation flow used by the app screens.

Checks the signed-in user's device binding and weekly quota, calls the API
clients, records the translation in history and reports the minutes used.
Guests (no signed-in user) may translate but nothing is metered or recorded.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Final

from .errors import DeviceMismatchError, QuotaExceededError, StorageFailure
from .history import TranslationHistory
from .languages import transcription_hint
from .models import HistoryType, UserRecord
from .services.results import TranscriptionResult, TranslationResult
from .services.stt import AudioSource, SpeechClient
from .services.translate import TranslationClient
from .session import SessionManager
from .subscription import SubscriptionMeter

LOGGER = logging.getLogger(__name__)

TEXT_TRANSLATION_MINUTES: Final[int] = 1


@dataclass(slots=True)
class WorkflowResult:
    success: bool
    translation: TranslationResult | None = None
    transcription: TranscriptionResult | None = None
    minutes_used: float = 0
    usage: float | None = None
    user_message: str | None = None

    def to_mapping(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "translation": self.translation.to_mapping() if self.translation else None,
            "transcription": self.transcription.to_mapping() if self.transcription else None,
            "minutes_used": self.minutes_used,
            "usage": self.usage,
            "user_message": self.user_message,
        }


@dataclass
class TranslationWorkflow:
    session: SessionManager
    meter: SubscriptionMeter
    translator: TranslationClient
    speech: SpeechClient
    history: TranslationHistory
    text_minutes: float = field(default=TEXT_TRANSLATION_MINUTES)

    async def ensure_allowed(self, user: UserRecord, device_id: str | None = None) -> None:
        """Raise unless *user* may start another translation from *device_id*."""
        subscription = await self.meter.get_subscription(user.id)
        if device_id is not None and subscription.device_id is not None:
            if not await self.meter.check_device(user.id, device_id):
                raise DeviceMismatchError()
        if not await self.meter.may_proceed(user.id):
            raise QuotaExceededError()

    async def translate_text(
        self,
        text: str,
        source_language: str,
        target_language: str,
        device_id: str | None = None,
    ) -> WorkflowResult:
        user = await self.session.current()
        if user is not None:
            await self.ensure_allowed(user, device_id)

        translation = await self.translator.translate_text(text, source_language, target_language)
        if not translation.success:
            return WorkflowResult(success=False, translation=translation, user_message=translation.user_message)
        return await self._finish(user, translation, HistoryType.TEXT, self.text_minutes)

    async def translate_voice(
        self,
        audio: AudioSource,
        source_language: str,
        target_language: str,
        mimetype: str | None = None,
        device_id: str | None = None,
    ) -> WorkflowResult:
        user = await self.session.current()
        if user is not None:
            await self.ensure_allowed(user, device_id)

        transcription = await self.speech.transcribe_audio(audio, mimetype, transcription_hint(source_language))
        if not transcription.success:
            return WorkflowResult(
                success=False, transcription=transcription, user_message=transcription.user_message
            )

        translation = await self.translator.translate_text(transcription.text or "", source_language, target_language)
        if not translation.success:
            return WorkflowResult(
                success=False,
                transcription=transcription,
                translation=translation,
                user_message=translation.user_message,
            )
        minutes = max(1, math.ceil((transcription.duration or 0) / 60))
        result = await self._finish(user, translation, HistoryType.VOICE, minutes)
        result.transcription = transcription
        return result

    async def _finish(
        self,
        user: UserRecord | None,
        translation: TranslationResult,
        entry_type: HistoryType,
        minutes: float,
    ) -> WorkflowResult:
        if user is None:
            return WorkflowResult(success=True, translation=translation)
        if not translation.original_text.strip():
            # Nothing was sent to the API, so nothing is recorded or charged.
            return WorkflowResult(success=True, translation=translation)

        try:
            await self.history.add(
                translation.original_text,
                translation.translated_text or "",
                translation.source_language,
                translation.target_language,
                entry_type.value,
                user_id=user.id,
            )
        except StorageFailure as exc:
            LOGGER.warning("Error saving to history: %s", exc)

        await self.meter.update_usage(user.id, minutes)
        usage = await self.meter.get_usage(user.id)
        return WorkflowResult(success=True, translation=translation, minutes_used=minutes, usage=usage)


__all__ = ["TEXT_TRANSLATION_MINUTES", "TranslationWorkflow", "WorkflowResult"]
