"""Wires the core services together once per process."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from openai import AsyncOpenAI

from .config import Settings
from .history import TranslationHistory
from .models import utcnow
from .preferences import ThemePreference
from .services.stt import SpeechClient
from .services.throttle import RateLimitedRetryingClient
from .services.translate import TranslationClient
from .services.tts import AudioPlayer
from .session import SessionManager, SessionPointer
from .storage import JsonFileStore, KeyValueStore
from .subscription import SubscriptionMeter
from .users import UserDirectory
from .workflow import TranslationWorkflow

LOGGER = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    store: KeyValueStore
    users: UserDirectory
    session: SessionManager
    meter: SubscriptionMeter
    translator: TranslationClient
    speech: SpeechClient
    history: TranslationHistory
    theme: ThemePreference
    workflow: TranslationWorkflow


def build_services(
    settings: Settings | None = None,
    store: KeyValueStore | None = None,
    *,
    client: AsyncOpenAI | None = None,
    player: AudioPlayer | None = None,
    clock: Callable[[], datetime] = utcnow,
    bcrypt_rounds: int = 12,
) -> Services:
    """Construct every service against one store.

    The translation and speech clients each get their own throttle, so each
    keeps its own one-request-per-interval budget.
    """

    settings = settings or Settings()
    store = store if store is not None else JsonFileStore(settings.data_path)
    pointer = SessionPointer(store)
    users = UserDirectory(store, pointer, bcrypt_rounds=bcrypt_rounds, clock=clock)
    session = SessionManager(users, pointer)
    meter = SubscriptionMeter(users, clock=clock)
    translator = TranslationClient(
        settings,
        client=client,
        limiter=RateLimitedRetryingClient(settings.min_request_interval, settings.max_retries),
    )
    speech = SpeechClient(
        settings,
        client=client,
        limiter=RateLimitedRetryingClient(settings.min_request_interval, settings.max_retries),
        player=player,
    )
    history = TranslationHistory(store, clock=clock)
    LOGGER.debug("Built services (store=%s)", type(store).__name__)
    return Services(
        settings=settings,
        store=store,
        users=users,
        session=session,
        meter=meter,
        translator=translator,
        speech=speech,
        history=history,
        theme=ThemePreference(store),
        workflow=TranslationWorkflow(session, meter, translator, speech, history),
    )


__all__ = ["Services", "build_services"]
