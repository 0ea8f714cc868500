import asyncio
import io
import types
from datetime import datetime, timedelta, timezone

import numpy as np
import pytest
import soundfile as sf

from transconnect_core import MemoryStore, Settings, build_services
from transconnect.ui_web.app import create_app


class DummyChatMessage:
    def __init__(self, content: str) -> None:
        self.content = content


class DummyChoice:
    def __init__(self, content: str) -> None:
        self.message = DummyChatMessage(content)
        self.index = 0


class DummyChatResponse:
    def __init__(self, content: str) -> None:
        self.choices = [DummyChoice(content)]


class DummySpeechResponse:
    def __init__(self, content: bytes) -> None:
        self.content = content


class StatusError(Exception):
    """Stand-in for an HTTP error raised by the API client."""

    def __init__(self, status_code: int, message: str = "") -> None:
        super().__init__(message or f"HTTP {status_code}")
        self.status_code = status_code


class FakeOpenAI:
    """Async OpenAI look-alike; queue replies or exceptions per endpoint."""

    def __init__(self) -> None:
        self.chat_replies: list = []
        self.transcription_replies: list = []
        self.speech_replies: list = []
        self.calls: list[tuple[str, dict]] = []
        self.chat = types.SimpleNamespace(completions=types.SimpleNamespace(create=self._chat))
        self.audio = types.SimpleNamespace(
            transcriptions=types.SimpleNamespace(create=self._transcribe),
            speech=types.SimpleNamespace(create=self._speech),
        )

    def calls_to(self, endpoint: str) -> list[dict]:
        return [kwargs for name, kwargs in self.calls if name == endpoint]

    async def _chat(self, **kwargs):
        self.calls.append(("chat", kwargs))
        reply = self.chat_replies.pop(0) if self.chat_replies else "hola mundo"
        if isinstance(reply, Exception):
            raise reply
        return DummyChatResponse(reply)

    async def _transcribe(self, **kwargs):
        self.calls.append(("transcribe", kwargs))
        reply = (
            self.transcription_replies.pop(0)
            if self.transcription_replies
            else types.SimpleNamespace(text="hello world", language="english", duration=0.25)
        )
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def _speech(self, **kwargs):
        self.calls.append(("speech", kwargs))
        reply = self.speech_replies.pop(0) if self.speech_replies else b"ID3-fake-mp3"
        if isinstance(reply, Exception):
            raise reply
        return DummySpeechResponse(reply)


class FakeClock:
    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 1, 6, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeTimer:
    """Monotonic clock plus sleep that only moves virtual time forward."""

    def __init__(self) -> None:
        self.now = 100.0
        self.sleeps: list[float] = []

    def clock(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


@pytest.fixture()
def wav_bytes() -> bytes:
    duration = 0.25
    samplerate = 16000
    t = np.linspace(0, duration, int(duration * samplerate), endpoint=False)
    tone = 0.1 * np.sin(2 * np.pi * 440 * t)
    buffer = io.BytesIO()
    sf.write(buffer, tone, samplerate, format='WAV')
    return buffer.getvalue()


@pytest.fixture()
def fake_openai() -> FakeOpenAI:
    return FakeOpenAI()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def timer() -> FakeTimer:
    return FakeTimer()


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return Settings(min_request_interval=0.0, data_dir=str(tmp_path / "data"))


@pytest.fixture()
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture()
def services(settings, store, fake_openai, clock):
    return build_services(settings, store, client=fake_openai, clock=clock, bcrypt_rounds=4)


@pytest.fixture()
def flask_app(services):
    app = create_app({"TESTING": True}, services=services)
    yield app
    app.extensions["transconnect_runner"].close()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def register_user(services):
    async def register(first="Ada", last="Lovelace", email="ada@example.com", phone="+1 555 010 0100"):
        return await services.users.register(first, last, email, phone, "secret-pass")

    return register
