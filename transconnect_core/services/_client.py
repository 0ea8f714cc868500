"""Shared helpers for acquiring API clients."""

from __future__ import annotations

import logging
import os
from functools import lru_cache

from dotenv import load_dotenv
from openai import AsyncOpenAI

from ..config import Settings
from ..errors import ConfigurationError
from .throttle import RateLimitedRetryingClient

LOGGER = logging.getLogger(__name__)


def get_api_key() -> str:
    load_dotenv()
    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        raise ConfigurationError("OPENAI_API_KEY is not configured")
    return api_key


@lru_cache(maxsize=4)
def get_openai_client(timeout: float = 60.0) -> AsyncOpenAI:
    """Return a cached OpenAI client configured via environment variables.

    The SDK's own retries are disabled; backoff is handled by
    :class:`~transconnect_core.services.throttle.RateLimitedRetryingClient`.
    """

    api_key = get_api_key()
    LOGGER.debug("Initialising OpenAI client")
    return AsyncOpenAI(api_key=api_key, max_retries=0, timeout=timeout)


class OpenAIService:
    """Common plumbing for clients that talk to the OpenAI API."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        client: AsyncOpenAI | None = None,
        limiter: RateLimitedRetryingClient | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.limiter = limiter or RateLimitedRetryingClient(
            self.settings.min_request_interval, self.settings.max_retries
        )
        self._client = client

    def openai(self) -> AsyncOpenAI:
        """Resolve the API client, raising :class:`ConfigurationError` without a key."""
        if self._client is None:
            self._client = get_openai_client(self.settings.request_timeout)
        return self._client


__all__ = ["get_api_key", "get_openai_client", "OpenAIService"]
