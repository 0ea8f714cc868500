"""Request throttling and retry with exponential backoff."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Final, TypeVar

from .results import is_rate_limited

LOGGER = logging.getLogger(__name__)

DEFAULT_MIN_INTERVAL: Final[float] = 1.0
DEFAULT_MAX_RETRIES: Final[int] = 3

T = TypeVar("T")


class RateLimitedRetryingClient:
    """Spaces outbound calls at least ``min_interval`` seconds apart.

    Calls that fail because the remote side rate limited them are retried
    after ``2 ** attempt`` seconds, up to ``max_retries`` attempts in total.
    Any other failure propagates on the first attempt.
    """

    def __init__(
        self,
        min_interval: float = DEFAULT_MIN_INTERVAL,
        max_retries: int = DEFAULT_MAX_RETRIES,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self.min_interval = min_interval
        self.max_retries = max_retries
        self.last_request: float | None = None
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()

    async def wait_for_slot(self) -> None:
        """Suspend until this instance may dispatch its next request."""
        async with self._lock:
            if self.last_request is not None:
                elapsed = self._clock() - self.last_request
                if elapsed < self.min_interval:
                    await self._sleep(self.min_interval - elapsed)
            self.last_request = self._clock()

    async def call(self, operation: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        for attempt in range(self.max_retries):
            await self.wait_for_slot()
            try:
                return await operation(*args, **kwargs)
            except Exception as exc:
                if not is_rate_limited(exc) or attempt >= self.max_retries - 1:
                    raise
                delay = 2**attempt
                LOGGER.warning("Rate limited, waiting %ss before retry %d", delay, attempt + 1)
                await self._sleep(delay)
        raise AssertionError("unreachable")  # pragma: no cover


__all__ = ["DEFAULT_MIN_INTERVAL", "DEFAULT_MAX_RETRIES", "RateLimitedRetryingClient"]
