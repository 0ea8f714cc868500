"""Translation history kept under the ``translation_history`` key."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable

from .errors import NotFoundError, ValidationError
from .models import HistoryEntry, HistoryType, utcnow
from .storage import KeyValueStore

LOGGER = logging.getLogger(__name__)

HISTORY_KEY = "translation_history"
GUEST_USER_ID = "guest"


class TranslationHistory:
    """Newest-first log of translations, shared by every user of the device."""

    def __init__(self, store: KeyValueStore, clock: Callable = utcnow) -> None:
        self._store = store
        self._clock = clock
        self._lock = asyncio.Lock()
        self._last_id = 0

    async def list_entries(
        self,
        user_id: str | None = None,
        entry_type: str | None = None,
        query: str | None = None,
    ) -> list[HistoryEntry]:
        """Entries for *user_id* (all users when ``None``), optionally filtered."""
        entries = await self._load()
        if user_id is not None:
            entries = [entry for entry in entries if entry.user_id == user_id]
        if entry_type and entry_type != "all":
            entries = [entry for entry in entries if entry.type == entry_type]
        if query:
            needle = query.lower()
            entries = [
                entry
                for entry in entries
                if needle in entry.original.lower() or needle in entry.translated.lower()
            ]
        return entries

    async def add(
        self,
        original: str,
        translated: str,
        source_language: str,
        target_language: str,
        entry_type: str = HistoryType.TEXT.value,
        user_id: str | None = None,
    ) -> HistoryEntry:
        try:
            entry_type = HistoryType(entry_type).value
        except ValueError as exc:
            raise ValidationError(f"Unknown history type: {entry_type}") from exc
        async with self._lock:
            entries = await self._load()
            entry = HistoryEntry(
                id=self._next_id(),
                user_id=user_id or GUEST_USER_ID,
                original=original,
                translated=translated,
                source_language=source_language,
                target_language=target_language,
                type=entry_type,
                timestamp=self._clock(),
            )
            entries.insert(0, entry)
            await self._save(entries)
        LOGGER.debug("Saved %s translation %s to history", entry_type, entry.id)
        return entry

    async def delete(self, entry_id: str, user_id: str | None = None) -> None:
        """Remove one entry; with *user_id*, only an entry owned by that user."""
        async with self._lock:
            entries = await self._load()
            remaining = [
                entry
                for entry in entries
                if entry.id != entry_id or (user_id is not None and entry.user_id != user_id)
            ]
            if len(remaining) == len(entries):
                raise NotFoundError("History entry not found")
            await self._save(remaining)

    async def clear(self, user_id: str | None = None) -> None:
        """Delete every entry, or only those belonging to *user_id*."""
        async with self._lock:
            if user_id is None:
                await self._store.remove(HISTORY_KEY)
            else:
                entries = await self._load()
                await self._save([entry for entry in entries if entry.user_id != user_id])
        LOGGER.info("Cleared translation history (user=%s)", user_id or "all")

    async def _load(self) -> list[HistoryEntry]:
        payload = await self._store.get(HISTORY_KEY) or []
        return [HistoryEntry.from_mapping(item) for item in payload]

    async def _save(self, entries: list[HistoryEntry]) -> None:
        await self._store.set(HISTORY_KEY, [entry.to_mapping() for entry in entries])

    def _next_id(self) -> str:
        candidate = max(time.time_ns() // 1_000_000, self._last_id + 1)
        self._last_id = candidate
        return str(candidate)


__all__ = ["HISTORY_KEY", "GUEST_USER_ID", "TranslationHistory"]
