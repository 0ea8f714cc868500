"""Device-level display preferences."""

from __future__ import annotations

from typing import Final

from .errors import ValidationError
from .storage import KeyValueStore

THEME_KEY: Final[str] = "theme_preference"
THEMES: Final[tuple[str, ...]] = ("light", "dark")
DEFAULT_THEME: Final[str] = "light"


class ThemePreference:
    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    async def get(self) -> str:
        value = await self._store.get(THEME_KEY)
        return value if value in THEMES else DEFAULT_THEME

    async def set(self, theme: str) -> str:
        if theme not in THEMES:
            raise ValidationError(f"Theme must be one of: {', '.join(THEMES)}")
        await self._store.set(THEME_KEY, theme)
        return theme

    async def toggle(self) -> str:
        return await self.set("light" if await self.get() == "dark" else "dark")


__all__ = ["THEME_KEY", "THEMES", "DEFAULT_THEME", "ThemePreference"]
