"""Tracks the signed-in user."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .errors import InvalidCredentialsError, NotFoundError
from .models import UserRecord
from .storage import KeyValueStore

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .users import UserDirectory

LOGGER = logging.getLogger(__name__)

CURRENT_USER_KEY = "currentUser"


class SessionPointer:
    """Cached copy of the current user under the ``currentUser`` key.

    The user collection stays the source of truth; whoever mutates a record
    refreshes this copy.
    """

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    async def get(self) -> UserRecord | None:
        payload = await self._store.get(CURRENT_USER_KEY)
        if not payload:
            return None
        return UserRecord.from_mapping(payload)

    async def set(self, user: UserRecord) -> None:
        await self._store.set(CURRENT_USER_KEY, user.to_mapping())

    async def clear(self) -> None:
        await self._store.remove(CURRENT_USER_KEY)


class SessionManager:
    def __init__(self, directory: "UserDirectory", pointer: SessionPointer) -> None:
        self._directory = directory
        self._pointer = pointer

    async def sign_in(self, email: str, password: str) -> UserRecord:
        """Sign in by case-insensitive email and make the user current."""
        user = await self._directory.find_by_email(email)
        if user is None:
            raise NotFoundError("No account found with this email")
        if not await self._directory.verify_password(user, password):
            LOGGER.info("Rejected sign-in for user %s", user.id)
            raise InvalidCredentialsError()
        await self._pointer.set(user)
        LOGGER.info("User %s signed in", user.id)
        return user

    async def sign_out(self) -> None:
        await self._pointer.clear()
        LOGGER.info("Signed out")

    async def current(self) -> UserRecord | None:
        return await self._pointer.get()

    async def is_signed_in(self) -> bool:
        return await self.current() is not None


__all__ = ["CURRENT_USER_KEY", "SessionPointer", "SessionManager"]
