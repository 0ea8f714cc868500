"""User directory backed by the key-value store.

Every mutating operation runs under a single :class:`asyncio.Lock`, so the
uniqueness checks performed before a write cannot interleave with another
registration or profile update on the same directory.
"""

from __future__ import annotations

import asyncio
import hmac
import logging
import re
import time
from typing import Any, Callable, Mapping, TypeVar

import bcrypt

from .errors import DuplicateEmailError, DuplicateNameError, NotFoundError, ValidationError
from .models import SubscriptionState, UserRecord, format_timestamp, utcnow
from .session import SessionPointer
from .storage import KeyValueStore

LOGGER = logging.getLogger(__name__)

USERS_KEY = "users"
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_PATTERN = re.compile(r"^\+?[\d\s\-()]{10,}$")
MIN_PASSWORD_LENGTH = 6
BCRYPT_MAX_BYTES = 72
UPDATABLE_FIELDS = frozenset({"first_name", "last_name", "email", "phone_number", "password", "subscription"})

T = TypeVar("T")


class UserDirectory:
    """CRUD over the ``users`` collection."""

    def __init__(
        self,
        store: KeyValueStore,
        session: SessionPointer,
        *,
        bcrypt_rounds: int = 12,
        clock: Callable[[], Any] = utcnow,
    ) -> None:
        self._store = store
        self._session = session
        self._bcrypt_rounds = bcrypt_rounds
        self._clock = clock
        self._lock = asyncio.Lock()
        self._last_id = 0

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def list_all(self) -> list[UserRecord]:
        payload = await self._store.get(USERS_KEY) or []
        return [UserRecord.from_mapping(item) for item in payload]

    async def get(self, user_id: str) -> UserRecord | None:
        for user in await self.list_all():
            if user.id == user_id:
                return user
        return None

    async def find_by_email(self, email: str) -> UserRecord | None:
        return _find_email(await self.list_all(), email)

    async def email_exists(self, email: str) -> bool:
        return await self.find_by_email(email) is not None

    async def name_exists(self, first_name: str, last_name: str) -> bool:
        return _find_name(await self.list_all(), first_name, last_name) is not None

    async def find_by_id_or_phone(self, value: str) -> UserRecord | None:
        """Return the user with this id, else the one with this exact phone number."""
        users = await self.list_all()
        for user in users:
            if user.id == value:
                return user
        for user in users:
            if user.phone_number == value:
                return user
        return None

    async def export_data(self) -> dict[str, Any]:
        users = await self.list_all()
        current = await self._session.get()
        return {
            "allUsers": [user.public_mapping() for user in users],
            "currentUser": current.public_mapping() if current else None,
            "totalUsers": len(users),
            "exportDate": format_timestamp(self._clock()),
        }

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def register(
        self,
        first_name: str,
        last_name: str,
        email: str,
        phone_number: str,
        password: str,
    ) -> UserRecord:
        """Create a user, persist it and make it the current session."""

        first_name = (first_name or "").strip()
        last_name = (last_name or "").strip()
        email = (email or "").strip().lower()
        phone_number = (phone_number or "").strip()
        password = password or ""

        if not (first_name and last_name and email and phone_number and password):
            raise ValidationError("All fields are required")
        _validate_email(email)
        _validate_phone(phone_number)
        _validate_password(password)

        async with self._lock:
            users = await self.list_all()
            if _find_email(users, email) is not None:
                raise DuplicateEmailError()
            if _find_name(users, first_name, last_name) is not None:
                raise DuplicateNameError()

            user = UserRecord(
                id=self._next_id(users),
                first_name=first_name,
                last_name=last_name,
                email=email,
                phone_number=phone_number,
                password_credential=await self._hash_password(password),
                created_at=self._clock(),
            )
            users.append(user)
            await self._save(users)
            await self._session.set(user)

        LOGGER.info("Registered user %s", user.id)
        return user

    async def update(self, user_id: str, changes: Mapping[str, Any]) -> UserRecord:
        """Merge *changes* into the stored user, keeping email and name unique."""

        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unsupported profile fields: {', '.join(sorted(unknown))}")
        changes = await self._normalize_changes(changes)

        async with self._lock:
            users = await self.list_all()
            index = _index_of(users, user_id)
            user = users[index]
            others = users[:index] + users[index + 1 :]

            email = changes.get("email")
            if email is not None and email != user.email.lower():
                if _find_email(others, email) is not None:
                    raise DuplicateEmailError()

            if "first_name" in changes or "last_name" in changes:
                first_name = changes.get("first_name", user.first_name)
                last_name = changes.get("last_name", user.last_name)
                renamed = (first_name.lower(), last_name.lower()) != (
                    user.first_name.lower(),
                    user.last_name.lower(),
                )
                if renamed and _find_name(others, first_name, last_name) is not None:
                    raise DuplicateNameError()

            _apply_changes(user, changes)
            await self._save(users)
            await self._refresh_session(user)

        LOGGER.info("Updated user %s (%s)", user_id, ", ".join(sorted(changes)))
        return user

    async def mutate(self, user_id: str, func: Callable[[UserRecord], T]) -> T:
        """Run *func* on the stored user and persist the result atomically."""

        async with self._lock:
            users = await self.list_all()
            user = users[_index_of(users, user_id)]
            result = func(user)
            await self._save(users)
            await self._refresh_session(user)
        return result

    async def clear_all(self) -> None:
        async with self._lock:
            await self._store.remove(USERS_KEY)
            await self._session.clear()
        LOGGER.warning("Cleared all user data")

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    async def verify_password(self, user: UserRecord, password: str) -> bool:
        stored = user.password_credential
        if _is_bcrypt_hash(stored):
            return await asyncio.to_thread(
                bcrypt.checkpw, _password_bytes(password), stored.encode("utf-8")
            )
        # Records written before hashing was introduced hold the raw password.
        return hmac.compare_digest(stored.encode("utf-8"), (password or "").encode("utf-8"))

    async def _hash_password(self, password: str) -> str:
        salt = bcrypt.gensalt(rounds=self._bcrypt_rounds)
        hashed = await asyncio.to_thread(bcrypt.hashpw, _password_bytes(password), salt)
        return hashed.decode("utf-8")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _normalize_changes(self, changes: Mapping[str, Any]) -> dict[str, Any]:
        normalized: dict[str, Any] = {}
        for key in ("first_name", "last_name", "phone_number"):
            if key in changes:
                value = str(changes[key] or "").strip()
                if not value:
                    raise ValidationError("All fields are required")
                normalized[key] = value
        if "phone_number" in normalized:
            _validate_phone(normalized["phone_number"])
        if "email" in changes:
            email = str(changes["email"] or "").strip().lower()
            if not email:
                raise ValidationError("All fields are required")
            _validate_email(email)
            normalized["email"] = email
        if "password" in changes:
            password = str(changes["password"] or "")
            _validate_password(password)
            normalized["password"] = await self._hash_password(password)
        if "subscription" in changes:
            subscription = changes["subscription"]
            if subscription is not None and not isinstance(subscription, SubscriptionState):
                raise ValidationError("subscription must be a SubscriptionState")
            normalized["subscription"] = subscription
        return normalized

    async def _save(self, users: list[UserRecord]) -> None:
        await self._store.set(USERS_KEY, [user.to_mapping() for user in users])

    async def _refresh_session(self, user: UserRecord) -> None:
        current = await self._session.get()
        if current is not None and current.id == user.id:
            await self._session.set(user)

    def _next_id(self, users: list[UserRecord]) -> str:
        taken = {user.id for user in users}
        candidate = max(time.time_ns() // 1_000_000, self._last_id + 1)
        while str(candidate) in taken:
            candidate += 1
        self._last_id = candidate
        return str(candidate)


def _find_email(users: list[UserRecord], email: str) -> UserRecord | None:
    needle = (email or "").strip().lower()
    return next((user for user in users if user.email.lower() == needle), None)


def _find_name(users: list[UserRecord], first_name: str, last_name: str) -> UserRecord | None:
    first = (first_name or "").strip().lower()
    last = (last_name or "").strip().lower()
    return next(
        (user for user in users if user.first_name.lower() == first and user.last_name.lower() == last),
        None,
    )


def _index_of(users: list[UserRecord], user_id: str) -> int:
    for index, user in enumerate(users):
        if user.id == user_id:
            return index
    raise NotFoundError("User not found")


def _apply_changes(user: UserRecord, changes: Mapping[str, Any]) -> None:
    for key, value in changes.items():
        if key == "password":
            user.password_credential = value
        else:
            setattr(user, key, value)


def _validate_email(email: str) -> None:
    if not EMAIL_PATTERN.match(email):
        raise ValidationError("Please enter a valid email address")


def _validate_phone(phone_number: str) -> None:
    if not PHONE_PATTERN.match(phone_number):
        raise ValidationError("Please enter a valid phone number")


def _validate_password(password: str) -> None:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")


def _password_bytes(password: str) -> bytes:
    return (password or "").encode("utf-8")[:BCRYPT_MAX_BYTES]


def _is_bcrypt_hash(value: str) -> bool:
    return len(value) == 60 and value.startswith(("$2a$", "$2b$", "$2y$"))


__all__ = ["USERS_KEY", "UserDirectory"]
