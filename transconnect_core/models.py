"""Records persisted by the core, with their JSON mappings."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping


class Plan(str, Enum):
    """Available subscription plans."""

    FREE = "free"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class HistoryType(str, Enum):
    VOICE = "voice"
    TEXT = "text"
    CAMERA = "camera"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 string as written by this package or the mobile app."""
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(slots=True)
class SubscriptionState:
    """Plan, device binding and usage counter for one user."""

    plan: str = Plan.FREE.value
    device_id: str | None = None
    usage: float = 0
    last_reset: datetime | None = None
    start_date: datetime | None = None

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "SubscriptionState":
        return cls(
            plan=str(payload.get("plan") or Plan.FREE.value),
            device_id=_optional_str(payload.get("deviceId")),
            usage=_coerce_number(payload.get("usage")),
            last_reset=parse_timestamp(payload.get("lastReset")),
            start_date=parse_timestamp(payload.get("startDate")),
        )

    def to_mapping(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"plan": self.plan, "usage": self.usage}
        if self.start_date is not None:
            payload["startDate"] = format_timestamp(self.start_date)
        if self.device_id is not None:
            payload["deviceId"] = self.device_id
        if self.last_reset is not None:
            payload["lastReset"] = format_timestamp(self.last_reset)
        return payload


@dataclass(slots=True)
class UserRecord:
    """A registered user as stored under the ``users`` key."""

    id: str
    first_name: str
    last_name: str
    email: str
    phone_number: str
    password_credential: str
    created_at: datetime
    subscription: SubscriptionState | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "UserRecord":
        known = {"id", "firstName", "lastName", "email", "phoneNumber", "password", "createdAt", "subscription"}
        subscription = payload.get("subscription")
        return cls(
            id=str(payload["id"]),
            first_name=str(payload.get("firstName", "")),
            last_name=str(payload.get("lastName", "")),
            email=str(payload.get("email", "")),
            phone_number=str(payload.get("phoneNumber", "")),
            password_credential=str(payload.get("password", "")),
            created_at=parse_timestamp(payload.get("createdAt")) or utcnow(),
            subscription=SubscriptionState.from_mapping(subscription) if isinstance(subscription, Mapping) else None,
            extra={key: value for key, value in payload.items() if key not in known},
        )

    def to_mapping(self) -> dict[str, Any]:
        payload: dict[str, Any] = dict(self.extra)
        payload.update(
            {
                "id": self.id,
                "firstName": self.first_name,
                "lastName": self.last_name,
                "email": self.email,
                "phoneNumber": self.phone_number,
                "password": self.password_credential,
                "createdAt": format_timestamp(self.created_at),
            }
        )
        if self.subscription is not None:
            payload["subscription"] = self.subscription.to_mapping()
        return payload

    def public_mapping(self) -> dict[str, Any]:
        """Mapping without the credential, for anything leaving the process."""
        payload = self.to_mapping()
        payload.pop("password", None)
        return payload

    def copy(self) -> "UserRecord":
        subscription = replace(self.subscription) if self.subscription is not None else None
        return replace(self, subscription=subscription, extra=dict(self.extra))


@dataclass(slots=True)
class HistoryEntry:
    """One translation performed by a user."""

    id: str
    user_id: str
    original: str
    translated: str
    source_language: str
    target_language: str
    type: str = HistoryType.TEXT.value
    timestamp: datetime = field(default_factory=utcnow)

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "HistoryEntry":
        return cls(
            id=str(payload.get("id", "")),
            user_id=str(payload.get("userId") or "guest"),
            original=str(payload.get("original", "")),
            translated=str(payload.get("translated", "")),
            source_language=str(payload.get("sourceLanguage", payload.get("fromLang", ""))),
            target_language=str(payload.get("targetLanguage", payload.get("toLang", ""))),
            type=str(payload.get("type") or HistoryType.TEXT.value),
            timestamp=parse_timestamp(payload.get("timestamp")) or utcnow(),
        )

    def to_mapping(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "original": self.original,
            "translated": self.translated,
            "sourceLanguage": self.source_language,
            "targetLanguage": self.target_language,
            "type": self.type,
            "timestamp": format_timestamp(self.timestamp),
        }


def _optional_str(value: Any) -> str | None:
    if value in (None, ""):
        return None
    return str(value)


def _coerce_number(value: Any) -> float:
    try:
        number = float(value or 0)
    except (TypeError, ValueError):
        return 0
    return int(number) if number.is_integer() else number


__all__ = [
    "Plan",
    "HistoryType",
    "SubscriptionState",
    "UserRecord",
    "HistoryEntry",
    "utcnow",
    "format_timestamp",
    "parse_timestamp",
]
