"""Core services and configuration for TransConnect."""

from .config import Settings, load_settings, save_settings
from .container import Services, build_services
from .errors import (
    ConfigurationError,
    DeviceMismatchError,
    DuplicateEmailError,
    DuplicateNameError,
    InvalidCredentialsError,
    NotFoundError,
    QuotaExceededError,
    StorageFailure,
    TransConnectError,
    ValidationError,
)
from .models import Plan, SubscriptionState, UserRecord
from .services import RateLimitedRetryingClient, SpeechClient, TranslationClient
from .storage import JsonFileStore, MemoryStore

__all__ = [
    "Settings",
    "load_settings",
    "save_settings",
    "Services",
    "build_services",
    "ConfigurationError",
    "DeviceMismatchError",
    "DuplicateEmailError",
    "DuplicateNameError",
    "InvalidCredentialsError",
    "NotFoundError",
    "QuotaExceededError",
    "StorageFailure",
    "TransConnectError",
    "ValidationError",
    "Plan",
    "SubscriptionState",
    "UserRecord",
    "RateLimitedRetryingClient",
    "SpeechClient",
    "TranslationClient",
    "JsonFileStore",
    "MemoryStore",
]
