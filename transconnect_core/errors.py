"""Error types raised by the TransConnect core."""

from __future__ import annotations


class TransConnectError(Exception):
    """Base class for every error the core raises on purpose."""

    code = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(TransConnectError):
    """Raised when user input has the wrong shape or format."""

    code = "validation_error"


class DuplicateEmailError(TransConnectError):
    code = "duplicate_email"

    def __init__(self, message: str = "An account with this email already exists") -> None:
        super().__init__(message)


class DuplicateNameError(TransConnectError):
    code = "duplicate_name"

    def __init__(self, message: str = "A user with this name already exists") -> None:
        super().__init__(message)


class NotFoundError(TransConnectError):
    code = "not_found"


class InvalidCredentialsError(TransConnectError):
    code = "invalid_credentials"

    def __init__(self, message: str = "Invalid password") -> None:
        super().__init__(message)


class StorageFailure(TransConnectError):
    """Raised when the key-value store cannot read or write."""

    code = "storage_failure"


class ConfigurationError(TransConnectError):
    """Raised when a required credential or setting is missing."""

    code = "configuration_error"


class QuotaExceededError(TransConnectError):
    code = "quota_exceeded"

    def __init__(self, message: str = "Weekly usage limit reached. Upgrade your plan to continue.") -> None:
        super().__init__(message)


class DeviceMismatchError(TransConnectError):
    code = "device_mismatch"

    def __init__(self, message: str = "Your subscription is active on another device.") -> None:
        super().__init__(message)


__all__ = [
    "TransConnectError",
    "ValidationError",
    "DuplicateEmailError",
    "DuplicateNameError",
    "NotFoundError",
    "InvalidCredentialsError",
    "StorageFailure",
    "ConfigurationError",
    "QuotaExceededError",
    "DeviceMismatchError",
]
