"""Failure taxonomy shared by the API, storage and session layers."""

from __future__ import annotations

from enum import Enum


class FailureKind(str, Enum):
    """Tagged failure outcomes surfaced to the UI layer."""
    INVALID_CREDENTIALS = "invalid_credentials"
    NETWORK_ERROR = "network_error"
    SESSION_EXPIRED = "session_expired"
    PLAN_INACTIVE = "plan_inactive"
    STORAGE_CORRUPT = "storage_corrupt"

    @property
    def notify(self) -> bool:
        """Whether the failure warrants a transient notification.

        Expired sessions and corrupt storage send the user back to login
        silently.
        """
        return self in (
            FailureKind.INVALID_CREDENTIALS,
            FailureKind.NETWORK_ERROR,
            FailureKind.PLAN_INACTIVE,
        )


class BotrakSessionError(Exception):
    """Base exception for session-core errors."""

    kind: FailureKind = FailureKind.NETWORK_ERROR
    default_message = "Something went wrong"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidCredentials(BotrakSessionError):
    kind = FailureKind.INVALID_CREDENTIALS
    default_message = "Invalid credentials"


class NetworkError(BotrakSessionError):
    kind = FailureKind.NETWORK_ERROR
    default_message = "Network Error"


class ApiError(NetworkError):
    """The backend answered with an unexpected status or body."""

    def __init__(self, message: str | None = None, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class SessionExpired(BotrakSessionError):
    kind = FailureKind.SESSION_EXPIRED
    default_message = "Your session has expired. Please log in again."


class PlanInactive(BotrakSessionError):
    kind = FailureKind.PLAN_INACTIVE
    default_message = "This organization does not have an active plan."


class StorageCorrupt(BotrakSessionError):
    kind = FailureKind.STORAGE_CORRUPT
    default_message = "Stored session could not be read"
