"""
Domain-specific exception hierarchy for the inspection scheduler.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .validator import ValidationResult


class SchedulerError(Exception):
    """Base class for all application-level errors."""


class MalformedTimeError(SchedulerError, ValueError):
    """Raised when a wall-clock time is not in ``HH:MM`` form."""


class RecordStoreError(SchedulerError):
    """Raised when the remote record store cannot be read or written."""

    transient = False

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        endpoint: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.endpoint = endpoint


class TransientRecordStoreError(RecordStoreError):
    """Raised for failures worth retrying shortly (gateway errors, timeouts)."""

    transient = True


class AuthenticationError(RecordStoreError):
    """Raised when credentials are missing or rejected by the record store."""


class StaffNotFoundError(SchedulerError):
    """Raised when no staff record exists for an inspector's email."""

    def __init__(self, email: str) -> None:
        super().__init__(f"No staff record exists for {email}")
        self.email = email


class StaleResponseError(SchedulerError):
    """Raised when an availability response was superseded by a newer request."""


class InvalidSelectionError(SchedulerError):
    """Raised when a time selection with hard errors is confirmed."""

    def __init__(self, result: "ValidationResult") -> None:
        super().__init__(result.message or "Invalid time selection")
        self.result = result


class ConfirmationRequiredError(SchedulerError):
    """Raised when a late-finish warning has not been acknowledged."""

    def __init__(self, result: "ValidationResult") -> None:
        super().__init__(result.message or "Confirmation required")
        self.result = result
