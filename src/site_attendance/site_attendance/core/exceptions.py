from __future__ import annotations

from typing import Optional

from .enums import CameraErrorReason, LocationErrorReason


class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class AuthenticationError(DomainError):
    """Raised when login credentials are invalid."""


class AuthorizationError(DomainError):
    """Raised when a user lacks permission for an action."""


class LocationError(DomainError):
    """A one-shot position request or a watch failed."""

    def __init__(self, reason: LocationErrorReason, message: Optional[str] = None):
        self.reason = reason
        self.message = message or _LOCATION_MESSAGES[reason]
        super().__init__(self.message)


class CameraError(DomainError):
    """The camera could not be opened for the requested facing mode."""

    def __init__(self, reason: CameraErrorReason, message: Optional[str] = None):
        self.reason = reason
        self.message = message or _CAMERA_MESSAGES[reason]
        super().__init__(self.message)


class SyncError(DomainError):
    """An offline queue entry could not be replayed into the record store."""

    def __init__(self, entry_index: int, cause: BaseException):
        self.entry_index = entry_index
        self.cause = cause
        super().__init__(f"Offline entry #{entry_index} could not be synced: {cause}")


_LOCATION_MESSAGES = {
    LocationErrorReason.PERMISSION_DENIED: "Location permission was denied",
    LocationErrorReason.TIMEOUT: "Timed out while waiting for a location fix",
    LocationErrorReason.POSITION_UNAVAILABLE: "Current position is unavailable",
    LocationErrorReason.CANCELLED: "Location request was cancelled",
}

_CAMERA_MESSAGES = {
    CameraErrorReason.PERMISSION_DENIED: "Camera access was denied",
    CameraErrorReason.DEVICE_UNAVAILABLE: "No camera is available for this facing mode",
}
