from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """User role used for access checks."""

    EMPLOYEE = "employee"
    MANAGER = "manager"
    ADMIN = "admin"


class AttendanceAction(str, Enum):
    CHECK_IN = "check-in"
    CHECK_OUT = "check-out"


class DayStatus(str, Enum):
    """Attendance state of a single day, derived from that day's record."""

    NOT_CHECKED_IN = "not-checked-in"
    CHECKED_IN = "checked-in"
    CHECKED_OUT = "checked-out"


class SessionStatus(str, Enum):
    """What an attendance session is currently showing to the user."""

    IDLE = "idle"
    LOCATING = "locating"
    LOCATION_ERROR = "locationError"
    PREVIEWING = "previewing"
    CAPTURED = "captured"
    CONFIRMING = "confirming"


class CaptureState(str, Enum):
    IDLE = "idle"
    ACQUIRING = "acquiring"
    LIVE = "live"
    CAPTURED = "captured"
    CLOSED = "closed"


class CameraFacing(str, Enum):
    FRONT = "front"
    BACK = "back"

    def flipped(self) -> "CameraFacing":
        return CameraFacing.BACK if self is CameraFacing.FRONT else CameraFacing.FRONT


class LocationErrorReason(str, Enum):
    PERMISSION_DENIED = "permissionDenied"
    TIMEOUT = "timeout"
    POSITION_UNAVAILABLE = "positionUnavailable"
    CANCELLED = "cancelled"


class CameraErrorReason(str, Enum):
    PERMISSION_DENIED = "permissionDenied"
    DEVICE_UNAVAILABLE = "deviceUnavailable"


class DispatchOutcome(str, Enum):
    """Where a confirmed attendance action was written."""

    STORED = "stored"
    QUEUED = "queued"
