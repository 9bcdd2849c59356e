from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Optional

from ..capture.model import ImagePayload
from ..core.enums import AttendanceAction, DayStatus
from ..geolocation.model import GeolocationSample


@dataclass(frozen=True)
class AttendanceRecord:
    """Domain entity: one user's attendance for one calendar day.

    Created on check-in, completed in place on check-out, never deleted.
    Selfies are image references (data URIs or URLs).
    """

    record_id: str
    user_id: str
    work_date: date
    check_in_time: Optional[datetime]
    check_out_time: Optional[datetime] = None
    check_in_location: Optional[GeolocationSample] = None
    check_out_location: Optional[GeolocationSample] = None
    check_in_selfie: Optional[str] = None
    check_out_selfie: Optional[str] = None

    @property
    def worked_minutes(self) -> Optional[int]:
        if not self.check_in_time or not self.check_out_time:
            return None
        return int((self.check_out_time - self.check_in_time).total_seconds() // 60)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.record_id,
            "userId": self.user_id,
            "date": self.work_date.isoformat(),
            "checkInTime": self.check_in_time.isoformat() if self.check_in_time else None,
            "checkOutTime": self.check_out_time.isoformat() if self.check_out_time else None,
            "checkInLocation": self.check_in_location.to_dict() if self.check_in_location else None,
            "checkOutLocation": self.check_out_location.to_dict() if self.check_out_location else None,
            "checkInSelfie": self.check_in_selfie,
            "checkOutSelfie": self.check_out_selfie,
        }


@dataclass(frozen=True)
class AttendancePayload:
    """A confirmed check-in/check-out, ready for the record store or the offline queue."""

    user_id: str
    action: AttendanceAction
    time: datetime
    location: Optional[GeolocationSample]
    selfie: Optional[ImagePayload]

    @property
    def work_date(self) -> date:
        return self.time.date()

    @property
    def selfie_ref(self) -> Optional[str]:
        return self.selfie.to_data_uri() if self.selfie else None


def derive_day_status(record: Optional[AttendanceRecord]) -> DayStatus:
    if record is None or record.check_in_time is None:
        return DayStatus.NOT_CHECKED_IN
    if record.check_out_time is None:
        return DayStatus.CHECKED_IN
    return DayStatus.CHECKED_OUT


def advance_day_status(status: DayStatus, action: AttendanceAction) -> DayStatus:
    """Status after ``action`` is applied; invalid transitions leave it unchanged."""
    if action is AttendanceAction.CHECK_IN and status is DayStatus.NOT_CHECKED_IN:
        return DayStatus.CHECKED_IN
    if action is AttendanceAction.CHECK_OUT and status is DayStatus.CHECKED_IN:
        return DayStatus.CHECKED_OUT
    return status


def is_action_allowed(status: DayStatus, action: AttendanceAction) -> bool:
    return advance_day_status(status, action) is not status
