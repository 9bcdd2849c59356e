from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Protocol, Sequence

from ..geolocation.model import GeolocationSample
from .model import AttendanceRecord


class AttendanceRepository(Protocol):
    """Keyed persistence of attendance records: at most one per (user_id, work_date)."""

    def create_record(
        self,
        *,
        user_id: str,
        work_date: date,
        check_in_time: datetime,
        location: Optional[GeolocationSample],
        selfie: Optional[str],
    ) -> str:
        raise NotImplementedError

    def append_checkout(
        self,
        record_id: str,
        *,
        check_out_time: datetime,
        location: Optional[GeolocationSample],
        selfie: Optional[str],
    ) -> bool:
        raise NotImplementedError

    def find_todays_record(self, user_id: str, work_date: date) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def list_by_user(self, user_id: str, limit: Optional[int] = None) -> Sequence[AttendanceRecord]:
        """History, most recent work_date first."""

        raise NotImplementedError

    def list_by_date(self, work_date: date) -> Sequence[AttendanceRecord]:
        raise NotImplementedError
