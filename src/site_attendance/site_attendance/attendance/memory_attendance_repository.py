from __future__ import annotations

import itertools
import threading
from dataclasses import replace
from datetime import date, datetime
from typing import Iterable, Optional, Sequence

from ..core.exceptions import ValidationError
from ..geolocation.model import GeolocationSample
from .model import AttendanceRecord
from .repository import AttendanceRepository


class InMemoryAttendanceRepository(AttendanceRepository):
    """Process-local record store for the single-client deployment."""

    def __init__(self, records: Iterable[AttendanceRecord] = ()):
        self._lock = threading.Lock()
        self._by_id: dict[str, AttendanceRecord] = {}
        self._ids = itertools.count(1)
        for r in records:
            self._by_id[r.record_id] = r

    def _next_id(self) -> str:
        while True:
            record_id = f"att{next(self._ids):03d}"
            if record_id not in self._by_id:
                return record_id

    def _find(self, user_id: str, work_date: date) -> Optional[AttendanceRecord]:
        for r in self._by_id.values():
            if r.user_id == user_id and r.work_date == work_date:
                return r
        return None

    def create_record(
        self,
        *,
        user_id: str,
        work_date: date,
        check_in_time: datetime,
        location: Optional[GeolocationSample],
        selfie: Optional[str],
    ) -> str:
        with self._lock:
            if self._find(user_id, work_date) is not None:
                raise ValidationError(f"{user_id} already has an attendance record for {work_date.isoformat()}")
            record_id = self._next_id()
            self._by_id[record_id] = AttendanceRecord(
                record_id=record_id,
                user_id=user_id,
                work_date=work_date,
                check_in_time=check_in_time,
                check_in_location=location,
                check_in_selfie=selfie,
            )
            return record_id

    def append_checkout(
        self,
        record_id: str,
        *,
        check_out_time: datetime,
        location: Optional[GeolocationSample],
        selfie: Optional[str],
    ) -> bool:
        with self._lock:
            record = self._by_id.get(record_id)
            if record is None:
                return False
            if record.check_in_time and check_out_time < record.check_in_time:
                raise ValidationError("Check-out cannot be earlier than check-in")
            self._by_id[record_id] = replace(
                record,
                check_out_time=check_out_time,
                check_out_location=location,
                check_out_selfie=selfie,
            )
            return True

    def find_todays_record(self, user_id: str, work_date: date) -> Optional[AttendanceRecord]:
        with self._lock:
            return self._find(user_id, work_date)

    def list_by_user(self, user_id: str, limit: Optional[int] = None) -> Sequence[AttendanceRecord]:
        with self._lock:
            items = [r for r in self._by_id.values() if r.user_id == user_id]
        items.sort(key=lambda r: r.work_date, reverse=True)
        return items[:limit] if limit is not None else items

    def list_by_date(self, work_date: date) -> Sequence[AttendanceRecord]:
        with self._lock:
            items = [r for r in self._by_id.values() if r.work_date == work_date]
        items.sort(key=lambda r: (r.check_in_time or datetime.min, r.user_id))
        return items
