from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional, Sequence

import mysql.connector

from ..core.exceptions import ValidationError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from ..geolocation.model import GeolocationSample
from .model import AttendanceRecord
from .repository import AttendanceRepository

_COLUMNS = """
    attendance_id, user_id, work_date, check_in_time, check_out_time,
    check_in_lat, check_in_lng, check_in_accuracy,
    check_out_lat, check_out_lng, check_out_accuracy,
    check_in_selfie, check_out_selfie
"""


def _location_params(location: Optional[GeolocationSample]) -> tuple:
    if location is None:
        return (None, None, None)
    return (location.latitude, location.longitude, location.accuracy_meters)


def _location_from_row(r: dict[str, Any], prefix: str) -> Optional[GeolocationSample]:
    lat = r.get(f"{prefix}_lat")
    lng = r.get(f"{prefix}_lng")
    if lat is None or lng is None:
        return None
    return GeolocationSample(
        latitude=float(lat),
        longitude=float(lng),
        accuracy_meters=float(r.get(f"{prefix}_accuracy") or 0.0),
    )


def _to_record(r: dict[str, Any]) -> AttendanceRecord:
    return AttendanceRecord(
        record_id=str(r["attendance_id"]),
        user_id=str(r["user_id"]),
        work_date=r["work_date"],
        check_in_time=r.get("check_in_time"),
        check_out_time=r.get("check_out_time"),
        check_in_location=_location_from_row(r, "check_in"),
        check_out_location=_location_from_row(r, "check_out"),
        check_in_selfie=r.get("check_in_selfie"),
        check_out_selfie=r.get("check_out_selfie"),
    )


class MySQLAttendanceRepository(AttendanceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def create_record(
        self,
        *,
        user_id: str,
        work_date: date,
        check_in_time: datetime,
        location: Optional[GeolocationSample],
        selfie: Optional[str],
    ) -> str:
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    """
                    INSERT INTO attendance_records(
                        user_id, work_date, check_in_time,
                        check_in_lat, check_in_lng, check_in_accuracy, check_in_selfie
                    )
                    VALUES(%s,%s,%s,%s,%s,%s,%s)
                    """,
                    (user_id, work_date, check_in_time, *_location_params(location), selfie),
                )
                return str(cur.lastrowid)
        except mysql.connector.IntegrityError as e:
            raise ValidationError(f"{user_id} already has an attendance record for {work_date.isoformat()}") from e

    def append_checkout(
        self,
        record_id: str,
        *,
        check_out_time: datetime,
        location: Optional[GeolocationSample],
        selfie: Optional[str],
    ) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT check_in_time FROM attendance_records WHERE attendance_id=%s",
                (int(record_id),),
            )
            row = fetchone(cur)
            if not row:
                return False
            if row.get("check_in_time") and check_out_time < row["check_in_time"]:
                raise ValidationError("Check-out cannot be earlier than check-in")

            cur.execute(
                """
                UPDATE attendance_records
                SET check_out_time=%s, check_out_lat=%s, check_out_lng=%s, check_out_accuracy=%s, check_out_selfie=%s
                WHERE attendance_id=%s
                """,
                (check_out_time, *_location_params(location), selfie, int(record_id)),
            )
            return cur.rowcount > 0

    def find_todays_record(self, user_id: str, work_date: date) -> Optional[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM attendance_records WHERE user_id=%s AND work_date=%s",
                (user_id, work_date),
            )
            r = fetchone(cur)
            return _to_record(r) if r else None

    def list_by_user(self, user_id: str, limit: Optional[int] = None) -> Sequence[AttendanceRecord]:
        sql = f"SELECT {_COLUMNS} FROM attendance_records WHERE user_id=%s ORDER BY work_date DESC"
        params: list[object] = [user_id]
        if limit is not None:
            sql += " LIMIT %s"
            params.append(int(limit))

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, tuple(params))
            return [_to_record(r) for r in fetchall(cur)]

    def list_by_date(self, work_date: date) -> Sequence[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS} FROM attendance_records
                WHERE work_date=%s
                ORDER BY check_in_time ASC, user_id ASC
                """,
                (work_date,),
            )
            return [_to_record(r) for r in fetchall(cur)]
