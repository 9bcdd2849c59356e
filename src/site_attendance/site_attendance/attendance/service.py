from __future__ import annotations

import logging
import threading
from datetime import date, datetime
from typing import Callable, Iterable, Optional

from ..common.datetime_utils import format_duration, now_local
from ..core.constants import DEFAULT_HISTORY_LIMIT, DEFAULT_SYNC_RETRIES
from ..core.enums import AttendanceAction, DayStatus, DispatchOutcome
from ..core.exceptions import SyncError, ValidationError
from ..offline.model import OfflineQueueEntry, SyncResult
from ..offline.queue import OfflineQueue
from .connectivity import ConnectivityMonitor
from .model import AttendancePayload, AttendanceRecord, advance_day_status, derive_day_status, is_action_allowed
from .repository import AttendanceRepository

logger = logging.getLogger(__name__)

SYNC_COMPLETE_MESSAGE = "All offline records have been synced!"
SYNC_ERROR_MESSAGE = "Error syncing offline data. Records are saved locally."
OFFLINE_MESSAGE = "You are in Offline Mode. Actions will be synced later."


class AttendanceService:
    """Writes confirmed attendance actions and derives each user's day status.

    Online, payloads go straight to the record store; offline they are
    appended to the offline queue and replayed when connectivity returns.
    Calls are serialized, matching the single-writer queue.
    """

    def __init__(
        self,
        attendance: AttendanceRepository,
        queue: OfflineQueue,
        connectivity: ConnectivityMonitor,
        *,
        sync_retries: int = DEFAULT_SYNC_RETRIES,
        retry_delay: float = 0.0,
        clock: Callable[[], datetime] = now_local,
    ):
        self._attendance = attendance
        self._queue = queue
        self._connectivity = connectivity
        self._sync_retries = int(sync_retries)
        self._retry_delay = float(retry_delay)
        self._clock = clock
        self._lock = threading.RLock()
        self.last_sync: Optional[SyncResult] = None
        self._discarded = 0
        self._unsubscribe = connectivity.subscribe(self._on_connectivity_change)

    @property
    def is_online(self) -> bool:
        return self._connectivity.is_online

    @property
    def pending_count(self) -> int:
        return len(self._queue)

    def today(self) -> date:
        return self._clock().date()

    # ----- derived status -----

    def get_today_record(self, user_id: str, today: Optional[date] = None) -> Optional[AttendanceRecord]:
        return self._attendance.find_todays_record(user_id, today or self.today())

    def day_status(self, user_id: str, today: Optional[date] = None) -> DayStatus:
        """Status from the stored record, advanced by actions still waiting offline."""
        today = today or self.today()
        status = derive_day_status(self._attendance.find_todays_record(user_id, today))
        for entry in self._queue.entries():
            if entry.user_id == user_id and entry.timestamp.date() == today:
                status = advance_day_status(status, entry.action)
        return status

    def ensure_allowed(self, user_id: str, action: AttendanceAction, today: Optional[date] = None) -> DayStatus:
        status = self.day_status(user_id, today)
        if not is_action_allowed(status, action):
            if action is AttendanceAction.CHECK_IN:
                raise ValidationError("You have already checked in today")
            raise ValidationError("You have not checked in today" if status is DayStatus.NOT_CHECKED_IN else "You have already checked out today")
        return status

    # ----- writes -----

    def apply(self, payload: AttendancePayload) -> bool:
        """Write one payload to the record store.

        Returns False when the store already reflects the action, so a
        replayed entry never creates a second record for the same day.
        """
        record = self._attendance.find_todays_record(payload.user_id, payload.work_date)

        if payload.action is AttendanceAction.CHECK_IN:
            if record is not None:
                logger.info("Skipping check-in for %s on %s: record exists", payload.user_id, payload.work_date)
                return False
            record_id = self._attendance.create_record(
                user_id=payload.user_id,
                work_date=payload.work_date,
                check_in_time=payload.time,
                location=payload.location,
                selfie=payload.selfie_ref,
            )
            logger.info("Created attendance record %s for %s", record_id, payload.user_id)
            return True

        if record is None or record.check_in_time is None:
            raise ValidationError(f"{payload.user_id} has no check-in on {payload.work_date.isoformat()}")
        if record.check_out_time is not None:
            logger.info("Skipping check-out for %s on %s: already checked out", payload.user_id, payload.work_date)
            return False
        if payload.time < record.check_in_time:
            raise ValidationError("Check-out cannot be earlier than check-in")

        return self._attendance.append_checkout(
            record.record_id,
            check_out_time=payload.time,
            location=payload.location,
            selfie=payload.selfie_ref,
        )

    def _enqueue(self, payload: AttendancePayload) -> DispatchOutcome:
        self._queue.append(
            OfflineQueueEntry(
                user_id=payload.user_id,
                action=payload.action,
                timestamp=payload.time,
                location=payload.location,
                image=payload.selfie,
            )
        )
        return DispatchOutcome.QUEUED

    def dispatch(self, payload: AttendancePayload) -> DispatchOutcome:
        """Persist a confirmed action; it always lands somewhere durable.

        Online writes go to the store after any earlier queued actions have
        been replayed. A store failure falls back to the offline queue.
        """
        with self._lock:
            if not self._connectivity.is_online:
                logger.info("Offline: queueing %s for %s", payload.action.value, payload.user_id)
                return self._enqueue(payload)

            if len(self._queue) and not self.sync_offline_queue().ok:
                return self._enqueue(payload)

            try:
                self.apply(payload)
            except ValidationError:
                raise
            except Exception:
                logger.exception("Record store write failed; queueing %s for %s", payload.action.value, payload.user_id)
                return self._enqueue(payload)

            logger.info("Stored %s for %s", payload.action.value, payload.user_id)
            return DispatchOutcome.STORED

    # ----- offline sync -----

    def _replay(self, entry: OfflineQueueEntry) -> None:
        payload = AttendancePayload(
            user_id=entry.user_id,
            action=entry.action,
            time=entry.timestamp,
            location=entry.location,
            selfie=entry.image,
        )
        try:
            self.apply(payload)
        except ValidationError as e:
            # Retrying cannot fix a rejected entry; drop it so later entries still sync.
            logger.error("Discarding offline %s for %s: %s", entry.action.value, entry.user_id, e)
            self._discarded += 1

    def sync_offline_queue(self) -> SyncResult:
        with self._lock:
            pending = len(self._queue)
            if not pending:
                result = SyncResult(replayed=0, remaining=0, message="Nothing to sync.")
                self.last_sync = result
                return result

            logger.info("Syncing %d offline attendance entries", pending)
            self._discarded = 0
            try:
                replayed = self._queue.drain(self._replay, retries=self._sync_retries, retry_delay=self._retry_delay)
            except SyncError as e:
                logger.error("Offline sync stopped: %s", e)
                result = SyncResult(
                    replayed=e.entry_index,
                    remaining=len(self._queue),
                    message=SYNC_ERROR_MESSAGE,
                    error=str(e),
                    discarded=self._discarded,
                )
            else:
                result = SyncResult(replayed=replayed, remaining=0, message=SYNC_COMPLETE_MESSAGE, discarded=self._discarded)

            self.last_sync = result
            return result

    def _on_connectivity_change(self, online: bool) -> None:
        if online:
            self.sync_offline_queue()

    def set_online(self, online: bool) -> Optional[SyncResult]:
        """Apply a connectivity signal; returns the sync result when coming back online."""
        changed = self._connectivity.set_online(online)
        if changed and online:
            return self.last_sync
        return None

    # ----- read models -----

    def get_history(self, user_id: str, *, limit: Optional[int] = DEFAULT_HISTORY_LIMIT) -> list[AttendanceRecord]:
        return list(self._attendance.list_by_user(user_id, limit))

    def get_history_ui(self, user_id: str, *, limit: Optional[int] = DEFAULT_HISTORY_LIMIT, show_location: bool = True):
        return [self._to_ui(r, show_location=show_location) for r in self.get_history(user_id, limit=limit)]

    def get_records_for_date(self, work_date: date, *, user_ids: Optional[Iterable[str]] = None) -> list[AttendanceRecord]:
        records = self._attendance.list_by_date(work_date)
        if user_ids is not None:
            allowed = set(user_ids)
            records = [r for r in records if r.user_id in allowed]
        return list(records)

    def _to_ui(self, r: AttendanceRecord, *, show_location: bool) -> dict:
        status = derive_day_status(r)
        worked = r.worked_minutes
        row = {
            "date": r.work_date.strftime("%Y-%m-%d"),
            "check_in": r.check_in_time.strftime("%H:%M:%S") if r.check_in_time else "-",
            "check_out": r.check_out_time.strftime("%H:%M:%S") if r.check_out_time else "-",
            "worked": format_duration(worked) if worked is not None else "-",
            "status": status.value,
            "check_in_selfie": r.check_in_selfie,
            "check_out_selfie": r.check_out_selfie,
        }
        if show_location:
            row["check_in_accuracy"] = round(r.check_in_location.accuracy_meters) if r.check_in_location else None
            row["check_out_accuracy"] = round(r.check_out_location.accuracy_meters) if r.check_out_location else None
        return row
