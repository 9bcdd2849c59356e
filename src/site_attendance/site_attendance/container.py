from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from .attendance.connectivity import ConnectivityMonitor
from .attendance.memory_attendance_repository import InMemoryAttendanceRepository
from .attendance.model import AttendanceRecord
from .attendance.registry import SessionRegistry
from .attendance.repository import AttendanceRepository
from .attendance.service import AttendanceService
from .attendance.session import AttendanceSession
from .capture.device import CameraDevice, OpenCVCamera
from .capture.session import CaptureSession
from .core.enums import AttendanceAction, CameraFacing
from .database.connection import DBConfig, DatabaseConnection
from .geofence.evaluator import Coordinate
from .geolocation.service import GeolocationService
from .geolocation.source import PositionSource, ReportedPositionSource
from .geolocation.tracker import PositionTracker
from .offline.queue import OfflineQueue
from .offline.storage import InMemoryStorage, JsonFileStorage, KeyValueStorage
from .settings.model import AdminSettings
from .settings.provider import InMemorySettingsProvider
from .users.memory_user_repository import InMemoryUserRepository
from .users.service import AuthService, UserService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Container:
    """Everything the application needs, created once at startup."""

    site: Coordinate
    connectivity: ConnectivityMonitor
    position_source: PositionSource
    camera: CameraDevice
    executor: ThreadPoolExecutor

    users_repo: InMemoryUserRepository
    attendance_repo: AttendanceRepository
    offline_queue: OfflineQueue
    settings_provider: InMemorySettingsProvider

    auth_service: AuthService
    user_service: UserService
    geolocation_service: GeolocationService
    attendance_service: AttendanceService
    sessions: SessionRegistry
    tracker: PositionTracker

    def shutdown(self) -> None:
        self.sessions.close_all()
        self.tracker.stop()
        self.geolocation_service.close()
        self.executor.shutdown(wait=False, cancel_futures=True)


def _setting(settings: Any, name: str, default: Any = None) -> Any:
    if isinstance(settings, Mapping):
        return settings.get(name, default)
    return getattr(settings, name, default)


def build_container(
    settings: Any,
    *,
    attendance_repo: Optional[AttendanceRepository] = None,
    camera: Optional[CameraDevice] = None,
    position_source: Optional[PositionSource] = None,
    storage: Optional[KeyValueStorage] = None,
    seed_records: tuple[AttendanceRecord, ...] = (),
) -> Container:
    """Wire the object graph from a settings module (or mapping).

    Keyword overrides replace the devices/stores normally built from settings.
    """
    site = Coordinate(
        latitude=float(_setting(settings, "SITE_LATITUDE", 26.6814)),
        longitude=float(_setting(settings, "SITE_LONGITUDE", 68.0169)),
    )

    if attendance_repo is None:
        store = str(_setting(settings, "RECORD_STORE", "memory")).lower()
        if store == "mysql":
            from .attendance.mysql_attendance_repository import MySQLAttendanceRepository
            from .database.bootstrap import apply_schema

            conn = DatabaseConnection(DBConfig.from_mapping(_setting(settings, "DB_CONFIG", {})))
            if _setting(settings, "AUTO_INIT_DB", False):
                apply_schema(conn)
            attendance_repo = MySQLAttendanceRepository(conn)
        else:
            attendance_repo = InMemoryAttendanceRepository(seed_records)

    if storage is None:
        queue_path = _setting(settings, "OFFLINE_QUEUE_PATH", "")
        storage = JsonFileStorage(queue_path) if queue_path else InMemoryStorage()

    if camera is None:
        camera = OpenCVCamera(
            {
                CameraFacing.FRONT: int(_setting(settings, "CAMERA_FRONT_INDEX", 0)),
                CameraFacing.BACK: int(_setting(settings, "CAMERA_BACK_INDEX", 1)),
            }
        )
    position_source = position_source or ReportedPositionSource()

    connectivity = ConnectivityMonitor(online=bool(_setting(settings, "START_ONLINE", True)))
    offline_queue = OfflineQueue(storage)
    settings_provider = InMemorySettingsProvider(
        AdminSettings(
            radius_in_meters=float(_setting(settings, "GEOFENCE_RADIUS_METERS", 200)),
            working_hours_start=str(_setting(settings, "WORKING_HOURS_START", "06:00")),
            working_hours_end=str(_setting(settings, "WORKING_HOURS_END", "22:00")),
            allow_employee_location_view=bool(_setting(settings, "ALLOW_EMPLOYEE_LOCATION_VIEW", True)),
        )
    )

    users_repo = InMemoryUserRepository()
    geolocation_service = GeolocationService(
        position_source,
        default_timeout_ms=int(_setting(settings, "LOCATION_TIMEOUT_MS", 10_000)),
    )
    attendance_service = AttendanceService(
        attendance_repo,
        offline_queue,
        connectivity,
        sync_retries=int(_setting(settings, "SYNC_RETRIES", 3)),
        retry_delay=float(_setting(settings, "SYNC_RETRY_DELAY", 0.0)),
    )
    executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="attendance-session")

    def session_factory(user_id: str, action: AttendanceAction) -> AttendanceSession:
        return AttendanceSession(
            user_id=user_id,
            action=action,
            attendance=attendance_service,
            geolocation=geolocation_service,
            capture=CaptureSession(camera),
            radius_meters=settings_provider.get().radius_in_meters,
            site=site,
            executor=executor,
            location_timeout_ms=int(_setting(settings, "LOCATION_TIMEOUT_MS", 10_000)),
        )

    container = Container(
        site=site,
        connectivity=connectivity,
        position_source=position_source,
        camera=camera,
        executor=executor,
        users_repo=users_repo,
        attendance_repo=attendance_repo,
        offline_queue=offline_queue,
        settings_provider=settings_provider,
        auth_service=AuthService(users_repo),
        user_service=UserService(users_repo),
        geolocation_service=geolocation_service,
        attendance_service=attendance_service,
        sessions=SessionRegistry(session_factory),
        tracker=PositionTracker(geolocation_service, site=site),
    )

    if connectivity.is_online and len(offline_queue):
        result = attendance_service.sync_offline_queue()
        logger.info("Startup sync: %s", result.message)

    return container
