from __future__ import annotations

import threading
import time
from datetime import date, datetime

import pytest

from src.site_attendance.site_attendance.attendance.connectivity import ConnectivityMonitor
from src.site_attendance.site_attendance.attendance.memory_attendance_repository import InMemoryAttendanceRepository
from src.site_attendance.site_attendance.attendance.registry import SessionRegistry
from src.site_attendance.site_attendance.attendance.service import AttendanceService
from src.site_attendance.site_attendance.attendance.session import AttendanceSession
from src.site_attendance.site_attendance.capture.session import CaptureSession
from src.site_attendance.site_attendance.core.enums import (
    AttendanceAction,
    CameraErrorReason,
    CameraFacing,
    DayStatus,
    DispatchOutcome,
    LocationErrorReason,
    SessionStatus,
)
from src.site_attendance.site_attendance.core.exceptions import ValidationError
from src.site_attendance.site_attendance.geofence.evaluator import PROJECT_SITE
from src.site_attendance.site_attendance.geolocation.service import GeolocationService
from src.site_attendance.site_attendance.geolocation.source import ReportedPositionSource
from src.site_attendance.site_attendance.offline.queue import OfflineQueue
from src.site_attendance.site_attendance.offline.storage import InMemoryStorage
from tests.fakes import FakeCamera, FakePositionSource, FixedClock, sample_north_of_site, site_sample

DAY = date(2024, 7, 29)


class Harness:
    def __init__(self, executor, *, source=None, camera=None, online=True, radius=200, location_timeout_ms=500):
        self.repo = InMemoryAttendanceRepository()
        self.queue = OfflineQueue(InMemoryStorage())
        self.clock = FixedClock(datetime(2024, 7, 29, 8, 5))
        self.attendance = AttendanceService(
            self.repo, self.queue, ConnectivityMonitor(online=online), clock=self.clock
        )
        self.source = source or FakePositionSource(site_sample(accuracy=15))
        self.camera = camera or FakeCamera()
        self.geolocation = GeolocationService(self.source)
        self.executor = executor
        self.radius = radius
        self.location_timeout_ms = location_timeout_ms

    def session(self, action=AttendanceAction.CHECK_IN, user_id="user001") -> AttendanceSession:
        return AttendanceSession(
            user_id=user_id,
            action=action,
            attendance=self.attendance,
            geolocation=self.geolocation,
            capture=CaptureSession(self.camera),
            radius_meters=self.radius,
            site=PROJECT_SITE,
            executor=self.executor,
            location_timeout_ms=self.location_timeout_ms,
            clock=self.clock,
        )

    def started(self, action=AttendanceAction.CHECK_IN, user_id="user001") -> AttendanceSession:
        s = self.session(action, user_id).start()
        assert s.wait_until_ready(timeout=3)
        return s


def test_happy_path_check_in_then_check_out(executor):
    h = Harness(executor)

    s = h.started()
    state = s.snapshot()
    assert state.status is SessionStatus.PREVIEWING
    assert state.distance_from_site == 0.0
    assert state.within_fence is True
    assert state.can_confirm is False

    s.capture()
    assert s.snapshot().status is SessionStatus.CAPTURED
    assert s.can_confirm

    assert s.confirm() is DispatchOutcome.STORED
    assert s.closed
    assert h.camera.live_streams == []

    h.clock.now = datetime(2024, 7, 29, 17, 32)
    out = h.started(AttendanceAction.CHECK_OUT)
    out.capture()
    out.confirm()

    rec = h.repo.find_todays_record("user001", DAY)
    assert rec.check_in_time == datetime(2024, 7, 29, 8, 5)
    assert rec.check_out_time == datetime(2024, 7, 29, 17, 32)
    assert rec.check_in_selfie and rec.check_out_selfie
    assert rec.check_in_location.accuracy_meters == 15
    assert h.attendance.day_status("user001") is DayStatus.CHECKED_OUT


def test_outside_fence_blocks_confirm(executor):
    h = Harness(executor, source=FakePositionSource(sample_north_of_site(300)))

    s = h.started()
    s.capture()
    state = s.snapshot()

    assert state.within_fence is False
    assert state.distance_from_site == pytest.approx(300, abs=1)
    assert state.can_confirm is False
    with pytest.raises(ValidationError, match="outside"):
        s.confirm()
    assert h.repo.list_by_user("user001") == []


def test_no_capture_blocks_confirm(executor):
    h = Harness(executor)
    s = h.started()

    with pytest.raises(ValidationError, match="Capture"):
        s.confirm()


def test_location_error_shows_message_and_blocks_confirm(executor):
    h = Harness(executor, source=FakePositionSource(error=LocationErrorReason.PERMISSION_DENIED))

    s = h.started()
    state = s.snapshot()

    assert state.status is SessionStatus.LOCATION_ERROR
    assert state.location_error == "Location permission was denied"
    assert state.location is None
    s.capture()
    assert s.can_confirm is False


def test_camera_error_is_reported_and_retry_recovers(executor):
    camera = FakeCamera(fail_with=CameraErrorReason.PERMISSION_DENIED)
    h = Harness(executor, camera=camera)

    s = h.started()
    assert s.snapshot().camera_error == "Camera access was denied"
    with pytest.raises(ValidationError):
        s.capture()

    camera.fail_with = None
    s.retake()

    state = s.snapshot()
    assert state.camera_error is None
    assert state.status is SessionStatus.PREVIEWING


def test_switch_camera_releases_front_before_back(executor):
    h = Harness(executor)
    s = h.started()

    s.switch_camera()

    assert s.snapshot().selected_camera_facing is CameraFacing.BACK
    assert h.camera.max_active == 1
    assert [st.facing for st in h.camera.live_streams] == [CameraFacing.BACK]


def test_switch_camera_not_allowed_after_capture(executor):
    h = Harness(executor)
    s = h.started()
    s.capture()

    with pytest.raises(ValidationError):
        s.switch_camera(CameraFacing.BACK)


def test_retake_returns_to_preview(executor):
    h = Harness(executor)
    s = h.started()
    s.capture()

    s.retake()

    state = s.snapshot()
    assert state.captured_image is None
    assert state.status is SessionStatus.PREVIEWING
    assert state.can_confirm is False


def test_duplicate_check_in_is_refused_before_camera_opens(executor):
    h = Harness(executor)
    first = h.started()
    first.capture()
    first.confirm()
    opened = len(h.camera.opened)

    with pytest.raises(ValidationError):
        h.session(AttendanceAction.CHECK_IN).start()

    assert len(h.camera.opened) == opened
    assert len(h.repo.list_by_user("user001")) == 1


def test_close_ignores_late_location(executor):
    gate = threading.Event()
    h = Harness(executor, source=FakePositionSource(site_sample(), gate=gate))
    s = h.session().start()

    s.close()
    gate.set()
    s.wait_until_ready(timeout=3)

    state = s.snapshot()
    assert state.closed
    assert state.status is SessionStatus.IDLE
    assert state.location is None
    assert h.camera.live_streams == []


def test_close_is_idempotent(executor):
    h = Harness(executor)
    s = h.started()

    s.close()
    s.close()

    assert s.closed
    with pytest.raises(ValidationError):
        s.capture()


def test_offline_confirm_is_queued(executor):
    h = Harness(executor, online=False)
    s = h.started()
    s.capture()

    assert s.confirm() is DispatchOutcome.QUEUED

    assert len(h.queue) == 1
    entry = h.queue.entries()[0]
    assert entry.user_id == "user001"
    assert entry.action is AttendanceAction.CHECK_IN
    assert entry.image is not None
    assert entry.location.accuracy_meters == 15
    assert h.attendance.day_status("user001") is DayStatus.CHECKED_IN


def test_snapshot_to_dict_shape(executor):
    h = Harness(executor)
    s = h.started()
    s.capture()

    data = s.snapshot().to_dict()

    assert data["status"] == "captured"
    assert data["selectedCameraFacing"] == "front"
    assert data["capturedImage"].startswith("data:image/jpeg;base64,")
    assert data["location"] == {"latitude": 26.6814, "longitude": 68.0169, "accuracy": 15}
    assert data["canConfirm"] is True


def test_registry_keeps_one_session_per_device(executor):
    h = Harness(executor)
    registry = SessionRegistry(lambda user_id, action: h.session(action, user_id))

    first = registry.open("user001", AttendanceAction.CHECK_IN)
    first.wait_until_ready(timeout=3)
    second = registry.open("user002", AttendanceAction.CHECK_IN)
    second.wait_until_ready(timeout=3)

    assert first.closed
    assert registry.get("user001") is None
    assert registry.get("user002") is second
    assert h.camera.max_active == 1

    assert registry.close("user002") is True
    assert registry.close("user002") is False
    assert h.camera.live_streams == []


def _wait_for(predicate, timeout=2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def test_switch_while_front_camera_is_opening_never_holds_two_streams(executor):
    gate = threading.Event()
    camera = FakeCamera(gate=gate)
    h = Harness(executor, camera=camera)
    s = h.session().start()
    assert _wait_for(lambda: camera.waiting == 1)

    switcher = threading.Thread(target=s.switch_camera)
    switcher.start()
    time.sleep(0.2)
    gate.set()
    switcher.join(timeout=5)

    assert s.wait_until_ready(timeout=3)
    assert camera.max_active == 1
    assert [st.facing for st in camera.live_streams] == [CameraFacing.BACK]
    assert s.snapshot().selected_camera_facing is CameraFacing.BACK


def test_closing_sessions_frees_location_workers(executor):
    # The executor fixture has four workers; each session holds one while locating.
    source = ReportedPositionSource()
    h = Harness(executor, source=source, location_timeout_ms=10_000)
    for _ in range(4):
        h.session().start().close()

    fresh = h.session().start()
    try:
        assert _wait_for(lambda: len(h.camera.live_streams) == 1, timeout=1.0)
        assert fresh.snapshot().status is SessionStatus.LOCATING
    finally:
        fresh.close()
    assert fresh.wait_until_ready(timeout=1)


def test_fix_posted_right_after_open_answers_the_session(executor):
    source = ReportedPositionSource()
    gate = threading.Event()
    h = Harness(executor, source=source, location_timeout_ms=2000)

    # Occupy every worker so the location request cannot start yet.
    blockers = [executor.submit(gate.wait, 5) for _ in range(4)]
    s = h.session().start()
    source.report(site_sample(accuracy=12))
    gate.set()
    for b in blockers:
        b.result(timeout=5)

    assert s.wait_until_ready(timeout=3)
    state = s.snapshot()
    assert state.location is not None
    assert state.location.accuracy_meters == 12
    assert state.within_fence is True


def test_rejected_confirm_still_closes_session(executor):
    h = Harness(executor)
    # Check-in recorded at 09:00 by another device; the session clock reads 08:05.
    h.repo.create_record(
        user_id="user001", work_date=DAY, check_in_time=datetime(2024, 7, 29, 9, 0), location=None, selfie=None
    )
    s = h.started(AttendanceAction.CHECK_OUT)
    s.capture()

    with pytest.raises(ValidationError, match="earlier"):
        s.confirm()

    assert s.closed
    assert s.snapshot().status is SessionStatus.IDLE
    assert h.camera.live_streams == []
    assert h.repo.find_todays_record("user001", DAY).check_out_time is None
