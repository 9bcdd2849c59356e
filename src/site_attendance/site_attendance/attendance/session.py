"""Attendance session: one check-in or check-out attempt.

Opening a session starts camera acquisition and a one-shot location request
together. Confirmation needs a captured frame, a location sample and a
position inside the geofence; the order in which camera and location
resolve does not matter. Closing the session releases the camera right
away and makes any late location or camera result a no-op.
"""
from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Executor, Future, wait
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from ..capture.session import CaptureSession
from ..common.datetime_utils import now_local
from ..core.constants import LOCATION_MAX_AGE_MS, LOCATION_TIMEOUT_MS
from ..core.enums import AttendanceAction, CameraFacing, CaptureState, DispatchOutcome, SessionStatus
from ..core.exceptions import CameraError, ValidationError
from ..geofence.evaluator import Coordinate, GeofenceVerdict, evaluate
from ..geolocation.model import GeolocationSample
from ..geolocation.service import GeolocationService
from ..geolocation.source import CancelToken
from .model import AttendancePayload
from .service import AttendanceService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AttendanceSessionState:
    """Snapshot of a session for display."""

    user_id: str
    action: AttendanceAction
    status: SessionStatus
    distance_from_site: Optional[float]
    within_fence: bool
    radius_meters: float
    selected_camera_facing: CameraFacing
    location: Optional[GeolocationSample]
    location_error: Optional[str]
    camera_error: Optional[str]
    captured_image: Optional[str]
    can_confirm: bool
    closed: bool

    def to_dict(self) -> dict:
        return {
            "userId": self.user_id,
            "action": self.action.value,
            "status": self.status.value,
            "distanceFromSite": self.distance_from_site,
            "withinFence": self.within_fence,
            "radiusInMeters": self.radius_meters,
            "selectedCameraFacing": self.selected_camera_facing.value,
            "location": self.location.to_dict() if self.location else None,
            "locationError": self.location_error,
            "cameraError": self.camera_error,
            "capturedImage": self.captured_image,
            "canConfirm": self.can_confirm,
            "closed": self.closed,
        }


class AttendanceSession:
    def __init__(
        self,
        *,
        user_id: str,
        action: AttendanceAction,
        attendance: AttendanceService,
        geolocation: GeolocationService,
        capture: CaptureSession,
        radius_meters: float,
        site: Coordinate,
        executor: Executor,
        location_timeout_ms: int = LOCATION_TIMEOUT_MS,
        clock: Callable[[], datetime] = now_local,
    ):
        self.user_id = user_id
        self.action = action
        self._attendance = attendance
        self._geolocation = geolocation
        self._capture = capture
        self._radius = float(radius_meters)
        self._site = site
        self._executor = executor
        self._location_timeout_ms = int(location_timeout_ms)
        self._clock = clock

        self._lock = threading.RLock()
        self._started = False
        self._closed = False
        self._confirming = False
        self._location: Optional[GeolocationSample] = None
        self._location_error: Optional[str] = None
        self._verdict: Optional[GeofenceVerdict] = None
        self._camera_error: Optional[str] = None
        self._location_cancel = CancelToken()
        self._location_future: Optional[Future] = None
        self._camera_future: Optional[Future] = None

    # ----- lifecycle -----

    def start(self) -> "AttendanceSession":
        """Check the day status allows the action, then start camera and location."""
        with self._lock:
            if self._started:
                raise ValidationError("Session already started")
            self._attendance.ensure_allowed(self.user_id, self.action)
            self._started = True
            logger.info("Opening %s session for %s", self.action.value, self.user_id)
            # Fixes the device posts from here on answer this request.
            requested_at = time.monotonic()
            self._location_future = self._executor.submit(self._locate, requested_at)
            self._camera_future = self._executor.submit(self._open_camera, CameraFacing.FRONT)
        return self

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until both the camera and the location request have settled."""
        futures = [f for f in (self._location_future, self._camera_future) if f is not None]
        _, not_done = wait(futures, timeout=timeout)
        return not not_done

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Release the camera and cancel the location request; later results are ignored. Idempotent."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._capture.close()
            self._location_cancel.cancel()
            if self._location_future is not None:
                self._location_future.cancel()
        logger.info("Closed %s session for %s", self.action.value, self.user_id)

    # ----- async completions -----

    def _locate(self, requested_at: float) -> None:
        result = self._geolocation.get_current_position(
            timeout_ms=self._location_timeout_ms,
            max_age_ms=LOCATION_MAX_AGE_MS,
            not_before=requested_at,
            cancel=self._location_cancel,
        )
        with self._lock:
            if self._closed:
                return
            if result.sample is None:
                self._location = None
                self._verdict = None
                self._location_error = result.error.message if result.error else "Location unavailable"
                return
            self._location = result.sample
            self._location_error = None
            self._verdict = evaluate(result.sample.coordinate, self._radius, site=self._site)
            logger.info(
                "%s is %.0fm from site (radius %.0fm, %s)",
                self.user_id,
                self._verdict.distance_meters,
                self._radius,
                "inside" if self._verdict.within_fence else "outside",
            )

    def _open_camera(self, facing: CameraFacing) -> None:
        try:
            self._capture.open(facing)
        except CameraError as e:
            logger.warning("Camera unavailable for %s: %s", self.user_id, e.reason.value)
            with self._lock:
                if not self._closed:
                    self._camera_error = e.message
            return
        with self._lock:
            if not self._closed:
                self._camera_error = None

    # ----- user actions -----

    def _ensure_open(self) -> None:
        if not self._started or self._closed:
            raise ValidationError("Attendance session is not open")

    def capture(self) -> None:
        with self._lock:
            self._ensure_open()
            self._capture.capture_frame()

    def retake(self) -> None:
        with self._lock:
            self._ensure_open()
        self._open_camera_sync(self._capture.retake)

    def switch_camera(self, facing: Optional[CameraFacing] = None) -> None:
        with self._lock:
            self._ensure_open()
            if self._capture.state is CaptureState.CAPTURED:
                raise ValidationError("Retake the photo before switching cameras")
        self._open_camera_sync(lambda: self._capture.switch_facing(facing))

    def _open_camera_sync(self, opener: Callable[[], object]) -> None:
        try:
            opener()
        except CameraError as e:
            logger.warning("Camera unavailable for %s: %s", self.user_id, e.reason.value)
            with self._lock:
                self._camera_error = e.message
            return
        with self._lock:
            self._camera_error = None

    @property
    def can_confirm(self) -> bool:
        with self._lock:
            return (
                self._started
                and not self._closed
                and not self._confirming
                and self._capture.captured is not None
                and self._location is not None
                and self._verdict is not None
                and self._verdict.within_fence
            )

    def confirm(self) -> DispatchOutcome:
        """Dispatch the captured action and close the session."""
        with self._lock:
            if not self.can_confirm:
                raise ValidationError(self._confirm_blocker())
            self._confirming = True
            payload = AttendancePayload(
                user_id=self.user_id,
                action=self.action,
                time=self._clock(),
                location=self._location,
                selfie=self._capture.captured,
            )
        try:
            outcome = self._attendance.dispatch(payload)
        finally:
            self.close()
        logger.info("%s %s confirmed (%s)", self.user_id, self.action.value, outcome.value)
        return outcome

    def _confirm_blocker(self) -> str:
        if not self._started or self._closed:
            return "Attendance session is not open"
        if self._confirming:
            return "Already confirming"
        if self._capture.captured is None:
            return "Capture a photo first"
        if self._location is None:
            return self._location_error or "Waiting for location"
        return "You are outside the project zone"

    # ----- view -----

    def _status(self) -> SessionStatus:
        if self._closed or not self._started:
            return SessionStatus.IDLE
        if self._confirming:
            return SessionStatus.CONFIRMING
        capture_state = self._capture.state
        if capture_state is CaptureState.CAPTURED:
            return SessionStatus.CAPTURED
        location_pending = self._location_future is not None and not self._location_future.done()
        if location_pending or capture_state is CaptureState.ACQUIRING:
            return SessionStatus.LOCATING
        if self._location_error:
            return SessionStatus.LOCATION_ERROR
        if capture_state is CaptureState.LIVE:
            return SessionStatus.PREVIEWING
        return SessionStatus.IDLE

    def snapshot(self) -> AttendanceSessionState:
        with self._lock:
            captured = self._capture.captured
            return AttendanceSessionState(
                user_id=self.user_id,
                action=self.action,
                status=self._status(),
                distance_from_site=self._verdict.distance_meters if self._verdict else None,
                within_fence=bool(self._verdict and self._verdict.within_fence),
                radius_meters=self._radius,
                selected_camera_facing=self._capture.facing,
                location=self._location,
                location_error=self._location_error,
                camera_error=self._camera_error,
                captured_image=captured.to_data_uri() if captured else None,
                can_confirm=self.can_confirm,
                closed=self._closed,
            )
