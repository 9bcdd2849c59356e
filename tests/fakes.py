"""Hand-written device and store doubles shared by the test modules."""
from __future__ import annotations

import threading
from datetime import datetime
from typing import Optional

import numpy as np
from PIL import Image

from src.site_attendance.site_attendance.attendance.memory_attendance_repository import InMemoryAttendanceRepository
from src.site_attendance.site_attendance.core.enums import CameraErrorReason, CameraFacing, LocationErrorReason
from src.site_attendance.site_attendance.core.exceptions import CameraError, LocationError
from src.site_attendance.site_attendance.geolocation.model import GeolocationSample

# Project site used by the fakes below.
SITE_LAT = 26.6814
SITE_LON = 68.0169

LEFT_COLOR = (255, 0, 0)
RIGHT_COLOR = (0, 0, 255)


def site_sample(accuracy: float = 8.0) -> GeolocationSample:
    return GeolocationSample(latitude=SITE_LAT, longitude=SITE_LON, accuracy_meters=accuracy)


def sample_north_of_site(meters: float, accuracy: float = 8.0) -> GeolocationSample:
    # One degree of latitude is ~111,195 m on a 6,371 km sphere.
    return GeolocationSample(latitude=SITE_LAT + meters / 111_195.0, longitude=SITE_LON, accuracy_meters=accuracy)


def two_tone_frame(width: int = 32, height: int = 16) -> Image.Image:
    """Left half red, right half blue, so mirroring is observable after JPEG."""
    pixels = np.zeros((height, width, 3), dtype=np.uint8)
    pixels[:, : width // 2] = LEFT_COLOR
    pixels[:, width // 2 :] = RIGHT_COLOR
    return Image.fromarray(pixels)


def left_pixel(image: Image.Image) -> tuple[int, int, int]:
    return image.convert("RGB").getpixel((2, image.height // 2))


def is_reddish(rgb) -> bool:
    r, g, b = rgb
    return r > 150 and b < 100


def is_bluish(rgb) -> bool:
    r, g, b = rgb
    return b > 150 and r < 100


class FakeStream:
    def __init__(self, camera: "FakeCamera", facing: CameraFacing):
        self._camera = camera
        self.facing = facing
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def read_frame(self) -> Image.Image:
        if not self._active:
            raise CameraError(CameraErrorReason.DEVICE_UNAVAILABLE, "stopped")
        return two_tone_frame()

    def stop(self) -> None:
        if self._active:
            self._active = False
            self._camera._released(self)


class FakeCamera:
    """Records how many streams are live at once.

    ``fail_with`` makes the next opens raise; ``gate`` blocks opens until set.
    """

    def __init__(self, *, fail_with: Optional[CameraErrorReason] = None, gate: Optional[threading.Event] = None):
        self.fail_with = fail_with
        self.gate = gate
        self._lock = threading.Lock()
        self.opened: list[FakeStream] = []
        self.active = 0
        self.max_active = 0
        self.waiting = 0

    def open_stream(self, facing: CameraFacing) -> FakeStream:
        if self.gate is not None:
            with self._lock:
                self.waiting += 1
            self.gate.wait(5)
        if self.fail_with is not None:
            raise CameraError(self.fail_with)
        stream = FakeStream(self, facing)
        with self._lock:
            self.opened.append(stream)
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        return stream

    def _released(self, stream: FakeStream) -> None:
        with self._lock:
            self.active -= 1

    @property
    def live_streams(self) -> list[FakeStream]:
        return [s for s in self.opened if s.active]


class FakePositionSource:
    """Answers one-shot requests with a fixed sample or error.

    With ``gate`` set, requests block until the gate opens (or time out).
    """

    def __init__(
        self,
        sample: Optional[GeolocationSample] = None,
        *,
        error: Optional[LocationErrorReason] = None,
        gate: Optional[threading.Event] = None,
    ):
        self.sample = sample
        self.error = error
        self.gate = gate
        self.requests = 0
        self.watches: dict[int, tuple] = {}
        self._next_id = 0

    def request_position(
        self, *, high_accuracy: bool, timeout_ms: int, max_age_ms: int, not_before=None, cancel=None
    ) -> GeolocationSample:
        self.requests += 1
        if self.gate is not None and not self.gate.wait(timeout_ms / 1000):
            raise LocationError(LocationErrorReason.TIMEOUT)
        if cancel is not None and cancel.cancelled:
            raise LocationError(LocationErrorReason.CANCELLED)
        if self.error is not None:
            raise LocationError(self.error)
        if self.sample is None:
            raise LocationError(LocationErrorReason.POSITION_UNAVAILABLE)
        return self.sample

    def watch_position(self, on_sample, on_error, *, high_accuracy: bool) -> int:
        self._next_id += 1
        self.watches[self._next_id] = (on_sample, on_error)
        return self._next_id

    def clear_watch(self, watch_id: int) -> None:
        self.watches.pop(watch_id, None)

    def emit(self, sample: GeolocationSample) -> None:
        for on_sample, _ in list(self.watches.values()):
            on_sample(sample)

    def emit_error(self, reason: LocationErrorReason) -> None:
        for _, on_error in list(self.watches.values()):
            on_error(LocationError(reason))


class FlakyAttendanceRepository(InMemoryAttendanceRepository):
    """In-memory store whose writes fail while ``failures`` is positive."""

    def __init__(self, failures: int = 0):
        super().__init__()
        self.failures = failures
        self.write_attempts = 0

    def _maybe_fail(self) -> None:
        self.write_attempts += 1
        if self.failures > 0:
            self.failures -= 1
            raise ConnectionError("record store unreachable")

    def create_record(self, **kwargs) -> str:
        self._maybe_fail()
        return super().create_record(**kwargs)

    def append_checkout(self, record_id: str, **kwargs) -> bool:
        self._maybe_fail()
        return super().append_checkout(record_id, **kwargs)


class FixedClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now
