from __future__ import annotations

import logging
import threading
from typing import Optional

from ..core.enums import CameraFacing, CaptureState
from ..core.exceptions import ValidationError
from .device import CameraDevice, MediaStream
from .model import ImagePayload, mirror_horizontally

logger = logging.getLogger(__name__)


class CaptureSession:
    """Camera acquisition, live preview, still capture and teardown.

    idle -> acquiring -> live -> captured -> (retake -> live) -> closed

    At most one stream is held at any time: the current stream is stopped
    before a new one is requested, and acquisitions never overlap.
    ``close`` is idempotent.
    """

    def __init__(self, camera: CameraDevice):
        self._camera = camera
        self._lock = threading.RLock()
        # Held across open_stream; close() does not take it.
        self._acquire_lock = threading.Lock()
        self._stream: Optional[MediaStream] = None
        self._facing = CameraFacing.FRONT
        self._state = CaptureState.IDLE
        self._captured: Optional[ImagePayload] = None
        # Bumped by every open/close so a slow acquisition can tell it was superseded.
        self._generation = 0

    @property
    def state(self) -> CaptureState:
        return self._state

    @property
    def facing(self) -> CameraFacing:
        return self._facing

    @property
    def captured(self) -> Optional[ImagePayload]:
        return self._captured

    @property
    def has_live_stream(self) -> bool:
        stream = self._stream
        return stream is not None and stream.active

    def _release_stream(self) -> None:
        stream, self._stream = self._stream, None
        if stream is not None:
            stream.stop()

    def open(self, facing: CameraFacing = CameraFacing.FRONT) -> Optional[MediaStream]:
        """Acquire the camera for ``facing``.

        Acquisitions run one at a time: a second ``open`` waits for the one in
        flight and releases its stream before asking for another.

        Raises ``CameraError`` when access is refused or no device exists.
        Returns None if the session is closed, or was closed while the camera
        was being acquired; the late stream is stopped in that case.
        """
        with self._acquire_lock:
            with self._lock:
                if self._state is CaptureState.CLOSED:
                    return None
                self._release_stream()
                self._generation += 1
                generation = self._generation
                self._facing = facing
                self._captured = None
                self._state = CaptureState.ACQUIRING

            try:
                stream = self._camera.open_stream(facing)
            except Exception:
                with self._lock:
                    if generation == self._generation:
                        self._state = CaptureState.IDLE
                raise

            with self._lock:
                if generation != self._generation:
                    logger.debug("Dropping %s stream acquired after session change", facing.value)
                    stream.stop()
                    return None
                self._stream = stream
                self._state = CaptureState.LIVE
                return stream

    def switch_facing(self, facing: Optional[CameraFacing] = None) -> Optional[MediaStream]:
        return self.open(facing or self._facing.flipped())

    def capture_frame(self) -> ImagePayload:
        with self._lock:
            if self._state is not CaptureState.LIVE or self._stream is None:
                raise ValidationError("Camera is not live")
            frame = self._stream.read_frame()
            if self._facing is CameraFacing.FRONT:
                frame = mirror_horizontally(frame)
            self._captured = ImagePayload.from_image(frame)
            self._release_stream()
            self._state = CaptureState.CAPTURED
            return self._captured

    def retake(self) -> Optional[MediaStream]:
        with self._lock:
            if self._state is CaptureState.CLOSED:
                raise ValidationError("Capture session is closed")
            self._captured = None
        return self.open(self._facing)

    def close(self) -> None:
        with self._lock:
            self._generation += 1
            self._release_stream()
            self._state = CaptureState.CLOSED
