"""Camera devices.

``CameraDevice.open_stream`` hands out a ``MediaStream`` that owns the
hardware until ``stop`` is called.
"""
from __future__ import annotations

import logging
import threading
from typing import Mapping, Optional, Protocol

import cv2
from PIL import Image

from ..core.enums import CameraErrorReason, CameraFacing
from ..core.exceptions import CameraError

logger = logging.getLogger(__name__)


class MediaStream(Protocol):
    facing: CameraFacing

    @property
    def active(self) -> bool:
        raise NotImplementedError

    def read_frame(self) -> Image.Image:
        """Current raw (unmirrored) sensor frame."""

        raise NotImplementedError

    def stop(self) -> None:
        raise NotImplementedError


class CameraDevice(Protocol):
    def open_stream(self, facing: CameraFacing) -> MediaStream:
        raise NotImplementedError


class OpenCVStream(MediaStream):
    def __init__(self, capture: "cv2.VideoCapture", facing: CameraFacing):
        self._capture = capture
        self.facing = facing
        self._lock = threading.Lock()
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def read_frame(self) -> Image.Image:
        with self._lock:
            if not self._active:
                raise CameraError(CameraErrorReason.DEVICE_UNAVAILABLE, "Camera stream is stopped")
            ok, frame = self._capture.read()
        if not ok or frame is None:
            raise CameraError(CameraErrorReason.DEVICE_UNAVAILABLE, "Camera stopped delivering frames")
        return Image.fromarray(cv2.cvtColor(frame, cv2.COLOR_BGR2RGB))

    def stop(self) -> None:
        with self._lock:
            if not self._active:
                return
            self._active = False
            self._capture.release()
        logger.debug("Released %s camera", self.facing.value)


class OpenCVCamera(CameraDevice):
    """Local cameras through OpenCV; facing modes map to device indexes."""

    def __init__(self, indexes: Optional[Mapping[CameraFacing, int]] = None):
        self._indexes = dict(indexes or {CameraFacing.FRONT: 0, CameraFacing.BACK: 1})

    def open_stream(self, facing: CameraFacing) -> MediaStream:
        index = self._indexes.get(facing)
        if index is None:
            raise CameraError(CameraErrorReason.DEVICE_UNAVAILABLE)

        capture = cv2.VideoCapture(index)
        if not capture.isOpened():
            capture.release()
            raise CameraError(CameraErrorReason.DEVICE_UNAVAILABLE, f"Camera #{index} ({facing.value}) could not be opened")
        logger.debug("Opened %s camera #%s", facing.value, index)
        return OpenCVStream(capture, facing)
