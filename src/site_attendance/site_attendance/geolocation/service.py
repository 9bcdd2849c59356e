from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from ..core.constants import LOCATION_MAX_AGE_MS, LOCATION_TIMEOUT_MS
from ..core.enums import LocationErrorReason
from ..core.exceptions import LocationError
from .model import GeolocationSample, LocationResult
from .source import CancelToken, PositionSource

logger = logging.getLogger(__name__)


class WatchHandle:
    """Cancellation handle for a continuous watch. ``cancel`` is idempotent."""

    def __init__(self, service: "GeolocationService"):
        self._service = service
        self.watch_id: Optional[int] = None
        self._cancelled = False

    @property
    def active(self) -> bool:
        return not self._cancelled

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self._service._release(self)


class GeolocationService:
    """One-shot and continuous position sampling on top of a device source."""

    def __init__(self, source: PositionSource, *, default_timeout_ms: int = LOCATION_TIMEOUT_MS):
        self._source = source
        self._default_timeout_ms = int(default_timeout_ms)
        self._lock = threading.Lock()
        self._handles: dict[int, WatchHandle] = {}

    @property
    def active_watch_count(self) -> int:
        with self._lock:
            return len(self._handles)

    def get_current_position(
        self,
        timeout_ms: Optional[int] = None,
        max_age_ms: int = LOCATION_MAX_AGE_MS,
        *,
        not_before: Optional[float] = None,
        cancel: Optional[CancelToken] = None,
    ) -> LocationResult:
        """Request a single high-accuracy fix. Failures are returned, not raised."""
        timeout_ms = self._default_timeout_ms if timeout_ms is None else int(timeout_ms)
        try:
            sample = self._source.request_position(
                high_accuracy=True,
                timeout_ms=timeout_ms,
                max_age_ms=int(max_age_ms),
                not_before=not_before,
                cancel=cancel,
            )
        except LocationError as e:
            if e.reason is LocationErrorReason.CANCELLED:
                logger.debug("Location request cancelled")
            else:
                logger.warning("Location request failed: %s", e.reason.value)
            return LocationResult(error=e)
        return LocationResult(sample=sample)

    def watch_position(
        self,
        on_sample: Callable[[GeolocationSample], None],
        on_error: Callable[[LocationError], None],
    ) -> WatchHandle:
        handle = WatchHandle(self)

        # Callbacks that race with cancel() are dropped.
        def _sample(sample: GeolocationSample) -> None:
            if handle.active:
                on_sample(sample)

        def _error(error: LocationError) -> None:
            if handle.active:
                on_error(error)

        handle.watch_id = self._source.watch_position(_sample, _error, high_accuracy=True)
        with self._lock:
            self._handles[handle.watch_id] = handle
        return handle

    def _release(self, handle: WatchHandle) -> None:
        if handle.watch_id is None:
            return
        with self._lock:
            self._handles.pop(handle.watch_id, None)
        self._source.clear_watch(handle.watch_id)

    def close(self) -> None:
        """Stop every watch still held through this service."""
        with self._lock:
            handles = list(self._handles.values())
        for handle in handles:
            handle.cancel()
