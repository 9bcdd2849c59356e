"""Device-level position sources.

A source is the thing that actually produces fixes (a phone's GPS reporting
through the API, a test double, ...). It raises ``LocationError`` for
failures; ``GeolocationService`` turns those into results.
"""
from __future__ import annotations

import itertools
import logging
import threading
import time
from datetime import datetime
from typing import Callable, Optional, Protocol

from ..common.datetime_utils import now_local
from ..core.enums import LocationErrorReason
from ..core.exceptions import LocationError
from .model import GeolocationSample

logger = logging.getLogger(__name__)

SampleCallback = Callable[[GeolocationSample], None]
ErrorCallback = Callable[[LocationError], None]


class CancelToken:
    """Abandons a pending one-shot request. ``cancel`` is idempotent."""

    def __init__(self):
        self._lock = threading.Lock()
        self._cancelled = False
        self._callbacks: list[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def add_callback(self, fn: Callable[[], None]) -> None:
        with self._lock:
            if not self._cancelled:
                self._callbacks.append(fn)
                return
        fn()

    def remove_callback(self, fn: Callable[[], None]) -> None:
        with self._lock:
            if fn in self._callbacks:
                self._callbacks.remove(fn)

    def cancel(self) -> None:
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            callbacks, self._callbacks = self._callbacks, []
        for fn in callbacks:
            fn()


class PositionSource(Protocol):
    def request_position(
        self,
        *,
        high_accuracy: bool,
        timeout_ms: int,
        max_age_ms: int,
        not_before: Optional[float] = None,
        cancel: Optional[CancelToken] = None,
    ) -> GeolocationSample:
        """``not_before`` is a ``time.monotonic()`` reading: a fix or error
        reported at or after it answers the request even if it arrived
        before the call."""
        raise NotImplementedError

    def watch_position(self, on_sample: SampleCallback, on_error: ErrorCallback, *, high_accuracy: bool) -> int:
        raise NotImplementedError

    def clear_watch(self, watch_id: int) -> None:
        raise NotImplementedError


class ReportedPositionSource(PositionSource):
    """Position source fed by fixes the client device posts to the API.

    A one-shot request blocks until a fix fresh enough for ``max_age_ms``
    arrives, until ``timeout_ms`` expires, or until its cancel token fires.
    Every reported fix or error is also delivered to the active watches.
    """

    def __init__(self, *, clock: Callable[[], datetime] = now_local):
        self._clock = clock
        self._cond = threading.Condition()
        self._last_sample: Optional[GeolocationSample] = None
        self._last_error: Optional[LocationError] = None
        self._last_reported_at: Optional[float] = None
        self._version = 0
        self._watch_ids = itertools.count(1)
        self._watches: dict[int, tuple[SampleCallback, ErrorCallback]] = {}

    @property
    def watch_count(self) -> int:
        with self._cond:
            return len(self._watches)

    def report(self, sample: GeolocationSample) -> None:
        if sample.taken_at is None:
            sample = GeolocationSample(
                latitude=sample.latitude,
                longitude=sample.longitude,
                accuracy_meters=sample.accuracy_meters,
                taken_at=self._clock(),
            )
        with self._cond:
            self._last_sample = sample
            self._last_error = None
            self._last_reported_at = time.monotonic()
            self._version += 1
            watchers = list(self._watches.values())
            self._cond.notify_all()
        for on_sample, _ in watchers:
            on_sample(sample)

    def report_error(self, reason: LocationErrorReason, message: Optional[str] = None) -> None:
        error = LocationError(reason, message)
        with self._cond:
            self._last_error = error
            self._last_reported_at = time.monotonic()
            self._version += 1
            watchers = list(self._watches.values())
            self._cond.notify_all()
        logger.warning("Device reported location error: %s", error.reason.value)
        for _, on_error in watchers:
            on_error(error)

    def _fresh_sample(self, max_age_ms: int) -> Optional[GeolocationSample]:
        sample = self._last_sample
        if sample is None or max_age_ms <= 0 or sample.taken_at is None:
            return None
        age_ms = (self._clock() - sample.taken_at).total_seconds() * 1000
        return sample if age_ms <= max_age_ms else None

    def _latest(self) -> GeolocationSample:
        if self._last_error is not None:
            raise self._last_error
        if self._last_sample is None:
            raise LocationError(LocationErrorReason.POSITION_UNAVAILABLE)
        return self._last_sample

    def _wake(self) -> None:
        with self._cond:
            self._cond.notify_all()

    def request_position(
        self,
        *,
        high_accuracy: bool,
        timeout_ms: int,
        max_age_ms: int,
        not_before: Optional[float] = None,
        cancel: Optional[CancelToken] = None,
    ) -> GeolocationSample:
        deadline = time.monotonic() + timeout_ms / 1000
        if cancel is not None:
            cancel.add_callback(self._wake)
        try:
            with self._cond:
                cached = self._fresh_sample(max_age_ms)
                if cached is not None:
                    return cached
                if not_before is not None and self._last_reported_at is not None and self._last_reported_at >= not_before:
                    return self._latest()

                seen = self._version
                while self._version == seen:
                    if cancel is not None and cancel.cancelled:
                        raise LocationError(LocationErrorReason.CANCELLED)
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        raise LocationError(LocationErrorReason.TIMEOUT)
                    self._cond.wait(remaining)
                return self._latest()
        finally:
            if cancel is not None:
                cancel.remove_callback(self._wake)

    def watch_position(self, on_sample: SampleCallback, on_error: ErrorCallback, *, high_accuracy: bool) -> int:
        with self._cond:
            watch_id = next(self._watch_ids)
            self._watches[watch_id] = (on_sample, on_error)
            last = self._last_sample
        if last is not None:
            on_sample(last)
        return watch_id

    def clear_watch(self, watch_id: int) -> None:
        with self._cond:
            self._watches.pop(watch_id, None)
