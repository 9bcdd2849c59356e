from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Optional

from ..core.exceptions import LocationError
from ..geofence.evaluator import Coordinate, GeofenceVerdict, evaluate
from .model import GeolocationSample
from .service import GeolocationService, WatchHandle


@dataclass(frozen=True)
class TrackerSnapshot:
    tracking: bool
    last_sample: Optional[GeolocationSample]
    verdict: Optional[GeofenceVerdict]
    error: Optional[str]


class PositionTracker:
    """Map view owner of a single continuous watch.

    ``start`` is a no-op while already tracking; ``stop`` releases the
    underlying watch and is safe to call repeatedly.
    """

    def __init__(self, geolocation: GeolocationService, *, site: Coordinate):
        self._geolocation = geolocation
        self._site = site
        self._lock = threading.Lock()
        self._handle: Optional[WatchHandle] = None
        self._last_sample: Optional[GeolocationSample] = None
        self._error: Optional[str] = None

    @property
    def tracking(self) -> bool:
        return self._handle is not None and self._handle.active

    def start(self) -> None:
        with self._lock:
            if self.tracking:
                return
            self._error = None
            self._handle = self._geolocation.watch_position(self._on_sample, self._on_error)

    def stop(self) -> None:
        with self._lock:
            handle, self._handle = self._handle, None
        if handle is not None:
            handle.cancel()

    def _on_sample(self, sample: GeolocationSample) -> None:
        self._last_sample = sample
        self._error = None

    def _on_error(self, error: LocationError) -> None:
        self._error = error.message

    def snapshot(self, radius_meters: float) -> TrackerSnapshot:
        sample = self._last_sample
        verdict = evaluate(sample.coordinate, radius_meters, site=self._site) if sample else None
        return TrackerSnapshot(tracking=self.tracking, last_sample=sample, verdict=verdict, error=self._error)
