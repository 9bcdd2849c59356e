from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from ..core.exceptions import LocationError
from ..geofence.evaluator import Coordinate


@dataclass(frozen=True)
class GeolocationSample:
    """One position fix reported by the device."""

    latitude: float
    longitude: float
    accuracy_meters: float
    taken_at: Optional[datetime] = None

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(latitude=self.latitude, longitude=self.longitude)

    def to_dict(self) -> dict[str, Any]:
        # Persisted/wire layout: {latitude, longitude, accuracy}
        return {"latitude": self.latitude, "longitude": self.longitude, "accuracy": self.accuracy_meters}

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional["GeolocationSample"]:
        if not data:
            return None
        return cls(
            latitude=float(data["latitude"]),
            longitude=float(data["longitude"]),
            accuracy_meters=float(data.get("accuracy", data.get("accuracy_meters", 0.0))),
        )


@dataclass(frozen=True)
class LocationResult:
    """Outcome of a one-shot position request: a sample or an error, never both."""

    sample: Optional[GeolocationSample] = None
    error: Optional[LocationError] = None

    @property
    def ok(self) -> bool:
        return self.sample is not None
