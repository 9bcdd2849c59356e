from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from ..capture.model import ImagePayload
from ..core.enums import AttendanceAction
from ..geolocation.model import GeolocationSample


@dataclass(frozen=True)
class OfflineQueueEntry:
    """An attendance action confirmed while the device was offline."""

    user_id: str
    action: AttendanceAction
    timestamp: datetime
    location: Optional[GeolocationSample] = None
    image: Optional[ImagePayload] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "userId": self.user_id,
            "action": self.action.value,
            "timestamp": self.timestamp.isoformat(),
            "location": self.location.to_dict() if self.location else None,
            "image": self.image.to_data_uri() if self.image else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OfflineQueueEntry":
        image = data.get("image")
        return cls(
            user_id=str(data["userId"]),
            action=AttendanceAction(data["action"]),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            location=GeolocationSample.from_dict(data.get("location")),
            image=ImagePayload.from_data_uri(image) if image else None,
        )


@dataclass(frozen=True)
class SyncResult:
    """Outcome of one offline-queue drain, shaped for a status banner."""

    replayed: int
    remaining: int
    message: str
    error: Optional[str] = None
    discarded: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "replayed": self.replayed,
            "remaining": self.remaining,
            "discarded": self.discarded,
            "message": self.message,
            "error": self.error,
        }
