from __future__ import annotations

from dataclasses import dataclass

from ..core.constants import DEFAULT_RADIUS_METERS, DEFAULT_WORKING_HOURS_END, DEFAULT_WORKING_HOURS_START


@dataclass(frozen=True)
class AdminSettings:
    radius_in_meters: float = DEFAULT_RADIUS_METERS
    working_hours_start: str = DEFAULT_WORKING_HOURS_START
    working_hours_end: str = DEFAULT_WORKING_HOURS_END
    allow_employee_location_view: bool = True

    def to_dict(self) -> dict:
        return {
            "radiusInMeters": self.radius_in_meters,
            "workingHoursStart": self.working_hours_start,
            "workingHoursEnd": self.working_hours_end,
            "allowEmployeeLocationView": self.allow_employee_location_view,
        }
