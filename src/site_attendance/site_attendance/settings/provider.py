from __future__ import annotations

import logging
import threading
from dataclasses import replace
from typing import Any, Mapping, Optional, Protocol

from ..common.datetime_utils import parse_hhmm
from ..common.validators import require_hhmm, require_positive
from ..core.exceptions import ValidationError
from .model import AdminSettings

logger = logging.getLogger(__name__)


class SettingsProvider(Protocol):
    """Read-only view of the admin configuration used by the attendance core."""

    def get(self) -> AdminSettings:
        raise NotImplementedError


class InMemorySettingsProvider(SettingsProvider):
    def __init__(self, initial: Optional[AdminSettings] = None):
        self._lock = threading.Lock()
        self._settings = initial or AdminSettings()

    def get(self) -> AdminSettings:
        with self._lock:
            return self._settings

    def update(self, changes: Mapping[str, Any]) -> AdminSettings:
        """Admin configuration flow: validate and apply a partial update.

        Accepts the camelCase keys returned by ``AdminSettings.to_dict``.
        """
        with self._lock:
            current = self._settings
            radius = changes.get("radiusInMeters", current.radius_in_meters)
            start = changes.get("workingHoursStart", current.working_hours_start)
            end = changes.get("workingHoursEnd", current.working_hours_end)
            allow = changes.get("allowEmployeeLocationView", current.allow_employee_location_view)

            radius = require_positive(radius, "radiusInMeters")
            start = require_hhmm(str(start), "workingHoursStart")
            end = require_hhmm(str(end), "workingHoursEnd")
            if parse_hhmm(start) >= parse_hhmm(end):
                raise ValidationError("workingHoursStart must be before workingHoursEnd")
            if not isinstance(allow, bool):
                raise ValidationError("allowEmployeeLocationView must be true or false")

            self._settings = replace(
                current,
                radius_in_meters=radius,
                working_hours_start=start,
                working_hours_end=end,
                allow_employee_location_view=allow,
            )
            logger.info("Settings updated: radius=%sm hours=%s-%s", radius, start, end)
            return self._settings
