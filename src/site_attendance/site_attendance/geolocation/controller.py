from __future__ import annotations

from flask import Flask, jsonify, request, session

from ..core.enums import LocationErrorReason, Role
from ..core.exceptions import ValidationError
from ..container import Container
from .model import GeolocationSample
from .source import ReportedPositionSource
from ..users.controller import login_required


def register(app: Flask, container: Container) -> None:
    def map_allowed() -> bool:
        if session.get("role") != Role.EMPLOYEE.value:
            return True
        return container.settings_provider.get().allow_employee_location_view

    @app.route("/device/location", methods=["POST"], endpoint="device_location")
    def device_location():
        """The client device reports a fix ({latitude, longitude, accuracy}) or {error, message}."""
        source = container.position_source
        if not isinstance(source, ReportedPositionSource):
            return jsonify({"success": False, "message": "This device reads its own position"}), 409

        data = request.get_json(silent=True) or {}
        if data.get("error"):
            try:
                reason = LocationErrorReason(data["error"])
            except ValueError:
                raise ValidationError("Unknown location error reason") from None
            if reason is LocationErrorReason.CANCELLED:
                raise ValidationError("Unknown location error reason")
            source.report_error(reason, data.get("message"))
            return jsonify({"success": True})

        try:
            sample = GeolocationSample.from_dict(data)
        except (KeyError, TypeError, ValueError):
            raise ValidationError("latitude, longitude and accuracy are required") from None
        if sample is None:
            raise ValidationError("latitude, longitude and accuracy are required")
        if not (-90 <= sample.latitude <= 90 and -180 <= sample.longitude <= 180):
            raise ValidationError("Coordinates are out of range")

        source.report(sample)
        return jsonify({"success": True})

    @app.route("/map", methods=["GET"], endpoint="map_view")
    @login_required
    def map_view():
        if not map_allowed():
            return jsonify({"success": False, "message": "Location view is disabled by the administrator"}), 403

        radius = container.settings_provider.get().radius_in_meters
        snap = container.tracker.snapshot(radius)
        return jsonify(
            {
                "success": True,
                "site": {"latitude": container.site.latitude, "longitude": container.site.longitude},
                "radiusInMeters": radius,
                "tracking": snap.tracking,
                "position": snap.last_sample.to_dict() if snap.last_sample else None,
                "distanceFromSite": snap.verdict.distance_meters if snap.verdict else None,
                "withinFence": bool(snap.verdict and snap.verdict.within_fence),
                "error": snap.error,
            }
        )

    @app.route("/map/start", methods=["POST"], endpoint="map_start")
    @login_required
    def map_start():
        if not map_allowed():
            return jsonify({"success": False, "message": "Location view is disabled by the administrator"}), 403
        container.tracker.start()
        return jsonify({"success": True, "tracking": container.tracker.tracking})

    @app.route("/map/stop", methods=["POST"], endpoint="map_stop")
    @login_required
    def map_stop():
        container.tracker.stop()
        return jsonify({"success": True, "tracking": container.tracker.tracking})
