from __future__ import annotations

import logging
from typing import Optional

from flask import Flask, jsonify, request, session

from ..common.datetime_utils import parse_iso_date
from ..core.constants import DEFAULT_HISTORY_LIMIT
from ..core.enums import AttendanceAction, CameraFacing, DispatchOutcome, Role
from ..core.exceptions import ValidationError
from ..container import Container
from ..users.controller import current_user, login_required, roles_required
from .service import OFFLINE_MESSAGE

logger = logging.getLogger(__name__)

MAX_SESSION_WAIT_SECONDS = 15.0

_CONFIRM_MESSAGES = {
    (AttendanceAction.CHECK_IN, DispatchOutcome.STORED): "Checked in successfully",
    (AttendanceAction.CHECK_OUT, DispatchOutcome.STORED): "Checked out successfully",
}


def _parse_action(value: Optional[str]) -> AttendanceAction:
    try:
        return AttendanceAction(value)
    except ValueError:
        raise ValidationError("action must be 'check-in' or 'check-out'") from None


def _parse_facing(value: Optional[str]) -> Optional[CameraFacing]:
    if not value:
        return None
    try:
        return CameraFacing(value)
    except ValueError:
        raise ValidationError("facing must be 'front' or 'back'") from None


def register(app: Flask, container: Container) -> None:
    def show_location() -> bool:
        if session.get("role") != Role.EMPLOYEE.value:
            return True
        return container.settings_provider.get().allow_employee_location_view

    def no_session():
        return jsonify({"success": False, "message": "No open attendance session"}), 404

    def session_response(att_session, **extra):
        state = att_session.snapshot().to_dict()
        if not show_location():
            state["location"] = None
        return jsonify({"success": True, "session": state, **extra})

    # ----- records -----

    @app.route("/attendance/today", methods=["GET"], endpoint="attendance_today")
    @login_required
    def attendance_today():
        svc = container.attendance_service
        user_id = session["user_id"]
        today = svc.today()
        record = svc.get_today_record(user_id, today)

        data = record.to_dict() if record else None
        if data and not show_location():
            data["checkInLocation"] = None
            data["checkOutLocation"] = None

        return jsonify(
            {
                "success": True,
                "date": today.isoformat(),
                "status": svc.day_status(user_id, today).value,
                "record": data,
                "online": svc.is_online,
                "offlineMessage": None if svc.is_online else OFFLINE_MESSAGE,
                "pendingSync": svc.pending_count,
                "lastSync": svc.last_sync.to_dict() if svc.last_sync else None,
            }
        )

    @app.route("/attendance/history", methods=["GET"], endpoint="attendance_history")
    @login_required
    def attendance_history():
        viewer = current_user()
        user_id = request.args.get("user_id") or viewer.user_id
        if not container.user_service.can_view_user(viewer, user_id):
            return jsonify({"success": False, "message": "You cannot view this user's attendance"}), 403

        limit = request.args.get("limit", type=int) or DEFAULT_HISTORY_LIMIT
        rows = container.attendance_service.get_history_ui(user_id, limit=limit, show_location=show_location())
        return jsonify({"success": True, "userId": user_id, "data": rows})

    @app.route("/admin/attendance", methods=["GET"], endpoint="admin_attendance")
    @roles_required(Role.ADMIN, Role.MANAGER)
    def admin_attendance():
        raw = request.args.get("date")
        try:
            work_date = parse_iso_date(raw) if raw else container.attendance_service.today()
        except ValueError:
            raise ValidationError("date must be YYYY-MM-DD") from None

        viewer = current_user()
        user_ids = None
        if viewer.role == Role.MANAGER:
            user_ids = container.user_service.department_user_ids(viewer.department)

        records = container.attendance_service.get_records_for_date(work_date, user_ids=user_ids)
        data = []
        for r in records:
            row = r.to_dict()
            user = container.users_repo.get_by_id(r.user_id)
            row["name"] = user.full_name if user else r.user_id
            row["department"] = user.department if user else None
            data.append(row)

        present = {r.user_id for r in records}
        departments = []
        for dept in container.user_service.visible_departments(viewer):
            members = container.user_service.department_user_ids(dept.name)
            departments.append(
                {
                    "id": dept.dept_id,
                    "name": dept.name,
                    "managerId": dept.manager_id,
                    "headcount": len(members),
                    "present": len(members & present),
                }
            )
        return jsonify({"success": True, "date": work_date.isoformat(), "data": data, "departments": departments})

    # ----- attendance session -----

    @app.route("/attendance/session", methods=["POST"], endpoint="attendance_session_open")
    @login_required
    def attendance_session_open():
        data = request.get_json(silent=True) or {}
        action = _parse_action(data.get("action"))
        att_session = container.sessions.open(session["user_id"], action)
        return session_response(att_session), 201

    @app.route("/attendance/session", methods=["GET"], endpoint="attendance_session_state")
    @login_required
    def attendance_session_state():
        att_session = container.sessions.get(session["user_id"])
        if att_session is None:
            return no_session()

        wait = request.args.get("wait", type=float)
        if wait:
            att_session.wait_until_ready(timeout=min(wait, MAX_SESSION_WAIT_SECONDS))
        return session_response(att_session)

    @app.route("/attendance/session", methods=["DELETE"], endpoint="attendance_session_close")
    @login_required
    def attendance_session_close():
        closed = container.sessions.close(session["user_id"])
        return jsonify({"success": True, "closed": closed})

    @app.route("/attendance/session/capture", methods=["POST"], endpoint="attendance_session_capture")
    @login_required
    def attendance_session_capture():
        att_session = container.sessions.get(session["user_id"])
        if att_session is None:
            return no_session()
        att_session.capture()
        return session_response(att_session)

    @app.route("/attendance/session/retake", methods=["POST"], endpoint="attendance_session_retake")
    @login_required
    def attendance_session_retake():
        att_session = container.sessions.get(session["user_id"])
        if att_session is None:
            return no_session()
        att_session.retake()
        return session_response(att_session)

    @app.route("/attendance/session/switch-camera", methods=["POST"], endpoint="attendance_session_switch_camera")
    @login_required
    def attendance_session_switch_camera():
        att_session = container.sessions.get(session["user_id"])
        if att_session is None:
            return no_session()
        data = request.get_json(silent=True) or {}
        att_session.switch_camera(_parse_facing(data.get("facing")))
        return session_response(att_session)

    @app.route("/attendance/session/confirm", methods=["POST"], endpoint="attendance_session_confirm")
    @login_required
    def attendance_session_confirm():
        user_id = session["user_id"]
        att_session = container.sessions.get(user_id)
        if att_session is None:
            return no_session()

        outcome = att_session.confirm()
        container.sessions.close(user_id)
        svc = container.attendance_service
        return jsonify(
            {
                "success": True,
                "outcome": outcome.value,
                "message": _CONFIRM_MESSAGES.get((att_session.action, outcome), OFFLINE_MESSAGE),
                "status": svc.day_status(user_id).value,
                "pendingSync": svc.pending_count,
            }
        )

    # ----- device signals -----

    @app.route("/device/connectivity", methods=["POST"], endpoint="device_connectivity")
    def device_connectivity():
        data = request.get_json(silent=True) or {}
        online = data.get("online")
        if not isinstance(online, bool):
            raise ValidationError("online must be true or false")

        result = container.attendance_service.set_online(online)
        svc = container.attendance_service
        return jsonify(
            {
                "success": True,
                "online": svc.is_online,
                "pendingSync": svc.pending_count,
                "sync": result.to_dict() if result else None,
            }
        )
