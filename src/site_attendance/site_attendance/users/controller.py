from __future__ import annotations

import logging
from functools import wraps
from typing import Optional

from flask import Flask, jsonify, request, session

from ..core.enums import Role
from ..core.exceptions import AuthenticationError
from ..container import Container
from .service import SessionUser

logger = logging.getLogger(__name__)


def current_user() -> Optional[SessionUser]:
    if "user_id" not in session:
        return None
    return SessionUser(
        user_id=session["user_id"],
        full_name=session.get("name", ""),
        role=Role(session["role"]),
        department=session.get("department", ""),
    )


def login_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        if "user_id" not in session:
            return jsonify({"success": False, "message": "Please log in to continue"}), 401
        return view(*args, **kwargs)

    return wrapper


def roles_required(*roles: Role):
    allowed = {r.value for r in roles}

    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            if "user_id" not in session:
                return jsonify({"success": False, "message": "Please log in to continue"}), 401
            if session.get("role") not in allowed:
                return jsonify({"success": False, "message": "You do not have access to this page"}), 403
            return view(*args, **kwargs)

        return wrapper

    return decorator


def register(app: Flask, container: Container) -> None:
    @app.route("/login", methods=["POST"], endpoint="login")
    def login():
        data = request.get_json(silent=True) or request.form
        username = str(data.get("username", ""))
        password = str(data.get("password", ""))

        try:
            s_user = container.auth_service.authenticate(username, password)
        except AuthenticationError as e:
            return jsonify({"success": False, "message": str(e)}), 401

        # One open attendance session per device; a new login starts clean.
        if "user_id" in session:
            container.sessions.close(session["user_id"])
        session.clear()
        session["user_id"] = s_user.user_id
        session["name"] = s_user.full_name
        session["role"] = s_user.role.value
        session["department"] = s_user.department
        logger.info("%s logged in as %s", s_user.user_id, s_user.role.value)

        user = container.user_service.get(s_user.user_id)
        return jsonify(
            {
                "success": True,
                "message": "Logged in",
                "user": {
                    "id": user.user_id,
                    "username": user.username,
                    "name": user.full_name,
                    "role": user.role.value,
                    "department": user.department,
                    "position": user.position,
                    "avatar": user.avatar_initial,
                },
            }
        )

    @app.route("/logout", methods=["POST"], endpoint="logout")
    def logout():
        user_id = session.get("user_id")
        if user_id:
            container.sessions.close(user_id)
        session.clear()
        return jsonify({"success": True, "message": "Logged out"})
