from __future__ import annotations

import logging

from flask import Flask, jsonify, request, session

from ..core.enums import Role
from ..core.exceptions import ValidationError
from ..container import Container
from ..users.controller import login_required, roles_required

logger = logging.getLogger(__name__)


def register(app: Flask, container: Container) -> None:
    @app.route("/settings", methods=["GET"], endpoint="settings_get")
    @login_required
    def settings_get():
        return jsonify({"success": True, "settings": container.settings_provider.get().to_dict()})

    @app.route("/admin/settings", methods=["PUT"], endpoint="settings_update")
    @roles_required(Role.ADMIN)
    def settings_update():
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object")

        updated = container.settings_provider.update(data)
        logger.info("%s changed settings", session["user_id"])
        return jsonify({"success": True, "message": "Settings saved", "settings": updated.to_dict()})
