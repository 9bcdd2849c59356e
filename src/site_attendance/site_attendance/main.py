from __future__ import annotations

import atexit
import importlib
import logging
from typing import Any, Optional

from dotenv import load_dotenv
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from config import get_settings_module

from .container import Container, build_container
from .core.exceptions import AuthenticationError, AuthorizationError, ValidationError
from .attendance.controller import register as register_attendance
from .geolocation.controller import register as register_geolocation
from .settings.controller import register as register_settings
from .users.controller import register as register_users

logger = logging.getLogger(__name__)


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ValidationError)
    def handle_validation(e: ValidationError):
        return jsonify({"success": False, "message": str(e)}), 400

    @app.errorhandler(AuthenticationError)
    def handle_authentication(e: AuthenticationError):
        return jsonify({"success": False, "message": str(e)}), 401

    @app.errorhandler(AuthorizationError)
    def handle_authorization(e: AuthorizationError):
        return jsonify({"success": False, "message": str(e)}), 403

    @app.errorhandler(Exception)
    def handle_unexpected(e: Exception):
        if isinstance(e, HTTPException):
            return jsonify({"success": False, "message": e.description}), e.code
        logger.exception("Unhandled error")
        if app.config.get("DEBUG"):
            return jsonify({"success": False, "message": f"Internal error: {e}"}), 500
        return jsonify({"success": False, "message": "Internal server error"}), 500


def create_app(settings: Optional[Any] = None, **overrides: Any) -> Flask:
    """Application factory.

    ``settings`` defaults to the module picked by ``APP_ENV``; ``overrides``
    are passed to ``build_container`` (camera, position source, stores).
    """
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = get_settings_module()
    if settings is None:
        settings = importlib.import_module(settings_module)

    logging.basicConfig(
        level=getattr(settings, "LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app.secret_key = getattr(settings, "SECRET_KEY")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))
    logger.info(
        "Starting site attendance (settings=%s, store=%s)",
        getattr(settings, "__name__", settings_module),
        getattr(settings, "RECORD_STORE", "memory"),
    )

    container = build_container(settings, **overrides)
    app.extensions["container"] = container
    if not app.config["TESTING"]:
        atexit.register(container.shutdown)

    _register_error_handlers(app)
    register_users(app, container)
    register_attendance(app, container)
    register_geolocation(app, container)
    register_settings(app, container)

    return app


def get_container(app: Flask) -> Container:
    return app.extensions["container"]
