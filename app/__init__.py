from __future__ import annotations

import atexit
import contextlib
import logging
import signal
import threading
from typing import Any

from flask import Flask, request
from werkzeug.exceptions import HTTPException

from app.blueprints.api import register_api_blueprints
from app.config import load_config, setup_logging
from app.domain.exceptions import PulseError
from app.extensions import init_extensions, socketio
from app.utils.http import error_response, pulse_error_response, safe_error


def create_app(
    config_overrides: dict[str, Any] | None = None,
    *,
    emitter: Any = None,
    scheme_matcher: Any = None,
) -> Flask:
    """Build the Flask app and its service container.

    ``emitter`` and ``scheme_matcher`` replace the Socket.IO emitter and the
    LLM-backed matcher; tests use them to observe pushes and matcher calls.
    """
    config = load_config()
    if config_overrides:
        for key, value in config_overrides.items():
            setattr(config, key if hasattr(config, key) else key.lower(), value)

    # Configure logging early so container startup is visible in the terminal and pulseops.log.
    setup_logging(debug=config.DEBUG, level=config.log_level)

    flask_app = Flask(__name__)
    flask_app.config.update(config.as_flask_config())
    flask_app.config["MAX_CONTENT_LENGTH"] = 2 * 1024 * 1024

    # Initialize Socket.IO BEFORE building ServiceContainer (EmitterService needs it)
    init_extensions(flask_app, config.socketio_cors_origins)

    from app.services.container import ServiceContainer

    container = ServiceContainer.build(config, emitter=emitter, scheme_matcher=scheme_matcher)
    flask_app.config["CONTAINER"] = container

    # ── Graceful shutdown handlers ──────────────────────────────────
    _shutdown_lock = threading.Lock()
    _shutdown_done = False

    def _graceful_shutdown(reason: str = "unknown") -> None:
        nonlocal _shutdown_done
        with _shutdown_lock:
            if _shutdown_done:
                return
            _shutdown_done = True
        logging.info("Graceful shutdown initiated (%s)", reason)
        try:
            container.shutdown()
        except Exception as exc:
            logging.warning("Error during graceful shutdown: %s", exc)

    def _signal_handler(signum: int, _frame: object) -> None:
        sig_name = signal.Signals(signum).name
        logging.info("Received %s, shutting down", sig_name)
        _graceful_shutdown(sig_name)
        raise SystemExit(0)

    atexit.register(_graceful_shutdown, "atexit")
    if config.environment != "testing" and threading.current_thread() is threading.main_thread():
        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(OSError, ValueError):
                signal.signal(sig, _signal_handler)

    # Global JSON error handler for anything that escapes ``safe_route``.
    @flask_app.errorhandler(Exception)
    def _handle_unhandled(exc):
        if not request.path.startswith("/api/"):
            raise exc
        if isinstance(exc, HTTPException):
            status = int(exc.code or 500)
            if status >= 500:
                return safe_error(exc, status, context="http-exception")
            return error_response(exc.description or "Request failed", status)
        if isinstance(exc, PulseError):
            return pulse_error_response(exc)
        return safe_error(exc, 500, context="unhandled")

    @flask_app.errorhandler(413)
    def _handle_too_large(_exc):
        return error_response("Request payload too large", 413)

    register_api_blueprints(flask_app)

    for bp_name in flask_app.blueprints:
        logging.info(f" Registered blueprint: {bp_name}")

    logging.getLogger(__name__).info("PulseOps application initialized successfully.")
    return flask_app


__all__ = ["create_app", "socketio"]
