"""Socket.IO instance shared by the app factory and the emitter service."""

import logging
import os

from flask import Flask
from flask_socketio import SocketIO

logger = logging.getLogger(__name__)

DEFAULT_TRANSPORTS = ("polling",)


def socketio_transports() -> list[str]:
    """Engine.IO transports from ``PULSE_SOCKETIO_TRANSPORTS`` (comma separated)."""
    raw = os.getenv("PULSE_SOCKETIO_TRANSPORTS", "")
    transports = [t.strip() for t in raw.split(",") if t.strip()]
    return transports or list(DEFAULT_TRANSPORTS)


socketio = SocketIO(
    async_mode="threading",
    cors_allowed_origins=[],
    ping_timeout=60,
    ping_interval=25,
    transports=socketio_transports(),
)


def init_extensions(app: Flask, cors_origins: str) -> None:
    """Bind Socket.IO to *app*; dashboards connect on /alerts, /machines and /dashboard."""
    origins = cors_origins if isinstance(cors_origins, str) and cors_origins else "*"
    logging.getLogger("engineio").setLevel(logging.WARNING)
    socketio.init_app(app, cors_allowed_origins=origins, logger=logging.getLogger("socketio"), engineio_logger=False)
    logger.info("Socket.IO ready (transports=%s, cors=%s)", ",".join(socketio_transports()), origins)
