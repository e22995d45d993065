"""
Socket.IO push for PulseOps dashboards.

Alerts go out on ``/alerts``, machine status and downtime on ``/machines``,
plant health on ``/dashboard``. A failed emit is logged and dropped so a
disconnected dashboard never rolls back engine state.
"""

import logging
from typing import Any

from flask_socketio import SocketIO

from app.enums.events import WebSocketEvent

logger = logging.getLogger("emitters")

SOCKETIO_NAMESPACE_DASHBOARD = "/dashboard"
SOCKETIO_NAMESPACE_ALERTS = "/alerts"
SOCKETIO_NAMESPACE_MACHINES = "/machines"


class EmitterService:
    """Thin wrapper over ``SocketIO.emit`` with one method per PulseOps event family."""

    def __init__(self, sio: SocketIO):
        self.sio = sio

    def emit(self, event: str, payload: dict, room: str | None = None, namespace: str = "/") -> None:
        try:
            logger.debug("Emitting %s on %s (room=%s)", event, namespace, room or "broadcast")
            self.sio.emit(event, payload, room=room, namespace=namespace)
        except Exception:
            logger.exception("Failed to emit %s on %s", event, namespace)

    def emit_alert(self, event: WebSocketEvent, alert: dict[str, Any]) -> None:
        self.emit(
            event.value,
            alert,
            namespace=SOCKETIO_NAMESPACE_ALERTS,
        )

    def emit_downtime(self, event: WebSocketEvent, downtime: dict[str, Any]) -> None:
        self.emit(event.value, downtime, namespace=SOCKETIO_NAMESPACE_MACHINES)

    def emit_machine_status(self, machine_id: int, status: str, plant_id: int | None = None) -> None:
        self.emit(
            WebSocketEvent.MACHINE_STATUS_CHANGED.value,
            {"machine_id": machine_id, "status": status, "plant_id": plant_id},
            namespace=SOCKETIO_NAMESPACE_MACHINES,
        )

    def emit_plant_health(self, health: dict[str, Any]) -> None:
        self.emit(
            WebSocketEvent.PLANT_HEALTH_UPDATED.value,
            health,
            namespace=SOCKETIO_NAMESPACE_DASHBOARD,
        )
