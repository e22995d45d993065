from enum import Enum


class WebSocketEvent(str, Enum):
    """WebSocket event names for real-time communication."""

    # Alert events
    ALERT_CREATED = "alert_created"
    ALERT_UPDATED = "alert_updated"
    ALERT_RESOLVED = "alert_resolved"

    # Machine events
    MACHINE_STATUS_CHANGED = "machine_status_changed"

    # Downtime events
    DOWNTIME_OPENED = "downtime_opened"
    DOWNTIME_CLOSED = "downtime_closed"
    SCHEME_TRIGGERED = "scheme_triggered"

    # Dashboard namespace events
    PLANT_HEALTH_UPDATED = "plant_health_updated"
