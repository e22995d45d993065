"""
Common Enumerations
====================

Application-wide enums for machines, alerts, downtime and plant state.
Values match what is persisted in the database.
"""

from enum import Enum


class MachineStatus(str, Enum):
    """
    Operational status of a machine.
    ACTIVE / WARNING / DOWN are derived from telemetry batches;
    IDLE and MAINTENANCE are only ever set by operators.
    """
    ACTIVE = "ACTIVE"
    IDLE = "IDLE"
    WARNING = "WARNING"
    DOWN = "DOWN"
    MAINTENANCE = "MAINTENANCE"

    def __str__(self) -> str:
        return self.value


class AlertSeverity(str, Enum):
    """
    Alert severity levels.
    Used by: alert ledger, plant health aggregator
    """
    CRITICAL = "CRITICAL"
    WARNING = "WARNING"
    INFO = "INFO"
    SYSTEM = "SYSTEM"

    def __str__(self) -> str:
        return self.value


class AlertStatus(str, Enum):
    """Alert lifecycle states. Only ACTIVE participates in deduplication."""
    ACTIVE = "active"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"

    def __str__(self) -> str:
        return self.value

    @property
    def is_terminal(self) -> bool:
        return self in (AlertStatus.RESOLVED, AlertStatus.DISMISSED)


class DowntimeStatus(str, Enum):
    """Downtime event lifecycle."""
    ONGOING = "ongoing"
    RESOLVED = "resolved"

    def __str__(self) -> str:
        return self.value


class PlantStatus(str, Enum):
    """
    Plant-wide status derived from the health score.
    Used by: plant_health_service, dashboard API
    """
    STABLE = "stable"
    WARNING = "warning"
    CRITICAL = "critical"

    def __str__(self) -> str:
        return self.value


class ReadingClassification(str, Enum):
    """Outcome of classifying a single sensor reading."""
    NORMAL = "NORMAL"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"
    UNCLASSIFIABLE = "UNCLASSIFIABLE"

    def __str__(self) -> str:
        return self.value

    @property
    def is_anomaly(self) -> bool:
        return self in (ReadingClassification.WARNING, ReadingClassification.CRITICAL)

    def to_alert_severity(self) -> AlertSeverity:
        if self is ReadingClassification.CRITICAL:
            return AlertSeverity.CRITICAL
        if self is ReadingClassification.WARNING:
            return AlertSeverity.WARNING
        raise ValueError(f"{self.value} readings do not raise alerts")


class TelemetrySource(str, Enum):
    """
    Ingestion path a reading arrived through.
    The tag keeps simulated and real telemetry apart in alert sensor keys.
    """
    TELEMETRY = "telemetry"
    SIMULATOR = "simulator"

    def __str__(self) -> str:
        return self.value

    @property
    def tag(self) -> str:
        return "SIM" if self is TelemetrySource.SIMULATOR else "TEL"

    @classmethod
    def from_tag(cls, tag: str) -> "TelemetrySource":
        tag = tag.upper()
        for member in cls:
            if member.tag == tag:
                return member
        raise ValueError(f"Unknown telemetry source tag: {tag}")
