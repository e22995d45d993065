"""
Plant Health Domain Objects
=============================
Pure scoring of plant health from machine statuses and active alerts.

The persisted ``Plant.overall_health`` column is only a cache of
:func:`calculate_plant_health`; it is never patched incrementally.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable

from app.enums import AlertSeverity, MachineStatus, PlantStatus

MAX_HEALTH = 100
MIN_HEALTH = 0

MACHINE_STATUS_PENALTIES: dict[MachineStatus, int] = {
    MachineStatus.DOWN: 15,
    MachineStatus.WARNING: 8,
    MachineStatus.MAINTENANCE: 3,
}

ALERT_SEVERITY_PENALTIES: dict[AlertSeverity, int] = {
    AlertSeverity.CRITICAL: 10,
    AlertSeverity.WARNING: 5,
}

STABLE_THRESHOLD = 80
WARNING_THRESHOLD = 50


def _coerce(enum_cls, value):
    try:
        return enum_cls(value)
    except ValueError:
        return None


def calculate_plant_health(
    machine_statuses: Iterable[MachineStatus | str],
    active_alert_severities: Iterable[AlertSeverity | str],
) -> int:
    """Return the 0-100 health score for a snapshot of machines and active alerts."""
    score = MAX_HEALTH
    for status in machine_statuses:
        score -= MACHINE_STATUS_PENALTIES.get(_coerce(MachineStatus, status), 0)
    for severity in active_alert_severities:
        score -= ALERT_SEVERITY_PENALTIES.get(_coerce(AlertSeverity, severity), 0)
    return max(MIN_HEALTH, min(MAX_HEALTH, score))


def determine_status(health: int) -> PlantStatus:
    if health >= STABLE_THRESHOLD:
        return PlantStatus.STABLE
    if health >= WARNING_THRESHOLD:
        return PlantStatus.WARNING
    return PlantStatus.CRITICAL


def pulse_label(health: int) -> str:
    """Dashboard wording for the health score."""
    if health >= 90:
        return "Normal"
    if health >= 70:
        return "Elevated"
    return "Critical"


@dataclass(frozen=True)
class PlantHealth:
    """Result of one recompute."""

    plant_id: int
    health: int
    status: PlantStatus
    synced_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "plant_id": self.plant_id,
            "health": self.health,
            "status": self.status.value,
            "synced_at": self.synced_at.isoformat(),
        }
