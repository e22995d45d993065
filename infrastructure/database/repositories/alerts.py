from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

from infrastructure.database.ops.alerts import AlertOperations


@dataclass(frozen=True)
class AlertRepository:
    """Repository facade for alert operations."""

    _backend: AlertOperations

    def find_active(self, machine_id: int, sensor_key: str) -> dict[str, Any] | None:
        return self._backend.find_active_alert(machine_id, sensor_key)

    def get_by_id(self, alert_id: int) -> dict[str, Any] | None:
        return self._backend.get_alert_by_id(alert_id)

    def create(
        self,
        alert_code: str,
        plant_id: int,
        machine_id: int | None,
        severity: str,
        title: str,
        description: str,
        sensor_key: str | None,
        production_impact: float | None,
        confidence: int | None,
        created_at: str,
    ) -> int:
        return self._backend.insert_alert(
            alert_code,
            plant_id,
            machine_id,
            severity,
            title,
            description,
            sensor_key,
            production_impact,
            confidence,
            created_at,
        )

    def refresh_active(
        self,
        alert_id: int,
        severity: str,
        description: str,
        production_impact: float | None,
        confidence: int | None,
    ) -> bool:
        return self._backend.update_active_alert(alert_id, severity, description, production_impact, confidence)

    def transition(self, alert_id: int, status: str, timestamp: str, *, from_statuses: Iterable[str]) -> bool:
        return self._backend.set_alert_status(alert_id, status, timestamp, from_statuses=from_statuses)

    def list_active_for_machine(self, machine_id: int, sensor_key_prefix: str | None = None) -> list[dict[str, Any]]:
        return self._backend.list_active_for_machine(machine_id, sensor_key_prefix)

    def list(
        self,
        plant_id: int | None = None,
        status: str | None = None,
        severity: str | None = None,
        machine_id: int | None = None,
        limit: int = 100,
    ) -> list[dict[str, Any]]:
        return self._backend.list_alerts(
            plant_id=plant_id, status=status, severity=severity, machine_id=machine_id, limit=limit
        )

    def summary(self, plant_id: int | None = None) -> dict[str, Any]:
        return self._backend.get_alert_summary(plant_id)
