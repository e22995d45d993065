from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from infrastructure.database.ops.telemetry import TelemetryOperations


@dataclass(frozen=True)
class TelemetryRepository:
    """Repository facade over the append-only reading log."""

    _backend: TelemetryOperations

    def append(
        self,
        machine_id: int,
        sensor_type: str,
        value: float,
        unit: str,
        source: str,
        is_anomaly: bool,
        anomaly_severity: str | None,
        recorded_at: str,
    ) -> int:
        return self._backend.insert_reading(
            machine_id, sensor_type, value, unit, source, is_anomaly, anomaly_severity, recorded_at
        )

    def link_alert(self, reading_id: int, alert_id: int) -> bool:
        return self._backend.link_reading_to_alert(reading_id, alert_id)

    def latest(self, machine_id: int) -> list[dict[str, Any]]:
        return self._backend.get_latest_readings(machine_id)

    def history(self, machine_id: int, sensor_type: str | None, since: str, limit: int = 1000) -> list[dict[str, Any]]:
        return self._backend.get_reading_history(machine_id, sensor_type, since, limit)
