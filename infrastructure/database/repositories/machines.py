from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from infrastructure.database.ops.machines import LIVE_READING_COLUMNS, MachineOperations


@dataclass(frozen=True)
class MachineRepository:
    """Repository facade for machine operations."""

    _backend: MachineOperations

    def create(
        self,
        plant_id: int,
        machine_code: str,
        name: str,
        machine_type: str,
        department: str | None,
        status: str,
        sensor_configs: list[dict[str, Any]],
        hourly_downtime_cost: float,
        purchase_cost: float | None = None,
    ) -> int:
        return self._backend.insert_machine(
            plant_id,
            machine_code,
            name,
            machine_type,
            department,
            status,
            sensor_configs,
            hourly_downtime_cost,
            purchase_cost,
        )

    def get(self, machine_id: int) -> dict[str, Any] | None:
        return self._backend.get_machine(machine_id)

    def list_for_plant(self, plant_id: int | None = None) -> list[dict[str, Any]]:
        return self._backend.list_machines(plant_id)

    def status_counts(self, plant_id: int) -> dict[str, int]:
        return self._backend.count_machines_by_status(plant_id)

    def set_status(self, machine_id: int, status: str) -> bool:
        return self._backend.update_machine_status(machine_id, status)

    def set_live_readings(self, machine_id: int, readings: Mapping[str, float | None]) -> bool:
        return self._backend.update_live_readings(machine_id, readings)

    def clear_live_readings(self, machine_id: int, *, idle_load: float = 50.0) -> bool:
        return self._backend.update_live_readings(
            machine_id, {"temperature": None, "vibration": None, "load": idle_load}
        )

    def set_sensor_configs(self, machine_id: int, sensor_configs: list[dict[str, Any]]) -> bool:
        return self._backend.update_sensor_configs(machine_id, sensor_configs)

    @staticmethod
    def has_live_column(sensor_type: str) -> bool:
        return sensor_type in LIVE_READING_COLUMNS
