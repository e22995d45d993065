"""
Machine Service
===============
Machine registration, sensor configuration and the operator status path.

Telemetry derives ACTIVE / WARNING / DOWN on its own; IDLE and MAINTENANCE
are reachable only through :meth:`MachineService.set_status`.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, Iterable, Mapping

from pydantic import ValidationError as PydanticValidationError

from app.domain.exceptions import ConflictError, NotFoundError, ValidationError
from app.enums import MachineStatus
from app.schemas.machines import SensorConfigSchema
from app.utils.emitters import EmitterService
from app.utils.http import validation_details
from infrastructure.database.repositories.machines import MachineRepository
from infrastructure.database.repositories.plants import PlantRepository
from infrastructure.logging.audit import AuditLogger

logger = logging.getLogger(__name__)


def validate_sensor_configs(configs: Iterable[Mapping[str, Any]] | None) -> list[dict[str, Any]]:
    """Validate raw sensor config mappings and return them in storage form."""
    cleaned: list[dict[str, Any]] = []
    seen: set[str] = set()
    for index, raw in enumerate(configs or []):
        try:
            config = SensorConfigSchema.model_validate(raw)
        except PydanticValidationError as exc:
            raise ValidationError(
                f"sensor_configs[{index}] is invalid", detail=validation_details(exc)
            ) from exc
        if config.sensor_type in seen:
            raise ValidationError(f"duplicate sensor_type '{config.sensor_type}'")
        seen.add(config.sensor_type)
        cleaned.append(config.model_dump())
    return cleaned


class MachineService:
    def __init__(
        self,
        machine_repo: MachineRepository,
        plant_repo: PlantRepository,
        emitter: EmitterService | None = None,
        audit_logger: AuditLogger | None = None,
    ):
        self.machine_repo = machine_repo
        self.plant_repo = plant_repo
        self.emitter = emitter
        self.audit_logger = audit_logger
        # Set by the container once PlantHealthService exists.
        self.health_service = None

    def get_machine(self, machine_id: int) -> dict[str, Any]:
        machine = self.machine_repo.get(machine_id)
        if machine is None:
            raise NotFoundError(f"Machine {machine_id} not found")
        return machine

    def list_machines(self, plant_id: int) -> dict[str, Any]:
        """Machines of a plant with their active alert id, plus status counts."""
        machines = self.machine_repo.list_for_plant(plant_id)
        return {
            "machines": machines,
            "total": len(machines),
            "status_counts": self.machine_repo.status_counts(plant_id),
        }

    def register_machine(
        self,
        plant_id: int,
        machine_code: str,
        name: str,
        machine_type: str,
        department: str | None = None,
        hourly_downtime_cost: float = 0,
        purchase_cost: float | None = None,
        sensor_configs: Iterable[Mapping[str, Any]] | None = None,
        actor: str = "operator",
    ) -> dict[str, Any]:
        if not machine_code or not name or not machine_type:
            raise ValidationError("machine_code, name and machine_type are required")
        if hourly_downtime_cost is None or hourly_downtime_cost < 0:
            raise ValidationError("hourly_downtime_cost must be a non-negative number")
        configs = validate_sensor_configs(sensor_configs)

        if self.plant_repo.get(plant_id) is None:
            raise NotFoundError(f"Plant {plant_id} not found")

        try:
            machine_id = self.machine_repo.create(
                plant_id,
                machine_code,
                name,
                machine_type,
                department,
                MachineStatus.ACTIVE.value,
                configs,
                float(hourly_downtime_cost),
                purchase_cost,
            )
        except sqlite3.IntegrityError as exc:
            raise ConflictError(
                f"Machine code '{machine_code}' is already registered", detail={"machine_code": machine_code}
            ) from exc

        logger.info("Registered machine %s (%s) in plant %s", machine_id, machine_code, plant_id)
        if self.audit_logger is not None:
            self.audit_logger.log_event(actor, "machine_registered", f"machine:{machine_id}", "success",
                                        machine_code=machine_code)
        if self.health_service is not None:
            self.health_service.recompute(plant_id)
        return self.get_machine(machine_id)

    def update_sensor_configs(
        self,
        machine_id: int,
        sensor_configs: Iterable[Mapping[str, Any]],
        actor: str = "operator",
    ) -> dict[str, Any]:
        configs = validate_sensor_configs(sensor_configs)
        self.get_machine(machine_id)
        self.machine_repo.set_sensor_configs(machine_id, configs)
        if self.audit_logger is not None:
            self.audit_logger.log_event(actor, "sensor_configs_updated", f"machine:{machine_id}", "success",
                                        sensors=[c["sensor_type"] for c in configs])
        return self.get_machine(machine_id)

    def set_status(self, machine_id: int, status: Any, actor: str = "operator") -> dict[str, Any]:
        """Operator status change; the next telemetry batch may override it."""
        try:
            status = MachineStatus(str(status).strip().upper())
        except ValueError:
            raise ValidationError(
                f"Invalid machine status '{status}'",
                detail={"allowed": [s.value for s in MachineStatus]},
            ) from None

        machine = self.get_machine(machine_id)
        previous = machine.get("status")
        self.machine_repo.set_status(machine_id, status.value)
        logger.info("Operator %s set machine %s status %s -> %s", actor, machine_id, previous, status.value)

        if self.audit_logger is not None:
            self.audit_logger.log_event(actor, "machine_status_changed", f"machine:{machine_id}", "success",
                                        previous=previous, status=status.value)
        if self.emitter is not None:
            self.emitter.emit_machine_status(machine_id, status.value, machine.get("plant_id"))
        if self.health_service is not None:
            self.health_service.recompute(machine["plant_id"])
        return self.get_machine(machine_id)
