"""
Simulator Service
=================
Demo driver for the shop floor. Simulated readings travel the normal
ingestion pipeline tagged with the ``simulator`` source, so their alert
sensor keys never collide with real telemetry.

A reset is the one path besides the explicit lifecycle calls that resolves
alerts. It never closes downtime; only a repair submission does that.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Any, Callable, Mapping, Sequence

from app.domain.exceptions import NotFoundError, ValidationError
from app.domain.machine_status import derive_machine_status
from app.domain.thresholds import ThresholdClassifier
from app.enums import MachineStatus, ReadingClassification, TelemetrySource
from app.services.application.alert_service import AlertService
from app.services.application.plant_health_service import PlantHealthService
from app.services.application.telemetry_service import IngestResult, TelemetryService, validate_batch
from app.utils.emitters import EmitterService
from app.utils.time import to_iso, utc_now
from infrastructure.database.repositories.machines import MachineRepository
from infrastructure.database.repositories.telemetry import TelemetryRepository

logger = logging.getLogger(__name__)

IDLE_LOAD_PERCENT = 50.0


class SimulatorService:
    def __init__(
        self,
        machine_repo: MachineRepository,
        telemetry_repo: TelemetryRepository,
        classifier: ThresholdClassifier,
        telemetry_service: TelemetryService,
        alert_service: AlertService,
        health_service: PlantHealthService,
        emitter: EmitterService | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.machine_repo = machine_repo
        self.telemetry_repo = telemetry_repo
        self.classifier = classifier
        self.telemetry_service = telemetry_service
        self.alert_service = alert_service
        self.health_service = health_service
        self.emitter = emitter
        self._clock = clock

    def update_machine(
        self,
        machine_id: int,
        temperature: float | None = None,
        vibration: float | None = None,
        load: float | None = None,
    ) -> IngestResult:
        readings = [
            {"sensor_type": sensor_type, "value": value}
            for sensor_type, value in (("temperature", temperature), ("vibration", vibration), ("load", load))
            if value is not None
        ]
        if not readings:
            raise ValidationError("At least one of temperature, vibration or load is required")
        return self.telemetry_service.ingest(machine_id, readings, TelemetrySource.SIMULATOR)

    def _reset(
        self,
        machine: dict[str, Any],
        readings: Sequence[Mapping[str, Any]] | None,
        source: TelemetrySource | None = None,
    ) -> dict[str, Any]:
        machine_id = int(machine["machine_id"])
        self.machine_repo.clear_live_readings(machine_id, idle_load=IDLE_LOAD_PERCENT)

        if not readings:
            resolved = self.alert_service.resolve_active_for_machine(machine_id, source=source)
            status = MachineStatus.ACTIVE
        else:
            batch = validate_batch(machine_id, readings)
            configs = machine.get("sensor_configs") or []
            recorded_at = to_iso(self._clock())
            levels: list[ReadingClassification] = []
            back_to_normal: set[str] = set()
            live: dict[str, float] = {}
            for sensor_type, value, unit in batch:
                result = self.classifier.classify(sensor_type, value, configs)
                levels.append(result.level)
                if result.level is ReadingClassification.NORMAL:
                    back_to_normal.add(sensor_type)
                self.telemetry_repo.append(
                    machine_id,
                    sensor_type,
                    value,
                    unit or result.unit,
                    TelemetrySource.SIMULATOR.value,
                    result.is_anomaly,
                    result.level.value if result.is_anomaly else None,
                    recorded_at,
                )
                if self.machine_repo.has_live_column(sensor_type) and math.isfinite(value):
                    live[sensor_type] = value
            if live:
                self.machine_repo.set_live_readings(machine_id, live)
            resolved = (
                self.alert_service.resolve_active_for_machine(machine_id, sensor_types=back_to_normal)
                if back_to_normal
                else []
            )
            status = derive_machine_status(levels)

        self.machine_repo.set_status(machine_id, status.value)
        if self.emitter is not None and status.value != machine.get("status"):
            self.emitter.emit_machine_status(machine_id, status.value, machine.get("plant_id"))
        logger.info("Reset machine %s: status %s, %d alert(s) resolved", machine_id, status.value, len(resolved))
        return {"machine_id": machine_id, "status": status.value, "resolved_alert_ids": resolved}

    def reset_machine(
        self,
        machine_id: int,
        readings: Sequence[Mapping[str, Any]] | None = None,
    ) -> dict[str, Any]:
        """
        Clear a machine's simulated state.

        Without readings every active alert of the machine is resolved and the
        machine returns to ACTIVE. With readings only alerts whose sensor is
        back to NORMAL are resolved and the status follows the readings.
        An ongoing downtime event is left open.
        """
        machine = self.machine_repo.get(machine_id)
        if machine is None:
            raise NotFoundError(f"Machine {machine_id} not found")
        outcome = self._reset(machine, readings)
        health = self.health_service.recompute(machine["plant_id"])
        outcome.update(plant_health=health.health, plant_status=health.status.value)
        return outcome

    def reset_all(self, plant_id: int) -> dict[str, Any]:
        """Return every machine of the plant to ACTIVE and resolve its simulator alerts."""
        machines = self.machine_repo.list_for_plant(plant_id)
        resolved: list[int] = []
        for summary in machines:
            machine = self.machine_repo.get(summary["machine_id"])
            if machine is None:
                continue
            # Real telemetry alerts survive a plant-wide simulator reset
            outcome = self._reset(machine, None, source=TelemetrySource.SIMULATOR)
            resolved.extend(outcome["resolved_alert_ids"])
        health = self.health_service.recompute(plant_id)
        logger.info("Reset %d machine(s) in plant %s, %d alert(s) resolved", len(machines), plant_id, len(resolved))
        return {
            "plant_id": plant_id,
            "machines_reset": len(machines),
            "resolved_alert_ids": resolved,
            "plant_health": health.health,
            "plant_status": health.status.value,
        }
