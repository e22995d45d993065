"""
Telemetry Service
=================
Turns a batch of raw readings for one machine into stored readings,
deduplicated alerts, a batch-derived machine status, an optional downtime
opening, and a fresh plant health score.

Readings inside one batch are processed sequentially so the end-of-batch
status sees all of them. Nothing is written until the whole batch has
passed validation.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Mapping, Sequence

from app.domain.anomaly import Anomaly
from app.domain.exceptions import NotFoundError, ValidationError
from app.domain.machine_status import derive_machine_status
from app.domain.sensor_key import SensorKey
from app.domain.thresholds import ThresholdClassifier, normalize_sensor_type
from app.enums import MachineStatus, PlantStatus, ReadingClassification, TelemetrySource
from app.services.application.alert_service import AlertService
from app.services.application.downtime_service import DowntimeService
from app.services.application.plant_health_service import PlantHealthService
from app.utils.emitters import EmitterService
from app.utils.time import to_iso, utc_now
from infrastructure.database.repositories.machines import MachineRepository
from infrastructure.database.repositories.telemetry import TelemetryRepository

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_WINDOW_HOURS = 24
MAX_HISTORY_WINDOW_HOURS = 24 * 90


@dataclass
class IngestResult:
    """Outcome of one ingestion batch."""

    machine_id: int
    stored: int
    machine_status: MachineStatus
    plant_health: int
    plant_status: PlantStatus
    anomalies: list[Anomaly] = field(default_factory=list)
    alerts_created: int = 0
    downtime_triggered: bool = False
    downtime_event_id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "machine_id": self.machine_id,
            "stored": self.stored,
            "anomalies": [a.to_dict() for a in self.anomalies],
            "alerts_created": self.alerts_created,
            "downtime_triggered": self.downtime_triggered,
            "downtime_event_id": self.downtime_event_id,
            "machine_status": self.machine_status.value,
            "plant_health": self.plant_health,
            "plant_status": self.plant_status.value,
        }


def validate_batch(machine_id: Any, readings: Any) -> list[tuple[str, float, str | None]]:
    """
    Check a batch before anything is written.

    Returns:
        (sensor_type, value, unit) tuples in submission order

    Raises:
        ValidationError: On a missing machine id, an empty batch, or any bad reading
    """
    if machine_id is None or machine_id == "":
        raise ValidationError("machine_id is required")
    if not isinstance(readings, Sequence) or isinstance(readings, (str, bytes)) or not readings:
        raise ValidationError("readings must be a non-empty list")

    cleaned: list[tuple[str, float, str | None]] = []
    for index, reading in enumerate(readings):
        if not isinstance(reading, Mapping):
            raise ValidationError(f"readings[{index}] must be an object")
        sensor_type = normalize_sensor_type(reading.get("sensor_type") or reading.get("sensorType") or "")
        if not sensor_type:
            raise ValidationError(f"readings[{index}].sensor_type is required")
        value = reading.get("value")
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValidationError(f"readings[{index}].value must be a number")
        unit = reading.get("unit")
        cleaned.append((sensor_type, float(value), str(unit) if unit else None))
    return cleaned


class TelemetryService:
    """Ingestion pipeline and read projections over the reading log."""

    def __init__(
        self,
        machine_repo: MachineRepository,
        telemetry_repo: TelemetryRepository,
        classifier: ThresholdClassifier,
        alert_service: AlertService,
        downtime_service: DowntimeService,
        health_service: PlantHealthService,
        emitter: EmitterService | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.machine_repo = machine_repo
        self.telemetry_repo = telemetry_repo
        self.classifier = classifier
        self.alert_service = alert_service
        self.downtime_service = downtime_service
        self.health_service = health_service
        self.emitter = emitter
        self._clock = clock

    def _require_machine(self, machine_id: int) -> dict[str, Any]:
        machine = self.machine_repo.get(machine_id)
        if machine is None:
            raise NotFoundError(f"Machine {machine_id} not found")
        return machine

    def ingest(
        self,
        machine_id: int,
        readings: Sequence[Mapping[str, Any]],
        source: TelemetrySource = TelemetrySource.TELEMETRY,
    ) -> IngestResult:
        batch = validate_batch(machine_id, readings)
        try:
            machine_id = int(machine_id)
        except (TypeError, ValueError):
            raise ValidationError("machine_id must be an integer") from None
        machine = self._require_machine(machine_id)
        source = TelemetrySource(source)

        now = self._clock()
        recorded_at = to_iso(now)
        configs = machine.get("sensor_configs") or []

        levels: list[ReadingClassification] = []
        anomalies: list[Anomaly] = []
        live: dict[str, float] = {}
        alerts_created = 0

        for sensor_type, value, unit in batch:
            result = self.classifier.classify(sensor_type, value, configs)
            levels.append(result.level)
            unit = unit or result.unit

            reading_id = self.telemetry_repo.append(
                machine_id,
                sensor_type,
                value,
                unit,
                source.value,
                result.is_anomaly,
                result.level.value if result.is_anomaly else None,
                recorded_at,
            )
            if self.machine_repo.has_live_column(sensor_type) and math.isfinite(value):
                live[sensor_type] = value

            if not result.is_anomaly:
                continue

            outcome = self.alert_service.record_anomaly(
                machine,
                SensorKey(machine_id, sensor_type, source),
                result.level.to_alert_severity(),
                value,
                threshold=result.threshold,
                reading_id=reading_id,
            )
            alerts_created += int(outcome.created)
            anomalies.append(
                Anomaly(
                    sensor_type=sensor_type,
                    value=value,
                    unit=unit,
                    severity=result.level,
                    reading_id=reading_id,
                    alert_id=outcome.alert_id,
                    alert_code=outcome.alert.get("alert_code"),
                    alert_created=outcome.created,
                )
            )

        if live:
            self.machine_repo.set_live_readings(machine_id, live)

        status = derive_machine_status(levels)
        self.machine_repo.set_status(machine_id, status.value)
        if status.value != machine.get("status"):
            logger.info("Machine %s status %s -> %s", machine_id, machine.get("status"), status.value)
            if self.emitter is not None:
                self.emitter.emit_machine_status(machine_id, status.value, machine.get("plant_id"))

        downtime_triggered = False
        downtime_event_id = None
        if status is MachineStatus.DOWN:
            causing_alert = next((a.alert_id for a in anomalies if a.alert_id is not None), None)
            cause = "Telemetry anomaly: " + ", ".join(a.sensor_type for a in anomalies)
            event, downtime_triggered = self.downtime_service.on_critical_transition(
                machine, causing_alert, cause, started_at=now
            )
            downtime_event_id = int(event["event_id"])

        health = self.health_service.recompute(machine["plant_id"])

        if anomalies:
            logger.info(
                "Ingested %d reading(s) for machine %s: %d anomal%s, %d new alert(s), status %s",
                len(batch), machine_id, len(anomalies), "y" if len(anomalies) == 1 else "ies",
                alerts_created, status.value,
            )
        return IngestResult(
            machine_id=machine_id,
            stored=len(batch),
            machine_status=status,
            plant_health=health.health,
            plant_status=health.status,
            anomalies=anomalies,
            alerts_created=alerts_created,
            downtime_triggered=downtime_triggered,
            downtime_event_id=downtime_event_id,
        )

    def get_latest_readings(self, machine_id: int) -> list[dict[str, Any]]:
        self._require_machine(machine_id)
        return self.telemetry_repo.latest(machine_id)

    def get_reading_history(
        self,
        machine_id: int,
        sensor_type: str | None = None,
        window_hours: float = DEFAULT_HISTORY_WINDOW_HOURS,
    ) -> list[dict[str, Any]]:
        if window_hours is None or window_hours <= 0 or window_hours > MAX_HISTORY_WINDOW_HOURS:
            raise ValidationError(f"window_hours must be between 0 and {MAX_HISTORY_WINDOW_HOURS}")
        self._require_machine(machine_id)
        since = to_iso(self._clock() - timedelta(hours=window_hours))
        sensor = normalize_sensor_type(sensor_type) if sensor_type else None
        return self.telemetry_repo.history(machine_id, sensor, since)
