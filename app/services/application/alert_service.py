"""Alert ledger: deduplicated sensor alerts and their lifecycle."""

import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

from app.domain.alert_estimates import confidence_score, production_impact_pct
from app.domain.exceptions import ConflictError, NotFoundError, RepositoryError, ValidationError
from app.domain.sensor_key import SensorKey
from app.domain.thresholds import SensorThreshold
from app.enums import AlertSeverity, AlertStatus, TelemetrySource, WebSocketEvent
from app.utils.emitters import EmitterService
from app.utils.time import to_epoch_ms, to_iso, utc_now
from infrastructure.database.repositories.alerts import AlertRepository
from infrastructure.database.repositories.telemetry import TelemetryRepository
from infrastructure.logging.audit import AuditLogger

logger = logging.getLogger(__name__)

_SENSOR_LABELS = {"rpm": "RPM"}

_CRITICAL_ADVICE = "Threshold critically exceeded. Immediate inspection required to prevent equipment damage or failure."
_WARNING_ADVICE = "Reading outside normal operating range. Monitor closely and consider scheduling maintenance."

# Lifecycle: target status -> statuses it may be entered from
_ALLOWED_TRANSITIONS: Dict[AlertStatus, tuple] = {
    AlertStatus.ACKNOWLEDGED: (AlertStatus.ACTIVE.value,),
    AlertStatus.RESOLVED: (AlertStatus.ACTIVE.value, AlertStatus.ACKNOWLEDGED.value),
    AlertStatus.DISMISSED: (AlertStatus.ACTIVE.value, AlertStatus.ACKNOWLEDGED.value),
}


def sensor_label(sensor_type: str) -> str:
    return _SENSOR_LABELS.get(sensor_type, sensor_type.replace("_", " ").title())


@dataclass
class AlertOutcome:
    """Alert row returned by :meth:`AlertService.record_anomaly`."""

    alert: Dict[str, Any]
    created: bool

    @property
    def alert_id(self) -> int:
        return int(self.alert["alert_id"])


class AlertService:
    """Maintains at most one active alert per (machine, sensor key)."""

    def __init__(
        self,
        alert_repo: AlertRepository,
        telemetry_repo: TelemetryRepository,
        emitter: Optional[EmitterService] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """Initialize the alert service.

        Args:
            alert_repo: AlertRepository instance
            telemetry_repo: Used to link readings back to the alert they fed
            emitter: Optional Socket.IO emitter for dashboards
            audit_logger: Optional audit trail for lifecycle transitions
            clock: Time source, injectable for tests
        """
        self.alert_repo = alert_repo
        self.telemetry_repo = telemetry_repo
        self.emitter = emitter
        self.audit_logger = audit_logger
        self._clock = clock
        # Set by the container once PlantHealthService exists.
        self.health_service = None

    # ------------------------------------------------------------------
    # Text and estimate synthesis
    # ------------------------------------------------------------------

    @staticmethod
    def build_title(machine: Dict[str, Any], sensor_type: str, severity: AlertSeverity) -> str:
        return f"{severity.value}: {sensor_label(sensor_type)} Anomaly - {machine.get('name')}"

    @staticmethod
    def build_description(
        machine: Dict[str, Any],
        sensor_type: str,
        severity: AlertSeverity,
        value: float,
        unit: str,
    ) -> str:
        reading = f"{value:.1f} {unit}".rstrip()
        advice = _CRITICAL_ADVICE if severity is AlertSeverity.CRITICAL else _WARNING_ADVICE
        return (
            f"{sensor_label(sensor_type)} reading of {reading} detected on "
            f"{machine.get('name')} ({machine.get('machine_type')}). {advice}"
        )

    def _alert_code(self, machine: Dict[str, Any], sensor_type: str, now: datetime, attempt: int = 0) -> str:
        code = f"#AL-{machine.get('machine_code') or machine['machine_id']}-{sensor_type[:3].upper()}-{to_epoch_ms(now)}"
        return f"{code}-{attempt}" if attempt else code

    # ------------------------------------------------------------------
    # Ingestion path
    # ------------------------------------------------------------------

    def record_anomaly(
        self,
        machine: Dict[str, Any],
        sensor_key: SensorKey,
        severity: AlertSeverity,
        value: float,
        threshold: Optional[SensorThreshold] = None,
        reading_id: Optional[int] = None,
    ) -> AlertOutcome:
        """Create a new active alert or refresh the existing one in place.

        Args:
            machine: Machine row (needs machine_id, plant_id, name, machine_type, machine_code)
            sensor_key: Deduplication key for the physical condition
            severity: CRITICAL or WARNING
            value: The breaching reading
            threshold: Threshold band used to classify the reading
            reading_id: TelemetryEvent row to link to the alert

        Returns:
            AlertOutcome with the current alert row and whether it was created
        """
        if severity not in (AlertSeverity.CRITICAL, AlertSeverity.WARNING):
            raise ValidationError(f"Sensor anomalies must be CRITICAL or WARNING, got {severity.value}")

        unit = threshold.unit if threshold else ""
        description = self.build_description(machine, sensor_key.sensor_type, severity, value, unit)
        impact = production_impact_pct(threshold, value, severity)
        confidence = confidence_score(threshold, value)
        storage_key = sensor_key.to_storage()

        existing = self.alert_repo.find_active(machine["machine_id"], storage_key)
        created = False
        if existing is None:
            alert_id = self._insert_or_merge(machine, sensor_key, severity, description, impact, confidence)
            created = alert_id is not None
        if not created:
            existing = existing or self.alert_repo.find_active(machine["machine_id"], storage_key)
            if existing is None:
                raise RepositoryError(f"Active alert for {storage_key} vanished during merge")
            alert_id = int(existing["alert_id"])
            self.alert_repo.refresh_active(alert_id, severity.value, description, impact, confidence)

        if reading_id is not None:
            self.telemetry_repo.link_alert(reading_id, alert_id)

        alert = self.alert_repo.get_by_id(alert_id)
        if created:
            logger.info(f"Alert created: [{severity.value}] {alert['title']}")
        else:
            logger.debug("Alert %s refreshed in place for %s (%s)", alert_id, storage_key, severity.value)
        if self.emitter is not None:
            event = WebSocketEvent.ALERT_CREATED if created else WebSocketEvent.ALERT_UPDATED
            self.emitter.emit_alert(event, alert)
        return AlertOutcome(alert=alert, created=created)

    def _insert_or_merge(
        self,
        machine: Dict[str, Any],
        sensor_key: SensorKey,
        severity: AlertSeverity,
        description: str,
        impact: float,
        confidence: int,
    ) -> Optional[int]:
        """Insert a new alert; return None if a concurrent writer won the active slot."""
        now = self._clock()
        storage_key = sensor_key.to_storage()
        for attempt in range(3):
            try:
                return self.alert_repo.create(
                    alert_code=self._alert_code(machine, sensor_key.sensor_type, now, attempt),
                    plant_id=machine["plant_id"],
                    machine_id=machine["machine_id"],
                    severity=severity.value,
                    title=self.build_title(machine, sensor_key.sensor_type, severity),
                    description=description,
                    sensor_key=storage_key,
                    production_impact=impact,
                    confidence=confidence,
                    created_at=to_iso(now),
                )
            except sqlite3.IntegrityError:
                if self.alert_repo.find_active(machine["machine_id"], storage_key) is not None:
                    logger.debug("Lost insert race for %s; merging into existing alert", storage_key)
                    return None
                # Alert code collision (same millisecond); retry with a suffix
        raise RepositoryError(f"Could not allocate an alert code for {storage_key}")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def get_alert(self, alert_id: int) -> Dict[str, Any]:
        alert = self.alert_repo.get_by_id(alert_id)
        if alert is None:
            raise NotFoundError(f"Alert {alert_id} not found")
        return alert

    def _transition(self, alert_id: int, target: AlertStatus, actor: str) -> Dict[str, Any]:
        alert = self.get_alert(alert_id)
        allowed = _ALLOWED_TRANSITIONS[target]
        changed = self.alert_repo.transition(
            alert_id, target.value, to_iso(self._clock()), from_statuses=allowed
        )
        if not changed:
            current = (self.alert_repo.get_by_id(alert_id) or alert).get("status")
            raise ConflictError(
                f"Alert {alert_id} cannot move from '{current}' to '{target.value}'",
                detail={"alert_id": alert_id, "status": current},
            )

        updated = self.get_alert(alert_id)
        logger.info("Alert %s %s", alert_id, target.value)
        if self.audit_logger is not None:
            self.audit_logger.log_event(
                actor, f"alert_{target.value}", f"alert:{alert_id}", "success", previous=alert.get("status")
            )
        if self.emitter is not None:
            event = WebSocketEvent.ALERT_UPDATED if target is AlertStatus.ACKNOWLEDGED else WebSocketEvent.ALERT_RESOLVED
            self.emitter.emit_alert(event, updated)
        if self.health_service is not None:
            self.health_service.recompute(updated["plant_id"])
        return updated

    def acknowledge_alert(self, alert_id: int, actor: str = "operator") -> Dict[str, Any]:
        return self._transition(alert_id, AlertStatus.ACKNOWLEDGED, actor)

    def resolve_alert(self, alert_id: int, actor: str = "operator") -> Dict[str, Any]:
        return self._transition(alert_id, AlertStatus.RESOLVED, actor)

    def dismiss_alert(self, alert_id: int, actor: str = "operator") -> Dict[str, Any]:
        return self._transition(alert_id, AlertStatus.DISMISSED, actor)

    def resolve_active_for_machine(
        self,
        machine_id: int,
        source: Optional[TelemetrySource] = None,
        sensor_types: Optional[Iterable[str]] = None,
    ) -> List[int]:
        """Resolve active alerts of one machine, optionally narrowed by source / sensor type.

        Only the simulated reset path calls this; health is recomputed by the caller.
        """
        prefix = f"{source.tag}-" if source is not None else None
        wanted = {s.lower() for s in sensor_types} if sensor_types is not None else None
        now_iso = to_iso(self._clock())

        resolved: List[int] = []
        for alert in self.alert_repo.list_active_for_machine(machine_id, prefix):
            if wanted is not None:
                try:
                    key = SensorKey.parse(alert.get("sensor_key") or "")
                except ValueError:
                    continue
                if key.sensor_type not in wanted:
                    continue
            if self.alert_repo.transition(
                alert["alert_id"], AlertStatus.RESOLVED.value, now_iso, from_statuses=(AlertStatus.ACTIVE.value,)
            ):
                resolved.append(int(alert["alert_id"]))
                if self.emitter is not None:
                    self.emitter.emit_alert(WebSocketEvent.ALERT_RESOLVED, {**alert, "status": AlertStatus.RESOLVED.value})
        if resolved:
            logger.info("Auto-resolved %d alert(s) on machine %s", len(resolved), machine_id)
        return resolved

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_alerts(
        self,
        plant_id: Optional[int] = None,
        status: Optional[str] = None,
        severity: Optional[str] = None,
        machine_id: Optional[int] = None,
        limit: int = 100,
    ) -> List[Dict[str, Any]]:
        return self.alert_repo.list(
            plant_id=plant_id, status=status, severity=severity, machine_id=machine_id, limit=limit
        )

    def list_active_alerts(self, plant_id: Optional[int] = None, limit: int = 100) -> List[Dict[str, Any]]:
        """Active alerts, CRITICAL first, then WARNING, INFO, SYSTEM; newest first within a severity."""
        return self.alert_repo.list(plant_id=plant_id, status=AlertStatus.ACTIVE.value, limit=limit)

    def get_alert_summary(self, plant_id: Optional[int] = None) -> Dict[str, Any]:
        return self.alert_repo.summary(plant_id)
