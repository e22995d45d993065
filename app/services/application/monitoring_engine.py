"""
Monitoring Engine
=================
Single entry point for the operations callers drive: ingest, repair
submission, and the alert lifecycle. Each call delegates to the owning
service; the engine only sequences the repair pipeline.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from app.domain.cost_analysis import CostAnalysis
from app.domain.schemes import SchemeResult
from app.enums import TelemetrySource
from app.services.application.alert_service import AlertService
from app.services.application.cost_threshold_service import CostThresholdService
from app.services.application.downtime_service import DowntimeService
from app.services.application.telemetry_service import IngestResult, TelemetryService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RepairResult:
    event: dict[str, Any]
    cost_analysis: CostAnalysis
    scheme_result: SchemeResult | None = None
    estimated_repair_hours: float | None = None

    @property
    def scheme_triggered(self) -> bool:
        return self.scheme_result is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "event": self.event,
            "cost_analysis": self.cost_analysis.to_dict(),
            "scheme_triggered": self.scheme_triggered,
            "scheme_result": self.scheme_result.to_dict() if self.scheme_result else None,
            "estimated_repair_hours": self.estimated_repair_hours,
        }


class MonitoringEngine:
    def __init__(
        self,
        telemetry_service: TelemetryService,
        alert_service: AlertService,
        downtime_service: DowntimeService,
        cost_service: CostThresholdService,
    ):
        self.telemetry_service = telemetry_service
        self.alert_service = alert_service
        self.downtime_service = downtime_service
        self.cost_service = cost_service

    def ingest(
        self,
        machine_id: int,
        readings: Sequence[Mapping[str, Any]],
        source: TelemetrySource = TelemetrySource.TELEMETRY,
    ) -> IngestResult:
        return self.telemetry_service.ingest(machine_id, readings, source)

    def submit_repair(
        self,
        event_id: int,
        repair_cost: Any,
        description: str | None = None,
        cause: str | None = None,
        estimated_repair_hours: float | None = None,
        actor: str = "operator",
    ) -> RepairResult:
        """
        Close the event, then run the cost trigger against the stored totals.

        The event is already closed when the trigger runs, so a matcher
        failure never undoes the repair.
        """
        event = self.downtime_service.on_repair_logged(
            event_id,
            repair_cost,
            description=description,
            cause=cause,
            estimated_repair_hours=estimated_repair_hours,
            actor=actor,
        )
        scheme_result = self.cost_service.trigger_if_needed(event_id)
        analysis = scheme_result.cost_analysis if scheme_result else self.cost_service.evaluate(event_id)
        return RepairResult(
            event=event,
            cost_analysis=analysis,
            scheme_result=scheme_result,
            estimated_repair_hours=estimated_repair_hours,
        )

    def acknowledge_alert(self, alert_id: int, actor: str = "operator") -> dict[str, Any]:
        return self.alert_service.acknowledge_alert(alert_id, actor=actor)

    def resolve_alert(self, alert_id: int, actor: str = "operator") -> dict[str, Any]:
        return self.alert_service.resolve_alert(alert_id, actor=actor)

    def dismiss_alert(self, alert_id: int, actor: str = "operator") -> dict[str, Any]:
        return self.alert_service.dismiss_alert(alert_id, actor=actor)

    def get_latest_readings(self, machine_id: int) -> list[dict[str, Any]]:
        return self.telemetry_service.get_latest_readings(machine_id)

    def get_reading_history(self, machine_id: int, sensor_type: str | None = None, window_hours: float = 24):
        return self.telemetry_service.get_reading_history(machine_id, sensor_type, window_hours)
