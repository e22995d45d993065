"""
Cost Threshold Service
======================
Prices a downtime event and, once per event, asks the scheme matcher for
government schemes when the loss crosses :data:`SCHEME_TRIGGER_THRESHOLD`.

The one-shot flag is set only after the matcher returns (a fallback list
counts as a return). If the matcher raises, the claim is released and the
event stays eligible for a later retry.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable

from app.domain.cost_analysis import SCHEME_TRIGGER_THRESHOLD, CostAnalysis, elapsed_hours
from app.domain.exceptions import NotFoundError
from app.domain.schemes import PlantProfile, SchemeResult
from app.enums import WebSocketEvent
from app.services.ai.scheme_matcher import SchemeMatcher
from app.utils.emitters import EmitterService
from app.utils.time import coerce_datetime, utc_now
from infrastructure.database.repositories.downtime import DowntimeRepository
from infrastructure.database.repositories.plants import PlantRepository
from infrastructure.logging.audit import AuditLogger

logger = logging.getLogger(__name__)

DEFAULT_CLAIM_SECONDS = 120


def format_inr(amount: float) -> str:
    return f"₹{amount:,.0f}"


def build_issue_description(event: dict[str, Any], analysis: CostAnalysis) -> str:
    """Plain-language summary of the incident handed to the scheme matcher."""
    machine_type = event.get("machine_type") or "machine"
    return "\n".join(
        [
            f"Machine: {event.get('machine_name')} ({machine_type}, {event.get('department') or 'General'})",
            f"Downtime Duration: {analysis.duration_hours:.1f} hours",
            f"Repair Cost: {format_inr(analysis.repair_cost)}",
            f"Production Loss: {format_inr(analysis.production_loss)}",
            f"Total Financial Impact: {format_inr(analysis.total_loss)}",
            "",
            f"The business needs financial support to repair or upgrade this {machine_type} to prevent recurrence.",
        ]
    )


class CostThresholdService:
    """Cost evaluation plus the at-most-once scheme trigger."""

    def __init__(
        self,
        downtime_repo: DowntimeRepository,
        plant_repo: PlantRepository,
        scheme_matcher: SchemeMatcher,
        emitter: EmitterService | None = None,
        audit_logger: AuditLogger | None = None,
        claim_seconds: int = DEFAULT_CLAIM_SECONDS,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.downtime_repo = downtime_repo
        self.plant_repo = plant_repo
        self.scheme_matcher = scheme_matcher
        self.emitter = emitter
        self.audit_logger = audit_logger
        self.claim_seconds = claim_seconds
        self._clock = clock

    def _load_event(self, event_id: int) -> dict[str, Any]:
        event = self.downtime_repo.get(event_id)
        if event is None:
            raise NotFoundError(f"Downtime event {event_id} not found")
        return event

    def _analyse(self, event: dict[str, Any]) -> CostAnalysis:
        duration = event.get("duration_hours")
        if duration is None:
            start = coerce_datetime(event.get("start_time"))
            end = coerce_datetime(event.get("end_time")) or self._clock()
            duration = elapsed_hours(start, end) if start else 0.0
        return CostAnalysis.compute(
            event_id=int(event["event_id"]),
            duration_hours=float(duration),
            hourly_downtime_cost=float(event.get("hourly_downtime_cost") or 0),
            repair_cost=float(event.get("repair_cost") or 0),
        )

    def evaluate(self, event_id: int) -> CostAnalysis:
        """Read-only cost breakdown; safe to call for display at any time."""
        return self._analyse(self._load_event(event_id))

    def _profile_for(self, event: dict[str, Any]) -> PlantProfile:
        plant = self.plant_repo.get(event["plant_id"]) or {}
        return PlantProfile(
            name=plant.get("name") or "Unknown plant",
            state=plant.get("state"),
            udyam_tier=plant.get("udyam_tier"),
            udyam_category=plant.get("udyam_category"),
        )

    def trigger_if_needed(self, event_id: int) -> SchemeResult | None:
        """
        Invoke the scheme matcher at most once per event, and only when the
        loss reaches the threshold.

        Returns:
            The scheme result on the call that fired, otherwise None.
        """
        event = self._load_event(event_id)
        analysis = self._analyse(event)
        if not analysis.threshold_breached:
            logger.debug(
                "Event %s loss %.0f below scheme threshold %d", event_id, analysis.total_loss, SCHEME_TRIGGER_THRESHOLD
            )
            return None
        if event.get("scheme_triggered"):
            return None

        if not self.downtime_repo.claim_scheme_trigger(event_id, self.claim_seconds, self._clock()):
            logger.info("Scheme trigger for event %s already claimed or fired", event_id)
            return None

        issue = build_issue_description(event, analysis)
        try:
            schemes = self.scheme_matcher.match_schemes(self._profile_for(event), issue)
        except Exception as exc:
            logger.error("Scheme matcher failed for downtime event %s: %s", event_id, exc, exc_info=True)
            self.downtime_repo.release_scheme_claim(event_id)
            if self.audit_logger is not None:
                self.audit_logger.log_event("system", "scheme_trigger", f"downtime:{event_id}", "failed", error=str(exc))
            return None

        triggered_at = self._clock()
        if not self.downtime_repo.complete_scheme_trigger(event_id, analysis.total_loss, triggered_at):
            logger.warning("Scheme flag for event %s was set by another request", event_id)
            return None

        result = SchemeResult(cost_analysis=analysis, schemes=tuple(schemes), triggered_at=triggered_at)
        logger.info(
            "Scheme trigger fired for event %s: loss %.0f, %d schemes, potential benefit %.0f",
            event_id, analysis.total_loss, len(result.schemes), result.total_potential_benefit,
        )
        if self.audit_logger is not None:
            self.audit_logger.log_event(
                "system", "scheme_trigger", f"downtime:{event_id}", "success",
                total_loss=analysis.total_loss, schemes=len(result.schemes),
            )
        if self.emitter is not None:
            self.emitter.emit_downtime(WebSocketEvent.SCHEME_TRIGGERED, {"event_id": event_id, **result.to_dict()})
        return result
