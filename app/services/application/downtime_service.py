"""
Downtime Service
================
Opens and closes downtime events.

An event opens when a batch puts a machine DOWN and nothing is ongoing for
it; the partial unique index on ``DowntimeEvent(machine_id) WHERE status =
'ongoing'`` makes that check-and-insert atomic. It closes only through an
explicit repair submission.
"""

from __future__ import annotations

import logging
import math
import sqlite3
from datetime import datetime
from typing import Any, Callable

from app.domain.cost_analysis import elapsed_hours
from app.domain.exceptions import ConflictError, NotFoundError, RepositoryError, ValidationError
from app.enums import DowntimeStatus, MachineStatus, WebSocketEvent
from app.utils.emitters import EmitterService
from app.utils.time import coerce_datetime, to_iso, utc_now
from infrastructure.database.repositories.downtime import DowntimeRepository
from infrastructure.database.repositories.machines import MachineRepository
from infrastructure.logging.audit import AuditLogger

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 50


class DowntimeService:
    """Downtime ledger for machines."""

    def __init__(
        self,
        downtime_repo: DowntimeRepository,
        machine_repo: MachineRepository,
        emitter: EmitterService | None = None,
        audit_logger: AuditLogger | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.downtime_repo = downtime_repo
        self.machine_repo = machine_repo
        self.emitter = emitter
        self.audit_logger = audit_logger
        self._clock = clock
        # Set by the container once PlantHealthService exists.
        self.health_service = None

    # ------------------------------------------------------------------
    # Open
    # ------------------------------------------------------------------

    def on_critical_transition(
        self,
        machine: dict[str, Any],
        causing_alert_id: int | None,
        cause: str | None = None,
        started_at: datetime | None = None,
    ) -> tuple[dict[str, Any], bool]:
        """
        Open a downtime event unless one is already ongoing for the machine.

        Returns:
            (event, opened) where ``opened`` is False when an ongoing event
            already existed and was returned unchanged.
        """
        machine_id = int(machine["machine_id"])
        existing = self.downtime_repo.get_ongoing(machine_id)
        if existing is not None:
            return existing, False

        start = started_at or self._clock()
        try:
            event_id = self.downtime_repo.open(machine_id, causing_alert_id, to_iso(start), cause)
        except sqlite3.IntegrityError:
            existing = self.downtime_repo.get_ongoing(machine_id)
            if existing is None:
                raise RepositoryError(f"Downtime insert for machine {machine_id} rejected without an ongoing event")
            logger.debug("Concurrent downtime open for machine %s; using event %s", machine_id, existing["event_id"])
            return existing, False

        event = self.downtime_repo.get(event_id)
        logger.warning(
            "Downtime opened for machine %s (%s): event=%s cause=%s",
            machine_id, machine.get("name"), event_id, cause,
        )
        if self.emitter is not None:
            self.emitter.emit_downtime(WebSocketEvent.DOWNTIME_OPENED, event)
        return event, True

    def open_manual(
        self,
        machine_id: int,
        cause: str | None = None,
        triggered_by_alert_id: int | None = None,
        actor: str = "operator",
    ) -> dict[str, Any]:
        """Operator-declared downtime: opens an event and marks the machine DOWN."""
        machine = self.machine_repo.get(machine_id)
        if machine is None:
            raise NotFoundError(f"Machine {machine_id} not found")

        event, opened = self.on_critical_transition(machine, triggered_by_alert_id, cause)
        if not opened:
            raise ConflictError(
                f"Machine {machine_id} already has ongoing downtime event {event['event_id']}",
                detail={"event_id": event["event_id"]},
            )
        self.machine_repo.set_status(machine_id, MachineStatus.DOWN.value)
        if self.audit_logger is not None:
            self.audit_logger.log_event(actor, "downtime_opened", f"machine:{machine_id}", "success", cause=cause)
        if self.health_service is not None:
            self.health_service.recompute(machine["plant_id"])
        return self.downtime_repo.get(event["event_id"])

    # ------------------------------------------------------------------
    # Close
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_repair_cost(repair_cost: Any) -> float:
        if repair_cost is None or isinstance(repair_cost, bool):
            raise ValidationError("repair_cost is required")
        try:
            cost = float(repair_cost)
        except (TypeError, ValueError):
            raise ValidationError("repair_cost must be a number") from None
        if not math.isfinite(cost) or cost < 0:
            raise ValidationError("repair_cost must be a non-negative number")
        return cost

    def on_repair_logged(
        self,
        event_id: int,
        repair_cost: Any,
        description: str | None = None,
        cause: str | None = None,
        estimated_repair_hours: float | None = None,
        actor: str = "operator",
    ) -> dict[str, Any]:
        """
        Close an ongoing event with the actual elapsed duration.

        ``estimated_repair_hours`` is a planning hint only; it is echoed back
        on the returned event but never stored as the duration.

        Raises:
            ValidationError: repair_cost missing or invalid (nothing is written)
            NotFoundError: unknown event
            ConflictError: event already resolved
        """
        cost = self._validate_repair_cost(repair_cost)

        event = self.downtime_repo.get(event_id)
        if event is None:
            raise NotFoundError(f"Downtime event {event_id} not found")
        if event["status"] != DowntimeStatus.ONGOING.value:
            raise ConflictError(
                f"Downtime event {event_id} is already resolved",
                detail={"event_id": event_id, "status": event["status"]},
            )

        end = self._clock()
        start = coerce_datetime(event["start_time"]) or end
        duration = elapsed_hours(start, end)

        closed = self.downtime_repo.close(event_id, to_iso(end), duration, cost, description, cause)
        if not closed:
            raise ConflictError(
                f"Downtime event {event_id} was closed by another request",
                detail={"event_id": event_id},
            )

        self.machine_repo.set_status(event["machine_id"], MachineStatus.ACTIVE.value)
        logger.info(
            "Downtime event %s closed: %.2fh, repair cost %.2f, machine %s back to ACTIVE",
            event_id, duration, cost, event["machine_id"],
        )
        if self.audit_logger is not None:
            self.audit_logger.log_event(
                actor, "repair_logged", f"downtime:{event_id}", "success",
                repair_cost=cost, duration_hours=duration,
            )

        updated = self.downtime_repo.get(event_id)
        if self.emitter is not None:
            self.emitter.emit_downtime(WebSocketEvent.DOWNTIME_CLOSED, updated)
        if self.health_service is not None:
            self.health_service.recompute(event["plant_id"])
        if estimated_repair_hours is not None:
            updated["estimated_repair_hours"] = estimated_repair_hours
        return updated

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_event(self, event_id: int) -> dict[str, Any]:
        event = self.downtime_repo.get(event_id)
        if event is None:
            raise NotFoundError(f"Downtime event {event_id} not found")
        return event

    def get_ongoing(self, machine_id: int) -> dict[str, Any] | None:
        return self.downtime_repo.get_ongoing(machine_id)

    def list_active(self, plant_id: int | None = None) -> list[dict[str, Any]]:
        return self.downtime_repo.list(plant_id=plant_id, status=DowntimeStatus.ONGOING.value, limit=500)

    def list_history(self, plant_id: int | None = None, limit: int = DEFAULT_HISTORY_LIMIT) -> list[dict[str, Any]]:
        return self.downtime_repo.list(plant_id=plant_id, limit=limit)
