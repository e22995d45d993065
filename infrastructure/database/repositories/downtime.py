from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from infrastructure.database.ops.downtime import DowntimeOperations


@dataclass(frozen=True)
class DowntimeRepository:
    """Repository facade for downtime events and the scheme claim."""

    _backend: DowntimeOperations

    def open(self, machine_id: int, triggered_by_alert_id: int | None, start_time: str, cause: str | None) -> int:
        return self._backend.insert_downtime(machine_id, triggered_by_alert_id, start_time, cause)

    def get(self, event_id: int) -> dict[str, Any] | None:
        return self._backend.get_downtime_event(event_id)

    def get_ongoing(self, machine_id: int) -> dict[str, Any] | None:
        return self._backend.get_ongoing_downtime(machine_id)

    def list(self, plant_id: int | None = None, status: str | None = None, limit: int = 50) -> list[dict[str, Any]]:
        return self._backend.list_downtime(plant_id=plant_id, status=status, limit=limit)

    def close(
        self,
        event_id: int,
        end_time: str,
        duration_hours: float,
        repair_cost: float,
        repair_description: str | None,
        cause: str | None,
    ) -> bool:
        return self._backend.close_downtime(event_id, end_time, duration_hours, repair_cost, repair_description, cause)

    def claim_scheme_trigger(self, event_id: int, lock_seconds: int, now: datetime) -> bool:
        return self._backend.claim_scheme_trigger(event_id, lock_seconds, now)

    def complete_scheme_trigger(self, event_id: int, total_loss: float, triggered_at: datetime) -> bool:
        return self._backend.complete_scheme_trigger(event_id, total_loss, triggered_at)

    def release_scheme_claim(self, event_id: int) -> bool:
        return self._backend.release_scheme_claim(event_id)
