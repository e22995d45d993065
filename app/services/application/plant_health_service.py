"""
Plant Health Service
====================
Recomputes and caches the plant-wide health score.

The score is derived from the current Machine and Alert rows only; the
``Plant.overall_health`` / ``Plant.status`` columns are a cache written
here and nowhere else.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable

from app.domain.exceptions import NotFoundError
from app.domain.plant_health import (
    PlantHealth,
    calculate_plant_health,
    determine_status,
    pulse_label,
)
from app.enums import MachineStatus
from app.utils.emitters import EmitterService
from app.utils.time import to_iso, utc_now
from infrastructure.database.repositories.alerts import AlertRepository
from infrastructure.database.repositories.machines import MachineRepository
from infrastructure.database.repositories.plants import PlantRepository

logger = logging.getLogger(__name__)


class PlantHealthService:
    """Plant health aggregator and dashboard projection."""

    def __init__(
        self,
        plant_repo: PlantRepository,
        machine_repo: MachineRepository,
        alert_repo: AlertRepository,
        emitter: EmitterService | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.plant_repo = plant_repo
        self.machine_repo = machine_repo
        self.alert_repo = alert_repo
        self.emitter = emitter
        self._clock = clock

    def _require_plant(self, plant_id: int) -> dict[str, Any]:
        plant = self.plant_repo.get(plant_id)
        if plant is None:
            raise NotFoundError(f"Plant {plant_id} not found")
        return plant

    def recompute(self, plant_id: int) -> PlantHealth:
        """Recompute health from scratch and persist it with a fresh sync time."""
        self._require_plant(plant_id)
        statuses, severities = self.plant_repo.health_inputs(plant_id)

        health = calculate_plant_health(statuses, severities)
        status = determine_status(health)
        synced_at = self._clock()
        self.plant_repo.save_health(plant_id, health, status.value, to_iso(synced_at))

        result = PlantHealth(plant_id=plant_id, health=health, status=status, synced_at=synced_at)
        logger.debug(
            "Plant %s health recomputed: %s (%s) from %d machines, %d active alerts",
            plant_id, health, status.value, len(statuses), len(severities),
        )
        if self.emitter is not None:
            self.emitter.emit_plant_health(result.to_dict())
        return result

    def get_overview(self, plant_id: int) -> dict[str, Any]:
        """Dashboard view built from the cached health columns."""
        plant = self._require_plant(plant_id)
        counts = self.machine_repo.status_counts(plant_id)
        summary = self.alert_repo.summary(plant_id)
        health = int(plant.get("overall_health") or 0)

        return {
            "plant": plant,
            "health": health,
            "status": plant.get("status"),
            "pulse": pulse_label(health),
            "last_health_sync": plant.get("last_health_sync"),
            "machines": {
                "total": sum(counts.values()),
                "by_status": {s.value: counts.get(s.value, 0) for s in MachineStatus},
            },
            "alerts": {
                "active": summary["active"],
                "active_by_severity": summary["active_by_severity"],
            },
        }

    def run_diagnostics(self, plant_id: int) -> dict[str, Any]:
        """Force a recompute, then return the refreshed overview."""
        result = self.recompute(plant_id)
        logger.info("Diagnostics run for plant %s: health=%s status=%s", plant_id, result.health, result.status)
        return self.get_overview(plant_id)
