from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from infrastructure.database.ops.plants import PlantOperations


@dataclass(frozen=True)
class PlantRepository:
    """Repository facade for plant operations."""

    _backend: PlantOperations

    def create(self, name: str, **profile: Any) -> int:
        return self._backend.insert_plant(name=name, **profile)

    def get(self, plant_id: int) -> dict[str, Any] | None:
        return self._backend.get_plant(plant_id)

    def list_all(self) -> list[dict[str, Any]]:
        return self._backend.list_plants()

    def health_inputs(self, plant_id: int) -> tuple[list[str], list[str]]:
        return self._backend.get_health_inputs(plant_id)

    def save_health(self, plant_id: int, health: int, status: str, synced_at: str) -> bool:
        return self._backend.update_plant_health(plant_id, health, status, synced_at)
