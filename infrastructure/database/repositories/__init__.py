"""Repository facades exposing typed accessors over low-level mixins."""

from infrastructure.database.repositories.alerts import AlertRepository
from infrastructure.database.repositories.downtime import DowntimeRepository
from infrastructure.database.repositories.machines import MachineRepository
from infrastructure.database.repositories.plants import PlantRepository
from infrastructure.database.repositories.telemetry import TelemetryRepository

__all__ = [
    "AlertRepository",
    "DowntimeRepository",
    "MachineRepository",
    "PlantRepository",
    "TelemetryRepository",
]
