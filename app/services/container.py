from __future__ import annotations

import logging
from dataclasses import dataclass

from app.config import AppConfig
from app.domain.thresholds import ThresholdClassifier
from app.services.ai.scheme_matcher import SchemeMatcher
from app.services.application.alert_service import AlertService
from app.services.application.cost_threshold_service import CostThresholdService
from app.services.application.downtime_service import DowntimeService
from app.services.application.machine_service import MachineService
from app.services.application.monitoring_engine import MonitoringEngine
from app.services.application.plant_health_service import PlantHealthService
from app.services.application.simulator_service import SimulatorService
from app.services.application.telemetry_service import TelemetryService
from app.services.container_builder import ContainerBuilder
from app.utils.emitters import EmitterService
from infrastructure.database.repositories.alerts import AlertRepository
from infrastructure.database.repositories.downtime import DowntimeRepository
from infrastructure.database.repositories.machines import MachineRepository
from infrastructure.database.repositories.plants import PlantRepository
from infrastructure.database.repositories.telemetry import TelemetryRepository
from infrastructure.database.sqlite_handler import SQLiteDatabaseHandler
from infrastructure.logging.audit import AuditLogger

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Aggregate and manage core backend services."""

    config: AppConfig
    database: SQLiteDatabaseHandler
    plant_repo: PlantRepository
    machine_repo: MachineRepository
    alert_repo: AlertRepository
    telemetry_repo: TelemetryRepository
    downtime_repo: DowntimeRepository
    audit_logger: AuditLogger
    default_plant_id: int
    # Shared utilities
    emitter_service: EmitterService
    classifier: ThresholdClassifier
    scheme_matcher: SchemeMatcher
    # Application services
    plant_health_service: PlantHealthService
    alert_service: AlertService
    downtime_service: DowntimeService
    cost_threshold_service: CostThresholdService
    telemetry_service: TelemetryService
    machine_service: MachineService
    simulator_service: SimulatorService
    engine: MonitoringEngine

    @classmethod
    def build(
        cls,
        config: AppConfig,
        *,
        emitter: EmitterService | None = None,
        scheme_matcher: SchemeMatcher | None = None,
    ) -> "ServiceContainer":
        """Construct the service container with all dependencies.

        Args:
            config: Application configuration
            emitter: Optional emitter override (tests)
            scheme_matcher: Optional scheme matcher override (tests)
        """
        logger.info("Building ServiceContainer using ContainerBuilder...")
        builder = ContainerBuilder(config, emitter=emitter, scheme_matcher=scheme_matcher)
        container = cls(**builder.build())
        logger.info("ServiceContainer built successfully.")
        return container

    def shutdown(self) -> None:
        """Release external resources before process exit."""
        try:
            self.audit_logger.log_event("system", "shutdown", "pulseops", "success")
        except Exception as e:
            logger.warning(f"Failed to log shutdown event: {e}")
        self.audit_logger.close()
        self.database.close_db()
        logger.info("ServiceContainer shutdown complete.")
