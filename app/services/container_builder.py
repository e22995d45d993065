"""
Container Builder
=================

Extracts service container construction logic from ServiceContainer.build().

Each build_*() method focuses on one layer, so tests can build the
infrastructure against a throwaway database and swap in their own
emitter or scheme matcher.

Architecture:
- ContainerBuilder: Orchestrates the construction of all services
- Each build_*() method: Constructs a specific layer
- ServiceContainer.build(): Delegates to ContainerBuilder.build()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from app.config import AppConfig
from app.domain.thresholds import DefaultThresholdTable, ThresholdClassifier
from app.services.ai.llm_backends import create_backend
from app.services.ai.scheme_matcher import LLMSchemeMatcher, SchemeMatcher
from app.services.application.alert_service import AlertService
from app.services.application.cost_threshold_service import CostThresholdService
from app.services.application.downtime_service import DowntimeService
from app.services.application.machine_service import MachineService
from app.services.application.monitoring_engine import MonitoringEngine
from app.services.application.plant_health_service import PlantHealthService
from app.services.application.simulator_service import SimulatorService
from app.services.application.telemetry_service import TelemetryService
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
class InfrastructureComponents:
    """Infrastructure layer components (database, repos, logging)."""

    database: SQLiteDatabaseHandler
    plant_repo: PlantRepository
    machine_repo: MachineRepository
    alert_repo: AlertRepository
    telemetry_repo: TelemetryRepository
    downtime_repo: DowntimeRepository
    audit_logger: AuditLogger
    default_plant_id: int


@dataclass
class ApplicationComponents:
    """Application-level services."""

    classifier: ThresholdClassifier
    scheme_matcher: SchemeMatcher
    plant_health_service: PlantHealthService
    alert_service: AlertService
    downtime_service: DowntimeService
    cost_threshold_service: CostThresholdService
    telemetry_service: TelemetryService
    machine_service: MachineService
    simulator_service: SimulatorService
    engine: MonitoringEngine


class ContainerBuilder:
    """
    Builder for constructing the service container.

    ``emitter`` and ``scheme_matcher`` may be injected; otherwise the
    Socket.IO emitter and the LLM-backed matcher from config are used.
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        emitter: EmitterService | None = None,
        scheme_matcher: SchemeMatcher | None = None,
    ):
        self.config = config
        self._emitter = emitter
        self._scheme_matcher = scheme_matcher

    def build_infrastructure(self) -> InfrastructureComponents:
        logger.info("Building infrastructure components...")

        audit_logger = AuditLogger(self.config.audit_log_path, self.config.log_level)
        database = SQLiteDatabaseHandler(self.config.database_path)
        database.init_app(None)

        default_plant_id = self.config.default_plant_id
        if database.get_plant(default_plant_id) is None:
            default_plant_id = database.seed_default_plant()

        infra = InfrastructureComponents(
            database=database,
            plant_repo=PlantRepository(database),
            machine_repo=MachineRepository(database),
            alert_repo=AlertRepository(database),
            telemetry_repo=TelemetryRepository(database),
            downtime_repo=DowntimeRepository(database),
            audit_logger=audit_logger,
            default_plant_id=default_plant_id,
        )
        logger.info("✓ Infrastructure components initialized (default plant %s)", default_plant_id)
        return infra

    def build_emitter(self) -> EmitterService:
        if self._emitter is not None:
            return self._emitter
        # Import socketio here to avoid circular dependency at module level
        from app.extensions import socketio

        return EmitterService(sio=socketio)

    def build_scheme_matcher(self) -> SchemeMatcher:
        if self._scheme_matcher is not None:
            return self._scheme_matcher
        backend = create_backend(
            self.config.llm_provider,
            api_key=self.config.llm_api_key,
            model=self.config.llm_model,
            base_url=self.config.llm_base_url or None,
            timeout=self.config.llm_timeout,
        )
        return LLMSchemeMatcher(backend, max_tokens=self.config.llm_max_tokens)

    def build_application_components(
        self, infra: InfrastructureComponents, emitter: EmitterService
    ) -> ApplicationComponents:
        logger.info("Building application components...")

        classifier = ThresholdClassifier(DefaultThresholdTable.standard())
        scheme_matcher = self.build_scheme_matcher()

        plant_health_service = PlantHealthService(
            infra.plant_repo, infra.machine_repo, infra.alert_repo, emitter=emitter
        )
        alert_service = AlertService(
            infra.alert_repo, infra.telemetry_repo, emitter=emitter, audit_logger=infra.audit_logger
        )
        downtime_service = DowntimeService(
            infra.downtime_repo, infra.machine_repo, emitter=emitter, audit_logger=infra.audit_logger
        )
        machine_service = MachineService(
            infra.machine_repo, infra.plant_repo, emitter=emitter, audit_logger=infra.audit_logger
        )
        # Wire health recompute into the services that change machine/alert state
        alert_service.health_service = plant_health_service
        downtime_service.health_service = plant_health_service
        machine_service.health_service = plant_health_service

        cost_threshold_service = CostThresholdService(
            infra.downtime_repo,
            infra.plant_repo,
            scheme_matcher,
            emitter=emitter,
            audit_logger=infra.audit_logger,
            claim_seconds=self.config.scheme_lock_seconds,
        )
        telemetry_service = TelemetryService(
            infra.machine_repo,
            infra.telemetry_repo,
            classifier,
            alert_service,
            downtime_service,
            plant_health_service,
            emitter=emitter,
        )
        simulator_service = SimulatorService(
            infra.machine_repo,
            infra.telemetry_repo,
            classifier,
            telemetry_service,
            alert_service,
            plant_health_service,
            emitter=emitter,
        )
        engine = MonitoringEngine(telemetry_service, alert_service, downtime_service, cost_threshold_service)

        logger.info("✓ Application components initialized")
        return ApplicationComponents(
            classifier=classifier,
            scheme_matcher=scheme_matcher,
            plant_health_service=plant_health_service,
            alert_service=alert_service,
            downtime_service=downtime_service,
            cost_threshold_service=cost_threshold_service,
            telemetry_service=telemetry_service,
            machine_service=machine_service,
            simulator_service=simulator_service,
            engine=engine,
        )

    def build(self) -> dict[str, Any]:
        """
        Build the complete service container.

        Returns:
            Dictionary with all components for ServiceContainer construction
        """
        infra = self.build_infrastructure()
        emitter = self.build_emitter()
        app = self.build_application_components(infra, emitter)

        return {
            "config": self.config,
            "database": infra.database,
            "plant_repo": infra.plant_repo,
            "machine_repo": infra.machine_repo,
            "alert_repo": infra.alert_repo,
            "telemetry_repo": infra.telemetry_repo,
            "downtime_repo": infra.downtime_repo,
            "audit_logger": infra.audit_logger,
            "default_plant_id": infra.default_plant_id,
            "emitter_service": emitter,
            "classifier": app.classifier,
            "scheme_matcher": app.scheme_matcher,
            "plant_health_service": app.plant_health_service,
            "alert_service": app.alert_service,
            "downtime_service": app.downtime_service,
            "cost_threshold_service": app.cost_threshold_service,
            "telemetry_service": app.telemetry_service,
            "machine_service": app.machine_service,
            "simulator_service": app.simulator_service,
            "engine": app.engine,
        }
