"""
Shared test fixtures for the PulseOps test suite.

Provides:
- In-memory SQLite database with all tables created
- Repository instances wired to the test database
- A controllable clock shared by every service
- Mock emitter / audit logger and a recording fake scheme matcher
- Service factories for the application services
- Helper utilities for seeding plants and machines
- A Flask ``client`` built with ``create_app`` against a temp database

Usage:
    def test_example(engine, seed):
        machine = seed.create_machine()
        result = engine.ingest(machine["machine_id"], [{"sensor_type": "temperature", "value": 95}])
        assert result.downtime_triggered
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime, timedelta, timezone
from typing import Any
from unittest.mock import MagicMock

# Ensure repository root is on sys.path so tests can import application modules
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

import pytest

from app.domain.schemes import Scheme
from app.domain.thresholds import DefaultThresholdTable, ThresholdClassifier
from infrastructure.database.repositories.alerts import AlertRepository
from infrastructure.database.repositories.downtime import DowntimeRepository
from infrastructure.database.repositories.machines import MachineRepository
from infrastructure.database.repositories.plants import PlantRepository
from infrastructure.database.repositories.telemetry import TelemetryRepository
from infrastructure.database.sqlite_handler import SQLiteDatabaseHandler

# ---------------------------------------------------------------------------
# Logging: keep test output clean
# ---------------------------------------------------------------------------
logging.getLogger("infrastructure").setLevel(logging.WARNING)
logging.getLogger("app").setLevel(logging.WARNING)


# ========================== Clock ==========================================


class FakeClock:
    """Callable clock that only moves when a test says so."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 6, 2, 8, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture()
def clock():
    return FakeClock()


# ========================== Database Fixtures ==============================


@pytest.fixture()
def db_handler():
    """In-memory SQLite database with all tables created.

    Each test gets a fresh in-memory database.
    """
    handler = SQLiteDatabaseHandler(":memory:")
    handler.create_tables()
    yield handler
    handler.close_db()


@pytest.fixture()
def db_connection(db_handler):
    """Raw sqlite3 connection for direct SQL in tests."""
    with db_handler.connection() as conn:
        yield conn


# ========================== Repository Fixtures ============================


@pytest.fixture()
def plant_repo(db_handler):
    return PlantRepository(db_handler)


@pytest.fixture()
def machine_repo(db_handler):
    return MachineRepository(db_handler)


@pytest.fixture()
def alert_repo(db_handler):
    return AlertRepository(db_handler)


@pytest.fixture()
def telemetry_repo(db_handler):
    return TelemetryRepository(db_handler)


@pytest.fixture()
def downtime_repo(db_handler):
    return DowntimeRepository(db_handler)


# ========================== Mock Service Fixtures ==========================


@pytest.fixture()
def mock_emitter():
    """Mock EmitterService for Socket.IO emission."""
    emitter = MagicMock()
    emitter.emit_alert = MagicMock()
    emitter.emit_downtime = MagicMock()
    emitter.emit_machine_status = MagicMock()
    emitter.emit_plant_health = MagicMock()
    return emitter


@pytest.fixture()
def mock_audit_logger():
    """Mock AuditLogger."""
    logger = MagicMock()
    logger.log_event = MagicMock()
    return logger


class RecordingSchemeMatcher:
    """Scheme matcher double that records every call."""

    def __init__(self, schemes: list[Scheme] | None = None, error: Exception | None = None):
        self.calls: list[tuple[Any, str]] = []
        self.error = error
        self.schemes = schemes if schemes is not None else [
            Scheme(
                name="Credit Linked Capital Subsidy Scheme",
                ministry="Ministry of MSME",
                level="central",
                max_benefit=1_500_000,
                benefit_type="subsidy",
                description="15% capital subsidy for technology upgradation",
                eligibility_criteria=("Udyam registered",),
                priority_match=True,
            )
        ]

    def match_schemes(self, profile, issue: str) -> list[Scheme]:
        self.calls.append((profile, issue))
        if self.error is not None:
            raise self.error
        return list(self.schemes)


@pytest.fixture()
def scheme_matcher():
    return RecordingSchemeMatcher()


@pytest.fixture()
def matcher_factory():
    """Build extra matchers, e.g. ``matcher_factory(error=RuntimeError("down"))``."""
    return RecordingSchemeMatcher


# ========================== Service Factory Fixtures =======================


@pytest.fixture()
def classifier():
    return ThresholdClassifier(DefaultThresholdTable.standard())


@pytest.fixture()
def health_service(plant_repo, machine_repo, alert_repo, mock_emitter, clock):
    from app.services.application.plant_health_service import PlantHealthService

    return PlantHealthService(plant_repo, machine_repo, alert_repo, emitter=mock_emitter, clock=clock)


@pytest.fixture()
def alert_service(alert_repo, telemetry_repo, mock_emitter, mock_audit_logger, health_service, clock):
    from app.services.application.alert_service import AlertService

    service = AlertService(
        alert_repo, telemetry_repo, emitter=mock_emitter, audit_logger=mock_audit_logger, clock=clock
    )
    service.health_service = health_service
    return service


@pytest.fixture()
def downtime_service(downtime_repo, machine_repo, mock_emitter, mock_audit_logger, health_service, clock):
    from app.services.application.downtime_service import DowntimeService

    service = DowntimeService(
        downtime_repo, machine_repo, emitter=mock_emitter, audit_logger=mock_audit_logger, clock=clock
    )
    service.health_service = health_service
    return service


@pytest.fixture()
def cost_service(downtime_repo, plant_repo, scheme_matcher, mock_emitter, mock_audit_logger, clock):
    from app.services.application.cost_threshold_service import CostThresholdService

    return CostThresholdService(
        downtime_repo,
        plant_repo,
        scheme_matcher,
        emitter=mock_emitter,
        audit_logger=mock_audit_logger,
        clock=clock,
    )


@pytest.fixture()
def telemetry_service(
    machine_repo, telemetry_repo, classifier, alert_service, downtime_service, health_service, mock_emitter, clock
):
    from app.services.application.telemetry_service import TelemetryService

    return TelemetryService(
        machine_repo,
        telemetry_repo,
        classifier,
        alert_service,
        downtime_service,
        health_service,
        emitter=mock_emitter,
        clock=clock,
    )


@pytest.fixture()
def machine_service(machine_repo, plant_repo, mock_emitter, mock_audit_logger, health_service):
    from app.services.application.machine_service import MachineService

    service = MachineService(machine_repo, plant_repo, emitter=mock_emitter, audit_logger=mock_audit_logger)
    service.health_service = health_service
    return service


@pytest.fixture()
def simulator_service(
    machine_repo, telemetry_repo, classifier, telemetry_service, alert_service, health_service, mock_emitter, clock
):
    from app.services.application.simulator_service import SimulatorService

    return SimulatorService(
        machine_repo,
        telemetry_repo,
        classifier,
        telemetry_service,
        alert_service,
        health_service,
        emitter=mock_emitter,
        clock=clock,
    )


@pytest.fixture()
def engine(telemetry_service, alert_service, downtime_service, cost_service):
    from app.services.application.monitoring_engine import MonitoringEngine

    return MonitoringEngine(telemetry_service, alert_service, downtime_service, cost_service)


# ========================== Seed Data Helpers ==============================

CNC_SENSOR_CONFIGS = [
    {"sensor_type": "temperature", "unit": "°C", "normal_min": 20, "normal_max": 75, "critical_max": 90},
    {"sensor_type": "vibration", "unit": "mm/s", "normal_min": 0, "normal_max": 5, "critical_max": 10},
]


class SeedData:
    """Helper to create commonly needed test data.

    Usage in tests::

        def test_something(seed):
            plant_id = seed.create_plant("North Works")
            machine = seed.create_machine(plant_id=plant_id, hourly_downtime_cost=5000)
    """

    def __init__(self, db_handler: SQLiteDatabaseHandler):
        self._db = db_handler
        self._codes = 0
        self._default_plant: int | None = None

    @property
    def plant_id(self) -> int:
        if self._default_plant is None:
            self._default_plant = self.create_plant()
        return self._default_plant

    def create_plant(
        self,
        name: str = "Pune Precision Works",
        state: str = "Maharashtra",
        udyam_tier: str = "Small",
        udyam_category: str = "Manufacturing",
    ) -> int:
        return self._db.insert_plant(name=name, state=state, udyam_tier=udyam_tier, udyam_category=udyam_category)

    def create_machine(
        self,
        name: str = "CNC Lathe 1",
        machine_type: str = "CNC Lathe",
        *,
        plant_id: int | None = None,
        machine_code: str | None = None,
        status: str = "ACTIVE",
        sensor_configs: list[dict[str, Any]] | None = None,
        hourly_downtime_cost: float = 5000,
        department: str = "Machining",
    ) -> dict[str, Any]:
        """Create a machine and return its row."""
        self._codes += 1
        machine_id = self._db.insert_machine(
            plant_id if plant_id is not None else self.plant_id,
            machine_code or f"CNC-{self._codes:02d}",
            name,
            machine_type,
            department,
            status,
            CNC_SENSOR_CONFIGS if sensor_configs is None else sensor_configs,
            hourly_downtime_cost,
            None,
        )
        return self._db.get_machine(machine_id)

    def machine(self, machine_id: int) -> dict[str, Any]:
        return self._db.get_machine(machine_id)

    def plant(self, plant_id: int | None = None) -> dict[str, Any]:
        return self._db.get_plant(plant_id if plant_id is not None else self.plant_id)

    def count(self, table: str, where: str = "1=1", params: tuple = ()) -> int:
        with self._db.connection() as conn:
            return int(conn.execute(f"SELECT COUNT(*) FROM {table} WHERE {where}", params).fetchone()[0])


@pytest.fixture()
def seed(db_handler):
    """SeedData helper for quickly populating the test database."""
    return SeedData(db_handler)


# ========================== Flask Fixtures =================================


@pytest.fixture()
def app_matcher():
    return RecordingSchemeMatcher()


@pytest.fixture()
def app(tmp_path, monkeypatch, mock_emitter, app_matcher):
    """Flask app backed by a throwaway database file."""
    monkeypatch.setenv("PULSE_SECRET_KEY", "test-secret")
    monkeypatch.setenv("PULSE_ENV", "testing")
    monkeypatch.setenv("LLM_PROVIDER", "none")
    from app import create_app

    flask_app = create_app(
        {
            "database_path": str(tmp_path / "pulseops_test.db"),
            "audit_log_path": str(tmp_path / "audit.log"),
        },
        emitter=mock_emitter,
        scheme_matcher=app_matcher,
    )
    flask_app.config["TESTING"] = True
    yield flask_app
    flask_app.config["CONTAINER"].shutdown()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def container(app):
    return app.config["CONTAINER"]
