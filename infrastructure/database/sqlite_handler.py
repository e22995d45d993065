import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from flask import Flask

from infrastructure.database.ops.alerts import AlertOperations
from infrastructure.database.ops.downtime import DowntimeOperations
from infrastructure.database.ops.machines import MachineOperations
from infrastructure.database.ops.plants import PlantOperations
from infrastructure.database.ops.telemetry import TelemetryOperations

logger = logging.getLogger(__name__)


class SQLiteDatabaseHandler(
    PlantOperations,
    MachineOperations,
    AlertOperations,
    TelemetryOperations,
    DowntimeOperations,
):
    """Thread-safe SQLite handler decoupled from Flask globals."""

    def __init__(self, database_path: str) -> None:
        self._database_path = database_path
        self._local = threading.local()

        # Ensure the directory for the database file exists
        if database_path != ":memory:":
            db_path = Path(database_path)
            if not db_path.parent.exists():
                db_path.parent.mkdir(parents=True, exist_ok=True)
                logger.info(f"Created database directory: {db_path.parent}")

    @property
    def database_path(self) -> str:
        return self._database_path

    # --- Lifecycle ------------------------------------------------------------
    def init_app(self, app: Flask | None = None) -> None:
        if app is not None:
            app.teardown_appcontext(self.close_db)
        self.create_tables()

    def get_db(self) -> sqlite3.Connection:
        """Return this thread's connection, opening it on first use."""
        connection: Optional[sqlite3.Connection] = getattr(self._local, "connection", None)
        if connection is None:
            connection = sqlite3.connect(self._database_path, check_same_thread=False, timeout=10)
            connection.row_factory = sqlite3.Row
            try:
                self._configure_connection(connection)
            except sqlite3.Error:
                connection.close()
                raise
            self._local.connection = connection
        return connection

    def _configure_connection(self, connection: sqlite3.Connection) -> None:
        """Configure SQLite connection.

        - WAL mode: concurrent readers alongside one writer
        - NORMAL synchronous: safe with WAL
        - foreign_keys: Machine/Alert/DowntimeEvent references are enforced
        """
        connection.execute("PRAGMA journal_mode=WAL")
        connection.execute("PRAGMA synchronous=NORMAL")
        connection.execute("PRAGMA foreign_keys=ON")
        connection.execute("PRAGMA temp_store=MEMORY")
        connection.commit()

    def close_db(self, _e: Optional[BaseException] = None) -> None:
        connection: Optional[sqlite3.Connection] = getattr(self._local, "connection", None)
        if connection is not None:
            connection.close()
            delattr(self._local, "connection")

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        conn = self.get_db()
        try:
            yield conn
        except BaseException:
            conn.rollback()
            raise
        else:
            conn.commit()

    # --- Schema ----------------------------------------------------------------
    def create_tables(self) -> None:
        """Creates the necessary tables in the database if they do not already exist."""
        with self.connection() as db:
            db.execute(
                """
                CREATE TABLE IF NOT EXISTS Plant (
                    plant_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    location TEXT,
                    state TEXT,
                    udyam_tier TEXT CHECK (udyam_tier IN ('Micro', 'Small', 'Medium')),
                    udyam_category TEXT,
                    overall_health INTEGER NOT NULL DEFAULT 100,
                    status TEXT NOT NULL DEFAULT 'stable',
                    last_health_sync TEXT,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
                """
            )
            db.execute(
                """
                CREATE TABLE IF NOT EXISTS Machine (
                    machine_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    plant_id INTEGER NOT NULL,
                    machine_code TEXT NOT NULL UNIQUE,
                    name TEXT NOT NULL,
                    machine_type TEXT NOT NULL,
                    department TEXT,
                    status TEXT NOT NULL DEFAULT 'ACTIVE',
                    temperature REAL,
                    vibration_level REAL,
                    load_percentage REAL,
                    sensor_configs TEXT NOT NULL DEFAULT '[]',
                    hourly_downtime_cost REAL NOT NULL DEFAULT 0,
                    purchase_cost REAL,
                    created_at TEXT,
                    updated_at TEXT,
                    FOREIGN KEY (plant_id) REFERENCES Plant(plant_id)
                )
                """
            )
            db.execute("CREATE INDEX IF NOT EXISTS idx_machine_plant ON Machine(plant_id)")

            db.execute(
                """
                CREATE TABLE IF NOT EXISTS Alert (
                    alert_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    alert_code TEXT NOT NULL UNIQUE,
                    plant_id INTEGER NOT NULL,
                    machine_id INTEGER,
                    severity TEXT NOT NULL,
                    title TEXT NOT NULL,
                    description TEXT,
                    status TEXT NOT NULL DEFAULT 'active',
                    sensor_key TEXT,
                    production_impact REAL,
                    confidence INTEGER,
                    created_at TEXT NOT NULL,
                    acknowledged_at TEXT,
                    resolved_at TEXT,
                    dismissed_at TEXT,
                    FOREIGN KEY (plant_id) REFERENCES Plant(plant_id),
                    FOREIGN KEY (machine_id) REFERENCES Machine(machine_id)
                )
                """
            )
            # At most one active alert per (machine, sensor key)
            db.execute(
                """
                CREATE UNIQUE INDEX IF NOT EXISTS uq_alert_active_sensor
                ON Alert(machine_id, sensor_key)
                WHERE status = 'active'
                """
            )
            db.execute("CREATE INDEX IF NOT EXISTS idx_alert_plant_status ON Alert(plant_id, status)")

            db.execute(
                """
                CREATE TABLE IF NOT EXISTS TelemetryEvent (
                    event_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    machine_id INTEGER NOT NULL,
                    sensor_type TEXT NOT NULL,
                    value REAL,
                    unit TEXT,
                    source TEXT NOT NULL DEFAULT 'telemetry',
                    is_anomaly INTEGER NOT NULL DEFAULT 0,
                    anomaly_severity TEXT,
                    triggered_alert_id INTEGER,
                    recorded_at TEXT NOT NULL,
                    FOREIGN KEY (machine_id) REFERENCES Machine(machine_id),
                    FOREIGN KEY (triggered_alert_id) REFERENCES Alert(alert_id)
                )
                """
            )
            db.execute(
                "CREATE INDEX IF NOT EXISTS idx_telemetry_machine_sensor "
                "ON TelemetryEvent(machine_id, sensor_type, recorded_at)"
            )

            db.execute(
                """
                CREATE TABLE IF NOT EXISTS DowntimeEvent (
                    event_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    machine_id INTEGER NOT NULL,
                    triggered_by_alert_id INTEGER,
                    start_time TEXT NOT NULL,
                    end_time TEXT,
                    duration_hours REAL,
                    repair_cost REAL,
                    repair_description TEXT,
                    cause TEXT,
                    status TEXT NOT NULL DEFAULT 'ongoing',
                    total_loss REAL,
                    scheme_triggered INTEGER NOT NULL DEFAULT 0,
                    scheme_triggered_at TEXT,
                    scheme_lock_until TEXT,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    FOREIGN KEY (machine_id) REFERENCES Machine(machine_id),
                    FOREIGN KEY (triggered_by_alert_id) REFERENCES Alert(alert_id)
                )
                """
            )
            # At most one ongoing downtime event per machine
            db.execute(
                """
                CREATE UNIQUE INDEX IF NOT EXISTS uq_downtime_ongoing_machine
                ON DowntimeEvent(machine_id)
                WHERE status = 'ongoing'
                """
            )
        logger.info("Database tables ensured at %s", self._database_path)

    def seed_default_plant(self, name: str = "Main Plant") -> int:
        """Create a first plant on an empty database and return its id."""
        existing = self.list_plants()
        if existing:
            return int(existing[0]["plant_id"])
        plant_id = self.insert_plant(name=name, udyam_tier="Small", udyam_category="Manufacturing")
        logger.info("Seeded default plant '%s' (id=%s)", name, plant_id)
        return plant_id
