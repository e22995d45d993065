from __future__ import annotations

import json
import logging
import sqlite3
from typing import Any, Mapping

from app.utils.time import iso_now
from infrastructure.database.utils import decode_json, row_to_dict, rows_to_dicts, wrap_sqlite_error

logger = logging.getLogger(__name__)

# Sensor types that mirror into a live scalar column on the Machine row.
LIVE_READING_COLUMNS: dict[str, str] = {
    "temperature": "temperature",
    "vibration": "vibration_level",
    "load": "load_percentage",
}


def _decode_machine(row) -> dict[str, Any]:
    machine = row_to_dict(row)
    machine["sensor_configs"] = decode_json(machine.get("sensor_configs"), [])
    return machine


class MachineOperations:
    """Database operations for the Machine entity."""

    def insert_machine(
        self,
        plant_id: int,
        machine_code: str,
        name: str,
        machine_type: str,
        department: str | None,
        status: str,
        sensor_configs: list[dict[str, Any]],
        hourly_downtime_cost: float,
        purchase_cost: float | None = None,
    ) -> int:
        try:
            db = self.get_db()
            now = iso_now()
            cur = db.execute(
                """
                INSERT INTO Machine (
                    plant_id, machine_code, name, machine_type, department, status,
                    sensor_configs, hourly_downtime_cost, purchase_cost, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    plant_id,
                    machine_code,
                    name,
                    machine_type,
                    department,
                    status,
                    json.dumps(sensor_configs),
                    hourly_downtime_cost,
                    purchase_cost,
                    now,
                    now,
                ),
            )
            db.commit()
            return int(cur.lastrowid)
        except sqlite3.IntegrityError:
            self.get_db().rollback()
            raise
        except sqlite3.Error as exc:
            raise wrap_sqlite_error("inserting machine", exc) from exc

    def get_machine(self, machine_id: int) -> dict[str, Any] | None:
        try:
            row = self.get_db().execute("SELECT * FROM Machine WHERE machine_id = ?", (machine_id,)).fetchone()
            return _decode_machine(row) if row else None
        except sqlite3.Error as exc:
            raise wrap_sqlite_error("loading machine", exc) from exc

    def list_machines(self, plant_id: int | None = None) -> list[dict[str, Any]]:
        """Machines with the id of their most severe active alert, if any."""
        query = """
            SELECT m.*,
                   (SELECT a.alert_id FROM Alert a
                    WHERE a.machine_id = m.machine_id AND a.status = 'active'
                    ORDER BY CASE a.severity WHEN 'CRITICAL' THEN 0 WHEN 'WARNING' THEN 1 ELSE 2 END,
                             a.created_at DESC
                    LIMIT 1) AS active_alert_id
            FROM Machine m
        """
        params: list[Any] = []
        if plant_id is not None:
            query += " WHERE m.plant_id = ?"
            params.append(plant_id)
        query += " ORDER BY m.machine_id"
        try:
            return [_decode_machine(r) for r in self.get_db().execute(query, params).fetchall()]
        except sqlite3.Error as exc:
            raise wrap_sqlite_error("listing machines", exc) from exc

    def count_machines_by_status(self, plant_id: int) -> dict[str, int]:
        try:
            rows = self.get_db().execute(
                "SELECT status, COUNT(*) AS n FROM Machine WHERE plant_id = ? GROUP BY status",
                (plant_id,),
            ).fetchall()
            return {r["status"]: int(r["n"]) for r in rows}
        except sqlite3.Error as exc:
            raise wrap_sqlite_error("counting machines", exc) from exc

    def update_machine_status(self, machine_id: int, status: str) -> bool:
        try:
            db = self.get_db()
            cur = db.execute(
                "UPDATE Machine SET status = ?, updated_at = ? WHERE machine_id = ?",
                (status, iso_now(), machine_id),
            )
            db.commit()
            return cur.rowcount == 1
        except sqlite3.Error as exc:
            raise wrap_sqlite_error("updating machine status", exc) from exc

    def update_live_readings(self, machine_id: int, readings: Mapping[str, float | None]) -> bool:
        """Write live scalar columns; sensor types without a column are ignored."""
        assignments: list[str] = []
        params: list[Any] = []
        for sensor_type, value in readings.items():
            column = LIVE_READING_COLUMNS.get(sensor_type)
            if column is None:
                continue
            assignments.append(f"{column} = ?")
            params.append(value)
        if not assignments:
            return False
        assignments.append("updated_at = ?")
        params.extend([iso_now(), machine_id])
        try:
            db = self.get_db()
            cur = db.execute(f"UPDATE Machine SET {', '.join(assignments)} WHERE machine_id = ?", params)
            db.commit()
            return cur.rowcount == 1
        except sqlite3.Error as exc:
            raise wrap_sqlite_error("updating live readings", exc) from exc

    def update_sensor_configs(self, machine_id: int, sensor_configs: list[dict[str, Any]]) -> bool:
        try:
            db = self.get_db()
            cur = db.execute(
                "UPDATE Machine SET sensor_configs = ?, updated_at = ? WHERE machine_id = ?",
                (json.dumps(sensor_configs), iso_now(), machine_id),
            )
            db.commit()
            return cur.rowcount == 1
        except sqlite3.Error as exc:
            raise wrap_sqlite_error("updating sensor configs", exc) from exc
