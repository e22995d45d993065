from __future__ import annotations

import logging
import sqlite3
from typing import Any, Iterable

from infrastructure.database.utils import row_to_dict, rows_to_dicts, wrap_sqlite_error

logger = logging.getLogger(__name__)

# Timestamp column written by each lifecycle transition.
_STATUS_TIMESTAMP_COLUMNS: dict[str, str] = {
    "acknowledged": "acknowledged_at",
    "resolved": "resolved_at",
    "dismissed": "dismissed_at",
}

_SEVERITY_ORDER_SQL = (
    "CASE severity WHEN 'CRITICAL' THEN 0 WHEN 'WARNING' THEN 1 WHEN 'INFO' THEN 2 ELSE 3 END"
)


class AlertOperations:
    """Database operations for Alert entity."""

    def find_active_alert(self, machine_id: int, sensor_key: str) -> dict[str, Any] | None:
        try:
            row = self.get_db().execute(
                "SELECT * FROM Alert WHERE machine_id = ? AND sensor_key = ? AND status = 'active'",
                (machine_id, sensor_key),
            ).fetchone()
            return row_to_dict(row) if row else None
        except sqlite3.Error as exc:
            raise wrap_sqlite_error("looking up active alert", exc) from exc

    def get_alert_by_id(self, alert_id: int) -> dict[str, Any] | None:
        try:
            row = self.get_db().execute("SELECT * FROM Alert WHERE alert_id = ?", (alert_id,)).fetchone()
            return row_to_dict(row) if row else None
        except sqlite3.Error as exc:
            raise wrap_sqlite_error("loading alert", exc) from exc

    def insert_alert(
        self,
        alert_code: str,
        plant_id: int,
        machine_id: int | None,
        severity: str,
        title: str,
        description: str,
        sensor_key: str | None,
        production_impact: float | None,
        confidence: int | None,
        created_at: str,
    ) -> int:
        """
        Insert an active alert.

        Raises:
            sqlite3.IntegrityError: If an active alert already exists for the
                same (machine, sensor_key). The caller decides how to merge.
        """
        db = self.get_db()
        try:
            cur = db.execute(
                """
                INSERT INTO Alert (
                    alert_code, plant_id, machine_id, severity, title, description,
                    status, sensor_key, production_impact, confidence, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, 'active', ?, ?, ?, ?)
                """,
                (
                    alert_code,
                    plant_id,
                    machine_id,
                    severity,
                    title,
                    description,
                    sensor_key,
                    production_impact,
                    confidence,
                    created_at,
                ),
            )
            db.commit()
            return int(cur.lastrowid)
        except sqlite3.IntegrityError:
            db.rollback()
            raise
        except sqlite3.Error as exc:
            db.rollback()
            raise wrap_sqlite_error("inserting alert", exc) from exc

    def update_active_alert(
        self,
        alert_id: int,
        severity: str,
        description: str,
        production_impact: float | None,
        confidence: int | None,
    ) -> bool:
        """Refresh an active alert in place. Timestamps are left alone."""
        try:
            db = self.get_db()
            cur = db.execute(
                """
                UPDATE Alert
                SET severity = ?, description = ?, production_impact = ?, confidence = ?
                WHERE alert_id = ? AND status = 'active'
                """,
                (severity, description, production_impact, confidence, alert_id),
            )
            db.commit()
            return cur.rowcount == 1
        except sqlite3.Error as exc:
            raise wrap_sqlite_error("updating alert", exc) from exc

    def set_alert_status(
        self,
        alert_id: int,
        status: str,
        timestamp: str,
        *,
        from_statuses: Iterable[str],
    ) -> bool:
        """Conditional transition; returns False if the alert is not in *from_statuses*."""
        allowed = list(from_statuses)
        placeholders = ", ".join("?" for _ in allowed)
        column = _STATUS_TIMESTAMP_COLUMNS.get(status)
        assignments = "status = ?"
        params: list[Any] = [status]
        if column:
            assignments += f", {column} = ?"
            params.append(timestamp)
        params.append(alert_id)
        params.extend(allowed)
        try:
            db = self.get_db()
            cur = db.execute(
                f"UPDATE Alert SET {assignments} WHERE alert_id = ? AND status IN ({placeholders})",
                params,
            )
            db.commit()
            return cur.rowcount == 1
        except sqlite3.Error as exc:
            raise wrap_sqlite_error("changing alert status", exc) from exc

    def list_active_for_machine(
        self,
        machine_id: int,
        sensor_key_prefix: str | None = None,
    ) -> list[dict[str, Any]]:
        query = "SELECT * FROM Alert WHERE machine_id = ? AND status = 'active'"
        params: list[Any] = [machine_id]
        if sensor_key_prefix:
            query += " AND sensor_key LIKE ?"
            params.append(f"{sensor_key_prefix}%")
        try:
            return rows_to_dicts(self.get_db().execute(query, params).fetchall())
        except sqlite3.Error as exc:
            raise wrap_sqlite_error("listing machine alerts", exc) from exc

    def list_alerts(
        self,
        plant_id: int | None = None,
        status: str | None = None,
        severity: str | None = None,
        machine_id: int | None = None,
        limit: int = 100,
    ) -> list[dict[str, Any]]:
        """Alerts joined with machine name, most severe first, then newest."""
        conditions: list[str] = []
        params: list[Any] = []
        if plant_id is not None:
            conditions.append("a.plant_id = ?")
            params.append(plant_id)
        if status:
            conditions.append("a.status = ?")
            params.append(status)
        if severity:
            conditions.append("a.severity = ?")
            params.append(severity)
        if machine_id is not None:
            conditions.append("a.machine_id = ?")
            params.append(machine_id)

        query = """
            SELECT a.*, m.name AS machine_name, m.machine_code
            FROM Alert a
            LEFT JOIN Machine m ON m.machine_id = a.machine_id
        """
        if conditions:
            query += " WHERE " + " AND ".join(conditions)
        query += f" ORDER BY {_SEVERITY_ORDER_SQL.replace('severity', 'a.severity')}, a.created_at DESC LIMIT ?"
        params.append(limit)
        try:
            return rows_to_dicts(self.get_db().execute(query, params).fetchall())
        except sqlite3.Error as exc:
            raise wrap_sqlite_error("listing alerts", exc) from exc

    def get_alert_summary(self, plant_id: int | None = None) -> dict[str, Any]:
        where = "WHERE plant_id = ?" if plant_id is not None else ""
        params: tuple = (plant_id,) if plant_id is not None else ()
        try:
            rows = self.get_db().execute(
                f"SELECT status, severity, COUNT(*) AS n FROM Alert {where} GROUP BY status, severity",
                params,
            ).fetchall()
        except sqlite3.Error as exc:
            raise wrap_sqlite_error("summarising alerts", exc) from exc

        by_status: dict[str, int] = {}
        active_by_severity: dict[str, int] = {}
        for r in rows:
            by_status[r["status"]] = by_status.get(r["status"], 0) + int(r["n"])
            if r["status"] == "active":
                active_by_severity[r["severity"]] = int(r["n"])
        return {
            "total": sum(by_status.values()),
            "active": by_status.get("active", 0),
            "by_status": by_status,
            "active_by_severity": active_by_severity,
        }
