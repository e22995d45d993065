from __future__ import annotations

import logging
import math
import sqlite3
from typing import Any

from infrastructure.database.utils import rows_to_dicts, wrap_sqlite_error

logger = logging.getLogger(__name__)


class TelemetryOperations:
    """Append-only reading log (TelemetryEvent)."""

    def insert_reading(
        self,
        machine_id: int,
        sensor_type: str,
        value: float | None,
        unit: str,
        source: str,
        is_anomaly: bool,
        anomaly_severity: str | None,
        recorded_at: str,
    ) -> int:
        # SQLite cannot hold NaN/inf; an unclassifiable reading keeps its row with a NULL value
        if value is not None and not math.isfinite(value):
            value = None
        try:
            db = self.get_db()
            cur = db.execute(
                """
                INSERT INTO TelemetryEvent (
                    machine_id, sensor_type, value, unit, source,
                    is_anomaly, anomaly_severity, recorded_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (machine_id, sensor_type, value, unit, source, int(is_anomaly), anomaly_severity, recorded_at),
            )
            db.commit()
            return int(cur.lastrowid)
        except sqlite3.Error as exc:
            raise wrap_sqlite_error("storing reading", exc) from exc

    def link_reading_to_alert(self, reading_id: int, alert_id: int) -> bool:
        """Backfill the only mutable column of a reading."""
        try:
            db = self.get_db()
            cur = db.execute(
                "UPDATE TelemetryEvent SET triggered_alert_id = ? WHERE event_id = ?",
                (alert_id, reading_id),
            )
            db.commit()
            return cur.rowcount == 1
        except sqlite3.Error as exc:
            raise wrap_sqlite_error("linking reading to alert", exc) from exc

    def get_latest_readings(self, machine_id: int) -> list[dict[str, Any]]:
        """Newest reading per sensor type."""
        try:
            rows = self.get_db().execute(
                """
                SELECT t.*
                FROM TelemetryEvent t
                JOIN (
                    SELECT sensor_type, MAX(event_id) AS latest_id
                    FROM TelemetryEvent
                    WHERE machine_id = ?
                    GROUP BY sensor_type
                ) latest ON latest.latest_id = t.event_id
                ORDER BY t.sensor_type
                """,
                (machine_id,),
            ).fetchall()
            return rows_to_dicts(rows)
        except sqlite3.Error as exc:
            raise wrap_sqlite_error("loading latest readings", exc) from exc

    def get_reading_history(
        self,
        machine_id: int,
        sensor_type: str | None,
        since: str,
        limit: int = 1000,
    ) -> list[dict[str, Any]]:
        """Newest ``limit`` readings in the window, returned oldest first."""
        inner = "SELECT * FROM TelemetryEvent WHERE machine_id = ? AND recorded_at >= ?"
        params: list[Any] = [machine_id, since]
        if sensor_type:
            inner += " AND sensor_type = ?"
            params.append(sensor_type)
        inner += " ORDER BY recorded_at DESC, event_id DESC LIMIT ?"
        params.append(limit)
        query = f"SELECT * FROM ({inner}) ORDER BY recorded_at ASC, event_id ASC"
        try:
            return rows_to_dicts(self.get_db().execute(query, params).fetchall())
        except sqlite3.Error as exc:
            raise wrap_sqlite_error("loading reading history", exc) from exc
