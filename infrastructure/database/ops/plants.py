from __future__ import annotations

import logging
import sqlite3
from typing import Any

from infrastructure.database.utils import row_to_dict, rows_to_dicts, wrap_sqlite_error

logger = logging.getLogger(__name__)


class PlantOperations:
    """Database operations for the Plant entity."""

    def insert_plant(
        self,
        name: str,
        location: str | None = None,
        state: str | None = None,
        udyam_tier: str | None = None,
        udyam_category: str | None = None,
        created_at: str | None = None,
    ) -> int:
        try:
            db = self.get_db()
            cur = db.execute(
                """
                INSERT INTO Plant (name, location, state, udyam_tier, udyam_category, created_at)
                VALUES (?, ?, ?, ?, ?, COALESCE(?, CURRENT_TIMESTAMP))
                """,
                (name, location, state, udyam_tier, udyam_category, created_at),
            )
            db.commit()
            return int(cur.lastrowid)
        except sqlite3.Error as exc:
            raise wrap_sqlite_error("inserting plant", exc) from exc

    def get_plant(self, plant_id: int) -> dict[str, Any] | None:
        try:
            row = self.get_db().execute("SELECT * FROM Plant WHERE plant_id = ?", (plant_id,)).fetchone()
            return row_to_dict(row) if row else None
        except sqlite3.Error as exc:
            raise wrap_sqlite_error("loading plant", exc) from exc

    def list_plants(self) -> list[dict[str, Any]]:
        try:
            return rows_to_dicts(self.get_db().execute("SELECT * FROM Plant ORDER BY plant_id").fetchall())
        except sqlite3.Error as exc:
            raise wrap_sqlite_error("listing plants", exc) from exc

    def get_health_inputs(self, plant_id: int) -> tuple[list[str], list[str]]:
        """Return (machine statuses, active alert severities) for one plant."""
        try:
            db = self.get_db()
            statuses = [
                r["status"]
                for r in db.execute("SELECT status FROM Machine WHERE plant_id = ?", (plant_id,)).fetchall()
            ]
            severities = [
                r["severity"]
                for r in db.execute(
                    "SELECT severity FROM Alert WHERE plant_id = ? AND status = 'active'",
                    (plant_id,),
                ).fetchall()
            ]
            return statuses, severities
        except sqlite3.Error as exc:
            raise wrap_sqlite_error("reading plant health inputs", exc) from exc

    def update_plant_health(self, plant_id: int, health: int, status: str, synced_at: str) -> bool:
        try:
            db = self.get_db()
            cur = db.execute(
                """
                UPDATE Plant
                SET overall_health = ?, status = ?, last_health_sync = ?
                WHERE plant_id = ?
                """,
                (health, status, synced_at, plant_id),
            )
            db.commit()
            return cur.rowcount == 1
        except sqlite3.Error as exc:
            raise wrap_sqlite_error("persisting plant health", exc) from exc
