from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timedelta
from typing import Any

from app.utils.time import to_iso
from infrastructure.database.utils import (
    immediate_transaction,
    row_to_dict,
    rows_to_dicts,
    wrap_sqlite_error,
)

logger = logging.getLogger(__name__)

_EVENT_WITH_MACHINE = """
    SELECT d.*,
           m.plant_id, m.machine_code, m.name AS machine_name, m.machine_type,
           m.department, m.hourly_downtime_cost, m.status AS machine_status
    FROM DowntimeEvent d
    JOIN Machine m ON m.machine_id = d.machine_id
"""


class DowntimeOperations:
    """Database operations for DowntimeEvent, including the one-shot scheme claim."""

    def insert_downtime(
        self,
        machine_id: int,
        triggered_by_alert_id: int | None,
        start_time: str,
        cause: str | None,
    ) -> int:
        """
        Open a downtime event.

        Raises:
            sqlite3.IntegrityError: If the machine already has an ongoing event.
        """
        db = self.get_db()
        try:
            cur = db.execute(
                """
                INSERT INTO DowntimeEvent (machine_id, triggered_by_alert_id, start_time, cause, status)
                VALUES (?, ?, ?, ?, 'ongoing')
                """,
                (machine_id, triggered_by_alert_id, start_time, cause),
            )
            db.commit()
            return int(cur.lastrowid)
        except sqlite3.IntegrityError:
            db.rollback()
            raise
        except sqlite3.Error as exc:
            db.rollback()
            raise wrap_sqlite_error("opening downtime event", exc) from exc

    def get_downtime_event(self, event_id: int) -> dict[str, Any] | None:
        try:
            row = self.get_db().execute(f"{_EVENT_WITH_MACHINE} WHERE d.event_id = ?", (event_id,)).fetchone()
            return row_to_dict(row) if row else None
        except sqlite3.Error as exc:
            raise wrap_sqlite_error("loading downtime event", exc) from exc

    def get_ongoing_downtime(self, machine_id: int) -> dict[str, Any] | None:
        try:
            row = self.get_db().execute(
                f"{_EVENT_WITH_MACHINE} WHERE d.machine_id = ? AND d.status = 'ongoing'",
                (machine_id,),
            ).fetchone()
            return row_to_dict(row) if row else None
        except sqlite3.Error as exc:
            raise wrap_sqlite_error("loading ongoing downtime", exc) from exc

    def list_downtime(
        self,
        plant_id: int | None = None,
        status: str | None = None,
        limit: int = 50,
    ) -> list[dict[str, Any]]:
        conditions: list[str] = []
        params: list[Any] = []
        if plant_id is not None:
            conditions.append("m.plant_id = ?")
            params.append(plant_id)
        if status:
            conditions.append("d.status = ?")
            params.append(status)
        query = _EVENT_WITH_MACHINE
        if conditions:
            query += " WHERE " + " AND ".join(conditions)
        query += " ORDER BY d.start_time DESC, d.event_id DESC LIMIT ?"
        params.append(limit)
        try:
            return rows_to_dicts(self.get_db().execute(query, params).fetchall())
        except sqlite3.Error as exc:
            raise wrap_sqlite_error("listing downtime events", exc) from exc

    def close_downtime(
        self,
        event_id: int,
        end_time: str,
        duration_hours: float,
        repair_cost: float,
        repair_description: str | None,
        cause: str | None,
    ) -> bool:
        """Close an ongoing event. Returns False if it was not ongoing."""
        try:
            db = self.get_db()
            cur = db.execute(
                """
                UPDATE DowntimeEvent
                SET end_time = ?,
                    duration_hours = ?,
                    repair_cost = ?,
                    repair_description = ?,
                    cause = COALESCE(?, cause),
                    status = 'resolved'
                WHERE event_id = ? AND status = 'ongoing'
                """,
                (end_time, duration_hours, repair_cost, repair_description, cause, event_id),
            )
            db.commit()
            return cur.rowcount == 1
        except sqlite3.Error as exc:
            raise wrap_sqlite_error("closing downtime event", exc) from exc

    # --- One-shot scheme trigger --------------------------------------------
    def claim_scheme_trigger(self, event_id: int, lock_seconds: int, now: datetime) -> bool:
        """
        Claim the right to run the scheme trigger for an event.

        The claim carries a TTL so a crashed holder does not block the event
        forever. Fails if the flag is already set or another live claim exists.
        """
        now_iso = to_iso(now)
        lock_until = to_iso(now + timedelta(seconds=lock_seconds))
        try:
            with immediate_transaction(self.get_db()) as cur:
                cur.execute(
                    "SELECT scheme_triggered, scheme_lock_until FROM DowntimeEvent WHERE event_id = ?",
                    (event_id,),
                )
                row = cur.fetchone()
                if row is None or row["scheme_triggered"]:
                    return False
                existing_until = row["scheme_lock_until"]
                if existing_until and existing_until > now_iso:
                    return False

                cur.execute(
                    """
                    UPDATE DowntimeEvent
                    SET scheme_lock_until = ?
                    WHERE event_id = ?
                      AND scheme_triggered = 0
                      AND (scheme_lock_until IS NULL OR scheme_lock_until <= ?)
                    """,
                    (lock_until, event_id, now_iso),
                )
                return cur.rowcount == 1
        except sqlite3.Error as exc:
            raise wrap_sqlite_error("claiming scheme trigger", exc) from exc

    def complete_scheme_trigger(self, event_id: int, total_loss: float, triggered_at: datetime) -> bool:
        """Set the one-way flag. Returns False if it was already set."""
        try:
            db = self.get_db()
            cur = db.execute(
                """
                UPDATE DowntimeEvent
                SET scheme_triggered = 1,
                    total_loss = ?,
                    scheme_triggered_at = ?,
                    scheme_lock_until = NULL
                WHERE event_id = ? AND scheme_triggered = 0
                """,
                (total_loss, to_iso(triggered_at), event_id),
            )
            db.commit()
            return cur.rowcount == 1
        except sqlite3.Error as exc:
            raise wrap_sqlite_error("completing scheme trigger", exc) from exc

    def release_scheme_claim(self, event_id: int) -> bool:
        try:
            db = self.get_db()
            cur = db.execute(
                "UPDATE DowntimeEvent SET scheme_lock_until = NULL WHERE event_id = ? AND scheme_triggered = 0",
                (event_id,),
            )
            db.commit()
            return cur.rowcount == 1
        except sqlite3.Error as exc:
            raise wrap_sqlite_error("releasing scheme claim", exc) from exc
