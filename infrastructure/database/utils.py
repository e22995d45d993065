"""
Database Utilities
==================

Shared utilities for database operations across repositories and services.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from typing import Any, Iterator

from app.domain.exceptions import RepositoryError

logger = logging.getLogger(__name__)


def row_to_dict(row) -> dict[str, Any]:
    """
    Convert database row to dictionary.

    Handles multiple row types:
    - None: Returns empty dict
    - dict: Returns as-is
    - sqlite3.Row: Converts keys to dict

    Examples:
        >>> row = db.execute("SELECT * FROM Machine WHERE machine_id = ?", (1,)).fetchone()
        >>> machine = row_to_dict(row)
        >>> print(machine["name"])
    """
    if row is None:
        return {}
    if isinstance(row, dict):
        return row
    return {k: row[k] for k in row.keys()}


def rows_to_dicts(rows) -> list[dict[str, Any]]:
    return [row_to_dict(r) for r in rows]


def decode_json(raw: Any, default: Any) -> Any:
    """Decode a JSON column, returning *default* for NULL or garbage."""
    if raw is None or raw == "":
        return default
    if not isinstance(raw, str):
        return raw
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        logger.debug("Ignoring undecodable JSON column: %.80s", raw)
        return default


@contextmanager
def immediate_transaction(db: sqlite3.Connection) -> Iterator[sqlite3.Cursor]:
    """
    Run a block under ``BEGIN IMMEDIATE`` so the write lock is taken before
    the first read. Commits on success, rolls back on any exception.
    """
    if db.in_transaction:
        db.commit()
    cur = db.cursor()
    cur.execute("BEGIN IMMEDIATE")
    try:
        yield cur
    except BaseException:
        db.rollback()
        raise
    else:
        db.commit()


def wrap_sqlite_error(action: str, exc: sqlite3.Error) -> RepositoryError:
    logger.error("Database error while %s: %s", action, exc)
    return RepositoryError(f"Database error while {action}", detail={"sqlite": str(exc)})
