"""
Blueprint Common Utilities
==========================

Shared helper functions for all API blueprints.
Import these instead of duplicating helper code in each blueprint.

Usage:
    from app.blueprints.api._common import (
        get_container, get_json, success, fail, get_plant_id,
        get_engine, get_alert_service, ...
    )
"""
from __future__ import annotations

import logging
from typing import Optional

from flask import current_app, request

from app.domain.exceptions import ValidationError
from app.utils.http import error_response, success_response

logger = logging.getLogger("api._common")

# ============================================================================
# CONTAINER ACCESS
# ============================================================================

def get_container():
    """
    Get the service container from Flask app config.

    Raises:
        RuntimeError: If container is not configured
    """
    container = current_app.config.get("CONTAINER")
    if not container:
        raise RuntimeError("ServiceContainer not found in app config")
    return container


def get_engine():
    return get_container().engine


def get_alert_service():
    return get_container().alert_service


def get_downtime_service():
    return get_container().downtime_service


def get_cost_threshold_service():
    return get_container().cost_threshold_service


def get_machine_service():
    return get_container().machine_service


def get_health_service():
    return get_container().plant_health_service


def get_simulator_service():
    return get_container().simulator_service


# ============================================================================
# REQUEST HELPERS
# ============================================================================

def get_json() -> dict:
    """
    Get JSON request body with silent failure.

    Returns:
        dict: Parsed JSON body or empty dict if not available
    """
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}


def get_plant_id(explicit: Optional[int] = None) -> int:
    """Plant from the argument, the ``plant_id`` query param, or the configured default."""
    if explicit is not None:
        return int(explicit)
    raw = request.args.get("plant_id")
    if raw is None or raw == "":
        return int(get_container().default_plant_id)
    try:
        return int(raw)
    except ValueError:
        raise ValidationError("plant_id must be an integer") from None


# ============================================================================
# RESPONSE HELPERS
# ============================================================================

def success(data: dict | list | None = None, status: int = 200, *, message: str | None = None):
    """
    Standard success response wrapper.

    Returns:
        Flask Response with format: {"ok": true, "data": ..., "error": null}
    """
    return success_response(data, status, message=message)


def fail(message: str, status: int = 400, *, details: dict | None = None):
    """
    Standard error response wrapper.

    Returns:
        Flask Response with format: {"ok": false, "data": null, "error": {...}}
    """
    return error_response(message, status, details=details)
