"""Dashboard API
===================
Plant overview served from the cached health column, and the diagnostics
run that recomputes it.
"""
import logging

from flask import Blueprint, Response

from app.blueprints.api._common import get_health_service, get_plant_id, success as _success
from app.utils.http import safe_route

logger = logging.getLogger(__name__)

dashboard_api = Blueprint("dashboard_api", __name__)


@dashboard_api.get("/overview")
@safe_route("Failed to load dashboard overview")
def overview() -> Response:
    return _success(get_health_service().get_overview(get_plant_id()))


@dashboard_api.post("/diagnostics")
@safe_route("Failed to run diagnostics")
def diagnostics() -> Response:
    plant_id = get_plant_id()
    logger.info("Diagnostics run requested for plant %s", plant_id)
    return _success(get_health_service().run_diagnostics(plant_id))
