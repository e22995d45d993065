"""
Downtime API
============
Ongoing and historical downtime, manual opening, and repair submission.
"""
import logging

from flask import Blueprint, Response, request

from app.blueprints.api._common import (
    get_cost_threshold_service,
    get_downtime_service,
    get_engine,
    get_json,
    get_plant_id,
    success as _success,
)
from app.domain.exceptions import ValidationError
from app.schemas.downtime import OpenDowntimeRequest, RepairRequest
from app.utils.http import safe_route

logger = logging.getLogger(__name__)

downtime_api = Blueprint("downtime_api", __name__)


@downtime_api.get("/active")
@safe_route("Failed to list ongoing downtime")
def list_active() -> Response:
    events = get_downtime_service().list_active(get_plant_id())
    return _success({"events": events, "count": len(events)})


@downtime_api.get("/history")
@safe_route("Failed to list downtime history")
def list_history() -> Response:
    try:
        limit = int(request.args.get("limit", 50))
    except ValueError:
        raise ValidationError("limit must be an integer") from None
    if not 1 <= limit <= 500:
        raise ValidationError("limit must be between 1 and 500")
    events = get_downtime_service().list_history(get_plant_id(), limit=limit)
    return _success({"events": events, "count": len(events)})


@downtime_api.get("/<int:event_id>")
@safe_route("Failed to get downtime event")
def get_event(event_id: int) -> Response:
    """Event with its current cost breakdown"""
    event = get_downtime_service().get_event(event_id)
    analysis = get_cost_threshold_service().evaluate(event_id)
    return _success({"event": event, "cost_analysis": analysis.to_dict()})


@downtime_api.post("")
@safe_route("Failed to open downtime")
def open_downtime() -> Response:
    body = OpenDowntimeRequest.model_validate(get_json())
    event = get_downtime_service().open_manual(
        body.machine_id, cause=body.cause, triggered_by_alert_id=body.triggered_by_alert_id, actor=body.actor
    )
    return _success(event, 201)


@downtime_api.patch("/<int:event_id>/repair")
@safe_route("Failed to log repair")
def log_repair(event_id: int) -> Response:
    """Close an ongoing event; may fire the one-time scheme trigger"""
    body = RepairRequest.model_validate(get_json())
    result = get_engine().submit_repair(
        event_id,
        body.repair_cost,
        description=body.description,
        cause=body.cause,
        estimated_repair_hours=body.estimated_repair_hours,
        actor=body.actor,
    )
    return _success(result.to_dict())
