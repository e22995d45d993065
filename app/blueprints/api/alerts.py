"""
Alerts API
==========
Alert listing and the operator lifecycle (acknowledge, resolve, dismiss).
"""
import logging

from flask import Blueprint, Response, request

from app.blueprints.api._common import (
    get_alert_service,
    get_engine,
    get_json,
    get_plant_id,
    success as _success,
)
from app.schemas.alerts import AlertActionRequest, AlertListQuery
from app.utils.http import safe_route

logger = logging.getLogger(__name__)

alerts_api = Blueprint("alerts_api", __name__)


@alerts_api.get("")
@safe_route("Failed to list alerts")
def list_alerts() -> Response:
    query = AlertListQuery.model_validate({k: v for k, v in request.args.items() if k != "plant_id"})
    alerts = get_alert_service().list_alerts(
        plant_id=get_plant_id(),
        status=query.status.value if query.status else None,
        severity=query.severity.value if query.severity else None,
        machine_id=query.machine_id,
        limit=query.limit,
    )
    return _success({"alerts": alerts, "count": len(alerts)})


@alerts_api.get("/active")
@safe_route("Failed to list active alerts")
def list_active() -> Response:
    """Active alerts, most severe first"""
    plant_id = get_plant_id()
    service = get_alert_service()
    alerts = service.list_active_alerts(plant_id)
    return _success({"alerts": alerts, "count": len(alerts), "summary": service.get_alert_summary(plant_id)})


@alerts_api.get("/<int:alert_id>")
@safe_route("Failed to get alert")
def get_alert(alert_id: int) -> Response:
    return _success(get_alert_service().get_alert(alert_id))


@alerts_api.post("/<int:alert_id>/acknowledge")
@safe_route("Failed to acknowledge alert")
def acknowledge(alert_id: int) -> Response:
    body = AlertActionRequest.model_validate(get_json())
    return _success(get_engine().acknowledge_alert(alert_id, actor=body.actor))


@alerts_api.post("/<int:alert_id>/resolve")
@safe_route("Failed to resolve alert")
def resolve(alert_id: int) -> Response:
    body = AlertActionRequest.model_validate(get_json())
    return _success(get_engine().resolve_alert(alert_id, actor=body.actor))


@alerts_api.post("/<int:alert_id>/dismiss")
@safe_route("Failed to dismiss alert")
def dismiss(alert_id: int) -> Response:
    body = AlertActionRequest.model_validate(get_json())
    return _success(get_engine().dismiss_alert(alert_id, actor=body.actor))
