"""
Machines API
============
"""
import logging

from flask import Blueprint, Response

from app.blueprints.api._common import get_json, get_machine_service, get_plant_id, success as _success
from app.schemas.machines import RegisterMachineRequest, UpdateMachineStatusRequest, UpdateSensorConfigsRequest
from app.utils.http import safe_route

logger = logging.getLogger(__name__)

machines_api = Blueprint("machines_api", __name__)


@machines_api.get("")
@safe_route("Failed to list machines")
def list_machines() -> Response:
    return _success(get_machine_service().list_machines(get_plant_id()))


@machines_api.post("")
@safe_route("Failed to register machine")
def register_machine() -> Response:
    body = RegisterMachineRequest.model_validate(get_json())
    machine = get_machine_service().register_machine(
        get_plant_id(body.plant_id),
        body.machine_code,
        body.name,
        body.machine_type,
        department=body.department,
        hourly_downtime_cost=body.hourly_downtime_cost,
        purchase_cost=body.purchase_cost,
        sensor_configs=[c.model_dump() for c in body.sensor_configs],
    )
    return _success(machine, 201)


@machines_api.get("/<int:machine_id>")
@safe_route("Failed to get machine")
def get_machine(machine_id: int) -> Response:
    return _success(get_machine_service().get_machine(machine_id))


@machines_api.put("/<int:machine_id>/status")
@safe_route("Failed to update machine status")
def set_status(machine_id: int) -> Response:
    """Operator status change (the only way to IDLE / MAINTENANCE)"""
    body = UpdateMachineStatusRequest.model_validate(get_json())
    return _success(get_machine_service().set_status(machine_id, body.status, actor=body.actor))


@machines_api.put("/<int:machine_id>/sensors")
@safe_route("Failed to update sensor configuration")
def set_sensor_configs(machine_id: int) -> Response:
    body = UpdateSensorConfigsRequest.model_validate(get_json())
    machine = get_machine_service().update_sensor_configs(
        machine_id, [c.model_dump() for c in body.sensor_configs]
    )
    return _success(machine)
