"""
Simulator API
=============
Demo endpoints that push simulated readings and reset machines.
"""
import logging

from flask import Blueprint, Response

from app.blueprints.api._common import get_json, get_plant_id, get_simulator_service, success as _success
from app.schemas.simulator import SimulatorResetAllRequest, SimulatorResetRequest, SimulatorUpdateRequest
from app.utils.http import safe_route

logger = logging.getLogger(__name__)

simulator_api = Blueprint("simulator_api", __name__)


@simulator_api.post("/update-machine")
@safe_route("Failed to apply simulated readings")
def update_machine() -> Response:
    body = SimulatorUpdateRequest.model_validate(get_json())
    result = get_simulator_service().update_machine(
        body.machine_id, temperature=body.temperature, vibration=body.vibration, load=body.load
    )
    return _success(result.to_dict())


@simulator_api.post("/reset-machine")
@safe_route("Failed to reset machine")
def reset_machine() -> Response:
    body = SimulatorResetRequest.model_validate(get_json())
    return _success(get_simulator_service().reset_machine(body.machine_id, body.as_readings() or None))


@simulator_api.post("/reset-all")
@safe_route("Failed to reset machines")
def reset_all() -> Response:
    body = SimulatorResetAllRequest.model_validate(get_json())
    return _success(get_simulator_service().reset_all(get_plant_id(body.plant_id)))
