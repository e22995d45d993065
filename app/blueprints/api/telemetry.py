"""
Telemetry API
=============
Batch ingestion and read projections over the reading log.
"""
import logging

from flask import Blueprint, Response, request

from app.blueprints.api._common import get_engine, get_json, success as _success
from app.schemas.telemetry import ReadingHistoryQuery, TelemetryIngestRequest
from app.utils.http import safe_route

logger = logging.getLogger(__name__)

telemetry_api = Blueprint("telemetry_api", __name__)


@telemetry_api.post("/ingest")
@safe_route("Failed to ingest telemetry")
def ingest() -> Response:
    """Ingest a batch of readings for one machine"""
    body = TelemetryIngestRequest.model_validate(get_json())
    result = get_engine().ingest(body.machine_id, [r.model_dump() for r in body.readings])
    return _success(result.to_dict(), 201)


@telemetry_api.get("/<int:machine_id>/latest")
@safe_route("Failed to get latest readings")
def latest(machine_id: int) -> Response:
    readings = get_engine().get_latest_readings(machine_id)
    return _success({"machine_id": machine_id, "readings": readings})


@telemetry_api.get("/<int:machine_id>/history")
@safe_route("Failed to get reading history")
def history(machine_id: int) -> Response:
    query = ReadingHistoryQuery.model_validate(request.args.to_dict())
    rows = get_engine().get_reading_history(machine_id, query.sensor, query.hours)
    return _success({"machine_id": machine_id, "sensor": query.sensor, "hours": query.hours, "readings": rows})
