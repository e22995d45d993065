"""
Schemas Module
==============

This module provides Pydantic models for request validation.
Schemas ensure data integrity and provide automatic validation.
"""

from app.schemas.alerts import AlertActionRequest, AlertListQuery
from app.schemas.downtime import OpenDowntimeRequest, RepairRequest
from app.schemas.machines import (
    RegisterMachineRequest,
    SensorConfigSchema,
    UpdateMachineStatusRequest,
    UpdateSensorConfigsRequest,
)
from app.schemas.simulator import SimulatorResetAllRequest, SimulatorResetRequest, SimulatorUpdateRequest
from app.schemas.telemetry import ReadingHistoryQuery, SensorReadingSchema, TelemetryIngestRequest

__all__ = [
    "AlertActionRequest",
    "AlertListQuery",
    "OpenDowntimeRequest",
    "RepairRequest",
    "RegisterMachineRequest",
    "SensorConfigSchema",
    "UpdateMachineStatusRequest",
    "UpdateSensorConfigsRequest",
    "SimulatorResetAllRequest",
    "SimulatorResetRequest",
    "SimulatorUpdateRequest",
    "ReadingHistoryQuery",
    "SensorReadingSchema",
    "TelemetryIngestRequest",
]
