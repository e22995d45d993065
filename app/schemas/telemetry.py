"""
Telemetry Schemas
=================

Request models for telemetry ingestion.
"""

from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class SensorReadingSchema(BaseModel):
    """One reading inside an ingestion batch"""
    sensor_type: str = Field(..., min_length=1, max_length=50, description="Sensor type (temperature, vibration, ...)")
    value: float = Field(..., description="Measured value")
    unit: Optional[str] = Field(default=None, max_length=20, description="Unit override")

    @field_validator("value", mode="before")
    @classmethod
    def _reject_non_numeric(cls, v):
        # pydantic's lax mode would accept "12.5" and True
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            raise ValueError("value must be a number")
        return v

    @field_validator("sensor_type")
    @classmethod
    def _normalize_type(cls, v: str) -> str:
        v = v.strip().lower()
        if not v:
            raise ValueError("sensor_type must not be blank")
        return v


class TelemetryIngestRequest(BaseModel):
    """Batch of readings for one machine"""
    machine_id: int = Field(..., gt=0, description="Machine ID")
    readings: List[SensorReadingSchema] = Field(..., min_length=1, description="Readings, processed in order")


class ReadingHistoryQuery(BaseModel):
    sensor: Optional[str] = Field(default=None, description="Restrict to one sensor type")
    hours: float = Field(default=24, gt=0, le=24 * 90, description="Look-back window in hours")
