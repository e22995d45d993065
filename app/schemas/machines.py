"""
Machine Schemas
===============

Pydantic models for machine registration, sensor configuration and
operator status changes.
"""

from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from app.enums import MachineStatus


class SensorConfigSchema(BaseModel):
    """Per-machine threshold band for one sensor type"""
    sensor_type: str = Field(..., min_length=1, max_length=50)
    unit: str = Field(default="", max_length=20)
    normal_min: float
    normal_max: float
    critical_min: Optional[float] = None
    critical_max: Optional[float] = None

    @field_validator("sensor_type")
    @classmethod
    def _normalize_type(cls, v: str) -> str:
        return v.strip().lower()

    @model_validator(mode="after")
    def _check_bands(self):
        if self.normal_min > self.normal_max:
            raise ValueError("normal_min must not exceed normal_max")
        if self.critical_max is not None and self.critical_max < self.normal_max:
            raise ValueError("critical_max must be at least normal_max")
        if self.critical_min is not None and self.critical_min > self.normal_min:
            raise ValueError("critical_min must be at most normal_min")
        return self


def _unique_sensor_types(configs: List[SensorConfigSchema]) -> List[SensorConfigSchema]:
    seen = set()
    for config in configs:
        if config.sensor_type in seen:
            raise ValueError(f"duplicate sensor_type '{config.sensor_type}'")
        seen.add(config.sensor_type)
    return configs


class RegisterMachineRequest(BaseModel):
    """Request model for registering a machine"""
    plant_id: Optional[int] = Field(default=None, gt=0, description="Plant ID (defaults to the configured plant)")
    machine_code: str = Field(..., min_length=1, max_length=50, description="Unique machine code, e.g. CNC-01")
    name: str = Field(..., min_length=1, max_length=100)
    machine_type: str = Field(..., min_length=1, max_length=50)
    department: Optional[str] = Field(default=None, max_length=100)
    hourly_downtime_cost: float = Field(default=0, ge=0, description="Production loss per hour of downtime (INR)")
    purchase_cost: Optional[float] = Field(default=None, ge=0)
    sensor_configs: List[SensorConfigSchema] = Field(default_factory=list)

    @field_validator("sensor_configs")
    @classmethod
    def _check_unique(cls, v: List[SensorConfigSchema]) -> List[SensorConfigSchema]:
        return _unique_sensor_types(v)


class UpdateSensorConfigsRequest(BaseModel):
    sensor_configs: List[SensorConfigSchema] = Field(..., description="Replaces the machine's sensor configuration")

    @field_validator("sensor_configs")
    @classmethod
    def _check_unique(cls, v: List[SensorConfigSchema]) -> List[SensorConfigSchema]:
        return _unique_sensor_types(v)


class UpdateMachineStatusRequest(BaseModel):
    """Operator status change"""
    status: MachineStatus
    actor: str = Field(default="operator", max_length=100)

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v
