"""
Simulator Schemas
=================

Request models for the demo simulator endpoints.
"""

from typing import Optional

from pydantic import BaseModel, Field, model_validator


class SimulatedReadings(BaseModel):
    temperature: Optional[float] = Field(default=None, description="°C")
    vibration: Optional[float] = Field(default=None, description="mm/s")
    load: Optional[float] = Field(default=None, description="% of rated load")

    def as_readings(self) -> list[dict]:
        return [
            {"sensor_type": name, "value": value}
            for name, value in (("temperature", self.temperature), ("vibration", self.vibration), ("load", self.load))
            if value is not None
        ]


class SimulatorUpdateRequest(SimulatedReadings):
    machine_id: int = Field(..., gt=0)

    @model_validator(mode="after")
    def _require_a_reading(self):
        if not self.as_readings():
            raise ValueError("at least one of temperature, vibration or load is required")
        return self


class SimulatorResetRequest(SimulatedReadings):
    """Readings are optional; when given they decide which alerts clear"""
    machine_id: int = Field(..., gt=0)


class SimulatorResetAllRequest(BaseModel):
    plant_id: Optional[int] = Field(default=None, gt=0)
