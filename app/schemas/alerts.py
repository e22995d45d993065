"""
Alert Schemas
=============
"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from app.enums import AlertSeverity, AlertStatus


class AlertActionRequest(BaseModel):
    """Optional body for acknowledge / resolve / dismiss"""
    actor: str = Field(default="operator", min_length=1, max_length=100)


class AlertListQuery(BaseModel):
    status: Optional[AlertStatus] = None
    severity: Optional[AlertSeverity] = None
    machine_id: Optional[int] = Field(default=None, gt=0)
    limit: int = Field(default=100, ge=1, le=500)

    @field_validator("status", mode="before")
    @classmethod
    def _lower_status(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("severity", mode="before")
    @classmethod
    def _upper_severity(cls, v):
        return v.strip().upper() if isinstance(v, str) else v
