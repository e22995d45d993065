"""
Downtime Schemas
================

Request models for opening downtime manually and logging repairs.
"""

from typing import Optional

from pydantic import AliasChoices, BaseModel, Field


class OpenDowntimeRequest(BaseModel):
    """Operator-declared downtime"""
    machine_id: int = Field(..., gt=0)
    cause: Optional[str] = Field(default=None, max_length=500)
    triggered_by_alert_id: Optional[int] = Field(default=None, gt=0)
    actor: str = Field(default="operator", max_length=100)


class RepairRequest(BaseModel):
    """Repair submission that closes an ongoing downtime event"""
    repair_cost: float = Field(..., ge=0, description="Repair cost (INR)")
    description: Optional[str] = Field(
        default=None,
        max_length=2000,
        validation_alias=AliasChoices("description", "repair_description"),
    )
    cause: Optional[str] = Field(default=None, max_length=500)
    estimated_repair_hours: Optional[float] = Field(
        default=None, gt=0, description="Planning hint; the stored duration is always the elapsed time"
    )
    actor: str = Field(default="operator", max_length=100)
