"""
Downtime Cost Analysis
======================
Value objects and arithmetic for pricing a downtime event.

``SCHEME_TRIGGER_THRESHOLD`` is a single plant-wide constant; it is not
configurable per machine.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

SCHEME_TRIGGER_THRESHOLD = 50_000


def round_half_up(value: float, places: int = 0) -> float:
    """Round like a cashier (0.5 goes up), not like ``round()`` (banker's)."""
    quantum = Decimal(1).scaleb(-places)
    rounded = Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)
    return float(rounded) if places else float(int(rounded))


def elapsed_hours(start: datetime, end: datetime) -> float:
    """Hours between two instants, rounded to 2 decimals, never negative."""
    seconds = max(0.0, (end - start).total_seconds())
    return round_half_up(seconds / 3600.0, 2)


@dataclass(frozen=True)
class CostAnalysis:
    """Financial impact of one downtime event."""

    event_id: int
    duration_hours: float
    hourly_downtime_cost: float
    repair_cost: float
    production_loss: float
    total_loss: float
    threshold: int = SCHEME_TRIGGER_THRESHOLD

    @property
    def threshold_breached(self) -> bool:
        return self.total_loss >= self.threshold

    @classmethod
    def compute(
        cls,
        event_id: int,
        duration_hours: float,
        hourly_downtime_cost: float,
        repair_cost: float,
    ) -> "CostAnalysis":
        production_loss = round_half_up(duration_hours * hourly_downtime_cost)
        return cls(
            event_id=event_id,
            duration_hours=duration_hours,
            hourly_downtime_cost=hourly_downtime_cost,
            repair_cost=repair_cost,
            production_loss=production_loss,
            total_loss=repair_cost + production_loss,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "duration_hours": self.duration_hours,
            "hourly_downtime_cost": self.hourly_downtime_cost,
            "repair_cost": self.repair_cost,
            "production_loss": self.production_loss,
            "total_loss": self.total_loss,
            "threshold": self.threshold,
            "threshold_breached": self.threshold_breached,
        }
