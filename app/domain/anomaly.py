"""
Anomaly Domain Objects
=======================
Dataclasses describing anomalies found while ingesting a telemetry batch.
"""

from dataclasses import dataclass
from typing import Any

from app.enums import ReadingClassification


@dataclass
class Anomaly:
    """A reading classified WARNING or CRITICAL, with the alert it fed."""

    sensor_type: str
    value: float
    unit: str
    severity: ReadingClassification
    reading_id: int
    alert_id: int | None = None
    alert_code: str | None = None
    alert_created: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "sensor_type": self.sensor_type,
            "value": self.value,
            "unit": self.unit,
            "severity": self.severity.value,
            "reading_id": self.reading_id,
            "alert_id": self.alert_id,
            "alert_code": self.alert_code,
            "alert_created": self.alert_created,
        }
