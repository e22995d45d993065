"""
Sensor Key Value Object
=======================
Identity of "one physical condition" used to deduplicate alerts.

Stored as ``<TAG>-<SENSOR>-<machine_id>`` (e.g. ``TEL-TEMPERATURE-7``), but
compared structurally so that callers never hand-build the string.
"""

from __future__ import annotations

from dataclasses import dataclass

from app.domain.thresholds import normalize_sensor_type
from app.enums import TelemetrySource


@dataclass(frozen=True)
class SensorKey:
    machine_id: int
    sensor_type: str
    source: TelemetrySource = TelemetrySource.TELEMETRY

    def __post_init__(self):
        object.__setattr__(self, "sensor_type", normalize_sensor_type(self.sensor_type))
        object.__setattr__(self, "source", TelemetrySource(self.source))
        if not self.sensor_type:
            raise ValueError("sensor_type is required")

    def to_storage(self) -> str:
        return f"{self.source.tag}-{self.sensor_type.upper()}-{self.machine_id}"

    @classmethod
    def parse(cls, raw: str) -> "SensorKey":
        """
        Parse the storage form back into a key.

        Raises:
            ValueError: If *raw* is not ``TAG-SENSOR-ID``
        """
        tag, sep, rest = str(raw or "").partition("-")
        sensor, sep2, machine = rest.rpartition("-")
        if not sep or not sep2 or not sensor or not machine.isdigit():
            raise ValueError(f"Malformed sensor key: {raw!r}")
        return cls(int(machine), sensor.lower(), TelemetrySource.from_tag(tag))

    def __str__(self) -> str:
        return self.to_storage()
