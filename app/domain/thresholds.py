"""
Sensor Threshold Value Objects
==============================
Immutable threshold bands and the classifier that maps a reading onto them.

A machine may configure thresholds per sensor type. When it does not, the
classifier falls back to :class:`DefaultThresholdTable`, which is loaded once
and injected rather than referenced as module state.

Classification rule (per reading)::

    critical_upper = critical_max or normal_max * 1.5
    critical_lower = critical_min or normal_min * 0.5

    CRITICAL  if value > critical_upper or value < critical_lower
    WARNING   if value > normal_max     or value < normal_min
    NORMAL    otherwise
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from app.enums import ReadingClassification

logger = logging.getLogger(__name__)

CRITICAL_UPPER_FACTOR = 1.5
CRITICAL_LOWER_FACTOR = 0.5


def normalize_sensor_type(sensor_type: str) -> str:
    return str(sensor_type or "").strip().lower()


@dataclass(frozen=True)
class SensorThreshold:
    """
    Immutable threshold band for one sensor type.

    Attributes:
        sensor_type: Sensor type key (e.g. "temperature")
        unit: Display unit (e.g. "°C")
        normal_min: Lower bound of the normal operating range
        normal_max: Upper bound of the normal operating range
        critical_min: Optional explicit lower critical bound
        critical_max: Optional explicit upper critical bound
    """

    sensor_type: str
    unit: str
    normal_min: float
    normal_max: float
    critical_min: float | None = None
    critical_max: float | None = None

    @property
    def critical_upper(self) -> float:
        if self.critical_max is not None:
            return self.critical_max
        return self.normal_max * CRITICAL_UPPER_FACTOR

    @property
    def critical_lower(self) -> float:
        if self.critical_min is not None:
            return self.critical_min
        return self.normal_min * CRITICAL_LOWER_FACTOR

    def classify(self, value: float) -> ReadingClassification:
        if value > self.critical_upper or value < self.critical_lower:
            return ReadingClassification.CRITICAL
        if value > self.normal_max or value < self.normal_min:
            return ReadingClassification.WARNING
        return ReadingClassification.NORMAL

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "SensorThreshold":
        """
        Build a threshold from a machine's sensor config entry.

        Raises:
            ValueError: If the entry lacks a sensor type or numeric bounds
        """
        sensor_type = normalize_sensor_type(config.get("sensor_type") or config.get("sensorType") or "")
        if not sensor_type:
            raise ValueError("sensor config has no sensor_type")

        normal_min = _require_number(config, "normal_min", "normalMin")
        normal_max = _require_number(config, "normal_max", "normalMax")
        if normal_min > normal_max:
            raise ValueError(f"normal_min {normal_min} exceeds normal_max {normal_max}")

        return cls(
            sensor_type=sensor_type,
            unit=str(config.get("unit") or ""),
            normal_min=normal_min,
            normal_max=normal_max,
            critical_min=_optional_number(config, "critical_min", "criticalMin"),
            critical_max=_optional_number(config, "critical_max", "criticalMax"),
        )


def _lookup(config: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in config and config[key] is not None:
            return config[key]
    return None


def _require_number(config: Mapping[str, Any], *keys: str) -> float:
    raw = _lookup(config, *keys)
    if raw is None or isinstance(raw, bool):
        raise ValueError(f"missing numeric {keys[0]}")
    value = float(raw)
    if not math.isfinite(value):
        raise ValueError(f"{keys[0]} is not finite")
    return value


def _optional_number(config: Mapping[str, Any], *keys: str) -> float | None:
    if _lookup(config, *keys) is None:
        return None
    return _require_number(config, *keys)


class DefaultThresholdTable:
    """Read-only fallback thresholds used when a machine configures none."""

    def __init__(self, thresholds: Iterable[SensorThreshold]):
        self._thresholds = MappingProxyType(
            {normalize_sensor_type(t.sensor_type): t for t in thresholds}
        )

    @classmethod
    def standard(cls) -> "DefaultThresholdTable":
        return cls(
            [
                SensorThreshold("temperature", "°C", 20, 75, critical_max=90),
                SensorThreshold("vibration", "mm/s", 0, 5, critical_max=10),
                SensorThreshold("load", "%", 0, 85, critical_max=95),
                SensorThreshold("rpm", "RPM", 100, 3000, critical_max=3500),
                SensorThreshold("pressure", "bar", 2, 8, critical_max=10),
                SensorThreshold("current", "A", 0, 50, critical_max=65),
            ]
        )

    def get(self, sensor_type: str) -> SensorThreshold | None:
        return self._thresholds.get(normalize_sensor_type(sensor_type))

    def sensor_types(self) -> list[str]:
        return list(self._thresholds.keys())

    def __contains__(self, sensor_type: object) -> bool:
        return isinstance(sensor_type, str) and normalize_sensor_type(sensor_type) in self._thresholds


@dataclass(frozen=True)
class Classification:
    """Result of classifying one reading."""

    sensor_type: str
    value: float
    level: ReadingClassification
    threshold: SensorThreshold | None = None

    @property
    def is_anomaly(self) -> bool:
        return self.level.is_anomaly

    @property
    def unit(self) -> str:
        return self.threshold.unit if self.threshold else ""


class ThresholdClassifier:
    """Pure classifier: (sensor type, value, machine configs) -> level."""

    def __init__(self, defaults: DefaultThresholdTable):
        self._defaults = defaults

    @property
    def defaults(self) -> DefaultThresholdTable:
        return self._defaults

    def resolve_threshold(
        self,
        sensor_type: str,
        configs: Iterable[Mapping[str, Any]] | None = None,
    ) -> SensorThreshold | None:
        """Machine config for the sensor type wins, then the default table."""
        wanted = normalize_sensor_type(sensor_type)
        for entry in configs or ():
            if not isinstance(entry, Mapping):
                continue
            entry_type = normalize_sensor_type(entry.get("sensor_type") or entry.get("sensorType") or "")
            if entry_type != wanted:
                continue
            try:
                return SensorThreshold.from_config(entry)
            except (TypeError, ValueError) as exc:
                logger.debug("Skipping malformed %s sensor config: %s", wanted, exc)
        return self._defaults.get(wanted)

    def classify(
        self,
        sensor_type: str,
        value: float,
        configs: Iterable[Mapping[str, Any]] | None = None,
    ) -> Classification:
        sensor_type = normalize_sensor_type(sensor_type)
        threshold = self.resolve_threshold(sensor_type, configs)

        if threshold is None:
            return Classification(sensor_type, value, ReadingClassification.UNCLASSIFIABLE)
        try:
            numeric = float(value)
        except (TypeError, ValueError):
            return Classification(sensor_type, value, ReadingClassification.UNCLASSIFIABLE, threshold)
        if not math.isfinite(numeric):
            return Classification(sensor_type, numeric, ReadingClassification.UNCLASSIFIABLE, threshold)

        return Classification(sensor_type, numeric, threshold.classify(numeric), threshold)
