"""
Enums Module
============

This module provides enumeration types for the PulseOps application.
Enums ensure type safety and consistency across the codebase.
"""

from app.enums.common import (
    AlertSeverity,
    AlertStatus,
    DowntimeStatus,
    MachineStatus,
    PlantStatus,
    ReadingClassification,
    TelemetrySource,
)
from app.enums.events import WebSocketEvent

__all__ = [
    "AlertSeverity",
    "AlertStatus",
    "DowntimeStatus",
    "MachineStatus",
    "PlantStatus",
    "ReadingClassification",
    "TelemetrySource",
    "WebSocketEvent",
]
