"""
Domain Value Objects Package
=============================
Contains immutable value objects and pure rules for the monitoring engine.

Value objects are immutable objects that represent descriptive aspects of the domain
with no conceptual identity. They are defined only by their attributes.
"""

from .anomaly import Anomaly
from .cost_analysis import SCHEME_TRIGGER_THRESHOLD, CostAnalysis
from .machine_status import derive_machine_status
from .plant_health import PlantHealth, calculate_plant_health, determine_status
from .schemes import FALLBACK_SCHEMES, PlantProfile, Scheme, SchemeResult
from .sensor_key import SensorKey
from .thresholds import Classification, DefaultThresholdTable, SensorThreshold, ThresholdClassifier

__all__ = [
    "Anomaly",
    "Classification",
    "CostAnalysis",
    "DefaultThresholdTable",
    "FALLBACK_SCHEMES",
    "PlantHealth",
    "PlantProfile",
    "SCHEME_TRIGGER_THRESHOLD",
    "Scheme",
    "SchemeResult",
    "SensorKey",
    "SensorThreshold",
    "ThresholdClassifier",
    "calculate_plant_health",
    "derive_machine_status",
    "determine_status",
]
