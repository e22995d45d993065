"""
Alert Estimate Functions
========================
Deterministic production-impact and confidence estimates for sensor alerts.

Both are bounded linear interpolations of how far a reading sits between its
warning bound and a maximum plausible value for the sensor. The fraction is
clamped to [0, 1] before scaling, so out-of-band readings saturate instead
of producing runaway numbers.
"""

from __future__ import annotations

from app.domain.thresholds import SensorThreshold
from app.enums import AlertSeverity

# Production impact is a negative throughput delta, in percent.
MIN_IMPACT_PCT = 5.0
MAX_IMPACT_PCT = 30.0

MIN_CONFIDENCE = 60.0
MAX_CONFIDENCE = 99.0


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def excursion_fraction(threshold: SensorThreshold, value: float) -> float:
    """
    Position of *value* between the breached warning bound and the maximum
    plausible value on that side, in [0, 1].

    The plausible maximum sits one critical margin beyond the critical bound.
    """
    if value > threshold.normal_max:
        start = threshold.normal_max
        plausible = threshold.critical_upper + (threshold.critical_upper - threshold.normal_max)
        span = plausible - start
        return _clamp((value - start) / span) if span > 0 else 1.0
    if value < threshold.normal_min:
        start = threshold.normal_min
        plausible = threshold.critical_lower - (threshold.normal_min - threshold.critical_lower)
        span = start - plausible
        return _clamp((start - value) / span) if span > 0 else 1.0
    return 0.0


def production_impact_pct(
    threshold: SensorThreshold | None,
    value: float,
    severity: AlertSeverity,
) -> float:
    """Estimated production delta in percent (always <= 0)."""
    if threshold is None:
        fraction = 1.0 if severity is AlertSeverity.CRITICAL else 0.0
    else:
        fraction = excursion_fraction(threshold, value)
    impact = MIN_IMPACT_PCT + (MAX_IMPACT_PCT - MIN_IMPACT_PCT) * fraction
    return -round(impact, 1)


def confidence_score(threshold: SensorThreshold | None, value: float) -> int:
    """Confidence that the alert reflects a real fault, 0-100."""
    if threshold is None:
        return int(MIN_CONFIDENCE)
    fraction = excursion_fraction(threshold, value)
    return int(round(MIN_CONFIDENCE + (MAX_CONFIDENCE - MIN_CONFIDENCE) * fraction))
