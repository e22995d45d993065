"""Batch-level machine status derivation."""

from __future__ import annotations

from typing import Iterable

from app.enums import MachineStatus, ReadingClassification

# Statuses the telemetry path is allowed to write.
DERIVED_STATUSES = frozenset({MachineStatus.ACTIVE, MachineStatus.WARNING, MachineStatus.DOWN})


def derive_machine_status(levels: Iterable[ReadingClassification]) -> MachineStatus:
    """
    Map the classifications of one ingestion batch to a machine status.

    Any CRITICAL reading puts the machine DOWN, otherwise any WARNING gives
    WARNING, otherwise ACTIVE. No memory of the previous status is used, so
    re-ingesting the same batch always produces the same result.
    """
    seen = set(levels)
    if ReadingClassification.CRITICAL in seen:
        return MachineStatus.DOWN
    if ReadingClassification.WARNING in seen:
        return MachineStatus.WARNING
    return MachineStatus.ACTIVE
