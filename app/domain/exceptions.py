"""Error types raised by PulseOps services.

Each class carries the HTTP status that ``app.utils.http`` answers with, so
routes never map errors by hand::

    PulseError                      500
    ├── ValidationError             400  bad reading, repair cost, status ...
    ├── NotFoundError               404  unknown machine, alert, event, plant
    ├── ConflictError               409  illegal alert move, second repair,
    │                                    second ongoing downtime
    ├── ServiceError                500
    │   ├── RepositoryError         500  sqlite failure
    │   └── ExternalServiceError    502  LLM backend failure
    └── ConfigurationError          500  bad PULSE_* / LLM_* settings

``detail`` is a JSON-safe dict returned to the caller for 4xx errors (for
example the current alert status on a 409) and only logged for 5xx.
"""

from __future__ import annotations


class PulseError(Exception):
    http_status: int = 500

    def __init__(self, message: str = "", *, detail: dict | None = None) -> None:
        super().__init__(message)
        self.detail = detail or {}


class ValidationError(PulseError):
    http_status: int = 400


class NotFoundError(PulseError):
    http_status: int = 404


class ConflictError(PulseError):
    """The entity exists but is in a state that forbids the operation."""

    http_status: int = 409


class ServiceError(PulseError):
    http_status: int = 500


class RepositoryError(ServiceError):
    http_status: int = 500


class ExternalServiceError(ServiceError):
    http_status: int = 502


class ConfigurationError(PulseError):
    http_status: int = 500
