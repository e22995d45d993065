"""
JSON envelope helpers shared by every ``/api/v1`` route.

Every body has the shape ``{"ok": bool, "data": ..., "error": {...} | null}``.
Server-side failures are logged in full and answered with a generic message.
"""

from __future__ import annotations

import functools
import logging
from typing import Any, Callable

from flask import Response, jsonify
from pydantic import ValidationError as PydanticValidationError

from app.domain.exceptions import PulseError
from app.utils.time import iso_now

_log = logging.getLogger(__name__)

_GENERIC_MESSAGES: dict[int, str] = {
    400: "Invalid request",
    404: "Resource not found",
    409: "Conflict",
    413: "Request payload too large",
    500: "An internal error occurred",
    502: "Upstream service unavailable",
}


def success_response(
    data: dict | list | None = None,
    status: int = 200,
    *,
    message: str | None = None,
) -> Response:
    payload: dict[str, Any] = {"ok": True, "data": data, "error": None}
    if message is not None:
        payload["message"] = message
    response = jsonify(payload)
    response.status_code = status
    return response


def error_response(message: str, status: int = 500, *, details: dict | None = None) -> Response:
    error: dict[str, Any] = {"message": message, "status": status, "timestamp": iso_now()}
    if details:
        error["details"] = details
    response = jsonify({"ok": False, "data": None, "error": error})
    response.status_code = status
    return response


def safe_error(exc: BaseException, status: int = 500, *, context: str = "") -> Response:
    """Log *exc* with its traceback and answer with the generic message for *status*."""
    _log.error("API error [%s] %s: %s", status, context, exc, exc_info=exc)
    return error_response(_GENERIC_MESSAGES.get(status, _GENERIC_MESSAGES[500]), status)


def pulse_error_response(exc: PulseError, *, context: str = "") -> Response:
    """4xx domain errors keep their message and detail; 5xx ones are masked."""
    if exc.http_status >= 500:
        return safe_error(exc, exc.http_status, context=context or type(exc).__name__)
    message = str(exc) or _GENERIC_MESSAGES.get(exc.http_status, "Request failed")
    return error_response(message, exc.http_status, details=exc.detail or None)


def validation_details(exc: PydanticValidationError) -> dict[str, Any]:
    """Render pydantic errors without the unserializable ``ctx``/``url`` parts."""
    return {
        "errors": [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
            for err in exc.errors()
        ]
    }


def safe_route(error_message: str = "An internal error occurred", *, error_status: int = 500) -> Callable:
    """Wrap a route so request-schema and domain errors become envelope responses.

    ::

        @alerts_api.post("/<int:alert_id>/resolve")
        @safe_route("Failed to resolve alert")
        def resolve_alert(alert_id):
            ...
    """

    def decorator(fn: Callable) -> Callable:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Response:
            try:
                return fn(*args, **kwargs)
            except PydanticValidationError as exc:
                return error_response("Invalid request body", 400, details=validation_details(exc))
            except PulseError as exc:
                return pulse_error_response(exc, context=error_message)
            except Exception as exc:
                return safe_error(exc, error_status, context=error_message)

        return wrapper

    return decorator
