"""
Common API utilities for consistent response formatting across all controllers.
"""

import logging
from typing import Any, Optional

from flask import jsonify

from barbershop.core.exceptions import (
    AppointmentFinalizedError,
    InvalidTransitionError,
    ResourceNotFoundError,
    ScheduleClosedError,
    SchedulingError,
    SettlementNotAllowedError,
    SlotUnavailableError,
    StoreUnavailableError,
)

logger = logging.getLogger(__name__)


def api_response(
    success: bool, message: str, data: Optional[Any] = None, status_code: int = 200
) -> tuple:
    """
    Standardized API response format for all endpoints.

    Args:
        success: Whether the operation was successful
        message: Human-readable message about the operation
        data: Optional data payload
        status_code: HTTP status code

    Returns:
        Tuple of (json_response, status_code)
    """
    response = {"success": success, "message": message}

    if data is not None:
        response["data"] = data

    return jsonify(response), status_code


# Most specific classes first
_ERROR_STATUS = (
    (SlotUnavailableError, 409),
    (InvalidTransitionError, 409),
    (AppointmentFinalizedError, 409),
    (ScheduleClosedError, 422),
    (SettlementNotAllowedError, 422),
    (ResourceNotFoundError, 404),
    (StoreUnavailableError, 503),
)


def error_response(error: Exception) -> tuple:
    """Map an engine or validation error to the JSON envelope."""
    if isinstance(error, SchedulingError):
        for error_cls, status in _ERROR_STATUS:
            if isinstance(error, error_cls):
                if status >= 500:
                    logger.error(
                        "Store failure surfaced to API",
                        extra={"context": {"error": str(error)}},
                    )
                    return api_response(
                        False, "Service temporarily unavailable", None, status
                    )
                return api_response(False, str(error), None, status)
        return api_response(False, str(error), None, 400)
    if isinstance(error, ValueError):
        return api_response(False, str(error), None, 400)
    raise error
