"""
Appointment API endpoints.

Availability lookups, booking, rescheduling, status changes, completion,
sold products and deletion for the appointments of one shop.
"""

import logging

from flask import Blueprint, request

from barbershop.controllers import get_scheduling_service
from barbershop.core.api_utils import api_response, error_response
from barbershop.core.exceptions import SchedulingError
from barbershop.schemas.dtos import (
    AppointmentCreateRequest,
    AppointmentResponse,
    AvailabilityQuery,
    CompletionRequest,
    RescheduleRequest,
    StatusChangeRequest,
    parse_date,
    parse_positive_int,
    parse_products,
)

logger = logging.getLogger(__name__)

appointment_bp = Blueprint("appointments", __name__, url_prefix="/api/shops")


def _internal_error(endpoint: str, e: Exception):
    logger.error(
        f"Error in {endpoint}: {str(e)}",
        extra={"context": {"endpoint": endpoint}},
        exc_info=True,
    )
    return api_response(False, "Internal server error", None, 500)


def _appointment_data(appointment) -> dict:
    return AppointmentResponse.from_domain(appointment).to_dict()


@appointment_bp.route("/<int:shop_id>/availability", methods=["GET"])
def api_availability(shop_id: int):
    """Return the ordered free start times of a professional for a service and day."""
    try:
        query = AvailabilityQuery.from_args(request.args)
        slots = get_scheduling_service().get_available_slots(
            shop_id,
            query.professional_id,
            query.service_id,
            query.date,
            exclude_appointment_id=query.exclude_appointment_id,
        )
        return api_response(
            True,
            "Available slots retrieved",
            {"date": query.date.isoformat(), "slots": slots},
        )
    except (SchedulingError, ValueError) as e:
        return error_response(e)
    except Exception as e:
        return _internal_error("api_availability", e)


@appointment_bp.route("/<int:shop_id>/appointments", methods=["GET"])
def api_list_appointments(shop_id: int):
    try:
        day = parse_date(request.args.get("date"))
        professional_id = request.args.get("professional_id")
        appointments = get_scheduling_service().list_appointments(
            shop_id,
            day,
            parse_positive_int(professional_id, "professional_id")
            if professional_id
            else None,
        )
        return api_response(
            True,
            "Appointments retrieved",
            [_appointment_data(a) for a in appointments],
        )
    except (SchedulingError, ValueError) as e:
        return error_response(e)
    except Exception as e:
        return _internal_error("api_list_appointments", e)


@appointment_bp.route("/<int:shop_id>/appointments", methods=["POST"])
def api_book_appointment(shop_id: int):
    """Book an appointment; a lost slot answers 409 with a user-facing message."""
    try:
        if not request.is_json:
            return api_response(False, "Expected JSON payload", None, 400)
        payload = AppointmentCreateRequest.from_json(request.get_json(silent=True))
        appointment = get_scheduling_service().book_appointment(
            shop_id,
            payload.client_id,
            payload.professional_id,
            payload.service_id,
            payload.date,
            payload.start_time,
            initial_status=payload.initial_status,
            channel=payload.channel,
            sold_products=payload.products,
        )
        return api_response(
            True, "Appointment booked", _appointment_data(appointment), 201
        )
    except (SchedulingError, ValueError) as e:
        return error_response(e)
    except Exception as e:
        return _internal_error("api_book_appointment", e)


@appointment_bp.route("/<int:shop_id>/appointments/<int:appointment_id>", methods=["GET"])
def api_get_appointment(shop_id: int, appointment_id: int):
    try:
        appointment = get_scheduling_service().get_appointment(shop_id, appointment_id)
        return api_response(True, "Appointment found", _appointment_data(appointment))
    except (SchedulingError, ValueError) as e:
        return error_response(e)
    except Exception as e:
        return _internal_error("api_get_appointment", e)


@appointment_bp.route("/<int:shop_id>/appointments/<int:appointment_id>", methods=["PUT"])
def api_reschedule_appointment(shop_id: int, appointment_id: int):
    try:
        if not request.is_json:
            return api_response(False, "Expected JSON payload", None, 400)
        payload = RescheduleRequest.from_json(request.get_json(silent=True))
        appointment = get_scheduling_service().reschedule_appointment(
            shop_id,
            appointment_id,
            payload.date,
            payload.start_time,
            professional_id=payload.professional_id,
            service_id=payload.service_id,
        )
        return api_response(
            True, "Appointment rescheduled", _appointment_data(appointment)
        )
    except (SchedulingError, ValueError) as e:
        return error_response(e)
    except Exception as e:
        return _internal_error("api_reschedule_appointment", e)


@appointment_bp.route(
    "/<int:shop_id>/appointments/<int:appointment_id>/status", methods=["POST"]
)
def api_change_status(shop_id: int, appointment_id: int):
    try:
        payload = StatusChangeRequest.from_json(request.get_json(silent=True))
        appointment = get_scheduling_service().advance_status(
            shop_id, appointment_id, payload.status
        )
        return api_response(
            True, "Appointment status updated", _appointment_data(appointment)
        )
    except (SchedulingError, ValueError) as e:
        return error_response(e)
    except Exception as e:
        return _internal_error("api_change_status", e)


@appointment_bp.route(
    "/<int:shop_id>/appointments/<int:appointment_id>/complete", methods=["POST"]
)
def api_complete_appointment(shop_id: int, appointment_id: int):
    try:
        payload = CompletionRequest.from_json(request.get_json(silent=True))
        appointment = get_scheduling_service().complete_appointment(
            shop_id,
            appointment_id,
            payload.settlement_method,
            sold_products=payload.products,
        )
        return api_response(
            True, "Appointment completed", _appointment_data(appointment)
        )
    except (SchedulingError, ValueError) as e:
        return error_response(e)
    except Exception as e:
        return _internal_error("api_complete_appointment", e)


@appointment_bp.route(
    "/<int:shop_id>/appointments/<int:appointment_id>/products", methods=["PUT"]
)
def api_update_products(shop_id: int, appointment_id: int):
    try:
        payload = request.get_json(silent=True) or {}
        products = parse_products(payload.get("products"))
        appointment = get_scheduling_service().update_sold_products(
            shop_id, appointment_id, products
        )
        return api_response(
            True, "Sold products updated", _appointment_data(appointment)
        )
    except (SchedulingError, ValueError) as e:
        return error_response(e)
    except Exception as e:
        return _internal_error("api_update_products", e)


@appointment_bp.route(
    "/<int:shop_id>/appointments/<int:appointment_id>", methods=["DELETE"]
)
def api_delete_appointment(shop_id: int, appointment_id: int):
    try:
        get_scheduling_service().delete_appointment(shop_id, appointment_id)
        return api_response(True, "Appointment deleted")
    except (SchedulingError, ValueError) as e:
        return error_response(e)
    except Exception as e:
        return _internal_error("api_delete_appointment", e)
