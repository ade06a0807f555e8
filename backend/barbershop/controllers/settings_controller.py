"""
Shop settings endpoints: weekly operating hours and slot interval.
"""

import logging

from flask import Blueprint, request

from barbershop.controllers import get_scheduling_service
from barbershop.core.api_utils import api_response, error_response
from barbershop.core.exceptions import SchedulingError
from barbershop.schemas.dtos import OperatingHoursRequest, schedule_to_dict

logger = logging.getLogger(__name__)

settings_bp = Blueprint("settings", __name__, url_prefix="/api/shops")


@settings_bp.route("/<int:shop_id>/settings/hours", methods=["GET"])
def api_get_hours(shop_id: int):
    try:
        settings = get_scheduling_service().get_settings(shop_id)
        return api_response(True, "Operating hours retrieved", schedule_to_dict(settings))
    except (SchedulingError, ValueError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error in api_get_hours: {str(e)}", exc_info=True)
        return api_response(False, "Internal server error", None, 500)


@settings_bp.route("/<int:shop_id>/settings/hours", methods=["PUT"])
def api_update_hours(shop_id: int):
    try:
        if not request.is_json:
            return api_response(False, "Expected JSON payload", None, 400)
        payload = OperatingHoursRequest.from_json(request.get_json(silent=True))
        settings = get_scheduling_service().update_operating_hours(
            shop_id, payload.schedule, payload.interval_minutes
        )
        logger.info(
            "Operating hours updated",
            extra={
                "context": {
                    "shop_id": shop_id,
                    "interval_minutes": settings.interval_minutes,
                }
            },
        )
        return api_response(True, "Operating hours updated", schedule_to_dict(settings))
    except (SchedulingError, ValueError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error in api_update_hours: {str(e)}", exc_info=True)
        return api_response(False, "Internal server error", None, 500)
