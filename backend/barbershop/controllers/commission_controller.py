"""
Commission report endpoint.
"""

import logging

from flask import Blueprint, request

from barbershop.controllers import get_scheduling_service
from barbershop.core.api_utils import api_response, error_response
from barbershop.core.exceptions import SchedulingError
from barbershop.schemas.dtos import CommissionQuery, CommissionReportResponse

logger = logging.getLogger(__name__)

commission_bp = Blueprint("commission", __name__, url_prefix="/api/shops")


@commission_bp.route(
    "/<int:shop_id>/professionals/<int:professional_id>/commission", methods=["GET"]
)
def api_commission_report(shop_id: int, professional_id: int):
    """
    Commission owed to a professional for completed appointments in a period.

    Query parameters:
        start, end: inclusive period, YYYY-MM-DD
        include_products: also pay product commission on sold products
    """
    try:
        query = CommissionQuery.from_args(request.args)
        report = get_scheduling_service().commission_report(
            shop_id,
            professional_id,
            query.start_date,
            query.end_date,
            include_products=query.include_products,
        )
        return api_response(
            True,
            "Commission report generated",
            CommissionReportResponse.from_report(report).to_dict(),
        )
    except (SchedulingError, ValueError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(
            f"Error in api_commission_report: {str(e)}",
            extra={"context": {"shop_id": shop_id, "professional_id": professional_id}},
            exc_info=True,
        )
        return api_response(False, "Internal server error", None, 500)
