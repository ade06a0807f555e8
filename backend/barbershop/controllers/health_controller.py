"""
Health controller - health check endpoint for monitoring.
"""

import logging

from flask import Blueprint, current_app
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from barbershop import __version__
from barbershop.core.api_utils import api_response

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__)


@health_bp.route("/health", methods=["GET"])
def health_check():
    """
    Report whether the application can reach its database.

    Status codes:
        200: database reachable
        503: database unreachable
    """
    db = None
    try:
        db = current_app.extensions["scheduling_service"].session_factory()
        db.execute(text("SELECT 1"))
        return api_response(
            True, "healthy", {"status": "healthy", "version": __version__}
        )
    except SQLAlchemyError as e:
        logger.error(
            "Health check: database unreachable",
            extra={"context": {"endpoint": "/health", "error": str(e)}},
        )
        return api_response(
            False, "unhealthy", {"status": "unhealthy", "version": __version__}, 503
        )
    finally:
        if db:
            db.close()
