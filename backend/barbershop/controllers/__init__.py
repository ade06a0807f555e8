"""Flask blueprints of the scheduling API."""

from flask import current_app

from barbershop.services.scheduling_service import SchedulingService


def get_scheduling_service() -> SchedulingService:
    """Service instance registered by the application factory."""
    return current_app.extensions["scheduling_service"]
