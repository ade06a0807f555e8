"""
Application factory for the barbershop scheduling API.
"""

import logging
import os
from typing import Any, Mapping, Optional

from dotenv import load_dotenv
from flask import Flask

from barbershop import __version__
from barbershop.core.api_utils import api_response

logger = logging.getLogger(__name__)

# Only load from .env when DATABASE_URL is not already defined by the environment
if not os.getenv("DATABASE_URL"):
    load_dotenv()


def _mask_url_password(url: str) -> str:
    """Hide credentials of a database URL before logging it."""
    import re

    return re.sub(r"(://[^:/?#]+):[^@]*@", r"\1:***@", url)


def _environment(app: Flask) -> str:
    if app.config.get("TESTING"):
        return "testing"
    return os.getenv("FLASK_ENV", "production")


def _init_sentry(app: Flask) -> None:
    """Error tracking, enabled only when SENTRY_DSN is set."""
    sentry_dsn = os.getenv("SENTRY_DSN")
    if not sentry_dsn:
        logger.info(
            "Sentry not initialized (SENTRY_DSN not set)",
            extra={"context": {"environment": _environment(app)}},
        )
        return

    import sentry_sdk
    from sentry_sdk.integrations.flask import FlaskIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=sentry_dsn,
        environment=_environment(app),
        release=os.getenv("GIT_SHA", __version__),
        integrations=[FlaskIntegration(), SqlalchemyIntegration()],
        traces_sample_rate=0.1,
        send_default_pii=False,  # Client names stay out of error reports
    )
    logger.info(
        "Sentry initialized",
        extra={"context": {"environment": _environment(app)}},
    )


def _init_metrics(app: Flask) -> None:
    """Expose request metrics for Prometheus at /metrics."""
    from prometheus_client import CollectorRegistry
    from prometheus_flask_exporter import PrometheusMetrics

    # One registry per app so repeated create_app calls do not collide
    metrics = PrometheusMetrics(app, registry=CollectorRegistry(auto_describe=True))
    metrics.info(
        "app_info",
        "Application information",
        version=__version__,
        environment=_environment(app),
    )
    app.extensions["metrics"] = metrics
    logger.info(
        "Prometheus metrics initialized",
        extra={"context": {"metrics_endpoint": "/metrics"}},
    )


def create_app(config_overrides: Optional[Mapping[str, Any]] = None) -> Flask:
    """
    Build the Flask application.

    Args:
        config_overrides: Flask config values applied before wiring. Besides
            the usual Flask keys, ``SESSION_FACTORY`` replaces the default
            sessionmaker (tests use it to point at a temporary database) and
            ``CREATE_TABLES`` (default True) controls table creation.
    """
    from barbershop.core import config
    from barbershop.core.logging_config import setup_logging
    from barbershop.db.session import create_tables, get_engine, get_sessionmaker
    from barbershop.services.scheduling_service import SchedulingService

    app = Flask(__name__)
    app.json.sort_keys = False
    testing_env = os.getenv("TESTING", "").lower().strip()
    if testing_env in ("true", "1", "yes"):
        app.config["TESTING"] = True
    if config_overrides:
        app.config.update(config_overrides)

    setup_logging(
        app=app,
        log_level=config.get_log_level(),
        log_to_file=config.get_log_to_file(),
        use_json_format=config.get_log_json(),
    )
    config.log_scheduling_config()

    _init_sentry(app)
    _init_metrics(app)

    session_factory = app.config.get("SESSION_FACTORY")
    if session_factory is None:
        if app.config.get("CREATE_TABLES", True):
            create_tables()
        session_factory = get_sessionmaker()
        logger.info(
            "Database ready",
            extra={
                "context": {
                    "url": _mask_url_password(str(get_engine().url)),
                    "driver": get_engine().dialect.name,
                }
            },
        )

    app.extensions["scheduling_service"] = SchedulingService(session_factory)

    from barbershop.controllers.appointment_controller import appointment_bp
    from barbershop.controllers.commission_controller import commission_bp
    from barbershop.controllers.health_controller import health_bp
    from barbershop.controllers.settings_controller import settings_bp

    app.register_blueprint(appointment_bp)
    app.register_blueprint(commission_bp)
    app.register_blueprint(settings_bp)
    app.register_blueprint(health_bp)

    @app.errorhandler(404)
    def not_found(error):
        return api_response(False, "Resource not found", None, 404)

    @app.errorhandler(405)
    def method_not_allowed(error):
        return api_response(False, "Method not allowed", None, 405)

    logger.info(
        "Application created",
        extra={"context": {"blueprints": sorted(app.blueprints)}},
    )
    return app


if __name__ == "__main__":
    app = create_app()
    # Use PORT from environment or default to 5000 (for local dev)
    port = int(os.getenv("PORT", 5000))
    app.run(host="0.0.0.0", port=port, debug=os.getenv("FLASK_DEBUG") == "1")
