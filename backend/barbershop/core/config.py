"""
Centralized configuration module for application-wide settings.

All settings are read from environment variables (a ``.env`` file is loaded by
the application factory) and cached at import time. Tests and the application
factory may call the ``get_*`` functions again to pick up overrides.
"""

import logging
import os
from datetime import date, datetime
from decimal import Decimal
from zoneinfo import ZoneInfo

logger = logging.getLogger(__name__)

_TRUTHY = ("true", "1", "yes")


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in _TRUTHY


def _env_positive_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(
            f"Invalid integer '{raw}' in {name}. Falling back to {default}.",
        )
        return default
    if value <= 0:
        logger.warning(f"{name} must be positive, got {value}. Using {default}.")
        return default
    return value


# ===========================
# Timezone Configuration
# ===========================


def get_app_timezone() -> ZoneInfo:
    """
    Get the shop-local timezone from the TZ environment variable.

    Slot math works on naive wall-clock ``HH:MM`` strings; the timezone is only
    used for timestamps (``created_at``) and for resolving "today".
    Calendar days that cross a daylight-saving transition are not supported.

    Returns:
        ZoneInfo: Application timezone (defaults to UTC if not configured)
    """
    tz_name = os.getenv("TZ", "UTC")

    try:
        return ZoneInfo(tz_name)
    except Exception as e:
        logger.warning(
            f"Invalid timezone '{tz_name}' specified in TZ environment variable. "
            f"Falling back to UTC. Error: {e}"
        )
        return ZoneInfo("UTC")


APP_TZ = get_app_timezone()


def today() -> date:
    """Current calendar day in the shop timezone."""
    return datetime.now(APP_TZ).date()


# ===========================
# Database Configuration
# ===========================


def get_database_url() -> str:
    """Return DATABASE_URL, defaulting to a local SQLite file."""
    return os.getenv("DATABASE_URL", "sqlite:///./barbershop.db")


# ===========================
# Scheduling Configuration
# ===========================


def get_default_interval() -> int:
    """
    Slot interval used for shops that never configured one.

    Environment Variables:
        APPOINTMENT_INTERVAL_MINUTES: positive integer, default 30
    """
    return _env_positive_int("APPOINTMENT_INTERVAL_MINUTES", 30)


DEFAULT_INTERVAL_MINUTES = get_default_interval()


# ===========================
# Loyalty Configuration
# ===========================


def get_default_points_per_service() -> int:
    """
    Points granted per completed service when the shop has no specific rule.

    Environment Variables:
        LOYALTY_POINTS_PER_SERVICE: positive integer, default 1
    """
    return _env_positive_int("LOYALTY_POINTS_PER_SERVICE", 1)


def get_loyalty_max_attempts() -> int:
    """
    How many times a completion transaction is attempted when its
    compare-and-set writes lose against concurrent completions.

    Environment Variables:
        LOYALTY_MAX_ATTEMPTS: positive integer, default 5
    """
    return _env_positive_int("LOYALTY_MAX_ATTEMPTS", 5)


DEFAULT_POINTS_PER_SERVICE = get_default_points_per_service()
LOYALTY_MAX_ATTEMPTS = get_loyalty_max_attempts()


# ===========================
# Commission Configuration
# ===========================


def get_commission_on_subscription() -> bool:
    """
    Default for new shops: whether services settled as "subscription" earn
    service commission for the professional.

    Environment Variables:
        COMMISSION_ON_SUBSCRIPTION: "true"/"false", default "true"
    """
    return _env_flag("COMMISSION_ON_SUBSCRIPTION", "true")


COMMISSION_ON_SUBSCRIPTION = get_commission_on_subscription()

# Money is rounded to cents when reported
MONEY_QUANTUM = Decimal("0.01")


# ===========================
# Logging Configuration
# ===========================


def get_log_level() -> str:
    return os.getenv("LOG_LEVEL", "INFO").upper()


def get_log_json() -> bool:
    return _env_flag("LOG_JSON", "false")


def get_log_to_file() -> bool:
    return _env_flag("LOG_TO_FILE", "false")


def log_scheduling_config():
    """
    Log the active scheduling, loyalty and commission configuration.

    Should be called during application startup.
    """
    logger.info(
        "Scheduling configuration initialized",
        extra={
            "context": {
                "timezone": str(APP_TZ),
                "default_interval_minutes": DEFAULT_INTERVAL_MINUTES,
                "default_points_per_service": DEFAULT_POINTS_PER_SERVICE,
                "loyalty_max_attempts": LOYALTY_MAX_ATTEMPTS,
                "commission_on_subscription": COMMISSION_ON_SUBSCRIPTION,
            }
        },
    )
