"""
Central pytest configuration for the barbershop scheduling tests.

Provides database fixtures backed by a file-based SQLite database per test
(so concurrent sessions in different threads see each other's commits), a
seeded shop, the scheduling service and a Flask test client.
"""

import os
from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest

# Test environment (set early so import-time configuration uses it)
os.environ.setdefault("TZ", "UTC")
os.environ["TESTING"] = "true"
os.environ["LOG_TO_FILE"] = "false"
os.environ["LOYALTY_MAX_ATTEMPTS"] = "5"

from barbershop.db import base as models  # noqa: E402
from barbershop.db.session import Base, build_engine, make_sessionmaker  # noqa: E402
from barbershop.services.scheduling_service import SchedulingService  # noqa: E402
from tests.config.markers import (  # noqa: E402,F401
    pytest_collection_modifyitems,
    pytest_configure,
)


@pytest.fixture
def engine(tmp_path):
    """Fresh SQLite database file with all tables created."""
    test_engine = build_engine(f"sqlite:///{tmp_path / 'barbershop_test.db'}")
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_sessionmaker(engine)


@pytest.fixture
def db_session(session_factory):
    """Session for direct repository tests; rolled back after the test."""
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


def _seed_shop(session_factory, interval_minutes=30, loyalty_enabled=True):
    """Shop open Monday to Saturday 09:00-18:00 with a 12:00-13:00 break."""
    db = session_factory()
    try:
        shop = models.Shop(
            name="Test Barbershop",
            interval_minutes=interval_minutes,
            loyalty_enabled=loyalty_enabled,
            points_per_service=1,
            commission_on_subscription=True,
        )
        for weekday in (
            "monday",
            "tuesday",
            "wednesday",
            "thursday",
            "friday",
            "saturday",
        ):
            shop.hours.append(
                models.ShopHours(
                    weekday=weekday,
                    is_open=True,
                    start="09:00",
                    end="18:00",
                    has_break=True,
                    break_start="12:00",
                    break_end="13:00",
                )
            )
        shop.hours.append(models.ShopHours(weekday="sunday", is_open=False))
        shop.loyalty_rules.append(
            models.LoyaltyRule(service_name="Haircut & beard", points=3)
        )
        db.add(shop)
        db.flush()

        alex = models.Professional(
            shop_id=shop.id,
            name="Alex",
            service_commission_rate=Decimal("0.25"),
            product_commission_rate=Decimal("0.10"),
        )
        sam = models.Professional(
            shop_id=shop.id,
            name="Sam",
            service_commission_rate=Decimal("0.40"),
            product_commission_rate=Decimal("0.10"),
        )
        db.add_all([alex, sam])
        db.flush()

        haircut = models.ServiceItem(
            shop_id=shop.id,
            name="Haircut",
            duration_minutes=30,
            price=Decimal("40.00"),
            professionals=[alex, sam],
        )
        combo = models.ServiceItem(
            shop_id=shop.id,
            name="Haircut & beard",
            duration_minutes=60,
            price=Decimal("60.00"),
            professionals=[alex, sam],
        )
        beard = models.ServiceItem(
            shop_id=shop.id,
            name="Beard trim",
            duration_minutes=20,
            price=Decimal("25.00"),
            professionals=[alex],
        )
        db.add_all([haircut, combo, beard])

        client = models.Client(shop_id=shop.id, name="Jordan Silva")
        subscriber = models.Client(
            shop_id=shop.id,
            name="Riley Costa",
            subscription_plan="Monthly cut",
            subscription_services=["Haircut"],
            subscription_ends_on=date(2030, 12, 31),
        )
        db.add_all([client, subscriber])
        db.commit()

        return SimpleNamespace(
            shop_id=shop.id,
            alex_id=alex.id,
            sam_id=sam.id,
            haircut_id=haircut.id,
            combo_id=combo.id,
            beard_id=beard.id,
            client_id=client.id,
            subscriber_id=subscriber.id,
        )
    finally:
        db.close()


@pytest.fixture
def shop(session_factory):
    """Seeded shop; returns the ids of its records."""
    return _seed_shop(session_factory)


@pytest.fixture
def shop_factory(session_factory):
    """Seed a shop with custom interval or loyalty settings."""

    def _make(interval_minutes=30, loyalty_enabled=True):
        return _seed_shop(session_factory, interval_minutes, loyalty_enabled)

    return _make


@pytest.fixture
def scheduling_service(session_factory):
    return SchedulingService(session_factory)


@pytest.fixture
def app(session_factory):
    """Flask app wired to the per-test database."""
    from barbershop.main import create_app

    flask_app = create_app({"TESTING": True, "SESSION_FACTORY": session_factory})
    yield flask_app


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()
