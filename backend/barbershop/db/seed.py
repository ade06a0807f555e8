"""
Demo data seeding.

Creates a small shop with a weekly schedule, a loyalty rule, two
professionals, a service catalog and a few clients. Idempotent: running it
again returns the existing demo shop.
"""

import logging
from datetime import timedelta
from decimal import Decimal
from typing import Optional

from barbershop.core import config
from barbershop.db.base import (
    Client,
    LoyaltyRule,
    Professional,
    ServiceItem,
    Shop,
    ShopHours,
)
from barbershop.domain.entities import WEEKDAYS

logger = logging.getLogger(__name__)

DEMO_SHOP_NAME = "Demo Barbershop"


def seed_demo_shop(db, interval_minutes: Optional[int] = None) -> Shop:
    """Create (or return) the demo shop. The caller commits."""
    shop = db.query(Shop).filter_by(name=DEMO_SHOP_NAME).first()
    if shop is not None:
        logger.info(
            "Demo shop already present", extra={"context": {"shop_id": shop.id}}
        )
        return shop

    shop = Shop(
        name=DEMO_SHOP_NAME,
        interval_minutes=interval_minutes or config.DEFAULT_INTERVAL_MINUTES,
        loyalty_enabled=True,
        points_per_service=1,
    )
    for weekday in WEEKDAYS:
        is_open = weekday != "sunday"
        shop.hours.append(
            ShopHours(
                weekday=weekday,
                is_open=is_open,
                start="09:00",
                end="18:00",
                has_break=is_open,
                break_start="12:00" if is_open else None,
                break_end="13:00" if is_open else None,
            )
        )
    shop.loyalty_rules.append(LoyaltyRule(service_name="Haircut & beard", points=2))
    db.add(shop)
    db.flush()

    alex = Professional(
        shop_id=shop.id,
        name="Alex",
        service_commission_rate=Decimal("0.40"),
        product_commission_rate=Decimal("0.10"),
    )
    sam = Professional(
        shop_id=shop.id,
        name="Sam",
        service_commission_rate=Decimal("0.35"),
        product_commission_rate=Decimal("0.10"),
    )
    db.add_all([alex, sam])
    db.flush()

    catalog = [
        ("Haircut", 30, Decimal("40.00"), [alex, sam]),
        ("Beard trim", 20, Decimal("25.00"), [alex, sam]),
        ("Haircut & beard", 60, Decimal("60.00"), [alex]),
        ("Hair coloring", 90, Decimal("120.00"), [sam]),
    ]
    for name, duration, price, staff in catalog:
        db.add(
            ServiceItem(
                shop_id=shop.id,
                name=name,
                duration_minutes=duration,
                price=price,
                professionals=staff,
            )
        )

    today = config.today()
    db.add_all(
        [
            Client(shop_id=shop.id, name="Jordan Silva", phone="+55 11 90000-0001"),
            Client(
                shop_id=shop.id,
                name="Riley Costa",
                email="riley@example.com",
                subscription_plan="Monthly cut",
                subscription_services=["Haircut"],
                subscription_ends_on=today + timedelta(days=30),
            ),
        ]
    )
    db.flush()

    logger.info(
        "Demo shop seeded",
        extra={"context": {"shop_id": shop.id, "services": len(catalog)}},
    )
    return shop
