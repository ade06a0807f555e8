"""Shop settings repository: weekly schedule, slot interval and loyalty rules."""

from typing import Optional

from barbershop.core.exceptions import ResourceNotFoundError
from barbershop.db.base import Shop as DbShop
from barbershop.db.base import ShopHours as DbShopHours
from barbershop.domain.entities import (
    WEEKDAYS,
    DaySchedule,
    OperatingSchedule,
    ShopSettings,
)
from barbershop.domain.interfaces import IShopRepository


class ShopRepository(IShopRepository):
    """Repository for shop settings persistence operations."""

    def __init__(self, db_session) -> None:
        self.db = db_session

    def get_settings(self, shop_id: int) -> Optional[ShopSettings]:
        db_shop = self.db.query(DbShop).filter_by(id=shop_id).first()
        return self._to_domain(db_shop) if db_shop else None

    def update_operating_hours(
        self, shop_id: int, schedule: OperatingSchedule, interval_minutes: int
    ) -> ShopSettings:
        db_shop = self.db.query(DbShop).filter_by(id=shop_id).first()
        if not db_shop:
            raise ResourceNotFoundError(f"Shop {shop_id} not found")
        if interval_minutes <= 0:
            raise ValueError("Slot interval must be a positive number of minutes")

        existing = {hours.weekday: hours for hours in db_shop.hours}
        for weekday in WEEKDAYS:
            day = schedule.for_weekday(weekday)
            db_hours = existing.get(weekday)
            if db_hours is None:
                db_hours = DbShopHours(weekday=weekday)
                db_shop.hours.append(db_hours)
            db_hours.is_open = day.open
            db_hours.start = day.start
            db_hours.end = day.end
            db_hours.has_break = day.has_break
            db_hours.break_start = day.break_start if day.has_break else None
            db_hours.break_end = day.break_end if day.has_break else None

        db_shop.interval_minutes = interval_minutes
        self.db.flush()
        return self._to_domain(db_shop)

    def _to_domain(self, db_shop: DbShop) -> ShopSettings:
        """Convert DB model (with its hours and loyalty rules) to domain settings."""
        days = {}
        for hours in db_shop.hours:
            days[hours.weekday] = DaySchedule(
                open=bool(hours.is_open),
                start=hours.start,
                end=hours.end,
                has_break=bool(hours.has_break),
                break_start=hours.break_start,
                break_end=hours.break_end,
            )

        return ShopSettings(
            shop_id=db_shop.id,
            name=db_shop.name,
            schedule=OperatingSchedule(days=days),
            interval_minutes=db_shop.interval_minutes,
            loyalty_enabled=bool(db_shop.loyalty_enabled),
            points_per_service=db_shop.points_per_service,
            service_points={
                rule.service_name: rule.points for rule in db_shop.loyalty_rules
            },
            commission_on_subscription=bool(db_shop.commission_on_subscription),
        )
