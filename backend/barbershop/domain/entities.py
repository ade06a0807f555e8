"""
Domain entities - Pure business logic, no framework dependencies.

Times of day are shop-local wall-clock strings in ``HH:MM`` form and calendar
days are ``datetime.date`` values. Money is ``Decimal``.
"""

import datetime as dt
import re
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Dict, FrozenSet, List, Mapping, Optional, Union

WEEKDAYS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)

_TIME_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def validate_time(value: str, field_name: str = "time") -> str:
    """Check an ``HH:MM`` string and return it unchanged."""
    if not isinstance(value, str) or not _TIME_RE.match(value):
        raise ValueError(f"Invalid {field_name} '{value}', expected HH:MM")
    return value


class AppointmentStatus(str, Enum):
    """Closed set of appointment states."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"

    @property
    def is_terminal(self) -> bool:
        return self is AppointmentStatus.COMPLETED


class SettlementMethod(str, Enum):
    """How the charge of a completed appointment is recorded."""

    CASH = "cash"
    CARD = "card"
    INSTANT_PAYMENT = "instant_payment"
    COMPLIMENTARY = "complimentary"
    SUBSCRIPTION = "subscription"


class BookingChannel(str, Enum):
    """Where a booking came from; decides the default initial status."""

    SELF_SERVICE = "self_service"
    STAFF = "staff"


@dataclass(frozen=True)
class DaySchedule:
    """Opening hours of one weekday."""

    open: bool = False
    start: str = "09:00"
    end: str = "18:00"
    has_break: bool = False
    break_start: Optional[str] = None
    break_end: Optional[str] = None

    def __post_init__(self):
        """Validate domain rules."""
        if not self.open:
            return
        validate_time(self.start, "start")
        validate_time(self.end, "end")
        if self.start >= self.end:
            raise ValueError("Opening time must be before closing time")
        if self.has_break:
            if not self.break_start or not self.break_end:
                raise ValueError("Break start and end are required when has_break")
            validate_time(self.break_start, "break_start")
            validate_time(self.break_end, "break_end")
            # Zero-padded HH:MM strings compare like times
            if self.break_start >= self.break_end:
                raise ValueError("Break start must be before break end")
            if not (self.start <= self.break_start < self.end):
                raise ValueError("Break start must lie within opening hours")
            if not self.break_end < self.end:
                raise ValueError("Break end must lie within opening hours")

    @classmethod
    def closed(cls) -> "DaySchedule":
        return cls(open=False)


@dataclass(frozen=True)
class OperatingSchedule:
    """Opening hours for every weekday. Missing weekdays are closed."""

    days: Mapping[str, DaySchedule] = field(default_factory=dict)

    def __post_init__(self):
        unknown = set(self.days) - set(WEEKDAYS)
        if unknown:
            raise ValueError(f"Unknown weekday(s): {', '.join(sorted(unknown))}")

    def for_weekday(self, weekday: Union[int, str]) -> DaySchedule:
        """Return the schedule of a weekday (0=Monday, as ``date.weekday()``, or its name)."""
        if isinstance(weekday, int):
            if not 0 <= weekday <= 6:
                raise ValueError(f"Weekday index out of range: {weekday}")
            weekday = WEEKDAYS[weekday]
        weekday = weekday.lower()
        if weekday not in WEEKDAYS:
            raise ValueError(f"Unknown weekday: {weekday}")
        return self.days.get(weekday, DaySchedule.closed())

    def for_date(self, day: dt.date) -> DaySchedule:
        return self.for_weekday(day.weekday())


@dataclass
class ShopSettings:
    """Shop-wide configuration consumed by the scheduler and the lifecycle."""

    shop_id: int
    name: str = ""
    schedule: OperatingSchedule = field(default_factory=OperatingSchedule)
    interval_minutes: int = 30
    loyalty_enabled: bool = False
    points_per_service: int = 1
    service_points: Dict[str, int] = field(default_factory=dict)
    commission_on_subscription: bool = True

    def __post_init__(self):
        if self.interval_minutes <= 0:
            raise ValueError("Slot interval must be a positive number of minutes")
        if self.points_per_service < 0:
            raise ValueError("Points per service cannot be negative")

    def points_for(self, service_name: str) -> int:
        """Points granted for completing ``service_name``."""
        return self.service_points.get(service_name, self.points_per_service)


@dataclass
class Service:
    """Domain entity for a catalog service."""

    id: Optional[int] = None
    name: str = ""
    duration_minutes: int = 0
    price: Decimal = Decimal("0")
    professional_ids: FrozenSet[int] = frozenset()

    def __post_init__(self):
        """Validate business rules."""
        if not self.name:
            raise ValueError("Service name is required")
        if self.duration_minutes <= 0:
            raise ValueError("Duration must be positive")
        if self.price < 0:
            raise ValueError("Price cannot be negative")

    def is_performed_by(self, professional_id: int) -> bool:
        # No explicit eligibility list means every professional of the shop
        return not self.professional_ids or professional_id in self.professional_ids


@dataclass
class Professional:
    """Domain entity for a staff member who performs services."""

    id: Optional[int] = None
    name: str = ""
    service_commission_rate: Decimal = Decimal("0")
    product_commission_rate: Decimal = Decimal("0")

    def __post_init__(self):
        for rate in (self.service_commission_rate, self.product_commission_rate):
            if rate < 0 or rate > 1:
                raise ValueError("Commission rate must be between 0 and 1")


@dataclass
class ClientSubscription:
    """Subscription plan held by a client."""

    plan_name: str
    included_services: FrozenSet[str] = frozenset()
    ends_on: Optional[dt.date] = None

    def covers(self, service_name: str, on: dt.date) -> bool:
        if self.ends_on is None or on > self.ends_on:
            return False
        return service_name in self.included_services


@dataclass
class Client:
    """Domain entity representing a Client and its loyalty account."""

    id: Optional[int] = None
    name: str = ""
    loyalty_points: int = 0
    version: int = 1
    subscription: Optional[ClientSubscription] = None

    def __post_init__(self):
        if self.loyalty_points < 0:
            raise ValueError("Loyalty points cannot be negative")


@dataclass
class SoldProduct:
    """Ancillary product sold during an appointment."""

    product_id: str
    quantity: int
    unit_price: Decimal
    name: str = ""

    def __post_init__(self):
        if self.quantity <= 0:
            raise ValueError("Quantity must be positive")
        if self.unit_price < 0:
            raise ValueError("Unit price cannot be negative")

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass
class Appointment:
    """Domain entity for Appointment business logic."""

    id: Optional[int] = None
    shop_id: int = 0
    client_id: int = 0
    professional_id: int = 0
    service_name: str = ""
    date: Optional[dt.date] = None
    start_time: str = ""
    status: AppointmentStatus = AppointmentStatus.PENDING
    settlement_method: Optional[SettlementMethod] = None
    sold_products: List[SoldProduct] = field(default_factory=list)
    version: int = 1
    created_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None

    def __post_init__(self):
        """Validate business rules."""
        if not self.service_name:
            raise ValueError("Service name is required")
        if self.date is None:
            raise ValueError("Appointment date is required")
        validate_time(self.start_time, "start_time")
        self.status = AppointmentStatus(self.status)
        if self.settlement_method is not None:
            self.settlement_method = SettlementMethod(self.settlement_method)

    @property
    def products_total(self) -> Decimal:
        return sum((p.subtotal for p in self.sold_products), Decimal("0"))
