"""
Data Transfer Objects (DTOs) and validation schemas.

Requests are parsed from JSON bodies or query strings and checked with
``validate()``; every problem is reported as ``ValueError``. Responses are
built from domain entities and serialised with ``to_dict()``: dates as
``YYYY-MM-DD``, times as ``HH:MM`` and money as decimal strings.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional

from barbershop.domain.entities import (
    WEEKDAYS,
    AppointmentStatus,
    BookingChannel,
    DaySchedule,
    OperatingSchedule,
    SettlementMethod,
    SoldProduct,
    validate_time,
)


def parse_date(value: Any, field_name: str = "date") -> date:
    """Parse a ``YYYY-MM-DD`` string."""
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    if not value or not isinstance(value, str):
        raise ValueError(f"{field_name} is required (YYYY-MM-DD)")
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValueError(f"Invalid {field_name} '{value}', expected YYYY-MM-DD")


def parse_positive_int(value: Any, field_name: str) -> int:
    if value is None or value == "":
        raise ValueError(f"{field_name} is required")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{field_name} must be an integer")
    if number <= 0:
        raise ValueError(f"{field_name} must be positive")
    return number


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in ("true", "1", "yes")


def parse_products(items: Any) -> List[SoldProduct]:
    """Parse a list of ``{product_id, quantity, unit_price, name?}`` objects."""
    if items is None:
        return []
    if not isinstance(items, list):
        raise ValueError("products must be a list")
    products = []
    for item in items:
        if not isinstance(item, Mapping):
            raise ValueError("Each product must be an object")
        if not item.get("product_id"):
            raise ValueError("product_id is required")
        try:
            unit_price = Decimal(str(item.get("unit_price")))
        except (InvalidOperation, ValueError):
            raise ValueError("unit_price must be a decimal number")
        if not unit_price.is_finite():
            raise ValueError("unit_price must be a decimal number")
        products.append(
            SoldProduct(
                product_id=str(item["product_id"]),
                quantity=parse_positive_int(item.get("quantity"), "quantity"),
                unit_price=unit_price,
                name=str(item.get("name") or ""),
            )
        )
    return products


def _money(value: Decimal) -> str:
    return str(value)


@dataclass
class AvailabilityQuery:
    """DTO for availability lookups (query string)."""

    professional_id: int
    service_id: int
    date: date
    exclude_appointment_id: Optional[int] = None

    @classmethod
    def from_args(cls, args: Mapping[str, Any]) -> "AvailabilityQuery":
        exclude = args.get("exclude_appointment_id")
        return cls(
            professional_id=parse_positive_int(
                args.get("professional_id"), "professional_id"
            ),
            service_id=parse_positive_int(args.get("service_id"), "service_id"),
            date=parse_date(args.get("date")),
            exclude_appointment_id=(
                parse_positive_int(exclude, "exclude_appointment_id")
                if exclude
                else None
            ),
        )


@dataclass
class AppointmentCreateRequest:
    """DTO for appointment creation requests."""

    client_id: int
    professional_id: int
    service_id: int
    date: date
    start_time: str
    initial_status: Optional[str] = None
    channel: str = BookingChannel.STAFF.value
    products: List[SoldProduct] = field(default_factory=list)

    @classmethod
    def from_json(cls, data: Optional[Mapping[str, Any]]) -> "AppointmentCreateRequest":
        if not data:
            raise ValueError("Request body is required")
        request = cls(
            client_id=parse_positive_int(data.get("client_id"), "client_id"),
            professional_id=parse_positive_int(
                data.get("professional_id"), "professional_id"
            ),
            service_id=parse_positive_int(data.get("service_id"), "service_id"),
            date=parse_date(data.get("date")),
            start_time=data.get("start_time") or data.get("time") or "",
            initial_status=data.get("status") or data.get("initial_status"),
            channel=data.get("channel") or BookingChannel.STAFF.value,
            products=parse_products(data.get("products")),
        )
        request.validate()
        return request

    def validate(self) -> None:
        """Validate the request data."""
        validate_time(self.start_time, "start_time")
        if self.channel not in [c.value for c in BookingChannel]:
            raise ValueError(f"Invalid channel '{self.channel}'")
        if self.initial_status is not None and self.initial_status not in [
            s.value for s in AppointmentStatus
        ]:
            raise ValueError(f"Invalid status '{self.initial_status}'")


@dataclass
class RescheduleRequest:
    """DTO for moving an appointment to another day, time or professional."""

    date: date
    start_time: str
    professional_id: Optional[int] = None
    service_id: Optional[int] = None

    @classmethod
    def from_json(cls, data: Optional[Mapping[str, Any]]) -> "RescheduleRequest":
        if not data:
            raise ValueError("Request body is required")
        professional_id = data.get("professional_id")
        service_id = data.get("service_id")
        request = cls(
            date=parse_date(data.get("date")),
            start_time=data.get("start_time") or data.get("time") or "",
            professional_id=(
                parse_positive_int(professional_id, "professional_id")
                if professional_id is not None
                else None
            ),
            service_id=(
                parse_positive_int(service_id, "service_id")
                if service_id is not None
                else None
            ),
        )
        validate_time(request.start_time, "start_time")
        return request


@dataclass
class StatusChangeRequest:
    status: str

    @classmethod
    def from_json(cls, data: Optional[Mapping[str, Any]]) -> "StatusChangeRequest":
        status = (data or {}).get("status")
        if not status:
            raise ValueError("status is required")
        return cls(status=str(status))


@dataclass
class CompletionRequest:
    """DTO for completing an appointment."""

    settlement_method: str
    products: Optional[List[SoldProduct]] = None

    @classmethod
    def from_json(cls, data: Optional[Mapping[str, Any]]) -> "CompletionRequest":
        data = data or {}
        request = cls(
            settlement_method=data.get("settlement_method") or "",
            products=(
                parse_products(data["products"]) if "products" in data else None
            ),
        )
        request.validate()
        return request

    def validate(self) -> None:
        if not self.settlement_method:
            raise ValueError("settlement_method is required")
        if self.settlement_method not in [m.value for m in SettlementMethod]:
            raise ValueError(f"Invalid settlement method '{self.settlement_method}'")


@dataclass
class CommissionQuery:
    start_date: date
    end_date: date
    include_products: bool = False

    @classmethod
    def from_args(cls, args: Mapping[str, Any]) -> "CommissionQuery":
        query = cls(
            start_date=parse_date(args.get("start"), "start"),
            end_date=parse_date(args.get("end"), "end"),
            include_products=parse_bool(args.get("include_products")),
        )
        if query.start_date > query.end_date:
            raise ValueError("start must not be after end")
        return query


@dataclass
class OperatingHoursRequest:
    """DTO for replacing the weekly schedule of a shop.

    Body: ``{"interval_minutes": 30, "days": {"monday": {"open": true,
    "start": "09:00", "end": "18:00", "has_break": true,
    "break_start": "12:00", "break_end": "13:00"}, ...}}``
    """

    schedule: OperatingSchedule
    interval_minutes: Optional[int] = None

    @classmethod
    def from_json(cls, data: Optional[Mapping[str, Any]]) -> "OperatingHoursRequest":
        if not data:
            raise ValueError("Request body is required")
        raw_days = data.get("days")
        if not isinstance(raw_days, Mapping):
            raise ValueError("days must be an object keyed by weekday")

        days = {}
        for weekday, raw in raw_days.items():
            weekday = str(weekday).lower()
            if weekday not in WEEKDAYS:
                raise ValueError(f"Unknown weekday '{weekday}'")
            if not isinstance(raw, Mapping):
                raise ValueError(f"Schedule of {weekday} must be an object")
            has_break = parse_bool(raw.get("has_break"))
            days[weekday] = DaySchedule(
                open=parse_bool(raw.get("open")),
                start=raw.get("start") or "09:00",
                end=raw.get("end") or "18:00",
                has_break=has_break,
                break_start=raw.get("break_start") if has_break else None,
                break_end=raw.get("break_end") if has_break else None,
            )

        interval = data.get("interval_minutes")
        return cls(
            schedule=OperatingSchedule(days=days),
            interval_minutes=(
                parse_positive_int(interval, "interval_minutes")
                if interval is not None
                else None
            ),
        )


@dataclass
class SoldProductResponse:
    product_id: str
    name: str
    quantity: int
    unit_price: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "product_id": self.product_id,
            "name": self.name,
            "quantity": self.quantity,
            "unit_price": _money(self.unit_price),
            "subtotal": _money(self.unit_price * self.quantity),
        }


@dataclass
class AppointmentResponse:
    """DTO for appointment API responses."""

    id: int
    shop_id: int
    client_id: int
    professional_id: int
    service_name: str
    date: date
    start_time: str
    status: str
    settlement_method: Optional[str]
    products: List[SoldProductResponse]
    version: int

    @classmethod
    def from_domain(cls, appointment) -> "AppointmentResponse":
        """Create response from domain entity."""
        return cls(
            id=appointment.id,
            shop_id=appointment.shop_id,
            client_id=appointment.client_id,
            professional_id=appointment.professional_id,
            service_name=appointment.service_name,
            date=appointment.date,
            start_time=appointment.start_time,
            status=appointment.status.value,
            settlement_method=(
                appointment.settlement_method.value
                if appointment.settlement_method
                else None
            ),
            products=[
                SoldProductResponse(p.product_id, p.name, p.quantity, p.unit_price)
                for p in appointment.sold_products
            ],
            version=appointment.version,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "client_id": self.client_id,
            "professional_id": self.professional_id,
            "service_name": self.service_name,
            "date": self.date.isoformat(),
            "start_time": self.start_time,
            "status": self.status,
            "settlement_method": self.settlement_method,
            "products": [p.to_dict() for p in self.products],
            "version": self.version,
        }


@dataclass
class CommissionReportResponse:
    """DTO for commission report API responses."""

    professional_id: int
    professional_name: str
    start_date: date
    end_date: date
    appointment_count: int
    excluded_count: int
    service_revenue: Decimal
    service_commission: Decimal
    product_revenue: Decimal
    product_commission: Decimal
    total_commission: Decimal
    include_products: bool

    @classmethod
    def from_report(cls, report) -> "CommissionReportResponse":
        return cls(
            professional_id=report.professional_id,
            professional_name=report.professional_name,
            start_date=report.start_date,
            end_date=report.end_date,
            appointment_count=report.appointment_count,
            excluded_count=report.excluded_count,
            service_revenue=report.service_revenue,
            service_commission=report.service_commission,
            product_revenue=report.product_revenue,
            product_commission=report.product_commission,
            total_commission=report.total_commission,
            include_products=report.include_products,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "professional_id": self.professional_id,
            "professional_name": self.professional_name,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "appointment_count": self.appointment_count,
            "excluded_count": self.excluded_count,
            "service_revenue": _money(self.service_revenue),
            "service_commission": _money(self.service_commission),
            "total_commission": _money(self.total_commission),
            "include_products": self.include_products,
        }
        if self.include_products:
            data["product_revenue"] = _money(self.product_revenue)
            data["product_commission"] = _money(self.product_commission)
        return data


def schedule_to_dict(settings) -> Dict[str, Any]:
    """Serialise shop settings (weekly schedule and interval)."""
    days = {}
    for weekday in WEEKDAYS:
        day = settings.schedule.for_weekday(weekday)
        days[weekday] = {
            "open": day.open,
            "start": day.start,
            "end": day.end,
            "has_break": day.has_break,
            "break_start": day.break_start,
            "break_end": day.break_end,
        }
    return {
        "shop_id": settings.shop_id,
        "interval_minutes": settings.interval_minutes,
        "days": days,
    }
