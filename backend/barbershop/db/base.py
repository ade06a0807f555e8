from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Any, List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Table,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from barbershop.core import config

from .session import Base


def now_local() -> dt.datetime:
    return dt.datetime.now(config.APP_TZ)


class Shop(Base):
    """Shop (barbershop) with its scheduling and loyalty settings"""

    __tablename__ = "shops"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    interval_minutes: Mapped[int] = mapped_column(
        Integer, nullable=False, default=lambda: config.DEFAULT_INTERVAL_MINUTES
    )
    loyalty_enabled: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    points_per_service: Mapped[int] = mapped_column(
        Integer, nullable=False, default=lambda: config.DEFAULT_POINTS_PER_SERVICE
    )
    # Whether subscription-covered services earn service commission
    commission_on_subscription: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=lambda: config.COMMISSION_ON_SUBSCRIPTION
    )
    created_at: Mapped[Optional[dt.datetime]] = mapped_column(
        DateTime(timezone=True), default=now_local
    )

    hours: Mapped[List["ShopHours"]] = relationship(
        "ShopHours", back_populates="shop", cascade="all, delete-orphan"
    )
    loyalty_rules: Mapped[List["LoyaltyRule"]] = relationship(
        "LoyaltyRule", cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<Shop(id={self.id}, name='{self.name}', interval={self.interval_minutes})>"


class ShopHours(Base):
    """Opening hours of one weekday of a shop"""

    __tablename__ = "shop_hours"
    __table_args__ = (
        UniqueConstraint("shop_id", "weekday", name="uq_shop_hours_weekday"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    shop_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("shops.id", ondelete="CASCADE"), nullable=False, index=True
    )
    weekday: Mapped[str] = mapped_column(String(10), nullable=False)  # 'monday'..
    is_open: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    start: Mapped[str] = mapped_column(String(5), nullable=False, default="09:00")
    end: Mapped[str] = mapped_column(String(5), nullable=False, default="18:00")
    has_break: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    break_start: Mapped[Optional[str]] = mapped_column(String(5), nullable=True)
    break_end: Mapped[Optional[str]] = mapped_column(String(5), nullable=True)

    shop: Mapped["Shop"] = relationship("Shop", back_populates="hours")

    def __repr__(self):
        return (
            f"<ShopHours(shop_id={self.shop_id}, weekday={self.weekday}, "
            f"open={self.is_open}, {self.start}-{self.end})>"
        )


class LoyaltyRule(Base):
    """Points generated by completing a specific service"""

    __tablename__ = "loyalty_rules"
    __table_args__ = (
        UniqueConstraint("shop_id", "service_name", name="uq_loyalty_rule_service"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    shop_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("shops.id", ondelete="CASCADE"), nullable=False, index=True
    )
    service_name: Mapped[str] = mapped_column(String(120), nullable=False)
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=1)


service_professionals = Table(
    "service_professionals",
    Base.metadata,
    Column(
        "service_id",
        Integer,
        ForeignKey("services.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "professional_id",
        Integer,
        ForeignKey("professionals.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class Professional(Base):
    """Professional (staff member) model"""

    __tablename__ = "professionals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    shop_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("shops.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    service_commission_rate: Mapped[Decimal] = mapped_column(
        Numeric(5, 4), nullable=False, default=Decimal("0")
    )
    product_commission_rate: Mapped[Decimal] = mapped_column(
        Numeric(5, 4), nullable=False, default=Decimal("0")
    )

    def __repr__(self):
        return f"<Professional(id={self.id}, name='{self.name}')>"


class ServiceItem(Base):
    """Catalog service offered by a shop"""

    __tablename__ = "services"
    __table_args__ = (UniqueConstraint("shop_id", "name", name="uq_service_name"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    shop_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("shops.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    professionals: Mapped[List["Professional"]] = relationship(
        "Professional", secondary=service_professionals
    )

    def __repr__(self):
        return (
            f"<ServiceItem(id={self.id}, name='{self.name}', "
            f"duration={self.duration_minutes}, price={self.price})>"
        )


class Client(Base):
    """Client model with its embedded loyalty account"""

    __tablename__ = "clients"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    shop_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("shops.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    loyalty_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Optimistic concurrency token for the loyalty balance
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    subscription_plan: Mapped[Optional[str]] = mapped_column(
        String(120), nullable=True
    )
    subscription_services: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)
    subscription_ends_on: Mapped[Optional[dt.date]] = mapped_column(Date, nullable=True)
    created_at: Mapped[Optional[dt.datetime]] = mapped_column(
        DateTime(timezone=True), default=now_local
    )

    def __repr__(self):
        return f"<Client(id={self.id}, name='{self.name}', points={self.loyalty_points})>"


class Appointment(Base):
    """Appointment model"""

    __tablename__ = "appointments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    shop_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("shops.id", ondelete="CASCADE"), nullable=False, index=True
    )
    client_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    professional_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("professionals.id"), nullable=False, index=True
    )
    service_name: Mapped[str] = mapped_column(String(120), nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)  # HH:MM
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending", index=True
    )  # pending, confirmed, in_progress, completed
    settlement_method: Mapped[Optional[str]] = mapped_column(
        String(30), nullable=True
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[Optional[dt.datetime]] = mapped_column(
        DateTime(timezone=True), default=now_local
    )
    updated_at: Mapped[Optional[dt.datetime]] = mapped_column(
        DateTime(timezone=True), default=now_local, onupdate=now_local
    )

    claims: Mapped[List["SlotClaim"]] = relationship(
        "SlotClaim",
        back_populates="appointment",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    sold_products: Mapped[List["AppointmentProduct"]] = relationship(
        "AppointmentProduct",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="AppointmentProduct.id",
    )

    def __repr__(self):
        return (
            f"<Appointment(id={self.id}, date={self.date}, time={self.start_time}, "
            f"professional_id={self.professional_id}, status={self.status})>"
        )


class SlotClaim(Base):
    """One occupied slot of a professional's day.

    The unique constraint is the store-side guard against double booking:
    concurrent bookings that overlap cannot both insert their claims.
    """

    __tablename__ = "slot_claims"
    __table_args__ = (
        UniqueConstraint(
            "professional_id", "date", "slot_time", name="uq_slot_claim"
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    appointment_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("appointments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    professional_id: Mapped[int] = mapped_column(Integer, nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    slot_time: Mapped[str] = mapped_column(String(5), nullable=False)

    appointment: Mapped["Appointment"] = relationship(
        "Appointment", back_populates="claims"
    )

    def __repr__(self):
        return (
            f"<SlotClaim(professional_id={self.professional_id}, date={self.date}, "
            f"slot={self.slot_time}, appointment_id={self.appointment_id})>"
        )


class AppointmentProduct(Base):
    """Product sold during an appointment"""

    __tablename__ = "appointment_products"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    appointment_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("appointments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_id: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(120), nullable=False, default="")
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
