"""
Domain package - Pure business logic layer.

This package contains:
- entities.py: Domain entities and enumerations
- interfaces.py: Repository contracts consumed by the services
"""

from .entities import (
    WEEKDAYS,
    Appointment,
    AppointmentStatus,
    BookingChannel,
    Client,
    ClientSubscription,
    DaySchedule,
    OperatingSchedule,
    Professional,
    Service,
    SettlementMethod,
    ShopSettings,
    SoldProduct,
)
from .interfaces import (
    IAppointmentReader,
    IAppointmentRepository,
    IAppointmentWriter,
    ICatalogRepository,
    IClientRepository,
    IShopRepository,
)

__all__ = [
    # Domain entities
    "WEEKDAYS",
    "Appointment",
    "AppointmentStatus",
    "BookingChannel",
    "Client",
    "ClientSubscription",
    "DaySchedule",
    "OperatingSchedule",
    "Professional",
    "Service",
    "SettlementMethod",
    "ShopSettings",
    "SoldProduct",
    # Repository interfaces
    "IAppointmentReader",
    "IAppointmentRepository",
    "IAppointmentWriter",
    "ICatalogRepository",
    "IClientRepository",
    "IShopRepository",
]
