"""
Abstract interfaces for repositories following Interface Segregation Principle.

These interfaces define the contract the scheduling engine expects from the
persistent store, enabling dependency injection and easier testing.
"""

from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from .entities import (
    Appointment,
    AppointmentStatus,
    Client,
    OperatingSchedule,
    Professional,
    Service,
    SettlementMethod,
    ShopSettings,
    SoldProduct,
)


class IShopRepository(ABC):
    """Interface for shop settings."""

    @abstractmethod
    def get_settings(self, shop_id: int) -> Optional[ShopSettings]:
        """Get schedule, slot interval and loyalty settings of a shop."""
        pass

    @abstractmethod
    def update_operating_hours(
        self, shop_id: int, schedule: OperatingSchedule, interval_minutes: int
    ) -> ShopSettings:
        """Replace the weekly schedule and slot interval."""
        pass


class ICatalogRepository(ABC):
    """Interface for services and professionals of a shop."""

    @abstractmethod
    def get_service(self, shop_id: int, service_id: int) -> Optional[Service]:
        """Get a service by ID."""
        pass

    @abstractmethod
    def get_service_by_name(self, shop_id: int, name: str) -> Optional[Service]:
        """Get a service by its display name."""
        pass

    @abstractmethod
    def service_durations(self, shop_id: int) -> Dict[str, int]:
        """Map service name to duration in minutes."""
        pass

    @abstractmethod
    def service_prices(self, shop_id: int) -> Dict[str, Decimal]:
        """Map service name to current price."""
        pass

    @abstractmethod
    def get_professional(
        self, shop_id: int, professional_id: int
    ) -> Optional[Professional]:
        """Get a professional by ID."""
        pass


class IAppointmentReader(ABC):
    """Interface for appointment read operations."""

    @abstractmethod
    def get_by_id(self, shop_id: int, appointment_id: int) -> Optional[Appointment]:
        """Get appointment by ID."""
        pass

    @abstractmethod
    def list_for_professional_on(
        self, shop_id: int, professional_id: int, day: date
    ) -> List[Appointment]:
        """All appointments of a professional on one day."""
        pass

    @abstractmethod
    def list_for_date(self, shop_id: int, day: date) -> List[Appointment]:
        """All appointments of a shop on one day."""
        pass

    @abstractmethod
    def list_completed_for_professional(
        self, shop_id: int, professional_id: int, start: date, end: date
    ) -> List[Appointment]:
        """Completed appointments of a professional within [start, end]."""
        pass


class IAppointmentWriter(ABC):
    """Interface for appointment write operations."""

    @abstractmethod
    def create_with_claims(
        self, appointment: Appointment, slot_times: Iterable[str]
    ) -> Appointment:
        """Insert the appointment and one slot claim per occupied slot.

        Raises SlotUnavailableError when a claim already exists.
        """
        pass

    @abstractmethod
    def reschedule(
        self, appointment: Appointment, slot_times: Iterable[str]
    ) -> Appointment:
        """Move an appointment, swapping its slot claims.

        Raises SlotUnavailableError when a new claim already exists.
        """
        pass

    @abstractmethod
    def compare_and_set_status(
        self,
        appointment_id: int,
        expected_version: int,
        status: AppointmentStatus,
        settlement_method: Optional[SettlementMethod] = None,
    ) -> bool:
        """Write status (and settlement) only if the row still has ``expected_version``."""
        pass

    @abstractmethod
    def set_sold_products(
        self, appointment_id: int, products: List[SoldProduct]
    ) -> None:
        """Replace the sold products of an appointment."""
        pass

    @abstractmethod
    def delete(self, shop_id: int, appointment_id: int) -> bool:
        """Delete an appointment together with its claims and products."""
        pass


class IAppointmentRepository(IAppointmentReader, IAppointmentWriter):
    """Complete appointment repository interface."""

    pass


class IClientRepository(ABC):
    """Interface for clients and their loyalty balance."""

    @abstractmethod
    def get_by_id(self, shop_id: int, client_id: int) -> Optional[Client]:
        """Get client by ID."""
        pass

    @abstractmethod
    def get_loyalty_balance(self, shop_id: int, client_id: int) -> Optional[int]:
        """Current points balance, None when the client does not exist."""
        pass

    @abstractmethod
    def compare_and_set_points(
        self, client_id: int, expected_version: int, new_balance: int
    ) -> bool:
        """Write ``new_balance`` only if the row still has ``expected_version``."""
        pass
