"""
Scheduling service: the operations exposed to the booking UI, the admin UI
and the financial reports.

Every operation runs as one unit of work on its own session. Repositories
never commit; this service commits on success and rolls back on any error, so
a failed write leaves no partial appointment and no partial point grant.
"""

import logging
import time
from dataclasses import dataclass
from datetime import date
from typing import Callable, List, Optional, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from barbershop.core import config
from barbershop.core.exceptions import (
    AppointmentFinalizedError,
    AppointmentNotFoundError,
    ConcurrentUpdateError,
    ResourceNotFoundError,
    ScheduleClosedError,
    SlotUnavailableError,
    StoreUnavailableError,
)
from barbershop.core.logging_config import log_performance
from barbershop.db.session import get_sessionmaker
from barbershop.domain.entities import (
    Appointment,
    OperatingSchedule,
    Service,
    ShopSettings,
    SoldProduct,
    validate_time,
)
from barbershop.repositories.appointment_repo import AppointmentRepository
from barbershop.repositories.catalog_repo import CatalogRepository
from barbershop.repositories.client_repo import ClientRepository
from barbershop.repositories.shop_repo import ShopRepository

from .appointment_lifecycle import AppointmentLifecycle
from .appointment_lifecycle import initial_status as resolve_initial_status
from .availability import available_slots, occupied_slot_times
from .calendar_math import generate_day_slots
from .commission_service import CommissionReport, build_commission_report

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class Repositories:
    """Repositories bound to the session of one unit of work."""

    shops: ShopRepository
    catalog: CatalogRepository
    appointments: AppointmentRepository
    clients: ClientRepository

    @classmethod
    def for_session(cls, db: Session) -> "Repositories":
        return cls(
            shops=ShopRepository(db),
            catalog=CatalogRepository(db),
            appointments=AppointmentRepository(db),
            clients=ClientRepository(db),
        )


class SchedulingService:
    """Application service for scheduling use-cases.

    Args:
        session_factory: callable returning a new SQLAlchemy session;
            defaults to the application's sessionmaker
        max_attempts: attempts of a unit of work whose version-checked writes
            lose against concurrent writers; defaults to LOYALTY_MAX_ATTEMPTS
    """

    def __init__(
        self,
        session_factory: Optional[Callable[[], Session]] = None,
        max_attempts: Optional[int] = None,
    ):
        self.session_factory = session_factory or get_sessionmaker()
        self.max_attempts = max_attempts or config.LOYALTY_MAX_ATTEMPTS

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_available_slots(
        self,
        shop_id: int,
        professional_id: int,
        service_id: int,
        day: date,
        exclude_appointment_id: Optional[int] = None,
    ) -> List[str]:
        """Ordered ``HH:MM`` start times at which the service can be booked."""

        def work(repos: Repositories) -> List[str]:
            settings = self._require_settings(repos, shop_id)
            service = self._require_service(repos, shop_id, service_id)
            self._require_professional(repos, shop_id, professional_id, service)
            return self._free_slots(
                repos, settings, professional_id, service, day, exclude_appointment_id
            )

        return self._run("get_available_slots", work)

    def get_appointment(self, shop_id: int, appointment_id: int) -> Appointment:
        return self._run(
            "get_appointment",
            lambda repos: self._require_appointment(repos, shop_id, appointment_id),
        )

    def list_appointments(
        self, shop_id: int, day: date, professional_id: Optional[int] = None
    ) -> List[Appointment]:
        def work(repos: Repositories) -> List[Appointment]:
            if professional_id is not None:
                return repos.appointments.list_for_professional_on(
                    shop_id, professional_id, day
                )
            return repos.appointments.list_for_date(shop_id, day)

        return self._run("list_appointments", work)

    def commission_report(
        self,
        shop_id: int,
        professional_id: int,
        start_date: date,
        end_date: date,
        include_products: bool = False,
    ) -> CommissionReport:
        """Commission a professional earned over completed appointments in the period."""
        if start_date > end_date:
            raise ValueError("Start date must not be after end date")

        def work(repos: Repositories) -> CommissionReport:
            settings = self._require_settings(repos, shop_id)
            professional = repos.catalog.get_professional(shop_id, professional_id)
            if professional is None:
                raise ResourceNotFoundError(f"Professional {professional_id} not found")
            appointments = repos.appointments.list_completed_for_professional(
                shop_id, professional_id, start_date, end_date
            )
            return build_commission_report(
                professional,
                appointments,
                repos.catalog.service_prices(shop_id),
                start_date,
                end_date,
                commission_on_subscription=settings.commission_on_subscription,
                include_products=include_products,
            )

        return self._run("commission_report", work)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def book_appointment(
        self,
        shop_id: int,
        client_id: int,
        professional_id: int,
        service_id: int,
        day: date,
        start_time: str,
        initial_status: Optional[str] = None,
        channel: str = "staff",
        sold_products: Optional[List[SoldProduct]] = None,
    ) -> Appointment:
        """
        Book an appointment.

        Availability is recomputed inside the creating transaction and the
        occupied slots are claimed in the same transaction, so of two
        concurrent bookings for overlapping slots exactly one succeeds.

        Raises:
            ScheduleClosedError: the shop is closed that day
            SlotUnavailableError: the start time does not fit (anymore)
        """
        validate_time(start_time, "start_time")
        status = resolve_initial_status(channel, initial_status)

        def work(repos: Repositories) -> Appointment:
            settings = self._require_settings(repos, shop_id)
            service = self._require_service(repos, shop_id, service_id)
            self._require_professional(repos, shop_id, professional_id, service)
            if repos.clients.get_by_id(shop_id, client_id) is None:
                raise ResourceNotFoundError(f"Client {client_id} not found")

            free = self._free_slots(repos, settings, professional_id, service, day)
            if start_time not in free:
                raise SlotUnavailableError()

            appointment = Appointment(
                shop_id=shop_id,
                client_id=client_id,
                professional_id=professional_id,
                service_name=service.name,
                date=day,
                start_time=start_time,
                status=status,
                sold_products=list(sold_products or []),
            )
            return repos.appointments.create_with_claims(
                appointment,
                occupied_slot_times(
                    start_time, service.duration_minutes, settings.interval_minutes
                ),
            )

        created = self._run("book_appointment", work)
        logger.info(
            "Appointment booked",
            extra={
                "context": {
                    "shop_id": shop_id,
                    "appointment_id": created.id,
                    "professional_id": professional_id,
                    "date": str(day),
                    "start_time": start_time,
                    "status": created.status.value,
                }
            },
        )
        return created

    def reschedule_appointment(
        self,
        shop_id: int,
        appointment_id: int,
        day: date,
        start_time: str,
        professional_id: Optional[int] = None,
        service_id: Optional[int] = None,
    ) -> Appointment:
        """Move a booking, re-validating availability without its own footprint."""
        validate_time(start_time, "start_time")

        def work(repos: Repositories) -> Appointment:
            current = self._require_appointment(repos, shop_id, appointment_id)
            if current.status.is_terminal:
                raise AppointmentFinalizedError(
                    "Completed appointments cannot be rescheduled"
                )
            settings = self._require_settings(repos, shop_id)
            if service_id is not None:
                service = self._require_service(repos, shop_id, service_id)
            else:
                service = repos.catalog.get_service_by_name(
                    shop_id, current.service_name
                )
                if service is None:
                    raise ResourceNotFoundError(
                        f"Service '{current.service_name}' no longer exists"
                    )
            target_professional = professional_id or current.professional_id
            self._require_professional(repos, shop_id, target_professional, service)

            free = self._free_slots(
                repos,
                settings,
                target_professional,
                service,
                day,
                exclude_appointment_id=current.id,
            )
            if start_time not in free:
                raise SlotUnavailableError()

            current.professional_id = target_professional
            current.service_name = service.name
            current.date = day
            current.start_time = start_time
            return repos.appointments.reschedule(
                current,
                occupied_slot_times(
                    start_time, service.duration_minutes, settings.interval_minutes
                ),
            )

        moved = self._run("reschedule_appointment", work)
        logger.info(
            "Appointment rescheduled",
            extra={
                "context": {
                    "appointment_id": appointment_id,
                    "date": str(day),
                    "start_time": start_time,
                }
            },
        )
        return moved

    def advance_status(
        self, shop_id: int, appointment_id: int, status: str
    ) -> Appointment:
        """Confirm or start an appointment."""

        def work(repos: Repositories) -> Appointment:
            appointment = self._require_appointment(repos, shop_id, appointment_id)
            return self._lifecycle(repos).advance(appointment, status)

        return self._run("advance_status", work, retry_on_conflict=True)

    def complete_appointment(
        self,
        shop_id: int,
        appointment_id: int,
        settlement_method: str,
        sold_products: Optional[List[SoldProduct]] = None,
    ) -> Appointment:
        """
        Complete an in-progress appointment and accrue loyalty points.

        The whole unit of work is re-attempted when a version-checked write
        loses against a concurrent completion, up to ``max_attempts`` times.
        """

        def work(repos: Repositories) -> Appointment:
            appointment = self._require_appointment(repos, shop_id, appointment_id)
            settings = self._require_settings(repos, shop_id)
            if sold_products is not None and not appointment.status.is_terminal:
                repos.appointments.set_sold_products(appointment.id, sold_products)
                appointment.sold_products = list(sold_products)
            return self._lifecycle(repos).complete(
                appointment, settlement_method, settings
            )

        return self._run("complete_appointment", work, retry_on_conflict=True)

    def update_sold_products(
        self, shop_id: int, appointment_id: int, products: List[SoldProduct]
    ) -> Appointment:
        def work(repos: Repositories) -> Appointment:
            appointment = self._require_appointment(repos, shop_id, appointment_id)
            if appointment.status.is_terminal:
                raise AppointmentFinalizedError(
                    "Products of a completed appointment cannot be changed"
                )
            repos.appointments.set_sold_products(appointment.id, products)
            appointment.sold_products = list(products)
            return appointment

        return self._run("update_sold_products", work)

    def delete_appointment(self, shop_id: int, appointment_id: int) -> None:
        """Remove an appointment unconditionally, releasing its slots."""

        def work(repos: Repositories) -> None:
            if not repos.appointments.delete(shop_id, appointment_id):
                raise AppointmentNotFoundError(f"Appointment {appointment_id} not found")

        self._run("delete_appointment", work)
        logger.info(
            "Appointment deleted",
            extra={"context": {"shop_id": shop_id, "appointment_id": appointment_id}},
        )

    def update_operating_hours(
        self,
        shop_id: int,
        schedule: OperatingSchedule,
        interval_minutes: Optional[int] = None,
    ) -> ShopSettings:
        """Replace the weekly schedule and, optionally, the slot interval.

        Existing bookings keep the slot claims of the grid they were made on.
        """

        def work(repos: Repositories) -> ShopSettings:
            settings = self._require_settings(repos, shop_id)
            return repos.shops.update_operating_hours(
                shop_id, schedule, interval_minutes or settings.interval_minutes
            )

        return self._run("update_operating_hours", work)

    def get_settings(self, shop_id: int) -> ShopSettings:
        return self._run(
            "get_settings", lambda repos: self._require_settings(repos, shop_id)
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _lifecycle(self, repos: Repositories) -> AppointmentLifecycle:
        return AppointmentLifecycle(repos.appointments, repos.clients)

    def _free_slots(
        self,
        repos: Repositories,
        settings: ShopSettings,
        professional_id: int,
        service: Service,
        day: date,
        exclude_appointment_id: Optional[int] = None,
    ) -> List[str]:
        day_schedule = settings.schedule.for_date(day)
        if not day_schedule.open:
            raise ScheduleClosedError(f"The shop is closed on {day.isoformat()}")

        candidates = generate_day_slots(
            settings.schedule, day, settings.interval_minutes
        )
        return available_slots(
            candidates,
            repos.appointments.list_for_professional_on(
                settings.shop_id, professional_id, day
            ),
            service.duration_minutes,
            settings.interval_minutes,
            day_schedule,
            service_durations=repos.catalog.service_durations(settings.shop_id),
            exclude_appointment_id=exclude_appointment_id,
        )

    @staticmethod
    def _require_settings(repos: Repositories, shop_id: int) -> ShopSettings:
        settings = repos.shops.get_settings(shop_id)
        if settings is None:
            raise ResourceNotFoundError(f"Shop {shop_id} not found")
        return settings

    @staticmethod
    def _require_service(repos: Repositories, shop_id: int, service_id: int) -> Service:
        service = repos.catalog.get_service(shop_id, service_id)
        if service is None:
            raise ResourceNotFoundError(f"Service {service_id} not found")
        return service

    @staticmethod
    def _require_professional(
        repos: Repositories, shop_id: int, professional_id: int, service: Service
    ) -> None:
        if repos.catalog.get_professional(shop_id, professional_id) is None:
            raise ResourceNotFoundError(f"Professional {professional_id} not found")
        if not service.is_performed_by(professional_id):
            raise ValueError(
                f"Professional {professional_id} does not perform '{service.name}'"
            )

    @staticmethod
    def _require_appointment(
        repos: Repositories, shop_id: int, appointment_id: int
    ) -> Appointment:
        appointment = repos.appointments.get_by_id(shop_id, appointment_id)
        if appointment is None:
            raise AppointmentNotFoundError(f"Appointment {appointment_id} not found")
        return appointment

    def _run(
        self,
        operation: str,
        work: Callable[[Repositories], T],
        retry_on_conflict: bool = False,
    ) -> T:
        """Run ``work`` in its own transaction, re-attempting lost compare-and-sets."""
        attempts = self.max_attempts if retry_on_conflict else 1
        start_time = time.time()

        for attempt in range(1, attempts + 1):
            db = self.session_factory()
            try:
                result = work(Repositories.for_session(db))
                db.commit()
                log_performance(
                    operation,
                    (time.time() - start_time) * 1000,
                    attempt=attempt,
                )
                if attempt > 1:
                    logger.info(
                        f"{operation} succeeded after {attempt} attempts",
                        extra={
                            "context": {
                                "operation": operation,
                                "attempt": attempt,
                                "duration_ms": round(
                                    (time.time() - start_time) * 1000, 2
                                ),
                            }
                        },
                    )
                return result
            except ConcurrentUpdateError as e:
                db.rollback()
                logger.warning(
                    f"{operation} lost a concurrent update",
                    extra={
                        "context": {
                            "operation": operation,
                            "attempt": attempt,
                            "max_attempts": attempts,
                            "error": str(e),
                        }
                    },
                )
                if attempt >= attempts:
                    raise StoreUnavailableError(
                        f"{operation} kept conflicting after {attempts} attempts"
                    ) from e
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(
                    f"Database error during {operation}",
                    extra={"context": {"operation": operation, "error": str(e)}},
                    exc_info=True,
                )
                raise StoreUnavailableError(f"Database error during {operation}") from e
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()

        # Unreachable: the loop either returns or raises
        raise StoreUnavailableError(f"{operation} did not run")
