"""
Appointment lifecycle state machine.

The transition table is the single place deciding which status changes are
legal. Completion is the only transition with side effects: it records the
settlement method and accrues loyalty points inside the caller's transaction.
"""

import dataclasses
import logging
from typing import Dict, FrozenSet, Optional, Union

from barbershop.core.exceptions import (
    AccrualSkipped,
    ConcurrentUpdateError,
    InvalidTransitionError,
    SettlementNotAllowedError,
)
from barbershop.domain.entities import (
    Appointment,
    AppointmentStatus,
    BookingChannel,
    SettlementMethod,
    ShopSettings,
)
from barbershop.domain.interfaces import IAppointmentRepository, IClientRepository

from .loyalty_service import LoyaltyLedger

logger = logging.getLogger(__name__)

S = AppointmentStatus

TRANSITIONS: Dict[AppointmentStatus, FrozenSet[AppointmentStatus]] = {
    S.PENDING: frozenset({S.CONFIRMED, S.IN_PROGRESS}),
    S.CONFIRMED: frozenset({S.IN_PROGRESS}),
    S.IN_PROGRESS: frozenset({S.COMPLETED}),
    S.COMPLETED: frozenset(),
}

CREATABLE_STATUSES = frozenset({S.PENDING, S.CONFIRMED, S.IN_PROGRESS})

DEFAULT_STATUS_BY_CHANNEL = {
    BookingChannel.SELF_SERVICE: S.CONFIRMED,
    BookingChannel.STAFF: S.PENDING,
}


def can_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    return AppointmentStatus(target) in TRANSITIONS[AppointmentStatus(current)]


def ensure_transition(current: AppointmentStatus, target: AppointmentStatus) -> None:
    try:
        current = AppointmentStatus(current)
        target = AppointmentStatus(target)
    except ValueError:
        raise InvalidTransitionError(current, target)
    if not can_transition(current, target):
        raise InvalidTransitionError(current, target)


def initial_status(
    channel: Union[BookingChannel, str] = BookingChannel.STAFF,
    requested: Optional[Union[AppointmentStatus, str]] = None,
) -> AppointmentStatus:
    """Status a new appointment is created with.

    Self-service bookings default to confirmed, staff bookings to pending.
    Walk-ins may start in progress; nothing is created already completed.
    """
    channel = BookingChannel(channel)
    if requested is None:
        return DEFAULT_STATUS_BY_CHANNEL[channel]
    try:
        status = AppointmentStatus(requested)
    except ValueError:
        raise InvalidTransitionError("new", requested)
    if status not in CREATABLE_STATUSES:
        raise InvalidTransitionError("new", status)
    return status


class AppointmentLifecycle:
    """Applies status transitions through the repositories of one unit of work."""

    def __init__(
        self,
        appointment_repo: IAppointmentRepository,
        client_repo: IClientRepository,
        loyalty_ledger: Optional[LoyaltyLedger] = None,
    ):
        self.appointment_repo = appointment_repo
        self.client_repo = client_repo
        self.loyalty_ledger = loyalty_ledger or LoyaltyLedger(client_repo)

    def advance(
        self, appointment: Appointment, target: Union[AppointmentStatus, str]
    ) -> Appointment:
        """Move to a status without side effects (confirm, start)."""
        ensure_transition(appointment.status, target)
        target = AppointmentStatus(target)
        if target is S.COMPLETED:
            raise ValueError("A settlement method is required to complete")

        self._write_status(appointment, target)
        logger.info(
            "Appointment status changed",
            extra={
                "context": {
                    "appointment_id": appointment.id,
                    "from": appointment.status.value,
                    "to": target.value,
                }
            },
        )
        return dataclasses.replace(
            appointment, status=target, version=appointment.version + 1
        )

    def complete(
        self,
        appointment: Appointment,
        settlement_method: Union[SettlementMethod, str, None],
        settings: ShopSettings,
    ) -> Appointment:
        """
        Complete an in-progress appointment.

        In the caller's transaction:
        - the status and settlement method are written with a version check
        - loyalty points are accrued when the program is enabled and the
          service was not complimentary

        Raises:
            InvalidTransitionError: the appointment is not in progress
            SettlementNotAllowedError: subscription does not cover the service
            ConcurrentUpdateError: a version-checked write lost a race
        """
        ensure_transition(appointment.status, S.COMPLETED)
        if settlement_method is None or settlement_method == "":
            raise ValueError("Settlement method is required to complete")
        try:
            settlement = SettlementMethod(settlement_method)
        except ValueError:
            raise ValueError(f"Unknown settlement method: {settlement_method}")

        if settlement is SettlementMethod.SUBSCRIPTION:
            self._check_subscription(appointment)

        self._write_status(appointment, S.COMPLETED, settlement)

        accrued = None
        if settings.loyalty_enabled and settlement is not SettlementMethod.COMPLIMENTARY:
            points = settings.points_for(appointment.service_name)
            try:
                accrued = self.loyalty_ledger.accrue(
                    appointment.shop_id, appointment.client_id, points
                )
            except AccrualSkipped as e:
                logger.warning(
                    "Loyalty accrual skipped",
                    extra={
                        "context": {
                            "appointment_id": appointment.id,
                            "client_id": appointment.client_id,
                            "reason": str(e),
                        }
                    },
                )

        logger.info(
            "Appointment completed",
            extra={
                "context": {
                    "appointment_id": appointment.id,
                    "settlement_method": settlement.value,
                    "loyalty_balance": accrued,
                }
            },
        )
        return dataclasses.replace(
            appointment,
            status=S.COMPLETED,
            settlement_method=settlement,
            version=appointment.version + 1,
        )

    def _check_subscription(self, appointment: Appointment) -> None:
        client = self.client_repo.get_by_id(appointment.shop_id, appointment.client_id)
        subscription = client.subscription if client else None
        if subscription is None or not subscription.covers(
            appointment.service_name, appointment.date
        ):
            raise SettlementNotAllowedError(
                f"Client has no active subscription covering '{appointment.service_name}'"
            )

    def _write_status(
        self,
        appointment: Appointment,
        status: AppointmentStatus,
        settlement: Optional[SettlementMethod] = None,
    ) -> None:
        if not self.appointment_repo.compare_and_set_status(
            appointment.id, appointment.version, status, settlement
        ):
            raise ConcurrentUpdateError(
                f"Appointment {appointment.id} changed concurrently"
            )
