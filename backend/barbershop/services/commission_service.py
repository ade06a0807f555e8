"""
Commission aggregation over completed appointments.

Commission is a read-time computation: nothing is stored per appointment.
Service commission is ``price(service) * rate``; sold products earn the
professional's product rate only when the caller asks for them.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Mapping

from barbershop.core.config import MONEY_QUANTUM
from barbershop.domain.entities import (
    Appointment,
    AppointmentStatus,
    Professional,
    SettlementMethod,
)

ZERO = Decimal("0")


def commission_for_period(
    completed_appointments: Iterable[Appointment],
    service_price_by_name: Mapping[str, Decimal],
    commission_rate: Decimal,
) -> Decimal:
    """Sum of ``price * rate`` over the appointments.

    Services missing from the price map (deleted or renamed since booking)
    count as 0.
    """
    rate = Decimal(str(commission_rate))
    revenue = sum(
        (
            Decimal(str(service_price_by_name.get(a.service_name, ZERO)))
            for a in completed_appointments
        ),
        ZERO,
    )
    return revenue * rate


def product_commission_for_period(
    completed_appointments: Iterable[Appointment], commission_rate: Decimal
) -> Decimal:
    """Commission on the products sold during the appointments."""
    rate = Decimal(str(commission_rate))
    revenue = sum((a.products_total for a in completed_appointments), ZERO)
    return revenue * rate


def earns_service_commission(
    appointment: Appointment, commission_on_subscription: bool
) -> bool:
    """Complimentary services never earn commission; subscription ones are a shop setting."""
    if appointment.status is not AppointmentStatus.COMPLETED:
        return False
    if appointment.settlement_method is SettlementMethod.COMPLIMENTARY:
        return False
    if appointment.settlement_method is SettlementMethod.SUBSCRIPTION:
        return commission_on_subscription
    return True


def _money(amount: Decimal) -> Decimal:
    return amount.quantize(MONEY_QUANTUM)


@dataclass
class CommissionReport:
    professional_id: int
    professional_name: str
    start_date: date
    end_date: date
    appointment_count: int = 0
    excluded_count: int = 0
    service_revenue: Decimal = ZERO
    service_commission: Decimal = ZERO
    product_revenue: Decimal = ZERO
    product_commission: Decimal = ZERO
    include_products: bool = False
    appointment_ids: List[int] = field(default_factory=list)

    @property
    def total_commission(self) -> Decimal:
        return _money(self.service_commission + self.product_commission)


def build_commission_report(
    professional: Professional,
    appointments: Iterable[Appointment],
    service_price_by_name: Mapping[str, Decimal],
    start_date: date,
    end_date: date,
    commission_on_subscription: bool = True,
    include_products: bool = False,
) -> CommissionReport:
    """Aggregate the commission a professional earned in ``[start_date, end_date]``."""
    in_period = [
        a
        for a in appointments
        if a.professional_id == professional.id
        and a.status is AppointmentStatus.COMPLETED
        and start_date <= a.date <= end_date
    ]
    eligible = [
        a for a in in_period if earns_service_commission(a, commission_on_subscription)
    ]

    service_revenue = commission_for_period(
        eligible, service_price_by_name, Decimal("1")
    )
    report = CommissionReport(
        professional_id=professional.id,
        professional_name=professional.name,
        start_date=start_date,
        end_date=end_date,
        appointment_count=len(eligible),
        excluded_count=len(in_period) - len(eligible),
        service_revenue=_money(service_revenue),
        service_commission=_money(
            commission_for_period(
                eligible,
                service_price_by_name,
                professional.service_commission_rate,
            )
        ),
        include_products=include_products,
        appointment_ids=[a.id for a in eligible],
    )

    if include_products:
        # Products sold during complimentary services still earn commission
        report.product_revenue = _money(
            sum((a.products_total for a in in_period), ZERO)
        )
        report.product_commission = _money(
            product_commission_for_period(
                in_period, professional.product_commission_rate
            )
        )
    return report
