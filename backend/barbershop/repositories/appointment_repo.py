"""
Appointment repository implementation following SOLID principles.

Writes never commit: the caller owns the unit of work, so the appointment row,
its slot claims and any loyalty update land in the same transaction.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from barbershop.core.exceptions import AppointmentNotFoundError, SlotUnavailableError
from barbershop.db.base import Appointment as DbAppointment
from barbershop.db.base import AppointmentProduct as DbAppointmentProduct
from barbershop.db.base import SlotClaim as DbSlotClaim
from barbershop.db.base import now_local
from barbershop.domain.entities import Appointment as DomainAppointment
from barbershop.domain.entities import (
    AppointmentStatus,
    SettlementMethod,
    SoldProduct,
)
from barbershop.domain.interfaces import IAppointmentRepository

logger = logging.getLogger(__name__)


class AppointmentRepository(IAppointmentRepository):
    """Repository for Appointment persistence operations."""

    def __init__(self, db_session) -> None:
        self.db = db_session

    def get_by_id(
        self, shop_id: int, appointment_id: int
    ) -> Optional[DomainAppointment]:
        db_appointment = self._get_row(shop_id, appointment_id)
        return self._to_domain(db_appointment) if db_appointment else None

    def list_for_professional_on(
        self, shop_id: int, professional_id: int, day: date
    ) -> List[DomainAppointment]:
        rows = (
            self.db.query(DbAppointment)
            .filter(
                DbAppointment.shop_id == shop_id,
                DbAppointment.professional_id == professional_id,
                DbAppointment.date == day,
            )
            .order_by(DbAppointment.start_time)
            .all()
        )
        return [self._to_domain(row) for row in rows]

    def list_for_date(self, shop_id: int, day: date) -> List[DomainAppointment]:
        rows = (
            self.db.query(DbAppointment)
            .filter(DbAppointment.shop_id == shop_id, DbAppointment.date == day)
            .order_by(DbAppointment.start_time, DbAppointment.professional_id)
            .all()
        )
        return [self._to_domain(row) for row in rows]

    def list_completed_for_professional(
        self, shop_id: int, professional_id: int, start: date, end: date
    ) -> List[DomainAppointment]:
        rows = (
            self.db.query(DbAppointment)
            .filter(
                DbAppointment.shop_id == shop_id,
                DbAppointment.professional_id == professional_id,
                DbAppointment.status == AppointmentStatus.COMPLETED.value,
                DbAppointment.date >= start,
                DbAppointment.date <= end,
            )
            .order_by(DbAppointment.date, DbAppointment.start_time)
            .all()
        )
        return [self._to_domain(row) for row in rows]

    def create_with_claims(
        self, appointment: DomainAppointment, slot_times: Iterable[str]
    ) -> DomainAppointment:
        db_appointment = DbAppointment(
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
            version=1,
        )
        for slot_time in slot_times:
            db_appointment.claims.append(
                DbSlotClaim(
                    professional_id=appointment.professional_id,
                    date=appointment.date,
                    slot_time=slot_time,
                )
            )
        for product in appointment.sold_products:
            db_appointment.sold_products.append(self._product_to_db(product))

        self.db.add(db_appointment)
        self._flush_claims(appointment)
        return self._to_domain(db_appointment)

    def reschedule(
        self, appointment: DomainAppointment, slot_times: Iterable[str]
    ) -> DomainAppointment:
        db_appointment = self._get_row(appointment.shop_id, appointment.id)
        if not db_appointment:
            raise AppointmentNotFoundError(f"Appointment {appointment.id} not found")

        # Old claims must be gone before the new ones are inserted
        self.db.query(DbSlotClaim).filter(
            DbSlotClaim.appointment_id == db_appointment.id
        ).delete(synchronize_session=False)
        self.db.expire(db_appointment, ["claims"])

        db_appointment.professional_id = appointment.professional_id
        db_appointment.service_name = appointment.service_name
        db_appointment.date = appointment.date
        db_appointment.start_time = appointment.start_time
        db_appointment.version = db_appointment.version + 1
        for slot_time in slot_times:
            self.db.add(
                DbSlotClaim(
                    appointment_id=db_appointment.id,
                    professional_id=appointment.professional_id,
                    date=appointment.date,
                    slot_time=slot_time,
                )
            )

        self._flush_claims(appointment)
        self.db.expire(db_appointment, ["claims"])
        return self._to_domain(db_appointment)

    def compare_and_set_status(
        self,
        appointment_id: int,
        expected_version: int,
        status: AppointmentStatus,
        settlement_method: Optional[SettlementMethod] = None,
    ) -> bool:
        values = {
            "status": AppointmentStatus(status).value,
            "version": DbAppointment.version + 1,
            "updated_at": now_local(),
        }
        if settlement_method is not None:
            values["settlement_method"] = SettlementMethod(settlement_method).value

        result = self.db.execute(
            update(DbAppointment)
            .where(
                DbAppointment.id == appointment_id,
                DbAppointment.version == expected_version,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def set_sold_products(
        self, appointment_id: int, products: List[SoldProduct]
    ) -> None:
        self.db.query(DbAppointmentProduct).filter(
            DbAppointmentProduct.appointment_id == appointment_id
        ).delete(synchronize_session=False)
        for product in products:
            db_product = self._product_to_db(product)
            db_product.appointment_id = appointment_id
            self.db.add(db_product)
        self.db.flush()

        db_appointment = self.db.get(DbAppointment, appointment_id)
        if db_appointment is not None:
            self.db.expire(db_appointment, ["sold_products"])

    def delete(self, shop_id: int, appointment_id: int) -> bool:
        db_appointment = self._get_row(shop_id, appointment_id)
        if not db_appointment:
            return False
        self.db.delete(db_appointment)
        self.db.flush()
        return True

    def _get_row(self, shop_id: int, appointment_id: int) -> Optional[DbAppointment]:
        return (
            self.db.query(DbAppointment)
            .filter_by(id=appointment_id, shop_id=shop_id)
            .populate_existing()
            .first()
        )

    def _flush_claims(self, appointment: DomainAppointment) -> None:
        """Flush pending claims; a unique-constraint hit means the slot was taken."""
        try:
            self.db.flush()
        except IntegrityError as e:
            logger.info(
                "Slot claim rejected by store",
                extra={
                    "context": {
                        "professional_id": appointment.professional_id,
                        "date": str(appointment.date),
                        "start_time": appointment.start_time,
                        "error": str(e.orig),
                    }
                },
            )
            raise SlotUnavailableError() from e

    @staticmethod
    def _product_to_db(product: SoldProduct) -> DbAppointmentProduct:
        return DbAppointmentProduct(
            product_id=product.product_id,
            name=product.name,
            quantity=product.quantity,
            unit_price=product.unit_price,
        )

    def _to_domain(self, db_appointment: DbAppointment) -> DomainAppointment:
        """Convert database model to domain entity."""
        return DomainAppointment(
            id=db_appointment.id,
            shop_id=db_appointment.shop_id,
            client_id=db_appointment.client_id,
            professional_id=db_appointment.professional_id,
            service_name=db_appointment.service_name,
            date=db_appointment.date,
            start_time=db_appointment.start_time,
            status=AppointmentStatus(db_appointment.status),
            settlement_method=(
                SettlementMethod(db_appointment.settlement_method)
                if db_appointment.settlement_method
                else None
            ),
            sold_products=[
                SoldProduct(
                    product_id=p.product_id,
                    quantity=p.quantity,
                    unit_price=Decimal(str(p.unit_price)),
                    name=p.name or "",
                )
                for p in db_appointment.sold_products
            ],
            version=db_appointment.version,
            created_at=db_appointment.created_at,
            updated_at=db_appointment.updated_at,
        )
