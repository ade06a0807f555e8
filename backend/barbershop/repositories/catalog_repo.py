"""Catalog repository: services and professionals of a shop."""

from decimal import Decimal
from typing import Dict, Optional

from barbershop.db.base import Professional as DbProfessional
from barbershop.db.base import ServiceItem as DbService
from barbershop.domain.entities import Professional as DomainProfessional
from barbershop.domain.entities import Service as DomainService
from barbershop.domain.interfaces import ICatalogRepository


class CatalogRepository(ICatalogRepository):
    """Read access to the service catalog and staff."""

    def __init__(self, db_session) -> None:
        self.db = db_session

    def get_service(self, shop_id: int, service_id: int) -> Optional[DomainService]:
        db_service = (
            self.db.query(DbService).filter_by(id=service_id, shop_id=shop_id).first()
        )
        return self._service_to_domain(db_service) if db_service else None

    def get_service_by_name(self, shop_id: int, name: str) -> Optional[DomainService]:
        db_service = (
            self.db.query(DbService).filter_by(name=name, shop_id=shop_id).first()
        )
        return self._service_to_domain(db_service) if db_service else None

    def service_durations(self, shop_id: int) -> Dict[str, int]:
        rows = (
            self.db.query(DbService.name, DbService.duration_minutes)
            .filter(DbService.shop_id == shop_id)
            .all()
        )
        return {name: duration for name, duration in rows}

    def service_prices(self, shop_id: int) -> Dict[str, Decimal]:
        rows = (
            self.db.query(DbService.name, DbService.price)
            .filter(DbService.shop_id == shop_id)
            .all()
        )
        return {name: Decimal(str(price)) for name, price in rows}

    def get_professional(
        self, shop_id: int, professional_id: int
    ) -> Optional[DomainProfessional]:
        db_professional = (
            self.db.query(DbProfessional)
            .filter_by(id=professional_id, shop_id=shop_id)
            .first()
        )
        if not db_professional:
            return None
        return DomainProfessional(
            id=db_professional.id,
            name=db_professional.name,
            service_commission_rate=Decimal(
                str(db_professional.service_commission_rate)
            ),
            product_commission_rate=Decimal(
                str(db_professional.product_commission_rate)
            ),
        )

    def _service_to_domain(self, db_service: DbService) -> DomainService:
        return DomainService(
            id=db_service.id,
            name=db_service.name,
            duration_minutes=db_service.duration_minutes,
            price=Decimal(str(db_service.price)),
            professional_ids=frozenset(p.id for p in db_service.professionals),
        )
