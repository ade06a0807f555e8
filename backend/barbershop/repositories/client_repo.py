"""Client repository: client records and their loyalty balance."""

from typing import Optional

from sqlalchemy import update

from barbershop.db.base import Client as DbClient
from barbershop.domain.entities import Client as DomainClient
from barbershop.domain.entities import ClientSubscription
from barbershop.domain.interfaces import IClientRepository


class ClientRepository(IClientRepository):
    """Repository for Client persistence operations."""

    def __init__(self, db_session) -> None:
        self.db = db_session

    def get_by_id(self, shop_id: int, client_id: int) -> Optional[DomainClient]:
        db_client = (
            self.db.query(DbClient)
            .filter_by(id=client_id, shop_id=shop_id)
            .populate_existing()
            .first()
        )
        return self._to_domain(db_client) if db_client else None

    def get_loyalty_balance(self, shop_id: int, client_id: int) -> Optional[int]:
        row = (
            self.db.query(DbClient.loyalty_points)
            .filter_by(id=client_id, shop_id=shop_id)
            .first()
        )
        return row[0] if row else None

    def compare_and_set_points(
        self, client_id: int, expected_version: int, new_balance: int
    ) -> bool:
        if new_balance < 0:
            raise ValueError("Loyalty points cannot be negative")
        result = self.db.execute(
            update(DbClient)
            .where(DbClient.id == client_id, DbClient.version == expected_version)
            .values(loyalty_points=new_balance, version=DbClient.version + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def _to_domain(self, db_client: DbClient) -> DomainClient:
        """Convert DB model to domain entity, with its subscription if any."""
        subscription = None
        if db_client.subscription_plan:
            subscription = ClientSubscription(
                plan_name=db_client.subscription_plan,
                included_services=frozenset(db_client.subscription_services or []),
                ends_on=db_client.subscription_ends_on,
            )
        return DomainClient(
            id=db_client.id,
            name=db_client.name,
            loyalty_points=db_client.loyalty_points,
            version=db_client.version,
            subscription=subscription,
        )
