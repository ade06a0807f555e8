"""
Loyalty point accrual.

A single compare-and-set against the client row: read balance and version,
write ``balance + points`` only if the version is unchanged. A lost race is
reported with ``ConcurrentUpdateError`` so the caller can roll back and
re-attempt the whole unit of work.
"""

import logging

from barbershop.core.exceptions import AccrualSkipped, ConcurrentUpdateError
from barbershop.domain.interfaces import IClientRepository

logger = logging.getLogger(__name__)


class LoyaltyLedger:
    """Accrues loyalty points on a client's account."""

    def __init__(self, client_repo: IClientRepository):
        self.client_repo = client_repo

    def accrue(self, shop_id: int, client_id: int, points: int) -> int:
        """Add ``points`` to the client's balance and return the new balance.

        Raises:
            AccrualSkipped: the client record does not exist
            ConcurrentUpdateError: another writer changed the client first
        """
        if points < 0:
            raise ValueError("Loyalty accrual cannot be negative")

        client = self.client_repo.get_by_id(shop_id, client_id)
        if client is None:
            raise AccrualSkipped(f"Client {client_id} not found in shop {shop_id}")
        if points == 0:
            return client.loyalty_points

        new_balance = client.loyalty_points + points
        if not self.client_repo.compare_and_set_points(
            client.id, client.version, new_balance
        ):
            logger.debug(
                "Loyalty compare-and-set lost",
                extra={
                    "context": {"client_id": client_id, "version": client.version}
                },
            )
            raise ConcurrentUpdateError(
                f"Loyalty balance of client {client_id} changed concurrently"
            )

        logger.info(
            "Loyalty points accrued",
            extra={
                "context": {
                    "shop_id": shop_id,
                    "client_id": client_id,
                    "points": points,
                    "balance": new_balance,
                }
            },
        )
        return new_balance
