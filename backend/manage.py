"""Management commands for the barbershop scheduling backend."""

from __future__ import annotations

import logging
from typing import Optional

import click

from barbershop.db.session import create_tables, session_scope

logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")


@click.group()
def cli() -> None:
    """Entry point for management commands."""


@cli.command("init-db")
def init_db() -> None:
    """Create all tables in the configured database (idempotent)."""
    create_tables()
    logging.info("Database tables created.")


@cli.command("seed-demo")
@click.option(
    "--interval",
    "interval_minutes",
    type=click.IntRange(min=1),
    default=None,
    help="Slot interval in minutes. Defaults to APPOINTMENT_INTERVAL_MINUTES.",
)
def seed_demo(interval_minutes: Optional[int]) -> None:
    """Create a demo shop with schedule, staff, services and clients."""
    from barbershop.db.seed import seed_demo_shop

    create_tables()
    with session_scope() as session:
        shop = seed_demo_shop(session, interval_minutes)
        session.flush()
        shop_id, interval = shop.id, shop.interval_minutes

    logging.info("Demo shop ready (id=%s, interval=%s min).", shop_id, interval)
    click.echo(f"Demo shop id: {shop_id}")


if __name__ == "__main__":
    cli()
