import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from barbershop.core import config

logger = logging.getLogger(__name__)

# Create Base class for models
Base = declarative_base()

# Internal lazy globals
_engine: Optional[Engine] = None
_SessionLocal = None
_database_url: Optional[str] = None


def build_engine(database_url: str) -> Engine:
    """Create an engine configured for the backend behind ``database_url``."""
    url = make_url(database_url)
    if url.drivername.startswith("postgres"):
        return create_engine(
            database_url,
            pool_size=10,
            max_overflow=20,
            pool_pre_ping=True,  # Detects and refreshes stale connections
            pool_recycle=3600,
            connect_args={
                "application_name": "barbershop",  # Visible in pg_stat_activity
                "connect_timeout": 10,
            },
        )

    if url.drivername.startswith("sqlite"):
        from sqlalchemy.pool import StaticPool

        if url.database in (None, "", ":memory:"):
            # Single shared in-memory database so DDL persists across sessions
            engine = create_engine(
                database_url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            # Writers wait for each other instead of failing immediately
            engine = create_engine(
                database_url,
                connect_args={"check_same_thread": False, "timeout": 30},
            )

        @event.listens_for(engine, "connect")
        def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    return create_engine(database_url)


def get_engine() -> Engine:
    """Return a cached SQLAlchemy engine, creating it from DATABASE_URL on
    first call. This allows tests to set DATABASE_URL before the engine is
    constructed."""
    global _engine, _SessionLocal, _database_url
    database_url = config.get_database_url()
    if _engine is None or _database_url != database_url:
        if _engine is not None:
            _engine.dispose()
        _engine = build_engine(database_url)
        _SessionLocal = None
        _database_url = database_url
        logger.debug(
            "SQLAlchemy engine created",
            extra={"context": {"dialect": _engine.dialect.name}},
        )
    return _engine


def get_sessionmaker() -> sessionmaker:
    """Return a cached sessionmaker bound to the lazy engine."""
    global _SessionLocal
    engine = get_engine()
    if _SessionLocal is None:
        _SessionLocal = make_sessionmaker(engine)
    return _SessionLocal


def make_sessionmaker(engine: Engine) -> sessionmaker:
    return sessionmaker(
        bind=engine, autoflush=False, expire_on_commit=False
    )


@contextmanager
def session_scope(factory=None) -> Iterator[Session]:
    """Unit of work: commit on success, roll back on any error, always close."""
    db = (factory or get_sessionmaker())()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def create_tables(engine: Optional[Engine] = None) -> None:
    """Create all tables in database using the lazy engine."""
    # Ensure models are imported so Base.metadata is populated
    from barbershop.db import base  # noqa: F401

    Base.metadata.create_all(bind=engine or get_engine())
