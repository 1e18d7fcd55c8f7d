"""Database engine and session management."""
import logging
import time
from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from portfolio_monitor.db.models import (  # noqa: F401  # pylint: disable=unused-import
    SessionRecord, User)

logger = logging.getLogger(__name__)


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """Create the SQLAlchemy engine for users and durable sessions."""
    if database_url.startswith("sqlite"):
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite+pysqlite://"):
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, echo=echo, **kwargs)
    return create_engine(
        database_url,
        echo=echo,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
    )


@contextmanager
def get_session(engine: Engine) -> Generator[Session, None, None]:
    """Yield a database session; commits on success, rolls back on error."""
    session = Session(engine, expire_on_commit=False)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(engine: Engine) -> None:
    """Create all tables. Safe to call on startup (idempotent for existing tables)."""
    SQLModel.metadata.create_all(engine)


def ping(engine: Engine) -> None:
    """Run a trivial query; raises SQLAlchemyError when the database is unreachable."""
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))


def wait_for_database(engine: Engine, retries: int = 10, delay_seconds: float = 2.0) -> bool:
    """Ping the database up to `retries` times; True once it answers."""
    for attempt in range(1, retries + 1):
        try:
            ping(engine)
            logger.info("Database connection established")
            return True
        except SQLAlchemyError as exc:
            logger.warning(
                "Database connection attempt %d/%d failed: %s",
                attempt,
                retries,
                type(exc).__name__,
            )
            if attempt < retries:
                time.sleep(delay_seconds)
    logger.error("Failed to connect to database after %d attempts", retries)
    return False
