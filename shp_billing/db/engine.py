"""
SQLAlchemy engine initialization, session factories and transactional scope.

PostgreSQL is the production backend: ``SELECT ... FOR UPDATE`` there
serializes usage updates across processes. SQLite is supported for
development and tests; it ignores row locks, so the in-process client
locks and the optimistic ``version`` column carry the guarantee there.
"""

import logging
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from shp_billing.db.base import Base
from shp_billing.utils.logging_utils import redact_database_url

logger = logging.getLogger(__name__)

# Module-level engine and session factory used by the CLI
_engine: Optional[Engine] = None
_SessionFactory: Optional[sessionmaker] = None


def create_engine_from_url(database_url: str, echo: bool = False) -> Engine:
    """
    Create an engine with backend-appropriate pool settings.

    Args:
        database_url: SQLAlchemy database URL
        echo: If True, log all SQL statements

    Returns:
        SQLAlchemy Engine instance
    """
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False, "timeout": 30}}
        if ":memory:" in database_url or database_url.rstrip("/") == "sqlite:":
            # One shared connection, or every session would see an empty database
            kwargs["poolclass"] = StaticPool
        engine = create_engine(database_url, echo=echo, **kwargs)
    else:
        engine = create_engine(
            database_url,
            echo=echo,
            pool_pre_ping=True,
            pool_size=10,
            max_overflow=20,
            pool_recycle=1800,
        )

    logger.info(f"Database engine created for {redact_database_url(database_url)}")
    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    """Create a session factory bound to ``engine``."""
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def create_tables(engine: Engine) -> None:
    """Create all tables that do not exist yet."""
    # Register the mappers on Base.metadata
    from shp_billing.db import models  # noqa: F401

    Base.metadata.create_all(engine)
    logger.info("Database tables created")


def drop_tables(engine: Engine) -> None:
    """Drop all tables. Only for tests and local resets."""
    from shp_billing.db import models  # noqa: F401

    Base.metadata.drop_all(engine)


@contextmanager
def session_scope(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """
    Provide a transactional scope around a series of operations.

    Commits on normal exit; on any exception rolls back, closes the session
    and re-raises.

    Usage:
        with session_scope(factory) as session:
            session.add(entry)
    """
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.debug("Transaction rolled back", exc_info=True)
        raise
    finally:
        session.close()


def init_engine_from_url(database_url: str, echo: bool = False) -> Engine:
    """Initialize the module-level engine and session factory."""
    global _engine, _SessionFactory

    _engine = create_engine_from_url(database_url, echo=echo)
    _SessionFactory = create_session_factory(_engine)
    return _engine


def get_engine() -> Engine:
    """
    Get the module-level engine.

    Raises:
        RuntimeError: If init_engine_from_url() has not been called
    """
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session_factory() -> sessionmaker:
    """
    Get the module-level session factory.

    Raises:
        RuntimeError: If init_engine_from_url() has not been called
    """
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory


def reset_engine() -> None:
    """Dispose the module-level engine (useful for testing)."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None
