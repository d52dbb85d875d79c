"""Database configuration and base setup for wp-orm."""

import os
from typing import Generator, Optional

import structlog
from sqlalchemy import Engine, create_engine
from sqlalchemy.engine.url import URL, make_url
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import get_settings

logger = structlog.get_logger(__name__)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


def table_name(name: str) -> str:
    """Return ``name`` with the configured WordPress table prefix."""
    return f"{get_settings().table_prefix}{name}"


def _ensure_sync_driver(url: URL) -> URL:
    """Force a synchronous driver for the ORM engine."""

    if url.drivername.startswith("mysql+"):
        # Normalize async MySQL drivers to pymysql (sync)
        if any(token in url.drivername for token in ("aiomysql", "asyncmy")):
            url = url.set(drivername="mysql+pymysql")
    elif url.drivername.startswith("sqlite+"):
        # Align async SQLite drivers to the synchronous default
        if "aiosqlite" in url.drivername:
            url = url.set(drivername="sqlite")

    return url


def get_database_url(raw_url: Optional[str] = None) -> str:
    """Return a database URL with a guaranteed synchronous driver."""

    url = make_url(
        raw_url or os.getenv("DATABASE_URL") or get_settings().database_url
    )
    # str(url) would mask the password with ***
    return _ensure_sync_driver(url).render_as_string(hide_password=False)


_engine: Optional[Engine] = None


def get_engine() -> Engine:
    """
    Create and cache the database engine.

    Lazy so the URL is read from the environment at first use rather than
    at import time.
    """
    global _engine
    if _engine is not None:
        return _engine

    database_url = get_database_url()
    echo = get_settings().echo_sql

    if database_url.startswith("sqlite"):
        # SQLite configuration for development/testing
        _engine = create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        # MySQL/MariaDB, where WordPress usually lives
        _engine = create_engine(
            database_url,
            echo=echo,
            pool_size=5,
            max_overflow=10,
            pool_pre_ping=True,
            pool_recycle=3600,
        )

    logger.debug("Database engine created", dialect=_engine.dialect.name)
    return _engine


def reset_engine() -> None:
    """Dispose of the cached engine so the next call builds a new one."""
    global _engine
    if _engine is not None:
        _engine.dispose()
    _engine = None


def get_session_local(engine: Optional[Engine] = None) -> sessionmaker:
    """Get a sessionmaker bound to ``engine`` or the cached engine."""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine or get_engine())


def get_db() -> Generator[Session, None, None]:
    """Yield a session and close it afterwards."""
    session_local = get_session_local()
    db = session_local()
    try:
        yield db
    finally:
        db.close()


def init_database(engine: Optional[Engine] = None) -> None:
    """Create every WordPress table known to the models.

    Meant for tests and local sandboxes; it does not migrate existing schemas.
    """
    # Import all models to ensure they're registered with Base
    from . import models, post_models  # noqa: F401

    Base.metadata.create_all(bind=engine or get_engine())
    logger.info("Database initialized")


def drop_database(engine: Optional[Engine] = None) -> None:
    """Drop all WordPress tables. Use with caution!"""
    from . import models, post_models  # noqa: F401

    Base.metadata.drop_all(bind=engine or get_engine())
    logger.info("Database tables dropped")
