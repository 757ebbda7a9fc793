"""
Database session management for Tallyboard.

Provides the SQLAlchemy engine and session factory used by the
database-backed row store. Uses the settings from config.py.

Usage:
    from tallyboard.db import get_session

    with get_session() as session:
        rows = session.query(StoredRow).all()
        # Commits automatically on exit, rolls back on exception
"""

from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from tallyboard.config import settings


def get_engine(database_url: Optional[str] = None) -> Engine:
    """
    Create a SQLAlchemy engine for the given URL (defaults to settings).

    SQLite URLs are configured so that the same connection can be used from
    the webhook worker threads; an in-memory SQLite database additionally
    shares one connection, otherwise every connection would see an empty
    database.
    """
    url = database_url or settings.database_url

    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url in ("sqlite://", "sqlite+pysqlite://"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, echo=settings.log_level == "DEBUG", **kwargs)

    return create_engine(
        url,
        pool_pre_ping=True,  # Verify connection is alive before using
        echo=settings.log_level == "DEBUG",  # Log SQL only in debug mode
    )


_engine: Optional[Engine] = None


def _get_engine() -> Engine:
    """Get or create the singleton engine instance."""
    global _engine
    if _engine is None:
        _engine = get_engine()
    return _engine


def make_session_factory(engine: Optional[Engine] = None) -> sessionmaker:
    """Build a session factory bound to ``engine`` (or the singleton)."""
    return sessionmaker(
        autocommit=False,  # We'll handle commits explicitly
        autoflush=False,  # Don't auto-flush before queries (more control)
        expire_on_commit=False,
        bind=engine or _get_engine(),
    )


@contextmanager
def get_session(factory: Optional[sessionmaker] = None) -> Generator[Session, None, None]:
    """
    Context manager for database sessions.

    Automatically commits on successful exit, rolls back on exception.

    Raises:
        Any exception from the database operation (after rollback)
    """
    session = (factory or make_session_factory())()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
