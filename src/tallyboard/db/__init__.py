"""
Database module for Tallyboard.

Provides SQLAlchemy ORM models, session management and the row store
backends the engine writes through.

Usage:
    from tallyboard.db import DBRowStore, make_session_factory

    store = DBRowStore(make_session_factory())
"""

from tallyboard.db.models import Base, EventLog, StoredRow
from tallyboard.db.session import get_engine, get_session, make_session_factory
from tallyboard.db.store import DBRowStore, MemoryRowStore, RowStore

__all__ = [
    # Base
    "Base",
    # Models
    "EventLog",
    "StoredRow",
    # Session
    "get_engine",
    "get_session",
    "make_session_factory",
    # Stores
    "DBRowStore",
    "MemoryRowStore",
    "RowStore",
]
