"""
SQLAlchemy ORM models for Tallyboard.

The engine treats persistence as a generic key-indexed row store, so the
schema is deliberately small:

Tables:
- store_rows: one JSON row per key (matches and score ledger lines)
- event_log: append-only audit trail of every applied command

Key design decisions:
- Rows are written one at a time; no multi-row transactions are assumed
- The JSON column maps to JSONB on PostgreSQL and plain JSON elsewhere,
  so the same models work against SQLite in tests and local runs
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, DateTime, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# JSONB on PostgreSQL, generic JSON on every other dialect.
JSONType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


class StoredRow(Base):
    """
    A single keyed row.

    Keys are slash-separated paths such as ``match/A/1`` or
    ``score/A/1/top``; the prefix doubles as a namespace for scans.
    """
    __tablename__ = "store_rows"

    key: Mapped[str] = mapped_column(String(200), primary_key=True)
    row_json: Mapped[dict] = mapped_column(JSONType, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<StoredRow(key='{self.key}')>"


class EventLog(Base):
    """
    Audit log of applied commands.

    One row per successful start, score, finish, tiebreak or reopen. Score
    rows carry the inning, half and runs; status rows leave them empty.
    """
    __tablename__ = "event_log"

    id: Mapped[int] = mapped_column(primary_key=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    court: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    game_number: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    inning: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    half: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    runs: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    sender_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    event_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("idx_event_log_match", "court", "game_number"),
    )

    def __repr__(self) -> str:
        return f"<EventLog(kind='{self.kind}', court='{self.court}', game={self.game_number})>"
