"""Row store backends used by the engine.

The engine only needs single-row reads and writes plus an append-only log.
Two backends implement that contract:

- MemoryRowStore: plain dicts, used by tests and rehearsals
- DBRowStore: SQLAlchemy-backed, one short transaction per write
"""

from __future__ import annotations

import copy
from datetime import datetime
from typing import Any, Optional, Protocol

from sqlalchemy.orm import sessionmaker

from tallyboard.db.models import EventLog, StoredRow
from tallyboard.db.session import get_session

Row = dict[str, Any]

LOG_FIELDS = ("kind", "court", "game_number", "inning", "half", "runs", "sender_id", "event_id", "note")


class RowStore(Protocol):
    """Key-indexed table with an append-only log."""

    def get(self, key: str) -> Optional[Row]: ...

    def put(self, key: str, row: Row) -> None: ...

    def scan(self, prefix: str) -> list[tuple[str, Row]]: ...

    def append_log(self, row: Row) -> None: ...

    def read_log(self) -> list[Row]: ...


class MemoryRowStore:
    """In-process row store. Rows are copied in and out."""

    def __init__(self) -> None:
        self._rows: dict[str, Row] = {}
        self._log: list[Row] = []

    def get(self, key: str) -> Optional[Row]:
        row = self._rows.get(key)
        return copy.deepcopy(row) if row is not None else None

    def put(self, key: str, row: Row) -> None:
        self._rows[key] = copy.deepcopy(row)

    def scan(self, prefix: str) -> list[tuple[str, Row]]:
        return [
            (key, copy.deepcopy(row))
            for key, row in sorted(self._rows.items())
            if key.startswith(prefix)
        ]

    def append_log(self, row: Row) -> None:
        entry = {"created_at": datetime.utcnow().isoformat()}
        entry.update({name: row.get(name) for name in LOG_FIELDS})
        self._log.append(entry)

    def read_log(self) -> list[Row]:
        return [dict(entry) for entry in self._log]


class DBRowStore:
    """Row store backed by the store_rows and event_log tables."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def get(self, key: str) -> Optional[Row]:
        with get_session(self.session_factory) as session:
            row = session.get(StoredRow, key)
            if row is None:
                return None
            return copy.deepcopy(row.row_json)

    def put(self, key: str, row: Row) -> None:
        with get_session(self.session_factory) as session:
            existing = session.get(StoredRow, key)
            if existing is None:
                session.add(
                    StoredRow(
                        key=key,
                        row_json=copy.deepcopy(row),
                        updated_at=datetime.utcnow(),
                    )
                )
            else:
                # Reassign so the JSON column is flagged dirty.
                existing.row_json = copy.deepcopy(row)
                existing.updated_at = datetime.utcnow()

    def scan(self, prefix: str) -> list[tuple[str, Row]]:
        with get_session(self.session_factory) as session:
            rows = (
                session.query(StoredRow)
                .filter(StoredRow.key.startswith(prefix, autoescape=True))
                .order_by(StoredRow.key)
                .all()
            )
            return [(row.key, copy.deepcopy(row.row_json)) for row in rows]

    def append_log(self, row: Row) -> None:
        with get_session(self.session_factory) as session:
            session.add(EventLog(**{name: row.get(name) for name in LOG_FIELDS}))

    def read_log(self) -> list[Row]:
        with get_session(self.session_factory) as session:
            entries = session.query(EventLog).order_by(EventLog.id).all()
            result = []
            for entry in entries:
                payload = {"created_at": entry.created_at.isoformat()}
                payload.update({name: getattr(entry, name) for name in LOG_FIELDS})
                result.append(payload)
            return result
