"""Tournament-wide lock helpers.

Every mutating command runs under one lock for the whole tournament. A
single server process uses an in-process lock; several processes sharing a
PostgreSQL database use an advisory lock keyed by the tournament name.
Either way a bounded wait ends in Busy rather than a partial write.
"""

from __future__ import annotations

import hashlib
import logging
import threading
import time
from contextlib import contextmanager
from typing import ContextManager, Generator, Optional, Protocol

from sqlalchemy import text
from sqlalchemy.engine import Engine

from tallyboard.errors import Busy

logger = logging.getLogger(__name__)


class TournamentLock(Protocol):
    def hold(self, timeout_seconds: float) -> ContextManager[bool]: ...


def advisory_lock_key(name: str) -> int:
    """Return a deterministic signed 64-bit lock key from a tournament name."""
    digest = hashlib.sha256(name.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], byteorder="big", signed=True)


class InProcessLock:
    """threading.Lock with a bounded acquire."""

    def __init__(self) -> None:
        self._lock = threading.Lock()

    @contextmanager
    def hold(self, timeout_seconds: float) -> Generator[bool, None, None]:
        """
        Hold the lock for the life of this context.

        Raises:
            Busy: if the lock cannot be acquired before the timeout.
        """
        if not self._lock.acquire(timeout=max(timeout_seconds, 0.0)):
            raise Busy(timeout_seconds)
        try:
            yield True
        finally:
            self._lock.release()


@contextmanager
def postgres_advisory_lock(
    engine: Engine,
    *,
    key: int,
    timeout_seconds: float = 0.0,
    poll_interval_seconds: float = 1.0,
) -> Generator[bool, None, None]:
    """
    Acquire a PostgreSQL advisory lock for the life of this context.

    Yields:
        True if lock acquired.

    Raises:
        Busy: if lock cannot be acquired before timeout.
    """
    connection = engine.connect()
    acquired = False
    try:
        deadline = time.monotonic() + max(timeout_seconds, 0.0)
        while True:
            acquired = bool(
                connection.execute(
                    text("SELECT pg_try_advisory_lock(:key)"),
                    {"key": key},
                ).scalar()
            )
            if acquired:
                break
            if timeout_seconds <= 0:
                break
            if time.monotonic() >= deadline:
                break
            time.sleep(max(poll_interval_seconds, 0.05))

        if not acquired:
            raise Busy(timeout_seconds)

        yield True
    finally:
        if acquired:
            connection.execute(
                text("SELECT pg_advisory_unlock(:key)"),
                {"key": key},
            )
        connection.close()


class AdvisoryLock:
    """Tournament lock shared by every process connected to one PostgreSQL database."""

    def __init__(self, engine: Engine, name: str, poll_interval_seconds: float = 0.2):
        self.engine = engine
        self.key = advisory_lock_key(name)
        self.poll_interval_seconds = poll_interval_seconds

    def hold(self, timeout_seconds: float) -> ContextManager[bool]:
        return postgres_advisory_lock(
            self.engine,
            key=self.key,
            timeout_seconds=timeout_seconds,
            poll_interval_seconds=self.poll_interval_seconds,
        )


def build_tournament_lock(
    engine: Optional[Engine] = None,
    *,
    name: str = "tallyboard_tournament",
    poll_interval_seconds: float = 0.2,
):
    """
    Pick the advisory lock for PostgreSQL engines, the in-process lock otherwise.

    Only the lock is shared between processes; duplicate-event suppression
    stays per process (see coordination.dedup).
    """
    if engine is not None and engine.dialect.name == "postgresql":
        logger.info("Using PostgreSQL advisory lock for %s", name)
        return AdvisoryLock(engine, name, poll_interval_seconds=poll_interval_seconds)
    return InProcessLock()
