"""Duplicate-event suppression.

Webhook deliveries are at-least-once, so the same event id can arrive twice.
ProcessedEventCache remembers handled ids for a short TTL window. This is a
best-effort, time-bounded guarantee: a redelivery after the window expires
is applied again.

The cache lives in process memory. With several server processes sharing a
PostgreSQL advisory lock, each process keeps its own cache, so a redelivery
that reaches a different process is applied again. Run a single webhook
worker when redeliveries must be suppressed across the whole tournament.
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Optional


class ProcessedEventCache:
    """In-process TTL set of event ids."""

    def __init__(self, ttl_seconds: float = 60.0, clock: Callable[[], float] = time.monotonic):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._expiry: dict[str, float] = {}
        # Checks happen outside the tournament lock, so guard the dict itself.
        self._guard = threading.Lock()

    def _purge(self, now: float) -> None:
        expired = [event_id for event_id, expiry in self._expiry.items() if expiry <= now]
        for event_id in expired:
            del self._expiry[event_id]

    def seen(self, event_id: Optional[str]) -> bool:
        """True when ``event_id`` was marked within the TTL window."""
        if not event_id:
            return False
        with self._guard:
            now = self._clock()
            self._purge(now)
            return event_id in self._expiry

    def mark(self, event_id: Optional[str]) -> None:
        """Record ``event_id`` as handled for the next TTL window."""
        if not event_id:
            return
        with self._guard:
            now = self._clock()
            self._purge(now)
            self._expiry[event_id] = now + self.ttl_seconds

    def __len__(self) -> int:
        with self._guard:
            self._purge(self._clock())
            return len(self._expiry)
