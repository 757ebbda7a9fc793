"""Serializes mutating commands and drops redelivered events."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from tallyboard.coordination.dedup import ProcessedEventCache
from tallyboard.coordination.locks import InProcessLock, TournamentLock
from tallyboard.errors import Busy, TallyboardError
from tallyboard.results import CommandResult

logger = logging.getLogger(__name__)


class ConcurrencyCoordinator:
    """
    Wraps every mutating operation in a dedup check and the tournament lock.

    Order of operations for one event:
    1. Drop the event if its id was handled inside the TTL window
    2. Acquire the tournament lock (bounded wait, Busy on timeout)
    3. Check the id again: a concurrent duplicate may have finished while
       this one waited on the lock
    4. Run the operation and mark the id as handled if it succeeded
    5. Release the lock on every exit path

    Operations never get retried here; a Busy result asks the sender to resend.
    """

    def __init__(
        self,
        lock: Optional[TournamentLock] = None,
        cache: Optional[ProcessedEventCache] = None,
        lock_timeout_seconds: float = 30.0,
    ):
        self.lock = lock or InProcessLock()
        self.cache = cache or ProcessedEventCache()
        self.lock_timeout_seconds = lock_timeout_seconds

    def is_duplicate(self, event_id: Optional[str]) -> bool:
        return self.cache.seen(event_id)

    def run(
        self,
        event_id: Optional[str],
        operation: Callable[[], CommandResult],
    ) -> Optional[CommandResult]:
        """
        Run ``operation`` under the lock unless ``event_id`` is a duplicate.

        Returns:
            The operation's result, a Busy failure, or None for a dropped
            duplicate (the transport sends no reply)
        """
        if self.is_duplicate(event_id):
            logger.info("Dropping duplicate event %s", event_id)
            return None

        try:
            with self.lock.hold(self.lock_timeout_seconds):
                if self.is_duplicate(event_id):
                    logger.info("Dropping duplicate event %s (applied while waiting)", event_id)
                    return None

                result = operation()
                if result.ok:
                    self.cache.mark(event_id)
                return result
        except Busy as exc:
            logger.warning("Lock timeout for event %s after %ss", event_id, self.lock_timeout_seconds)
            return CommandResult.failure(exc)
        except TallyboardError as exc:
            return CommandResult.failure(exc)
