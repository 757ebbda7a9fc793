"""Concurrency controls: tournament lock and duplicate-event suppression."""

from tallyboard.coordination.coordinator import ConcurrencyCoordinator
from tallyboard.coordination.dedup import ProcessedEventCache
from tallyboard.coordination.locks import (
    AdvisoryLock,
    InProcessLock,
    advisory_lock_key,
    build_tournament_lock,
    postgres_advisory_lock,
)

__all__ = [
    "AdvisoryLock",
    "ConcurrencyCoordinator",
    "InProcessLock",
    "ProcessedEventCache",
    "advisory_lock_key",
    "build_tournament_lock",
    "postgres_advisory_lock",
]
