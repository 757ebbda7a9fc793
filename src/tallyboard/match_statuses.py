"""Shared match-status and slot definitions.

This module is the single source of truth for the status values stored on
matches, the two team positions within a match, and the status groups reused
by the scoring service and the web API.
"""

from __future__ import annotations

from typing import Iterable

STANDBY = "standby"
PLAYING = "playing"
FINISHED = "finished"

# Individual statuses currently used in the system.
ALL_MATCH_STATUSES: tuple[str, ...] = (STANDBY, PLAYING, FINISHED)

# Canonical status groups.
MATCH_STATUS_GROUPS: dict[str, tuple[str, ...]] = {
    # Matches that still accept score commands.
    "open": (STANDBY, PLAYING),
    # Matches currently on a court.
    "live": (PLAYING,),
    # Matches whose result is in (or waiting on a tiebreak).
    "terminal": (FINISHED,),
    # Full set used by API filters when callers want explicit control.
    "all": ALL_MATCH_STATUSES,
}

# Team positions. "top" bats first, "bottom" bats second.
TOP = "top"
BOTTOM = "bottom"
SLOTS: tuple[str, ...] = (TOP, BOTTOM)

# Ways a finished match got its winner.
DECIDED_BY_SCORE = "score"
DECIDED_BY_TIEBREAK = "tiebreak"


def get_status_group(group_name: str) -> tuple[str, ...]:
    """Return a named status group, raising KeyError for unknown names."""
    return MATCH_STATUS_GROUPS[group_name]


def normalize_status_filter(
    raw_statuses: Iterable[str] | None,
    *,
    default_group: str = "all",
) -> list[str]:
    """Normalize requested statuses against known values.

    - If no statuses are provided, returns the statuses from ``default_group``.
    - Unknown statuses are ignored.
    - Order is preserved and duplicates are removed.
    """
    if raw_statuses is None:
        return list(get_status_group(default_group))

    seen: set[str] = set()
    normalized: list[str] = []

    for raw in raw_statuses:
        status = raw.strip().lower()
        if not status or status in seen or status not in ALL_MATCH_STATUSES:
            continue
        seen.add(status)
        normalized.append(status)

    if normalized:
        return normalized

    return list(get_status_group(default_group))
