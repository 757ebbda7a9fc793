"""
Schedule loading - administrative pre-registration of the bracket.

The schedule is a table with one row per game, the same columns the
tournament office keeps in its spreadsheet:

    court, game_number, top_team, bottom_team, start_time,
    winner_next, winner_slot, loser_next, loser_slot

Team names may be blank for games filled in later by propagation. Slots
accept 'top'/'bottom' and the spreadsheet's '先攻'/'後攻'.

Loading is idempotent. Without ``overwrite`` an existing match keeps its
live state (status, winner, teams already written by propagation) and only
its start time and bracket edges are refreshed.

Usage:
    from tallyboard.services.schedule import load_schedule, read_schedule_csv

    rows = read_schedule_csv(Path("schedule.csv"))
    stats = load_schedule(service.registry, rows)
    print(stats.summary())
"""

import csv
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from tallyboard.bracket import validate_bracket
from tallyboard.engine.registry import BracketEdge, Match, MatchRegistry
from tallyboard.match_statuses import BOTTOM, TOP

logger = logging.getLogger(__name__)

SLOT_ALIASES = {
    "top": TOP,
    "先攻": TOP,
    "bottom": BOTTOM,
    "後攻": BOTTOM,
}


@dataclass
class ScheduleLoadStats:
    """Statistics from a schedule load."""
    total_rows: int = 0
    matches_created: int = 0
    matches_updated: int = 0
    skipped_invalid: int = 0
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def summary(self) -> str:
        """Return a human-readable summary of the load."""
        lines = [
            "Schedule load complete:",
            f"  Total rows processed: {self.total_rows}",
            f"  Matches created:      {self.matches_created}",
            f"  Matches updated:      {self.matches_updated}",
            f"  Skipped (invalid):    {self.skipped_invalid}",
        ]
        if self.warnings:
            lines.append(f"  Bracket warnings: {len(self.warnings)}")
            for warning in self.warnings:
                lines.append(f"    - {warning}")
        if self.errors:
            lines.append(f"  Errors: {len(self.errors)}")
            for err in self.errors[:5]:
                lines.append(f"    - {err}")
            if len(self.errors) > 5:
                lines.append(f"    ... and {len(self.errors) - 5} more")
        return "\n".join(lines)


def _parse_edge(game_raw: Optional[str], slot_raw: Optional[str]) -> Optional[BracketEdge]:
    game_raw = (game_raw or "").strip()
    if not game_raw:
        return None
    slot = SLOT_ALIASES.get((slot_raw or "").strip().lower())
    if slot is None:
        raise ValueError(f"edge to game {game_raw} has unknown slot {slot_raw!r}")
    return BracketEdge(game_number=int(game_raw), slot=slot)


def match_from_row(row: dict) -> Match:
    """
    Build a Match from one schedule row.

    Raises:
        ValueError: missing court/game number, the same team on both sides,
            or a malformed edge
    """
    court = (row.get("court") or "").strip()
    game_raw = str(row.get("game_number") or "").strip()
    if not court or not game_raw:
        raise ValueError("court and game_number are required")

    top_team = (row.get("top_team") or "").strip()
    bottom_team = (row.get("bottom_team") or "").strip()
    if top_team and top_team == bottom_team:
        raise ValueError(f"game {game_raw} lists {top_team!r} as both teams")

    return Match(
        court=court,
        game_number=int(game_raw),
        top_team=top_team,
        bottom_team=bottom_team,
        scheduled_start=(row.get("start_time") or "").strip(),
        winner_next=_parse_edge(row.get("winner_next"), row.get("winner_slot")),
        loser_next=_parse_edge(row.get("loser_next"), row.get("loser_slot")),
    )


def read_schedule_csv(path: Path) -> list[dict]:
    """Read a schedule CSV with a header row."""
    with path.open(newline="", encoding="utf-8") as handle:
        return list(csv.DictReader(handle))


def load_schedule(
    registry: MatchRegistry,
    rows: Iterable[dict],
    overwrite: bool = False,
) -> ScheduleLoadStats:
    """
    Register every schedule row and validate the resulting bracket.

    Args:
        registry: Match registry to write into
        rows: Schedule rows (dicts keyed by the column names above)
        overwrite: Replace existing matches entirely, including live state

    Returns:
        ScheduleLoadStats with counts and bracket warnings
    """
    stats = ScheduleLoadStats()

    for index, row in enumerate(rows, start=1):
        stats.total_rows += 1
        try:
            loaded = match_from_row(row)
        except ValueError as exc:
            error_msg = f"row {index}: {exc}"
            stats.skipped_invalid += 1
            stats.errors.append(error_msg)
            logger.error("Error processing schedule row: %s", error_msg)
            continue

        existing = registry.get(loaded.court, loaded.game_number)
        if existing is None:
            registry.register(loaded)
            stats.matches_created += 1
            continue

        if overwrite:
            registry.register(loaded)
        else:
            existing.scheduled_start = loaded.scheduled_start
            existing.winner_next = loaded.winner_next
            existing.loser_next = loaded.loser_next
            existing.top_team = existing.top_team or loaded.top_team
            existing.bottom_team = existing.bottom_team or loaded.bottom_team
            registry.save(existing)
        stats.matches_updated += 1

    stats.warnings = validate_bracket(registry.all())
    for warning in stats.warnings:
        logger.warning("Bracket: %s", warning)

    logger.info(stats.summary())
    return stats
