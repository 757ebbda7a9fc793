"""
Score ledger - per-inning runs for both halves of every match.

Each match has two ledger lines, one per team role ('top' bats first,
'bottom' bats second). A line is a fixed-length list of innings where each
cell is either unset (None) or a non-negative run count.

Fill-forward rule:
    Before inning k is written for a role, every unset inning 1..k-1 of that
    role is set to 0. For the bottom half inning k itself is zero-filled
    first as well. Staff often skip reporting a scoreless half or report out
    of order; the rule keeps the running total well defined in both cases.

Writing a cell always overwrites the previous value (latest report wins).
No history is kept here; the audit log records every report.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from tallyboard.db.store import RowStore
from tallyboard.engine.registry import Match
from tallyboard.errors import InningOutOfRange, RunsOutOfRange
from tallyboard.match_statuses import BOTTOM, SLOTS, TOP

logger = logging.getLogger(__name__)

SCORE_PREFIX = "score/"

# Upper bound for one half-inning; anything above is a typo.
DEFAULT_MAX_RUNS = 99


def score_key(court: str, game_number: int, role: str) -> str:
    return f"{SCORE_PREFIX}{court}/{game_number}/{role}"


def line_total(innings: list[Optional[int]]) -> int:
    """Sum of set cells; unset cells count as 0."""
    return sum(v for v in innings if v is not None)


@dataclass(frozen=True)
class ScoreUpdate:
    """Outcome of a single record_score call."""

    role: str
    inning: int
    previous: int
    runs: int
    total: int
    filled: tuple[int, ...] = ()

    @property
    def delta(self) -> int:
        return self.runs - self.previous


@dataclass(frozen=True)
class LedgerSnapshot:
    """Ordered inning arrays and totals for both roles of one match."""

    court: str
    game_number: int
    top_team: str
    bottom_team: str
    top: tuple[Optional[int], ...]
    bottom: tuple[Optional[int], ...]

    @property
    def top_total(self) -> int:
        return line_total(list(self.top))

    @property
    def bottom_total(self) -> int:
        return line_total(list(self.bottom))

    def total(self, role: str) -> int:
        return self.top_total if role == TOP else self.bottom_total

    def score_line(self) -> str:
        """Human-readable line like 'Red 2 - 1 Blue'."""
        top = self.top_team or "Top"
        bottom = self.bottom_team or "Bottom"
        return f"{top} {self.top_total} - {self.bottom_total} {bottom}"

    def to_dict(self) -> dict:
        return {
            "court": self.court,
            "game_number": self.game_number,
            "top": {"team": self.top_team, "innings": list(self.top), "total": self.top_total},
            "bottom": {
                "team": self.bottom_team,
                "innings": list(self.bottom),
                "total": self.bottom_total,
            },
        }


class ScoreLedger:
    """Fill-forward score ledger on top of a row store."""

    def __init__(self, store: RowStore, max_innings: int = 6, max_runs: int = DEFAULT_MAX_RUNS):
        if max_innings < 1:
            raise ValueError("max_innings must be at least 1")
        if max_runs < 1:
            raise ValueError("max_runs must be at least 1")
        self.store = store
        self.max_innings = max_innings
        self.max_runs = max_runs

    # -------------------------------------------------------------------------
    # Lines
    # -------------------------------------------------------------------------

    def _empty_line(self, match: Match, role: str) -> dict:
        return {
            "court": match.court,
            "game_number": match.game_number,
            "role": role,
            "team": match.team_in(role),
            "innings": [None] * self.max_innings,
            "total": 0,
            "updated_at": None,
        }

    def _load_line(self, match: Match, role: str) -> dict:
        row = self.store.get(score_key(match.court, match.game_number, role))
        if row is None:
            return self._empty_line(match, role)

        innings = list(row.get("innings") or [])
        # Pad or trim when max_innings changed between runs.
        if len(innings) < self.max_innings:
            innings.extend([None] * (self.max_innings - len(innings)))
        row["innings"] = innings[: self.max_innings]
        return row

    def _save_line(self, match: Match, role: str, row: dict) -> None:
        row["team"] = match.team_in(role) or row.get("team") or ""
        row["total"] = line_total(row["innings"])
        row["updated_at"] = datetime.utcnow().isoformat(timespec="seconds")
        self.store.put(score_key(match.court, match.game_number, role), row)

    def ensure_lines(self, match: Match) -> None:
        """Create both ledger lines (if missing) and sync their team names."""
        for role in SLOTS:
            row = self._load_line(match, role)
            self._save_line(match, role, row)

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def record_score(self, match: Match, role: str, inning: int, runs: int) -> ScoreUpdate:
        """
        Record ``runs`` for ``inning`` of ``role``, filling earlier gaps with 0.

        Raises:
            InningOutOfRange: inning is outside 1..max_innings
            RunsOutOfRange: runs is above max_runs
            ValueError: unknown role or negative runs
        """
        if role not in SLOTS:
            raise ValueError(f"Unknown role: {role!r}")
        if inning < 1 or inning > self.max_innings:
            raise InningOutOfRange(inning, self.max_innings)
        if runs < 0:
            raise ValueError("runs must be non-negative")
        if runs > self.max_runs:
            raise RunsOutOfRange(runs, self.max_runs)

        row = self._load_line(match, role)
        innings = row["innings"]

        last_to_fill = inning if role == BOTTOM else inning - 1
        filled = []
        for number in range(1, last_to_fill + 1):
            if innings[number - 1] is None:
                innings[number - 1] = 0
                filled.append(number)

        previous = innings[inning - 1] or 0
        if inning in filled:
            # The cell was only zero-filled a moment ago; it had no prior report.
            filled.remove(inning)
        innings[inning - 1] = runs
        self._save_line(match, role, row)

        if filled:
            logger.debug(
                "Zero-filled innings %s for %s %s", filled, match.label, role,
            )

        return ScoreUpdate(
            role=role,
            inning=inning,
            previous=previous,
            runs=runs,
            total=line_total(innings),
            filled=tuple(filled),
        )

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def total(self, match: Match, role: str) -> int:
        return line_total(self._load_line(match, role)["innings"])

    def snapshot(self, match: Match) -> LedgerSnapshot:
        top = self._load_line(match, TOP)
        bottom = self._load_line(match, BOTTOM)
        return LedgerSnapshot(
            court=match.court,
            game_number=match.game_number,
            top_team=match.top_team,
            bottom_team=match.bottom_team,
            top=tuple(top["innings"]),
            bottom=tuple(bottom["innings"]),
        )
