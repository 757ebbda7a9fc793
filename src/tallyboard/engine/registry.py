"""
Match registry - keyed store over Match entities.

A match is identified by ``(court, game_number)``. Besides its two team
names and status it carries the two outgoing bracket edges: where the
winner goes and (optionally) where the loser goes. Edges address the
destination by game number alone, because game numbers are unique across
the whole tournament.

No cross-match rules are enforced here; those belong to the bracket
propagator.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Iterable, Optional

from tallyboard.db.store import RowStore
from tallyboard.errors import MatchNotFound
from tallyboard.match_statuses import ALL_MATCH_STATUSES, SLOTS, STANDBY, TOP

logger = logging.getLogger(__name__)

MATCH_PREFIX = "match/"


def match_key(court: str, game_number: int) -> str:
    return f"{MATCH_PREFIX}{court}/{game_number}"


@dataclass(frozen=True)
class BracketEdge:
    """Routes one team of a finished match into a slot of a later match."""

    game_number: int
    slot: str

    def __post_init__(self) -> None:
        if self.slot not in SLOTS:
            raise ValueError(f"Unknown slot: {self.slot!r}")

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional["BracketEdge"]:
        if not data:
            return None
        return cls(game_number=int(data["game_number"]), slot=data["slot"])


@dataclass
class Match:
    """
    One scheduled contest between two teams.

    Attributes:
        court: Court label, e.g. 'A'
        game_number: Tournament-wide game number
        top_team: Team batting first (empty until known)
        bottom_team: Team batting second (empty until known)
        status: 'standby', 'playing' or 'finished'
        scheduled_start: Free-form start time, e.g. '10:30'
        winner_next: Where the winner goes, or None for the final
        loser_next: Where the loser goes, or None when the loser is out
        winner: Resolved winner; None while undecided or drawn
        decided_by: 'score' or 'tiebreak' once a winner is resolved
    """

    court: str
    game_number: int
    top_team: str = ""
    bottom_team: str = ""
    status: str = STANDBY
    scheduled_start: str = ""
    winner_next: Optional[BracketEdge] = None
    loser_next: Optional[BracketEdge] = None
    winner: Optional[str] = None
    decided_by: Optional[str] = None

    @property
    def key(self) -> str:
        return match_key(self.court, self.game_number)

    @property
    def label(self) -> str:
        return f"Court {self.court} Game {self.game_number}"

    @property
    def has_teams(self) -> bool:
        return bool(self.top_team) and bool(self.bottom_team)

    def team_in(self, slot: str) -> str:
        return self.top_team if slot == TOP else self.bottom_team

    def loser(self) -> Optional[str]:
        """Return the losing team once a winner is resolved."""
        if self.winner is None:
            return None
        return self.bottom_team if self.winner == self.top_team else self.top_team

    def to_row(self) -> dict:
        row = asdict(self)
        row["winner_next"] = asdict(self.winner_next) if self.winner_next else None
        row["loser_next"] = asdict(self.loser_next) if self.loser_next else None
        return row

    @classmethod
    def from_row(cls, row: dict) -> "Match":
        return cls(
            court=str(row["court"]),
            game_number=int(row["game_number"]),
            top_team=row.get("top_team") or "",
            bottom_team=row.get("bottom_team") or "",
            status=row.get("status") or STANDBY,
            scheduled_start=row.get("scheduled_start") or "",
            winner_next=BracketEdge.from_dict(row.get("winner_next")),
            loser_next=BracketEdge.from_dict(row.get("loser_next")),
            winner=row.get("winner"),
            decided_by=row.get("decided_by"),
        )

    def __repr__(self) -> str:
        return (
            f"<Match({self.court}/{self.game_number}, "
            f"'{self.top_team}' vs '{self.bottom_team}', status='{self.status}')>"
        )


class MatchRegistry:
    """Keyed store of matches on top of a row store."""

    def __init__(self, store: RowStore):
        self.store = store

    def get(self, court: str, game_number: int) -> Optional[Match]:
        row = self.store.get(match_key(court, game_number))
        if row is None:
            return None
        return Match.from_row(row)

    def require(self, court: str, game_number: int) -> Match:
        match = self.get(court, game_number)
        if match is None:
            raise MatchNotFound(f"Court {court} Game {game_number} is not in the schedule")
        return match

    def save(self, match: Match) -> Match:
        if match.status not in ALL_MATCH_STATUSES:
            raise ValueError(f"Unknown match status: {match.status!r}")
        self.store.put(match.key, match.to_row())
        return match

    def upsert(self, court: str, game_number: int) -> Match:
        """Return the match, creating an empty standby match if it is new."""
        match = self.get(court, game_number)
        if match is not None:
            return match

        match = Match(court=court, game_number=game_number)
        self.save(match)
        logger.info("Created match %s on first reference", match.label)
        return match

    def register(self, match: Match) -> Match:
        """Administrative pre-registration; overwrites any existing row."""
        return self.save(match)

    def set_status(self, court: str, game_number: int, status: str) -> Match:
        match = self.require(court, game_number)
        match.status = status
        return self.save(match)

    def set_team(self, court: str, game_number: int, slot: str, name: str) -> Match:
        if slot not in SLOTS:
            raise ValueError(f"Unknown slot: {slot!r}")
        match = self.require(court, game_number)
        if slot == TOP:
            match.top_team = name
        else:
            match.bottom_team = name
        return self.save(match)

    def all(self) -> list[Match]:
        """Every match, ordered by game number then court."""
        matches = [Match.from_row(row) for _key, row in self.store.scan(MATCH_PREFIX)]
        return sorted(matches, key=lambda m: (m.game_number, m.court))

    def find_by_game_number(self, game_number: int) -> Optional[Match]:
        for match in self.all():
            if match.game_number == game_number:
                return match
        return None

    def filter(self, statuses: Iterable[str]) -> list[Match]:
        wanted = set(statuses)
        return [m for m in self.all() if m.status in wanted]
