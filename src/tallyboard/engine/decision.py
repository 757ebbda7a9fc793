"""
Decision engine - winner/draw rule and the match state machine.

Decision rule:
    The team with the strictly greater total wins. Equal totals on a match
    the caller marks as finished are a draw: a terminal but unresolved state
    that only an explicit tiebreak (force_winner) can resolve. Equal totals
    on a match still in play are undetermined.

State machine:
    standby  --start-->                 playing
    playing  --finish (unequal)-->      finished (winner resolved)
    playing  --finish (equal)-->        finished (draw, winner unresolved)
    playing / finished(draw) --tiebreak--> finished (winner resolved)
    finished --reopen-->                playing (scores untouched)

A score report on a standby match promotes it to playing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from tallyboard.engine.ledger import LedgerSnapshot, ScoreLedger
from tallyboard.engine.registry import Match, MatchRegistry
from tallyboard.errors import (
    AlreadyFinished,
    DuplicateTeam,
    InvalidTeam,
    InvalidTransition,
    TeamsNotRegistered,
)
from tallyboard.match_statuses import (
    DECIDED_BY_SCORE,
    DECIDED_BY_TIEBREAK,
    FINISHED,
    PLAYING,
    STANDBY,
)

logger = logging.getLogger(__name__)

UNDETERMINED = "undetermined"
WIN = "win"
DRAW = "draw"


@dataclass(frozen=True)
class Outcome:
    """Result of applying the decision rule to a ledger snapshot."""

    kind: str
    winner: Optional[str] = None
    loser: Optional[str] = None

    @property
    def is_win(self) -> bool:
        return self.kind == WIN

    @property
    def is_draw(self) -> bool:
        return self.kind == DRAW

    @classmethod
    def undetermined(cls) -> "Outcome":
        return cls(kind=UNDETERMINED)

    @classmethod
    def draw(cls) -> "Outcome":
        return cls(kind=DRAW)

    @classmethod
    def win(cls, winner: str, loser: str) -> "Outcome":
        return cls(kind=WIN, winner=winner, loser=loser)


def decide_snapshot(snapshot: LedgerSnapshot, finished: bool = False) -> Outcome:
    """
    Apply the decision rule to a snapshot. Pure function of its inputs.

    Args:
        snapshot: Ledger snapshot (carries the team names)
        finished: Whether the caller treats the match as over

    Returns:
        Win when one total is strictly greater, Draw for equal totals on a
        finished match, Undetermined otherwise (including missing teams)
    """
    if not snapshot.top_team or not snapshot.bottom_team:
        return Outcome.undetermined()

    top_total = snapshot.top_total
    bottom_total = snapshot.bottom_total

    if top_total > bottom_total:
        return Outcome.win(snapshot.top_team, snapshot.bottom_team)
    if bottom_total > top_total:
        return Outcome.win(snapshot.bottom_team, snapshot.top_team)
    if finished:
        return Outcome.draw()
    return Outcome.undetermined()


class DecisionEngine:
    """Owns every status transition of a match."""

    def __init__(self, registry: MatchRegistry, ledger: ScoreLedger):
        self.registry = registry
        self.ledger = ledger

    def decide(self, match: Match, finished: Optional[bool] = None) -> Outcome:
        """Read-only decision for ``match``; ``finished`` defaults to its status."""
        if finished is None:
            finished = match.status == FINISHED
        return decide_snapshot(self.ledger.snapshot(match), finished=finished)

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def start(
        self,
        court: str,
        game_number: int,
        top_team: Optional[str] = None,
        bottom_team: Optional[str] = None,
    ) -> Match:
        """
        Move a match to playing.

        With team names the match is created if needed and its teams are
        (re)written; without them the pre-registered teams are used.

        Raises:
            DuplicateTeam: both sides carry the same team name
            TeamsNotRegistered: no names given and none registered
            AlreadyFinished: the match is finished
        """
        if top_team is not None and top_team == bottom_team:
            raise DuplicateTeam(top_team)

        if top_team is None or bottom_team is None:
            match = self.registry.get(court, game_number)
            if match is None or not match.has_teams:
                raise TeamsNotRegistered(
                    f"No teams registered for Court {court} Game {game_number}; "
                    f"send '{court} {game_number} start <top team> <bottom team>'"
                )
            if match.top_team == match.bottom_team:
                raise DuplicateTeam(match.top_team)
        else:
            match = self.registry.upsert(court, game_number)

        if match.status == FINISHED:
            raise AlreadyFinished(f"{match.label} is finished; reopen it first")

        if top_team is not None and bottom_team is not None:
            match.top_team = top_team
            match.bottom_team = bottom_team

        previous = match.status
        match.status = PLAYING
        self.registry.save(match)
        self.ledger.ensure_lines(match)

        logger.info(
            "%s: %s -> playing (%s vs %s)",
            match.label, previous, match.top_team, match.bottom_team,
        )
        return match

    def begin_scoring(self, court: str, game_number: int) -> Match:
        """Return a match ready to take a score, creating or promoting it."""
        match = self.registry.upsert(court, game_number)
        if match.status == FINISHED:
            raise AlreadyFinished(f"{match.label} is finished; reopen it first")
        if match.status == STANDBY:
            match.status = PLAYING
            self.registry.save(match)
            logger.info("%s: standby -> playing on first score", match.label)
        return match

    def finish(self, court: str, game_number: int) -> tuple[Match, Outcome]:
        """
        Close a playing match and apply the decision rule.

        A draw leaves the match finished with no winner until force_winner.
        """
        match = self.registry.require(court, game_number)

        if match.status == STANDBY:
            raise InvalidTransition(f"{match.label} has not started")
        if match.status == FINISHED:
            if match.winner is None:
                raise InvalidTransition(
                    f"{match.label} ended in a draw; send a tiebreak command"
                )
            raise AlreadyFinished(f"{match.label} is already finished")
        if not match.has_teams:
            raise TeamsNotRegistered(f"{match.label} has no team names; start it with teams")
        if match.top_team == match.bottom_team:
            raise DuplicateTeam(match.top_team)

        outcome = self.decide(match, finished=True)
        match.status = FINISHED
        if outcome.is_win:
            match.winner = outcome.winner
            match.decided_by = DECIDED_BY_SCORE
        else:
            match.winner = None
            match.decided_by = None
        self.registry.save(match)

        if outcome.is_draw:
            logger.info("%s: finished level, waiting on tiebreak", match.label)
        else:
            logger.info("%s: finished, winner %s", match.label, match.winner)
        return match, outcome

    def force_winner(self, court: str, game_number: int, team: str) -> Match:
        """
        Resolve the match with an explicit winner, bypassing the score.

        Raises:
            InvalidTeam: ``team`` is neither registered team
            AlreadyFinished: the match already has a resolved winner
            InvalidTransition: the match has not started
        """
        match = self.registry.require(court, game_number)
        if not match.has_teams:
            raise TeamsNotRegistered(f"{match.label} has no team names")
        if team not in (match.top_team, match.bottom_team):
            raise InvalidTeam(team, match.top_team, match.bottom_team)
        if match.status == STANDBY:
            raise InvalidTransition(f"{match.label} has not started")
        if match.status == FINISHED and match.winner is not None:
            raise AlreadyFinished(f"{match.label} is already decided ({match.winner})")

        match.status = FINISHED
        match.winner = team
        match.decided_by = DECIDED_BY_TIEBREAK
        self.registry.save(match)

        logger.info("%s: tiebreak awarded to %s", match.label, team)
        return match

    def reopen(self, court: str, game_number: int) -> Match:
        """Return a finished match to playing. Score data is not touched."""
        match = self.registry.require(court, game_number)
        if match.status != FINISHED:
            raise InvalidTransition(f"{match.label} is not finished")

        match.status = PLAYING
        match.winner = None
        match.decided_by = None
        self.registry.save(match)

        logger.info("%s: reopened for corrections", match.label)
        return match
