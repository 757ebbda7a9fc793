"""
Bracket propagation and validation.

Every non-final match carries a winner edge, and some carry a loser edge
(the semifinals feed their losers into the third-place game). An edge names
the destination by game number and the slot the team takes there:

    Game 5 winner  ->  Game 9, top
    Game 5 loser   ->  Game 8, bottom
    Game 1 loser   ->  (no edge: eliminated)

Propagation writes team names straight into the destination slot. Running
it again after a correction simply overwrites the slot, so repeated
propagation with the same winner leaves the bracket unchanged.

These functions are used by:
- The scoring service (after finish and tiebreak commands)
- Schedule loading (validate_bracket on the imported schedule)
- Broadcast text (next_match_details, next_on_court)
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Iterable, Optional

from tallyboard.engine.registry import BracketEdge, Match, MatchRegistry
from tallyboard.errors import DestinationMatchNotFound, InvalidTransition
from tallyboard.match_statuses import FINISHED, STANDBY

logger = logging.getLogger(__name__)

WINNER = "winner"
LOSER = "loser"


@dataclass(frozen=True)
class Placement:
    """One team written into one slot of a later match."""

    outcome: str
    team: str
    destination: Match
    slot: str


class BracketPropagator:
    """Moves winners and losers of finished matches into their next games."""

    def __init__(self, registry: MatchRegistry):
        self.registry = registry

    def _destination(self, match: Match, edge: Optional[BracketEdge]) -> Optional[Match]:
        if edge is None:
            return None
        destination = self.registry.find_by_game_number(edge.game_number)
        if destination is None:
            raise DestinationMatchNotFound(edge.game_number, match.label)
        return destination

    def destinations(self, match: Match) -> dict[str, Optional[Match]]:
        """
        Resolve the winner and loser destinations of ``match``.

        Raises:
            DestinationMatchNotFound: an edge points at an unknown game
        """
        return {
            WINNER: self._destination(match, match.winner_next),
            LOSER: self._destination(match, match.loser_next),
        }

    def advance(self, match: Match, winner_team: str, loser_team: str) -> list[Placement]:
        """
        Write the winner and loser into their destination slots.

        Both destinations are resolved before anything is written, so a
        missing destination never leaves a half-propagated bracket.

        Args:
            match: A finished match with a resolved winner
            winner_team: The resolved winner
            loser_team: The other team

        Returns:
            Placements made, winner first. Empty for the final.

        Raises:
            InvalidTransition: the match is not finished with this winner
            DestinationMatchNotFound: an edge points at an unknown game
        """
        if match.status != FINISHED or match.winner is None:
            raise InvalidTransition(f"{match.label} has no resolved winner to advance")
        if match.winner != winner_team:
            raise InvalidTransition(
                f"{match.label} was won by {match.winner}, not {winner_team}"
            )

        resolved = self.destinations(match)
        targets = []
        if resolved[WINNER] is not None:
            targets.append((WINNER, winner_team, resolved[WINNER], match.winner_next.slot))
        if resolved[LOSER] is not None:
            targets.append((LOSER, loser_team, resolved[LOSER], match.loser_next.slot))

        placements = []
        for outcome, team, destination, slot in targets:
            # Reload: the winner and loser may land in the same game.
            updated = self.registry.set_team(destination.court, destination.game_number, slot, team)
            placements.append(Placement(outcome=outcome, team=team, destination=updated, slot=slot))
            logger.info(
                "Propagated %s %s: %s -> %s (%s)",
                outcome, team, match.label, updated.label, slot,
            )

        if match.loser_next is None:
            logger.info("%s: %s is eliminated", match.label, loser_team)

        return placements

    def next_match_details(self, match: Match) -> dict[str, Optional[Match]]:
        """Destination matches for the winner and loser (None when absent)."""
        details: dict[str, Optional[Match]] = {WINNER: None, LOSER: None}
        if match.winner_next is not None:
            details[WINNER] = self.registry.find_by_game_number(match.winner_next.game_number)
        if match.loser_next is not None:
            details[LOSER] = self.registry.find_by_game_number(match.loser_next.game_number)
        return details

    def next_on_court(self, court: str, game_number: int) -> Optional[Match]:
        """The next standby match on the same court after ``game_number``."""
        for candidate in self.registry.all():
            if (
                candidate.court == court
                and candidate.game_number > game_number
                and candidate.status == STANDBY
            ):
                return candidate
        return None


def validate_bracket(matches: Iterable[Match]) -> list[str]:
    """
    Validate the bracket edges of a schedule.

    Checks:
    - Game numbers are unique across courts
    - Every edge points at a registered game
    - No match feeds itself, and the edges contain no cycle
    - No two edges write into the same destination slot
    - Only the final and the third-place game lack a winner edge

    Args:
        matches: All matches in the schedule

    Returns:
        List of warning messages (empty if all valid)
    """
    matches = list(matches)
    warnings = []

    counts = Counter(m.game_number for m in matches)
    for game_number, count in sorted(counts.items()):
        if count > 1:
            warnings.append(f"Game {game_number}: registered {count} times")

    by_game = {m.game_number: m for m in matches}
    slot_writers: dict[tuple[int, str], list[str]] = {}
    graph: dict[int, list[int]] = {m.game_number: [] for m in matches}

    for match in matches:
        for outcome, edge in ((WINNER, match.winner_next), (LOSER, match.loser_next)):
            if edge is None:
                continue
            if edge.game_number == match.game_number:
                warnings.append(f"Game {match.game_number}: {outcome} edge points at itself")
                continue
            if edge.game_number not in by_game:
                warnings.append(
                    f"Game {match.game_number}: {outcome} edge points at "
                    f"unknown game {edge.game_number}"
                )
                continue
            graph[match.game_number].append(edge.game_number)
            slot_writers.setdefault((edge.game_number, edge.slot), []).append(
                f"game {match.game_number} {outcome}"
            )

    for (game_number, slot), writers in sorted(slot_writers.items()):
        if len(writers) > 1:
            warnings.append(
                f"Game {game_number} {slot}: written by {', '.join(writers)}"
            )

    # The final and the third-place game are the only matches without a winner edge.
    terminal_games = [m.game_number for m in matches if m.winner_next is None]
    if matches and len(terminal_games) not in (1, 2):
        warnings.append(
            "Expected the final (and optionally a third-place game) to be the only "
            f"matches without a winner edge, found {sorted(terminal_games)}"
        )

    if _has_cycle(graph):
        warnings.append("Bracket edges contain a cycle")

    return warnings


def _has_cycle(graph: dict[int, list[int]]) -> bool:
    visiting: set[int] = set()
    done: set[int] = set()

    def visit(node: int) -> bool:
        if node in done:
            return False
        if node in visiting:
            return True
        visiting.add(node)
        for nxt in graph.get(node, []):
            if visit(nxt):
                return True
        visiting.discard(node)
        done.add(node)
        return False

    return any(visit(node) for node in list(graph))
