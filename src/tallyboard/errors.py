"""
Error taxonomy for the tournament engine.

Every error the engine can report to a sender is a subclass of
TallyboardError with a stable ``code``. The scoring service converts them
into failed CommandResult values, so none of these cross into the transport.

Only DestinationMatchNotFound marks a configuration defect; it carries
``operator_alert = True`` so it can be surfaced to operators separately from
ordinary user mistakes.
"""

from typing import Optional


class TallyboardError(Exception):
    """Base class for errors reported back to the sender."""

    code = "error"
    transient = False
    operator_alert = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class FormatError(TallyboardError):
    """Raised when command text cannot be parsed."""

    code = "format_error"


class InningOutOfRange(TallyboardError):
    """Raised when a score names an inning outside 1..max_innings."""

    code = "inning_out_of_range"

    def __init__(self, inning: int, max_innings: int):
        super().__init__(f"Inning {inning} is out of range (1-{max_innings})")
        self.inning = inning
        self.max_innings = max_innings


class InvalidTeam(TallyboardError):
    """Raised when a tiebreak winner is not one of the two registered teams."""

    code = "invalid_team"

    def __init__(self, team: str, top_team: Optional[str], bottom_team: Optional[str]):
        super().__init__(
            f"Team {team!r} is not playing this match "
            f"(teams: {top_team or 'TBD'} / {bottom_team or 'TBD'})"
        )
        self.team = team


class RunsOutOfRange(TallyboardError):
    """Raised when a score reports more runs than one half-inning allows."""

    code = "runs_out_of_range"

    def __init__(self, runs: int, max_runs: int):
        super().__init__(f"{runs} runs is out of range (0-{max_runs} per half-inning)")
        self.runs = runs
        self.max_runs = max_runs


class DuplicateTeam(TallyboardError):
    """Raised when both sides of a match are given the same team name."""

    code = "duplicate_team"

    def __init__(self, team: str):
        super().__init__(f"Top and bottom teams must differ (both are {team!r})")
        self.team = team


class DestinationMatchNotFound(TallyboardError):
    """Raised when a bracket edge points at a game that is not registered."""

    code = "destination_match_not_found"
    operator_alert = True

    def __init__(self, game_number: int, source: str):
        super().__init__(
            f"Bracket edge from {source} points at game {game_number}, "
            "which is not in the schedule"
        )
        self.game_number = game_number


class Busy(TallyboardError):
    """Raised when the tournament lock cannot be acquired in time."""

    code = "busy"
    transient = True

    def __init__(self, timeout_seconds: float):
        super().__init__(
            f"The scoreboard is busy (waited {timeout_seconds:g}s). Please resend the command."
        )
        self.timeout_seconds = timeout_seconds


class AlreadyFinished(TallyboardError):
    """Raised when a command targets a finished match without a reopen."""

    code = "already_finished"


class InvalidTransition(TallyboardError):
    """Raised when a status change is not allowed from the current status."""

    code = "invalid_transition"


class TeamsNotRegistered(TallyboardError):
    """Raised when a match needs team names that were never registered."""

    code = "teams_not_registered"


class MatchNotFound(TallyboardError):
    """Raised when a command targets a match that does not exist."""

    code = "match_not_found"
