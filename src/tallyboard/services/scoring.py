"""
Scoring service - turns inbound chat events into engine operations.

This is the entry point the messaging transport calls for every event:

1. Parse the text (FormatError goes straight back to the sender)
2. Answer help requests immediately, without the lock
3. Hand everything else to the ConcurrencyCoordinator, which drops
   redelivered events and runs the command under the tournament lock
4. Apply the command through the decision engine, score ledger and
   bracket propagator, append an audit row, and build the reply and the
   audience broadcast text

Every engine error comes back as a failed CommandResult; nothing raised
here reaches the transport. DestinationMatchNotFound is logged at ERROR and
flagged for operators because it means the bracket itself is wrong.

Usage:
    from tallyboard.services.scoring import ScoringService

    service = ScoringService.from_settings()
    result = service.handle_event("evt-1", "A 1 start Red Blue", sender_id="U123")
    if result is not None:
        reply(result.message)
"""

import logging
from typing import Optional

from sqlalchemy.engine import Engine

from tallyboard.bracket import LOSER, WINNER, BracketPropagator
from tallyboard.commands import (
    HELP_TEXT,
    Command,
    FinishCommand,
    HelpCommand,
    ReopenCommand,
    ScoreCommand,
    StartCommand,
    TiebreakCommand,
    parse_command,
)
from tallyboard.config import Settings, get_settings
from tallyboard.coordination import (
    ConcurrencyCoordinator,
    ProcessedEventCache,
    build_tournament_lock,
)
from tallyboard.db.store import RowStore
from tallyboard.engine import DecisionEngine, Match, MatchRegistry, ScoreLedger
from tallyboard.engine.ledger import DEFAULT_MAX_RUNS
from tallyboard.errors import FormatError, InningOutOfRange, RunsOutOfRange, TallyboardError
from tallyboard.match_statuses import SLOTS, TOP, normalize_status_filter
from tallyboard.results import CommandResult

logger = logging.getLogger(__name__)


def inning_label(inning: int, role: str) -> str:
    return f"{'Top' if role == TOP else 'Bottom'} {inning}"


def _start_time(match: Optional[Match]) -> str:
    if match is None or not match.scheduled_start:
        return "time TBD"
    return match.scheduled_start


class ScoringService:
    """Applies staff commands to one tournament."""

    def __init__(
        self,
        store: RowStore,
        *,
        max_innings: int = 6,
        max_runs: int = DEFAULT_MAX_RUNS,
        coordinator: Optional[ConcurrencyCoordinator] = None,
    ):
        self.store = store
        self.registry = MatchRegistry(store)
        self.ledger = ScoreLedger(store, max_innings=max_innings, max_runs=max_runs)
        self.decisions = DecisionEngine(self.registry, self.ledger)
        self.bracket = BracketPropagator(self.registry)
        self.coordinator = coordinator or ConcurrencyCoordinator()

    @classmethod
    def from_settings(
        cls,
        store: Optional[RowStore] = None,
        settings: Optional[Settings] = None,
        engine: Optional[Engine] = None,
    ) -> "ScoringService":
        """
        Build a service wired from configuration.

        Without an explicit store the database-backed row store is used; the
        tournament lock becomes a PostgreSQL advisory lock when ``engine``
        points at PostgreSQL.
        """
        settings = settings or get_settings()

        if store is None:
            from tallyboard.db.session import get_engine, make_session_factory
            from tallyboard.db.store import DBRowStore

            engine = engine or get_engine(settings.database_url)
            store = DBRowStore(make_session_factory(engine))

        coordinator = ConcurrencyCoordinator(
            lock=build_tournament_lock(
                engine, poll_interval_seconds=settings.lock_poll_interval_seconds
            ),
            cache=ProcessedEventCache(ttl_seconds=settings.dedup_ttl_seconds),
            lock_timeout_seconds=settings.lock_timeout_seconds,
        )
        return cls(
            store,
            max_innings=settings.max_innings,
            max_runs=settings.max_runs_per_inning,
            coordinator=coordinator,
        )

    # =========================================================================
    # Entry point
    # =========================================================================

    def handle_event(
        self,
        event_id: Optional[str],
        text: str,
        sender_id: Optional[str] = None,
    ) -> Optional[CommandResult]:
        """
        Handle one inbound chat event.

        Returns:
            The result to relay, or None when the event is a duplicate that
            was already applied (the transport should stay silent)
        """
        try:
            command = parse_command(text)
        except FormatError as exc:
            logger.info("Rejected unparseable text from %s: %r", sender_id, text)
            return CommandResult.failure(exc)

        if isinstance(command, HelpCommand):
            return CommandResult.success(HELP_TEXT)

        return self.coordinator.run(
            event_id,
            lambda: self.execute(command, sender_id=sender_id, event_id=event_id),
        )

    def execute(
        self,
        command: Command,
        sender_id: Optional[str] = None,
        event_id: Optional[str] = None,
    ) -> CommandResult:
        """Apply a parsed command. Callers must hold the tournament lock."""
        try:
            if isinstance(command, StartCommand):
                return self._start(command, sender_id, event_id)
            if isinstance(command, ScoreCommand):
                return self._score(command, sender_id, event_id)
            if isinstance(command, FinishCommand):
                return self._finish(command, sender_id, event_id)
            if isinstance(command, TiebreakCommand):
                return self._tiebreak(command, sender_id, event_id)
            if isinstance(command, ReopenCommand):
                return self._reopen(command, sender_id, event_id)
            if isinstance(command, HelpCommand):
                return CommandResult.success(HELP_TEXT)
            raise FormatError(f"Unsupported command: {command!r}")
        except TallyboardError as exc:
            if exc.operator_alert:
                logger.error("Bracket configuration error: %s", exc.message)
            else:
                logger.info("Command %r rejected: %s", command, exc.message)
            return CommandResult.failure(exc)
        except Exception:
            logger.exception("Unexpected error applying %r", command)
            return CommandResult(
                ok=False,
                message=(
                    "System error while applying the command. It may be partly applied; "
                    "check the scoreboard before resending."
                ),
                error_code="internal_error",
                operator_alert=True,
            )

    # =========================================================================
    # Handlers
    # =========================================================================

    def _log(self, kind: str, court: str, game_number: int, sender_id, event_id, **extra) -> None:
        row = {
            "kind": kind,
            "court": court,
            "game_number": game_number,
            "sender_id": sender_id,
            "event_id": event_id,
        }
        row.update(extra)
        self.store.append_log(row)

    def _start(self, cmd: StartCommand, sender_id, event_id) -> CommandResult:
        match = self.decisions.start(cmd.court, cmd.game_number, cmd.top_team, cmd.bottom_team)
        self._log(
            "start", match.court, match.game_number, sender_id, event_id,
            note=f"{match.top_team} vs {match.bottom_team}",
        )

        message = (
            f"{match.label} started\n"
            f"Top: {match.top_team}\n"
            f"Bottom: {match.bottom_team}"
        )
        broadcast = (
            f"Play ball! Court {match.court}: "
            f"{match.top_team} (top) vs {match.bottom_team} (bottom)"
        )
        return CommandResult.success(message, broadcast)

    def _score(self, cmd: ScoreCommand, sender_id, event_id) -> CommandResult:
        # Range checks before the match is created or promoted.
        if cmd.inning < 1 or cmd.inning > self.ledger.max_innings:
            raise InningOutOfRange(cmd.inning, self.ledger.max_innings)
        if cmd.runs > self.ledger.max_runs:
            raise RunsOutOfRange(cmd.runs, self.ledger.max_runs)

        match = self.decisions.begin_scoring(cmd.court, cmd.game_number)
        update = self.ledger.record_score(match, cmd.role, cmd.inning, cmd.runs)
        snapshot = self.ledger.snapshot(match)
        self._log(
            "score", match.court, match.game_number, sender_id, event_id,
            inning=cmd.inning, half=cmd.role, runs=cmd.runs,
        )

        team = match.team_in(cmd.role) or cmd.role.capitalize()
        label = inning_label(cmd.inning, cmd.role)
        message = f"[{cmd.role.capitalize()}: {team}] {label}\n{update.previous} -> {update.runs}"
        if update.delta > 0:
            message += f" (+{update.delta})"

        broadcast = None
        if update.delta > 0:
            broadcast = (
                f"Score update: Court {match.court} Game {match.game_number} {label}\n"
                f"{team} +{update.delta}\n"
                f"{snapshot.score_line()}"
            )
        return CommandResult.success(message, broadcast)

    def _finish(self, cmd: FinishCommand, sender_id, event_id) -> CommandResult:
        # Resolve destinations first so a broken edge fails before any write.
        self.bracket.destinations(self.registry.require(cmd.court, cmd.game_number))

        match, outcome = self.decisions.finish(cmd.court, cmd.game_number)
        snapshot = self.ledger.snapshot(match)
        self._log("finish", match.court, match.game_number, sender_id, event_id,
                  note=snapshot.score_line())

        if outcome.is_draw:
            message = (
                f"{match.label} is tied ({snapshot.score_line()}).\n"
                f"Decide the winner by tiebreak and send:\n"
                f"{match.court} {match.game_number} tiebreak <team>"
            )
            return CommandResult.success(message)

        self.bracket.advance(match, outcome.winner, outcome.loser)
        broadcast = (
            f"Final: {match.label}\n{snapshot.score_line()}\n\n"
            f"{outcome.winner} wins!"
        )
        broadcast += self._next_steps(match, outcome.winner, outcome.loser)
        return CommandResult.success(f"{match.label} finished", broadcast)

    def _tiebreak(self, cmd: TiebreakCommand, sender_id, event_id) -> CommandResult:
        self.bracket.destinations(self.registry.require(cmd.court, cmd.game_number))

        match = self.decisions.force_winner(cmd.court, cmd.game_number, cmd.team)
        loser = match.loser()
        self.bracket.advance(match, match.winner, loser)
        snapshot = self.ledger.snapshot(match)
        self._log("tiebreak", match.court, match.game_number, sender_id, event_id,
                  note=match.winner)

        broadcast = (
            f"Final (tiebreak): {match.label}\n{snapshot.score_line()}\n\n"
            f"{match.winner} wins the tiebreak!"
        )
        broadcast += self._next_steps(match, match.winner, loser)
        return CommandResult.success(f"{match.label}: {match.winner} wins the tiebreak", broadcast)

    def _reopen(self, cmd: ReopenCommand, sender_id, event_id) -> CommandResult:
        match = self.decisions.reopen(cmd.court, cmd.game_number)
        self._log("reopen", match.court, match.game_number, sender_id, event_id)
        return CommandResult.success(f"{match.label} reopened for corrections")

    def _next_steps(self, match: Match, winner: str, loser: str) -> str:
        text = ""
        details = self.bracket.next_match_details(match)
        winner_match = details[WINNER]
        loser_match = details[LOSER]
        if winner_match is not None:
            text += (
                f"\n{winner} advances to Game {winner_match.game_number} "
                f"(Court {winner_match.court}, {_start_time(winner_match)})"
            )
        if loser_match is not None:
            text += (
                f"\n{loser} moves to Game {loser_match.game_number} "
                f"(Court {loser_match.court}, {_start_time(loser_match)})"
            )

        upcoming = self.bracket.next_on_court(match.court, match.game_number)
        if upcoming is not None:
            text += (
                f"\n\nNext on Court {upcoming.court}: Game {upcoming.game_number} "
                f"{upcoming.top_team or 'TBD'} vs {upcoming.bottom_team or 'TBD'} "
                f"({_start_time(upcoming)})"
            )
        return text

    # =========================================================================
    # Read-only views (no lock)
    # =========================================================================

    def scoreboard(self, statuses: Optional[list[str]] = None) -> list[dict]:
        """Ledger snapshots with match status, newest game numbers last."""
        wanted = normalize_status_filter(statuses)
        boards = []
        for match in self.registry.filter(wanted):
            payload = self.ledger.snapshot(match).to_dict()
            payload["status"] = match.status
            payload["winner"] = match.winner
            payload["decided_by"] = match.decided_by
            boards.append(payload)
        return boards

    def schedule(self) -> list[dict]:
        """Every registered match in game-number order."""
        return [match.to_row() for match in self.registry.all()]

    def history(self, court: Optional[str] = None, game_number: Optional[int] = None) -> list[dict]:
        """Audit rows, oldest first, optionally narrowed to one court or match."""
        rows = self.store.read_log()
        if court is not None:
            rows = [row for row in rows if row.get("court") == court]
        if game_number is not None:
            rows = [row for row in rows if row.get("game_number") == game_number]
        return rows

    def teams(self) -> list[dict]:
        """
        Every team named in the schedule with the matches it appears in.

        Teams are listed in order of first appearance by game number, so
        bracket winners show up once propagation has written them.
        """
        teams: dict[str, dict] = {}
        for match in self.registry.all():
            for slot in SLOTS:
                name = match.team_in(slot)
                if not name:
                    continue
                entry = teams.setdefault(name, {"name": name, "matches": []})
                entry["matches"].append(
                    {
                        "court": match.court,
                        "game_number": match.game_number,
                        "slot": slot,
                        "status": match.status,
                        "won": None if match.winner is None else match.winner == name,
                    }
                )
        return list(teams.values())
