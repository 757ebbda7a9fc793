"""
Unit tests for the scoring service.

Drives the service the way the webhook does: raw command text in,
CommandResult out.
"""

import itertools

from tallyboard.commands import HELP_TEXT
from tallyboard.coordination import ConcurrencyCoordinator
from tallyboard.db import MemoryRowStore
from tallyboard.engine import BracketEdge, Match
from tallyboard.match_statuses import BOTTOM, FINISHED, PLAYING, STANDBY, TOP
from tallyboard.services import ScoringService


_event_ids = itertools.count(1)


def _send(service, *texts, sender="U1"):
    """Send each text with a fresh event id; return the last result."""
    result = None
    for text in texts:
        result = service.handle_event(f"evt-{next(_event_ids)}", text, sender_id=sender)
    return result


class TestScoringFlow:
    """End-to-end command sequences."""

    def test_start_and_first_inning(self, service):
        result = _send(service, "A 1 start RedTeam BlueTeam")
        assert result.ok
        assert "Court A Game 1 started" in result.message
        assert "Play ball!" in result.broadcast

        match = service.registry.get("A", 1)
        assert match.status == PLAYING
        assert (match.top_team, match.bottom_team) == ("RedTeam", "BlueTeam")

        result = _send(service, "A 1 1Top 2")
        assert result.ok
        assert "0 -> 2 (+2)" in result.message
        assert "RedTeam +2" in result.broadcast
        assert "RedTeam 2 - 0 BlueTeam" in result.broadcast

        result = _send(service, "A 1 1Bottom 0")
        assert result.ok
        assert result.broadcast is None

        snapshot = service.ledger.snapshot(service.registry.get("A", 1))
        assert snapshot.top[0] == 2
        assert snapshot.bottom[0] == 0
        assert snapshot.top_total == 2
        assert snapshot.bottom_total == 0

    def test_bottom_fill_forward(self, service):
        _send(service, "A 1 start Red Blue")

        result = _send(service, "A 1 3Bottom 1")

        assert result.ok
        snapshot = service.ledger.snapshot(service.registry.get("A", 1))
        assert snapshot.bottom == (0, 0, 1, None, None, None)
        assert snapshot.bottom_total == 1

    def test_correction_reports_delta(self, service):
        _send(service, "A 1 start Red Blue", "A 1 2Top 4")

        result = _send(service, "A 1 2Top 1")

        assert result.ok
        assert "4 -> 1" in result.message
        assert result.broadcast is None
        assert service.ledger.total(service.registry.get("A", 1), TOP) == 1

    def test_draw_then_tiebreak_propagates(self, bracket_service):
        service = bracket_service
        _send(service, "A 1 start", "A 1 1Top 5", "A 1 1Bottom 5")

        result = _send(service, "A 1 finish")

        assert result.ok
        assert result.broadcast is None
        assert "A 1 tiebreak <team>" in result.message
        match = service.registry.get("A", 1)
        assert match.status == FINISHED
        assert match.winner is None
        assert service.registry.get("A", 5).top_team == ""

        result = _send(service, "A 1 tiebreak Blue")

        assert result.ok
        assert "Blue wins the tiebreak!" in result.broadcast
        assert "Blue advances to Game 5" in result.broadcast
        match = service.registry.get("A", 1)
        assert match.winner == "Blue"
        assert match.decided_by == "tiebreak"
        assert service.registry.get("A", 5).top_team == "Blue"

    def test_finish_without_loser_edge(self, bracket_service):
        service = bracket_service
        _send(service, "A 1 start", "A 1 1Top 3", "A 1 1Bottom 1")

        result = _send(service, "A 1 finish")

        assert result.ok
        assert "Red wins!" in result.broadcast
        assert "Red advances to Game 5 (Court A, 11:00)" in result.broadcast
        assert "Blue moves" not in result.broadcast
        assert "Next on Court A: Game 3 Orange vs Purple (10:00)" in result.broadcast
        assert service.registry.get("A", 5).top_team == "Red"
        assert service.registry.get("A", 7).top_team == ""

    def test_semifinal_places_winner_and_loser(self, bracket_service):
        service = bracket_service
        _send(service, "A 1 start", "A 1 1Top 3", "A 1 finish")
        _send(service, "B 2 start", "B 2 1Bottom 2", "B 2 finish")
        assert service.registry.get("A", 5).bottom_team == "Yellow"

        _send(service, "A 5 start", "A 5 2Top 1", "A 5 2Bottom 4")
        result = _send(service, "A 5 finish")

        assert "Yellow advances to Game 8" in result.broadcast
        assert "Red moves to Game 7" in result.broadcast
        assert service.registry.get("B", 8).top_team == "Yellow"
        assert service.registry.get("A", 7).top_team == "Red"

    def test_score_on_standby_match_starts_it(self, bracket_service):
        result = _send(bracket_service, "B 4 1Top 1")

        assert result.ok
        assert "[Top: Black]" in result.message
        assert bracket_service.registry.get("B", 4).status == PLAYING

    def test_score_on_unknown_match_creates_it(self, service):
        result = _send(service, "C 9 1Bottom 2")

        assert result.ok
        assert "[Bottom: Bottom]" in result.message
        match = service.registry.get("C", 9)
        assert match.status == PLAYING
        assert service.ledger.total(match, BOTTOM) == 2

    def test_reopen_allows_corrections(self, service):
        _send(service, "A 1 start Red Blue", "A 1 1Top 1", "A 1 finish")

        blocked = _send(service, "A 1 2Top 3")
        assert not blocked.ok
        assert blocked.error_code == "already_finished"

        assert _send(service, "A 1 reopen").ok
        assert _send(service, "A 1 1Bottom 2").ok
        result = _send(service, "A 1 finish")

        assert "Blue wins!" in result.broadcast
        assert service.registry.get("A", 1).winner == "Blue"


class TestErrors:
    """Errors come back as failed results, never as exceptions."""

    def test_format_error(self, service):
        result = _send(service, "what is the score")
        assert not result.ok
        assert result.error_code == "format_error"

    def test_help(self, service):
        result = _send(service, "help")
        assert result.ok
        assert result.message == HELP_TEXT

    def test_inning_out_of_range_creates_nothing(self, service):
        result = _send(service, "A 1 7Top 1")

        assert result.error_code == "inning_out_of_range"
        assert service.registry.get("A", 1) is None

    def test_start_without_registered_teams(self, service):
        result = _send(service, "A 1 start")
        assert result.error_code == "teams_not_registered"

    def test_finish_unknown_match(self, service):
        assert _send(service, "Z 3 finish").error_code == "match_not_found"

    def test_tiebreak_invalid_team(self, service):
        _send(service, "A 1 start Red Blue")
        result = _send(service, "A 1 tiebreak Green")
        assert result.error_code == "invalid_team"
        assert service.registry.get("A", 1).status == PLAYING

    def test_missing_destination_alerts_and_writes_nothing(self, service):
        service.registry.register(
            Match("A", 1, top_team="Red", bottom_team="Blue", winner_next=BracketEdge(99, TOP))
        )
        _send(service, "A 1 start", "A 1 1Top 2")

        result = _send(service, "A 1 finish")

        assert not result.ok
        assert result.error_code == "destination_match_not_found"
        assert result.operator_alert
        match = service.registry.get("A", 1)
        assert match.status == PLAYING
        assert match.winner is None

    def test_unexpected_error_is_contained(self, service, monkeypatch):
        def explode(*args, **kwargs):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(service.decisions, "start", explode)

        result = _send(service, "A 1 start Red Blue")

        assert not result.ok
        assert result.error_code == "internal_error"
        assert result.operator_alert

    def test_busy_when_lock_held(self):
        service = ScoringService(
            MemoryRowStore(),
            coordinator=ConcurrencyCoordinator(lock_timeout_seconds=0.05),
        )
        with service.coordinator.lock.hold(0.1):
            result = service.handle_event("evt-busy", "A 1 start Red Blue")

        assert result.error_code == "busy"
        assert result.transient
        assert service.registry.get("A", 1) is None

        # The same id is applied once the lock is free.
        assert service.handle_event("evt-busy", "A 1 start Red Blue").ok


class TestDedupAndLog:
    def test_duplicate_event_is_silent(self, service):
        service.handle_event("evt-a", "A 1 start Red Blue")
        assert service.handle_event("evt-a", "A 1 start Red Blue") is None

        service.handle_event("evt-b", "A 1 1Top 2")
        assert service.handle_event("evt-b", "A 1 1Top 2") is None

        assert service.ledger.total(service.registry.get("A", 1), TOP) == 2
        assert len(service.store.read_log()) == 2

    def test_failed_event_can_be_resent(self, service):
        first = service.handle_event("evt-a", "A 1 finish")
        second = service.handle_event("evt-a", "A 1 finish")

        assert not first.ok
        assert second is not None and not second.ok

    def test_audit_log_rows(self, service):
        service.handle_event("evt-1", "A 1 start Red Blue", sender_id="U1")
        service.handle_event("evt-2", "A 1 1Top 2", sender_id="U2")
        service.handle_event("evt-3", "nonsense", sender_id="U3")

        log = service.store.read_log()

        assert [row["kind"] for row in log] == ["start", "score"]
        assert log[0]["note"] == "Red vs Blue"
        score = log[1]
        assert (score["court"], score["game_number"]) == ("A", 1)
        assert (score["inning"], score["half"], score["runs"]) == (1, TOP, 2)
        assert (score["sender_id"], score["event_id"]) == ("U2", "evt-2")


class TestReadViews:
    def test_scoreboard_filters_by_status(self, bracket_service):
        _send(bracket_service, "A 1 start", "A 1 2Top 1")

        boards = bracket_service.scoreboard(["playing"])

        assert len(boards) == 1
        board = boards[0]
        assert board["status"] == PLAYING
        assert board["top"]["team"] == "Red"
        assert board["top"]["innings"] == [0, 1, None, None, None, None]
        assert board["top"]["total"] == 1
        assert board["winner"] is None

    def test_scoreboard_defaults_to_every_match(self, bracket_service):
        assert len(bracket_service.scoreboard()) == 8
        assert len(bracket_service.scoreboard(["unknown"])) == 8

    def test_schedule_is_ordered(self, bracket_service):
        schedule = bracket_service.schedule()

        assert [row["game_number"] for row in schedule] == list(range(1, 9))
        assert schedule[0]["status"] == STANDBY
        assert schedule[4]["winner_next"] == {"game_number": 8, "slot": "top"}


class TestRosterAndRunLimits:
    def test_same_team_on_both_sides(self, service):
        result = _send(service, "A 1 start Red Red")

        assert not result.ok
        assert result.error_code == "duplicate_team"
        assert service.registry.get("A", 1) is None

    def test_runs_above_limit_create_nothing(self, service):
        result = _send(service, "B 2 1Top 100")

        assert result.error_code == "runs_out_of_range"
        assert service.registry.get("B", 2) is None

    def test_unexpected_error_does_not_claim_rollback(self, service, monkeypatch):
        """A failure after a partial write tells staff to check before resending."""
        _send(service, "A 1 start Red Blue")

        def broken_log(row):
            raise RuntimeError("audit log unavailable")

        monkeypatch.setattr(service.store, "append_log", broken_log)

        result = service.handle_event("evt-partial", "A 1 1Top 2")

        assert result.error_code == "internal_error"
        assert "check the scoreboard" in result.message
        assert "not applied" not in result.message
        assert not service.coordinator.is_duplicate("evt-partial")


class TestHistoryAndTeams:
    def test_history_filters(self, bracket_service):
        _send(bracket_service, "A 1 start", "A 1 1Top 2", "B 2 start", "B 2 1Bottom 1")

        assert len(bracket_service.history()) == 4
        assert [row["kind"] for row in bracket_service.history(court="B")] == ["start", "score"]
        scores = bracket_service.history(court="A", game_number=1)
        assert scores[1]["runs"] == 2

    def test_teams_lists_every_named_team(self, bracket_service):
        teams = bracket_service.teams()

        assert [team["name"] for team in teams][:4] == ["Red", "Blue", "Green", "Yellow"]
        assert len(teams) == 8
        red = teams[0]
        assert red["matches"] == [
            {"court": "A", "game_number": 1, "slot": TOP, "status": STANDBY, "won": None}
        ]

    def test_teams_follow_propagation(self, bracket_service):
        _send(bracket_service, "A 1 start", "A 1 1Top 3", "A 1 finish")

        red = next(team for team in bracket_service.teams() if team["name"] == "Red")
        blue = next(team for team in bracket_service.teams() if team["name"] == "Blue")

        assert [m["game_number"] for m in red["matches"]] == [1, 5]
        assert red["matches"][0]["won"] is True
        assert blue["matches"][0]["won"] is False
