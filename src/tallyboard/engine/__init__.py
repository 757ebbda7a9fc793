"""Tournament state engine: score ledger, match registry and decisions."""

from tallyboard.engine.decision import DecisionEngine, Outcome, decide_snapshot
from tallyboard.engine.ledger import LedgerSnapshot, ScoreLedger, ScoreUpdate
from tallyboard.engine.registry import BracketEdge, Match, MatchRegistry

__all__ = [
    "BracketEdge",
    "DecisionEngine",
    "LedgerSnapshot",
    "Match",
    "MatchRegistry",
    "Outcome",
    "ScoreLedger",
    "ScoreUpdate",
    "decide_snapshot",
]
