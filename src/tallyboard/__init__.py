"""
Tallyboard - live score keeping for a single-elimination softball tournament.

Staff report scores as short text commands. Tallyboard records them in a
per-inning ledger, decides winners, and moves teams through the bracket.

Main components:
- engine: score ledger, match registry and decision engine
- bracket: bracket propagation and validation
- coordination: tournament-wide lock and duplicate-event suppression
- commands: command text interpreter
- services: the scoring service tying everything together
- db: row store backends (in-memory and SQLAlchemy)
- web: FastAPI webhook and read-only JSON API
"""

__version__ = "1.0.0"
