"""
Command text interpreter.

Staff type short commands into the chat. Every command starts with the
court and the game number, followed by the action:

- Start:    "A 1 start RedTeam BlueTeam"   (or "A 1 start" for pre-registered teams)
- Score:    "A 1 3Top 2" / "A 1 3Bottom 0"
- Finish:   "A 1 finish"
- Tiebreak: "A 1 tiebreak BlueTeam"
- Reopen:   "A 1 reopen"
- Help:     "help" or "?"

The Japanese forms used on the paper score sheets are accepted too:
"Aコート 第1試合 3表 2", "A 1 開始 赤 青", "A 1 終了", "A 1 じゃんけん 青",
"A 1 再開", "ヘルプ". Keywords and half markers are case-insensitive; team
names are kept exactly as typed.

This module only parses. Anything it cannot parse raises FormatError and
never reaches the engine.
"""

import re
from dataclasses import dataclass
from typing import Optional, Union

from tallyboard.errors import FormatError
from tallyboard.match_statuses import BOTTOM, TOP

HELP_TEXT = (
    "Commands:\n"
    "  Start:    A 1 start <top team> <bottom team>\n"
    "  Score:    A 1 3Top 2   /   A 1 3Bottom 0\n"
    "  Finish:   A 1 finish\n"
    "  Tiebreak: A 1 tiebreak <winning team>\n"
    "  Reopen:   A 1 reopen"
)

FORMAT_HINT = "Examples: 'A 1 start Red Blue', 'A 1 3Top 4', 'A 1 finish'"

HALF_MARKERS = {
    "top": TOP,
    "表": TOP,
    "bottom": BOTTOM,
    "裏": BOTTOM,
}

# Court label and game number, with the optional Japanese decorations.
_PREFIX = r"^(?P<court>[A-Za-z0-9]+)(?:コート)?\s*第?(?P<game>\d+)(?:試合)?\s*"

_START = re.compile(
    _PREFIX + r"(?:start|開始)(?:\s+(?P<top>\S+)\s+(?P<bottom>\S+))?$",
    re.IGNORECASE,
)
_SCORE = re.compile(
    _PREFIX + r"(?P<inning>\d+)\s*(?P<half>top|bottom|表|裏)\s*(?P<runs>\d+)$",
    re.IGNORECASE,
)
_FINISH = re.compile(_PREFIX + r"(?:finish|end|終了)$", re.IGNORECASE)
_TIEBREAK = re.compile(_PREFIX + r"(?:tiebreak|じゃんけん)\s+(?P<team>.+)$", re.IGNORECASE)
_REOPEN = re.compile(_PREFIX + r"(?:reopen|resume|再開)$", re.IGNORECASE)
_HELP = re.compile(r"^(?:help|\?|？|ヘルプ)$", re.IGNORECASE)


@dataclass(frozen=True)
class StartCommand:
    court: str
    game_number: int
    top_team: Optional[str] = None
    bottom_team: Optional[str] = None


@dataclass(frozen=True)
class ScoreCommand:
    court: str
    game_number: int
    inning: int
    role: str
    runs: int


@dataclass(frozen=True)
class FinishCommand:
    court: str
    game_number: int


@dataclass(frozen=True)
class TiebreakCommand:
    court: str
    game_number: int
    team: str


@dataclass(frozen=True)
class ReopenCommand:
    court: str
    game_number: int


@dataclass(frozen=True)
class HelpCommand:
    pass


Command = Union[StartCommand, ScoreCommand, FinishCommand, TiebreakCommand, ReopenCommand, HelpCommand]


def normalize_text(text: str) -> str:
    """Trim and collapse runs of ASCII and full-width spaces."""
    return re.sub(r"[ \t　]+", " ", text.strip())


def parse_command(text: Optional[str]) -> Command:
    """
    Parse one line of command text.

    Args:
        text: Raw message text

    Returns:
        One of the command dataclasses

    Raises:
        FormatError: if the text matches no command
    """
    if not text or not text.strip():
        raise FormatError(f"Empty command. {FORMAT_HINT}")

    msg = normalize_text(text)

    if _HELP.match(msg):
        return HelpCommand()

    m = _START.match(msg)
    if m:
        return StartCommand(
            court=m.group("court"),
            game_number=int(m.group("game")),
            top_team=m.group("top"),
            bottom_team=m.group("bottom"),
        )

    m = _SCORE.match(msg)
    if m:
        return ScoreCommand(
            court=m.group("court"),
            game_number=int(m.group("game")),
            inning=int(m.group("inning")),
            role=HALF_MARKERS[m.group("half").lower()],
            runs=int(m.group("runs")),
        )

    m = _FINISH.match(msg)
    if m:
        return FinishCommand(court=m.group("court"), game_number=int(m.group("game")))

    m = _TIEBREAK.match(msg)
    if m:
        return TiebreakCommand(
            court=m.group("court"),
            game_number=int(m.group("game")),
            team=m.group("team").strip(),
        )

    m = _REOPEN.match(msg)
    if m:
        return ReopenCommand(court=m.group("court"), game_number=int(m.group("game")))

    raise FormatError(f"Could not read {msg!r}. {FORMAT_HINT}")
