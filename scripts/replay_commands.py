#!/usr/bin/env python3
"""
Replay chat commands from a text file.

Useful for rehearsing a tournament day, or for rebuilding the scoreboard
from a saved chat export. Each non-empty line is one command; lines
starting with '#' are skipped. Every line gets its own event id, so the
file can be replayed against a fresh database without being deduplicated.

Usage:
    # Rehearse in memory and print every reply and broadcast
    python scripts/replay_commands.py day1.txt --memory

    # Apply to the configured database
    python scripts/replay_commands.py day1.txt

    # Load a schedule first, then replay
    python scripts/replay_commands.py day1.txt --memory --schedule schedule.csv
"""

import argparse
import logging
import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from tallyboard.config import get_settings
from tallyboard.db import Base, MemoryRowStore, get_engine
from tallyboard.services import ScoringService, load_schedule, read_schedule_csv

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


def read_commands(path: Path) -> list[str]:
    lines = path.read_text(encoding="utf-8").splitlines()
    return [line.strip() for line in lines if line.strip() and not line.strip().startswith("#")]


def main() -> int:
    parser = argparse.ArgumentParser(description="Replay chat commands from a file")
    parser.add_argument("commands_path", type=Path, help="Text file with one command per line")
    parser.add_argument("--memory", action="store_true", help="Use an in-memory store")
    parser.add_argument("--schedule", type=Path, default=None, help="Schedule CSV to load first")
    parser.add_argument("--sender", default="replay", help="Sender id recorded in the audit log")
    args = parser.parse_args()

    if args.memory:
        service = ScoringService.from_settings(store=MemoryRowStore())
    else:
        settings = get_settings()
        engine = get_engine(settings.database_url)
        Base.metadata.create_all(engine)
        service = ScoringService.from_settings(settings=settings, engine=engine)

    if args.schedule is not None:
        stats = load_schedule(service.registry, read_schedule_csv(args.schedule))
        print(stats.summary())

    failures = 0
    for number, text in enumerate(read_commands(args.commands_path), start=1):
        result = service.handle_event(f"replay-{number}", text, sender_id=args.sender)
        if result is None:
            continue
        status = "OK " if result.ok else "ERR"
        print(f"[{status}] {text}")
        print("      " + result.message.replace("\n", "\n      "))
        if result.broadcast:
            print("      >> " + result.broadcast.replace("\n", "\n         "))
        if not result.ok:
            failures += 1

    logger.info("Replay finished with %d failed commands", failures)
    return 1 if failures else 0


if __name__ == "__main__":
    raise SystemExit(main())
