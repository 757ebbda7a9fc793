#!/usr/bin/env python3
"""
Load the tournament schedule from a CSV export.

The CSV has a header row with the columns:

    court, game_number, top_team, bottom_team, start_time,
    winner_next, winner_slot, loser_next, loser_slot

Loading is idempotent: re-running after a spreadsheet edit refreshes start
times and bracket edges without touching live scores or propagated teams.

Usage:
    # Load into the configured database (TALLYBOARD_DATABASE_URL)
    python scripts/load_schedule.py schedule.csv

    # Replace existing matches entirely (before the tournament starts)
    python scripts/load_schedule.py schedule.csv --overwrite

    # Validate only; nothing is written
    python scripts/load_schedule.py schedule.csv --dry-run
"""

import argparse
import logging
import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from tallyboard.db import Base, DBRowStore, MemoryRowStore, get_engine, make_session_factory
from tallyboard.engine import MatchRegistry
from tallyboard.services.schedule import load_schedule, read_schedule_csv

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description="Load the tournament schedule from CSV")
    parser.add_argument("csv_path", type=Path, help="Schedule CSV with a header row")
    parser.add_argument(
        "--overwrite",
        action="store_true",
        help="Replace existing matches, including status and teams",
    )
    parser.add_argument(
        "--database-url",
        default=None,
        help="SQLAlchemy URL (defaults to TALLYBOARD_DATABASE_URL)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate the schedule in memory without writing to the database",
    )
    args = parser.parse_args()

    if not args.csv_path.exists():
        logger.error("Schedule file not found: %s", args.csv_path)
        return 1

    rows = read_schedule_csv(args.csv_path)
    logger.info("Read %d schedule rows from %s", len(rows), args.csv_path)

    if args.dry_run:
        store = MemoryRowStore()
    else:
        engine = get_engine(args.database_url)
        Base.metadata.create_all(engine)
        store = DBRowStore(make_session_factory(engine))

    stats = load_schedule(MatchRegistry(store), rows, overwrite=args.overwrite)
    print(stats.summary())

    return 1 if stats.errors else 0


if __name__ == "__main__":
    raise SystemExit(main())
