"""Services that apply commands and load the schedule."""

from tallyboard.services.schedule import ScheduleLoadStats, load_schedule, read_schedule_csv
from tallyboard.services.scoring import ScoringService

__all__ = [
    "ScheduleLoadStats",
    "ScoringService",
    "load_schedule",
    "read_schedule_csv",
]
