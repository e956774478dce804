"""Challenge state, input parsing and the submission pipeline."""

from .inputs import amounts_from_outcomes, parse_trade_amounts
from .pipeline import advance, confirm_phase_advance, replay, submit, week_of_day
from .state import (
    WEEKDAYS,
    ChallengeState,
    DailyRecord,
    WeekDayEntry,
    initial_state,
)

__all__ = [
    "amounts_from_outcomes",
    "parse_trade_amounts",
    "advance",
    "confirm_phase_advance",
    "replay",
    "submit",
    "week_of_day",
    "WEEKDAYS",
    "ChallengeState",
    "DailyRecord",
    "WeekDayEntry",
    "initial_state",
]
