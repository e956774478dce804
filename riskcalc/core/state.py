from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Dict, Tuple

from ..config import ChallengeConfig
from ..rules.evaluator import Status
from ..rules.risk import clamp_risk

DAYS_PER_WEEK = 5
WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday")


@dataclass(frozen=True, slots=True)
class ChallengeState:
    """Snapshot of a user's challenge between two submitted days."""

    balance: float
    peak_balance: float
    current_risk: float
    day_number: int = 1
    week_number: int = 1
    phase: int = 1
    status: Status = Status.ONGOING
    last_daily_pl: float = 0.0

    @property
    def accepts_trades(self) -> bool:
        return self.status is Status.ONGOING

    def to_fields(self) -> Dict[str, Any]:
        """Flatten into JSON-friendly key/value pairs, one per field."""
        return {
            "balance": self.balance,
            "peak_balance": self.peak_balance,
            "current_risk": self.current_risk,
            "day_number": self.day_number,
            "week_number": self.week_number,
            "phase": self.phase,
            "status": self.status.value,
            "last_daily_pl": self.last_daily_pl,
        }

    @classmethod
    def from_fields(cls, values: Dict[str, Any]) -> "ChallengeState":
        return cls(
            balance=float(values["balance"]),
            peak_balance=float(values["peak_balance"]),
            current_risk=float(values["current_risk"]),
            day_number=int(values.get("day_number", 1)),
            week_number=int(values.get("week_number", 1)),
            phase=int(values.get("phase", 1)),
            status=Status(values.get("status", Status.ONGOING.value)),
            last_daily_pl=float(values.get("last_daily_pl", 0.0)),
        )


STATE_FIELDS = tuple(f.name for f in fields(ChallengeState))


def initial_state(config: ChallengeConfig) -> ChallengeState:
    """State at the start of a challenge."""
    return ChallengeState(
        balance=config.starting_balance,
        peak_balance=config.starting_balance,
        current_risk=clamp_risk(config.initial_risk, config),
    )


@dataclass(frozen=True, slots=True)
class DailyRecord:
    """Immutable history entry written once per submitted day."""

    day_number: int
    phase: int
    trade_amounts: Tuple[float, ...]
    daily_pl: float
    risk_used: float
    balance: float
    peak_balance: float
    drawdown: float
    status: Status
    next_risk: float
    week_number: int = 1
    day_of_week: str | None = None

    @property
    def wins(self) -> int:
        return sum(1 for amount in self.trade_amounts if amount > 0)

    @property
    def losses(self) -> int:
        return sum(1 for amount in self.trade_amounts if amount < 0)


@dataclass(frozen=True, slots=True)
class WeekDayEntry:
    """One cell of the weekly grid as stored in ``daily_trades``."""

    week_number: int
    day_of_week: str
    trade_amounts: Tuple[float, ...] = field(default_factory=tuple)

    @property
    def daily_pl(self) -> float:
        return sum(self.trade_amounts)

    @property
    def sort_key(self) -> Tuple[int, int]:
        return self.week_number, WEEKDAYS.index(self.day_of_week)


__all__ = [
    "ChallengeState",
    "DailyRecord",
    "WeekDayEntry",
    "STATE_FIELDS",
    "WEEKDAYS",
    "DAYS_PER_WEEK",
    "initial_state",
]
