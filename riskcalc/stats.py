"""Derived numbers for the dashboard."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Tuple

import pandas as pd

from .config import ChallengeConfig
from .core.state import ChallengeState, DailyRecord, WeekDayEntry
from .rules.evaluator import Status, compute_drawdown
from .rules.risk import max_safe_risk

DRAWDOWN_WARNING_RATIO = 0.8

HISTORY_COLUMNS = [
    "day",
    "week",
    "weekday",
    "phase",
    "trades",
    "wins",
    "losses",
    "risk_used",
    "daily_pl",
    "balance",
    "peak_balance",
    "drawdown",
    "status",
]


@dataclass(slots=True)
class ChallengeStats:
    """Snapshot shown in the stats panel."""

    balance: float
    profit: float
    profit_pct: float
    phase: int
    phase_target: float
    phase_progress_pct: float
    peak_balance: float
    drawdown: float
    max_drawdown: float
    drawdown_warning: bool
    next_risk: float
    max_safe_risk: float
    last_daily_pl: float
    status: Status


def summarize(state: ChallengeState, config: ChallengeConfig) -> ChallengeStats:
    """Compute the stats panel values for ``state``.

    Phase progress is measured from the balance at which the current phase
    started, so phase 2 begins at 0 % rather than inheriting phase 1 profit.
    """
    profit = state.balance - config.starting_balance
    if state.phase == 1:
        baseline, target = config.starting_balance, config.phase1_target
    else:
        baseline, target = config.phase1_goal, config.phase2_target
    progress = 100.0 if target <= 0 else (state.balance - baseline) / target * 100
    drawdown = compute_drawdown(state.balance, state.peak_balance, config)
    return ChallengeStats(
        balance=state.balance,
        profit=profit,
        profit_pct=profit / config.starting_balance * 100,
        phase=state.phase,
        phase_target=target,
        phase_progress_pct=min(max(progress, 0.0), 100.0),
        peak_balance=state.peak_balance,
        drawdown=drawdown,
        max_drawdown=config.max_drawdown,
        drawdown_warning=drawdown >= config.max_drawdown * DRAWDOWN_WARNING_RATIO,
        next_risk=state.current_risk,
        max_safe_risk=max_safe_risk(config),
        last_daily_pl=state.last_daily_pl,
        status=state.status,
    )


def history_frame(records: Iterable[DailyRecord]) -> pd.DataFrame:
    """Tabulate history records for display."""
    rows: List[dict] = [
        {
            "day": r.day_number,
            "week": r.week_number,
            "weekday": r.day_of_week or "",
            "phase": r.phase,
            "trades": ", ".join(f"{a:+.2f}" for a in r.trade_amounts),
            "wins": r.wins,
            "losses": r.losses,
            "risk_used": round(r.risk_used, 2),
            "daily_pl": round(r.daily_pl, 2),
            "balance": round(r.balance, 2),
            "peak_balance": round(r.peak_balance, 2),
            "drawdown": round(r.drawdown, 2),
            "status": r.status.value,
        }
        for r in records
    ]
    return pd.DataFrame(rows, columns=HISTORY_COLUMNS)


def week_summary(entries: Iterable[WeekDayEntry]) -> Tuple[int, float]:
    """Return ``(days_completed, weekly_pl)`` for one week of grid entries."""
    entries = list(entries)
    return len(entries), sum(e.daily_pl for e in entries)


__all__ = ["ChallengeStats", "summarize", "history_frame", "week_summary", "HISTORY_COLUMNS"]
