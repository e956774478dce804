"""Trade submission pipeline.

Each submitted day flows through the same steps: net P/L, balance and peak,
drawdown, rule evaluation, next day's risk, history record. :func:`advance`
performs those steps without touching storage; :func:`submit` adds the
history write and only hands back the new state once the write succeeded.
"""
from __future__ import annotations

import logging
import math
from dataclasses import replace
from typing import Iterable, List, Protocol, Sequence, Tuple

from ..config import ChallengeConfig
from ..errors import ChallengeClosedError
from ..rules.evaluator import Status, compute_drawdown, evaluate
from ..rules.risk import next_risk
from ..utils.logging import get_logger, log_json
from .state import DAYS_PER_WEEK, ChallengeState, DailyRecord, initial_state

logger = get_logger("riskcalc")


class HistoryWriter(Protocol):
    """Anything that can durably append a :class:`DailyRecord`."""

    def __call__(self, record: DailyRecord) -> None:
        ...


class DayInput(Protocol):
    """A day to replay; satisfied by :class:`DailyRecord` and :class:`WeekDayEntry`."""

    @property
    def trade_amounts(self) -> Sequence[float]:
        ...

    @property
    def day_of_week(self) -> str | None:
        ...

    @property
    def week_number(self) -> int:
        ...


def week_of_day(day_number: int) -> int:
    """Week number (1-based) of a 1-based trading day."""
    return max(1, math.ceil(day_number / DAYS_PER_WEEK))


def advance(
    state: ChallengeState,
    trade_amounts: Sequence[float],
    config: ChallengeConfig,
    day_of_week: str | None = None,
    week_number: int | None = None,
) -> Tuple[ChallengeState, DailyRecord]:
    """Apply one day of trades to ``state``.

    ``day_of_week`` and ``week_number`` label weekly grid entries. A labelled
    day keeps its grid week on the record and the new state, so gaps between
    grid weeks carry through; otherwise the week follows the day counter.
    """

    if not state.accepts_trades:
        raise ChallengeClosedError(
            f"Challenge is {state.status.value}; no further trades are accepted"
        )

    amounts = tuple(float(a) for a in trade_amounts)
    daily_pl = sum(amounts)
    balance = state.balance + daily_pl
    peak_balance = max(state.peak_balance, balance)
    drawdown = compute_drawdown(balance, peak_balance, config)

    outcome = evaluate(daily_pl, balance, drawdown, state.phase, config)
    risk = next_risk(daily_pl, state.current_risk, config)

    record = DailyRecord(
        day_number=state.day_number,
        phase=state.phase,
        trade_amounts=amounts,
        daily_pl=daily_pl,
        risk_used=state.current_risk,
        balance=balance,
        peak_balance=peak_balance,
        drawdown=drawdown,
        status=outcome.status,
        next_risk=risk,
        week_number=week_number if week_number is not None else state.week_number,
        day_of_week=day_of_week,
    )
    new_day = state.day_number + 1
    if day_of_week is not None and week_number is not None:
        new_week = week_number
    else:
        new_week = week_of_day(new_day)
    new_state = ChallengeState(
        balance=balance,
        peak_balance=peak_balance,
        current_risk=risk,
        day_number=new_day,
        week_number=new_week,
        phase=outcome.phase,
        status=outcome.status,
        last_daily_pl=daily_pl,
    )
    if outcome.reason:
        log_json(
            logger,
            "rule_triggered",
            level=logging.DEBUG,
            rule=outcome.reason,
            day=record.day_number,
            status=outcome.status.value,
            phase=outcome.phase,
        )
    return new_state, record


def submit(
    state: ChallengeState,
    trade_amounts: Sequence[float],
    config: ChallengeConfig,
    writer: HistoryWriter,
    day_of_week: str | None = None,
    week_number: int | None = None,
) -> Tuple[ChallengeState, DailyRecord]:
    """Advance ``state`` by one day and persist the record through ``writer``.

    Any exception from ``writer`` propagates and no new state is returned,
    so callers holding the previous state keep it unchanged.
    """

    new_state, record = advance(state, trade_amounts, config, day_of_week, week_number)
    writer(record)
    log_json(
        logger,
        "day_submitted",
        day=record.day_number,
        daily_pl=record.daily_pl,
        balance=record.balance,
        status=record.status.value,
        next_risk=record.next_risk,
    )
    return new_state, record


def confirm_phase_advance(state: ChallengeState) -> ChallengeState:
    """Start phase 2 after the phase 1 target was reached under ``confirm``."""
    if state.status is not Status.PENDING_PHASE_ADVANCE:
        raise ChallengeClosedError(
            f"No phase advance is pending (status {state.status.value})"
        )
    return replace(state, phase=2, status=Status.ONGOING)


def replay(
    days: Iterable[DayInput], config: ChallengeConfig
) -> Tuple[ChallengeState, List[DailyRecord]]:
    """Rebuild state by re-running ordered days from the initial state.

    Only the trade amounts and day labels are read, so replaying stored
    :class:`DailyRecord` objects or weekly grid entries gives the same result
    every time. A pending phase advance followed by another day counts as
    confirmed. Days after a Pass or Fail are ignored.
    """

    state = initial_state(config)
    records: List[DailyRecord] = []
    for day in days:
        if state.status is Status.PENDING_PHASE_ADVANCE:
            state = confirm_phase_advance(state)
        if state.status.is_terminal:
            log_json(logger, "replay_truncated", day=state.day_number, status=state.status.value)
            break
        state, record = advance(
            state, day.trade_amounts, config, day.day_of_week, day.week_number
        )
        records.append(record)
    return state, records


__all__ = [
    "HistoryWriter",
    "advance",
    "submit",
    "confirm_phase_advance",
    "replay",
    "DayInput",
    "week_of_day",
]
