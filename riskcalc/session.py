"""Per-user orchestration of the challenge.

A :class:`ChallengeSession` owns the selected user's configuration and
state, talks to the history store and the user's state handle, and keeps the
two in step: every mutating call either completes its writes and then swaps
in the new state, or raises and leaves the session as it was.
"""
from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional

from .config import AppConfig, ChallengeConfig, Tracking
from .core.inputs import amounts_from_outcomes, parse_trade_amounts
from .core.pipeline import confirm_phase_advance, replay, submit
from .core.state import WEEKDAYS, ChallengeState, DailyRecord, WeekDayEntry, initial_state
from .data.history_store import HistoryStore
from .data.state_store import UserStateHandle, UserStateStore
from .errors import ChallengeClosedError, InvalidInputError, PersistenceError, RiskCalcError, UnknownUserError
from .rules.evaluator import compute_drawdown
from .rules.risk import clamp_risk
from .stats import ChallengeStats, summarize
from .utils.logging import get_logger, log_json
from .utils.monitoring import count_persistence_failure, count_submission, monitor_state

logger = get_logger("riskcalc")


class ChallengeSession:
    """Challenge operations for one selected user."""

    def __init__(
        self,
        user: str,
        settings: AppConfig,
        history_store: HistoryStore,
        handle: UserStateHandle,
    ) -> None:
        self.user = user
        self.settings = settings
        self.history_store = history_store
        self.handle = handle
        self._config = handle.load_config(settings.challenge)
        self._state = handle.load_state(self._config)

    @classmethod
    def open(
        cls,
        user: str | None,
        settings: AppConfig,
        history_store: HistoryStore,
        states: UserStateStore,
    ) -> "ChallengeSession":
        """Load the session of ``user``, who must be one of the configured profiles."""
        if not user:
            raise UnknownUserError("No user selected")
        if settings.profile(user) is None:
            raise UnknownUserError(f"Unknown user: {user}")
        session = cls(user, settings, history_store, states.for_user(user))
        log_json(logger, "session_opened", user=user, day=session.state.day_number, status=session.state.status.value)
        return session

    @property
    def config(self) -> ChallengeConfig:
        return self._config

    @property
    def state(self) -> ChallengeState:
        return self._state

    # reads -------------------------------------------------------------
    def history(self) -> List[DailyRecord]:
        """Submitted days in order; empty (with a warning) if the store is unreadable."""
        try:
            return self.history_store.fetch_history(self.user)
        except PersistenceError as exc:
            log_json(logger, "history_load_failed", level=logging.WARNING, user=self.user, error=str(exc))
            return []

    def week_entries(self, week_number: int) -> Dict[str, WeekDayEntry]:
        """Submitted grid cells of ``week_number`` keyed by weekday."""
        try:
            entries = self.history_store.fetch_week(self.user, week_number)
        except PersistenceError as exc:
            log_json(logger, "week_load_failed", level=logging.WARNING, user=self.user, week=week_number, error=str(exc))
            return {}
        return {e.day_of_week: e for e in entries}

    def max_week(self) -> int:
        try:
            stored = self.history_store.max_week(self.user)
        except PersistenceError as exc:
            log_json(logger, "week_load_failed", level=logging.WARNING, user=self.user, error=str(exc))
            stored = 0
        return max(self._state.week_number, stored, 1)

    def stats(self) -> ChallengeStats:
        return summarize(self._state, self._config)

    # submissions -------------------------------------------------------
    def _require_tracking(self, tracking: Tracking) -> None:
        if self._config.tracking is not tracking:
            raise RiskCalcError(
                f"Challenge is tracked {self._config.tracking.value}; use the {self._config.tracking.value} form"
            )

    def _publish(self, state: ChallengeState) -> None:
        self._state = state
        monitor_state(
            self.user,
            state.balance,
            compute_drawdown(state.balance, state.peak_balance, self._config),
            state.current_risk,
        )

    def _commit(self, state: ChallengeState) -> None:
        self.handle.save_state(state)
        self._publish(state)

    def _submission_failed(self, exc: PersistenceError, **fields: Any) -> None:
        count_persistence_failure(self.user)
        log_json(logger, "submission_failed", level=logging.ERROR, user=self.user, error=str(exc), **fields)

    def submit_day(self, raw_amounts: Iterable[Any]) -> DailyRecord:
        """Submit one day of trade results from the daily form."""
        self._require_tracking(Tracking.DAILY)
        amounts = parse_trade_amounts(raw_amounts, self._config.trades_per_day, self._config.input_policy)
        try:
            new_state, record = submit(
                self._state, amounts, self._config, self.history_store.writer_for(self.user)
            )
        except PersistenceError as exc:
            self._submission_failed(exc, day=self._state.day_number)
            raise
        try:
            self._commit(new_state)
        except PersistenceError as exc:
            # keep history and state on the same day
            self.history_store.remove_day(self.user, record.day_number)
            self._submission_failed(exc, day=record.day_number)
            raise
        count_submission(self.user, record.status.value)
        return record

    def submit_outcomes(self, wins: int, losses: int) -> DailyRecord:
        """Submit a day given as win/loss counts at the current risk."""
        amounts = amounts_from_outcomes(
            wins,
            losses,
            self._state.current_risk,
            self._config.reward_ratio,
            self._config.trades_per_day,
        )
        return self.submit_day(amounts)

    def submit_week_day(self, week_number: int, day_of_week: str, raw_amounts: Iterable[Any]) -> Optional[DailyRecord]:
        """Submit or correct one cell of the weekly grid.

        The cell is upserted, every stored cell is replayed in calendar order
        and the user's history is rewritten from the replay in the same
        transaction. Returns the record produced for this cell, or ``None`` if
        the challenge had already ended before it.
        """
        self._require_tracking(Tracking.WEEKLY)
        if day_of_week not in WEEKDAYS:
            raise InvalidInputError(f"Unknown weekday: {day_of_week!r}")
        if week_number < 1:
            raise InvalidInputError(f"Week numbers start at 1, got {week_number}")
        if not self._state.accepts_trades:
            raise ChallengeClosedError(
                f"Challenge is {self._state.status.value}; no further trades are accepted"
            )
        amounts = parse_trade_amounts(raw_amounts, self._config.trades_per_day, self._config.input_policy)
        entry = WeekDayEntry(week_number=week_number, day_of_week=day_of_week, trade_amounts=amounts)

        try:
            previous_records = self.history_store.fetch_history(self.user)
            cells = {e.sort_key: e for e in self.history_store.fetch_entries(self.user)}
            previous = cells.get(entry.sort_key)
            cells[entry.sort_key] = entry
            new_state, records = replay([cells[k] for k in sorted(cells)], self._config)
            self.history_store.save_week_day(self.user, entry, records)
        except PersistenceError as exc:
            self._submission_failed(exc, week=week_number, weekday=day_of_week)
            raise
        try:
            self._commit(new_state)
        except PersistenceError as exc:
            self.history_store.restore_week_day(self.user, week_number, day_of_week, previous, previous_records)
            self._submission_failed(exc, week=week_number, weekday=day_of_week)
            raise

        record = next(
            (r for r in records if r.week_number == week_number and r.day_of_week == day_of_week),
            None,
        )
        count_submission(self.user, (record.status if record else new_state.status).value)
        log_json(logger, "week_day_submitted", user=self.user, week=week_number, weekday=day_of_week, daily_pl=entry.daily_pl, balance=new_state.balance, status=new_state.status.value)
        return record

    # transitions -------------------------------------------------------
    def confirm_phase_advance(self) -> ChallengeState:
        """Move to phase 2 once the user acknowledges the phase 1 result."""
        self._commit(confirm_phase_advance(self._state))
        log_json(logger, "phase_advanced", user=self.user, day=self._state.day_number)
        return self._state

    def update_config(self, **changes: Any) -> ChallengeConfig:
        """Validate and store configuration edits.

        The current risk is re-clamped to the new bounds; everything else in
        the state is kept. Switching between daily and weekly tracking is
        refused while the user has history, since the weekly grid rebuilds
        the history from its own cells; reset the challenge first.
        """
        config = self._config.with_changes(**changes)
        if config.tracking is not self._config.tracking and self.history_store.has_history(self.user):
            raise RiskCalcError(
                f"Reset the challenge before switching to {config.tracking.value} tracking"
            )
        state = replace(self._state, current_risk=clamp_risk(self._state.current_risk, config))
        self.handle.save(config, state)
        self._config = config
        self._publish(state)
        log_json(logger, "config_updated", user=self.user, changes=changes)
        return config

    def reset(self) -> ChallengeState:
        """Discard history and start the challenge over from the current config."""
        previous = self._state
        fresh = initial_state(self._config)
        self.handle.save_state(fresh)
        try:
            self.history_store.clear_user(self.user)
        except PersistenceError:
            self.handle.save_state(previous)
            raise
        self._publish(fresh)
        log_json(logger, "challenge_reset", user=self.user)
        return self._state

    def rebuild_state(self) -> ChallengeState:
        """Recompute the state by replaying the stored history."""
        records = self.history_store.fetch_history(self.user)
        state, _ = replay(records, self._config)
        self._commit(state)
        log_json(logger, "state_rebuilt", user=self.user, days=len(records))
        return self._state


__all__ = ["ChallengeSession"]
