from dataclasses import replace

import pytest

from riskcalc.config import ChallengeConfig
from riskcalc.core.pipeline import advance
from riskcalc.core.state import WeekDayEntry, initial_state
from riskcalc.rules.evaluator import Status
from riskcalc.stats import HISTORY_COLUMNS, history_frame, summarize, week_summary


def test_summary_of_fresh_challenge() -> None:
    cfg = ChallengeConfig()
    stats = summarize(initial_state(cfg), cfg)
    assert stats.balance == 6000
    assert stats.profit == 0
    assert stats.phase_target == 480
    assert stats.phase_progress_pct == 0
    assert stats.max_safe_risk == pytest.approx(150)
    assert not stats.drawdown_warning
    assert stats.status is Status.ONGOING


def test_phase_progress_restarts_in_phase_two() -> None:
    cfg = ChallengeConfig()
    state = replace(initial_state(cfg), balance=6630.0, peak_balance=6630.0, phase=2)
    stats = summarize(state, cfg)
    assert stats.profit == pytest.approx(630)
    assert stats.profit_pct == pytest.approx(10.5)
    assert stats.phase_target == 300
    assert stats.phase_progress_pct == pytest.approx(50)


def test_progress_is_clamped_and_warning_raised() -> None:
    cfg = ChallengeConfig()
    state = replace(initial_state(cfg), balance=5500.0)
    stats = summarize(state, cfg)
    assert stats.phase_progress_pct == 0
    assert stats.drawdown == pytest.approx(500)
    assert stats.drawdown_warning


def test_history_frame() -> None:
    cfg = ChallengeConfig()
    state, first = advance(initial_state(cfg), [240, -80], cfg)
    _, second = advance(state, [-300, 0], cfg)
    frame = history_frame([first, second])
    assert list(frame.columns) == HISTORY_COLUMNS
    assert frame["trades"].tolist() == ["+240.00, -80.00", "-300.00, +0.00"]
    assert frame["status"].tolist() == ["Ongoing", "Fail"]
    assert history_frame([]).empty


def test_week_summary() -> None:
    entries = [
        WeekDayEntry(1, "Monday", (100.0, -20.0)),
        WeekDayEntry(1, "Tuesday", (-50.0, 0.0)),
    ]
    assert week_summary(entries) == (2, pytest.approx(30))
    assert week_summary([]) == (0, 0)
