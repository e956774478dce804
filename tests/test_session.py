import pytest

from riskcalc.config import AppConfig
from riskcalc.core.pipeline import replay
from riskcalc.data import HistoryStore, UserStateStore
from riskcalc.errors import (
    ChallengeClosedError,
    PersistenceError,
    RiskCalcError,
    UnknownUserError,
)
from riskcalc.rules.evaluator import Status
from riskcalc.session import ChallengeSession


@pytest.fixture
def stores(tmp_path):
    history = HistoryStore(tmp_path / "history.db")
    states = UserStateStore(tmp_path / "state.db")
    yield history, states
    history.close()
    states.close()


def _open(stores, user="nico", settings=None):
    history, states = stores
    return ChallengeSession.open(user, settings or AppConfig(), history, states)


def test_open_requires_known_user(stores) -> None:
    with pytest.raises(UnknownUserError):
        _open(stores, user="")
    with pytest.raises(UnknownUserError):
        _open(stores, user="mallory")


def test_daily_submission_updates_and_persists(stores) -> None:
    session = _open(stores)
    record = session.submit_day(["240", "-80"])
    assert record.daily_pl == pytest.approx(160)
    assert session.state.balance == pytest.approx(6160)
    assert session.state.current_risk == pytest.approx(90)
    assert [r.day_number for r in session.history()] == [1]

    reopened = _open(stores)
    assert reopened.state == session.state
    assert _open(stores, user="adrian").state.balance == 6000


def test_submit_outcomes_uses_current_risk(stores) -> None:
    session = _open(stores)
    record = session.submit_outcomes(wins=1, losses=1)
    assert record.trade_amounts == (240.0, -80.0)


def test_failed_write_leaves_state_untouched(stores, monkeypatch) -> None:
    session = _open(stores)
    before = session.state

    def broken(user, record):
        raise PersistenceError("database is locked")

    monkeypatch.setattr(session.history_store, "append", broken)
    with pytest.raises(PersistenceError):
        session.submit_day([240, -80])
    assert session.state == before
    assert _open(stores).state == before


def test_unreadable_history_is_empty(stores, monkeypatch) -> None:
    session = _open(stores)
    session.submit_day([10, 0])

    def broken(user):
        raise PersistenceError("no such table")

    monkeypatch.setattr(session.history_store, "fetch_history", broken)
    assert session.history() == []


def test_finished_challenge_rejects_trades(stores) -> None:
    session = _open(stores)
    session.submit_day([-300, 0])
    assert session.state.status is Status.FAIL
    with pytest.raises(ChallengeClosedError):
        session.submit_day([100, 0])
    assert len(session.history()) == 1


def test_confirmed_phase_advance(stores) -> None:
    session = _open(stores)
    session.update_config(phase_advance="confirm")
    session.submit_day([480, 0])
    assert session.state.status is Status.PENDING_PHASE_ADVANCE
    with pytest.raises(ChallengeClosedError):
        session.submit_day([10, 0])

    session.confirm_phase_advance()
    assert _open(stores).state.phase == 2
    session.submit_day([300, 0])
    assert session.state.status is Status.PASS


def test_weekly_resubmission_replaces_day(stores) -> None:
    session = _open(stores)
    session.update_config(tracking="weekly")
    with pytest.raises(RiskCalcError):
        session.submit_day([10, 0])

    session.submit_week_day(1, "Monday", [100, 0])
    session.submit_week_day(1, "Tuesday", [-50, 0])
    record = session.submit_week_day(1, "Monday", ["-20", ""])
    assert record.daily_pl == pytest.approx(-20)

    history = session.history()
    assert [(r.day_of_week, r.daily_pl) for r in history] == [("Monday", -20.0), ("Tuesday", -50.0)]
    assert session.state.balance == pytest.approx(5930)
    assert set(session.week_entries(1)) == {"Monday", "Tuesday"}
    assert session.max_week() == 1

    expected, _ = replay(session.history_store.fetch_entries("nico"), session.config)
    assert session.state == expected


def test_weekly_failed_write_leaves_state_untouched(stores, monkeypatch) -> None:
    session = _open(stores)
    session.update_config(tracking="weekly")
    session.submit_week_day(1, "Monday", [100, 0])
    before = session.state

    def broken(user, entry, records):
        raise PersistenceError("disk I/O error")

    monkeypatch.setattr(session.history_store, "save_week_day", broken)
    with pytest.raises(PersistenceError):
        session.submit_week_day(1, "Tuesday", [50, 0])
    assert session.state == before
    assert list(session.week_entries(1)) == ["Monday"]


def test_update_config_validates_and_reclamps_risk(stores) -> None:
    session = _open(stores)
    with pytest.raises(ValueError):
        session.update_config(risk_floor=100, risk_cap=50)
    with pytest.raises(ValueError):
        session.update_config(colour="blue")

    session.update_config(trades_per_day=4)
    assert session.state.current_risk == pytest.approx(75)
    assert _open(stores).config.trades_per_day == 4


def test_reset_clears_history(stores) -> None:
    session = _open(stores)
    session.submit_day([240, -80])
    session.submit_day([-300, 0])
    state = session.reset()
    assert state.balance == 6000
    assert state.status is Status.ONGOING
    assert session.history() == []
    session.submit_day([10, 0])
    assert session.history()[0].day_number == 1


def test_rebuild_state_from_history(stores) -> None:
    session = _open(stores)
    session.submit_day([240, -80])
    session.submit_day([-80, -80])
    expected = session.state

    session.handle.clear_state()
    assert _open(stores).state.balance == 6000
    assert _open(stores).rebuild_state() == expected


def test_stats_follow_state(stores) -> None:
    session = _open(stores)
    session.submit_day([-80, -80])
    stats = session.stats()
    assert stats.drawdown == pytest.approx(160)
    assert stats.next_risk == pytest.approx(60)
    assert stats.last_daily_pl == pytest.approx(-160)


def test_tracking_change_needs_a_reset(stores) -> None:
    session = _open(stores)
    session.submit_day([240, -80])
    session.submit_day([100, 0])
    with pytest.raises(RiskCalcError):
        session.update_config(tracking="weekly")
    assert session.config.tracking.value == "daily"
    assert len(session.history()) == 2
    assert session.state.balance == pytest.approx(6260)

    session.reset()
    session.update_config(tracking="weekly")
    session.submit_week_day(1, "Wednesday", [10, 0])
    assert session.state.balance == pytest.approx(6010)
    with pytest.raises(RiskCalcError):
        session.update_config(tracking="daily")


def test_failed_state_save_removes_written_day(stores, monkeypatch) -> None:
    session = _open(stores)
    before = session.state

    def broken(state):
        raise PersistenceError("database is locked")

    monkeypatch.setattr(session.handle, "save_state", broken)
    with pytest.raises(PersistenceError):
        session.submit_day([240, -80])
    assert session.state == before
    assert session.history() == []

    monkeypatch.undo()
    record = session.submit_day([240, -80])
    assert record.day_number == 1
    assert [r.day_number for r in session.history()] == [1]


def test_failed_state_save_restores_weekly_cell(stores, monkeypatch) -> None:
    session = _open(stores)
    session.update_config(tracking="weekly")
    session.submit_week_day(1, "Monday", [100, 0])
    before = session.state

    def broken(state):
        raise PersistenceError("database is locked")

    monkeypatch.setattr(session.handle, "save_state", broken)
    with pytest.raises(PersistenceError):
        session.submit_week_day(1, "Monday", [-20, 0])
    with pytest.raises(PersistenceError):
        session.submit_week_day(1, "Tuesday", [50, 0])
    assert session.state == before
    assert session.week_entries(1)["Monday"].trade_amounts == (100.0, 0.0)
    assert list(session.week_entries(1)) == ["Monday"]
    assert [r.daily_pl for r in session.history()] == [100.0]

    monkeypatch.undo()
    session.submit_week_day(1, "Tuesday", [50, 0])
    assert session.state.balance == pytest.approx(6150)


def test_failed_config_save_keeps_old_config(stores, monkeypatch) -> None:
    session = _open(stores)

    def broken(config, state):
        raise PersistenceError("disk I/O error")

    monkeypatch.setattr(session.handle, "save", broken)
    with pytest.raises(PersistenceError):
        session.update_config(trades_per_day=4, risk_cap=70)
    assert session.config.trades_per_day == 2
    assert session.state.current_risk == pytest.approx(80)
    reopened = _open(stores)
    assert reopened.config.trades_per_day == 2
    assert reopened.state.current_risk == pytest.approx(80)


def test_failed_reset_keeps_history_and_state(stores, monkeypatch) -> None:
    session = _open(stores)
    session.submit_day([240, -80])
    before = session.state

    def broken_clear(user):
        raise PersistenceError("database is locked")

    monkeypatch.setattr(session.history_store, "clear_user", broken_clear)
    with pytest.raises(PersistenceError):
        session.reset()
    assert session.state == before
    assert _open(stores).state == before
    assert len(session.history()) == 1

    monkeypatch.undo()

    def broken_save(state):
        raise PersistenceError("database is locked")

    monkeypatch.setattr(session.handle, "save_state", broken_save)
    with pytest.raises(PersistenceError):
        session.reset()
    assert session.state == before
    assert len(session.history()) == 1


def test_weekly_grid_with_gap_between_weeks(stores) -> None:
    session = _open(stores)
    session.update_config(tracking="weekly")
    session.submit_week_day(1, "Monday", [100, 0])
    record = session.submit_week_day(3, "Tuesday", [-50, 0])
    assert (record.week_number, record.day_number) == (3, 2)
    assert session.state.week_number == 3
    assert session.max_week() == 3
    assert session.week_entries(2) == {}
    assert set(session.week_entries(3)) == {"Tuesday"}

    expected, _ = replay(session.history_store.fetch_entries("nico"), session.config)
    assert session.state == expected
    assert _open(stores).rebuild_state() == expected
