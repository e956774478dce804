from dataclasses import replace

import pytest

from riskcalc.config import ChallengeConfig
from riskcalc.core.state import initial_state
from riskcalc.data.state_store import UserStateStore
from riskcalc.errors import UnknownUserError
from riskcalc.rules.evaluator import Status


def test_new_user_gets_defaults(tmp_path) -> None:
    store = UserStateStore(tmp_path / "state.db")
    handle = store.for_user("nico")
    cfg = ChallengeConfig()
    assert handle.load_config(cfg) is cfg
    assert handle.load_state(cfg) == initial_state(cfg)
    store.close()


def test_state_is_stored_per_field_and_per_user(tmp_path) -> None:
    store = UserStateStore(tmp_path / "state.db")
    cfg = ChallengeConfig()
    state = replace(
        initial_state(cfg),
        balance=6160.0,
        peak_balance=6160.0,
        current_risk=90.0,
        day_number=2,
        phase=2,
        status=Status.PENDING_PHASE_ADVANCE,
        last_daily_pl=160.0,
    )
    store.for_user("nico").save_state(state)

    raw = store.read("nico")
    assert raw["balance"] == 6160.0
    assert raw["status"] == "PendingPhaseAdvance"
    assert store.for_user("nico").load_state(cfg) == state
    assert store.for_user("adrian").load_state(cfg) == initial_state(cfg)
    store.close()


def test_config_roundtrip_keeps_policies(tmp_path) -> None:
    store = UserStateStore(tmp_path / "state.db")
    edited = ChallengeConfig(risk_cap=100, tracking="weekly", drawdown_mode="starting")
    handle = store.for_user("adrian")
    handle.save_config(edited)
    assert handle.load_config(ChallengeConfig()) == edited
    store.close()


def test_clear_state_keeps_config(tmp_path) -> None:
    store = UserStateStore(tmp_path / "state.db")
    cfg = ChallengeConfig(starting_balance=10000)
    handle = store.for_user("nico")
    handle.save_config(cfg)
    handle.save_state(replace(initial_state(cfg), balance=10500.0))
    handle.clear_state()
    assert handle.load_config(ChallengeConfig()) == cfg
    assert handle.load_state(cfg).balance == 10000
    store.close()


def test_handle_requires_a_user(tmp_path) -> None:
    store = UserStateStore(tmp_path / "state.db")
    with pytest.raises(UnknownUserError):
        store.for_user("")
    with pytest.raises(UnknownUserError):
        store.for_user(None)
    store.close()


def test_last_selected_user(tmp_path) -> None:
    store = UserStateStore(tmp_path / "state.db")
    assert store.last_user() is None
    store.set_last_user("adrian")
    assert store.last_user() == "adrian"
    store.set_last_user(None)
    assert store.last_user() is None
    store.close()


def test_save_writes_config_and_state_together(tmp_path) -> None:
    store = UserStateStore(tmp_path / "state.db")
    cfg = ChallengeConfig(trades_per_day=4)
    state = replace(initial_state(cfg), current_risk=75.0, day_number=3)
    handle = store.for_user("nico")
    handle.save(cfg, state)
    assert handle.load_config(ChallengeConfig()) == cfg
    assert handle.load_state(cfg) == state
    store.close()
