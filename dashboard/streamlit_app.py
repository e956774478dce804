from __future__ import annotations

import os
from pathlib import Path

import streamlit as st
from dotenv import load_dotenv

from riskcalc.config import AppConfig, DrawdownMode, InputPolicy, PhaseAdvance, Tracking, load_config
from riskcalc.core.state import WEEKDAYS
from riskcalc.data import HistoryStore, UserStateStore
from riskcalc.errors import ChallengeClosedError, InvalidInputError, PersistenceError, RiskCalcError
from riskcalc.rules.evaluator import Status
from riskcalc.session import ChallengeSession
from riskcalc.stats import history_frame, week_summary
from riskcalc.utils.monitoring import start_metrics_server


load_dotenv()

CONFIG_FIELDS = (
    ("starting_balance", "Starting balance"),
    ("phase1_target", "Phase 1 target"),
    ("phase2_target", "Phase 2 target"),
    ("daily_loss_limit", "Daily loss limit"),
    ("max_drawdown", "Max drawdown"),
    ("reward_ratio", "Reward ratio"),
    ("initial_risk", "Initial risk"),
    ("risk_cap", "Risk cap"),
    ("risk_floor", "Risk floor"),
)

POLICY_FIELDS = (
    ("drawdown_mode", "Drawdown measured from", DrawdownMode),
    ("phase_advance", "Phase 2 starts", PhaseAdvance),
    ("input_policy", "Invalid trade amounts", InputPolicy),
)


@st.cache_resource
def get_settings() -> AppConfig:
    return load_config()


@st.cache_resource
def get_stores(history_db: str, state_db: str) -> tuple[HistoryStore, UserStateStore]:
    return HistoryStore(Path(history_db)), UserStateStore(Path(state_db))


@st.cache_resource
def ensure_metrics_server(port: int) -> bool:
    start_metrics_server(port)
    return True


def select_user(settings: AppConfig, states: UserStateStore) -> str | None:
    names = [p.name for p in settings.profiles]
    last = states.last_user()
    with st.sidebar:
        st.header("Profile")
        choice = st.selectbox(
            "User",
            names,
            index=names.index(last) if last in names else None,
            format_func=lambda n: settings.profile(n).label,
            placeholder="Select profile",
        )
        if choice != last:
            states.set_last_user(choice)
    return choice


def render_config(session: ChallengeSession) -> None:
    cfg = session.config
    with st.sidebar.expander("Challenge configuration"):
        with st.form("config"):
            values = {
                name: st.number_input(label, value=float(getattr(cfg, name)), step=10.0, min_value=0.0)
                for name, label in CONFIG_FIELDS
            }
            values["trades_per_day"] = st.number_input("Trades per day", value=cfg.trades_per_day, min_value=1, step=1)
            for name, label, choices in POLICY_FIELDS:
                current = getattr(cfg, name)
                values[name] = st.selectbox(label, [c.value for c in choices], index=list(choices).index(current))
            values["tracking"] = st.radio("Tracking", [t.value for t in Tracking], index=list(Tracking).index(cfg.tracking), horizontal=True)
            if st.form_submit_button("Save"):
                try:
                    session.update_config(**values)
                    st.rerun()
                except (ValueError, RiskCalcError) as exc:
                    st.error(f"Configuration not saved: {exc}")
        if st.button("Reset challenge", type="primary"):
            try:
                session.reset()
                st.rerun()
            except PersistenceError as exc:
                st.error(f"Reset failed: {exc}")
        if st.button("Rebuild from history", help="Recompute balance, risk and status from the saved days"):
            try:
                session.rebuild_state()
                st.rerun()
            except PersistenceError as exc:
                st.error(f"Rebuild failed: {exc}")


def render_stats(session: ChallengeSession) -> None:
    s = session.stats()
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Balance", f"${s.balance:,.2f}", f"{s.profit:+,.2f} ({s.profit_pct:+.1f}%)")
    with c2:
        st.metric(f"Phase {s.phase} target", f"${s.phase_target:,.2f}")
        st.progress(s.phase_progress_pct / 100, text=f"{s.phase_progress_pct:.1f}% complete")
    c3.metric("Drawdown", f"${s.drawdown:,.2f}", f"max ${s.max_drawdown:,.2f}", delta_color="inverse" if s.drawdown_warning else "off")
    c4.metric(s.status.value, f"Next risk ${s.next_risk:,.2f}", f"today {s.last_daily_pl:+,.2f}" if s.last_daily_pl else None)

    if s.status is Status.PENDING_PHASE_ADVANCE:
        st.success("Phase 1 target reached.")
        if st.button("Proceed to phase 2"):
            session.confirm_phase_advance()
            st.rerun()
    elif s.status is Status.PASS:
        st.balloons()
        st.success("Challenge passed.")
    elif s.status is Status.FAIL:
        st.error("Challenge failed.")


def _trade_inputs(session: ChallengeSession, key: str, saved=None) -> list[str]:
    cols = st.columns(session.config.trades_per_day)
    return [
        col.text_input(f"Trade {i + 1} P/L ($)", value="" if saved is None else f"{saved[i]:.2f}", key=f"{key}-{i}", placeholder="0.00")
        for i, col in enumerate(cols)
    ]


def _handle_submit(action) -> None:
    try:
        action()
    except PersistenceError:
        st.error("Failed to save trading data. Please try again.")
        return
    except (InvalidInputError, ChallengeClosedError) as exc:
        st.warning(str(exc))
        return
    st.rerun()


def render_daily_form(session: ChallengeSession) -> None:
    st.subheader(f"Day #{session.state.day_number} - Phase {session.state.phase}")
    st.caption(f"Current risk: ${session.state.current_risk:,.2f} per trade")
    with st.form("daily", clear_on_submit=True):
        raw = _trade_inputs(session, f"day-{session.state.day_number}")
        submitted = st.form_submit_button("Submit daily results", disabled=not session.state.accepts_trades)
    if submitted:
        _handle_submit(lambda: session.submit_day(raw))


def render_weekly_grid(session: ChallengeSession) -> None:
    max_week = session.max_week()
    week = st.number_input("Week", min_value=1, max_value=max_week + 1, value=session.state.week_number, step=1)
    st.caption(f"Risk: ${session.state.current_risk:,.2f} per trade")
    entries = session.week_entries(int(week))
    for day, tab in zip(WEEKDAYS, st.tabs(list(WEEKDAYS))):
        with tab, st.form(f"week-{week}-{day}"):
            saved = entries.get(day)
            raw = _trade_inputs(session, f"w{week}-{day}", saved.trade_amounts if saved else None)
            label = "Update day" if saved else "Submit day"
            if st.form_submit_button(label, disabled=not session.state.accepts_trades):
                _handle_submit(lambda: session.submit_week_day(int(week), day, raw))
    done, weekly_pl = week_summary(entries.values())
    st.caption(f"Days completed: {done} / {len(WEEKDAYS)} · Weekly P/L: {weekly_pl:+,.2f}")


def main() -> None:
    st.set_page_config(page_title="Dynamic Risk Calculator", layout="wide")
    st.title("Dynamic Risk Calculator")

    settings = get_settings()
    history_store, states = get_stores(settings.storage.history_db, settings.storage.state_db)
    port = os.getenv("METRICS_PORT")
    if port:
        ensure_metrics_server(int(port))

    user = select_user(settings, states)
    if not user:
        st.info("Choose your profile to access your personal trading challenge data.")
        st.stop()

    try:
        session = ChallengeSession.open(user, settings, history_store, states)
    except PersistenceError as exc:
        st.error(f"Could not load challenge data: {exc}")
        st.stop()
    render_config(session)
    render_stats(session)

    if session.config.tracking is Tracking.WEEKLY:
        render_weekly_grid(session)
    else:
        render_daily_form(session)

    st.subheader("Trading history")
    history = session.history()
    if history:
        st.dataframe(history_frame(history), use_container_width=True, hide_index=True)
    else:
        st.info("No trading history yet. Submit your first day's results to get started!")


if __name__ == "__main__":
    main()
