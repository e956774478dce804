"""Lazy-loading package exports to avoid heavy import side effects."""

from importlib import import_module
from typing import Any

__all__ = [
    "ChallengeConfig",
    "AppConfig",
    "load_config",
    "ChallengeSession",
    "ChallengeState",
    "DailyRecord",
    "Status",
    "next_risk",
    "evaluate",
    "submit",
    "replay",
    "HistoryStore",
    "UserStateStore",
]

_EXPORTS = {
    "ChallengeConfig": "riskcalc.config",
    "AppConfig": "riskcalc.config",
    "load_config": "riskcalc.config",
    "ChallengeSession": "riskcalc.session",
    "ChallengeState": "riskcalc.core.state",
    "DailyRecord": "riskcalc.core.state",
    "Status": "riskcalc.rules.evaluator",
    "next_risk": "riskcalc.rules.risk",
    "evaluate": "riskcalc.rules.evaluator",
    "submit": "riskcalc.core.pipeline",
    "replay": "riskcalc.core.pipeline",
    "HistoryStore": "riskcalc.data.history_store",
    "UserStateStore": "riskcalc.data.state_store",
}


def __getattr__(name: str) -> Any:  # pragma: no cover - thin wrapper
    if name in _EXPORTS:
        return getattr(import_module(_EXPORTS[name]), name)
    raise AttributeError(name)
