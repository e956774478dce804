"""SQLite persistence for history and per-user state."""

from .history_store import HistoryStore
from .state_store import UserStateHandle, UserStateStore

__all__ = ["HistoryStore", "UserStateHandle", "UserStateStore"]
