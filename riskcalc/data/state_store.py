from __future__ import annotations

import json
import sqlite3
import time
from pathlib import Path
from typing import Any, Dict

from ..config import ChallengeConfig
from ..core.state import STATE_FIELDS, ChallengeState, initial_state
from ..errors import PersistenceError, UnknownUserError

SESSION_NAMESPACE = "__session__"


class UserStateStore:
    """SQLite key-value store holding each user's config and state fields.

    Values are JSON encoded and keyed by ``(user_name, key)``. Callers work
    through the handle returned by :meth:`for_user`, never with raw keys.
    """

    def __init__(self, path: str | Path = "state.db") -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(self.path, check_same_thread=False)
        self._init_db()

    def _init_db(self) -> None:
        self.conn.execute(
            """
            CREATE TABLE IF NOT EXISTS user_state (
                user_name TEXT NOT NULL,
                key TEXT NOT NULL,
                value TEXT NOT NULL,
                updated_at REAL NOT NULL,
                PRIMARY KEY (user_name, key)
            )
            """
        )
        self.conn.commit()

    def for_user(self, user: str | None) -> "UserStateHandle":
        if not user or user == SESSION_NAMESPACE:
            raise UnknownUserError("A user must be selected before loading state")
        return UserStateHandle(self, user)

    def read(self, user: str) -> Dict[str, Any]:
        try:
            rows = self.conn.execute(
                "SELECT key, value FROM user_state WHERE user_name=?", (user,)
            ).fetchall()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Could not read state for {user}: {exc}") from exc
        return {key: json.loads(value) for key, value in rows}

    def write(self, user: str, values: Dict[str, Any]) -> None:
        """Write all ``values`` for ``user`` in one transaction."""
        now = time.time()
        try:
            with self.conn:
                self.conn.executemany(
                    "INSERT OR REPLACE INTO user_state(user_name, key, value, updated_at) VALUES (?,?,?,?)",
                    [(user, key, json.dumps(value), now) for key, value in values.items()],
                )
        except sqlite3.Error as exc:
            raise PersistenceError(f"Could not write state for {user}: {exc}") from exc

    def delete(self, user: str, keys: tuple[str, ...] | None = None) -> None:
        try:
            with self.conn:
                if keys is None:
                    self.conn.execute("DELETE FROM user_state WHERE user_name=?", (user,))
                else:
                    self.conn.executemany(
                        "DELETE FROM user_state WHERE user_name=? AND key=?",
                        [(user, key) for key in keys],
                    )
        except sqlite3.Error as exc:
            raise PersistenceError(f"Could not delete state for {user}: {exc}") from exc

    # last selected user ------------------------------------------------
    def last_user(self) -> str | None:
        return self.read(SESSION_NAMESPACE).get("selected_user")

    def set_last_user(self, user: str | None) -> None:
        if user is None:
            self.delete(SESSION_NAMESPACE, ("selected_user",))
        else:
            self.write(SESSION_NAMESPACE, {"selected_user": user})

    def close(self) -> None:
        self.conn.close()


class UserStateHandle:
    """Per-user view of a :class:`UserStateStore`."""

    def __init__(self, store: UserStateStore, user: str) -> None:
        self.store = store
        self.user = user

    def get(self, key: str, default: Any = None) -> Any:
        return self.store.read(self.user).get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.store.write(self.user, {key: value})

    def load_config(self, default: ChallengeConfig) -> ChallengeConfig:
        """Stored config, or ``default`` for a user who never edited theirs."""
        saved = self.get("config")
        if saved is None:
            return default
        return ChallengeConfig.model_validate(saved)

    def save_config(self, config: ChallengeConfig) -> None:
        self.set("config", config.model_dump(mode="json"))

    def load_state(self, config: ChallengeConfig) -> ChallengeState:
        """Stored state fields, falling back to a fresh challenge."""
        values = self.store.read(self.user)
        if not all(key in values for key in ("balance", "peak_balance", "current_risk")):
            return initial_state(config)
        return ChallengeState.from_fields(values)

    def save_state(self, state: ChallengeState) -> None:
        self.store.write(self.user, state.to_fields())

    def save(self, config: ChallengeConfig, state: ChallengeState) -> None:
        """Store config and state together in one transaction."""
        self.store.write(self.user, {"config": config.model_dump(mode="json"), **state.to_fields()})

    def clear_state(self) -> None:
        self.store.delete(self.user, STATE_FIELDS)
