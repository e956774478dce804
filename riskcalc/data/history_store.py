import json
import sqlite3
import time
from functools import partial
from pathlib import Path
from typing import Iterable, List

from ..core.pipeline import HistoryWriter
from ..core.state import DailyRecord, WeekDayEntry
from ..errors import PersistenceError
from ..rules.evaluator import Status

_HISTORY_COLUMNS = (
    "day_number, week_number, day_of_week, phase, trade_amounts, risk_used, "
    "daily_pl, balance, peak_balance, drawdown, status, next_risk"
)


class HistoryStore:
    """Tiny SQLite-backed store for submitted days.

    ``trading_history`` is an append-only log with one row per user and day.
    ``daily_trades`` holds the weekly grid, one row per user, week and
    weekday, replaced on resubmission.
    """

    def __init__(self, path: str | Path = "history.db") -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(self.path, check_same_thread=False)
        self.conn.execute("PRAGMA journal_mode=WAL")
        self._init_db()

    def _init_db(self) -> None:
        self.conn.execute(
            """
            CREATE TABLE IF NOT EXISTS trading_history (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                created_at REAL NOT NULL,
                user_name TEXT NOT NULL,
                day_number INTEGER NOT NULL,
                week_number INTEGER NOT NULL,
                day_of_week TEXT,
                phase INTEGER NOT NULL,
                wins INTEGER NOT NULL,
                losses INTEGER NOT NULL,
                trade_amounts TEXT NOT NULL,
                risk_used REAL NOT NULL,
                daily_pl REAL NOT NULL,
                balance REAL NOT NULL,
                peak_balance REAL NOT NULL,
                drawdown REAL NOT NULL,
                status TEXT NOT NULL,
                next_risk REAL NOT NULL,
                UNIQUE(user_name, day_number)
            )
            """
        )
        self.conn.execute(
            """
            CREATE TABLE IF NOT EXISTS daily_trades (
                user_name TEXT NOT NULL,
                week_number INTEGER NOT NULL,
                day_of_week TEXT NOT NULL,
                trade_amounts TEXT NOT NULL,
                daily_pl REAL NOT NULL,
                updated_at REAL NOT NULL,
                PRIMARY KEY (user_name, week_number, day_of_week)
            )
            """
        )
        self.conn.commit()

    # trading history ---------------------------------------------------
    def _insert_record(self, user: str, record: DailyRecord) -> None:
        self.conn.execute(
            "INSERT INTO trading_history(created_at, user_name, day_number, week_number, "
            "day_of_week, phase, wins, losses, trade_amounts, risk_used, daily_pl, balance, "
            "peak_balance, drawdown, status, next_risk) VALUES (?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?)",
            (
                time.time(),
                user,
                record.day_number,
                record.week_number,
                record.day_of_week,
                record.phase,
                record.wins,
                record.losses,
                json.dumps(list(record.trade_amounts)),
                record.risk_used,
                record.daily_pl,
                record.balance,
                record.peak_balance,
                record.drawdown,
                record.status.value,
                record.next_risk,
            ),
        )

    def append(self, user: str, record: DailyRecord) -> None:
        """Append ``record`` to ``user``'s history; a duplicate day is an error."""
        try:
            with self.conn:
                self._insert_record(user, record)
        except sqlite3.Error as exc:
            raise PersistenceError(f"Could not save day {record.day_number} for {user}: {exc}") from exc

    def writer_for(self, user: str) -> HistoryWriter:
        """Bind :meth:`append` to ``user`` for :func:`riskcalc.core.pipeline.submit`."""
        return partial(self.append, user)

    def remove_day(self, user: str, day_number: int) -> None:
        """Drop one appended day, used to undo an :meth:`append`."""
        try:
            with self.conn:
                self.conn.execute(
                    "DELETE FROM trading_history WHERE user_name=? AND day_number=?",
                    (user, day_number),
                )
        except sqlite3.Error as exc:
            raise PersistenceError(f"Could not remove day {day_number} for {user}: {exc}") from exc

    def has_history(self, user: str) -> bool:
        """Whether ``user`` has any submitted day or weekly grid cell."""
        try:
            row = self.conn.execute(
                "SELECT EXISTS(SELECT 1 FROM trading_history WHERE user_name=?) "
                "OR EXISTS(SELECT 1 FROM daily_trades WHERE user_name=?)",
                (user, user),
            ).fetchone()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Could not load history for {user}: {exc}") from exc
        return bool(row[0])

    def fetch_history(self, user: str) -> List[DailyRecord]:
        try:
            cur = self.conn.execute(
                f"SELECT {_HISTORY_COLUMNS} FROM trading_history "
                "WHERE user_name=? ORDER BY day_number ASC",
                (user,),
            )
            rows = cur.fetchall()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Could not load history for {user}: {exc}") from exc
        return [
            DailyRecord(
                day_number=day_number,
                week_number=week_number,
                day_of_week=day_of_week,
                phase=phase,
                trade_amounts=tuple(json.loads(amounts)),
                risk_used=risk_used,
                daily_pl=daily_pl,
                balance=balance,
                peak_balance=peak_balance,
                drawdown=drawdown,
                status=Status(status),
                next_risk=next_risk,
            )
            for (
                day_number,
                week_number,
                day_of_week,
                phase,
                amounts,
                risk_used,
                daily_pl,
                balance,
                peak_balance,
                drawdown,
                status,
                next_risk,
            ) in rows
        ]

    # weekly grid -------------------------------------------------------
    def _upsert_entry(self, user: str, entry: WeekDayEntry) -> None:
        self.conn.execute(
            "INSERT OR REPLACE INTO daily_trades(user_name, week_number, day_of_week, "
            "trade_amounts, daily_pl, updated_at) VALUES (?,?,?,?,?,?)",
            (
                user,
                entry.week_number,
                entry.day_of_week,
                json.dumps(list(entry.trade_amounts)),
                entry.daily_pl,
                time.time(),
            ),
        )

    def upsert_day(self, user: str, entry: WeekDayEntry) -> None:
        try:
            with self.conn:
                self._upsert_entry(user, entry)
        except sqlite3.Error as exc:
            raise PersistenceError(
                f"Could not save {entry.day_of_week} of week {entry.week_number} for {user}: {exc}"
            ) from exc

    def _replace_history(self, user: str, records: Iterable[DailyRecord]) -> None:
        self.conn.execute("DELETE FROM trading_history WHERE user_name=?", (user,))
        for record in records:
            self._insert_record(user, record)

    def save_week_day(self, user: str, entry: WeekDayEntry, records: Iterable[DailyRecord]) -> None:
        """Upsert ``entry`` and replace ``user``'s history with ``records`` atomically."""
        try:
            with self.conn:
                self._upsert_entry(user, entry)
                self._replace_history(user, records)
        except sqlite3.Error as exc:
            raise PersistenceError(
                f"Could not save {entry.day_of_week} of week {entry.week_number} for {user}: {exc}"
            ) from exc

    def restore_week_day(
        self,
        user: str,
        week_number: int,
        day_of_week: str,
        previous: WeekDayEntry | None,
        records: Iterable[DailyRecord],
    ) -> None:
        """Put a grid cell and the history back as they were before :meth:`save_week_day`.

        ``previous`` is the cell's earlier content, ``None`` if it was empty.
        """
        try:
            with self.conn:
                if previous is None:
                    self.conn.execute(
                        "DELETE FROM daily_trades WHERE user_name=? AND week_number=? AND day_of_week=?",
                        (user, week_number, day_of_week),
                    )
                else:
                    self._upsert_entry(user, previous)
                self._replace_history(user, records)
        except sqlite3.Error as exc:
            raise PersistenceError(
                f"Could not restore {day_of_week} of week {week_number} for {user}: {exc}"
            ) from exc

    def _fetch_entries(self, sql: str, params: tuple) -> List[WeekDayEntry]:
        try:
            rows = self.conn.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Could not load weekly trades: {exc}") from exc
        entries = [
            WeekDayEntry(week_number=week, day_of_week=day, trade_amounts=tuple(json.loads(amounts)))
            for week, day, amounts in rows
        ]
        return sorted(entries, key=lambda e: e.sort_key)

    def fetch_week(self, user: str, week_number: int) -> List[WeekDayEntry]:
        return self._fetch_entries(
            "SELECT week_number, day_of_week, trade_amounts FROM daily_trades "
            "WHERE user_name=? AND week_number=?",
            (user, week_number),
        )

    def fetch_entries(self, user: str) -> List[WeekDayEntry]:
        """All weekly grid entries of ``user`` in calendar order."""
        return self._fetch_entries(
            "SELECT week_number, day_of_week, trade_amounts FROM daily_trades WHERE user_name=?",
            (user,),
        )

    def max_week(self, user: str) -> int:
        try:
            row = self.conn.execute(
                "SELECT MAX(week_number) FROM daily_trades WHERE user_name=?", (user,)
            ).fetchone()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Could not load weekly trades: {exc}") from exc
        return int(row[0] or 0)

    # maintenance -------------------------------------------------------
    def clear_user(self, user: str) -> None:
        """Delete every history and weekly row of ``user``."""
        try:
            with self.conn:
                self.conn.execute("DELETE FROM trading_history WHERE user_name=?", (user,))
                self.conn.execute("DELETE FROM daily_trades WHERE user_name=?", (user,))
        except sqlite3.Error as exc:
            raise PersistenceError(f"Could not clear data for {user}: {exc}") from exc

    def close(self) -> None:
        self.conn.close()
