from __future__ import annotations

import logging
import os
import sqlite3
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger("acs")

_LEVELS = {
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
}


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class EventLog:
    """Supervisor event log.

    Every event is emitted on the ``acs`` logger and, when a database path is
    configured, also stored in a small SQLite ``events`` table so the CLI and
    the status API can show recent history.
    """

    def __init__(self, db_path: str | None):
        self.db_path = db_path or None

    def _resolve_db_path(self) -> str:
        """Return a file path usable by sqlite.

        A bind-mounted path that did not exist on the host shows up as a
        directory; in that case the DB file is placed inside it.
        """
        p = os.path.abspath(os.path.expanduser(self.db_path or ""))

        if os.path.isdir(p):
            p = os.path.join(p, "acs.db")

        parent = os.path.dirname(p)
        if parent and not os.path.exists(parent):
            os.makedirs(parent, exist_ok=True)

        return p

    @property
    def persistent(self) -> bool:
        return self.db_path is not None

    def connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._resolve_db_path(), check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def init(self) -> None:
        """Create the events table if it does not exist."""
        if not self.persistent:
            return
        with self.connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS events (
                  id INTEGER PRIMARY KEY AUTOINCREMENT,
                  ts TEXT NOT NULL,
                  level TEXT NOT NULL,
                  app_name TEXT,
                  message TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_events_app_name ON events(app_name);
                """
            )

    def log(self, level: str, message: str, app_name: str | None = None) -> None:
        level = level.upper()
        line = f"{app_name}: {message}" if app_name else message
        logger.log(_LEVELS.get(level, logging.INFO), line)

        if not self.persistent:
            return
        # The console line above is already out; a lost row must not stop reconciliation.
        try:
            with self.connect() as conn:
                conn.execute(
                    "INSERT INTO events (ts, level, app_name, message) VALUES (?, ?, ?, ?)",
                    (utc_now(), level, app_name, message),
                )
        except (sqlite3.Error, OSError):
            logger.exception("Event log write to %s failed", self.db_path)

    def latest(self, limit: int = 100, app_name: str | None = None) -> list[dict[str, Any]]:
        if not self.persistent or not os.path.exists(self._resolve_db_path()):
            return []
        self.init()
        with self.connect() as conn:
            if app_name:
                rows = conn.execute(
                    "SELECT * FROM events WHERE app_name=? ORDER BY id DESC LIMIT ?",
                    (app_name, limit),
                ).fetchall()
            else:
                rows = conn.execute("SELECT * FROM events ORDER BY id DESC LIMIT ?", (limit,)).fetchall()
            return [dict(r) for r in rows]
