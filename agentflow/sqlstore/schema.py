"""SQLite connection setup, schema creation and timestamp helpers.

Tables:

- ``flows(id PRIMARY KEY, name, json, created_at, updated_at)``
- ``runs(id PRIMARY KEY, flow_id, status, started_at, finished_at,
  inputs_json, outputs_json, error_msg)``
- ``run_events(id, run_id, seq, kind, node_id, payload_json, ts)``

``runs.flow_id`` has no foreign key to ``flows.id`` so run history
survives the deletion of its flow. Timestamps are stored as integer
microseconds since the Unix epoch.
"""

from __future__ import annotations

import sqlite3
import time
from datetime import datetime, timedelta, timezone

from agentflow.store import StoreError

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_DDL = """
CREATE TABLE IF NOT EXISTS flows (
  id          TEXT PRIMARY KEY,
  name        TEXT NOT NULL DEFAULT '',
  json        TEXT NOT NULL,
  created_at  INTEGER NOT NULL,
  updated_at  INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS runs (
  id            TEXT PRIMARY KEY,
  flow_id       TEXT NOT NULL,
  status        TEXT NOT NULL,
  started_at    INTEGER NOT NULL,
  finished_at   INTEGER,
  inputs_json   TEXT,
  outputs_json  TEXT,
  error_msg     TEXT
);

CREATE INDEX IF NOT EXISTS idx_runs_flow_id_started_at
  ON runs(flow_id, started_at DESC);

CREATE TABLE IF NOT EXISTS run_events (
  id           INTEGER PRIMARY KEY AUTOINCREMENT,
  run_id       TEXT NOT NULL,
  seq          INTEGER NOT NULL,
  kind         TEXT NOT NULL,
  node_id      TEXT,
  payload_json TEXT,
  ts           INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_run_events_run_id_seq
  ON run_events(run_id, seq);
"""


def is_memory_dsn(dsn: str) -> bool:
    """Return whether ``dsn`` names an in-memory database."""
    return dsn == ":memory:" or "mode=memory" in dsn.lower()


def open_connection(dsn: str) -> sqlite3.Connection:
    """Open the database at ``dsn`` and make sure the schema exists.

    On-disk databases are switched to WAL journaling with
    ``synchronous=NORMAL``. The connection runs in autocommit mode and
    may be shared between threads; callers serialize access.
    Raises :class:`StoreError` when the database cannot be opened.
    """
    try:
        connection = sqlite3.connect(
            dsn,
            uri=dsn.startswith("file:"),
            check_same_thread=False,
            isolation_level=None,
        )
    except sqlite3.Error as exc:
        raise StoreError(f"flow/store/sqlite: open: {exc}") from exc
    try:
        if not is_memory_dsn(dsn):
            try:
                connection.execute("PRAGMA journal_mode=WAL").fetchall()
            except sqlite3.Error as exc:
                raise StoreError(f"flow/store/sqlite: enable WAL: {exc}") from exc
            try:
                connection.execute("PRAGMA synchronous=NORMAL")
            except sqlite3.Error as exc:
                raise StoreError(
                    f"flow/store/sqlite: set synchronous=NORMAL: {exc}"
                ) from exc
        try:
            connection.executescript(_DDL)
        except sqlite3.Error as exc:
            raise StoreError(f"flow/store/sqlite: ensure schema: {exc}") from exc
    except StoreError:
        connection.close()
        raise
    return connection


def now_micros() -> int:
    """Return the current time as microseconds since the Unix epoch."""
    return time.time_ns() // 1000


def micros_to_datetime(micros: int) -> datetime:
    """Convert microseconds since the Unix epoch to an aware UTC datetime."""
    return _EPOCH + timedelta(microseconds=int(micros))