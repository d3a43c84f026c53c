"""The SQLite-backed implementation of the flow and run store."""

from __future__ import annotations

import json
import secrets
import sqlite3
import threading
from collections.abc import Iterable
from typing import Any, Optional, Union

from agentflow.sqlstore.event_log import RunEventLog
from agentflow.sqlstore.schema import micros_to_datetime, now_micros, open_connection
from agentflow.store import (
    AlreadyExistsError,
    FlowMeta,
    FlowRecord,
    NotFoundError,
    RunEvent,
    RunEventBatchItem,
    RunEventKind,
    RunMeta,
    RunRecord,
    RunStatus,
    Store,
    StoreError,
)

_DEFAULT_LIMIT = 100
_Data = Union[bytes, bytearray, str]


def new_run_id() -> str:
    """Return a fresh run id: 16 hex characters from 8 random bytes."""
    return secrets.token_hex(8)


def _encode_map(values: Optional[dict[str, str]]) -> str:
    return json.dumps(values, ensure_ascii=False, sort_keys=True, separators=(",", ":"))


def _decode_map(text: Optional[str]) -> Optional[dict[str, str]]:
    if not text:
        return None
    try:
        decoded = json.loads(text)
    except ValueError:
        return None
    return decoded if isinstance(decoded, dict) else None


class SqliteStore(Store):
    """A :class:`Store` kept in a SQLite database.

    Use ``":memory:"`` as the DSN for a throwaway in-memory database.
    The schema is created on open; on-disk databases use WAL journaling.
    """

    def __init__(self, dsn: str) -> None:
        self._connection: Optional[sqlite3.Connection] = open_connection(dsn)
        self._events = RunEventLog(self._connection)
        self._lock = threading.RLock()

    def __enter__(self) -> SqliteStore:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    @property
    def _db(self) -> sqlite3.Connection:
        if self._connection is None:
            raise StoreError("flow/store/sqlite: store is closed")
        return self._connection

    def _execute(self, what: str, query: str, params: tuple = ()) -> sqlite3.Cursor:
        try:
            return self._db.execute(query, params)
        except sqlite3.Error as exc:
            raise StoreError(f"flow/store/sqlite: {what}: {exc}") from exc

    # Flows

    def put_flow(
        self, flow_id: str, name: str, data: _Data, create: bool = False
    ) -> FlowRecord:
        """Insert a flow (``create``) or insert-or-replace it, then return it."""
        if not flow_id:
            raise StoreError("flow/store/sqlite: empty id")
        if not data:
            raise StoreError("flow/store/sqlite: empty json")
        text = data if isinstance(data, str) else bytes(data).decode("utf-8", errors="replace")
        now = now_micros()
        with self._lock:
            if create:
                cursor = self._execute(
                    "insert flow",
                    """INSERT OR IGNORE INTO flows (id, name, json, created_at, updated_at)
                       VALUES (?, ?, ?, ?, ?)""",
                    (flow_id, name, text, now, now),
                )
                if cursor.rowcount == 0:
                    raise AlreadyExistsError()
            else:
                self._execute(
                    "upsert flow",
                    """INSERT INTO flows (id, name, json, created_at, updated_at)
                       VALUES (?, ?, ?, ?, ?)
                       ON CONFLICT(id) DO UPDATE SET
                         name = excluded.name,
                         json = excluded.json,
                         updated_at = excluded.updated_at""",
                    (flow_id, name, text, now, now),
                )
            return self.get_flow(flow_id)

    def get_flow(self, flow_id: str) -> FlowRecord:
        """Return the flow or raise :class:`NotFoundError`."""
        with self._lock:
            row = self._execute(
                "get flow",
                "SELECT id, name, json, created_at, updated_at FROM flows WHERE id = ?",
                (flow_id,),
            ).fetchone()
        if row is None:
            raise NotFoundError()
        found_id, name, text, created_at, updated_at = row
        return FlowRecord(
            id=found_id,
            name=name,
            created_at=micros_to_datetime(created_at),
            updated_at=micros_to_datetime(updated_at),
            data=text.encode("utf-8"),
        )

    def list_flows(self, limit: int = 0) -> list[FlowMeta]:
        """Return flow metadata, most recently updated first (default limit 100)."""
        if limit <= 0:
            limit = _DEFAULT_LIMIT
        with self._lock:
            rows = self._execute(
                "list flows",
                """SELECT id, name, created_at, updated_at
                     FROM flows
                 ORDER BY updated_at DESC, id
                    LIMIT ?""",
                (limit,),
            ).fetchall()
        return [
            FlowMeta(
                id=found_id,
                name=name,
                created_at=micros_to_datetime(created_at),
                updated_at=micros_to_datetime(updated_at),
            )
            for found_id, name, created_at, updated_at in rows
        ]

    def delete_flow(self, flow_id: str) -> None:
        """Delete the flow; its runs are kept. Raises :class:`NotFoundError`."""
        with self._lock:
            cursor = self._execute(
                "delete flow", "DELETE FROM flows WHERE id = ?", (flow_id,)
            )
        if cursor.rowcount == 0:
            raise NotFoundError()

    # Runs

    def start_run(self, flow_id: str, inputs: Optional[dict[str, str]] = None) -> str:
        """Create a running run for ``flow_id`` and return its new id."""
        if not flow_id:
            raise StoreError("flow/store/sqlite: empty flow_id")
        run_id = new_run_id()
        with self._lock:
            self._execute(
                "start run",
                """INSERT INTO runs (id, flow_id, status, started_at, inputs_json)
                   VALUES (?, ?, ?, ?, ?)""",
                (run_id, flow_id, RunStatus.RUNNING.value, now_micros(), _encode_map(inputs)),
            )
        return run_id

    def finish_run(
        self, run_id: str, outputs: Optional[dict[str, str]] = None, error: str = ""
    ) -> None:
        """Mark a running run done or failed; finished runs are left untouched."""
        status = RunStatus.FAILED if error else RunStatus.DONE
        with self._lock:
            cursor = self._execute(
                "finish run",
                """UPDATE runs
                      SET status = ?, finished_at = ?, outputs_json = ?, error_msg = ?
                    WHERE id = ? AND status = ?""",
                (
                    status.value,
                    now_micros(),
                    _encode_map(outputs),
                    error,
                    run_id,
                    RunStatus.RUNNING.value,
                ),
            )
            if cursor.rowcount == 0:
                row = self._execute(
                    "finish run probe", "SELECT id FROM runs WHERE id = ?", (run_id,)
                ).fetchone()
                if row is None:
                    raise NotFoundError()

    def get_run(self, run_id: str) -> RunRecord:
        """Return the run or raise :class:`NotFoundError`."""
        with self._lock:
            row = self._execute(
                "get run",
                """SELECT id, flow_id, status, started_at, finished_at,
                          inputs_json, outputs_json, error_msg
                     FROM runs WHERE id = ?""",
                (run_id,),
            ).fetchone()
        if row is None:
            raise NotFoundError()
        found_id, flow_id, status, started_at, finished_at, inputs, outputs, error = row
        return RunRecord(
            id=found_id,
            flow_id=flow_id,
            status=RunStatus(status),
            started_at=micros_to_datetime(started_at),
            finished_at=None if finished_at is None else micros_to_datetime(finished_at),
            inputs=_decode_map(inputs),
            outputs=_decode_map(outputs),
            error=error or "",
        )

    def list_runs(self, flow_id: str, limit: int = 0) -> list[RunMeta]:
        """Return a flow's runs, most recently started first (default limit 100)."""
        if limit <= 0:
            limit = _DEFAULT_LIMIT
        with self._lock:
            rows = self._execute(
                "list runs",
                """SELECT id, flow_id, status, started_at, finished_at
                     FROM runs
                    WHERE flow_id = ?
                 ORDER BY started_at DESC, id
                    LIMIT ?""",
                (flow_id, limit),
            ).fetchall()
        return [
            RunMeta(
                id=found_id,
                flow_id=found_flow,
                status=RunStatus(status),
                started_at=micros_to_datetime(started_at),
                finished_at=None if finished_at is None else micros_to_datetime(finished_at),
            )
            for found_id, found_flow, status, started_at, finished_at in rows
        ]

    # Run events

    def append_run_event(
        self,
        run_id: str,
        kind: Union[RunEventKind, str],
        node_id: str = "",
        payload: Optional[_Data] = None,
    ) -> None:
        """Append one event to a run; raises :class:`NotFoundError` for an unknown run."""
        self._db
        self._events.append_run_event(run_id, kind, node_id, payload)

    def append_run_events(
        self, run_id: str, items: Optional[Iterable[RunEventBatchItem]]
    ) -> None:
        """Append a batch of events in one transaction sharing one timestamp."""
        self._db
        self._events.append_run_events(run_id, items)

    def list_run_events(self, run_id: str, limit: int = 0) -> list[RunEvent]:
        """Return a run's events oldest first; ``limit <= 0`` returns all."""
        self._db
        return self._events.list_run_events(run_id, limit)

    def close(self) -> None:
        """Close the database connection. Safe to call more than once."""
        with self._lock:
            connection, self._connection = self._connection, None
        if connection is not None:
            connection.close()