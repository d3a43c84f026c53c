"""Persisted run-event history on top of a SQLite connection."""

from __future__ import annotations

import sqlite3
import threading
from collections.abc import Iterable
from typing import Optional, Union

from agentflow.sqlstore.schema import micros_to_datetime, now_micros
from agentflow.store import (
    NotFoundError,
    RunEvent,
    RunEventBatchItem,
    RunEventKind,
    StoreError,
)

_Payload = Optional[Union[bytes, bytearray, str]]


def _payload_column(payload: _Payload) -> Optional[str]:
    if not payload:
        return None
    if isinstance(payload, str):
        return payload
    return bytes(payload).decode("utf-8", errors="replace")


def _kind_value(kind: Union[RunEventKind, str]) -> str:
    return RunEventKind(kind).value


class RunEventLog:
    """Appends and lists the events of runs stored in the ``runs`` table.

    Sequence numbers start at 1 per run and are assigned here; the
    timestamp is the server-side time of the write.
    """

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._connection = connection
        self._lock = threading.RLock()

    def _require_run(self, run_id: str, what: str) -> None:
        try:
            row = self._connection.execute(
                "SELECT id FROM runs WHERE id = ?", (run_id,)
            ).fetchone()
        except sqlite3.Error as exc:
            raise StoreError(f"flow/store/sqlite: {what} probe: {exc}") from exc
        if row is None:
            raise NotFoundError()

    def append_run_event(
        self,
        run_id: str,
        kind: Union[RunEventKind, str],
        node_id: str = "",
        payload: _Payload = None,
    ) -> None:
        """Append one event to a run; raises :class:`NotFoundError` for an unknown run."""
        if not run_id:
            raise StoreError("flow/store/sqlite: empty run_id")
        kind_value = _kind_value(kind)
        with self._lock:
            self._require_run(run_id, "append event")
            try:
                self._connection.execute(
                    """INSERT INTO run_events (run_id, seq, kind, node_id, payload_json, ts)
                       VALUES (
                         ?,
                         COALESCE((SELECT MAX(seq) FROM run_events WHERE run_id = ?), 0) + 1,
                         ?, ?, ?, ?
                       )""",
                    (
                        run_id,
                        run_id,
                        kind_value,
                        node_id or None,
                        _payload_column(payload),
                        now_micros(),
                    ),
                )
            except sqlite3.Error as exc:
                raise StoreError(f"flow/store/sqlite: append event: {exc}") from exc

    def append_run_events(
        self, run_id: str, items: Optional[Iterable[RunEventBatchItem]]
    ) -> None:
        """Append a batch of events in one transaction sharing one timestamp.

        An empty batch is a no-op. Raises :class:`NotFoundError` for an
        unknown run.
        """
        if not run_id:
            raise StoreError("flow/store/sqlite: empty run_id")
        batch = list(items or ())
        if not batch:
            return
        with self._lock:
            self._require_run(run_id, "batch append")
            connection = self._connection
            try:
                connection.execute("BEGIN")
            except sqlite3.Error as exc:
                raise StoreError(f"flow/store/sqlite: begin tx: {exc}") from exc
            try:
                try:
                    (base_seq,) = connection.execute(
                        "SELECT COALESCE(MAX(seq), 0) FROM run_events WHERE run_id = ?",
                        (run_id,),
                    ).fetchone()
                except sqlite3.Error as exc:
                    raise StoreError(
                        f"flow/store/sqlite: batch seq probe: {exc}"
                    ) from exc
                ts = now_micros()
                for offset, item in enumerate(batch):
                    try:
                        connection.execute(
                            """INSERT INTO run_events
                                 (run_id, seq, kind, node_id, payload_json, ts)
                               VALUES (?, ?, ?, ?, ?, ?)""",
                            (
                                run_id,
                                base_seq + offset + 1,
                                _kind_value(item.kind),
                                item.node_id or None,
                                _payload_column(item.payload),
                                ts,
                            ),
                        )
                    except sqlite3.Error as exc:
                        raise StoreError(
                            f"flow/store/sqlite: batch insert[{offset}]: {exc}"
                        ) from exc
                try:
                    connection.execute("COMMIT")
                except sqlite3.Error as exc:
                    raise StoreError(f"flow/store/sqlite: batch commit: {exc}") from exc
            except BaseException:
                if connection.in_transaction:
                    connection.execute("ROLLBACK")
                raise

    def list_run_events(self, run_id: str, limit: int = 0) -> list[RunEvent]:
        """Return a run's events in sequence order; ``limit <= 0`` returns all."""
        if not run_id:
            raise StoreError("flow/store/sqlite: empty run_id")
        query = """SELECT seq, kind, node_id, payload_json, ts
                     FROM run_events
                    WHERE run_id = ?
                 ORDER BY seq ASC"""
        params: tuple = (run_id,)
        if limit > 0:
            query += " LIMIT ?"
            params = (run_id, limit)
        with self._lock:
            try:
                rows = self._connection.execute(query, params).fetchall()
            except sqlite3.Error as exc:
                raise StoreError(f"flow/store/sqlite: list events: {exc}") from exc
        return [
            RunEvent(
                seq=seq,
                kind=RunEventKind(kind),
                timestamp=micros_to_datetime(ts),
                node_id=node_id or "",
                payload=payload.encode("utf-8") if payload else None,
            )
            for seq, kind, node_id, payload, ts in rows
        ]