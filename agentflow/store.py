"""The persistence contract for flows, runs and run-event history.

Flows are stored as metadata plus the flow JSON bytes (last write wins).
A run starts in the ``running`` state and is finished as ``done`` or
``failed`` with its outputs or error message. Run events record per-node
progress in a monotonic, per-run sequence.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


@dataclass(frozen=True)
class FlowMeta:
    """The lightweight per-flow record returned by listings."""

    id: str
    name: str
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class FlowRecord(FlowMeta):
    """Flow metadata together with the stored flow JSON bytes."""

    data: bytes = b""


class RunStatus(str, Enum):
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class RunMeta:
    """The lightweight per-run record; ``finished_at`` is ``None`` while in flight."""

    id: str
    flow_id: str
    status: RunStatus
    started_at: datetime
    finished_at: Optional[datetime] = None


@dataclass(frozen=True)
class RunRecord(RunMeta):
    """A full run row including inputs, outputs and error message."""

    inputs: Optional[dict[str, str]] = None
    outputs: Optional[dict[str, str]] = None
    error: str = ""


class RunEventKind(str, Enum):
    FLOW_STARTED = "flow_started"
    NODE_STARTED = "node_started"
    NODE_FINISHED = "node_finished"
    NODE_SKIPPED = "node_skipped"
    FLOW_DONE = "flow_done"
    FLOW_ERR = "flow_err"


@dataclass(frozen=True)
class RunEvent:
    """One entry in a run's event history; ``seq`` starts at 1 per run."""

    seq: int
    kind: RunEventKind
    timestamp: datetime
    node_id: str = ""
    payload: Optional[bytes] = None


@dataclass(frozen=True)
class RunEventBatchItem:
    """One event for bulk insertion; the store assigns seq and timestamp."""

    kind: RunEventKind
    node_id: str = ""
    payload: Optional[bytes] = None


class StoreError(Exception):
    """Base class for store failures."""


class NotFoundError(StoreError, LookupError):
    """No row matches the requested id."""

    def __init__(self, message: str = "flow/store: not found") -> None:
        super().__init__(message)


class AlreadyExistsError(StoreError):
    """A create was attempted for an id that already exists."""

    def __init__(self, message: str = "flow/store: already exists") -> None:
        super().__init__(message)


class Store(ABC):
    """Persistence for flows and run history. Implementations must be thread-safe."""

    @abstractmethod
    def put_flow(self, flow_id: str, name: str, data: bytes, create: bool = False) -> FlowRecord:
        """Insert or update a flow.

        With ``create`` set an existing id raises :class:`AlreadyExistsError`;
        otherwise the row is inserted or replaced. Timestamps come from the store.
        """

    @abstractmethod
    def get_flow(self, flow_id: str) -> FlowRecord:
        """Return the flow or raise :class:`NotFoundError`."""

    @abstractmethod
    def list_flows(self, limit: int = 0) -> list[FlowMeta]:
        """Return flow metadata, most recently updated first."""

    @abstractmethod
    def delete_flow(self, flow_id: str) -> None:
        """Delete a flow or raise :class:`NotFoundError`."""

    @abstractmethod
    def start_run(self, flow_id: str, inputs: Optional[dict[str, str]]) -> str:
        """Create a run in the running state and return its generated id."""

    @abstractmethod
    def finish_run(
        self, run_id: str, outputs: Optional[dict[str, str]], error: str = ""
    ) -> None:
        """Mark a run done (empty ``error``) or failed; a no-op on finished runs."""

    @abstractmethod
    def get_run(self, run_id: str) -> RunRecord:
        """Return the run or raise :class:`NotFoundError`."""

    @abstractmethod
    def list_runs(self, flow_id: str, limit: int = 0) -> list[RunMeta]:
        """Return a flow's runs, most recently started first."""

    @abstractmethod
    def append_run_event(
        self,
        run_id: str,
        kind: RunEventKind,
        node_id: str = "",
        payload: Optional[bytes] = None,
    ) -> None:
        """Append one event; the store assigns seq and timestamp.

        Raises :class:`NotFoundError` for an unknown run.
        """

    @abstractmethod
    def list_run_events(self, run_id: str, limit: int = 0) -> list[RunEvent]:
        """Return a run's events oldest first; ``limit <= 0`` means all."""

    @abstractmethod
    def close(self) -> None:
        """Release underlying handles. Safe to call more than once."""