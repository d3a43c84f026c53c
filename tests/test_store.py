from dataclasses import FrozenInstanceError, replace
from datetime import datetime, timezone

import pytest

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

NOW = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


def test_run_status_values():
    assert [s.value for s in RunStatus] == ["running", "done", "failed"]
    assert RunStatus("failed") is RunStatus.FAILED


def test_run_event_kind_values():
    assert [k.value for k in RunEventKind] == [
        "flow_started",
        "node_started",
        "node_finished",
        "node_skipped",
        "flow_done",
        "flow_err",
    ]
    assert RunEventKind("node_skipped") is RunEventKind.NODE_SKIPPED


def test_enums_compare_as_strings():
    assert RunStatus("done") == "done"
    assert RunEventKind("flow_err") == "flow_err"


def test_not_found_message_and_catchable_as_store_error():
    error = NotFoundError()
    assert str(error) == "flow/store: not found"
    assert isinstance(error, StoreError)


def test_not_found_is_lookup_error():
    error = NotFoundError()
    assert isinstance(error, LookupError)
    assert str(error) == "flow/store: not found"


def test_already_exists_message():
    error = AlreadyExistsError()
    assert str(error) == "flow/store: already exists"
    assert isinstance(error, StoreError)


def test_store_is_abstract():
    with pytest.raises(TypeError):
        Store()


def test_flow_record_carries_meta_and_data():
    record = FlowRecord(id="x", name="demo", created_at=NOW, updated_at=NOW, data=b"{}")
    assert record.data == b"{}"
    assert record.id == "x"
    meta = FlowMeta(id="x", name="demo", created_at=NOW, updated_at=NOW)
    assert (meta.id, meta.name, meta.created_at) == (record.id, record.name, record.created_at)


def test_run_record_defaults_signal_in_flight():
    record = RunRecord(id="r", flow_id="f", status=RunStatus.RUNNING, started_at=NOW)
    assert record.finished_at is None
    assert record.inputs is None
    assert record.outputs is None
    assert record.error == ""


def test_run_record_replace_round_trip():
    record = RunRecord(id="r", flow_id="f", status=RunStatus.RUNNING, started_at=NOW)
    finished = replace(record, status=RunStatus.DONE, finished_at=NOW, outputs={"out": "HI"})
    assert finished.status is RunStatus.DONE
    assert finished.outputs == {"out": "HI"}
    assert replace(finished, status=RunStatus.RUNNING, finished_at=None, outputs=None) == record


def test_records_are_immutable():
    meta = RunMeta(id="r", flow_id="f", status=RunStatus.RUNNING, started_at=NOW)
    with pytest.raises(FrozenInstanceError):
        meta.status = RunStatus.DONE
    assert meta.status is RunStatus.RUNNING


def test_event_defaults():
    event = RunEvent(seq=1, kind=RunEventKind.FLOW_STARTED, timestamp=NOW)
    assert event.node_id == ""
    assert event.payload is None
    item = RunEventBatchItem(kind=RunEventKind.NODE_STARTED)
    assert (item.node_id, item.payload) == ("", None)