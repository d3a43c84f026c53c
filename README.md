# agentflow

Building blocks for small directed graphs of tools. The package has no
third-party dependencies.

- `agentflow.validate` – the flow description (`Flow`, `Node`, `Edge`,
  `PortRef`) and `validate`, a static check of its shape.
- `agentflow.tool_node` – the `Tool` and `MetadataAwareTool` protocols,
  `ToolNode` (a node with one `input` and one `output` port backed by a
  tool), `ToolMap` (an in-memory name-to-tool lookup) and `build_tool_node`.
- `agentflow.tools.manifest` – loading a JSON tool manifest and building its
  entries through a `KindRegistry`; the built-in kinds live in
  `agentflow.tools.http_tool` and `agentflow.tools.exec_tool`.
- `agentflow.store` – the `Store` contract for flows, runs and run events,
  with its record types and errors; `agentflow.sqlstore.sqlite_store.SqliteStore`
  implements it on SQLite.

## Validating a flow

```python
from agentflow.validate import Edge, Flow, Node, PortRef, ValidateError, validate

flow = Flow(
    nodes=[Node(id="a", type="tool"), Node(id="b", type="tool")],
    edges=[
        Edge(source=PortRef(node="a", port="output"), target=PortRef(node="b", port="input")),
        Edge(source=PortRef(node="b", port="output"), target=PortRef(node="a", port="input")),
    ],
)

try:
    validate(flow)
except ValidateError as exc:
    print(exc.issues)  # ['cycle detected: [a b a]']
```

`validate` returns `None` for a sound flow. Otherwise it raises
`ValidateError` whose `issues` list holds every problem found in one pass:
empty or duplicate node ids, empty node types, edges naming unknown nodes,
self-loops, duplicate edges, flow inputs or outputs naming unknown nodes, and
a cycle. A flow with no nodes raises `EmptyFlowError` (a `ValidateError`).
`find_cycle(flow)` returns one cycle as a list of node ids, or `[]`.

## Tool nodes

A tool is any object with a `name` and an `execute(args)` method taking JSON
bytes and returning a string. A tool that also has
`execute_with_metadata(args)` returns `(output, metadata)` as well.

```python
from agentflow.tool_node import ToolMap, build_tool_node

class Upper:
    name = "upper"

    def execute(self, args: bytes) -> str:
        import json
        return json.loads(args)["input"].upper()

node = build_tool_node({"tool": "upper", "args": {"lang": "en"}}, ToolMap(upper=Upper()))
print(node.run({"input": "hi"}))  # {'output': 'HI'}
```

The node's static `args` object is merged with `{"input": <input port>}` when
the input port is given. `run_with_metadata` returns `(outputs, metadata)`;
metadata is `None` for tools that report none. Failures raise `ToolNodeError`
(a `ToolError`), whose `metadata` attribute keeps whatever a metadata-aware
tool reported before failing. A missing or unknown tool name in the config
also raises `ToolNodeError`.

## Loading tools from a manifest

```json
{
  "tools": [
    {"name": "translate", "kind": "http", "url": "http://localhost:8080/translate"},
    {"name": "wc", "kind": "exec", "command": ["wc", "-w"], "timeout_ms": 5000}
  ]
}
```

```python
from agentflow.tools.manifest import KindRegistry, load_and_build

with open("tools.json") as source:
    tools = load_and_build(source, KindRegistry())

for tool in tools:
    print(tool.name)
```

`load_manifest` accepts JSON text, bytes or a readable stream and returns a
`Manifest` of `Spec` entries (each keeps its whole JSON object in `raw`).
Unknown top-level fields, empty names or kinds, duplicate names, unknown kinds
and invalid kind settings raise `ManifestError`, whose `issues` lists every
bad entry. Extra kinds are added with
`KindRegistry.register_kind(name, factory)`, where the factory takes a `Spec`
and returns a tool.

Built-in kinds:

- `http` (`HttpTool`) – sends the JSON arguments to `url` with `method`
  (default `POST`), `Content-Type: application/json` plus any `headers`, and
  a `timeout_ms` (default 30000). A 2xx body shaped `{"output": "..."}` yields
  that field; any other 2xx body is returned as-is (read up to 1 MiB). Other
  statuses raise `ToolError`. Metadata: `http_status`, `bytes`, `duration_ms`,
  also attached to the error.
- `exec` (`ExecTool`) – starts `command`, writes the JSON arguments on its
  stdin and returns its stdout with trailing newlines stripped (capped at
  1 MiB). A non-zero exit raises `ToolError` with a trimmed stderr snippet.
  Metadata: `exit_code` and `duration_ms`; when `timeout_ms` (default 30000)
  expires the process is killed and the error carries `signal: "timeout"`.
  The command runs unsandboxed, so treat manifests as trusted input.

## Recording runs

```python
from agentflow.sqlstore.sqlite_store import SqliteStore
from agentflow.store import NotFoundError, RunEventKind, RunStatus

with SqliteStore(":memory:") as store:
    store.put_flow("greet", "Greeting flow", b'{"id": "greet"}', True)
    run_id = store.start_run("greet", {"in": "hi"})
    store.append_run_event(run_id, RunEventKind.FLOW_STARTED, "", b"{}")
    store.finish_run(run_id, {"out": "HI"}, "")

    run = store.get_run(run_id)
    assert run.status is RunStatus.DONE
    for event in store.list_run_events(run_id, 0):
        print(event.seq, event.kind)

    try:
        store.get_flow("missing")
    except NotFoundError:
        pass
```

- `put_flow` with `create=True` raises `AlreadyExistsError` for an existing
  id; with `create=False` it replaces the flow and keeps its creation time.
- `list_flows` and `list_runs` return newest first (by update or start time);
  a `limit` of 0 or less means 100.
- `finish_run` marks a run `done` (empty error) or `failed`; finishing an
  already finished run is a no-op, an unknown run raises `NotFoundError`.
- Runs and their events outlive the deletion of their flow.
- `append_run_events` writes a batch of `RunEventBatchItem`s in one
  transaction with consecutive sequence numbers and one shared timestamp.
- `list_run_events` returns events oldest first; a `limit` of 0 or less
  returns all of them.

Run ids come from `new_run_id()` (16 hex characters). On-disk databases use
WAL journaling with `synchronous=NORMAL`. Other store failures raise
`StoreError`.

## What this package does not do

It does not execute flows: there is no engine that walks a `Flow`, feeds
outputs from one node into the next, evaluates edge conditions or runs nodes
in parallel, and no parser that turns flow JSON into a `Flow`. There is no
command-line program and no HTTP server; the store only keeps what callers
write into it.