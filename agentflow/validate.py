"""The flow graph description and its static validation."""

from __future__ import annotations

import json
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Optional

_WHITE, _GRAY, _BLACK = 0, 1, 2


def _quote(value: str) -> str:
    return json.dumps(value, ensure_ascii=False)


def _format_list(items: list[str]) -> str:
    return "[" + " ".join(items) + "]"


@dataclass(frozen=True)
class PortRef:
    """A reference to one port of one node; ``name`` labels flow inputs and outputs."""

    node: str
    port: str = ""
    name: str = ""


@dataclass
class Node:
    id: str
    type: str
    config: Any = None


@dataclass
class Edge:
    source: PortRef
    target: PortRef
    condition: str = ""


@dataclass
class Flow:
    id: str = ""
    nodes: list[Node] = field(default_factory=list)
    edges: list[Edge] = field(default_factory=list)
    inputs: list[PortRef] = field(default_factory=list)
    outputs: list[PortRef] = field(default_factory=list)


class ValidateError(ValueError):
    """Every problem found in a flow, gathered in one pass."""

    def __init__(self, issues: list[str]) -> None:
        self.issues = list(issues)
        super().__init__(self._message())

    def _message(self) -> str:
        if len(self.issues) == 1:
            return "flow: validate: " + self.issues[0]
        return f"flow: validate: {len(self.issues)} issues: {_format_list(self.issues)}"

    def __str__(self) -> str:
        return self._message()


class EmptyFlowError(ValidateError):
    """The flow declares no nodes."""

    def __init__(self) -> None:
        super().__init__(["no nodes"])


def validate(flow: Flow) -> None:
    """Check the shape of ``flow`` and raise :class:`ValidateError` on any fault.

    Checks: nodes exist, ids are non-empty and unique, types are
    non-empty, edges reference known nodes, no self-loops, no duplicate
    edges, flow inputs/outputs reference known nodes, and no cycles.
    """
    if not flow.nodes:
        raise EmptyFlowError()
    issues: list[str] = []

    ids: set[str] = set()
    for index, node in enumerate(flow.nodes):
        if not node.id:
            issues.append(f"node[{index}]: empty id")
            continue
        if not node.type:
            issues.append(f"node[{_quote(node.id)}]: empty type")
        if node.id in ids:
            issues.append(f"node[{_quote(node.id)}]: duplicate id")
            continue
        ids.add(node.id)

    seen_edges: set[str] = set()
    for index, edge in enumerate(flow.edges):
        source, target = edge.source, edge.target
        if source.node not in ids:
            issues.append(f"edge[{index}]: source node {_quote(source.node)} not found")
        if target.node not in ids:
            issues.append(f"edge[{index}]: target node {_quote(target.node)} not found")
        if source.node == target.node:
            issues.append(f"edge[{index}]: self-loop on node {_quote(source.node)}")
        key = f"{source.node}.{source.port} -> {target.node}.{target.port}"
        if key in seen_edges:
            issues.append(f"edge[{index}]: duplicate edge {key}")
        seen_edges.add(key)

    for index, ref in enumerate(flow.inputs):
        if ref.node not in ids:
            issues.append(f"inputs[{index}]: node {_quote(ref.node)} not found")
    for index, ref in enumerate(flow.outputs):
        if ref.node not in ids:
            issues.append(f"outputs[{index}]: node {_quote(ref.node)} not found")

    cycle = find_cycle(flow)
    if cycle:
        issues.append(f"cycle detected: {_format_list(cycle)}")

    if issues:
        raise ValidateError(issues)


def find_cycle(flow: Flow) -> list[str]:
    """Return one cycle as the node ids along it (first id repeated at the end).

    Returns an empty list when the edge graph is acyclic.
    """
    color: dict[str, int] = {node.id: _WHITE for node in flow.nodes}
    successors: dict[str, list[str]] = defaultdict(list)
    for edge in flow.edges:
        successors[edge.source.node].append(edge.target.node)
    parent: dict[str, Optional[str]] = {}

    for node in flow.nodes:
        if color.get(node.id, _WHITE) != _WHITE:
            continue
        color[node.id] = _GRAY
        parent[node.id] = None
        stack = [(node.id, iter(successors.get(node.id, ())))]
        while stack:
            current, pending = stack[-1]
            for succ in pending:
                state = color.get(succ, _WHITE)
                if state == _WHITE:
                    color[succ] = _GRAY
                    parent[succ] = current
                    stack.append((succ, iter(successors.get(succ, ()))))
                    break
                if state == _GRAY:
                    return _reconstruct(parent, current, succ)
            else:
                color[current] = _BLACK
                stack.pop()
    return []


def _reconstruct(parent: dict[str, Optional[str]], tail: str, head: str) -> list[str]:
    cycle = [head]
    cursor: Optional[str] = tail
    while cursor is not None and cursor != head:
        cycle.append(cursor)
        cursor = parent.get(cursor)
    cycle.append(head)
    cycle.reverse()
    return cycle