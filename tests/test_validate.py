import pytest

from agentflow.validate import (
    Edge,
    EmptyFlowError,
    Flow,
    Node,
    PortRef,
    ValidateError,
    find_cycle,
    validate,
)


def edge(src, dst):
    return Edge(source=PortRef(node=src, port="output"), target=PortRef(node=dst, port="input"))


def test_rejects_empty_flow():
    with pytest.raises(EmptyFlowError) as info:
        validate(Flow())
    assert str(info.value) == "flow: validate: no nodes"


def test_detects_cycle():
    flow = Flow(
        nodes=[Node("a", "tool"), Node("b", "tool")],
        edges=[edge("a", "b"), edge("b", "a")],
    )
    with pytest.raises(ValidateError) as info:
        validate(flow)
    assert "cycle" in str(info.value)


def test_rejects_self_loop():
    flow = Flow(nodes=[Node("a", "tool")], edges=[edge("a", "a")])
    with pytest.raises(ValidateError) as info:
        validate(flow)
    assert "self-loop" in str(info.value)


def test_rejects_dangling_edge():
    flow = Flow(nodes=[Node("a", "tool")], edges=[edge("a", "missing")])
    with pytest.raises(ValidateError) as info:
        validate(flow)
    assert "not found" in str(info.value)


def test_rejects_duplicate_node_id():
    flow = Flow(nodes=[Node("a", "tool"), Node("a", "tool")])
    with pytest.raises(ValidateError) as info:
        validate(flow)
    assert "duplicate id" in str(info.value)


def test_accepts_linear_chain():
    flow = Flow(
        nodes=[Node("a", "tool"), Node("b", "tool"), Node("c", "tool")],
        edges=[edge("a", "b"), edge("b", "c")],
    )
    assert validate(flow) is None
    assert find_cycle(flow) == []


def test_single_issue_message():
    flow = Flow(nodes=[Node("a", "tool"), Node("a", "tool")])
    with pytest.raises(ValidateError) as info:
        validate(flow)
    assert info.value.issues == ['node["a"]: duplicate id']
    assert str(info.value) == 'flow: validate: node["a"]: duplicate id'


def test_collects_every_issue():
    flow = Flow(
        nodes=[Node("", "tool"), Node("b", "")],
        edges=[edge("b", "ghost")],
    )
    with pytest.raises(ValidateError) as info:
        validate(flow)
    issues = info.value.issues
    assert "node[0]: empty id" in issues
    assert 'node["b"]: empty type' in issues
    assert 'edge[0]: target node "ghost" not found' in issues
    assert str(info.value).startswith(f"flow: validate: {len(issues)} issues: [")


def test_rejects_duplicate_edge():
    flow = Flow(nodes=[Node("a", "tool"), Node("b", "tool")], edges=[edge("a", "b"), edge("a", "b")])
    with pytest.raises(ValidateError) as info:
        validate(flow)
    assert info.value.issues == ["edge[1]: duplicate edge a.output -> b.input"]


def test_rejects_unknown_flow_inputs_and_outputs():
    flow = Flow(
        nodes=[Node("a", "tool")],
        inputs=[PortRef(node="x", port="input", name="in")],
        outputs=[PortRef(node="y", port="output", name="out")],
    )
    with pytest.raises(ValidateError) as info:
        validate(flow)
    assert info.value.issues == [
        'inputs[0]: node "x" not found',
        'outputs[0]: node "y" not found',
    ]


def test_find_cycle_returns_traversal_order():
    flow = Flow(
        nodes=[Node("a", "tool"), Node("b", "tool"), Node("c", "tool")],
        edges=[edge("a", "b"), edge("b", "c"), edge("c", "a")],
    )
    cycle = find_cycle(flow)
    assert cycle[0] == cycle[-1]
    assert set(cycle) == {"a", "b", "c"}
    assert len(cycle) == 4


def test_find_cycle_handles_long_chain():
    count = 5000
    nodes = [Node(f"n{i}", "tool") for i in range(count)]
    edges = [edge(f"n{i}", f"n{i + 1}") for i in range(count - 1)]
    assert find_cycle(Flow(nodes=nodes, edges=edges)) == []
    edges.append(edge(f"n{count - 1}", "n0"))
    cycle = find_cycle(Flow(nodes=nodes, edges=edges))
    assert len(cycle) == count + 1