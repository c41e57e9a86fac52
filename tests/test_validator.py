"""
Tests for the flow validator: global, structural and per-field checks.
Run: pytest tests/test_validator.py -v
"""
import pytest
from agentflow.flow.editing import add_node, connect, create_node, delete_node, update_node_config
from agentflow.flow.graph import FlowNode, FlowEdge, NodeKind, EdgeBranch
from agentflow.flow.validator import (
    validate_flow, validate_graph, error_messages, node_errors, errors_by_node,
)
from conftest import make_document


class TestGlobalChecks:

    def test_valid_document(self, compiler, sample_document):
        assert validate_graph(compiler.compile(sample_document)) == []

    def test_no_entry_node(self):
        node = FlowNode(node_id="a", kind=NodeKind.ACTION, action_type="wait", config={"type": "wait", "ms": 1})
        errors = validate_flow([node], [])
        global_errors = [e for e in errors if e.node_id is None]
        assert len(global_errors) == 1
        assert "entry" in global_errors[0].message

    def test_empty_graph(self):
        errors = validate_flow([], [])
        assert len(errors) == 1
        assert errors[0].node_id is None

    def test_dangling_edge(self, compiler):
        graph = compiler.compile(make_document([{"type": "wait", "ms": 1}]))
        edges = graph.edges + [FlowEdge(edge_id="e_bad", source=graph.nodes[1].node_id, target="ghost")]
        errors = validate_flow(graph.nodes, edges)
        assert len(errors) == 1
        assert errors[0].node_id is None
        assert "ghost" in errors[0].message

    def test_data_edges_ignored(self, compiler):
        graph = compiler.compile(make_document([{"type": "wait", "ms": 1}]))
        edges = graph.edges + [FlowEdge(edge_id="d", source="ghost", target="ghost2", is_data_edge=True)]
        assert validate_flow(graph.nodes, edges) == []


class TestStructuralChecks:

    def test_disconnected_node(self, compiler, sample_document):
        graph = compiler.compile(sample_document)
        stray = create_node("wait")
        errors = validate_graph(add_node(graph, stray))
        assert len(errors) == 1
        assert errors[0].node_id == stray.node_id
        assert "disconnected" in errors[0].message

    def test_lone_entry_is_valid(self, compiler):
        assert validate_graph(compiler.compile(make_document([]))) == []

    def test_two_true_branches(self, compiler):
        graph = compiler.compile(make_document([
            {"type": "if", "condition": None, "then": [{"type": "wait", "ms": 1}]},
            {"type": "wait", "ms": 2},
        ]))
        cond, last = graph.nodes[1], graph.nodes[3]
        graph = connect(graph, cond.node_id, last.node_id, EdgeBranch.TRUE)
        errors = validate_graph(graph)
        assert node_errors(errors, cond.node_id) == ["Condition has more than one 'true' branch"]

    def test_two_body_edges(self, compiler, loop_document):
        graph = compiler.compile(loop_document)
        loop, wait = graph.nodes[1], graph.nodes[3]
        graph = connect(graph, loop.node_id, wait.node_id, EdgeBranch.BODY)
        assert node_errors(validate_graph(graph), loop.node_id) == ["Loop has more than one body edge"]


class TestFieldChecks:

    def test_missing_target(self, compiler):
        graph = compiler.compile(make_document([{"type": "click"}]))
        errors = validate_graph(graph)
        assert len(errors) == 1
        assert errors[0].node_id == graph.nodes[1].node_id
        assert "target" in errors[0].message

    def test_empty_selector(self, compiler):
        graph = compiler.compile(make_document([{"type": "querySelector", "selector": ""}]))
        assert error_messages(validate_graph(graph)) == ["Missing required field 'selector'"]

    def test_wait_needs_number(self, compiler):
        graph = compiler.compile(make_document([
            {"type": "wait", "ms": "soon"},
            {"type": "wait", "ms": True},
            {"type": "wait", "ms": 0},
        ]))
        grouped = errors_by_node(validate_graph(graph))
        assert set(grouped) == {graph.nodes[1].node_id, graph.nodes[2].node_id}
        assert "must be a number" in grouped[graph.nodes[1].node_id][0]

    def test_call_client_reports_each_field(self, compiler):
        graph = compiler.compile(make_document([{"type": "callClient", "client": "", "method": ""}]))
        messages = error_messages(validate_graph(graph))
        assert messages == [
            "Missing required field 'client'",
            "Missing required field 'method'",
        ]

    def test_set_needs_variable(self, compiler):
        graph = compiler.compile(make_document([{"type": "set", "value": 1}]))
        assert error_messages(validate_graph(graph)) == ["Missing required field 'variable'"]

    def test_unknown_type_has_no_field_rules(self, compiler):
        graph = compiler.compile(make_document([{"type": "teleport"}]))
        assert validate_graph(graph) == []

    def test_fixing_config_clears_error(self, compiler):
        graph = compiler.compile(make_document([{"type": "click"}]))
        node_id = graph.nodes[1].node_id
        graph = update_node_config(graph, node_id, {"target": ".ok"})
        assert validate_graph(graph) == []

    def test_deleting_node_leaves_rest_disconnected(self, compiler):
        graph = compiler.compile(make_document([
            {"type": "wait", "ms": 1},
            {"type": "wait", "ms": 2},
        ]))
        graph = delete_node(graph, graph.nodes[1].node_id)
        errors = validate_graph(graph)
        assert [e.node_id for e in errors] == [graph.nodes[1].node_id]

    def test_serialized_with_alias(self, compiler):
        graph = compiler.compile(make_document([{"type": "click"}]))
        dumped = validate_graph(graph)[0].model_dump(by_alias=True)
        assert dumped["nodeId"] == graph.nodes[1].node_id
