"""
Tests for graph -> script reconstruction: round trips, known limits, cycles.
Run: pytest tests/test_reconstructor.py -v
"""
import pytest
from agentflow.flow.actions import ScriptDocument, IfAction, LeafAction
from agentflow.flow.compiler import FlowCompiler
from agentflow.flow.editing import add_capability, add_node, connect, create_node, update_node_config
from agentflow.flow.graph import FlowGraph, FlowNode, FlowEdge, NodeKind
from agentflow.flow.reconstructor import reconstruct, reconstruct_graph
from agentflow.flow.validator import validate_graph
from conftest import make_document


def _round_trip(document):
    graph = FlowCompiler().compile(document)
    return reconstruct(graph.nodes, graph.edges, document).to_dict()


# ══════════════════════════════════════════════════════════════════════════════
# ROUND TRIPS
# ══════════════════════════════════════════════════════════════════════════════

class TestRoundTrip:

    def test_leaf_only(self):
        doc = make_document([
            {"type": "querySelector", "selector": ".a", "saveAs": "x"},
            {"type": "click", "target": "{{x}}"},
            {"type": "teleport", "where": "moon"},
        ])
        assert _round_trip(doc) == doc

    def test_sample_document(self, sample_document):
        assert _round_trip(sample_document) == sample_document

    def test_if_as_last_action(self):
        doc = make_document([
            {"type": "wait", "ms": 1},
            {
                "type": "if",
                "condition": {"type": "exists", "target": ".a"},
                "then": [{"type": "click", "target": ".a"}],
                "else": [{"type": "wait", "ms": 5}, {"type": "notify", "title": "none"}],
            },
        ])
        assert _round_trip(doc) == doc

    def test_for_each_body(self, loop_document):
        assert _round_trip(loop_document) == loop_document

    def test_while_loop(self):
        doc = make_document([
            {
                "type": "while",
                "condition": {"type": "exists", "target": ".next"},
                "maxIterations": 5,
                "do": [{"type": "click", "target": ".next"}],
            },
            {"type": "notify", "title": "done"},
        ])
        assert _round_trip(doc) == doc

    def test_if_inside_loop(self):
        doc = make_document([
            {
                "type": "forEach",
                "source": "rows",
                "itemAs": "row",
                "do": [
                    {
                        "type": "if",
                        "condition": {"type": "exists", "target": "{{row}}"},
                        "then": [{"type": "remove", "target": "{{row}}"}],
                        "else": [],
                    },
                ],
            },
        ])
        assert _round_trip(doc) == doc

    def test_metadata_preserved(self, sample_document):
        result = _round_trip(sample_document)
        for key in ("id", "name", "description", "version", "author", "tags", "configFields", "dependencies"):
            assert result[key] == sample_document[key]
        assert result["capabilities"][0]["isLongRunning"] is False

    def test_multiple_capabilities(self):
        doc = make_document([{"type": "wait", "ms": 1}])
        doc["capabilities"].append({
            "name": "second", "description": "", "parameters": [],
            "actions": [{"type": "wait", "ms": 2}],
        })
        assert _round_trip(doc) == doc

    def test_empty_capability(self):
        doc = make_document([])
        assert _round_trip(doc) == doc

    def test_note_preserved(self):
        doc = make_document([
            {"type": "click", "target": ".x", "_aiNote": {"content": "Clicks x", "configHash": "abc"}},
        ])
        assert _round_trip(doc) == doc

    def test_reconstruct_graph_accepts_model(self, sample_document):
        graph = FlowCompiler().compile(sample_document)
        original = ScriptDocument.from_dict(sample_document)
        assert reconstruct_graph(graph, original).to_dict() == sample_document


# ══════════════════════════════════════════════════════════════════════════════
# KNOWN LIMITS
# ══════════════════════════════════════════════════════════════════════════════

class TestIfTail:
    """The walk stops after an if/else; shared continuations end up in each branch."""

    def test_tail_copied_into_both_branches(self):
        doc = make_document([
            {
                "type": "if",
                "condition": None,
                "then": [{"type": "click", "target": ".a"}],
                "else": [{"type": "click", "target": ".b"}],
            },
            {"type": "notify", "title": "after"},
        ])
        caps = _round_trip(doc)["capabilities"]
        actions = caps[0]["actions"]
        assert len(actions) == 1
        notify = {"type": "notify", "title": "after"}
        assert actions[0]["then"] == [{"type": "click", "target": ".a"}, notify]
        assert actions[0]["else"] == [{"type": "click", "target": ".b"}, notify]

    def test_tail_after_empty_branch_is_dropped(self):
        doc = make_document([
            {"type": "if", "condition": None, "then": [{"type": "click", "target": ".a"}]},
            {"type": "notify", "title": "after"},
        ])
        actions = _round_trip(doc)["capabilities"][0]["actions"]
        assert len(actions) == 1
        assert actions[0]["then"] == [{"type": "click", "target": ".a"}, {"type": "notify", "title": "after"}]
        assert actions[0]["else"] == []


# ══════════════════════════════════════════════════════════════════════════════
# EDITED GRAPHS
# ══════════════════════════════════════════════════════════════════════════════

class TestEditedGraphs:

    def test_cycle_is_truncated(self):
        doc = make_document([{"type": "wait", "ms": 1}, {"type": "wait", "ms": 2}])
        graph = FlowCompiler().compile(doc)
        _, first, second = graph.nodes
        graph = connect(graph, second.node_id, first.node_id)
        result = reconstruct_graph(graph, doc).to_dict()
        assert result["capabilities"][0]["actions"] == doc["capabilities"][0]["actions"]

    def test_config_edit_is_saved(self):
        doc = make_document([{"type": "click", "target": ".old"}])
        graph = FlowCompiler().compile(doc)
        graph = update_node_config(graph, graph.nodes[1].node_id, {"target": ".new"})
        actions = reconstruct_graph(graph, doc).to_dict()["capabilities"][0]["actions"]
        assert actions == [{"type": "click", "target": ".new"}]

    def test_appended_node(self):
        doc = make_document([{"type": "wait", "ms": 1}])
        graph = FlowCompiler().compile(doc)
        node = create_node("notify", config={"title": "hi"})
        graph = connect(add_node(graph, node), graph.nodes[1].node_id, node.node_id)
        actions = reconstruct_graph(graph, doc).to_dict()["capabilities"][0]["actions"]
        assert actions == [
            {"type": "wait", "ms": 1},
            {"type": "notify", "title": "hi", "message": ""},
        ]

    def test_new_capability(self):
        doc = make_document([{"type": "wait", "ms": 1}])
        graph = add_capability(FlowCompiler().compile(doc), name="extra")
        caps = reconstruct_graph(graph, doc).capabilities
        assert [c.name for c in caps] == ["cap", "extra"]
        assert caps[1].actions == []
        assert caps[1].trigger == {"type": "manual"}

    def test_new_note_written_into_config(self):
        doc = make_document([{"type": "click", "target": ".x"}])
        graph = FlowCompiler().compile(doc)
        graph.nodes[1].presentation["note"] = {"content": "Clicks x", "configHash": "h1"}
        actions = reconstruct_graph(graph, doc).to_dict()["capabilities"][0]["actions"]
        assert actions[0]["_aiNote"] == {"content": "Clicks x", "configHash": "h1"}

    def test_entry_reached_mid_walk_stops(self):
        doc = make_document([{"type": "wait", "ms": 1}])
        doc["capabilities"].append({"name": "b", "actions": []})
        graph = FlowCompiler().compile(doc)
        wait, other_entry = graph.nodes[1], graph.nodes[2]
        graph = connect(graph, wait.node_id, other_entry.node_id)
        caps = reconstruct_graph(graph, doc).capabilities
        assert caps[0].actions == [LeafAction(type="wait", fields={"ms": 1})]

    def test_missing_target_node_ends_walk(self):
        entry = FlowNode(node_id="e", kind=NodeKind.ENTRY, action_type="capability", config={"name": "c"})
        edges = [FlowEdge(edge_id="x", source="e", target="ghost")]
        document = reconstruct([entry], edges, {})
        assert document.capabilities[0].actions == []

    def test_label_fallback_for_name(self):
        entry = FlowNode(
            node_id="e", kind=NodeKind.ENTRY, action_type="capability",
            config={}, presentation={"label": "from_label"},
        )
        document = reconstruct([entry], [], {"id": "d"})
        assert document.capabilities[0].name == "from_label"
        assert document.to_dict()["id"] == "d"


# ══════════════════════════════════════════════════════════════════════════════
# SPARSE & NULL METADATA
# ══════════════════════════════════════════════════════════════════════════════

class TestSparseMetadata:

    def test_absent_keys_stay_absent(self):
        doc = {
            "id": "d",
            "capabilities": [
                {
                    "name": "sparse",
                    "trigger": None,
                    "actions": [
                        {"type": "forEach", "source": "rows", "do": [{"type": "click", "target": "{{item}}"}]},
                        {"type": "if", "then": [{"type": "wait", "ms": 1}], "else": []},
                    ],
                },
            ],
        }
        assert _round_trip(doc) == doc

    def test_null_description_and_parameters(self):
        doc = make_document([{"type": "wait", "ms": 1}])
        doc["capabilities"][0].update(description=None, parameters=None)
        caps = _round_trip(doc)["capabilities"]
        assert caps[0]["description"] == ""
        assert caps[0]["parameters"] == []
        assert caps[0]["actions"] == [{"type": "wait", "ms": 1}]

    def test_entry_edited_to_null_description(self, sample_document):
        graph = FlowCompiler().compile(sample_document)
        graph = update_node_config(graph, graph.nodes[0].node_id, {"description": None})
        assert validate_graph(graph) == []
        cap = reconstruct_graph(graph, sample_document).capabilities[0]
        assert cap.description == ""

    def test_original_capabilities_not_reparsed(self):
        doc = make_document([{"type": "wait", "ms": 1}])
        graph = FlowCompiler().compile(doc)
        stale_original = dict(doc, capabilities=[{"name": 5, "actions": "broken"}])
        result = reconstruct_graph(graph, stale_original).to_dict()
        assert result == doc


class TestGraphQueries:

    def test_walk_follows_outgoing_edges(self, loop_document):
        graph = FlowCompiler().compile(loop_document)
        entry, loop, click, wait = graph.nodes
        assert set(graph.node_map()) == {entry.node_id, loop.node_id, click.node_id, wait.node_id}
        assert [e.target for e in graph.get_outgoing_edges(loop.node_id)] == [click.node_id]
        assert [e.target for e in graph.get_outgoing_edges(wait.node_id)] == [loop.node_id]
