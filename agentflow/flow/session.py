"""
Flow Session - One editor session over a script document.
Load (compile -> layout -> annotate), apply edits with bounded undo/redo
history, validate on every change, and save back through the reconstructor
only when the flow validates.
"""

import json
import hashlib
import logging
from typing import Optional, Dict, List, Any, Union

from agentflow.config.settings import Settings, settings as default_settings
from agentflow.flow import editing
from agentflow.flow.actions import ScriptDocument
from agentflow.flow.compiler import FlowCompiler
from agentflow.flow.dataflow import annotate_data_edges, strip_data_edges
from agentflow.flow.graph import FlowGraph, FlowNode, EdgeBranch, Position
from agentflow.flow.layout import LayoutEngine
from agentflow.flow.reconstructor import reconstruct
from agentflow.flow.validator import ValidationError, validate_flow

logger = logging.getLogger(__name__)


class FlowSaveError(ValueError):
    """Raised when saving a flow that does not validate."""

    def __init__(self, errors: List[ValidationError]):
        self.errors = errors
        super().__init__(f"Flow has {len(errors)} validation error(s); fix them before saving")


def load_flow(
    document: Union[ScriptDocument, Dict[str, Any]],
    config: Optional[Settings] = None,
) -> FlowGraph:
    """Compile a script document into a laid-out, annotated flow graph."""
    graph = FlowCompiler().compile(document)
    graph = LayoutEngine(config).apply(graph)
    return annotate_data_edges(graph)


def save_flow(
    graph: FlowGraph,
    original: Union[ScriptDocument, Dict[str, Any]],
) -> ScriptDocument:
    """Validate, then reconstruct. Raises FlowSaveError if validation fails."""
    errors = validate_flow(graph.nodes, graph.edges)
    if errors:
        raise FlowSaveError(errors)
    return reconstruct(graph.nodes, graph.edges, original)


def state_hash(graph: FlowGraph) -> str:
    """Digest of everything a save would persist or the canvas would show."""
    payload = {
        "nodes": [
            [n.node_id, n.kind.value, n.action_type, n.config, n.position.x, n.position.y]
            for n in graph.nodes
        ],
        "edges": sorted(
            [e.edge_id, e.source, e.target, e.branch.value, e.is_data_edge] for e in graph.edges
        ),
    }
    raw = json.dumps(payload, sort_keys=True, default=str)
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


class FlowSession:
    """
    Editor session state: current graph, undo/redo history of snapshots,
    and the hash of the last saved state.
    """

    def __init__(
        self,
        document: Union[ScriptDocument, Dict[str, Any]],
        config: Optional[Settings] = None,
    ):
        self._config = config or default_settings
        self._document = document if isinstance(document, ScriptDocument) else ScriptDocument.from_dict(document)
        graph = load_flow(self._document, self._config)
        self._history: List[FlowGraph] = [graph]
        self._index = 0
        self._saved_hash = state_hash(graph)

    # ── State ─────────────────────────────────────────────────────────

    @property
    def graph(self) -> FlowGraph:
        return self._history[self._index]

    @property
    def document(self) -> ScriptDocument:
        return self._document

    @property
    def has_changes(self) -> bool:
        return state_hash(self.graph) != self._saved_hash

    def validate(self) -> List[ValidationError]:
        return validate_flow(self.graph.nodes, self.graph.edges)

    # ── History ───────────────────────────────────────────────────────

    def _commit(self, graph: FlowGraph) -> FlowGraph:
        if graph is self.graph:
            return graph
        graph = annotate_data_edges(strip_data_edges(graph))
        self._history = self._history[: self._index + 1]
        self._history.append(graph)
        limit = max(self._config.history_limit, 1)
        if len(self._history) > limit:
            self._history = self._history[-limit:]
        self._index = len(self._history) - 1
        return graph

    @property
    def can_undo(self) -> bool:
        return self._index > 0

    @property
    def can_redo(self) -> bool:
        return self._index < len(self._history) - 1

    def undo(self) -> FlowGraph:
        if self.can_undo:
            self._index -= 1
        return self.graph

    def redo(self) -> FlowGraph:
        if self.can_redo:
            self._index += 1
        return self.graph

    # ── Edits ─────────────────────────────────────────────────────────

    def add_node(self, node: FlowNode) -> FlowGraph:
        return self._commit(editing.add_node(self.graph, node))

    def add_block(self, action_type: str, position: Optional[Position] = None,
                  config: Optional[Dict[str, Any]] = None) -> FlowNode:
        node = editing.create_node(action_type, position, config)
        self.add_node(node)
        return node

    def delete_node(self, node_id: str) -> FlowGraph:
        return self._commit(editing.delete_node(self.graph, node_id))

    def connect(self, source: str, target: str, branch: EdgeBranch = EdgeBranch.NONE) -> FlowGraph:
        return self._commit(editing.connect(self.graph, source, target, branch))

    def disconnect(self, edge_id: str) -> FlowGraph:
        return self._commit(editing.disconnect(self.graph, edge_id))

    def update_node_config(self, node_id: str, changes: Dict[str, Any]) -> FlowGraph:
        return self._commit(editing.update_node_config(self.graph, node_id, changes))

    def move_node(self, node_id: str, position: Position) -> FlowGraph:
        return self._commit(editing.move_node(self.graph, node_id, position))

    def add_capability(self, name: str = "new_capability") -> FlowGraph:
        return self._commit(editing.add_capability(self.graph, name))

    def relayout(self) -> FlowGraph:
        return self._commit(LayoutEngine(self._config).apply(self.graph))

    # ── Save ──────────────────────────────────────────────────────────

    def save(self) -> ScriptDocument:
        """Reconstruct the document from the current graph.

        Raises FlowSaveError while validation errors remain.
        """
        document = save_flow(self.graph, self._document)
        self._document = document
        self._saved_hash = state_hash(self.graph)
        logger.info(
            f"Saved flow: {len(document.capabilities)} capabilities from {len(self.graph.nodes)} nodes"
        )
        return document

    def get_stats(self) -> Dict[str, Any]:
        graph = self.graph
        return {
            "node_count": len(graph.nodes),
            "edge_count": len(graph.structural_edges()),
            "data_edge_count": len(graph.data_edges()),
            "capability_count": len(graph.entry_nodes()),
            "history_size": len(self._history),
            "error_count": len(self.validate()),
            "has_changes": self.has_changes,
        }
