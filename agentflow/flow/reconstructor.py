"""
Flow Reconstructor - Recovers a script document from an edited flow graph.

For each capability entry node, follow its plain edge to the first body node
and walk the structure using branch tags (never edge order):
- condition node -> If; true/false targets are walked with independent
  copies of the visited set, then the current walk stops. Actions meant to
  run after an if/else are not recovered as a shared tail: each branch has
  to carry its own continuation.
- loop node -> ForEach / While; the body is walked with the loop node in the
  stop set, then the walk continues along the loop's plain edge.
- action node -> leaf with its config copied verbatim, then its plain edge.

A per-walk visited set truncates cycles from manual edits instead of failing.
Data edges are ignored. Metadata outside `capabilities` is copied unchanged.
"""

import copy
import time
import logging
from typing import Optional, Dict, List, Any, Set, FrozenSet, Union

from agentflow.flow.actions import (
    Action, LeafAction, IfAction, ForEachAction, WhileAction,
    Capability, ScriptDocument, WHILE_TYPE, document_metadata,
)
from agentflow.flow.graph import FlowGraph, FlowNode, FlowEdge, NodeKind, EdgeBranch
from agentflow.flow.notes import NOTE_KEY, note_payload

logger = logging.getLogger(__name__)


def _without(config: Dict[str, Any], keys: tuple) -> Dict[str, Any]:
    return {k: v for k, v in config.items() if k not in keys}


def _present(config: Dict[str, Any], keys: Dict[str, str]) -> Dict[str, Any]:
    return {field: config[key] for key, field in keys.items() if key in config}


class _Walker:
    """Traversal context over the structural edges of one graph."""

    def __init__(self, graph: FlowGraph):
        self.graph = graph
        self.node_map: Dict[str, FlowNode] = graph.node_map()

    def branch_target(self, node_id: str, branch: EdgeBranch) -> Optional[str]:
        for e in self.graph.get_outgoing_edges(node_id):
            if e.branch == branch:
                return e.target
        return None

    # ── Node -> Action ────────────────────────────────────────────────

    def node_config(self, node: FlowNode) -> Dict[str, Any]:
        config = copy.deepcopy(node.config)
        config["type"] = node.action_type or config.get("type", "")
        payload = note_payload(node.presentation.get("note"))
        existing = config.get(NOTE_KEY)
        if payload and not (
            isinstance(existing, dict)
            and existing.get("content") == payload["content"]
            and existing.get("configHash") == payload["configHash"]
        ):
            config[NOTE_KEY] = payload
        return config

    def leaf(self, node: FlowNode) -> LeafAction:
        config = self.node_config(node)
        return LeafAction(type=config["type"], fields=_without(config, ("type",)))

    def condition(self, node: FlowNode, then: List[Action], otherwise: List[Action]) -> IfAction:
        config = self.node_config(node)
        return IfAction(
            then=then,
            else_=otherwise,
            extra=_without(config, ("type", "condition", "then", "else")),
            **_present(config, {"condition": "condition"}),
        )

    def loop(self, node: FlowNode, body: List[Action]) -> Union[ForEachAction, WhileAction]:
        config = self.node_config(node)
        if node.action_type == WHILE_TYPE:
            return WhileAction(
                do=body,
                extra=_without(config, ("type", "condition", "maxIterations", "do")),
                **_present(config, {"condition": "condition", "maxIterations": "max_iterations"}),
            )
        return ForEachAction(
            do=body,
            extra=_without(config, ("type", "source", "itemAs", "do")),
            **_present(config, {"source": "source", "itemAs": "item_as"}),
        )

    # ── Traversal ─────────────────────────────────────────────────────

    def walk(self, start_id: Optional[str], stop: FrozenSet[str], visited: Set[str]) -> List[Action]:
        actions: List[Action] = []
        current = start_id

        while current is not None:
            if current in stop:
                break
            if current in visited:
                logger.debug(f"Traversal re-entered node '{current}', truncating branch")
                break
            visited.add(current)

            node = self.node_map.get(current)
            if node is None or node.is_entry:
                break

            if node.kind == NodeKind.CONDITION:
                then = self._walk_branch(current, EdgeBranch.TRUE, stop, visited)
                otherwise = self._walk_branch(current, EdgeBranch.FALSE, stop, visited)
                actions.append(self.condition(node, then, otherwise))
                break

            if node.kind == NodeKind.LOOP:
                body = self._walk_branch(current, EdgeBranch.BODY, stop | {current}, visited)
                actions.append(self.loop(node, body))
            else:
                actions.append(self.leaf(node))

            current = self.branch_target(current, EdgeBranch.NONE)

        return actions

    def _walk_branch(
        self, node_id: str, branch: EdgeBranch, stop: FrozenSet[str], visited: Set[str]
    ) -> List[Action]:
        target = self.branch_target(node_id, branch)
        if target is None:
            return []
        return self.walk(target, stop, set(visited))

    def capability(self, entry: FlowNode) -> Capability:
        start = self.branch_target(entry.node_id, EdgeBranch.NONE)
        actions = self.walk(start, frozenset(), {entry.node_id}) if start else []
        data = copy.deepcopy(entry.config)
        if not data.get("name") and entry.presentation.get("label"):
            data["name"] = entry.presentation["label"]
        data["actions"] = actions
        return Capability.model_validate(data)


def reconstruct(
    nodes: List[FlowNode],
    edges: List[FlowEdge],
    original: Union[ScriptDocument, Dict[str, Any]],
) -> ScriptDocument:
    """Rebuild a script document from a flow graph.

    Best effort on invalid graphs; callers must gate persistence on an
    empty validation result.
    """
    start = time.time()
    walker = _Walker(FlowGraph(nodes=nodes, edges=edges))
    capabilities = [walker.capability(n) for n in nodes if n.is_entry]

    data = document_metadata(original)
    data["capabilities"] = capabilities
    document = ScriptDocument.model_validate(data)
    logger.debug(
        f"Reconstructed {len(capabilities)} capabilities from {len(nodes)} nodes "
        f"in {round((time.time() - start) * 1000, 1)}ms"
    )
    return document


def reconstruct_graph(graph: FlowGraph, original: Union[ScriptDocument, Dict[str, Any]]) -> ScriptDocument:
    return reconstruct(graph.nodes, graph.edges, original)
