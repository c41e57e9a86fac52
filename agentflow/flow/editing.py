"""
Flow Editing - Collection-update primitives the canvas calls on user edits.
Every primitive returns a new FlowGraph and leaves its input untouched.
"""

import copy
import uuid
import logging
from typing import Optional, Dict, Any

from agentflow.flow.actions import IF_TYPE, LOOP_TYPES
from agentflow.flow.catalog import CAPABILITY_TYPE, DEFAULT_CONFIGS, category_for, icon_for, label_for
from agentflow.flow.compiler import extract_inputs, extract_outputs
from agentflow.flow.graph import (
    FlowGraph, FlowNode, FlowEdge, NodeKind, EdgeBranch, Position, structural_edge_id,
)
from agentflow.flow.notes import presentation_note

logger = logging.getLogger(__name__)


def kind_for(action_type: str) -> NodeKind:
    if action_type == IF_TYPE:
        return NodeKind.CONDITION
    if action_type in LOOP_TYPES:
        return NodeKind.LOOP
    if action_type == CAPABILITY_TYPE:
        return NodeKind.ENTRY
    return NodeKind.ACTION


def _refresh_advisory(node: FlowNode) -> FlowNode:
    if node.is_entry:
        node.presentation["label"] = node.config.get("name") or ""
        return node
    node.inputs = extract_inputs(node.config)
    node.outputs = extract_outputs(node.action_type, node.config)
    node.presentation["label"] = label_for(node.action_type, node.config)
    note = presentation_note(node.presentation.get("note"), node.config)
    if note is not None:
        node.presentation["note"] = note
    return node


def create_node(
    action_type: str,
    position: Optional[Position] = None,
    config: Optional[Dict[str, Any]] = None,
) -> FlowNode:
    """Build a fresh node for a palette block dropped on the canvas."""
    merged: Dict[str, Any] = {"type": action_type}
    merged.update(copy.deepcopy(DEFAULT_CONFIGS.get(action_type, {})))
    merged.update(copy.deepcopy(config or {}))
    node = FlowNode(
        node_id=f"node_{uuid.uuid4().hex[:12]}",
        kind=kind_for(action_type),
        action_type=action_type,
        config=merged,
        position=position or Position(),
        presentation={
            "category": category_for(action_type).value,
            "icon": icon_for(action_type),
        },
    )
    return _refresh_advisory(node)


def add_node(graph: FlowGraph, node: FlowNode) -> FlowGraph:
    if graph.get_node(node.node_id) is not None:
        raise ValueError(f"Node '{node.node_id}' already exists")
    return FlowGraph(nodes=list(graph.nodes) + [node], edges=list(graph.edges))


def delete_node(graph: FlowGraph, node_id: str) -> FlowGraph:
    """Remove a node and every edge touching it."""
    if graph.get_node(node_id) is None:
        raise KeyError(f"Node '{node_id}' not found")
    return FlowGraph(
        nodes=[n for n in graph.nodes if n.node_id != node_id],
        edges=[e for e in graph.edges if e.source != node_id and e.target != node_id],
    )


def connect(
    graph: FlowGraph,
    source: str,
    target: str,
    branch: EdgeBranch = EdgeBranch.NONE,
) -> FlowGraph:
    """Add a structural edge. Self-loops and duplicates leave the graph unchanged."""
    for end in (source, target):
        if graph.get_node(end) is None:
            raise KeyError(f"Node '{end}' not found")
    if source == target:
        logger.debug(f"Ignoring self-loop on '{source}'")
        return graph

    edge_id = structural_edge_id(source, target, branch)
    if any(e.edge_id == edge_id for e in graph.edges):
        logger.debug(f"Edge '{edge_id}' already exists")
        return graph

    label = {EdgeBranch.TRUE: "Yes", EdgeBranch.FALSE: "No"}.get(branch, "")
    edge = FlowEdge(edge_id=edge_id, source=source, target=target, branch=branch, label=label)
    return FlowGraph(nodes=list(graph.nodes), edges=list(graph.edges) + [edge])


def disconnect(graph: FlowGraph, edge_id: str) -> FlowGraph:
    return FlowGraph(nodes=list(graph.nodes), edges=[e for e in graph.edges if e.edge_id != edge_id])


def update_node_config(graph: FlowGraph, node_id: str, changes: Dict[str, Any]) -> FlowGraph:
    """Merge `changes` into a node's config and refresh its advisory fields."""
    nodes = []
    found = False
    for n in graph.nodes:
        if n.node_id == node_id:
            found = True
            updated = n.model_copy(deep=True)
            updated.config.update(copy.deepcopy(changes))
            n = _refresh_advisory(updated)
        nodes.append(n)
    if not found:
        raise KeyError(f"Node '{node_id}' not found")
    return FlowGraph(nodes=nodes, edges=list(graph.edges))


def move_node(graph: FlowGraph, node_id: str, position: Position) -> FlowGraph:
    if graph.get_node(node_id) is None:
        raise KeyError(f"Node '{node_id}' not found")
    return FlowGraph(
        nodes=[
            n.model_copy(update={"position": position}) if n.node_id == node_id else n
            for n in graph.nodes
        ],
        edges=list(graph.edges),
    )


def add_capability(graph: FlowGraph, name: str = "new_capability", description: str = "A new capability") -> FlowGraph:
    """Append a new capability entry node below the lowest node on the canvas."""
    y = max((n.position.y for n in graph.nodes), default=-100.0) + 200
    entry = FlowNode(
        node_id=f"capability_{uuid.uuid4().hex[:12]}",
        kind=NodeKind.ENTRY,
        action_type=CAPABILITY_TYPE,
        config={
            "name": name,
            "description": description,
            "parameters": [],
            "trigger": {"type": "manual"},
        },
        position=Position(x=100, y=y),
        presentation={
            "label": name,
            "category": category_for(CAPABILITY_TYPE).value,
            "icon": icon_for(CAPABILITY_TYPE),
            "capabilityName": name,
            "isCapabilityEntry": True,
        },
    )
    return add_node(graph, entry)
