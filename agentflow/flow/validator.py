"""
Flow Validator - Structural and per-action-type checks on an edited flow graph.
Never raises: every problem comes back as a node-addressable ValidationError.
An empty result is the precondition for saving the graph back to a script.
"""

from typing import Optional, Dict, List, Any
from pydantic import BaseModel, ConfigDict, Field

from agentflow.flow.catalog import FieldKind, required_fields_for
from agentflow.flow.graph import FlowGraph, FlowNode, FlowEdge, NodeKind, EdgeBranch


class ValidationError(BaseModel):
    """A validation problem; `node_id` is None for graph-wide errors."""
    model_config = ConfigDict(populate_by_name=True)

    node_id: Optional[str] = Field(default=None, alias="nodeId")
    message: str


def _is_missing(value: Any, kind: FieldKind) -> bool:
    if kind == FieldKind.NUMBER:
        return isinstance(value, bool) or not isinstance(value, (int, float))
    return value is None or value == "" or value == [] or value == {}


def _field_errors(node: FlowNode) -> List[ValidationError]:
    errors = []
    for required in required_fields_for(node.action_type):
        if _is_missing(node.config.get(required.key), required.kind):
            if required.kind == FieldKind.NUMBER:
                message = f"Missing required field '{required.key}' (must be a number)"
            else:
                message = f"Missing required field '{required.key}'"
            errors.append(ValidationError(node_id=node.node_id, message=message))
    return errors


def _branch_errors(node: FlowNode, outgoing: List[FlowEdge]) -> List[ValidationError]:
    errors = []
    counts: Dict[EdgeBranch, int] = {}
    for e in outgoing:
        counts[e.branch] = counts.get(e.branch, 0) + 1

    if node.kind == NodeKind.CONDITION:
        for branch in (EdgeBranch.TRUE, EdgeBranch.FALSE):
            if counts.get(branch, 0) > 1:
                errors.append(ValidationError(
                    node_id=node.node_id,
                    message=f"Condition has more than one '{branch.value}' branch",
                ))
    elif node.kind == NodeKind.LOOP and counts.get(EdgeBranch.BODY, 0) > 1:
        errors.append(ValidationError(node_id=node.node_id, message="Loop has more than one body edge"))
    return errors


def validate_flow(nodes: List[FlowNode], edges: List[FlowEdge]) -> List[ValidationError]:
    """Validate a flow graph. Returns a (possibly empty) list of errors."""
    errors: List[ValidationError] = []
    node_ids = {n.node_id for n in nodes}
    structural = [e for e in edges if e.is_structural]

    # Global: at least one capability entry
    if not any(n.is_entry for n in nodes):
        errors.append(ValidationError(
            node_id=None, message="Flow must have at least one capability entry node",
        ))

    # Global: edges must reference existing nodes
    for e in structural:
        for end in (e.source, e.target):
            if end not in node_ids:
                errors.append(ValidationError(
                    node_id=None, message=f"Edge {e.edge_id}: node '{end}' not found",
                ))

    connected = set()
    outgoing: Dict[str, List[FlowEdge]] = {}
    for e in structural:
        connected.add(e.source)
        connected.add(e.target)
        outgoing.setdefault(e.source, []).append(e)

    for node in nodes:
        if node.is_entry:
            continue
        if node.node_id not in connected:
            errors.append(ValidationError(node_id=node.node_id, message="Node is disconnected from the flow"))
        errors.extend(_branch_errors(node, outgoing.get(node.node_id, [])))
        errors.extend(_field_errors(node))

    return errors


def validate_graph(graph: FlowGraph) -> List[ValidationError]:
    return validate_flow(graph.nodes, graph.edges)


def error_messages(errors: List[ValidationError]) -> List[str]:
    return [e.message for e in errors]


def node_errors(errors: List[ValidationError], node_id: str) -> List[str]:
    """Messages scoped to one node, for inline display on the canvas."""
    return [e.message for e in errors if e.node_id == node_id]


def errors_by_node(errors: List[ValidationError]) -> Dict[str, List[str]]:
    grouped: Dict[str, List[str]] = {}
    for e in errors:
        if e.node_id:
            grouped.setdefault(e.node_id, []).append(e.message)
    return grouped
