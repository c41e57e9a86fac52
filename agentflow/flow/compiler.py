"""
Flow Compiler - Compiles a script document's action trees into an editable flow graph.
This is the bridge from the stored declarative script to the visual canvas.

Compilation per capability:
1. Emit the capability entry node
2. Walk the action list, threading the current fringe (live continuation points)
3. Leaves become action nodes; If becomes a condition node with true/false
   branch edges; ForEach/While become a loop node with a body edge and
   loop-back edges from every body exit
4. Extract advisory variable inputs/outputs for each node

Node ids come from a counter owned by each compile call, so repeated or
interleaved compilations are independently deterministic.
"""

import re
import json
import time
import logging
from typing import Optional, Dict, List, Any, Tuple, Union

from agentflow.flow.actions import (
    Action, LeafAction, IfAction, ForEachAction, WhileAction,
    Capability, ScriptDocument, BODY_KEYS, FOR_EACH_TYPE, action_to_dict, action_type_of,
)
from agentflow.flow.catalog import CAPABILITY_TYPE, category_for, icon_for, label_for
from agentflow.flow.graph import (
    FlowGraph, FlowNode, FlowEdge, NodeKind, EdgeBranch, structural_edge_id,
)
from agentflow.flow.notes import NOTE_KEY, note_from_config, presentation_note

logger = logging.getLogger(__name__)

_VARIABLE_PATTERN = re.compile(r"\{\{(\w+)\}\}")


# ══════════════════════════════════════════════════════════════════════════════
# ADVISORY VARIABLE EXTRACTION
# ══════════════════════════════════════════════════════════════════════════════

def extract_inputs(config: Dict[str, Any]) -> List[str]:
    """Variables a node reads: every {{name}} token in its serialized config,
    plus a bare `source` reference (forEach / transform style)."""
    scanned = {k: v for k, v in config.items() if k != NOTE_KEY}
    serialized = json.dumps(scanned, default=str)
    inputs: List[str] = []
    for name in _VARIABLE_PATTERN.findall(serialized):
        if name not in inputs:
            inputs.append(name)

    source = config.get("source")
    if isinstance(source, str) and source and "{{" not in source and source not in inputs:
        inputs.append(source)
    return inputs


def extract_outputs(action_type: str, config: Dict[str, Any]) -> List[str]:
    """Variables a node writes: saveAs, itemAs (default `item` on forEach), and `variable` on set."""
    outputs: List[str] = []
    for key in ("saveAs", "itemAs"):
        value = config.get(key)
        if isinstance(value, str) and value and value not in outputs:
            outputs.append(value)
    if action_type == FOR_EACH_TYPE and "itemAs" not in config and "item" not in outputs:
        outputs.append("item")
    variable = config.get("variable")
    if action_type == "set" and isinstance(variable, str) and variable and variable not in outputs:
        outputs.append(variable)
    return outputs


# ══════════════════════════════════════════════════════════════════════════════
# COMPILER
# ══════════════════════════════════════════════════════════════════════════════

class _IdSequence:
    """Node id generator scoped to a single compile call."""

    def __init__(self, prefix: str = "node"):
        self._prefix = prefix
        self._counter = 0

    def next(self) -> str:
        self._counter += 1
        return f"{self._prefix}_{self._counter}"


class _GraphBuilder:
    """Accumulates nodes and edges for one compile call."""

    def __init__(self, ids: _IdSequence):
        self._ids = ids
        self.nodes: List[FlowNode] = []
        self.edges: List[FlowEdge] = []
        self._edge_ids: set = set()

    # ── Primitives ────────────────────────────────────────────────────

    def add_edge(self, source: str, target: str, branch: EdgeBranch = EdgeBranch.NONE) -> None:
        edge_id = structural_edge_id(source, target, branch)
        if edge_id in self._edge_ids:
            return
        self._edge_ids.add(edge_id)
        label = {EdgeBranch.TRUE: "Yes", EdgeBranch.FALSE: "No"}.get(branch, "")
        self.edges.append(FlowEdge(edge_id=edge_id, source=source, target=target, branch=branch, label=label))

    def _connect_fringe(self, fringe: List[str], target: str) -> None:
        for source in fringe:
            self.add_edge(source, target)

    def _add_node(
        self,
        kind: NodeKind,
        action_type: str,
        config: Dict[str, Any],
        capability_name: str,
        parent_id: Optional[str],
        branch_type: Optional[str],
        loop_body: bool,
    ) -> FlowNode:
        presentation: Dict[str, Any] = {
            "label": label_for(action_type, config),
            "category": category_for(action_type).value,
            "icon": icon_for(action_type),
            "capabilityName": capability_name,
        }
        if parent_id:
            presentation["parentId"] = parent_id
        if branch_type:
            presentation["branchType"] = branch_type
        if loop_body:
            presentation["loopBody"] = True
        note = note_from_config(config)
        if note is not None:
            presentation["note"] = presentation_note(note, config)

        node = FlowNode(
            node_id=self._ids.next(),
            kind=kind,
            action_type=action_type,
            config=config,
            presentation=presentation,
            inputs=extract_inputs(config),
            outputs=extract_outputs(action_type, config),
        )
        self.nodes.append(node)
        return node

    # ── Capabilities ──────────────────────────────────────────────────

    def add_capability(self, capability: Capability) -> str:
        metadata = capability.metadata()
        entry = FlowNode(
            node_id=self._ids.next(),
            kind=NodeKind.ENTRY,
            action_type=CAPABILITY_TYPE,
            config=metadata,
            presentation={
                "label": capability.name,
                "category": category_for(CAPABILITY_TYPE).value,
                "icon": icon_for(CAPABILITY_TYPE),
                "capabilityName": capability.name,
                "isCapabilityEntry": True,
            },
        )
        self.nodes.append(entry)
        self.compile_sequence(capability.actions, [entry.node_id], capability.name)
        return entry.node_id

    # ── Sequences ─────────────────────────────────────────────────────

    def compile_sequence(
        self,
        actions: List[Action],
        fringe: List[str],
        capability_name: str,
        parent_id: Optional[str] = None,
        branch_type: Optional[str] = None,
        loop_body: bool = False,
    ) -> Tuple[Optional[str], List[str]]:
        """Compile an action list hanging off `fringe`.

        Returns (first node id or None, exit fringe). An empty list returns
        (None, fringe) unchanged.
        """
        first: Optional[str] = None
        for index, action in enumerate(actions):
            node_id, fringe = self._compile_action(
                action,
                fringe,
                capability_name,
                parent_id,
                branch_type if index == 0 else None,
                loop_body,
            )
            if first is None:
                first = node_id
        return first, fringe

    def _compile_action(
        self,
        action: Action,
        fringe: List[str],
        capability_name: str,
        parent_id: Optional[str],
        branch_type: Optional[str],
        loop_body: bool,
    ) -> Tuple[str, List[str]]:
        action_type = action_type_of(action)
        config = action_to_dict(action)
        if not isinstance(action, LeafAction):
            # nested bodies live in the graph, not in the node config
            config = {k: v for k, v in config.items() if k not in BODY_KEYS}

        if isinstance(action, IfAction):
            node = self._add_node(NodeKind.CONDITION, action_type, config, capability_name,
                                  parent_id, branch_type, loop_body)
            self._connect_fringe(fringe, node.node_id)
            exits: List[str] = []
            for body, branch, tag in (
                (action.then, EdgeBranch.TRUE, "then"),
                (action.else_, EdgeBranch.FALSE, "else"),
            ):
                first, body_exits = self.compile_sequence(
                    body, [], capability_name, node.node_id, tag, loop_body,
                )
                if first is None:
                    exits.append(node.node_id)
                else:
                    self.add_edge(node.node_id, first, branch)
                    exits.extend(body_exits)
            return node.node_id, _dedupe(exits)

        if isinstance(action, (ForEachAction, WhileAction)):
            node = self._add_node(NodeKind.LOOP, action_type, config, capability_name,
                                  parent_id, branch_type, loop_body)
            self._connect_fringe(fringe, node.node_id)
            first, body_exits = self.compile_sequence(
                action.do, [], capability_name, node.node_id, None, True,
            )
            if first is not None:
                self.add_edge(node.node_id, first, EdgeBranch.BODY)
                for exit_id in body_exits:
                    self.add_edge(exit_id, node.node_id, EdgeBranch.LOOP_BACK)
            return node.node_id, [node.node_id]

        node = self._add_node(NodeKind.ACTION, action_type, config, capability_name,
                              parent_id, branch_type, loop_body)
        self._connect_fringe(fringe, node.node_id)
        return node.node_id, [node.node_id]


def _dedupe(ids: List[str]) -> List[str]:
    seen: List[str] = []
    for i in ids:
        if i not in seen:
            seen.append(i)
    return seen


class FlowCompiler:
    """
    Compiles script documents (or single capabilities) into FlowGraphs.
    Pure and total over any well-typed action tree: unknown leaf types are
    rendered as generic action nodes, never rejected.
    """

    def __init__(self, id_prefix: str = "node"):
        self._id_prefix = id_prefix

    def compile(self, document: Union[ScriptDocument, Dict[str, Any]]) -> FlowGraph:
        start = time.time()
        if not isinstance(document, ScriptDocument):
            document = ScriptDocument.from_dict(document)

        builder = _GraphBuilder(_IdSequence(self._id_prefix))
        for capability in document.capabilities:
            builder.add_capability(capability)

        graph = FlowGraph(nodes=builder.nodes, edges=builder.edges)
        logger.debug(
            f"Compiled {len(document.capabilities)} capabilities into "
            f"{len(graph.nodes)} nodes / {len(graph.edges)} edges "
            f"in {round((time.time() - start) * 1000, 1)}ms"
        )
        return graph

    def compile_capability(self, capability: Union[Capability, Dict[str, Any]]) -> FlowGraph:
        if not isinstance(capability, Capability):
            capability = Capability.model_validate(capability)
        builder = _GraphBuilder(_IdSequence(self._id_prefix))
        builder.add_capability(capability)
        return FlowGraph(nodes=builder.nodes, edges=builder.edges)


def compile_document(document: Union[ScriptDocument, Dict[str, Any]]) -> FlowGraph:
    """Compile with a fresh compiler; equivalent to FlowCompiler().compile()."""
    return FlowCompiler().compile(document)
