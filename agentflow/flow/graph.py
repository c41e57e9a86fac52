"""
Flow Graph Schema - Node/edge representation of a capability's action tree.
This is the format the visual editor canvas renders and mutates. The
structural contract (kind, action_type, config, edges) is kept apart from the
opaque `presentation` bag, which structural logic never reads.
"""

from typing import Optional, Dict, List, Any
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field


class NodeKind(str, Enum):
    """Structural role of a node on the canvas."""
    ENTRY = "entry"
    ACTION = "action"
    CONDITION = "condition"
    LOOP = "loop"


class EdgeBranch(str, Enum):
    """Branch tag carried by every structural edge."""
    NONE = "none"
    TRUE = "true"
    FALSE = "false"
    BODY = "body"
    LOOP_BACK = "loop-back"


class Position(BaseModel):
    x: float = 0.0
    y: float = 0.0


class FlowNode(BaseModel):
    """A single node on the canvas."""
    model_config = ConfigDict(populate_by_name=True)

    node_id: str = Field(alias="id")
    kind: NodeKind = NodeKind.ACTION
    action_type: str = Field(default="", alias="actionType")
    config: Dict[str, Any] = Field(default_factory=dict)
    position: Position = Field(default_factory=Position)
    presentation: Dict[str, Any] = Field(default_factory=dict)
    # advisory only: variable names read / written by this node
    inputs: List[str] = Field(default_factory=list)
    outputs: List[str] = Field(default_factory=list)

    @property
    def is_entry(self) -> bool:
        return self.kind == NodeKind.ENTRY


class FlowEdge(BaseModel):
    """A directed edge between two nodes."""
    model_config = ConfigDict(populate_by_name=True)

    edge_id: str = Field(alias="id")
    source: str
    target: str
    branch: EdgeBranch = EdgeBranch.NONE
    is_data_edge: bool = Field(default=False, alias="isDataEdge")
    label: str = ""

    @property
    def is_structural(self) -> bool:
        return not self.is_data_edge


def structural_edge_id(source: str, target: str, branch: EdgeBranch = EdgeBranch.NONE) -> str:
    """Deterministic id for a structural edge, derived from its endpoints and tag."""
    if branch == EdgeBranch.NONE:
        return f"edge_{source}_{target}"
    return f"edge_{source}_{branch.value}_{target}"


def data_edge_id(source: str, target: str, variable: str) -> str:
    return f"data_{source}_{target}_{variable}"


class FlowGraph(BaseModel):
    """
    The editable diagram: every capability's entry node and body nodes,
    structural edges, and advisory data edges, in one collection.
    """
    nodes: List[FlowNode] = Field(default_factory=list)
    edges: List[FlowEdge] = Field(default_factory=list)

    def get_node(self, node_id: str) -> Optional[FlowNode]:
        for n in self.nodes:
            if n.node_id == node_id:
                return n
        return None

    def node_map(self) -> Dict[str, FlowNode]:
        return {n.node_id: n for n in self.nodes}

    def structural_edges(self) -> List[FlowEdge]:
        return [e for e in self.edges if e.is_structural]

    def data_edges(self) -> List[FlowEdge]:
        return [e for e in self.edges if e.is_data_edge]

    def get_outgoing_edges(self, node_id: str, structural_only: bool = True) -> List[FlowEdge]:
        return [
            e for e in self.edges
            if e.source == node_id and (e.is_structural or not structural_only)
        ]

    def entry_nodes(self) -> List[FlowNode]:
        return [n for n in self.nodes if n.is_entry]

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
