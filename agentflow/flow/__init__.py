"""Flow Core - Convert action trees to editable flow graphs and back"""
from .actions import (
    Action, LeafAction, IfAction, ForEachAction, WhileAction,
    Capability, ScriptDocument, parse_action, action_to_dict,
)
from .graph import FlowGraph, FlowNode, FlowEdge, NodeKind, EdgeBranch, Position
from .compiler import FlowCompiler, compile_document
from .layout import LayoutEngine, apply_layout
from .dataflow import annotate_data_edges, infer_data_edges
from .validator import ValidationError, validate_flow, node_errors, error_messages
from .reconstructor import reconstruct
from .editing import create_node, add_node, delete_node, connect, update_node_config
from .session import FlowSession, FlowSaveError, load_flow, save_flow

__all__ = [
    "Action",
    "LeafAction",
    "IfAction",
    "ForEachAction",
    "WhileAction",
    "Capability",
    "ScriptDocument",
    "parse_action",
    "action_to_dict",
    "FlowGraph",
    "FlowNode",
    "FlowEdge",
    "NodeKind",
    "EdgeBranch",
    "Position",
    "FlowCompiler",
    "compile_document",
    "LayoutEngine",
    "apply_layout",
    "annotate_data_edges",
    "infer_data_edges",
    "ValidationError",
    "validate_flow",
    "node_errors",
    "error_messages",
    "reconstruct",
    "create_node",
    "add_node",
    "delete_node",
    "connect",
    "update_node_config",
    "FlowSession",
    "FlowSaveError",
    "load_flow",
    "save_flow",
]
