"""
Data-Dependency Annotator - Adds advisory variable-flow edges to a flow graph.
A data edge links the node that writes a variable to each node that reads it.
These edges are a visual aid only; compiler and reconstructor ignore them.
"""

import logging
from typing import Dict, List, Set, Tuple

from agentflow.flow.graph import FlowGraph, FlowNode, FlowEdge, data_edge_id

logger = logging.getLogger(__name__)


def producer_map(nodes: List[FlowNode]) -> Dict[str, str]:
    """Variable name -> id of the node producing it. A later producer wins."""
    producers: Dict[str, str] = {}
    for node in nodes:
        for output in node.outputs:
            producers[output] = node.node_id
    return producers


def infer_data_edges(nodes: List[FlowNode], edges: List[FlowEdge]) -> List[FlowEdge]:
    """Data edges not yet present in `edges`.

    One edge per producer/consumer pair: a pair already linked by a data
    edge is skipped, so repeated calls add nothing.
    """
    producers = producer_map(nodes)
    linked: Set[Tuple[str, str]] = {(e.source, e.target) for e in edges if e.is_data_edge}
    new_edges: List[FlowEdge] = []

    for node in nodes:
        for variable in node.inputs:
            source = producers.get(variable)
            if not source or source == node.node_id:
                continue
            if (source, node.node_id) in linked:
                continue
            linked.add((source, node.node_id))
            new_edges.append(FlowEdge(
                edge_id=data_edge_id(source, node.node_id, variable),
                source=source,
                target=node.node_id,
                is_data_edge=True,
                label=variable,
            ))
    return new_edges


def annotate_data_edges(graph: FlowGraph) -> FlowGraph:
    """Return a copy of `graph` with any missing data edges appended."""
    added = infer_data_edges(graph.nodes, graph.edges)
    if added:
        logger.debug(f"Added {len(added)} data edges")
    return FlowGraph(nodes=list(graph.nodes), edges=list(graph.edges) + added)


def strip_data_edges(graph: FlowGraph) -> FlowGraph:
    return FlowGraph(nodes=list(graph.nodes), edges=graph.structural_edges())


def available_variables(graph: FlowGraph) -> List[str]:
    """Every variable some node produces, in first-seen order (editor autocomplete)."""
    seen: List[str] = []
    for node in graph.nodes:
        for output in node.outputs:
            if output not in seen:
                seen.append(output)
    return seen
