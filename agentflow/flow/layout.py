"""
Flow Layout Engine - Assigns canvas coordinates to flow nodes.

Layered layout, top to bottom:
1. Split the graph into weakly connected components over structural edges
2. Per component, drop loop-back edges and DFS back edges, then rank every
   node by its longest-path distance from a root
3. Order nodes within each rank with barycenter sweeps to reduce crossings
4. Map rank/order to x/y with fixed node size and spacing, centring each rank
5. Stack components vertically so no two capabilities overlap

Only `position` changes; ids, configs and edges are untouched. The result
depends on topology alone, so re-running on an unchanged graph is a no-op.
"""

import logging
from collections import deque
from typing import Optional, Dict, List, Set, Tuple

from agentflow.config.settings import Settings, settings as default_settings
from agentflow.flow.graph import FlowGraph, FlowNode, FlowEdge, EdgeBranch, Position

logger = logging.getLogger(__name__)


class LayoutEngine:
    """Layered top-to-bottom layout with fixed node geometry."""

    def __init__(self, config: Optional[Settings] = None):
        cfg = config or default_settings
        self.node_width = float(cfg.node_width)
        self.node_height = float(cfg.node_height)
        self.horizontal_spacing = float(cfg.horizontal_spacing)
        self.vertical_spacing = float(cfg.vertical_spacing)
        self.margin = float(cfg.layout_margin)
        self.capability_gap = float(cfg.capability_gap)
        self.sweeps = int(cfg.layout_sweeps)

    def apply(self, graph: FlowGraph) -> FlowGraph:
        return FlowGraph(nodes=self.layout(graph.nodes, graph.edges), edges=list(graph.edges))

    def layout(self, nodes: List[FlowNode], edges: List[FlowEdge]) -> List[FlowNode]:
        index = {n.node_id: i for i, n in enumerate(nodes)}
        structural = [
            e for e in edges
            if e.is_structural and e.source in index and e.target in index and e.source != e.target
        ]

        positions: Dict[str, Tuple[float, float]] = {}
        y_offset = 0.0
        for members in self._components(nodes, structural, index):
            member_set = set(members)
            comp_edges = [e for e in structural if e.source in member_set]
            local, bottom = self._layout_component(members, comp_edges, nodes, index)
            for node_id, (x, y) in local.items():
                positions[node_id] = (x, y + y_offset)
            y_offset += bottom + self.capability_gap

        return [
            n.model_copy(
                update={"position": Position(x=positions[n.node_id][0], y=positions[n.node_id][1])},
                deep=True,
            )
            for n in nodes
        ]

    # ── Components ────────────────────────────────────────────────────

    def _components(
        self, nodes: List[FlowNode], edges: List[FlowEdge], index: Dict[str, int]
    ) -> List[List[str]]:
        parent = {n.node_id: n.node_id for n in nodes}

        def find(x: str) -> str:
            while parent[x] != x:
                parent[x] = parent[parent[x]]
                x = parent[x]
            return x

        for e in edges:
            a, b = find(e.source), find(e.target)
            if a != b:
                # keep the earliest node as representative
                if index[a] < index[b]:
                    parent[b] = a
                else:
                    parent[a] = b

        groups: Dict[str, List[str]] = {}
        for n in nodes:
            groups.setdefault(find(n.node_id), []).append(n.node_id)
        return sorted(groups.values(), key=lambda members: index[members[0]])

    # ── Ranking ───────────────────────────────────────────────────────

    def _layout_component(
        self,
        members: List[str],
        edges: List[FlowEdge],
        nodes: List[FlowNode],
        index: Dict[str, int],
    ) -> Tuple[Dict[str, Tuple[float, float]], float]:
        forward = [e for e in edges if e.branch != EdgeBranch.LOOP_BACK]
        successors: Dict[str, List[str]] = {m: [] for m in members}
        has_incoming: Set[str] = set()
        for e in forward:
            successors[e.source].append(e.target)
            has_incoming.add(e.target)

        roots = [m for m in members if nodes[index[m]].is_entry and m not in has_incoming]
        roots += [m for m in members if m not in has_incoming and m not in roots]
        discovery, dag = self._acyclic_edges(members, successors, roots)
        ranks = self._rank(members, dag, discovery)
        layers = self._order(ranks, dag, discovery)

        widest = max(len(layer) for layer in layers)
        step_x = self.node_width + self.horizontal_spacing
        step_y = self.node_height + self.vertical_spacing
        full_width = widest * step_x - self.horizontal_spacing

        local: Dict[str, Tuple[float, float]] = {}
        for rank, layer in enumerate(layers):
            layer_width = len(layer) * step_x - self.horizontal_spacing
            x0 = self.margin + (full_width - layer_width) / 2
            for order, node_id in enumerate(layer):
                local[node_id] = (x0 + order * step_x, self.margin + rank * step_y)

        bottom = self.margin + (len(layers) - 1) * step_y + self.node_height
        return local, bottom

    def _acyclic_edges(
        self, members: List[str], successors: Dict[str, List[str]], roots: List[str]
    ) -> Tuple[Dict[str, int], Dict[str, List[str]]]:
        """DFS from roots (then any unvisited node); drop edges into the DFS stack."""
        discovery: Dict[str, int] = {}
        on_stack: Set[str] = set()
        dag: Dict[str, List[str]] = {m: [] for m in members}

        for start in roots + members:
            if start in discovery:
                continue
            discovery[start] = len(discovery)
            on_stack.add(start)
            stack = [(start, iter(successors[start]))]
            while stack:
                node_id, children = stack[-1]
                child = next(children, None)
                if child is None:
                    on_stack.discard(node_id)
                    stack.pop()
                    continue
                if child in on_stack:
                    continue
                if child not in dag[node_id]:
                    dag[node_id].append(child)
                if child not in discovery:
                    discovery[child] = len(discovery)
                    on_stack.add(child)
                    stack.append((child, iter(successors[child])))
        return discovery, dag

    def _rank(
        self, members: List[str], dag: Dict[str, List[str]], discovery: Dict[str, int]
    ) -> Dict[str, int]:
        """Longest-path rank over the acyclic edge set (Kahn order)."""
        in_degree = {m: 0 for m in members}
        for targets in dag.values():
            for t in targets:
                in_degree[t] += 1

        rank = {m: 0 for m in members}
        queue = deque(sorted((m for m in members if in_degree[m] == 0), key=discovery.get))
        while queue:
            node_id = queue.popleft()
            for t in dag[node_id]:
                rank[t] = max(rank[t], rank[node_id] + 1)
                in_degree[t] -= 1
                if in_degree[t] == 0:
                    queue.append(t)
        return rank

    # ── Ordering ──────────────────────────────────────────────────────

    def _order(
        self, ranks: Dict[str, int], dag: Dict[str, List[str]], discovery: Dict[str, int]
    ) -> List[List[str]]:
        depth = max(ranks.values()) + 1
        layers: List[List[str]] = [[] for _ in range(depth)]
        for node_id in sorted(ranks, key=discovery.get):
            layers[ranks[node_id]].append(node_id)

        predecessors: Dict[str, List[str]] = {n: [] for n in ranks}
        for source, targets in dag.items():
            for t in targets:
                predecessors[t].append(source)

        slot = {n: i for layer in layers for i, n in enumerate(layer)}

        def reorder(layer: List[str], neighbours: Dict[str, List[str]]) -> List[str]:
            def key(n: str) -> Tuple[float, int]:
                linked = neighbours[n]
                if not linked:
                    return (float(slot[n]), slot[n])
                return (sum(slot[m] for m in linked) / len(linked), slot[n])
            ordered = sorted(layer, key=key)
            for i, n in enumerate(ordered):
                slot[n] = i
            return ordered

        for _ in range(self.sweeps):
            for r in range(1, depth):
                layers[r] = reorder(layers[r], predecessors)
            for r in range(depth - 2, -1, -1):
                layers[r] = reorder(layers[r], dag)
        return layers


def apply_layout(
    nodes: List[FlowNode], edges: List[FlowEdge], config: Optional[Settings] = None
) -> List[FlowNode]:
    """Return copies of `nodes` with fresh positions."""
    return LayoutEngine(config).layout(nodes, edges)
