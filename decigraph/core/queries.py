"""
Query Layer — Read-only views over a Graph Store

Every function here is a pure read: nothing mutates the store it is given.
Traversals carry visited sets because the engine tolerates cycles.
"""

from dataclasses import dataclass, field
from typing import List, Dict, Optional, Union, Any

from .graph import GraphStore, Node, Edge
from .types import NodeKind, NodeStatus, EdgeType, parse_kind, parse_status, parse_edge_type


# Relations followed backwards from a revisit to the approach it replaced
PIVOT_BACKWARD_RELATIONS = (EdgeType.LEADS_TO.value, EdgeType.CHOSEN.value, EdgeType.REJECTED.value)
PIVOT_FORWARD_RELATIONS = (EdgeType.LEADS_TO.value,)


@dataclass
class PulseReport:
    """Health summary: what is dangling and which goals lack a decision."""
    orphans: List[Node] = field(default_factory=list)
    coverage_gaps: List[Node] = field(default_factory=list)
    covered_goals: List[Node] = field(default_factory=list)
    by_kind: Dict[str, int] = field(default_factory=dict)
    by_status: Dict[str, int] = field(default_factory=dict)
    node_count: int = 0
    edge_count: int = 0
    pending_edges: int = 0

    @property
    def healthy(self) -> bool:
        return not self.coverage_gaps

    def summary(self) -> Dict[str, Any]:
        return {
            "nodes": self.node_count,
            "edges": self.edge_count,
            "pending_edges": self.pending_edges,
            "orphans": len(self.orphans),
            "coverage_gaps": len(self.coverage_gaps),
            "covered_goals": len(self.covered_goals),
            "by_kind": dict(self.by_kind),
            "by_status": dict(self.by_status),
        }


@dataclass
class PivotChain:
    """One revisit with the approach it replaced and what followed."""
    revisit: Node
    origin: List[Node] = field(default_factory=list)     # revisit back to the first node, nearest first
    successors: List[Node] = field(default_factory=list)  # forward along leads_to

    @property
    def replaced(self) -> Optional[Node]:
        """The node that was pivoted away from: first step back past the observations."""
        return next((n for n in self.origin if n.kind != NodeKind.OBSERVATION), None)

    @property
    def new_approach(self) -> Optional[Node]:
        return self.successors[0] if self.successors else None


class QueryLayer:
    """Views over one materialized Graph Store."""

    def __init__(self, graph: GraphStore):
        self.graph = graph

    # -------------------------------------------------------------------------
    # Listings
    # -------------------------------------------------------------------------

    def list_nodes(
        self,
        kind: Optional[Union[str, NodeKind]] = None,
        status: Optional[Union[str, NodeStatus]] = None,
    ) -> List[Node]:
        """Live nodes in total order, optionally filtered."""
        kind = parse_kind(kind) if kind else None
        status = parse_status(status) if status else None
        return [
            n for n in self.graph.live_nodes()
            if (kind is None or n.kind == kind) and (status is None or n.status == status)
        ]

    def list_edges(self, edge_type: Optional[Union[str, EdgeType]] = None) -> List[Edge]:
        """Live edges in total order (pending and tombstoned edges excluded)."""
        relation = parse_edge_type(edge_type) if edge_type else None
        return [e for e in self.graph.live_edges() if relation is None or e.edge_type == relation]

    def timeline(self, kind: Optional[Union[str, NodeKind]] = None) -> List[Node]:
        """Nodes by (logical_timestamp, author, sequence); backdated entries sort by date."""
        return self.list_nodes(kind=kind)

    def pending_edges(self) -> List[Edge]:
        return self.graph.waiting_edges()

    # -------------------------------------------------------------------------
    # Pulse
    # -------------------------------------------------------------------------

    def _is_terminal(self, node: Node, via: Optional[Edge]) -> bool:
        if node.status == NodeStatus.COMPLETED:
            return True
        return via is not None and via.edge_type == EdgeType.CHOSEN.value

    def reaches_terminal(self, change_id: str) -> bool:
        """True if a chosen edge or a completed node is reachable from change_id."""
        start = self.graph.get_node(change_id)
        if start is None:
            return False
        if start.status == NodeStatus.COMPLETED:
            return True

        visited = {change_id}
        stack = [change_id]
        while stack:
            current = stack.pop()
            for edge, target in self.graph.get_outgoing(current):
                if self._is_terminal(target, edge):
                    return True
                if target.change_id not in visited:
                    visited.add(target.change_id)
                    stack.append(target.change_id)
        return False

    def orphans(self) -> List[Node]:
        """Live nodes with no outgoing live edge."""
        sources = {e.from_id for e in self.graph.live_edges()}
        return [n for n in self.graph.live_nodes() if n.change_id not in sources]

    def pulse(self) -> PulseReport:
        live = self.graph.live_nodes()
        report = PulseReport(
            orphans=self.orphans(),
            node_count=len(live),
            edge_count=len(self.graph.live_edges()),
            pending_edges=len(self.graph.waiting_edges()),
        )
        for node in live:
            report.by_kind[node.kind.value] = report.by_kind.get(node.kind.value, 0) + 1
            report.by_status[node.status.value] = report.by_status.get(node.status.value, 0) + 1
            if node.kind == NodeKind.GOAL and node.status == NodeStatus.ACTIVE:
                if self.reaches_terminal(node.change_id):
                    report.covered_goals.append(node)
                else:
                    report.coverage_gaps.append(node)
        return report

    # -------------------------------------------------------------------------
    # Pivot chains
    # -------------------------------------------------------------------------

    def _walk(self, change_id: str, relations, forward: bool, visited: set) -> List[Node]:
        """Depth-first path along the given relations (first branch in total order)."""
        path = []
        current = change_id
        while True:
            neighbours = self.graph.get_outgoing(current) if forward else self.graph.get_incoming(current)
            step = next(
                (node for edge, node in neighbours
                 if edge.edge_type in relations and node.change_id not in visited),
                None
            )
            if step is None:
                return path
            visited.add(step.change_id)
            path.append(step)
            current = step.change_id

    def pivot_chains(self) -> List[PivotChain]:
        chains = []
        for revisit in self.graph.nodes_by_kind(NodeKind.REVISIT):
            visited = {revisit.change_id}
            origin = self._walk(revisit.change_id, PIVOT_BACKWARD_RELATIONS, forward=False, visited=visited)
            successors = self._walk(revisit.change_id, PIVOT_FORWARD_RELATIONS, forward=True, visited=visited)
            chains.append(PivotChain(revisit=revisit, origin=origin, successors=successors))
        return chains

    # -------------------------------------------------------------------------
    # Export
    # -------------------------------------------------------------------------

    def export(self) -> Dict[str, List[Dict[str, Any]]]:
        """
        Flattened {nodes, edges} document for static rendering.

        Denormalized: edges carry endpoint titles and local ids so a viewer
        needs nothing else. Regenerated on demand, never read back.
        """
        nodes = []
        for node in self.graph.live_nodes():
            nodes.append({
                "id": node.change_id,
                "local_id": node.local_id,
                "kind": node.kind.value,
                "title": node.title,
                "description": node.description,
                "confidence": node.confidence,
                "status": node.status.value,
                "author": node.author,
                "created_at": node.created_at,
                "commit": node.commit,
                "files": list(node.files),
            })
        edges = []
        for edge in self.graph.live_edges():
            source = self.graph.nodes[edge.from_id]
            target = self.graph.nodes[edge.to_id]
            edges.append({
                "id": edge.change_id,
                "from": edge.from_id,
                "to": edge.to_id,
                "from_local_id": source.local_id,
                "to_local_id": target.local_id,
                "from_title": source.title,
                "to_title": target.title,
                "edge_type": edge.edge_type,
                "rationale": edge.rationale,
                "author": edge.author,
                "created_at": edge.created_at,
            })
        return {"nodes": nodes, "edges": edges}
