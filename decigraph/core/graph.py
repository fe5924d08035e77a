"""
Graph Store — Materialized node/edge collection

This is a PROJECTION, not source of truth.
Can always be rebuilt from the author logs (plus the last checkpoint).

The store keeps more than what queries show:
- tombstoned nodes/edges (deleted, hidden from queries, ids still known)
- pending edges (an endpoint not seen yet)
- edge tombstones and buffered node mutations that are waiting on
  records other authors have not shared yet

Keeping all of it is what lets a checkpoint stand in for the logs it
compacted: the snapshot is this store, serialized.
"""

import copy
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional, Tuple, Iterable

from .events import OrderKey
from .types import NodeKind, NodeStatus


def _key(value) -> Optional[OrderKey]:
    """Order keys round-trip through JSON as lists."""
    if value is None:
        return None
    return (str(value[0]), str(value[1]), int(value[2]))


@dataclass
class Node:
    change_id: str
    kind: NodeKind
    title: str
    author: str
    created_at: str
    order_key: OrderKey
    description: Optional[str] = None
    confidence: Optional[int] = None
    status: NodeStatus = NodeStatus.ACTIVE
    commit: Optional[str] = None
    files: List[str] = field(default_factory=list)
    local_id: int = 0
    status_key: Optional[OrderKey] = None   # key of the write that set status
    deleted_key: Optional[OrderKey] = None  # key of the tombstone, if any

    @property
    def deleted(self) -> bool:
        return self.deleted_key is not None

    def to_dict(self, include_local_id: bool = True) -> Dict[str, Any]:
        d = {
            "change_id": self.change_id,
            "kind": self.kind.value,
            "title": self.title,
            "author": self.author,
            "created_at": self.created_at,
            "order_key": list(self.order_key),
            "description": self.description,
            "confidence": self.confidence,
            "status": self.status.value,
            "commit": self.commit,
            "files": list(self.files),
            "status_key": list(self.status_key) if self.status_key else None,
            "deleted_key": list(self.deleted_key) if self.deleted_key else None,
        }
        if include_local_id:
            d["local_id"] = self.local_id
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'Node':
        return cls(
            change_id=d["change_id"],
            kind=NodeKind(d["kind"]),
            title=d["title"],
            author=d["author"],
            created_at=d["created_at"],
            order_key=_key(d["order_key"]),
            description=d.get("description"),
            confidence=d.get("confidence"),
            status=NodeStatus(d.get("status", NodeStatus.ACTIVE.value)),
            commit=d.get("commit"),
            files=list(d.get("files") or []),
            local_id=int(d.get("local_id", 0)),
            status_key=_key(d.get("status_key")),
            deleted_key=_key(d.get("deleted_key")),
        )


@dataclass
class Edge:
    change_id: str
    from_id: str
    to_id: str
    edge_type: str
    author: str
    created_at: str
    order_key: OrderKey
    rationale: Optional[str] = None
    deleted_key: Optional[OrderKey] = None

    @property
    def deleted(self) -> bool:
        return self.deleted_key is not None

    @property
    def identity(self) -> Tuple[str, str, str]:
        """Two edges with the same endpoints and relation are the same edge."""
        return (self.from_id, self.to_id, self.edge_type)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "change_id": self.change_id,
            "from": self.from_id,
            "to": self.to_id,
            "edge_type": self.edge_type,
            "author": self.author,
            "created_at": self.created_at,
            "order_key": list(self.order_key),
            "rationale": self.rationale,
            "deleted_key": list(self.deleted_key) if self.deleted_key else None,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'Edge':
        return cls(
            change_id=d["change_id"],
            from_id=d["from"],
            to_id=d["to"],
            edge_type=d["edge_type"],
            author=d["author"],
            created_at=d["created_at"],
            order_key=_key(d["order_key"]),
            rationale=d.get("rationale"),
            deleted_key=_key(d.get("deleted_key")),
        )


@dataclass
class PendingMutation:
    """A status change or tombstone for a node nobody has shared yet."""
    change_id: str
    operation: str          # "set_status" | "delete_node"
    order_key: OrderKey
    status: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "change_id": self.change_id,
            "operation": self.operation,
            "order_key": list(self.order_key),
            "status": self.status,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'PendingMutation':
        return cls(
            change_id=d["change_id"],
            operation=d["operation"],
            order_key=_key(d["order_key"]),
            status=d.get("status"),
        )


# Edge tombstone keys use '*' for "every relation between the endpoints"
ANY_RELATION = "*"
TombstoneKey = Tuple[str, str, str]


class GraphStore:
    """
    In-memory materialized graph.

    Mutated only by the Rebuilder while it builds a fresh store; once
    returned, a store is treated as read-only by every other component.
    """

    def __init__(self):
        self.nodes: Dict[str, Node] = {}
        self.edges: Dict[str, Edge] = {}
        self.pending_edges: Dict[str, Edge] = {}
        self.edge_tombstones: Dict[TombstoneKey, OrderKey] = {}
        self.pending_mutations: Dict[str, List[PendingMutation]] = {}
        self.next_local_id: int = 1

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def get_node(self, change_id: str, include_deleted: bool = False) -> Optional[Node]:
        node = self.nodes.get(change_id)
        if node is None or (node.deleted and not include_deleted):
            return None
        return node

    def has_node(self, change_id: str) -> bool:
        """True if the node has ever been created (tombstoned or not)."""
        return change_id in self.nodes

    def get_by_local_id(self, local_id: int) -> Optional[Node]:
        for node in self.nodes.values():
            if node.local_id == local_id and not node.deleted:
                return node
        return None

    def live_nodes(self) -> List[Node]:
        """Nodes visible to queries, in total order."""
        return sorted(
            (n for n in self.nodes.values() if not n.deleted),
            key=lambda n: n.order_key
        )

    def live_edges(self) -> List[Edge]:
        """Resolved edges with both endpoints live, in total order."""
        return sorted(
            (e for e in self._current_copies(self.edges.values()) if self._endpoints_live(e)),
            key=lambda e: e.order_key
        )

    def waiting_edges(self) -> List[Edge]:
        """Pending edges that are neither unlinked nor a later copy, in total order."""
        return sorted(self._current_copies(self.pending_edges.values()), key=lambda e: e.order_key)

    def is_edge_live(self, edge: Edge) -> bool:
        if edge.deleted or not self._endpoints_live(edge):
            return False
        return self.find_edge_by_identity(edge.identity) is edge

    def _endpoints_live(self, edge: Edge) -> bool:
        source = self.nodes.get(edge.from_id)
        target = self.nodes.get(edge.to_id)
        return bool(source and target and not source.deleted and not target.deleted)

    @staticmethod
    def _current_copies(edges: Iterable[Edge]) -> List[Edge]:
        """
        Earliest undeleted edge per (from, to, relation).

        Every create_edge record is kept; a later copy of a live relation
        is hidden behind the earlier one. Once an unlink tombstones the
        earlier copies, the next link of the same relation is current.
        """
        current: Dict[Tuple[str, str, str], Edge] = {}
        for edge in edges:
            if edge.deleted:
                continue
            held = current.get(edge.identity)
            if held is None or edge.order_key < held.order_key:
                current[edge.identity] = edge
        return list(current.values())

    def nodes_by_kind(self, kind: NodeKind) -> List[Node]:
        return [n for n in self.live_nodes() if n.kind == kind]

    def get_outgoing(self, change_id: str) -> List[Tuple[Edge, Node]]:
        """Live edges leaving a node with their target nodes."""
        return [
            (e, self.nodes[e.to_id])
            for e in self.live_edges()
            if e.from_id == change_id
        ]

    def get_incoming(self, change_id: str) -> List[Tuple[Edge, Node]]:
        """Live edges entering a node with their source nodes."""
        return [
            (e, self.nodes[e.from_id])
            for e in self.live_edges()
            if e.to_id == change_id
        ]

    def find_edges(self, from_id: str, to_id: str, edge_type: Optional[str] = None,
                   include_pending: bool = True) -> List[Edge]:
        """Undeleted edges between two endpoints (optionally of one relation)."""
        pools: Iterable[Edge] = list(self.edges.values())
        if include_pending:
            pools = list(pools) + list(self.pending_edges.values())
        return [
            e for e in pools
            if e.from_id == from_id and e.to_id == to_id and not e.deleted
            and (edge_type is None or e.edge_type == edge_type)
        ]

    def find_edge_by_identity(self, identity: Tuple[str, str, str]) -> Optional[Edge]:
        """Current (earliest undeleted) copy of a relation, resolved or pending."""
        copies = [
            e for pool in (self.edges, self.pending_edges) for e in pool.values()
            if e.identity == identity
        ]
        current = self._current_copies(copies)
        return current[0] if current else None

    def stats(self) -> Dict[str, int]:
        live = self.live_nodes()
        return {
            "nodes": len(live),
            "edges": len(self.live_edges()),
            "pending_edges": len(self.pending_edges),
            "deleted_nodes": sum(1 for n in self.nodes.values() if n.deleted),
        }

    # -------------------------------------------------------------------------
    # Serialization (checkpoint and projection share this)
    # -------------------------------------------------------------------------

    def to_dict(self, include_local_ids: bool = True) -> Dict[str, Any]:
        """Canonical, order-stable representation."""
        d = {
            "nodes": [
                self.nodes[k].to_dict(include_local_id=include_local_ids)
                for k in sorted(self.nodes)
            ],
            "edges": [self.edges[k].to_dict() for k in sorted(self.edges)],
            "pending_edges": [self.pending_edges[k].to_dict() for k in sorted(self.pending_edges)],
            "edge_tombstones": [
                {"from": key[0], "to": key[1], "edge_type": key[2], "order_key": list(value)}
                for key, value in sorted(self.edge_tombstones.items())
            ],
            "pending_mutations": [
                m.to_dict()
                for change_id in sorted(self.pending_mutations)
                for m in sorted(self.pending_mutations[change_id], key=lambda m: m.order_key)
            ],
        }
        if include_local_ids:
            d["next_local_id"] = self.next_local_id
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'GraphStore':
        store = cls()
        for item in d.get("nodes", []):
            node = Node.from_dict(item)
            store.nodes[node.change_id] = node
        for item in d.get("edges", []):
            edge = Edge.from_dict(item)
            store.edges[edge.change_id] = edge
        for item in d.get("pending_edges", []):
            edge = Edge.from_dict(item)
            store.pending_edges[edge.change_id] = edge
        for item in d.get("edge_tombstones", []):
            key = (item["from"], item["to"], item["edge_type"])
            store.edge_tombstones[key] = _key(item["order_key"])
        for item in d.get("pending_mutations", []):
            mutation = PendingMutation.from_dict(item)
            store.pending_mutations.setdefault(mutation.change_id, []).append(mutation)
        highest = max((n.local_id for n in store.nodes.values()), default=0)
        store.next_local_id = max(int(d.get("next_local_id", 1)), highest + 1)
        return store

    def copy(self) -> 'GraphStore':
        """Independent copy (the Rebuilder's separate workspace)."""
        return copy.deepcopy(self)

    def __eq__(self, other) -> bool:
        if not isinstance(other, GraphStore):
            return NotImplemented
        return self.to_dict() == other.to_dict()
