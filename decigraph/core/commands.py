"""
Command Layer — Validated writes to the acting author's log

Every operation validates first and writes second: a ValidationError or
NotFoundError means nothing reached the log.

Operations never mutate the Graph Store they validate against. They
append records; the next rebuild materializes them. Existence checks use
the store as it was last rebuilt locally, so a node another author
created is only addressable after pulling their log and rebuilding.
"""

import uuid
from dataclasses import dataclass, field
from typing import Optional, List, Iterable, Callable, Union

from .errors import ValidationError, NotFoundError
from .events import (
    AuthorLog, EventRecord, TxnMarker,
    now_timestamp, normalize_timestamp,
    create_node_record, create_edge_record, set_status_record,
    delete_node_record, delete_edge_record,
)
from .graph import GraphStore, Node, Edge
from .types import (
    NodeKind, NodeStatus, EdgeType, PIVOT_TARGET_KINDS,
    parse_kind, parse_status, parse_edge_type,
)
from ..utils.logger import get_logger

log = get_logger(__name__)


def new_change_id() -> str:
    """Globally unique, never reused."""
    return uuid.uuid4().hex


@dataclass
class PivotResult:
    """Everything one pivot wrote, as previews of what rebuild will show."""
    origin_id: str
    observation: Node
    revisit: Node
    new_approach: Node
    edges: List[Edge] = field(default_factory=list)
    records: List[EventRecord] = field(default_factory=list)

    @property
    def txn_id(self) -> str:
        return self.records[0].txn.id if self.records else ""


class CommandLayer:
    """
    User-facing write operations for one author.

    Args:
        graph: The locally materialized graph (read-only here)
        log: The acting author's log (the only file this layer writes)
        sequence_floor: Checkpoint cursor for this author, so numbering
                        continues after a truncated log
        clock: Source of logical timestamps (overridable in tests)
        id_factory: Source of fresh change_ids
    """

    def __init__(
        self,
        graph: GraphStore,
        log: AuthorLog,
        sequence_floor: int = 0,
        clock: Callable[[], str] = now_timestamp,
        id_factory: Callable[[], str] = new_change_id,
    ):
        self.graph = graph
        self.log = log
        self.author = log.author
        self._sequence_floor = sequence_floor
        self._next_sequence: Optional[int] = None
        self._clock = clock
        self._new_id = id_factory

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _sequence(self) -> int:
        if self._next_sequence is None:
            self._next_sequence = self.log.next_sequence(self._sequence_floor)
        value = self._next_sequence
        self._next_sequence += 1
        return value

    def _timestamp(self, date=None) -> str:
        return normalize_timestamp(date) if date else self._clock()

    def _require_node(self, change_id: str) -> Node:
        node = self.graph.get_node(change_id)
        if node is None:
            raise NotFoundError(
                f"Node '{change_id}' is not in the local graph. Rebuild and retry.",
                context={"change_id": change_id}
            )
        return node

    @staticmethod
    def _require_title(title: str, field_name: str = "title") -> str:
        title = (title or "").strip()
        if not title:
            raise ValidationError(f"{field_name.capitalize()} must not be empty", context={"field": field_name})
        return title

    @staticmethod
    def _check_confidence(confidence) -> Optional[int]:
        if confidence is None:
            return None
        try:
            value = int(confidence)
        except (TypeError, ValueError):
            raise ValidationError(f"Confidence must be an integer, got '{confidence}'",
                                  context={"field": "confidence"})
        if not 0 <= value <= 100:
            raise ValidationError(f"Confidence must be between 0 and 100, got {value}",
                                  context={"field": "confidence"})
        return value

    @staticmethod
    def _preview_node(record: EventRecord) -> Node:
        payload = record.payload
        return Node(
            change_id=record.change_id,
            kind=NodeKind(payload["kind"]),
            title=payload["title"],
            author=record.author,
            created_at=record.logical_timestamp,
            order_key=record.order_key,
            description=payload.get("description"),
            confidence=payload.get("confidence"),
            commit=payload.get("commit"),
            files=list(payload.get("files") or []),
            status_key=record.order_key,
        )

    @staticmethod
    def _preview_edge(record: EventRecord) -> Edge:
        payload = record.payload
        return Edge(
            change_id=record.change_id,
            from_id=payload["from"],
            to_id=payload["to"],
            edge_type=payload["edge_type"],
            author=record.author,
            created_at=record.logical_timestamp,
            order_key=record.order_key,
            rationale=payload.get("rationale"),
        )

    # -------------------------------------------------------------------------
    # Primitive operations
    # -------------------------------------------------------------------------

    def add(
        self,
        kind: Union[str, NodeKind],
        title: str,
        description: Optional[str] = None,
        confidence: Optional[int] = None,
        date=None,
        author: Optional[str] = None,
        commit: Optional[str] = None,
        files: Optional[Iterable[str]] = None,
    ) -> Node:
        """
        Create a node with a fresh change_id.

        Args:
            kind: goal | decision | option | observation | action | outcome | revisit
            title: Short label (required)
            description: Longer rationale, may quote evidence
            confidence: 0-100
            date: Backdate for historical reconstruction (YYYY-MM-DD or ISO)
            author: Must match the log owner if given
            commit: Associated commit reference
            files: Associated file paths
        """
        node_kind = parse_kind(kind)
        title = self._require_title(title)
        confidence = self._check_confidence(confidence)
        if author and author != self.author:
            raise ValidationError(
                f"Cannot write as '{author}' into the log of '{self.author}'",
                context={"field": "author"}
            )
        timestamp = self._timestamp(date)

        record = create_node_record(
            change_id=self._new_id(),
            author=self.author,
            sequence=self._sequence(),
            timestamp=timestamp,
            kind=node_kind,
            title=title,
            description=description,
            confidence=confidence,
            commit=commit,
            files=files,
        )
        self.log.append(record)
        log.info(f"{self.author} added {node_kind.value} {record.change_id[:8]}")
        return self._preview_node(record)

    def link(
        self,
        from_id: str,
        to_id: str,
        edge_type: Union[str, EdgeType] = EdgeType.LEADS_TO,
        rationale: Optional[str] = None,
        date=None,
    ) -> Edge:
        """
        Create an edge. Endpoints need not be known locally yet: the edge
        stays pending until a rebuild sees both nodes.
        """
        relation = parse_edge_type(edge_type)
        from_id = (from_id or "").strip()
        to_id = (to_id or "").strip()
        if not from_id or not to_id:
            raise ValidationError("Both endpoints are required", context={"field": "from/to"})
        timestamp = self._timestamp(date)

        record = create_edge_record(
            change_id=self._new_id(),
            author=self.author,
            sequence=self._sequence(),
            timestamp=timestamp,
            from_id=from_id,
            to_id=to_id,
            edge_type=relation,
            rationale=rationale,
        )
        self.log.append(record)
        if not (self.graph.has_node(from_id) and self.graph.has_node(to_id)):
            log.info(f"{self.author} linked {from_id[:8]} -> {to_id[:8]} (pending: endpoint not known locally)")
        else:
            log.info(f"{self.author} linked {from_id[:8]} -[{relation}]-> {to_id[:8]}")
        return self._preview_edge(record)

    def set_status(self, change_id: str, status: Union[str, NodeStatus]) -> EventRecord:
        """Change a node's status (last writer wins under the replay order)."""
        new_status = parse_status(status)
        self._require_node(change_id)

        record = set_status_record(
            change_id=change_id,
            author=self.author,
            sequence=self._sequence(),
            timestamp=self._timestamp(),
            status=new_status,
        )
        self.log.append(record)
        log.info(f"{self.author} set {change_id[:8]} to {new_status.value}")
        return record

    def delete(self, change_id: str) -> EventRecord:
        """Tombstone a node. History keeps its creation record."""
        self._require_node(change_id)

        record = delete_node_record(
            change_id=change_id,
            author=self.author,
            sequence=self._sequence(),
            timestamp=self._timestamp(),
        )
        self.log.append(record)
        log.info(f"{self.author} deleted {change_id[:8]}")
        return record

    def unlink(self, from_id: str, to_id: str, edge_type: Optional[Union[str, EdgeType]] = None) -> EventRecord:
        """Tombstone edges from_id -> to_id (every relation unless edge_type given)."""
        relation = parse_edge_type(edge_type) if edge_type else None
        if not self.graph.find_edges(from_id, to_id, relation):
            raise NotFoundError(
                f"No edge {from_id} -> {to_id} in the local graph",
                context={"from": from_id, "to": to_id, "edge_type": relation}
            )

        record = delete_edge_record(
            author=self.author,
            sequence=self._sequence(),
            timestamp=self._timestamp(),
            from_id=from_id,
            to_id=to_id,
            edge_type=relation,
        )
        self.log.append(record)
        log.info(f"{self.author} unlinked {from_id[:8]} -> {to_id[:8]}")
        return record

    # -------------------------------------------------------------------------
    # Composite operations
    # -------------------------------------------------------------------------

    def pivot(
        self,
        from_id: str,
        observation: str,
        new_approach: str,
        new_kind: Union[str, NodeKind] = NodeKind.DECISION,
        description: Optional[str] = None,
        confidence: Optional[int] = None,
        date=None,
        rationale: Optional[str] = None,
    ) -> PivotResult:
        """
        Record that an approach was reconsidered and replaced.

        Writes seven records in one burst under a shared transaction marker:
        observation, revisit and new-approach nodes; the chain
        from -> observation -> revisit -> new approach; and from's status
        set to superseded. Replay applies the burst whole or not at all.
        """
        origin = self._require_node(from_id)
        observation = self._require_title(observation, "observation")
        new_approach = self._require_title(new_approach, "new approach")
        target_kind = parse_kind(new_kind)
        if target_kind not in PIVOT_TARGET_KINDS:
            raise ValidationError(
                f"A pivot's new approach must be a decision or option, not {target_kind.value}",
                context={"field": "new_kind"}
            )
        confidence = self._check_confidence(confidence)
        timestamp = self._timestamp(date)
        if timestamp < origin.created_at:
            raise ValidationError(
                f"Pivot date {timestamp} precedes the creation of {from_id[:8]} ({origin.created_at})",
                context={"field": "date"}
            )

        txn_id = self._new_id()
        size = 7

        def marker(index: int) -> TxnMarker:
            return TxnMarker(id=txn_id, index=index, size=size)

        observation_id = self._new_id()
        revisit_id = self._new_id()
        approach_id = self._new_id()

        records = [
            create_node_record(observation_id, self.author, self._sequence(), timestamp,
                               NodeKind.OBSERVATION, observation, txn=marker(0)),
            create_node_record(revisit_id, self.author, self._sequence(), timestamp,
                               NodeKind.REVISIT, f"Revisit: {origin.title}", txn=marker(1)),
            create_node_record(approach_id, self.author, self._sequence(), timestamp,
                               target_kind, new_approach, description=description,
                               confidence=confidence, txn=marker(2)),
            create_edge_record(self._new_id(), self.author, self._sequence(), timestamp,
                               from_id, observation_id, EdgeType.LEADS_TO.value,
                               rationale=rationale, txn=marker(3)),
            create_edge_record(self._new_id(), self.author, self._sequence(), timestamp,
                               observation_id, revisit_id, EdgeType.LEADS_TO.value, txn=marker(4)),
            create_edge_record(self._new_id(), self.author, self._sequence(), timestamp,
                               revisit_id, approach_id, EdgeType.LEADS_TO.value, txn=marker(5)),
            set_status_record(from_id, self.author, self._sequence(), timestamp,
                              NodeStatus.SUPERSEDED, txn=marker(6)),
        ]
        self.log.append_burst(records)
        log.info(f"{self.author} pivoted from {from_id[:8]} to {approach_id[:8]} (txn {txn_id[:8]})")

        return PivotResult(
            origin_id=from_id,
            observation=self._preview_node(records[0]),
            revisit=self._preview_node(records[1]),
            new_approach=self._preview_node(records[2]),
            edges=[self._preview_edge(r) for r in records[3:6]],
            records=records,
        )

    def supersede(self, change_id: str, cascade: bool = False) -> List[EventRecord]:
        """
        Mark a node superseded; with cascade, also every live node reachable
        through outgoing edges in the current local graph.
        """
        self._require_node(change_id)

        targets = [change_id]
        if cascade:
            targets.extend(self._reachable(change_id))

        timestamp = self._timestamp()
        txn_id = self._new_id() if len(targets) > 1 else None
        records = []
        for index, target in enumerate(targets):
            txn = TxnMarker(id=txn_id, index=index, size=len(targets)) if txn_id else None
            records.append(set_status_record(
                change_id=target,
                author=self.author,
                sequence=self._sequence(),
                timestamp=timestamp,
                status=NodeStatus.SUPERSEDED,
                txn=txn,
            ))
        self.log.append_burst(records)
        log.info(f"{self.author} superseded {len(records)} node(s) from {change_id[:8]}")
        return records

    def _reachable(self, change_id: str) -> List[str]:
        """
        Live nodes reachable via outgoing edges, breadth-first, cycle-safe.

        Already-superseded nodes are walked through but not returned.
        """
        visited = {change_id}
        order = []
        queue = [change_id]
        while queue:
            current = queue.pop(0)
            for edge, node in self.graph.get_outgoing(current):
                if node.change_id in visited:
                    continue
                visited.add(node.change_id)
                queue.append(node.change_id)
                if node.status != NodeStatus.SUPERSEDED:
                    order.append(node.change_id)
        return order
