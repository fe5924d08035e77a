"""
Rebuilder — Deterministic replay of author logs into a Graph Store

rebuild(records, base, cursors) is a pure function of the record set:
- the physical order in which logs were read does not matter
- running it twice on the same records gives the same store
- a record seen twice (resynchronized copy) has no extra effect

Ordering: (logical_timestamp, author, sequence). Backdated records sort by
their stated date; the author breaks timestamp ties; the sequence orders
one author's own records.

Last-writer-wins is decided by comparing order keys, not by replay
position, so a status written before a checkpoint and one arriving after
it still resolve the same way a single full replay would.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import List, Dict, Optional, Iterable, Tuple

from .errors import Diagnostic, DiagnosticKind
from .events import EventRecord, OrderKey
from .graph import GraphStore, Node, Edge, PendingMutation, ANY_RELATION
from .types import Operation, NodeStatus, parse_kind, parse_status, parse_edge_type
from ..utils.logger import get_logger

log = get_logger(__name__)


@dataclass
class RebuildResult:
    graph: GraphStore
    diagnostics: List[Diagnostic] = field(default_factory=list)
    applied: int = 0
    skipped_duplicates: int = 0
    cursors: Dict[str, int] = field(default_factory=dict)
    pending_transactions: List[str] = field(default_factory=list)

    @property
    def warnings(self) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.is_warning]


class Rebuilder:
    """
    Replays records on top of a base store (the last checkpoint).

    The base is copied first; the caller's store is never touched, so an
    aborted rebuild leaves whatever was in use before intact.
    """

    def rebuild(
        self,
        records: Iterable[EventRecord],
        base: Optional[GraphStore] = None,
        cursors: Optional[Dict[str, int]] = None,
    ) -> RebuildResult:
        graph = base.copy() if base is not None else GraphStore()
        base_cursors = dict(cursors or {})
        result = RebuildResult(graph=graph)

        fresh = self._after_cursors(records, base_cursors, result)
        complete = self._complete_bursts(fresh, result)

        for record in sorted(complete, key=lambda r: r.order_key):
            self._apply(graph, record, result)
            result.applied += 1

        self._resolve_pending(graph)
        self._report_leftovers(graph, result)
        self._assign_local_ids(graph)

        result.cursors = self._advance_cursors(base_cursors, complete)

        for diagnostic in result.diagnostics:
            if diagnostic.is_warning:
                log.warning(diagnostic.format())
            else:
                log.debug(diagnostic.format())
        log.debug(
            f"rebuild applied {result.applied} record(s); "
            f"{len(graph.nodes)} node(s), {len(graph.pending_edges)} pending edge(s)"
        )
        return result

    # -------------------------------------------------------------------------
    # Record selection
    # -------------------------------------------------------------------------

    def _after_cursors(
        self,
        records: Iterable[EventRecord],
        cursors: Dict[str, int],
        result: RebuildResult
    ) -> List[EventRecord]:
        """Records past each author's checkpoint cursor, deduplicated by record_id."""
        seen = set()
        fresh = []
        for record in records:
            if record.sequence <= cursors.get(record.author, 0):
                continue
            if record.record_id in seen:
                result.skipped_duplicates += 1
                continue
            seen.add(record.record_id)
            fresh.append(record)
        return fresh

    def _complete_bursts(
        self,
        records: List[EventRecord],
        result: RebuildResult
    ) -> List[EventRecord]:
        """
        Split out composite bursts that are not fully present.

        A burst is complete when every index 0..size-1 is present exactly
        once with a consistent size. Incomplete bursts are held back whole.
        """
        bursts: Dict[Tuple[str, str], List[EventRecord]] = defaultdict(list)
        plain = []
        for record in records:
            if record.txn is None:
                plain.append(record)
            else:
                bursts[(record.author, record.txn.id)].append(record)

        for (author, txn_id), members in sorted(bursts.items()):
            sizes = {m.txn.size for m in members}
            indices = sorted(m.txn.index for m in members)
            size = next(iter(sizes))
            if len(sizes) == 1 and indices == list(range(size)):
                plain.extend(members)
                continue

            first = min(m.sequence for m in members)
            result.pending_transactions.append(txn_id)
            result.diagnostics.append(Diagnostic(
                kind=DiagnosticKind.PENDING_TRANSACTION,
                message=f"transaction {txn_id} has {len(members)} of {max(sizes)} record(s); not applied",
                author=author,
                sequence=first,
            ))
        return plain

    def _advance_cursors(self, base: Dict[str, int], applied: List[EventRecord]) -> Dict[str, int]:
        """
        Highest sequence per author with every record up to it consumed.

        A cursor stops before the first hole in an author's sequence: a
        malformed line, a record not synced yet, or a held-back burst. The
        records behind it stay in the log and replay again later, so one
        that shows up or gets repaired afterwards is not skipped.
        """
        consumed: Dict[str, set] = defaultdict(set)
        for record in applied:
            consumed[record.author].add(record.sequence)

        cursors = dict(base)
        for author, sequences in consumed.items():
            cursor = base.get(author, 0)
            while cursor + 1 in sequences:
                cursor += 1
            cursors[author] = cursor
        return cursors

    # -------------------------------------------------------------------------
    # Replay
    # -------------------------------------------------------------------------

    def _apply(self, graph: GraphStore, record: EventRecord, result: RebuildResult):
        try:
            if record.operation == Operation.CREATE_NODE:
                self._create_node(graph, record, result)
            elif record.operation == Operation.CREATE_EDGE:
                self._create_edge(graph, record)
            elif record.operation == Operation.SET_STATUS:
                status = parse_status(record.payload["status"])
                self._mutate(graph, PendingMutation(
                    change_id=record.change_id,
                    operation=Operation.SET_STATUS.value,
                    order_key=record.order_key,
                    status=status.value,
                ))
            elif record.operation == Operation.DELETE_NODE:
                self._mutate(graph, PendingMutation(
                    change_id=record.change_id,
                    operation=Operation.DELETE_NODE.value,
                    order_key=record.order_key,
                ))
            elif record.operation == Operation.DELETE_EDGE:
                self._delete_edge(graph, record)
        except Exception as e:
            # Payload-level corruption: contain it to this record
            result.diagnostics.append(Diagnostic(
                kind=DiagnosticKind.MALFORMED_RECORD,
                message=f"{record.operation.value} payload rejected: {e}",
                author=record.author,
                sequence=record.sequence,
                record_id=record.record_id,
            ))

    def _create_node(self, graph: GraphStore, record: EventRecord, result: RebuildResult):
        existing = graph.nodes.get(record.change_id)
        if existing is not None:
            if existing.order_key != record.order_key:
                result.diagnostics.append(Diagnostic(
                    kind=DiagnosticKind.ORDERING_ANOMALY,
                    message=f"second creation of {record.change_id} ignored",
                    author=record.author,
                    sequence=record.sequence,
                    record_id=record.record_id,
                ))
            return

        payload = record.payload
        title = (payload.get("title") or "").strip()
        if not title:
            raise ValueError("empty title")
        confidence = payload.get("confidence")

        node = Node(
            change_id=record.change_id,
            kind=parse_kind(payload["kind"]),
            title=title,
            author=record.author,
            created_at=record.logical_timestamp,
            order_key=record.order_key,
            description=payload.get("description"),
            confidence=int(confidence) if confidence is not None else None,
            commit=payload.get("commit"),
            files=list(payload.get("files") or []),
            status_key=record.order_key,
        )
        graph.nodes[node.change_id] = node

        # Mutations that were replayed before this node was known
        for mutation in sorted(graph.pending_mutations.pop(node.change_id, []), key=lambda m: m.order_key):
            self._mutate(graph, mutation)

    def _mutate(self, graph: GraphStore, mutation: PendingMutation):
        node = graph.nodes.get(mutation.change_id)
        if node is None:
            buffered = graph.pending_mutations.setdefault(mutation.change_id, [])
            if mutation not in buffered:
                buffered.append(mutation)
            return

        if mutation.operation == Operation.SET_STATUS.value:
            if node.status_key is None or mutation.order_key > node.status_key:
                node.status = NodeStatus(mutation.status)
                node.status_key = mutation.order_key
        elif mutation.operation == Operation.DELETE_NODE.value:
            # Earliest tombstone wins; deletion is permanent
            if node.deleted_key is None or mutation.order_key < node.deleted_key:
                node.deleted_key = mutation.order_key

    def _create_edge(self, graph: GraphStore, record: EventRecord):
        if record.change_id in graph.edges or record.change_id in graph.pending_edges:
            return

        payload = record.payload
        edge = Edge(
            change_id=record.change_id,
            from_id=payload["from"],
            to_id=payload["to"],
            edge_type=parse_edge_type(payload["edge_type"]),
            author=record.author,
            created_at=record.logical_timestamp,
            order_key=record.order_key,
            rationale=payload.get("rationale"),
        )
        if not edge.from_id or not edge.to_id:
            raise ValueError("edge endpoint missing")

        # Copies of one relation are all kept; GraphStore shows the current one
        edge.deleted_key = self._tombstone_for(graph, edge)
        if graph.has_node(edge.from_id) and graph.has_node(edge.to_id):
            graph.edges[edge.change_id] = edge
        else:
            graph.pending_edges[edge.change_id] = edge

    def _tombstone_for(self, graph: GraphStore, edge: Edge) -> Optional[OrderKey]:
        """Latest matching unlink that was ordered after the edge's creation."""
        keys = [
            graph.edge_tombstones.get((edge.from_id, edge.to_id, edge.edge_type)),
            graph.edge_tombstones.get((edge.from_id, edge.to_id, ANY_RELATION)),
        ]
        later = [k for k in keys if k is not None and k > edge.order_key]
        return max(later) if later else None

    def _delete_edge(self, graph: GraphStore, record: EventRecord):
        payload = record.payload
        relation = payload.get("edge_type")
        relation = parse_edge_type(relation) if relation else ANY_RELATION
        key = (payload["from"], payload["to"], relation)

        current = graph.edge_tombstones.get(key)
        if current is None or record.order_key > current:
            graph.edge_tombstones[key] = record.order_key

        for pool in (graph.edges, graph.pending_edges):
            for edge in pool.values():
                if edge.from_id != key[0] or edge.to_id != key[1]:
                    continue
                if relation != ANY_RELATION and edge.edge_type != relation:
                    continue
                if record.order_key > edge.order_key:
                    if edge.deleted_key is None or record.order_key > edge.deleted_key:
                        edge.deleted_key = record.order_key

    def _resolve_pending(self, graph: GraphStore):
        """Move pending edges whose endpoints are now known; repeat to a fixed point."""
        changed = True
        while changed and graph.pending_edges:
            changed = False
            for change_id in sorted(graph.pending_edges):
                edge = graph.pending_edges[change_id]
                if graph.has_node(edge.from_id) and graph.has_node(edge.to_id):
                    graph.edges[change_id] = graph.pending_edges.pop(change_id)
                    changed = True

    def _report_leftovers(self, graph: GraphStore, result: RebuildResult):
        for change_id in sorted(graph.pending_edges):
            edge = graph.pending_edges[change_id]
            missing = [e for e in (edge.from_id, edge.to_id) if not graph.has_node(e)]
            result.diagnostics.append(Diagnostic(
                kind=DiagnosticKind.DANGLING_REFERENCE,
                message=f"edge {edge.change_id[:8]} waits for {', '.join(m[:8] for m in missing)}",
                author=edge.author,
                sequence=edge.order_key[2],
            ))
        for change_id in sorted(graph.pending_mutations):
            for mutation in graph.pending_mutations[change_id]:
                result.diagnostics.append(Diagnostic(
                    kind=DiagnosticKind.DANGLING_REFERENCE,
                    message=f"{mutation.operation} waits for node {change_id[:8]}",
                    author=mutation.order_key[1],
                    sequence=mutation.order_key[2],
                ))

    def _assign_local_ids(self, graph: GraphStore):
        fresh = sorted(
            (n for n in graph.nodes.values() if n.local_id == 0),
            key=lambda n: n.order_key
        )
        for node in fresh:
            node.local_id = graph.next_local_id
            graph.next_local_id += 1
