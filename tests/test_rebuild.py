"""
Tests for the Rebuilder — deterministic replay

These tests validate:
- Same records, same graph (regardless of read order or repetition)
- Edges wait for endpoints from logs not yet seen
- Composite bursts apply whole or not at all
- Status and tombstone resolution follow the record order, not replay order
"""

import random

from decigraph.core.errors import DiagnosticKind
from decigraph.core.events import TxnMarker
from decigraph.core.graph import GraphStore
from decigraph.core.rebuild import Rebuilder
from decigraph.core.types import NodeStatus


def two_author_records(factory):
    """Alice states a goal, Bob proposes an option and links it; Alice chooses."""
    goal = factory.node_record("alice", "goal", "Reduce latency")
    option = factory.node_record("bob", "option", "Cache")
    decision = factory.node_record("alice", "decision", "Cache hot paths")
    approach = factory.edge_record("bob", goal.change_id, option.change_id, "possible_approach")
    chosen = factory.edge_record("alice", option.change_id, decision.change_id, "chosen")
    status = factory.status_record("bob", option.change_id, "completed")
    return [goal, option, decision, approach, chosen, status]


class TestDeterminism:
    """Replay is a pure function of the record set."""

    def test_rebuild_is_idempotent(self, graph_factory):
        records = two_author_records(graph_factory)
        first = graph_factory.replay(records).graph
        second = graph_factory.replay(records).graph
        assert first == second

    def test_output_as_base_is_a_fixed_point(self, graph_factory):
        """Replaying everything on top of its own result changes nothing."""
        records = two_author_records(graph_factory)
        first = graph_factory.replay(records).graph
        again = graph_factory.replay(records, base=first).graph
        assert again == first

    def test_order_independent(self, graph_factory):
        """Any interleaving of the authors' records gives the same store."""
        records = two_author_records(graph_factory)
        expected = graph_factory.replay(records).graph

        rng = random.Random(7)
        for _ in range(10):
            shuffled = list(records)
            rng.shuffle(shuffled)
            assert graph_factory.replay(shuffled).graph == expected

    def test_duplicates_have_no_effect(self, graph_factory):
        records = two_author_records(graph_factory)
        expected = graph_factory.replay(records).graph

        result = graph_factory.replay(records + records[:3])
        assert result.graph == expected
        assert result.skipped_duplicates == 3

    def test_local_ids_follow_order_key(self, graph_factory):
        records = two_author_records(graph_factory)
        graph = graph_factory.replay(list(reversed(records))).graph
        by_local = sorted(graph.nodes.values(), key=lambda n: n.local_id)
        assert [n.title for n in by_local] == ["Reduce latency", "Cache", "Cache hot paths"]
        assert graph.next_local_id == 4

    def test_base_store_is_not_modified(self, graph_factory):
        base = graph_factory.replay([graph_factory.node_record("alice", "goal", "G")]).graph
        before = base.to_dict()
        graph_factory.replay([graph_factory.node_record("alice", "goal", "H")], base=base)
        assert base.to_dict() == before


class TestPendingEdges:
    """Edges referencing unknown nodes are held, not dropped."""

    def test_edge_waits_for_endpoint(self, graph_factory):
        goal = graph_factory.node_record("alice", "goal", "G")
        edge = graph_factory.edge_record("alice", goal.change_id, "f" * 32)

        result = graph_factory.replay([goal, edge])
        assert edge.change_id in result.graph.pending_edges
        assert result.graph.live_edges() == []
        assert any(d.kind == DiagnosticKind.DANGLING_REFERENCE for d in result.diagnostics)

    def test_pending_edge_resolves_when_node_arrives(self, graph_factory):
        """Bob links to a node from Carol's log that Bob has not pulled yet."""
        goal = graph_factory.node_record("bob", "goal", "G")
        edge = graph_factory.edge_record("bob", goal.change_id, "c" * 32)
        first = graph_factory.replay([goal, edge])
        assert len(first.graph.pending_edges) == 1

        carol = graph_factory.node_record("carol", "option", "Late option", change_id="c" * 32)
        second = graph_factory.replay([carol], base=first.graph, cursors=first.cursors)
        assert second.graph.pending_edges == {}
        assert [e.change_id for e in second.graph.live_edges()] == [edge.change_id]

    def test_pending_edge_is_not_a_dangling_warning(self, graph_factory):
        goal = graph_factory.node_record("alice", "goal", "G")
        edge = graph_factory.edge_record("alice", goal.change_id, "f" * 32)
        result = graph_factory.replay([goal, edge])
        assert result.warnings == []


class TestTransactions:
    """A composite burst applies whole or not at all."""

    def pivot_burst(self, factory, origin_id):
        def txn(index):
            return TxnMarker(id="txn-1", index=index, size=7)

        obs = factory.node_record("alice", "observation", "Too slow", txn=txn(0))
        rev = factory.node_record("alice", "revisit", "Revisit: Cache", txn=txn(1))
        new = factory.node_record("alice", "decision", "Queue", txn=txn(2))
        return [
            obs, rev, new,
            factory.edge_record("alice", origin_id, obs.change_id, txn=txn(3)),
            factory.edge_record("alice", obs.change_id, rev.change_id, txn=txn(4)),
            factory.edge_record("alice", rev.change_id, new.change_id, txn=txn(5)),
            factory.status_record("alice", origin_id, "superseded", txn=txn(6)),
        ]

    def test_complete_burst_applies(self, graph_factory):
        origin = graph_factory.node_record("alice", "decision", "Cache")
        burst = self.pivot_burst(graph_factory, origin.change_id)

        graph = graph_factory.replay([origin] + burst).graph
        assert len(graph.live_nodes()) == 4
        assert len(graph.live_edges()) == 3
        assert graph.nodes[origin.change_id].status == NodeStatus.SUPERSEDED

    def test_partial_burst_applies_nothing(self, graph_factory):
        """Four of seven records present: none of the pivot is visible."""
        origin = graph_factory.node_record("alice", "decision", "Cache")
        burst = self.pivot_burst(graph_factory, origin.change_id)

        result = graph_factory.replay([origin] + burst[:4])
        assert len(result.graph.live_nodes()) == 1
        assert result.graph.live_edges() == []
        assert result.graph.nodes[origin.change_id].status == NodeStatus.ACTIVE
        assert result.pending_transactions == ["txn-1"]
        assert any(d.kind == DiagnosticKind.PENDING_TRANSACTION for d in result.diagnostics)

    def test_cursor_stops_before_partial_burst(self, graph_factory):
        origin = graph_factory.node_record("alice", "decision", "Cache")
        burst = self.pivot_burst(graph_factory, origin.change_id)

        result = graph_factory.replay([origin] + burst[:4])
        assert result.cursors["alice"] == origin.sequence

    def test_burst_completes_on_later_rebuild(self, graph_factory):
        origin = graph_factory.node_record("alice", "decision", "Cache")
        burst = self.pivot_burst(graph_factory, origin.change_id)

        partial = graph_factory.replay([origin] + burst[:4])
        complete = graph_factory.replay(burst, base=partial.graph, cursors=partial.cursors)
        assert complete.graph == graph_factory.replay([origin] + burst).graph

    def test_inconsistent_size_is_held(self, graph_factory):
        a = graph_factory.node_record("alice", "goal", "A", txn=TxnMarker("t", 0, 2))
        b = graph_factory.node_record("alice", "goal", "B", txn=TxnMarker("t", 1, 3))
        result = graph_factory.replay([a, b])
        assert result.graph.nodes == {}


class TestCursors:
    """A cursor only claims an unbroken run of each author's sequences."""

    def test_cursor_stops_at_missing_sequence(self, graph_factory):
        first = graph_factory.node_record("alice", "goal", "G1")
        missing = graph_factory.node_record("alice", "goal", "G2")
        third = graph_factory.node_record("alice", "goal", "G3")

        result = graph_factory.replay([first, third])
        assert result.cursors["alice"] == first.sequence
        assert [n.title for n in result.graph.live_nodes()] == ["G1", "G3"]

        later = graph_factory.replay([missing, third], base=result.graph, cursors=result.cursors)
        assert [n.title for n in later.graph.live_nodes()] == ["G1", "G2", "G3"]
        assert later.cursors["alice"] == third.sequence

    def test_other_authors_advance_independently(self, graph_factory):
        graph_factory.node_record("alice", "goal", "skipped")
        alice = graph_factory.node_record("alice", "goal", "A2")
        bob = graph_factory.node_record("bob", "goal", "B1")
        result = graph_factory.replay([alice, bob])
        assert result.cursors.get("alice", 0) == 0
        assert result.cursors["bob"] == bob.sequence


class TestStatusResolution:
    """Last writer wins under the record order."""

    def test_later_status_wins(self, graph_factory):
        node = graph_factory.node_record("alice", "decision", "D")
        first = graph_factory.status_record("alice", node.change_id, "rejected")
        second = graph_factory.status_record("bob", node.change_id, "completed")

        graph = graph_factory.replay([second, first, node]).graph
        assert graph.nodes[node.change_id].status == NodeStatus.COMPLETED

    def test_backdated_status_loses(self, graph_factory):
        node = graph_factory.node_record("alice", "decision", "D", timestamp="2025-01-01T00:00:00.000000Z")
        current = graph_factory.status_record("alice", node.change_id, "completed",
                                              timestamp="2025-03-01T00:00:00.000000Z")
        backdated = graph_factory.status_record("bob", node.change_id, "rejected",
                                                timestamp="2025-02-01T00:00:00.000000Z")
        graph = graph_factory.replay([node, current, backdated]).graph
        assert graph.nodes[node.change_id].status == NodeStatus.COMPLETED

    def test_status_after_checkpoint_base_still_compares(self, graph_factory):
        """A base store remembers which write set the status."""
        node = graph_factory.node_record("alice", "decision", "D", timestamp="2025-01-01T00:00:00.000000Z")
        current = graph_factory.status_record("alice", node.change_id, "completed",
                                              timestamp="2025-03-01T00:00:00.000000Z")
        base = graph_factory.replay([node, current])

        late = graph_factory.status_record("bob", node.change_id, "rejected",
                                           timestamp="2025-02-01T00:00:00.000000Z")
        graph = graph_factory.replay([late], base=base.graph, cursors=base.cursors).graph
        assert graph.nodes[node.change_id].status == NodeStatus.COMPLETED

    def test_status_before_creation_is_buffered(self, graph_factory):
        """Bob's status change is replayed before Alice's creation record arrives."""
        node = graph_factory.node_record("alice", "option", "O", change_id="a" * 32)
        status = graph_factory.status_record("bob", "a" * 32, "rejected")
        first = graph_factory.replay([status])
        assert "a" * 32 in first.graph.pending_mutations

        second = graph_factory.replay([node], base=first.graph, cursors=first.cursors)
        assert second.graph.nodes["a" * 32].status == NodeStatus.REJECTED
        assert second.graph.pending_mutations == {}


class TestTombstones:
    """Deletion hides, never forgets."""

    def test_deleted_node_hidden(self, graph_factory):
        node = graph_factory.node_record("alice", "goal", "G")
        graph = graph_factory.replay([node, graph_factory.delete_record("alice", node.change_id)]).graph
        assert graph.live_nodes() == []
        assert graph.has_node(node.change_id)
        assert graph.stats()["deleted_nodes"] == 1

    def test_edges_of_deleted_node_hidden(self, graph_factory):
        a = graph_factory.node_record("alice", "goal", "A")
        b = graph_factory.node_record("alice", "option", "B")
        edge = graph_factory.edge_record("alice", a.change_id, b.change_id)
        graph = graph_factory.replay([a, b, edge, graph_factory.delete_record("alice", b.change_id)]).graph
        assert graph.live_edges() == []

    def test_unlink_removes_edge(self, graph_factory):
        a = graph_factory.node_record("alice", "goal", "A")
        b = graph_factory.node_record("alice", "option", "B")
        edge = graph_factory.edge_record("alice", a.change_id, b.change_id, "possible_approach")
        unlink = graph_factory.unlink_record("alice", a.change_id, b.change_id, "possible_approach")
        graph = graph_factory.replay([a, b, edge, unlink]).graph
        assert graph.live_edges() == []

    def test_unlink_before_edge_does_not_apply(self, graph_factory):
        """A tombstone only hides edges created before it."""
        a = graph_factory.node_record("alice", "goal", "A")
        b = graph_factory.node_record("alice", "option", "B")
        unlink = graph_factory.unlink_record("bob", a.change_id, b.change_id)
        edge = graph_factory.edge_record("alice", a.change_id, b.change_id)
        graph = graph_factory.replay([unlink, edge, a, b]).graph
        assert len(graph.live_edges()) == 1

    def test_unlink_of_other_relation_keeps_edge(self, graph_factory):
        a = graph_factory.node_record("alice", "goal", "A")
        b = graph_factory.node_record("alice", "option", "B")
        edge = graph_factory.edge_record("alice", a.change_id, b.change_id, "chosen")
        unlink = graph_factory.unlink_record("alice", a.change_id, b.change_id, "rejected")
        graph = graph_factory.replay([a, b, edge, unlink]).graph
        assert len(graph.live_edges()) == 1


class TestDuplicateEdges:
    """Two authors recording the same relation produce one edge."""

    def test_earliest_copy_wins(self, graph_factory):
        a = graph_factory.node_record("alice", "goal", "A")
        b = graph_factory.node_record("alice", "option", "B")
        first = graph_factory.edge_record("alice", a.change_id, b.change_id, "possible_approach")
        second = graph_factory.edge_record("bob", a.change_id, b.change_id, "possible_approach")

        for order in ([a, b, first, second], [second, first, b, a]):
            graph = graph_factory.replay(order).graph
            assert [e.change_id for e in graph.live_edges()] == [first.change_id]

    def test_relink_after_unlink_is_live(self, graph_factory):
        a = graph_factory.node_record("alice", "goal", "A")
        b = graph_factory.node_record("alice", "option", "B")
        first = graph_factory.edge_record("alice", a.change_id, b.change_id, "possible_approach")
        unlink = graph_factory.unlink_record("alice", a.change_id, b.change_id, "possible_approach")
        again = graph_factory.edge_record("alice", a.change_id, b.change_id, "possible_approach")

        graph = graph_factory.replay([again, unlink, first, b, a]).graph
        assert [e.change_id for e in graph.live_edges()] == [again.change_id]
        assert graph.edges[first.change_id].deleted

    def test_relink_after_unlink_in_base(self, graph_factory):
        a = graph_factory.node_record("alice", "goal", "A")
        b = graph_factory.node_record("alice", "option", "B")
        first = graph_factory.edge_record("alice", a.change_id, b.change_id)
        unlink = graph_factory.unlink_record("alice", a.change_id, b.change_id)
        base = graph_factory.replay([a, b, first, unlink])

        again = graph_factory.edge_record("alice", a.change_id, b.change_id)
        graph = graph_factory.replay([again], base=base.graph, cursors=base.cursors).graph
        assert [e.change_id for e in graph.live_edges()] == [again.change_id]
        assert graph == graph_factory.replay([a, b, first, unlink, again]).graph

    def test_late_unlink_between_copies(self, graph_factory):
        """Bob's unlink sorts between two copies but arrives after the base."""
        a = graph_factory.node_record("alice", "goal", "A")
        b = graph_factory.node_record("alice", "option", "B")
        first = graph_factory.edge_record("alice", a.change_id, b.change_id)
        unlink = graph_factory.unlink_record("bob", a.change_id, b.change_id)
        again = graph_factory.edge_record("alice", a.change_id, b.change_id)

        base = graph_factory.replay([a, b, first, again])
        assert [e.change_id for e in base.graph.live_edges()] == [first.change_id]

        graph = graph_factory.replay([unlink], base=base.graph, cursors=base.cursors).graph
        assert [e.change_id for e in graph.live_edges()] == [again.change_id]
        assert graph == graph_factory.replay([a, b, first, unlink, again]).graph

    def test_different_relations_coexist(self, graph_factory):
        a = graph_factory.node_record("alice", "goal", "A")
        b = graph_factory.node_record("alice", "option", "B")
        records = [
            a, b,
            graph_factory.edge_record("alice", a.change_id, b.change_id, "possible_approach"),
            graph_factory.edge_record("alice", a.change_id, b.change_id, "leads_to"),
        ]
        assert len(graph_factory.replay(records).graph.live_edges()) == 2


class TestCorruptPayload:
    """A record that parses but cannot be applied is contained."""

    def test_empty_title_rejected(self, graph_factory):
        bad = graph_factory.node_record("alice", "goal", "   ")
        good = graph_factory.node_record("alice", "goal", "G")
        result = graph_factory.replay([bad, good])
        assert [n.title for n in result.graph.live_nodes()] == ["G"]
        assert result.warnings[0].kind == DiagnosticKind.MALFORMED_RECORD

    def test_empty_graph(self):
        result = Rebuilder().rebuild([])
        assert result.graph == GraphStore()
        assert result.applied == 0
