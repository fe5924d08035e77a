"""
Tests for the Command Layer — validated writes

These tests validate:
- Invalid input is rejected before anything reaches the log
- Targets must exist in the local graph (NotFoundError otherwise)
- Pivot writes its seven records as one tagged burst
- Cascading supersede is cycle-safe
"""

import pytest

from decigraph.core.errors import ValidationError, NotFoundError
from decigraph.core.types import NodeKind, NodeStatus, Operation


def log_lines(factory, author="alice"):
    return factory.workspace(author).author_log.read().records


class TestAdd:
    """Node creation."""

    def test_add_appears_after_rebuild(self, graph_factory):
        preview = graph_factory.commands("alice").add("goal", "Reduce latency", confidence=80)
        assert preview.local_id == 0

        graph_factory.rebuild()
        node = graph_factory.graph.get_node(preview.change_id)
        assert node.title == "Reduce latency"
        assert node.kind == NodeKind.GOAL
        assert node.confidence == 80
        assert node.local_id == 1

    def test_title_is_trimmed(self, graph_factory):
        node = graph_factory.commands("alice").add("goal", "  Padded  ")
        assert node.title == "Padded"

    def test_empty_title_rejected(self, graph_factory):
        with pytest.raises(ValidationError):
            graph_factory.commands("alice").add("goal", "   ")
        assert log_lines(graph_factory) == []

    def test_unknown_kind_rejected(self, graph_factory):
        with pytest.raises(ValidationError) as excinfo:
            graph_factory.commands("alice").add("wish", "Something")
        assert excinfo.value.context["field"] == "kind"
        assert log_lines(graph_factory) == []

    @pytest.mark.parametrize("confidence", [-1, 101, "high"])
    def test_bad_confidence_rejected(self, graph_factory, confidence):
        with pytest.raises(ValidationError):
            graph_factory.commands("alice").add("decision", "D", confidence=confidence)

    def test_other_author_rejected(self, graph_factory):
        with pytest.raises(ValidationError):
            graph_factory.commands("alice").add("goal", "G", author="bob")

    def test_backdated_add(self, graph_factory):
        node = graph_factory.commands("alice").add("decision", "Old call", date="2023-06-01")
        assert node.created_at == "2023-06-01T00:00:00.000000Z"

    def test_commit_and_files(self, graph_factory):
        goal = graph_factory.add("alice", "action", "Ship it", commit="abc123", files=["a.py", "b.py"])
        graph_factory.rebuild()
        node = graph_factory.graph.get_node(goal)
        assert node.commit == "abc123"
        assert node.files == ["a.py", "b.py"]

    def test_sequences_increase(self, graph_factory):
        graph_factory.add("alice", "goal", "A")
        graph_factory.add("alice", "goal", "B")
        assert [r.sequence for r in log_lines(graph_factory)] == [1, 2]


class TestLink:
    """Edge creation."""

    def test_link_known_nodes(self, graph_factory):
        a = graph_factory.add("alice", "goal", "A")
        b = graph_factory.add("alice", "option", "B")
        graph_factory.rebuild()

        edge = graph_factory.commands("alice").link(a, b, "possible_approach", rationale="fits")
        assert edge.edge_type == "possible_approach"

        graph_factory.rebuild()
        live = graph_factory.graph.live_edges()
        assert [(e.from_id, e.to_id) for e in live] == [(a, b)]
        assert live[0].rationale == "fits"

    def test_link_unknown_endpoint_is_pending(self, graph_factory):
        a = graph_factory.add("alice", "goal", "A")
        graph_factory.rebuild()

        graph_factory.link("alice", a, "f" * 32)
        graph_factory.rebuild()
        assert len(graph_factory.graph.pending_edges) == 1

    def test_empty_endpoint_rejected(self, graph_factory):
        with pytest.raises(ValidationError):
            graph_factory.commands("alice").link("", "b" * 32)

    def test_bad_edge_type_rejected(self, graph_factory):
        with pytest.raises(ValidationError):
            graph_factory.commands("alice").link("a" * 32, "b" * 32, "Leads To!")

    def test_custom_relation_accepted(self, graph_factory):
        edge = graph_factory.commands("alice").link("a" * 32, "b" * 32, "blocks")
        assert edge.edge_type == "blocks"


class TestStatusAndDelete:
    """Mutations of existing nodes."""

    def test_set_status(self, graph_factory):
        a = graph_factory.add("alice", "decision", "D")
        graph_factory.rebuild()

        record = graph_factory.commands("alice").set_status(a, "completed")
        assert record.operation == Operation.SET_STATUS

        graph_factory.rebuild()
        assert graph_factory.graph.get_node(a).status == NodeStatus.COMPLETED

    def test_set_status_unknown_node(self, graph_factory):
        with pytest.raises(NotFoundError):
            graph_factory.commands("alice").set_status("a" * 32, "completed")
        assert log_lines(graph_factory) == []

    def test_set_status_not_yet_rebuilt(self, graph_factory):
        """A node written but not rebuilt is not addressable yet."""
        a = graph_factory.add("alice", "decision", "D")
        with pytest.raises(NotFoundError):
            graph_factory.commands("alice").set_status(a, "completed")

    def test_unknown_status_rejected(self, graph_factory):
        a = graph_factory.add("alice", "decision", "D")
        graph_factory.rebuild()
        with pytest.raises(ValidationError):
            graph_factory.commands("alice").set_status(a, "paused")

    def test_delete(self, graph_factory):
        a = graph_factory.add("alice", "decision", "D")
        graph_factory.rebuild()

        graph_factory.commands("alice").delete(a)
        graph_factory.rebuild()
        assert graph_factory.graph.get_node(a) is None
        assert graph_factory.graph.get_node(a, include_deleted=True) is not None

    def test_delete_twice_not_found(self, graph_factory):
        a = graph_factory.add("alice", "decision", "D")
        graph_factory.rebuild()
        graph_factory.commands("alice").delete(a)
        graph_factory.rebuild()
        with pytest.raises(NotFoundError):
            graph_factory.commands("alice").delete(a)


class TestUnlink:
    """Edge tombstones."""

    def test_unlink_existing(self, graph_factory):
        a = graph_factory.add("alice", "goal", "A")
        b = graph_factory.add("alice", "option", "B")
        graph_factory.rebuild()
        graph_factory.link("alice", a, b, "possible_approach")
        graph_factory.rebuild()

        graph_factory.commands("alice").unlink(a, b)
        graph_factory.rebuild()
        assert graph_factory.graph.live_edges() == []

    def test_unlink_missing_edge(self, graph_factory):
        a = graph_factory.add("alice", "goal", "A")
        b = graph_factory.add("alice", "option", "B")
        graph_factory.rebuild()
        with pytest.raises(NotFoundError):
            graph_factory.commands("alice").unlink(a, b)

    def test_unlink_wrong_relation(self, graph_factory):
        a = graph_factory.add("alice", "goal", "A")
        b = graph_factory.add("alice", "option", "B")
        graph_factory.rebuild()
        graph_factory.link("alice", a, b, "possible_approach")
        graph_factory.rebuild()
        with pytest.raises(NotFoundError):
            graph_factory.commands("alice").unlink(a, b, "chosen")

    def relink(self, factory, compact=False):
        a = factory.add("alice", "goal", "A")
        b = factory.add("alice", "option", "B")
        factory.rebuild()
        factory.link("alice", a, b, "possible_approach")
        factory.rebuild()
        factory.commands("alice").unlink(a, b, "possible_approach")
        factory.rebuild()
        if compact:
            factory.workspace("alice").checkpoint(clear_events=True)
        edge_id = factory.link("alice", a, b, "possible_approach")
        factory.rebuild()
        return edge_id

    def test_relink_after_unlink(self, graph_factory):
        edge_id = self.relink(graph_factory)
        assert [e.change_id for e in graph_factory.graph.live_edges()] == [edge_id]

    def test_relink_after_compacted_unlink(self, graph_factory):
        edge_id = self.relink(graph_factory, compact=True)
        assert [e.change_id for e in graph_factory.graph.live_edges()] == [edge_id]

    def test_relinked_edge_can_be_unlinked_again(self, graph_factory):
        edge_id = self.relink(graph_factory)
        edge = graph_factory.graph.edges[edge_id]
        graph_factory.commands("alice").unlink(edge.from_id, edge.to_id)
        graph_factory.rebuild()
        assert graph_factory.graph.live_edges() == []


class TestPivot:
    """Composite pivot: observation, revisit, new approach."""

    def test_pivot_writes_seven_tagged_records(self, graph_factory):
        origin = graph_factory.add("alice", "decision", "Use cache")
        graph_factory.rebuild()

        result = graph_factory.commands("alice").pivot(origin, "Cache misses too often", "Use a queue")
        assert len(result.records) == 7
        assert {r.txn.id for r in result.records} == {result.txn_id}
        assert [r.txn.index for r in result.records] == list(range(7))
        assert all(r.txn.size == 7 for r in result.records)
        assert len(log_lines(graph_factory)) == 8

    def test_pivot_after_rebuild(self, graph_factory):
        origin = graph_factory.add("alice", "decision", "Use cache")
        graph_factory.rebuild()
        result = graph_factory.commands("alice").pivot(origin, "Misses", "Use a queue", new_kind="option")
        graph_factory.rebuild()

        graph = graph_factory.graph
        assert graph.get_node(origin).status == NodeStatus.SUPERSEDED
        assert graph.get_node(result.revisit.change_id).title == "Revisit: Use cache"
        assert graph.get_node(result.new_approach.change_id).kind == NodeKind.OPTION
        chain = [(e.from_id, e.to_id) for e in graph.live_edges()]
        assert chain == [
            (origin, result.observation.change_id),
            (result.observation.change_id, result.revisit.change_id),
            (result.revisit.change_id, result.new_approach.change_id),
        ]

    def test_pivot_unknown_origin(self, graph_factory):
        with pytest.raises(NotFoundError):
            graph_factory.commands("alice").pivot("a" * 32, "obs", "new")

    def test_pivot_target_kind(self, graph_factory):
        origin = graph_factory.add("alice", "decision", "Use cache")
        graph_factory.rebuild()
        with pytest.raises(ValidationError):
            graph_factory.commands("alice").pivot(origin, "obs", "new", new_kind="goal")

    def test_pivot_requires_observation(self, graph_factory):
        origin = graph_factory.add("alice", "decision", "Use cache")
        graph_factory.rebuild()
        with pytest.raises(ValidationError):
            graph_factory.commands("alice").pivot(origin, " ", "new")
        assert len(log_lines(graph_factory)) == 1

    def test_pivot_date_before_origin(self, graph_factory):
        origin = graph_factory.add("alice", "decision", "Use cache")
        graph_factory.rebuild()
        with pytest.raises(ValidationError):
            graph_factory.commands("alice").pivot(origin, "obs", "new", date="2024-06-01")


class TestSupersede:
    """Supersede one node or everything downstream of it."""

    def test_single(self, graph_factory):
        a = graph_factory.add("alice", "decision", "A")
        graph_factory.rebuild()

        records = graph_factory.commands("alice").supersede(a)
        assert len(records) == 1
        assert records[0].txn is None

    def test_cascade_handles_cycles(self, graph_factory):
        a = graph_factory.add("alice", "decision", "A")
        b = graph_factory.add("alice", "action", "B")
        c = graph_factory.add("alice", "outcome", "C")
        graph_factory.rebuild()
        graph_factory.link("alice", a, b)
        graph_factory.link("alice", b, c)
        graph_factory.link("alice", c, a)
        graph_factory.rebuild()

        records = graph_factory.commands("alice").supersede(a, cascade=True)
        assert [r.change_id for r in records] == [a, b, c]
        assert {r.txn.size for r in records} == {3}

        graph_factory.rebuild()
        statuses = {n.change_id: n.status for n in graph_factory.graph.live_nodes()}
        assert set(statuses.values()) == {NodeStatus.SUPERSEDED}

    def test_cascade_walks_through_already_superseded(self, graph_factory):
        """B is already superseded: no new record for it, but C behind it is reached."""
        a = graph_factory.add("alice", "decision", "A")
        b = graph_factory.add("alice", "action", "B")
        c = graph_factory.add("alice", "outcome", "C")
        graph_factory.rebuild()
        graph_factory.link("alice", a, b)
        graph_factory.link("alice", b, c)
        graph_factory.rebuild()
        graph_factory.commands("alice").supersede(b)
        graph_factory.rebuild()

        records = graph_factory.commands("alice").supersede(a, cascade=True)
        assert [r.change_id for r in records] == [a, c]
