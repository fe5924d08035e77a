"""
Tests for Author Logs — append-only record files

These tests validate:
- Records survive reopening and keep file order
- Record identity is derived from content and checked on read
- Malformed and out-of-order lines are skipped with diagnostics
- Checkpoint truncation drops only the owner's records through the cursor
- LogSet reads every author's file and counts a record once
"""

import json

import pytest

from decigraph.core.errors import DiagnosticKind, ValidationError
from decigraph.core.events import (
    AuthorLog, EventRecord, LogSet, TxnMarker,
    compute_record_id, normalize_timestamp,
    create_node_record, create_edge_record, delete_edge_record,
)
from decigraph.core.types import NodeKind, Operation


TS = "2025-01-01T00:00:00.000000Z"


def node(author="alice", sequence=1, change_id="a" * 32, title="Goal", timestamp=TS, txn=None):
    return create_node_record(change_id, author, sequence, timestamp, NodeKind.GOAL, title, txn=txn)


class TestRecordIdentity:
    """record_id is a hash of change_id, operation, author and sequence."""

    def test_record_id_is_computed(self):
        record = node()
        assert record.record_id == compute_record_id("a" * 32, "create_node", "alice", 1)
        assert record.has_valid_id

    def test_same_identity_same_id(self):
        """Two builds of one record are indistinguishable."""
        assert node().record_id == node(title="Other title").record_id

    def test_sequence_changes_id(self):
        assert node(sequence=1).record_id != node(sequence=2).record_id

    def test_order_key(self):
        assert node(sequence=3).order_key == (TS, "alice", 3)

    def test_dict_round_trip_keeps_txn(self):
        record = node(txn=TxnMarker(id="t1", index=0, size=7))
        restored = EventRecord.from_dict(json.loads(record.to_line()))
        assert restored == record
        assert restored.txn.size == 7

    def test_plain_record_has_no_txn_key(self):
        assert "txn" not in node().to_dict()

    def test_unlink_without_relation(self):
        record = delete_edge_record("alice", 4, TS, "a" * 32, "b" * 32)
        assert record.operation == Operation.DELETE_EDGE
        assert record.payload["edge_type"] is None


class TestTimestamps:
    """Logical timestamps are normalized UTC strings."""

    def test_plain_date(self):
        assert normalize_timestamp("2024-03-05") == "2024-03-05T00:00:00.000000Z"

    def test_zulu_suffix(self):
        assert normalize_timestamp("2024-03-05T10:20:30Z") == "2024-03-05T10:20:30.000000Z"

    def test_offset_is_converted(self):
        assert normalize_timestamp("2024-03-05T12:00:00+02:00") == "2024-03-05T10:00:00.000000Z"

    def test_normalized_values_sort_chronologically(self):
        earlier = normalize_timestamp("2023-12-31")
        later = normalize_timestamp("2024-01-01T00:00:01")
        assert earlier < later

    def test_unparsable_date(self):
        with pytest.raises(ValidationError):
            normalize_timestamp("last tuesday")

    def test_empty_date(self):
        with pytest.raises(ValidationError):
            normalize_timestamp("")


class TestAuthorLog:
    """Only appends; reading returns records in file order."""

    def test_records_persist(self, tmp_path):
        path = tmp_path / "alice.jsonl"
        AuthorLog(path, "alice").append(node())

        records = AuthorLog(path, "alice").read().records
        assert len(records) == 1
        assert records[0].payload["title"] == "Goal"

    def test_appends_do_not_overwrite(self, tmp_path):
        log = AuthorLog(tmp_path / "alice.jsonl", "alice")
        log.append(node(sequence=1, change_id="1" * 32, title="First"))
        log.append(node(sequence=2, change_id="2" * 32, title="Second"))
        log.append_burst([
            node(sequence=3, change_id="3" * 32, title="Third"),
            node(sequence=4, change_id="4" * 32, title="Fourth"),
        ])

        titles = [r.payload["title"] for r in log.read().records]
        assert titles == ["First", "Second", "Third", "Fourth"]

    def test_refuses_other_author(self, tmp_path):
        log = AuthorLog(tmp_path / "alice.jsonl", "alice")
        with pytest.raises(ValueError):
            log.append(node(author="bob"))
        assert not log.exists()

    def test_missing_file_reads_empty(self, tmp_path):
        result = AuthorLog(tmp_path / "nobody.jsonl", "nobody").read()
        assert result.records == []
        assert result.diagnostics == []

    def test_next_sequence(self, tmp_path):
        log = AuthorLog(tmp_path / "alice.jsonl", "alice")
        assert log.next_sequence() == 1
        log.append(node(sequence=1))
        assert log.next_sequence() == 2

    def test_next_sequence_respects_floor(self, tmp_path):
        """After truncation numbering continues past the checkpoint cursor."""
        log = AuthorLog(tmp_path / "alice.jsonl", "alice")
        assert log.next_sequence(floor=12) == 13


class TestMalformedLines:
    """One bad line never blocks the rest of the log."""

    def test_unparsable_line_is_skipped(self, tmp_path):
        path = tmp_path / "alice.jsonl"
        log = AuthorLog(path, "alice")
        log.append(node(sequence=1, change_id="1" * 32))
        with open(path, "a") as f:
            f.write("{not json\n")
        log.append(node(sequence=2, change_id="2" * 32))

        result = log.read()
        assert [r.sequence for r in result.records] == [1, 2]
        assert len(result.diagnostics) == 1
        assert result.diagnostics[0].kind == DiagnosticKind.MALFORMED_RECORD
        assert result.diagnostics[0].line == 2

    def test_unknown_operation_is_malformed(self, tmp_path):
        path = tmp_path / "alice.jsonl"
        data = node().to_dict()
        data["operation"] = "rename_node"
        path.write_text(json.dumps(data) + "\n")

        result = AuthorLog(path, "alice").read()
        assert result.records == []
        assert result.diagnostics[0].kind == DiagnosticKind.MALFORMED_RECORD

    def test_tampered_record_id_is_skipped(self, tmp_path):
        path = tmp_path / "alice.jsonl"
        data = node().to_dict()
        data["record_id"] = "0" * 16
        path.write_text(json.dumps(data) + "\n")

        result = AuthorLog(path, "alice").read()
        assert result.records == []
        assert result.diagnostics[0].kind == DiagnosticKind.ORDERING_ANOMALY

    def test_blank_lines_ignored(self, tmp_path):
        path = tmp_path / "alice.jsonl"
        path.write_text("\n" + node().to_line() + "\n\n")
        result = AuthorLog(path, "alice").read()
        assert len(result.records) == 1
        assert result.diagnostics == []


class TestSequenceOrdering:
    """Per-author sequences must grow; anomalies are reported."""

    def test_backward_sequence_is_skipped(self, tmp_path):
        path = tmp_path / "alice.jsonl"
        path.write_text(
            node(sequence=2, change_id="1" * 32).to_line()
            + node(sequence=1, change_id="2" * 32).to_line()
        )
        result = AuthorLog(path, "alice").read()
        assert [r.sequence for r in result.records] == [2]
        assert result.diagnostics[0].kind == DiagnosticKind.ORDERING_ANOMALY

    def test_gap_is_reported_but_kept(self, tmp_path):
        path = tmp_path / "alice.jsonl"
        path.write_text(
            node(sequence=1, change_id="1" * 32).to_line()
            + node(sequence=5, change_id="2" * 32).to_line()
        )
        result = AuthorLog(path, "alice").read()
        assert [r.sequence for r in result.records] == [1, 5]
        assert "gap" in result.diagnostics[0].message

    def test_exact_duplicate_line_is_silent(self, tmp_path):
        path = tmp_path / "alice.jsonl"
        line = node().to_line()
        path.write_text(line + line)
        result = AuthorLog(path, "alice").read()
        assert len(result.records) == 1
        assert result.duplicates == 1
        assert result.diagnostics == []


class TestTruncation:
    """Compaction drops the owner's records through the cursor only."""

    def test_truncate_through_cursor(self, tmp_path):
        log = AuthorLog(tmp_path / "alice.jsonl", "alice")
        for sequence in (1, 2, 3):
            log.append(node(sequence=sequence, change_id=str(sequence) * 32))

        assert log.truncate_through(2) == 2
        assert [r.sequence for r in log.read().records] == [3]
        assert log.next_sequence(floor=2) == 4

    def test_truncate_keeps_unreadable_lines(self, tmp_path):
        path = tmp_path / "alice.jsonl"
        log = AuthorLog(path, "alice")
        log.append(node(sequence=1))
        with open(path, "a") as f:
            f.write("garbage\n")

        log.truncate_through(1)
        assert path.read_text() == "garbage\n"

    def test_truncate_missing_file(self, tmp_path):
        assert AuthorLog(tmp_path / "alice.jsonl", "alice").truncate_through(5) == 0


class TestLogSet:
    """Every author's file, read as one record set."""

    def test_authors_from_file_names(self, tmp_path):
        logs = LogSet(tmp_path)
        logs.log_for("bob").append(node(author="bob"))
        logs.log_for("alice").append(node(author="alice"))
        assert logs.authors() == ["alice", "bob"]

    def test_missing_directory(self, tmp_path):
        assert LogSet(tmp_path / "absent").authors() == []

    def test_union_of_logs(self, tmp_path):
        logs = LogSet(tmp_path)
        logs.log_for("alice").append(node(author="alice", change_id="1" * 32))
        logs.log_for("bob").append(create_edge_record(
            "e" * 32, "bob", 1, TS, "1" * 32, "2" * 32, "leads_to"
        ))
        assert logs.count() == 2

    def test_resynchronized_copy_counts_once(self, tmp_path):
        """A record of alice's that also ended up in a copied file is read once."""
        logs = LogSet(tmp_path)
        record = node(author="alice")
        logs.log_for("alice").append(record)
        (tmp_path / "alice-copy.jsonl").write_text(record.to_line())

        result = logs.read_all()
        assert len(result.records) == 1
        assert result.duplicates == 1
