"""
Event Records — Append-only per-author logs

Records are immutable. Once written, never modified.
The logs are the source of truth. Everything else is projection.

Multi-author layout:
- One JSONL file per author: .decigraph/logs/<author>.jsonl
- Each process appends only to its own author's file
- Other authors' files arrive through external sync and are read-only here
- Merging two authors' files is a set union (no in-place rewrites)
"""

import json
import hashlib
import os
from datetime import datetime, timezone, date as date_type
from pathlib import Path
from dataclasses import dataclass, field, asdict
from typing import Optional, List, Dict, Any, Tuple, Iterable

from .errors import Diagnostic, DiagnosticKind, ValidationError
from .types import Operation, NodeKind, NodeStatus, parse_operation


TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

# Ordering key: (logical_timestamp, author, sequence)
OrderKey = Tuple[str, str, int]


def now_timestamp() -> str:
    """Current time as a normalized logical timestamp."""
    return datetime.now(timezone.utc).strftime(TIMESTAMP_FORMAT)


def normalize_timestamp(value: Any) -> str:
    """
    Normalize a date/datetime/ISO string to the logical timestamp format.

    Accepts 'YYYY-MM-DD', full ISO-8601 datetimes (naive values are taken
    as UTC) and a trailing 'Z'. Normalized values compare chronologically
    as plain strings.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date_type):
        dt = datetime(value.year, value.month, value.day)
    else:
        text = str(value or "").strip()
        if not text:
            raise ValidationError("Empty date", context={"field": "date"})
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            raise ValidationError(
                f"Unparsable date '{value}'. Use YYYY-MM-DD or ISO-8601",
                context={"field": "date", "value": value}
            )

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def compute_record_id(change_id: str, operation: str, author: str, sequence: int) -> str:
    """Record identity: hash of change_id + operation + author + sequence."""
    content = f"{change_id}|{operation}|{author}|{sequence}"
    return hashlib.sha256(content.encode()).hexdigest()[:16]


@dataclass(frozen=True)
class TxnMarker:
    """Tags every record of a composite burst (pivot, cascading supersede)."""
    id: str
    index: int
    size: int


@dataclass(frozen=True)
class EventRecord:
    change_id: str
    author: str
    sequence: int
    logical_timestamp: str
    operation: Operation
    payload: Dict[str, Any] = field(default_factory=dict)
    txn: Optional[TxnMarker] = None
    record_id: str = ""

    def __post_init__(self):
        if not self.record_id:
            object.__setattr__(self, "record_id", compute_record_id(
                self.change_id, self.operation.value, self.author, self.sequence
            ))

    @property
    def order_key(self) -> OrderKey:
        """Deterministic total order across authors."""
        return (self.logical_timestamp, self.author, self.sequence)

    @property
    def has_valid_id(self) -> bool:
        return self.record_id == compute_record_id(
            self.change_id, self.operation.value, self.author, self.sequence
        )

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d['operation'] = self.operation.value
        if self.txn is None:
            del d['txn']
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'EventRecord':
        txn = d.get('txn')
        return cls(
            record_id=d['record_id'],
            change_id=d['change_id'],
            author=d['author'],
            sequence=int(d['sequence']),
            logical_timestamp=d['logical_timestamp'],
            operation=parse_operation(d['operation']),
            payload=dict(d.get('payload') or {}),
            txn=TxnMarker(id=txn['id'], index=int(txn['index']), size=int(txn['size'])) if txn else None,
        )

    def to_line(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True) + '\n'


@dataclass
class LogReadResult:
    """Records parsed from one or more logs plus anything skipped."""
    records: List[EventRecord] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)
    duplicates: int = 0


class AuthorLog:
    """
    One author's append-only record file.

    Only the owning process appends here. The only rewrite is checkpoint
    truncation, which happens after the snapshot is durable.
    """

    def __init__(self, path: Path, author: str):
        self.path = Path(path)
        self.author = author

    def exists(self) -> bool:
        return self.path.exists()

    def append(self, record: EventRecord) -> EventRecord:
        """Append a single record. Returns the record."""
        self.append_burst([record])
        return record

    def append_burst(self, records: List[EventRecord]) -> List[EventRecord]:
        """
        Append several records in one write.

        Composite operations use this so their records land together; a
        crash can still cut the burst short, which replay tolerates.
        """
        if not records:
            return records
        for record in records:
            if record.author != self.author:
                raise ValueError(f"Record author '{record.author}' cannot be written to log of '{self.author}'")

        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, 'a', encoding='utf-8') as f:
            f.write(''.join(r.to_line() for r in records))
            f.flush()
            os.fsync(f.fileno())
        return records

    def read(self) -> LogReadResult:
        """
        Read records in file order.

        Malformed lines are skipped and reported. A record whose sequence
        goes backwards is skipped as an ordering anomaly (unless it is an
        exact duplicate, which is dropped silently). Gaps are reported but
        the record is kept.
        """
        result = LogReadResult()
        if not self.path.exists():
            return result

        source = self.path.name
        seen_ids = set()
        last_sequence = None

        with open(self.path, 'r', encoding='utf-8') as f:
            for line_no, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    record = EventRecord.from_dict(json.loads(line))
                except (json.JSONDecodeError, KeyError, ValueError, TypeError, AttributeError) as e:
                    result.diagnostics.append(Diagnostic(
                        kind=DiagnosticKind.MALFORMED_RECORD,
                        message=f"unparsable record skipped ({e.__class__.__name__})",
                        source=source,
                        line=line_no,
                    ))
                    continue

                if not record.has_valid_id:
                    result.diagnostics.append(Diagnostic(
                        kind=DiagnosticKind.ORDERING_ANOMALY,
                        message="record_id does not match record identity; skipped",
                        author=record.author,
                        sequence=record.sequence,
                        record_id=record.record_id,
                        source=source,
                        line=line_no,
                    ))
                    continue

                if record.record_id in seen_ids:
                    result.duplicates += 1
                    continue

                if last_sequence is not None and record.author == self.author:
                    if record.sequence <= last_sequence:
                        result.diagnostics.append(Diagnostic(
                            kind=DiagnosticKind.ORDERING_ANOMALY,
                            message=f"sequence {record.sequence} after {last_sequence}; skipped",
                            author=record.author,
                            sequence=record.sequence,
                            record_id=record.record_id,
                            source=source,
                            line=line_no,
                        ))
                        continue
                    if record.sequence > last_sequence + 1:
                        result.diagnostics.append(Diagnostic(
                            kind=DiagnosticKind.ORDERING_ANOMALY,
                            message=f"sequence gap {last_sequence} -> {record.sequence}",
                            author=record.author,
                            sequence=record.sequence,
                            record_id=record.record_id,
                            source=source,
                            line=line_no,
                        ))

                if record.author == self.author:
                    last_sequence = record.sequence
                seen_ids.add(record.record_id)
                result.records.append(record)

        return result

    def last_sequence(self) -> int:
        """Highest sequence written by this author (0 if none)."""
        highest = 0
        for record in self.read().records:
            if record.author == self.author:
                highest = max(highest, record.sequence)
        return highest

    def next_sequence(self, floor: int = 0) -> int:
        """
        Next sequence number to use.

        Args:
            floor: Checkpoint cursor for this author; truncated logs must
                   keep counting past it.
        """
        return max(self.last_sequence(), floor) + 1

    def truncate_through(self, cursor: int) -> int:
        """
        Drop records with sequence <= cursor (checkpoint compaction).

        Returns number of lines removed. Writes a temp file and swaps it in
        so a crash leaves either the old or the new file.
        """
        if not self.path.exists():
            return 0

        kept = []
        removed = 0
        with open(self.path, 'r', encoding='utf-8') as f:
            for line in f:
                stripped = line.strip()
                if not stripped:
                    continue
                try:
                    data = json.loads(stripped)
                    sequence = int(data['sequence'])
                    author = data['author']
                except (json.JSONDecodeError, KeyError, ValueError, TypeError):
                    # Keep unreadable lines for inspection
                    kept.append(stripped + '\n')
                    continue
                if author == self.author and sequence <= cursor:
                    removed += 1
                else:
                    kept.append(stripped + '\n')

        tmp_path = self.path.with_suffix('.jsonl.tmp')
        with open(tmp_path, 'w', encoding='utf-8') as f:
            f.write(''.join(kept))
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, self.path)
        return removed


class LogSet:
    """
    Every author's log in the shared logs directory.

    Reading unions all files and drops records already seen under the same
    record_id (a resynchronized copy in two files counts once).
    """

    SUFFIX = ".jsonl"

    def __init__(self, logs_dir: Path):
        self.logs_dir = Path(logs_dir)

    def authors(self) -> List[str]:
        if not self.logs_dir.exists():
            return []
        return sorted(p.stem for p in self.logs_dir.glob(f"*{self.SUFFIX}"))

    def log_for(self, author: str) -> AuthorLog:
        return AuthorLog(self.logs_dir / f"{author}{self.SUFFIX}", author)

    def logs(self) -> List[AuthorLog]:
        return [self.log_for(author) for author in self.authors()]

    def read_all(self) -> LogReadResult:
        combined = LogReadResult()
        seen = set()
        for log in self.logs():
            result = log.read()
            combined.diagnostics.extend(result.diagnostics)
            combined.duplicates += result.duplicates
            for record in result.records:
                if record.record_id in seen:
                    combined.duplicates += 1
                    continue
                seen.add(record.record_id)
                combined.records.append(record)
        return combined

    def count(self) -> int:
        return len(self.read_all().records)


# Record builders

def create_node_record(
    change_id: str,
    author: str,
    sequence: int,
    timestamp: str,
    kind: NodeKind,
    title: str,
    description: Optional[str] = None,
    confidence: Optional[int] = None,
    commit: Optional[str] = None,
    files: Optional[Iterable[str]] = None,
    txn: Optional[TxnMarker] = None,
) -> EventRecord:
    payload = {"kind": kind.value, "title": title}
    if description:
        payload["description"] = description
    if confidence is not None:
        payload["confidence"] = confidence
    if commit:
        payload["commit"] = commit
    if files:
        payload["files"] = list(files)
    return EventRecord(
        change_id=change_id,
        author=author,
        sequence=sequence,
        logical_timestamp=timestamp,
        operation=Operation.CREATE_NODE,
        payload=payload,
        txn=txn,
    )


def create_edge_record(
    change_id: str,
    author: str,
    sequence: int,
    timestamp: str,
    from_id: str,
    to_id: str,
    edge_type: str,
    rationale: Optional[str] = None,
    txn: Optional[TxnMarker] = None,
) -> EventRecord:
    payload = {"from": from_id, "to": to_id, "edge_type": edge_type}
    if rationale:
        payload["rationale"] = rationale
    return EventRecord(
        change_id=change_id,
        author=author,
        sequence=sequence,
        logical_timestamp=timestamp,
        operation=Operation.CREATE_EDGE,
        payload=payload,
        txn=txn,
    )


def set_status_record(
    change_id: str,
    author: str,
    sequence: int,
    timestamp: str,
    status: NodeStatus,
    txn: Optional[TxnMarker] = None,
) -> EventRecord:
    return EventRecord(
        change_id=change_id,
        author=author,
        sequence=sequence,
        logical_timestamp=timestamp,
        operation=Operation.SET_STATUS,
        payload={"status": status.value},
        txn=txn,
    )


def delete_node_record(change_id: str, author: str, sequence: int, timestamp: str) -> EventRecord:
    return EventRecord(
        change_id=change_id,
        author=author,
        sequence=sequence,
        logical_timestamp=timestamp,
        operation=Operation.DELETE_NODE,
        payload={},
    )


def delete_edge_record(
    author: str,
    sequence: int,
    timestamp: str,
    from_id: str,
    to_id: str,
    edge_type: Optional[str] = None,
) -> EventRecord:
    """Tombstone for edges from_id -> to_id (edge_type None = every relation)."""
    return EventRecord(
        change_id=from_id,
        author=author,
        sequence=sequence,
        logical_timestamp=timestamp,
        operation=Operation.DELETE_EDGE,
        payload={"from": from_id, "to": to_id, "edge_type": edge_type},
    )
