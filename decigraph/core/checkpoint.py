"""
Checkpoint Manager — Snapshot of the Graph Store plus per-author cursors

A checkpoint is a complete node/edge table, not a log fragment: every
change_id ever materialized (tombstoned ones included) survives so later
records keep resolving without their creation events.

Ordering is snapshot first, truncate second. The snapshot is written to a
temp file, fsynced and renamed into place before any log is touched; a
crash at any point leaves either the old checkpoint with full logs, or
the new checkpoint with logs that still replay cleanly on top of it.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

import orjson
import xxhash

from .errors import CheckpointError
from .events import LogSet, now_timestamp
from .graph import GraphStore
from .rebuild import Rebuilder, RebuildResult
from ..utils.logger import get_logger

log = get_logger(__name__)


CHECKPOINT_FORMAT = 1


def graph_digest(graph_payload: Dict) -> str:
    """xxhash64 over the canonical (sorted-key) graph document."""
    return xxhash.xxh64(orjson.dumps(graph_payload, option=orjson.OPT_SORT_KEYS)).hexdigest()


@dataclass
class Checkpoint:
    graph: GraphStore
    cursors: Dict[str, int] = field(default_factory=dict)
    created_at: str = ""
    digest: str = ""

    def to_dict(self) -> Dict:
        payload = self.graph.to_dict()
        return {
            "format": CHECKPOINT_FORMAT,
            "created_at": self.created_at,
            "cursors": dict(sorted(self.cursors.items())),
            "graph": payload,
            "digest": graph_digest(payload),
        }

    @classmethod
    def from_dict(cls, d: Dict) -> 'Checkpoint':
        if d.get("format") != CHECKPOINT_FORMAT:
            raise CheckpointError(
                f"Unsupported checkpoint format: {d.get('format')}",
                context={"format": d.get("format")}
            )
        payload = d.get("graph")
        if not isinstance(payload, dict):
            raise CheckpointError("Checkpoint has no graph table")
        digest = graph_digest(payload)
        if d.get("digest") != digest:
            raise CheckpointError(
                "Checkpoint digest mismatch; the snapshot was modified or truncated",
                context={"expected": d.get("digest"), "actual": digest}
            )
        return cls(
            graph=GraphStore.from_dict(payload),
            cursors={str(k): int(v) for k, v in (d.get("cursors") or {}).items()},
            created_at=d.get("created_at", ""),
            digest=digest,
        )


@dataclass
class CheckpointResult:
    checkpoint: Checkpoint
    rebuild: RebuildResult
    path: Path
    truncated: Dict[str, int] = field(default_factory=dict)

    @property
    def records_removed(self) -> int:
        return sum(self.truncated.values())


class CheckpointManager:
    """
    Reads and writes the checkpoint file for a Log Set.

    Usage:
        manager = CheckpointManager(path, logs)
        result = manager.checkpoint(clear_events=True)
    """

    def __init__(self, path: Path, logs: LogSet, rebuilder: Optional[Rebuilder] = None):
        self.path = Path(path)
        self.logs = logs
        self.rebuilder = rebuilder or Rebuilder()

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> Optional[Checkpoint]:
        """Load and verify the checkpoint (None if there is none yet)."""
        if not self.path.exists():
            return None
        try:
            data = orjson.loads(self.path.read_bytes())
        except orjson.JSONDecodeError as e:
            raise CheckpointError(f"Checkpoint is not valid JSON: {e}", context={"path": str(self.path)})
        checkpoint = Checkpoint.from_dict(data)
        log.debug(f"loaded checkpoint from {checkpoint.created_at} with {len(checkpoint.graph.nodes)} node(s)")
        return checkpoint

    def write(self, checkpoint: Checkpoint) -> Path:
        """Durably replace the checkpoint file."""
        document = checkpoint.to_dict()
        checkpoint.digest = document["digest"]

        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        with open(tmp_path, "wb") as f:
            f.write(orjson.dumps(document, option=orjson.OPT_INDENT_2 | orjson.OPT_SORT_KEYS))
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, self.path)
        return self.path

    def materialize(self) -> RebuildResult:
        """Rebuild the current graph from the last checkpoint plus all logs."""
        base = self.load()
        records = self.logs.read_all()
        result = self.rebuilder.rebuild(
            records.records,
            base=base.graph if base else None,
            cursors=base.cursors if base else None,
        )
        for diagnostic in records.diagnostics:
            log.warning(diagnostic.format())
        result.diagnostics[:0] = records.diagnostics
        result.skipped_duplicates += records.duplicates
        return result

    def checkpoint(self, clear_events: bool = False) -> CheckpointResult:
        """
        Snapshot the current graph and advance every author's cursor.

        Args:
            clear_events: After the snapshot is durable, drop each log's
                          records up to its cursor. Records of an
                          incomplete burst stay behind the cursor and are
                          never dropped.
        """
        result = self.materialize()
        checkpoint = Checkpoint(
            graph=result.graph,
            cursors=result.cursors,
            created_at=now_timestamp(),
        )
        path = self.write(checkpoint)
        log.info(f"checkpoint written: {len(result.graph.nodes)} node(s), cursors {checkpoint.cursors}")

        truncated = {}
        if clear_events:
            for author_log in self.logs.logs():
                cursor = checkpoint.cursors.get(author_log.author, 0)
                removed = author_log.truncate_through(cursor)
                truncated[author_log.author] = removed
                if removed:
                    log.info(f"truncated {removed} record(s) from {author_log.path.name} through {cursor}")

        return CheckpointResult(checkpoint=checkpoint, rebuild=result, path=path, truncated=truncated)
