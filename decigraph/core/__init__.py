"""
Core — Data layer for decigraph

Contains the foundational data structures:
- Events: Immutable per-author record logs (source of truth)
- Graph: Materialized node/edge store
- Rebuild: Deterministic replay of logs into a graph
- Commands: Validated writes (add, link, pivot, supersede, ...)
- Checkpoint: Snapshot + log compaction
- Projection: SQLite copy of the local graph
- Queries: Pulse, timeline, pivot chains, export
- Workspace: File layout and store lifecycle
- Resolver: Human-friendly node references
"""

from .errors import (
    DecisionGraphError, ValidationError, NotFoundError, CheckpointError, ConfigurationError,
    Diagnostic, DiagnosticKind,
)
from .types import NodeKind, NodeStatus, EdgeType, Operation
from .events import EventRecord, TxnMarker, AuthorLog, LogSet, normalize_timestamp
from .graph import GraphStore, Node, Edge
from .rebuild import Rebuilder, RebuildResult
from .commands import CommandLayer, PivotResult
from .checkpoint import Checkpoint, CheckpointManager, CheckpointResult
from .projection import ProjectionStore
from .queries import QueryLayer, PulseReport, PivotChain
from .workspace import Workspace
from .resolver import NodeResolver, ResolveStatus, ResolveResult

__all__ = [
    # Errors
    "DecisionGraphError", "ValidationError", "NotFoundError", "CheckpointError", "ConfigurationError",
    "Diagnostic", "DiagnosticKind",
    # Types
    "NodeKind", "NodeStatus", "EdgeType", "Operation",
    # Events
    "EventRecord", "TxnMarker", "AuthorLog", "LogSet", "normalize_timestamp",
    # Graph
    "GraphStore", "Node", "Edge",
    # Replay and writes
    "Rebuilder", "RebuildResult",
    "CommandLayer", "PivotResult",
    "Checkpoint", "CheckpointManager", "CheckpointResult",
    "ProjectionStore",
    # Reads
    "QueryLayer", "PulseReport", "PivotChain",
    "Workspace",
    "NodeResolver", "ResolveStatus", "ResolveResult",
]
