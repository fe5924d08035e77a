"""
Errors — Exception hierarchy and replay diagnostics

Exceptions are raised for problems with a single command: the command is
rejected before anything is written.

Diagnostics are never raised. They describe per-record problems found
while reading or replaying logs (a corrupt line, an edge pointing at a
node nobody has seen yet) and travel alongside the result so one bad
record cannot block everyone else's history.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Dict, Any


class DecisionGraphError(Exception):
    """
    Base exception for all decigraph errors.

    Carries an optional context dict with structured details for display.
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


class ValidationError(DecisionGraphError):
    """Malformed command input: empty title, unknown kind/status/edge type."""
    pass


class NotFoundError(DecisionGraphError):
    """
    Command targets a change_id absent from the local materialized graph.

    The caller should rebuild (pick up other authors' logs) and retry.
    """
    pass


class CheckpointError(DecisionGraphError):
    """Checkpoint snapshot is unreadable or fails its digest check."""
    pass


class ConfigurationError(DecisionGraphError):
    """Configuration value is invalid."""
    pass


class DiagnosticKind(Enum):
    DANGLING_REFERENCE = "dangling_reference"      # endpoint/target not known yet
    MALFORMED_RECORD = "malformed_record"          # line failed to parse
    ORDERING_ANOMALY = "ordering_anomaly"          # sequence regression, gap or bad record_id
    PENDING_TRANSACTION = "pending_transaction"    # composite burst not complete yet


@dataclass(frozen=True)
class Diagnostic:
    """One non-fatal finding from reading or replaying logs."""
    kind: DiagnosticKind
    message: str
    author: str = ""
    sequence: Optional[int] = None
    record_id: str = ""
    source: str = ""      # file the record came from
    line: Optional[int] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_warning(self) -> bool:
        """Dangling references and pending bursts are expected in normal use."""
        return self.kind in (DiagnosticKind.MALFORMED_RECORD, DiagnosticKind.ORDERING_ANOMALY)

    def format(self) -> str:
        where = self.source
        if self.line is not None:
            where = f"{where}:{self.line}" if where else f"line {self.line}"
        prefix = f"[{self.kind.value}]"
        return f"{prefix} {where} {self.message}".replace("  ", " ").strip()
