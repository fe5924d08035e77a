"""
Workspace — File layout and store lifecycle for one project

    .decigraph/
        logs/<author>.jsonl     shared, one per author (append-only)
        checkpoint.json         shared, last compaction snapshot
        config.yaml             project configuration
        local/graph.db          local projection (git-ignored)
        .gitignore

The graph is an explicit value: built from checkpoint + logs when the
workspace is opened, handed to the Command and Query layers, discarded
at process end. The local projection only saves replaying when nothing
changed since the last rebuild.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Dict, List

import xxhash

from .checkpoint import CheckpointManager, CheckpointResult
from .commands import CommandLayer
from .errors import Diagnostic
from .events import AuthorLog, LogSet
from .graph import GraphStore
from .projection import ProjectionStore
from .queries import QueryLayer
from .rebuild import RebuildResult
from ..utils.logger import get_logger

log = get_logger(__name__)


WORKSPACE_DIR = ".decigraph"

GITIGNORE = """\
# Local projection: rebuilt from logs + checkpoint, never shared
local/
*.tmp
"""


@dataclass
class WorkspacePaths:
    root: Path
    base: Path = field(init=False)
    logs: Path = field(init=False)
    checkpoint: Path = field(init=False)
    local: Path = field(init=False)
    projection: Path = field(init=False)
    config: Path = field(init=False)
    gitignore: Path = field(init=False)

    def __post_init__(self):
        self.root = Path(self.root)
        self.base = self.root / WORKSPACE_DIR
        self.logs = self.base / "logs"
        self.checkpoint = self.base / "checkpoint.json"
        self.local = self.base / "local"
        self.projection = self.local / "graph.db"
        self.config = self.base / "config.yaml"
        self.gitignore = self.base / ".gitignore"


@dataclass
class LoadedGraph:
    graph: GraphStore
    cursors: Dict[str, int] = field(default_factory=dict)
    from_projection: bool = False
    diagnostics: List[Diagnostic] = field(default_factory=list)


class Workspace:
    """
    One project's decision graph, opened as a given author.

    Usage:
        ws = Workspace(Path.cwd(), author="alice")
        ws.init()
        ws.commands().add("goal", "Cache strategy")
        ws.rebuild()
    """

    def __init__(self, root: Path, author: str):
        self.paths = WorkspacePaths(root)
        self.author = author
        self.logs = LogSet(self.paths.logs)
        self.checkpoints = CheckpointManager(self.paths.checkpoint, self.logs)
        self._projection: Optional[ProjectionStore] = None
        self._loaded: Optional[LoadedGraph] = None

    # -------------------------------------------------------------------------
    # Layout
    # -------------------------------------------------------------------------

    def is_initialized(self) -> bool:
        return self.paths.logs.exists()

    def init(self) -> bool:
        """Create the directory layout. Returns False if it already existed."""
        existed = self.is_initialized()
        self.paths.logs.mkdir(parents=True, exist_ok=True)
        self.paths.local.mkdir(parents=True, exist_ok=True)
        if not self.paths.gitignore.exists():
            self.paths.gitignore.write_text(GITIGNORE, encoding="utf-8")
        if not existed:
            log.info(f"initialized workspace at {self.paths.base}")
        return not existed

    @property
    def author_log(self) -> AuthorLog:
        return self.logs.log_for(self.author)

    @property
    def projection(self) -> ProjectionStore:
        if self._projection is None:
            self._projection = ProjectionStore(self.paths.projection)
        return self._projection

    def close(self):
        if self._projection is not None:
            self._projection.close()
            self._projection = None

    def fingerprint(self) -> str:
        """Content hash of every shared input to a rebuild."""
        h = xxhash.xxh64()
        inputs = [log_.path for log_ in self.logs.logs()]
        if self.paths.checkpoint.exists():
            inputs.append(self.paths.checkpoint)
        for path in inputs:
            h.update(path.name.encode())
            h.update(b"\0")
            h.update(path.read_bytes())
            h.update(b"\0")
        return h.hexdigest()

    # -------------------------------------------------------------------------
    # Store lifecycle
    # -------------------------------------------------------------------------

    def load_graph(self, refresh: bool = False) -> LoadedGraph:
        """
        The local materialized graph.

        Uses the projection when its fingerprint matches the current logs
        and checkpoint; otherwise rebuilds and saves.
        """
        if self._loaded is not None and not refresh:
            return self._loaded

        fingerprint = self.fingerprint()
        if not refresh and self.projection.fingerprint() == fingerprint:
            stored = self.projection.load()
            if stored is not None:
                graph, cursors = stored
                self._loaded = LoadedGraph(graph=graph, cursors=cursors, from_projection=True)
                return self._loaded

        result = self.rebuild()
        self._loaded = LoadedGraph(graph=result.graph, cursors=result.cursors, diagnostics=result.diagnostics)
        return self._loaded

    def rebuild(self, dry_run: bool = False) -> RebuildResult:
        """
        Replay checkpoint + logs into a fresh store.

        The projection is swapped only after the rebuild finished; a
        dry run reports what would change and saves nothing.
        """
        fingerprint = self.fingerprint()
        result = self.checkpoints.materialize()
        if not dry_run:
            self.projection.save(result.graph, result.cursors, fingerprint)
            self._loaded = LoadedGraph(graph=result.graph, cursors=result.cursors, diagnostics=result.diagnostics)
            log.debug(f"rebuilt {len(result.graph.live_nodes())} live node(s)")
        return result

    def checkpoint(self, clear_events: bool = False) -> CheckpointResult:
        result = self.checkpoints.checkpoint(clear_events=clear_events)
        # Logs and checkpoint both changed; refresh the projection's fingerprint
        self.projection.save(result.checkpoint.graph, result.checkpoint.cursors, self.fingerprint())
        self._loaded = LoadedGraph(graph=result.checkpoint.graph, cursors=result.checkpoint.cursors)
        return result

    # -------------------------------------------------------------------------
    # Layers
    # -------------------------------------------------------------------------

    def sequence_floor(self) -> int:
        """Checkpoint cursor of this author; a truncated log keeps counting past it."""
        checkpoint = self.checkpoints.load()
        return checkpoint.cursors.get(self.author, 0) if checkpoint else 0

    def commands(self) -> CommandLayer:
        """Command Layer bound to the current local graph."""
        return CommandLayer(
            graph=self.load_graph().graph,
            log=self.author_log,
            sequence_floor=self.sequence_floor(),
        )

    def queries(self) -> QueryLayer:
        return QueryLayer(self.load_graph().graph)
