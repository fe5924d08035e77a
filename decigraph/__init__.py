"""
decigraph — Multi-author decision graph

Records goals, options, decisions and pivots as append-only per-author
logs and rebuilds the same graph on every machine that has the same logs.

Usage:
    decigraph init
    decigraph add goal "Cache strategy"
    decigraph add option "in-memory cache"
    decigraph link 1 2 --type possible_approach
    decigraph pulse
    decigraph pivot 2 "Memory pressure in prod" "Redis cache"
    decigraph checkpoint --clear
"""

__version__ = "0.1.0"

from .core.errors import DecisionGraphError, ValidationError, NotFoundError, CheckpointError
from .core.types import NodeKind, NodeStatus, EdgeType
from .core.events import EventRecord, AuthorLog, LogSet
from .core.graph import GraphStore, Node, Edge
from .core.rebuild import Rebuilder, RebuildResult
from .core.commands import CommandLayer, PivotResult
from .core.checkpoint import CheckpointManager, Checkpoint
from .core.queries import QueryLayer, PulseReport, PivotChain
from .core.workspace import Workspace

from .presentation.symbols import get_symbols, SymbolSet, UNICODE, ASCII

from .config import Config, ConfigManager, get_config

__all__ = [
    # Core
    'DecisionGraphError', 'ValidationError', 'NotFoundError', 'CheckpointError',
    'NodeKind', 'NodeStatus', 'EdgeType',
    'EventRecord', 'AuthorLog', 'LogSet',
    'GraphStore', 'Node', 'Edge',
    'Rebuilder', 'RebuildResult',
    'CommandLayer', 'PivotResult',
    'CheckpointManager', 'Checkpoint',
    'QueryLayer', 'PulseReport', 'PivotChain',
    'Workspace',
    # Presentation
    'get_symbols', 'SymbolSet', 'UNICODE', 'ASCII',
    # Config
    'Config', 'ConfigManager', 'get_config',
]
